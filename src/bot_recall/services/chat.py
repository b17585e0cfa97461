"""One chat turn: recall, answer, remember."""

import asyncio

from pydantic import BaseModel, Field

from bot_recall.core.logging import bound_log_context, get_logger
from bot_recall.domain.models import (
    BotProfile,
    ChatMessage,
    CustomerMemory,
    FactValue,
    GenerationOptions,
    MergedKnowledgeItem,
)
from bot_recall.domain.services import LanguageModel
from bot_recall.services.bot_profiles import BotProfileService
from bot_recall.services.memory import (
    EngagementTier,
    MemoryService,
    derive_intent,
    engagement_tier,
    parse_save_commands,
    potential_score,
)
from bot_recall.services.retrieval import RetrievalOrchestrator

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful customer support assistant. Answer briefly and accurately."

REPLY_OPTIONS = GenerationOptions(temperature=0.7, max_tokens=1024)


class ChatReply(BaseModel):
    reply: str
    intent: str
    saved_fields: dict[str, FactValue] = Field(default_factory=dict)
    knowledge: list[MergedKnowledgeItem] = Field(default_factory=list)
    potential_score: int = 0
    engagement: EngagementTier = EngagementTier.LOW


def build_system_prompt(
    profile: BotProfile | None,
    memory: CustomerMemory,
    knowledge: list[MergedKnowledgeItem],
) -> str:
    sections = [profile.system_prompt if profile and profile.system_prompt else DEFAULT_SYSTEM_PROMPT]

    if memory.facts:
        facts = "\n".join(f"- {fact.field_name}: {fact.field_value}" for fact in memory.facts)
        sections.append(f"Known about this customer:\n{facts}")
    if memory.context_summary:
        sections.append(f"Conversation so far: {memory.context_summary}")
    if memory.profile:
        sections.append(f"Customer profile: {memory.profile}")

    if knowledge:
        blocks = "\n\n".join(
            f"[{index}] {item.title}\n{item.content}" if item.title else f"[{index}] {item.content}"
            for index, item in enumerate(knowledge, start=1)
        )
        sections.append(f"Relevant knowledge:\n{blocks}")
    else:
        sections.append("No knowledge base entry matches this question; say so rather than guessing.")

    if profile and profile.customer_fields:
        missing = [name for name in profile.customer_fields if memory.get_fact(name) is None]
        if missing:
            sections.append(
                "When the customer shares one of these details, append [SAVE:field=value] to your reply: "
                + ", ".join(missing)
            )
    return "\n\n".join(sections)


class ChatTurnService:
    """Answers a customer message with memory and knowledge in context.

    Profile, memory and knowledge are loaded concurrently. The memory update
    runs in the background; call ``drain()`` before shutdown.
    """

    def __init__(
        self,
        profiles: BotProfileService,
        memory: MemoryService,
        retrieval: RetrievalOrchestrator,
        llm: LanguageModel,
        options: GenerationOptions = REPLY_OPTIONS,
    ):
        self.profiles = profiles
        self.memory = memory
        self.retrieval = retrieval
        self.llm = llm
        self.options = options

    async def handle_message(
        self,
        bot_scope: str,
        customer_id: str,
        message: str,
        seed_fields: dict[str, FactValue] | None = None,
    ) -> ChatReply:
        with bound_log_context(bot_scope=bot_scope, customer_id=customer_id):
            profile, memory, knowledge = await asyncio.gather(
                self.profiles.get(bot_scope),
                self.memory.load(customer_id, bot_scope, seed_fields),
                self.retrieval.retrieve_context(bot_scope, message),
            )

            messages = [ChatMessage.system(build_system_prompt(profile, memory, knowledge))]
            for turn in memory.conversation_history[-3:]:
                messages.append(ChatMessage.user(turn.user_message))
                if turn.bot_response:
                    messages.append(ChatMessage.assistant(turn.bot_response))
            messages.append(ChatMessage.user(message))

            raw = await self.llm.generate(messages, self.options)
            parsed = parse_save_commands(raw, profile.customer_fields if profile else None)
            intent = derive_intent(message)

            self.memory.record_turn_in_background(
                customer_id,
                bot_scope,
                message,
                parsed.reply,
                derived_facts=parsed.facts,
                intent=intent,
                product_focus=profile.product_focus if profile else None,
                seed_fields=seed_fields,
            )

            score = potential_score(memory)
            logger.info(
                "Answered customer message",
                intent=intent,
                knowledge_items=len(knowledge),
                saved_fields=sorted(parsed.facts),
            )
            return ChatReply(
                reply=parsed.reply,
                intent=intent,
                saved_fields=parsed.facts,
                knowledge=knowledge,
                potential_score=score,
                engagement=engagement_tier(score),
            )

    async def drain(self) -> None:
        await self.memory.drain()
