"""Customer memory updates for one recorded turn."""

from bot_recall.core.config import MemoryConfig, settings
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import (
    ConversationTurn,
    CustomerMemory,
    CustomerPreferences,
    FactSource,
    FactValue,
    MemoryFact,
)
from bot_recall.domain.models.utils import utc_now
from bot_recall.services.memory.analysis import GENERAL_TOPIC, derive_intent, derive_topics, mentioned_products
from bot_recall.services.memory.consolidation import MemoryConsolidator
from bot_recall.services.memory.rules import FactExtractor, default_rules, propose_facts

logger = get_logger(__name__)


class CustomerMemoryEngine:
    """Pure memory bookkeeping; persistence is the caller's concern.

    Every method works on a copy and returns the updated memory.
    """

    def __init__(
        self,
        config: MemoryConfig | None = None,
        rules: tuple[FactExtractor, ...] | list[FactExtractor] | None = None,
        consolidator: MemoryConsolidator | None = None,
    ):
        self.config = config or settings.memory
        self.rules = tuple(rules) if rules is not None else default_rules(self.config.inferred_confidence)
        self.consolidator = consolidator

    def apply_direct_facts(self, memory: CustomerMemory, facts: dict[str, FactValue]) -> CustomerMemory:
        """Explicit save signals always overwrite, at full confidence."""
        updated = memory.model_copy(deep=True)
        now = utc_now()
        for field_name, value in facts.items():
            if value is None or value == "":
                continue
            updated.put_fact(
                MemoryFact(
                    field_name=field_name,
                    field_value=value,
                    confidence=1.0,
                    last_confirmed=now,
                    source=FactSource.DIRECT,
                )
            )
        if facts:
            updated.last_updated = now
        return updated

    def accept_proposal(self, memory: CustomerMemory, proposal: MemoryFact) -> bool:
        """A conversation proposal never replaces well-evidenced facts."""
        existing = memory.get_fact(proposal.field_name)
        return existing is None or existing.confidence < self.config.direct_evidence_threshold

    def extract_facts(self, memory: CustomerMemory, message: str) -> list[MemoryFact]:
        """Store accepted rule proposals on ``memory`` and return them."""
        accepted = []
        for proposal in propose_facts(message, self.rules):
            if self.accept_proposal(memory, proposal):
                memory.put_fact(proposal)
                accepted.append(proposal)
        return accepted

    def should_consolidate(self, memory: CustomerMemory) -> bool:
        return memory.turn_count > 0 and memory.turn_count % self.config.consolidation_every == 0

    async def record_turn(
        self,
        memory: CustomerMemory,
        user_message: str,
        bot_response: str,
        intent: str | None = None,
        product_focus: list[str] | None = None,
    ) -> CustomerMemory:
        updated = memory.model_copy(deep=True)
        turn = ConversationTurn(
            user_message=user_message,
            bot_response=bot_response,
            topics=derive_topics(user_message),
            intent=intent or derive_intent(user_message),
        )
        updated.conversation_history.append(turn)
        updated.conversation_history = updated.conversation_history[-self.config.history_cap :]
        updated.turn_count += 1

        accepted = self.extract_facts(updated, user_message)
        if accepted:
            logger.debug("Accepted conversation facts", fields=[fact.field_name for fact in accepted])

        cap = self.config.preference_cap
        updated.preferences.topics_of_interest = CustomerPreferences.remember(
            updated.preferences.topics_of_interest, [topic for topic in turn.topics if topic != GENERAL_TOPIC], cap
        )
        products = mentioned_products(user_message, product_focus or [])
        if products:
            updated.preferences.product_interests = CustomerPreferences.remember(
                updated.preferences.product_interests, products, cap
            )

        if self.consolidator is not None and self.should_consolidate(updated):
            logger.info("Consolidating customer memory", turn_count=updated.turn_count)
            result = await self.consolidator.consolidate(updated, turn)
            if result is not None:
                updated.context_summary = result.summary
                updated.profile = result.profile

        updated.last_updated = utc_now()
        return updated
