"""Periodic rewrite of a customer's running summary and profile."""

import asyncio

from pydantic import BaseModel

from bot_recall.core.base import ApplicationError
from bot_recall.core.config import MemoryConfig, settings
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import ChatMessage, ConversationTurn, CustomerMemory, GenerationOptions
from bot_recall.domain.services import LanguageModel
from bot_recall.infrastructure.llm.parsing import extract_json_object

logger = get_logger(__name__)

CONSOLIDATION_OPTIONS = GenerationOptions(temperature=0.2, max_tokens=600)

CONSOLIDATION_PROMPT = """Update the customer record using the latest exchange.

PREVIOUS RECORD:
- Story so far: "{summary}"
- Customer profile: "{profile}"

LATEST EXCHANGE:
Customer: "{user_message}"
Bot: "{bot_response}"

Return a JSON object with exactly two fields:
1. "summary": a short account of the conversation up to now (under 100 words).
2. "profile": the customer's personality and attitude (under 50 words).

Output JSON only."""


class Consolidation(BaseModel):
    summary: str
    profile: str


def _bounded(text: str, max_chars: int) -> str:
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    # Prefer ending on a word boundary
    return cut.rsplit(" ", 1)[0] if " " in cut else cut


class MemoryConsolidator:
    """Asks the language model for a fresh ``{summary, profile}`` pair.

    Any failure (model error, timeout, unusable output) returns ``None`` and
    the caller keeps the previous values.
    """

    def __init__(
        self,
        llm: LanguageModel,
        config: MemoryConfig | None = None,
        timeout_seconds: float | None = None,
    ):
        self.llm = llm
        self.config = config or settings.memory
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

    async def consolidate(self, memory: CustomerMemory, turn: ConversationTurn) -> Consolidation | None:
        prompt = CONSOLIDATION_PROMPT.format(
            summary=memory.context_summary,
            profile=memory.profile,
            user_message=turn.user_message,
            bot_response=turn.bot_response,
        )
        try:
            output = await asyncio.wait_for(
                self.llm.generate([ChatMessage.user(prompt)], CONSOLIDATION_OPTIONS),
                timeout=self.timeout_seconds,
            )
            data = extract_json_object(output)
        except asyncio.TimeoutError:
            logger.warning("Memory consolidation timed out", timeout=self.timeout_seconds)
            return None
        except ApplicationError as e:
            logger.warning(f"Memory consolidation failed: {e.message}", error_code=e.code.value)
            return None

        summary = data.get("summary")
        profile = data.get("profile")
        if not isinstance(summary, str) or not isinstance(profile, str) or not summary.strip():
            logger.warning("Memory consolidation returned unusable fields", keys=sorted(data))
            return None

        return Consolidation(
            summary=_bounded(summary, self.config.summary_max_chars),
            profile=_bounded(profile, self.config.profile_max_chars),
        )
