"""Per-customer long-term memory models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from bot_recall.domain.models.utils import utc_now

# Explicit value variant of a remembered fact
FactValue = str | int | float | bool | datetime


class FactSource(str, Enum):
    """Where a fact came from; direct facts outrank everything else."""

    DIRECT = "direct"
    INFERRED = "inferred"
    CONVERSATION = "conversation"


class MemoryFact(BaseModel):
    field_name: str
    field_value: FactValue
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    last_confirmed: datetime = Field(default_factory=utc_now)
    source: FactSource = FactSource.CONVERSATION


class ConversationTurn(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    user_message: str
    bot_response: str = ""
    topics: list[str] = Field(default_factory=list)
    intent: str | None = None


class CustomerPreferences(BaseModel):
    """Bounded, most-recent-last lists of what the customer cares about."""

    communication_style: str | None = None
    topics_of_interest: list[str] = Field(default_factory=list)
    pain_points: list[str] = Field(default_factory=list)
    product_interests: list[str] = Field(default_factory=list)

    @staticmethod
    def remember(values: list[str], new_values: list[str], cap: int) -> list[str]:
        """Move ``new_values`` to the most recent end and keep the last ``cap``."""
        merged = [value for value in values if value not in new_values]
        for value in new_values:
            if value not in merged:
                merged.append(value)
        return merged[-cap:] if cap > 0 else []


class CustomerMemory(BaseModel):
    """Everything remembered about one customer of one bot."""

    customer_id: str
    bot_scope: str
    facts: list[MemoryFact] = Field(default_factory=list)
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)
    context_summary: str = ""
    profile: str = ""
    turn_count: int = Field(default=0, ge=0)
    version: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=utc_now)

    @classmethod
    def new(
        cls,
        customer_id: str,
        bot_scope: str,
        seed_fields: dict[str, FactValue] | None = None,
    ) -> "CustomerMemory":
        """Create a first-contact record, optionally seeded with pre-collected fields."""
        memory = cls(customer_id=customer_id, bot_scope=bot_scope)
        for field_name, value in (seed_fields or {}).items():
            if value is None or value == "":
                continue
            memory.put_fact(
                MemoryFact(field_name=field_name, field_value=value, confidence=1.0, source=FactSource.DIRECT)
            )
        return memory

    def get_fact(self, field_name: str) -> MemoryFact | None:
        for fact in self.facts:
            if fact.field_name == field_name:
                return fact
        return None

    def put_fact(self, fact: MemoryFact) -> None:
        """Store ``fact`` as the single authoritative fact for its field."""
        for index, existing in enumerate(self.facts):
            if existing.field_name == fact.field_name:
                self.facts[index] = fact
                return
        self.facts.append(fact)

    def facts_as_dict(self) -> dict[str, Any]:
        return {fact.field_name: fact.field_value for fact in self.facts}

    @property
    def history_size(self) -> int:
        return len(self.conversation_history)
