"""Derived engagement scores; recomputed on demand, never stored."""

from datetime import datetime, timedelta
from enum import Enum

from bot_recall.domain.models import CustomerMemory
from bot_recall.domain.models.utils import utc_now

RECENT_WINDOW = timedelta(hours=24)


class EngagementTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def potential_score(memory: CustomerMemory, now: datetime | None = None) -> int:
    """0-100 lead score from facts, history, product interests and recent activity."""
    now = now or utc_now()
    recent = sum(1 for turn in memory.conversation_history if now - turn.timestamp < RECENT_WINDOW)

    score = (
        min(len(memory.facts) * 10, 30)
        + min(len(memory.conversation_history) * 5, 20)
        + min(len(memory.preferences.product_interests) * 15, 30)
        + min(recent * 10, 20)
    )
    return min(score, 100)


def engagement_tier(score: int) -> EngagementTier:
    if score >= 70:
        return EngagementTier.HIGH
    if score >= 40:
        return EngagementTier.MEDIUM
    return EngagementTier.LOW
