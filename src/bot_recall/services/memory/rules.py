"""Rule-based fact extraction from customer messages."""

import re
from dataclasses import dataclass, field
from typing import Protocol

from bot_recall.domain.models import FactSource, MemoryFact

NAME_FIELD = "tên"
PHONE_FIELD = "số điện thoại"
EMAIL_FIELD = "email"
BUSINESS_FIELD = "lĩnh vực kinh doanh"
LOCATION_FIELD = "địa điểm"

# One to four letter-only words
_NAME_WORDS = r"([^\W\d_]+(?:[ \t]+[^\W\d_]+){0,3})"


class FactExtractor(Protocol):
    """Proposes at most one fact for its field from a message."""

    field_name: str

    def extract(self, message: str) -> MemoryFact | None: ...


@dataclass(frozen=True)
class RegexFactRule:
    """Fires on the first match of ``pattern``; group 1 is the value."""

    field_name: str
    pattern: str
    confidence: float = 0.7
    flags: int = re.IGNORECASE
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern, self.flags))

    def extract(self, message: str) -> MemoryFact | None:
        match = self._compiled.search(message)
        if match is None:
            return None
        value = match.group(1).strip(" \t.,!?")
        if not value:
            return None
        return MemoryFact(
            field_name=self.field_name,
            field_value=value,
            confidence=self.confidence,
            source=FactSource.CONVERSATION,
        )


def default_rules(confidence: float = 0.7) -> tuple[RegexFactRule, ...]:
    """Vietnamese and English rules for the built-in customer fields."""
    return (
        RegexFactRule(
            NAME_FIELD,
            r"(?:tên(?:[ \t]+(?:tôi|mình|em|anh|chị))?[ \t]+là|(?:tôi|mình)[ \t]+tên(?:[ \t]+là)?|my name is)[ \t]+"
            + _NAME_WORDS,
            confidence,
        ),
        RegexFactRule(PHONE_FIELD, r"\b(0[35789][0-9]{8})\b", confidence),
        RegexFactRule(EMAIL_FIELD, r"\b([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b", confidence),
        RegexFactRule(BUSINESS_FIELD, r"(?:kinh doanh|lĩnh vực|làm về)[ \t]+([^.,!?\n]+)", confidence),
        RegexFactRule(
            LOCATION_FIELD,
            r"(?:cửa hàng|quán|doanh nghiệp|công ty)(?:[ \t]+(?:của|mình|tôi))*[ \t]+(?:ở|tại)[ \t]+([^.,!?\n]+)",
            confidence,
        ),
    )


DEFAULT_RULES = default_rules()


def propose_facts(message: str, rules: tuple[FactExtractor, ...] | list[FactExtractor]) -> list[MemoryFact]:
    """Run every rule once over ``message``; at most one proposal per field."""
    proposals: dict[str, MemoryFact] = {}
    for rule in rules:
        if rule.field_name in proposals:
            continue
        fact = rule.extract(message)
        if fact is not None:
            proposals[rule.field_name] = fact
    return list(proposals.values())
