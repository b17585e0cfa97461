"""Utility functions for domain models."""

from collections.abc import Iterable
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get the current UTC datetime with timezone awareness."""
    return datetime.now(UTC)


def unique_ordered(values: Iterable[str]) -> list[str]:
    """Drop empty and duplicate strings, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
