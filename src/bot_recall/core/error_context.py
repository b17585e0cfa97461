"""Snapshot of a failure, flattened for structured logging."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from .base import ApplicationError
from .logging import get_log_context


@dataclass(frozen=True)
class ErrorContext:
    error: Exception
    trace_id: str = field(default_factory=lambda: uuid4().hex)
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(cls, error: Exception, **context: Any) -> "ErrorContext":
        """Record ``error`` together with the bound log context and any extra fields."""
        return cls(error=error, context={**get_log_context(), **context})

    def to_dict(self) -> dict[str, Any]:
        flat: dict[str, Any] = {
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "captured_at": self.captured_at.isoformat(),
        }
        if isinstance(self.error, ApplicationError):
            flat.update(self.error.log_fields())
        flat.update({f"context.{key}": value for key, value in self.context.items()})
        return flat
