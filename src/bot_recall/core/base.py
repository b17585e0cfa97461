"""Error taxonomy shared by every layer: codes, severities and detail models."""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        return logging.getLevelName(self.name)


class ErrorCode(str, Enum):
    """Stable codes, grouped by the layer that raises them."""

    # Input and processing (1xxx)
    PROCESSING_FAILED = "1004"
    TIMEOUT = "1007"
    BOT_SCOPE_NOT_FOUND = "1014"

    # Collaborators: embedding backend, language model (2xxx)
    AUTHENTICATION_FAILED = "2001"
    RATE_LIMITED = "2003"
    MALFORMED_OUTPUT = "2006"
    EMBEDDING_FAILED = "2010"

    # Document store (3xxx)
    STORE_UNAVAILABLE = "3001"
    STORE_CONFLICT = "3006"

    # Transport (5xxx)
    SERVICE_UNAVAILABLE = "5002"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Structured context attached to every ApplicationError."""

    model_config = {"extra": "allow"}

    source: str = Field(description="Component that raised the error")
    operation: str = Field(description="Operation in progress when it failed")
    bot_scope: str | None = Field(None, description="Bot scope the operation was serving, if any")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ServiceErrorDetails(ErrorDetails):
    """A call to an external collaborator."""

    service_name: str = Field(description="Collaborator that failed, e.g. 'Voyage AI'")
    endpoint: str | None = None
    status_code: int | None = Field(None, description="HTTP-like status; 408 for timeouts, 503 for transport")


class DatabaseErrorDetails(ServiceErrorDetails):
    query_type: str | None = Field(None, description="Store operation, e.g. 'text_search'")


class AIServiceErrorDetails(ServiceErrorDetails):
    model_name: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None


def _coerce_details(details: ErrorDetails | dict[str, Any] | None) -> ErrorDetails:
    if isinstance(details, ErrorDetails):
        return details
    data = dict(details or {})
    data.setdefault("source", "unknown")
    data.setdefault("operation", "unknown")
    return ErrorDetails(**data)


class ApplicationError(Exception):
    """Base class for every error the package raises on purpose.

    Subclasses fix ``code`` and ``level``; ``transient`` marks failures that a
    retry or a degraded fallback may recover from.
    """

    code: ClassVar[ErrorCode] = ErrorCode.PROCESSING_FAILED
    level: ClassVar[ErrorLevel] = ErrorLevel.ERROR
    transient: ClassVar[bool] = False

    def __init__(self, message: str, details: ErrorDetails | dict[str, Any] | None = None):
        self.message = message
        self.details = _coerce_details(details)
        super().__init__(message)

    def log_fields(self) -> dict[str, Any]:
        """Flat key/value view for structured log events."""
        fields: dict[str, Any] = {"error_code": self.code.value, "error_level": self.level.value}
        for key, value in self.details.model_dump(mode="json", exclude_none=True).items():
            fields[f"details.{key}"] = value
        return fields
