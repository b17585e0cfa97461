"""Concrete errors.

Transient errors (transport, rate limits, timeouts) are retried by
``RetryWithCircuitBreaker`` and degrade retrieval or embedding to a fallback.
Malformed collaborator output is discarded where it is produced. Store and
bot scope errors reach the caller.
"""

from .base import ApplicationError, ErrorCode, ErrorDetails, ErrorLevel, ServiceErrorDetails


class ServiceError(ApplicationError):
    """A collaborator is unreachable, failing with 5xx, or behind an open circuit."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    transient = True

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message,
            details or ServiceErrorDetails(source="service", operation="external_call", service_name="unknown"),
        )


class RateLimitError(ApplicationError):
    code = ErrorCode.RATE_LIMITED
    level = ErrorLevel.WARNING
    transient = True


class TimeoutError(ApplicationError):
    code = ErrorCode.TIMEOUT
    level = ErrorLevel.WARNING
    transient = True


class AuthenticationError(ApplicationError):
    code = ErrorCode.AUTHENTICATION_FAILED


class ProcessingError(ApplicationError):
    """The request itself was rejected; retrying cannot help."""

    code = ErrorCode.PROCESSING_FAILED


class EmbeddingError(ApplicationError):
    code = ErrorCode.EMBEDDING_FAILED
    level = ErrorLevel.WARNING


class MalformedOutputError(ApplicationError):
    """Collaborator output did not contain the expected structure."""

    code = ErrorCode.MALFORMED_OUTPUT
    level = ErrorLevel.WARNING


class BotScopeNotFoundError(ApplicationError):
    """The requested bot scope is unknown or inactive."""

    code = ErrorCode.BOT_SCOPE_NOT_FOUND

    def __init__(self, bot_scope: str, details: ErrorDetails | dict | None = None):
        self.bot_scope = bot_scope
        super().__init__(
            f"Bot scope '{bot_scope}' does not exist or is not active",
            details or {"source": "bot_profile", "operation": "lookup", "bot_scope": bot_scope},
        )


class StoreUnavailableError(ApplicationError):
    """The document store could not serve a primary read or write."""

    code = ErrorCode.STORE_UNAVAILABLE
    level = ErrorLevel.CRITICAL


class ConcurrentUpdateError(ApplicationError):
    """Optimistic version check failed while writing a customer memory."""

    code = ErrorCode.STORE_CONFLICT
    level = ErrorLevel.WARNING
