from .base import ApplicationError, ErrorCode, ErrorDetails, ErrorLevel, ServiceErrorDetails
from .cache import CacheService
from .circuit_breaker import CircuitBreaker, CircuitState, RetryWithCircuitBreaker
from .errors import (
    BotScopeNotFoundError,
    ConcurrentUpdateError,
    EmbeddingError,
    MalformedOutputError,
    ServiceError,
    StoreUnavailableError,
)
from .locks import KeyedLock
