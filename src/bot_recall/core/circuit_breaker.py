"""Circuit breaker and retry policy for language-model and embedding calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from bot_recall.core.base import ServiceErrorDetails
from bot_recall.core.errors import RateLimitError, ServiceError, TimeoutError
from bot_recall.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (RateLimitError, TimeoutError, ServiceError)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


def _open_circuit_error(name: str, operation: str, last_exception: Exception | None) -> ServiceError:
    suffix = f" (last error: {last_exception})" if last_exception else ""
    return ServiceError(
        message=f"Circuit breaker '{name}' is open{suffix}",
        details=ServiceErrorDetails(
            source="circuit_breaker",
            operation=operation,
            service_name=name,
            status_code=503,
        ),
    )


class CircuitBreaker(Generic[T]):
    """Stops calling a collaborator after repeated failures.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls are rejected without reaching the collaborator. Once
    ``recovery_timeout`` seconds have passed it turns half-open: the next
    failure reopens it, ``success_threshold`` successes close it again.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception_types: tuple[type[Exception], ...] = (Exception,),
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception_types = expected_exception_types
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._trial_successes = 0
        self._opened_at = 0.0
        self.last_exception: Exception | None = None

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self._clock() - self._opened_at >= self.recovery_timeout:
            logger.info(f"Circuit breaker '{self.name}' is half-open, allowing a trial call")
            self._state = CircuitState.HALF_OPEN
            self._trial_successes = 0
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()

    def _on_success(self) -> None:
        if self._state is not CircuitState.HALF_OPEN:
            self._failures = 0
            return
        self._trial_successes += 1
        if self._trial_successes >= self.success_threshold:
            logger.info(f"Circuit breaker '{self.name}' closed again")
            self._state = CircuitState.CLOSED
            self._failures = 0
            self.last_exception = None

    def _on_failure(self, exception: Exception) -> None:
        self.last_exception = exception
        if self._state is CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker '{self.name}' trial call failed, reopening")
            self._trip()
            return
        self._failures += 1
        if self._failures >= self.failure_threshold:
            logger.error(
                f"Circuit breaker '{self.name}' opened",
                failures=self._failures,
                last_exception=str(exception),
            )
            self._trip()

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` unless the circuit is open; open circuits raise ServiceError."""
        if self.is_open:
            raise _open_circuit_error(self.name, "call_async", self.last_exception)
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception_types as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result


class RetryWithCircuitBreaker:
    """Exponential backoff over a circuit breaker.

    Only ``retryable_exceptions`` are retried. Everything else, malformed
    collaborator output in particular, propagates from the first attempt.
    """

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0,
        retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.circuit_breaker = circuit_breaker
        # max_retries counts attempts, so at least one call is made
        self.max_retries = max(1, max_retries)
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.retryable_exceptions = retryable_exceptions
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.max_delay, self.initial_delay * self.backoff_factor ** (attempt - 1))

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        attempt = 1
        while True:
            try:
                return await self.circuit_breaker.call_async(func, *args, **kwargs)
            except self.retryable_exceptions as e:
                if self.circuit_breaker.is_open or attempt >= self.max_retries:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Retrying '{self.circuit_breaker.name}' after {type(e).__name__}",
                    attempt=attempt,
                    delay=delay,
                )
                await self._sleep(delay)
                attempt += 1
