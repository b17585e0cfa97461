"""Voyage AI embedding service."""

from typing import Any, cast

import voyageai

from bot_recall.core.base import ApplicationError, ErrorLevel, ServiceErrorDetails
from bot_recall.core.circuit_breaker import TRANSIENT_ERRORS, CircuitBreaker, RetryWithCircuitBreaker
from bot_recall.core.config import settings
from bot_recall.core.decorators import with_error_handling
from bot_recall.core.errors import (
    AuthenticationError,
    EmbeddingError,
    ProcessingError,
    RateLimitError,
    ServiceError,
    TimeoutError,
)
from bot_recall.core.logging import get_logger
from bot_recall.domain.similarity import l2_normalize

logger = get_logger(__name__)

MODEL_DIMENSIONS = {
    "voyage-3-large": 1024,
    "voyage-3": 1024,
    "voyage-3-lite": 512,
    "voyage-multilingual-2": 1024,
    "voyage-large-2": 1536,
}


# (status code, error type, message) keyed by markers found in the client exception
_ERROR_MARKERS: list[tuple[tuple[str, ...], int, type[ApplicationError], str]] = [
    (("ratelimit", "rate limit", "429"), 429, RateLimitError, "Voyage rate limit exceeded"),
    (("timeout", "timed out"), 408, TimeoutError, "Voyage request timed out"),
    (("auth", "api key", "401"), 401, AuthenticationError, "Voyage rejected the API key"),
    (("connection", "unavailable", "server", "502", "503"), 503, ServiceError, "Voyage is unavailable"),
]


def _details(operation: str, status_code: int | None = None) -> ServiceErrorDetails:
    return ServiceErrorDetails(
        source="VoyageEmbeddingService",
        operation=operation,
        service_name="Voyage AI",
        endpoint="/embeddings",
        status_code=status_code,
    )


def classify_voyage_error(error: Exception, model: str, batch_size: int) -> ApplicationError:
    """Translate a voyageai client exception into the package's error types."""
    haystack = f"{type(error).__name__} {error}".lower()
    for markers, status_code, error_type, message in _ERROR_MARKERS:
        if any(marker in haystack for marker in markers):
            return error_type(message=f"{message}: {error}", details=_details("embed_batch", status_code))
    return EmbeddingError(
        message=f"Voyage embedding failed: {error}",
        details={
            "source": "VoyageEmbeddingService",
            "operation": "embed_batch",
            "batch_size": batch_size,
            "model": model,
        },
    )


class VoyageEmbeddingService:
    """Neural embeddings from Voyage AI.

    Input is truncated to ``max_input_chars`` before encoding and every vector
    is L2-normalised. Transient failures are retried behind a circuit breaker.
    """

    @with_error_handling(error_level=ErrorLevel.WARNING)
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_input_chars: int | None = None,
        client: Any | None = None,
    ) -> None:
        api_key = settings.voyage_api_key if api_key is None else api_key
        if client is None and not api_key:
            raise AuthenticationError(
                message="VOYAGE_API_KEY is not set",
                details=_details("initialization"),
            )

        self.model = model or settings.voyage_model
        self.max_input_chars = max_input_chars or settings.embedding_max_input_chars
        # voyageai does not export a public client type
        self.client: Any = client or voyageai.AsyncClient(api_key=api_key)
        self._retry_handler = RetryWithCircuitBreaker(
            CircuitBreaker(
                "voyage_api",
                failure_threshold=3,
                recovery_timeout=30.0,
                expected_exception_types=TRANSIENT_ERRORS,
            ),
            max_retries=3,
            max_delay=30.0,
        )

    @property
    def model_name(self) -> str:
        return self.model

    def get_model_dimensions(self) -> int:
        return MODEL_DIMENSIONS.get(self.model, 1024)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self.client.embed(texts=texts, model=self.model)
        except Exception as e:
            raise classify_voyage_error(e, self.model, len(texts)) from e

        vectors = getattr(response, "embeddings", None) or []
        if len(vectors) != len(texts):
            raise EmbeddingError(
                message=f"Voyage returned {len(vectors)} embeddings for {len(texts)} texts",
                details=_details("embed_batch", status_code=200),
            )
        return [cast("list[float]", vector) for vector in vectors]

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in one request; blank input is rejected with ProcessingError."""
        if not texts:
            return []
        if any(not text.strip() for text in texts):
            raise ProcessingError(
                message="Cannot embed empty text",
                details={"source": "VoyageEmbeddingService", "operation": "embed_batch", "batch_size": len(texts)},
            )

        logger.debug("Embedding batch with Voyage", model=self.model, batch_size=len(texts))
        vectors = await self._retry_handler.call_async(
            self._request, [text[: self.max_input_chars] for text in texts]
        )
        return [l2_normalize(vector) for vector in vectors]
