"""Construction of the process-wide embedding provider.

The neural backend is tried once at startup; if it cannot be created (no API
key, client error) the provider runs in hashing mode for the process lifetime.
"""

from __future__ import annotations

from bot_recall.core.base import ApplicationError
from bot_recall.core.cache import CacheService
from bot_recall.core.config import settings
from bot_recall.core.logging import get_logger
from bot_recall.infrastructure.embeddings.hashing import HashingEmbeddingService
from bot_recall.infrastructure.embeddings.provider import EmbeddingProvider
from bot_recall.infrastructure.embeddings.voyage import VoyageEmbeddingService

logger = get_logger(__name__)


class EmbeddingProviderBuilder:
    """Builder for a configured EmbeddingProvider."""

    def __init__(self, cache: CacheService):
        self.cache = cache
        self._api_key: str | None = None
        self._model: str | None = None
        self._neural_enabled = True
        self._dimensions = settings.hashing_dimensions

    def with_api_key(self, api_key: str) -> EmbeddingProviderBuilder:
        self._api_key = api_key
        return self

    def with_model(self, model: str) -> EmbeddingProviderBuilder:
        self._model = model
        return self

    def with_neural(self, enabled: bool = True) -> EmbeddingProviderBuilder:
        self._neural_enabled = enabled
        return self

    def with_hashing_dimensions(self, dimensions: int) -> EmbeddingProviderBuilder:
        self._dimensions = dimensions
        return self

    def _build_primary(self) -> VoyageEmbeddingService | None:
        if not self._neural_enabled:
            return None
        try:
            service = VoyageEmbeddingService(
                api_key=self._api_key if self._api_key is not None else settings.voyage_api_key,
                model=self._model,
            )
        except ApplicationError as e:
            logger.warning(f"Neural embedding model unavailable, using hashing fallback: {e.message}")
            return None

        logger.info(
            f"Embedding service validated: model={service.model_name}, dimensions={service.get_model_dimensions()}"
        )
        return service

    def build(self) -> EmbeddingProvider:
        return EmbeddingProvider(
            cache=self.cache,
            primary=self._build_primary(),
            fallback=HashingEmbeddingService(self._dimensions),
            cache_prefix_chars=settings.embedding_cache_prefix_chars,
        )


def create_embedding_provider(
    cache: CacheService,
    api_key: str | None = None,
    model: str | None = None,
    neural: bool = True,
) -> EmbeddingProvider:
    """Convenience function to create the embedding provider."""
    builder = EmbeddingProviderBuilder(cache).with_neural(neural)
    if api_key:
        builder.with_api_key(api_key)
    if model:
        builder.with_model(model)
    return builder.build()
