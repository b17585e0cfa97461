"""Embedding provider: neural primary, hashing fallback, prefix-keyed cache."""

from dataclasses import dataclass
from enum import Enum

from bot_recall.core.base import ApplicationError
from bot_recall.core.cache import EMBEDDING_NAMESPACE, CacheService
from bot_recall.core.logging import get_logger
from bot_recall.domain.services import Embedder
from bot_recall.infrastructure.embeddings.hashing import HashingEmbeddingService

logger = get_logger(__name__)


class EmbeddingMode(str, Enum):
    NEURAL = "neural"
    HASHING = "hashing"


@dataclass(frozen=True)
class EmbeddingResult:
    vector: list[float]
    model_name: str
    # True when a neural-mode call was answered by the hashing fallback
    degraded: bool = False


class EmbeddingProvider:
    """Turns text into vectors for the whole process.

    The mode is fixed at construction. In neural mode a failing call is
    answered with the hashing vector for that call only, and that vector is
    not cached so the next call tries the neural model again.
    """

    def __init__(
        self,
        cache: CacheService,
        primary: Embedder | None = None,
        fallback: HashingEmbeddingService | None = None,
        cache_prefix_chars: int = 200,
    ):
        self.cache = cache
        self.primary = primary
        self.fallback = fallback or HashingEmbeddingService()
        self.cache_prefix_chars = cache_prefix_chars
        self.mode = EmbeddingMode.NEURAL if primary is not None else EmbeddingMode.HASHING
        logger.info(f"Embedding provider running in {self.mode.value} mode", model=self.model_name)

    @property
    def model_name(self) -> str:
        if self.mode == EmbeddingMode.NEURAL and self.primary is not None:
            return self.primary.model_name
        return self.fallback.model_name

    @property
    def dimensions(self) -> int:
        if self.mode == EmbeddingMode.NEURAL and self.primary is not None:
            return self.primary.get_model_dimensions()
        return self.fallback.get_model_dimensions()

    @property
    def is_neural(self) -> bool:
        return self.mode == EmbeddingMode.NEURAL

    def _cache_key(self, text: str) -> tuple[str, str]:
        return (self.model_name, text[: self.cache_prefix_chars])

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_tagged(text)).vector

    async def embed_tagged(self, text: str) -> EmbeddingResult:
        """Embed ``text`` and report which model actually produced the vector."""
        key = self._cache_key(text)
        cached = self.cache.get(EMBEDDING_NAMESPACE, key)
        if cached is not None:
            return EmbeddingResult(vector=cached, model_name=self.model_name)

        if self.primary is None:
            vector = await self.fallback.embed(text)
            self.cache.set(EMBEDDING_NAMESPACE, key, vector)
            return EmbeddingResult(vector=vector, model_name=self.fallback.model_name)

        try:
            vector = await self.primary.embed(text)
        except ApplicationError as e:
            logger.warning(
                f"Neural embedding failed, answering with hashing vector: {e.message}",
                error_code=e.code.value,
            )
            vector = await self.fallback.embed(text)
            return EmbeddingResult(vector=vector, model_name=self.fallback.model_name, degraded=True)

        self.cache.set(EMBEDDING_NAMESPACE, key, vector)
        return EmbeddingResult(vector=vector, model_name=self.primary.model_name)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts one at a time so each benefits from the cache and the fallback."""
        return [await self.embed(text) for text in texts]
