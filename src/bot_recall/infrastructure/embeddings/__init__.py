"""Embedding backends and the process-wide provider."""

from .factory import EmbeddingProviderBuilder, create_embedding_provider
from .hashing import HashingEmbeddingService
from .provider import EmbeddingMode, EmbeddingProvider, EmbeddingResult
from .voyage import VoyageEmbeddingService

__all__ = [
    "EmbeddingMode",
    "EmbeddingProvider",
    "EmbeddingProviderBuilder",
    "EmbeddingResult",
    "HashingEmbeddingService",
    "VoyageEmbeddingService",
    "create_embedding_provider",
]
