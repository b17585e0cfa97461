"""Hashing-trick embeddings used when no neural model is available."""

import re

from bot_recall.domain.similarity import l2_normalize

# Anything that is not a letter, a digit or whitespace becomes a separator
_NON_WORD = re.compile(r"[^\w\s]|_")

_MIN_TOKEN_LENGTH = 2
_MAX_TOKEN_LENGTH = 19


def string_hash(token: str) -> int:
    """Stable signed 32-bit hash over UTF-16 code units (``h * 31 + unit``)."""
    encoded = token.encode("utf-16-le")
    h = 0
    for index in range(0, len(encoded), 2):
        unit = encoded[index] | (encoded[index + 1] << 8)
        h = ((h << 5) - h) + unit
        h = (h + 2**31) % 2**32 - 2**31
    return h


def tokenize(text: str) -> list[str]:
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [token for token in cleaned.split() if _MIN_TOKEN_LENGTH <= len(token) <= _MAX_TOKEN_LENGTH]


class HashingEmbeddingService:
    """Bag-of-tokens vector: each token increments bucket ``|hash| % dimensions``."""

    def __init__(self, dimensions: int = 300):
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    @property
    def model_name(self) -> str:
        return f"hashing-{self.dimensions}"

    def get_model_dimensions(self) -> int:
        return self.dimensions

    def embed_sync(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in tokenize(text):
            vector[abs(string_hash(token)) % self.dimensions] += 1.0
        return l2_normalize(vector)

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_sync(text) for text in texts]
