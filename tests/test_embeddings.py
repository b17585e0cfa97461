"""Tests for the hashing embedder and the embedding provider."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeEmbedder

from bot_recall.core.cache import EMBEDDING_NAMESPACE
from bot_recall.core.errors import AuthenticationError, RateLimitError, ServiceError
from bot_recall.domain.similarity import cosine
from bot_recall.infrastructure.embeddings import (
    EmbeddingProvider,
    HashingEmbeddingService,
    VoyageEmbeddingService,
    create_embedding_provider,
)
from bot_recall.infrastructure.embeddings.hashing import string_hash, tokenize


class TestHashing:
    def test_string_hash_matches_java_style_hash(self):
        # h = h * 31 + code unit, wrapped to signed 32 bits
        assert string_hash("ab") == 97 * 31 + 98
        assert string_hash("") == 0
        assert -(2**31) <= string_hash("a fairly long token to force overflow") < 2**31

    def test_tokenize_drops_short_and_long_tokens(self):
        assert tokenize("A b, giá-cả! x" + " " + "y" * 25) == ["giá", "cả"]

    async def test_vectors_are_normalised_and_deterministic(self):
        service = HashingEmbeddingService(dimensions=32)

        first = await service.embed("delivery takes two days")
        second = await service.embed("delivery takes two days")

        assert len(first) == 32
        assert first == second
        assert sum(value * value for value in first) == pytest.approx(1.0)
        assert service.model_name == "hashing-32"

    async def test_related_texts_are_closer(self):
        service = HashingEmbeddingService(dimensions=300)
        base = await service.embed("fast delivery to your home")
        close = await service.embed("delivery to your home is fast")
        far = await service.embed("umbrellas and raincoats")

        assert cosine(base, close) > cosine(base, far)

    def test_text_without_tokens_gives_zero_vector(self):
        assert HashingEmbeddingService(8).embed_sync("a !") == [0.0] * 8


class TestProvider:
    async def test_neural_vectors_are_cached(self, cache):
        primary = FakeEmbedder({"hello there": [1.0, 0.0, 0.0]})
        provider = EmbeddingProvider(cache=cache, primary=primary)

        assert await provider.embed("hello there") == [1.0, 0.0, 0.0]
        assert await provider.embed("hello there") == [1.0, 0.0, 0.0]
        assert primary.calls == ["hello there"]
        assert provider.is_neural

    async def test_failure_answers_with_uncached_hashing_vector(self, cache):
        primary = FakeEmbedder({}, error=RateLimitError("slow down"))
        provider = EmbeddingProvider(cache=cache, primary=primary, fallback=HashingEmbeddingService(16))

        result = await provider.embed_tagged("hello there")

        assert result.degraded
        assert result.model_name == "hashing-16"
        assert len(result.vector) == 16
        assert cache.size(EMBEDDING_NAMESPACE) == 0
        # Still neural: the next call tries the primary again
        await provider.embed("hello there")
        assert len(primary.calls) == 2

    async def test_cache_key_uses_text_prefix(self, cache):
        primary = FakeEmbedder({})
        provider = EmbeddingProvider(cache=cache, primary=primary, cache_prefix_chars=5)

        await provider.embed("hello world")
        await provider.embed("hello there")

        assert len(primary.calls) == 1

    async def test_hashing_mode(self, hashing_provider):
        result = await hashing_provider.embed_tagged("delivery takes two days")

        assert not hashing_provider.is_neural
        assert not result.degraded
        assert hashing_provider.dimensions == 64

    def test_factory_falls_back_to_hashing_without_key(self, cache):
        provider = create_embedding_provider(cache, api_key="", neural=True)

        assert not provider.is_neural
        assert provider.model_name.startswith("hashing-")


class TestVoyage:
    def test_missing_key_is_an_authentication_error(self):
        with pytest.raises(AuthenticationError):
            VoyageEmbeddingService(api_key="")

    async def test_vectors_are_truncated_and_normalised(self):
        client = MagicMock()
        client.embed = AsyncMock(return_value=MagicMock(embeddings=[[3.0, 4.0]]))
        service = VoyageEmbeddingService(api_key="key", model="voyage-3", max_input_chars=10, client=client)

        vector = await service.embed("a" * 50)

        assert vector == pytest.approx([0.6, 0.8])
        client.embed.assert_awaited_once_with(texts=["a" * 10], model="voyage-3")

    async def test_client_errors_are_mapped(self):
        client = MagicMock()
        client.embed = AsyncMock(side_effect=RuntimeError("503 service unavailable"))
        service = VoyageEmbeddingService(api_key="key", client=client)
        service._retry_handler._sleep = AsyncMock()

        with pytest.raises(ServiceError):
            await service.embed("hello")
