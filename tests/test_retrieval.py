"""Tests for the retrieval cascade."""

import math

import pytest
from conftest import FakeEmbedder, FakeVectorIndex, make_fragment

from bot_recall.core.cache import RETRIEVAL_NAMESPACE
from bot_recall.core.errors import BotScopeNotFoundError
from bot_recall.domain.models import BotProfile, BotStatus, RagSettings
from bot_recall.infrastructure.embeddings import EmbeddingProvider
from bot_recall.services.bot_profiles import BotProfileService
from bot_recall.services.retrieval import (
    KeywordSearchStrategy,
    PrecomputedCosineStrategy,
    RetrievalOrchestrator,
    RetrievalRequest,
    TierOutcome,
    VectorIndexStrategy,
    default_strategies,
)

QUERY = "how long does delivery take"


def unit(similarity: float) -> list[float]:
    """A vector whose cosine with [1, 0, 0] is ``similarity``."""
    return [similarity, math.sqrt(1 - similarity**2), 0.0]


@pytest.fixture
def neural(cache):
    return EmbeddingProvider(cache=cache, primary=FakeEmbedder({QUERY: [1.0, 0.0, 0.0]}))


def orchestrator(embeddings, strategies, cache, **kwargs):
    return RetrievalOrchestrator(embeddings, strategies, cache, **kwargs)


class TestCascadeOrder:
    async def test_failing_vector_index_falls_through_to_precomputed(self, neural, cache, store):
        store.fragments["a"] = make_fragment("a", "Delivery takes two days.", embedding=unit(0.9))
        index = FakeVectorIndex(store, error=RuntimeError("index offline"))
        service = orchestrator(neural, default_strategies(store, index), cache)

        request = RetrievalRequest(bot_scope="shop", query=QUERY, limit=5, similarity_threshold=0.5,
                                   query_vector=[1.0, 0.0, 0.0])
        results = await service.run_cascade(request)

        assert [result.outcome for result in results] == [TierOutcome.FAILURE, TierOutcome.SUCCESS]
        assert "index offline" in results[0].reason
        assert results[1].tier == "precomputed_cosine"

    async def test_empty_precomputed_falls_through_to_keyword(self, neural, cache, store):
        store.fragments["a"] = make_fragment("a", "delivery takes two days")
        service = orchestrator(neural, default_strategies(store, None), cache)

        candidates = await service.retrieve("shop", QUERY, limit=3, similarity_threshold=0.5)

        assert [candidate.chunk_id for candidate in candidates] == ["a"]
        assert candidates[0].scores.keyword > 0

    async def test_all_tiers_empty_returns_nothing(self, neural, cache, store):
        service = orchestrator(neural, default_strategies(store, FakeVectorIndex(store)), cache)

        assert await service.retrieve("shop", QUERY) == []
        assert await service.retrieve_context("shop", QUERY) == []

    async def test_raising_strategy_never_escapes(self, neural, cache):
        class Broken:
            name = "broken"
            semantic = False
            timeout_seconds = None

            async def search(self, request):
                raise ValueError("boom")

        service = orchestrator(neural, [Broken()], cache)

        assert await service.retrieve("shop", QUERY) == []


class TestThresholds:
    async def test_only_fragments_above_threshold_are_returned(self, neural, cache, store):
        store.fragments["near"] = make_fragment("near", "Delivery takes two days.", embedding=unit(0.9))
        store.fragments["far"] = make_fragment("far", "We sell umbrellas.", embedding=unit(0.2))
        service = orchestrator(neural, default_strategies(store, FakeVectorIndex(store)), cache)

        candidates = await service.retrieve("shop", QUERY, limit=5, similarity_threshold=0.3)

        assert [candidate.chunk_id for candidate in candidates] == ["near"]
        assert candidates[0].scores.semantic == pytest.approx(0.9)

    async def test_empty_tier_is_retried_at_threshold_floor(self, neural, cache, store):
        store.fragments["mid"] = make_fragment("mid", "Delivery is quick.", embedding=unit(0.5))
        service = orchestrator(neural, [PrecomputedCosineStrategy(store)], cache)

        candidates = await service.retrieve("shop", QUERY, limit=5, similarity_threshold=0.65)

        assert [candidate.chunk_id for candidate in candidates] == ["mid"]

    async def test_below_floor_stays_empty(self, neural, cache, store):
        store.fragments["low"] = make_fragment("low", "Umbrellas.", embedding=unit(0.1))
        service = orchestrator(neural, [PrecomputedCosineStrategy(store)], cache)

        assert await service.retrieve("shop", QUERY, similarity_threshold=0.65) == []

    async def test_vectors_from_another_model_are_ignored(self, neural, cache, store):
        stale = make_fragment("stale", "Delivery takes two days.", embedding=[1.0, 0.0])
        store.fragments["stale"] = stale.model_copy(update={"embedding_model": "hashing-300"})
        store.fragments["current"] = make_fragment("current", "Delivery is quick.", embedding=unit(0.8))
        service = orchestrator(neural, [PrecomputedCosineStrategy(store)], cache)

        candidates = await service.retrieve("shop", QUERY, limit=5, similarity_threshold=0.5)

        assert [candidate.chunk_id for candidate in candidates] == ["current"]

    async def test_only_foreign_model_vectors_leave_the_tier_empty(self, neural, cache, store):
        stale = make_fragment("stale", "Delivery takes two days.", embedding=[1.0, 0.0])
        store.fragments["stale"] = stale.model_copy(update={"embedding_model": "hashing-300"})
        service = orchestrator(neural, [PrecomputedCosineStrategy(store)], cache)

        assert await service.retrieve("shop", QUERY, limit=5, similarity_threshold=0.5) == []


class TestHashingMode:
    async def test_semantic_tiers_are_skipped(self, hashing_provider, cache, store):
        store.fragments["a"] = make_fragment("a", "delivery takes two days", embedding=unit(0.9))
        index = FakeVectorIndex(store)
        service = orchestrator(hashing_provider, default_strategies(store, index), cache)

        request = RetrievalRequest(bot_scope="shop", query=QUERY, limit=5, similarity_threshold=0.5)
        results = await service.run_cascade(request)

        assert [result.outcome for result in results] == [
            TierOutcome.FAILURE,
            TierOutcome.FAILURE,
            TierOutcome.SUCCESS,
        ]
        assert index.calls == 0

    async def test_degraded_query_vector_skips_semantic_search(self, cache, store):
        from bot_recall.core.errors import ServiceError

        failing = EmbeddingProvider(cache=cache, primary=FakeEmbedder({}, error=ServiceError("down")))
        store.fragments["a"] = make_fragment("a", "delivery takes two days", embedding=unit(0.9))
        index = FakeVectorIndex(store)
        service = orchestrator(failing, default_strategies(store, index), cache)

        candidates = await service.retrieve("shop", QUERY)

        assert index.calls == 0
        assert [candidate.chunk_id for candidate in candidates] == ["a"]


class TestCaching:
    async def test_successful_results_are_cached(self, neural, cache, store):
        store.fragments["a"] = make_fragment("a", "Delivery takes two days.", embedding=unit(0.9))
        index = FakeVectorIndex(store)
        service = orchestrator(neural, [VectorIndexStrategy(index)], cache)

        first = await service.retrieve("shop", QUERY, similarity_threshold=0.5)
        second = await service.retrieve("shop", QUERY, similarity_threshold=0.5)

        assert first == second
        assert index.calls == 1
        assert cache.size(RETRIEVAL_NAMESPACE) == 1

    async def test_empty_results_are_not_cached(self, neural, cache, store):
        service = orchestrator(neural, [KeywordSearchStrategy(store)], cache)

        await service.retrieve("shop", QUERY)

        assert cache.size(RETRIEVAL_NAMESPACE) == 0


class TestProfiles:
    async def test_profile_overrides_defaults(self, neural, cache, store):
        store.profiles["shop"] = BotProfile(bot_scope="shop", rag=RagSettings(max_chunks=1, similarity_threshold=0.1))
        store.fragments["a"] = make_fragment("a", "Delivery takes two days.", embedding=unit(0.9))
        store.fragments["b"] = make_fragment("b", "Umbrellas are on sale.", embedding=unit(0.15))
        profiles = BotProfileService(store, cache)
        service = orchestrator(neural, [PrecomputedCosineStrategy(store)], cache, profiles=profiles)

        items = await service.retrieve_context("shop", QUERY)

        assert len(items) == 1
        assert items[0].content == "Delivery takes two days."

    async def test_unknown_scope_is_fatal_when_profiles_are_required(self, neural, cache, store):
        profiles = BotProfileService(store, cache, require_profile=True)
        service = orchestrator(neural, [KeywordSearchStrategy(store)], cache, profiles=profiles)

        with pytest.raises(BotScopeNotFoundError):
            await service.retrieve_context("missing", QUERY)

    async def test_inactive_profile_falls_back_to_defaults(self, cache, store):
        store.profiles["shop"] = BotProfile(bot_scope="shop", status=BotStatus.INACTIVE)
        profiles = BotProfileService(store, cache)

        assert await profiles.get("shop") is None
