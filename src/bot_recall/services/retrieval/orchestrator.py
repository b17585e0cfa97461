"""Retrieval cascade over the configured strategies."""

import asyncio

from bot_recall.core.cache import RETRIEVAL_NAMESPACE, CacheService
from bot_recall.core.config import RetrievalConfig, settings
from bot_recall.core.logging import bound_log_context, get_logger
from bot_recall.domain.models import MergedKnowledgeItem, RetrievalCandidate
from bot_recall.domain.services import DocumentStore, VectorIndex
from bot_recall.infrastructure.embeddings.provider import EmbeddingProvider
from bot_recall.services.bot_profiles import BotProfileService
from bot_recall.services.clustering.merge_service import KnowledgeMerger
from bot_recall.services.retrieval.strategies import (
    KeywordSearchStrategy,
    PrecomputedCosineStrategy,
    RetrievalRequest,
    RetrievalStrategy,
    TierOutcome,
    TierResult,
    VectorIndexStrategy,
)

logger = get_logger(__name__)


def default_strategies(
    store: DocumentStore | None,
    vector_index: VectorIndex | None,
    config: RetrievalConfig | None = None,
) -> list[RetrievalStrategy]:
    config = config or settings.retrieval
    return [
        VectorIndexStrategy(vector_index, timeout_seconds=config.vector_timeout_seconds),
        PrecomputedCosineStrategy(store),
        KeywordSearchStrategy(store),
    ]


class RetrievalOrchestrator:
    """Finds the fragments relevant to a query for one bot scope.

    Strategies are tried in order and the first ``SUCCESS`` wins. Semantic
    strategies are skipped in hashing mode, and retried once at the threshold
    floor when nothing clears the requested threshold. A strategy that raises
    or times out counts as ``FAILURE``; when every strategy fails or is empty
    the answer is ``[]``.
    """

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        strategies: list[RetrievalStrategy],
        cache: CacheService,
        merger: KnowledgeMerger | None = None,
        profiles: BotProfileService | None = None,
        config: RetrievalConfig | None = None,
    ):
        self.embeddings = embeddings
        self.strategies = strategies
        self.cache = cache
        self.config = config or settings.retrieval
        self.merger = merger or KnowledgeMerger(self.config)
        self.profiles = profiles

    async def _run(self, strategy: RetrievalStrategy, request: RetrievalRequest) -> TierResult:
        try:
            if strategy.timeout_seconds:
                return await asyncio.wait_for(strategy.search(request), timeout=strategy.timeout_seconds)
            return await strategy.search(request)
        except asyncio.TimeoutError:
            return TierResult.failure(strategy.name, f"timed out after {strategy.timeout_seconds}s")
        except Exception as e:
            return TierResult.failure(strategy.name, f"{type(e).__name__}: {e!s}")

    async def _query_vector(self, query: str) -> list[float] | None:
        if not self.embeddings.is_neural:
            return None
        result = await self.embeddings.embed_tagged(query)
        # A hashing vector cannot be compared with stored neural embeddings
        return None if result.degraded else result.vector

    async def run_cascade(self, request: RetrievalRequest) -> list[TierResult]:
        """Run strategies until one succeeds; returns every tier's result in order."""
        results: list[TierResult] = []
        for strategy in self.strategies:
            if strategy.semantic and not self.embeddings.is_neural:
                results.append(TierResult.failure(strategy.name, "skipped in hashing mode"))
                continue

            result = await self._run(strategy, request)
            if (
                result.outcome == TierOutcome.EMPTY
                and strategy.semantic
                and request.similarity_threshold > self.config.threshold_floor
            ):
                logger.info(
                    f"Retrying {strategy.name} at threshold floor",
                    threshold=request.similarity_threshold,
                    floor=self.config.threshold_floor,
                )
                result = await self._run(strategy, request.with_threshold(self.config.threshold_floor))

            results.append(result)
            if result.outcome == TierOutcome.SUCCESS:
                logger.debug(
                    f"{strategy.name} returned {len(result.candidates)} candidates",
                    tier=strategy.name,
                    outcome=result.outcome.value,
                )
                break

            log = logger.warning if result.outcome == TierOutcome.FAILURE else logger.info
            log(
                f"Retrieval tier {strategy.name} demoted: {result.reason or result.outcome.value}",
                tier=strategy.name,
                outcome=result.outcome.value,
            )
        return results

    async def retrieve(
        self,
        bot_scope: str,
        query: str,
        limit: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[RetrievalCandidate]:
        limit = limit or self.config.default_limit
        threshold = self.config.similarity_threshold if similarity_threshold is None else similarity_threshold

        cache_key = (self.embeddings.model_name, bot_scope, query, limit, threshold)
        cached = self.cache.get(RETRIEVAL_NAMESPACE, cache_key)
        if cached is not None:
            return list(cached)

        with bound_log_context(bot_scope=bot_scope):
            request = RetrievalRequest(
                bot_scope=bot_scope,
                query=query,
                limit=limit,
                similarity_threshold=threshold,
                query_vector=await self._query_vector(query),
                embedding_model=self.embeddings.model_name,
                candidate_multiplier=self.config.candidate_multiplier,
                keyword_multiplier=self.config.keyword_multiplier,
            )
            results = await self.run_cascade(request)

        winner = next((result for result in results if result.outcome == TierOutcome.SUCCESS), None)
        if winner is None:
            logger.info("No retrieval tier produced candidates", bot_scope=bot_scope)
            return []

        self.cache.set(RETRIEVAL_NAMESPACE, cache_key, list(winner.candidates))
        return list(winner.candidates)

    async def retrieve_context(
        self,
        bot_scope: str,
        query: str,
        limit: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[MergedKnowledgeItem]:
        """Ranked, merged knowledge for ``query``.

        Defaults come from the bot profile when one exists, then from settings.

        Raises:
            BotScopeNotFoundError: If profiles are required and the scope is unknown
        """
        profile = await self.profiles.get(bot_scope) if self.profiles else None
        if profile is not None:
            limit = limit or profile.rag.max_chunks
            if similarity_threshold is None:
                similarity_threshold = profile.rag.similarity_threshold

        limit = limit or self.config.default_limit
        if similarity_threshold is None:
            similarity_threshold = self.config.similarity_threshold

        candidates = await self.retrieve(bot_scope, query, limit, similarity_threshold)
        return self.merger.merge(candidates, limit, similarity_threshold)
