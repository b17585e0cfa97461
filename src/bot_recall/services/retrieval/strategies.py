"""Retrieval tiers, tried in order by the orchestrator.

Each strategy answers with a tagged ``TierResult`` instead of raising, so the
fallback order can be tested with plain fakes.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from bot_recall.core.logging import get_logger
from bot_recall.domain.models import RetrievalCandidate
from bot_recall.domain.services import DocumentStore, VectorIndex
from bot_recall.domain.similarity import cosine

logger = get_logger(__name__)


class TierOutcome(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILURE = "failure"


@dataclass(frozen=True)
class TierResult:
    tier: str
    outcome: TierOutcome
    candidates: list[RetrievalCandidate] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def success(cls, tier: str, candidates: list[RetrievalCandidate]) -> "TierResult":
        if not candidates:
            return cls.empty(tier)
        return cls(tier=tier, outcome=TierOutcome.SUCCESS, candidates=candidates)

    @classmethod
    def empty(cls, tier: str, reason: str | None = None) -> "TierResult":
        return cls(tier=tier, outcome=TierOutcome.EMPTY, reason=reason)

    @classmethod
    def failure(cls, tier: str, reason: str) -> "TierResult":
        return cls(tier=tier, outcome=TierOutcome.FAILURE, reason=reason)


@dataclass(frozen=True)
class RetrievalRequest:
    bot_scope: str
    query: str
    limit: int
    similarity_threshold: float
    # None when no neural query vector is available
    query_vector: list[float] | None = None
    # Model that produced query_vector; stored vectors from other models are not comparable
    embedding_model: str | None = None
    candidate_multiplier: int = 10
    keyword_multiplier: int = 5

    @property
    def candidate_count(self) -> int:
        return self.candidate_multiplier * self.limit

    def with_threshold(self, threshold: float) -> "RetrievalRequest":
        return replace(self, similarity_threshold=threshold)


class RetrievalStrategy(Protocol):
    name: str
    # Semantic tiers need a neural query vector and honour the similarity threshold
    semantic: bool
    timeout_seconds: float | None

    async def search(self, request: RetrievalRequest) -> TierResult: ...


def above_threshold(candidates: list[RetrievalCandidate], threshold: float) -> list[RetrievalCandidate]:
    return [candidate for candidate in candidates if candidate.scores.semantic >= threshold]


class VectorIndexStrategy:
    """Tier 1: native vector index search."""

    name = "vector_index"
    semantic = True

    def __init__(self, index: VectorIndex | None, timeout_seconds: float | None = 5.0):
        self.index = index
        self.timeout_seconds = timeout_seconds

    async def search(self, request: RetrievalRequest) -> TierResult:
        if self.index is None:
            return TierResult.failure(self.name, "no vector index configured")
        if request.query_vector is None:
            return TierResult.failure(self.name, "query embedding unavailable")

        candidates = await self.index.nearest_neighbors(
            request.bot_scope,
            request.query_vector,
            num_candidates=request.candidate_count,
            limit=request.candidate_count,
        )
        return TierResult.success(self.name, above_threshold(candidates, request.similarity_threshold))


class PrecomputedCosineStrategy:
    """Tier 2: cosine against the bot's stored embeddings from the query's model."""

    name = "precomputed_cosine"
    semantic = True
    timeout_seconds: float | None = None

    def __init__(self, store: DocumentStore | None):
        self.store = store

    async def search(self, request: RetrievalRequest) -> TierResult:
        if self.store is None:
            return TierResult.failure(self.name, "no document store configured")
        if request.query_vector is None:
            return TierResult.failure(self.name, "query embedding unavailable")

        fragments = await self.store.find_fragments_with_embedding(request.bot_scope, request.embedding_model)
        if not fragments:
            logger.info("No precomputed embeddings", bot_scope=request.bot_scope)
            return TierResult.empty(self.name, "no precomputed embeddings")

        scored = [
            RetrievalCandidate.from_fragment(fragment, semantic=cosine(request.query_vector, fragment.embedding))
            for fragment in fragments
        ]
        scored.sort(key=lambda candidate: candidate.score, reverse=True)
        top = scored[: request.candidate_count]
        return TierResult.success(self.name, above_threshold(top, request.similarity_threshold))


class KeywordSearchStrategy:
    """Tier 3: full-text search; its relevance scores are not threshold-filtered."""

    name = "keyword_search"
    semantic = False
    timeout_seconds: float | None = None

    def __init__(self, store: DocumentStore | None):
        self.store = store

    async def search(self, request: RetrievalRequest) -> TierResult:
        if self.store is None:
            return TierResult.failure(self.name, "no document store configured")
        if not request.query.strip():
            return TierResult.empty(self.name, "empty query")

        candidates = await self.store.text_search(
            request.bot_scope, request.query, request.keyword_multiplier * request.limit
        )
        return TierResult.success(self.name, candidates)
