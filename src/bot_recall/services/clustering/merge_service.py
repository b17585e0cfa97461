"""Collapses redundant retrieval candidates into knowledge items."""

import math

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from bot_recall.core.config import RetrievalConfig, settings
from bot_recall.domain.models import MergedKnowledgeItem, Provenance, RetrievalCandidate
from bot_recall.domain.models.utils import unique_ordered
from bot_recall.domain.similarity import pad_vectors


def _combine(group: list[RetrievalCandidate], entity_id: str | None = None) -> MergedKnowledgeItem:
    contents = unique_ordered(candidate.content for candidate in group)
    titles = [candidate.title for candidate in group if candidate.title]
    return MergedKnowledgeItem(
        entity_id=entity_id,
        title=max(titles, key=len) if titles else None,
        content="\n\n".join(contents),
        keywords=unique_ordered(keyword for candidate in group for keyword in candidate.keywords),
        score=sum(candidate.score for candidate in group) / len(group),
        provenance=[Provenance(chunk_id=candidate.chunk_id, source_meta=candidate.source_meta) for candidate in group],
    )


def similarity_matrix(vectors: list[list[float]]) -> np.ndarray:
    """Pairwise cosine over zero-padded vectors, clamped to [0, 1]."""
    matrix = np.nan_to_num(pad_vectors(vectors), nan=0.0, posinf=0.0, neginf=0.0)
    similarities = np.nan_to_num(cosine_similarity(matrix), nan=0.0)
    return np.clip(similarities, 0.0, 1.0)


def keywords_overlap(a: RetrievalCandidate, b: RetrievalCandidate) -> bool:
    shared = len(set(a.keywords) & set(b.keywords))
    return shared >= max(1, math.floor(min(len(a.keywords), len(b.keywords)) / 2))


def contents_overlap(a: RetrievalCandidate, b: RetrievalCandidate) -> bool:
    if not a.content or not b.content:
        return False
    return a.content in b.content or b.content in a.content


class KnowledgeMerger:
    """Entity grouping followed by clustering of entity-less candidates.

    The same logical fact is never returned as two items, and the final score
    of an item is the mean of the candidates it absorbed.
    """

    def __init__(self, config: RetrievalConfig | None = None):
        self.config = config or settings.retrieval

    def group_by_entity(self, candidates: list[RetrievalCandidate]) -> list[MergedKnowledgeItem]:
        groups: dict[str, list[RetrievalCandidate]] = {}
        for candidate in candidates:
            groups.setdefault(candidate.entity_id.strip().lower(), []).append(candidate)  # type: ignore[union-attr]
        return [_combine(group, entity_id=group[0].entity_id) for group in groups.values()]

    def cluster_by_embedding(
        self, candidates: list[RetrievalCandidate], similarity_threshold: float
    ) -> list[MergedKnowledgeItem]:
        """Greedy agglomerative clustering around seeds, in candidate order."""
        if not candidates:
            return []

        cutoff = max(self.config.cluster_similarity_floor, similarity_threshold)
        similarities = similarity_matrix([candidate.embedding or [] for candidate in candidates])

        assigned: set[int] = set()
        clusters = []
        for seed in range(len(candidates)):
            if seed in assigned:
                continue
            assigned.add(seed)
            members = [seed]
            for other in range(seed + 1, len(candidates)):
                if other not in assigned and similarities[seed, other] >= cutoff:
                    assigned.add(other)
                    members.append(other)
            clusters.append(_combine([candidates[index] for index in members]))
        return clusters

    def cluster_by_overlap(self, candidates: list[RetrievalCandidate]) -> list[MergedKnowledgeItem]:
        """Merge on content containment or sufficient keyword overlap with the seed."""
        assigned: set[int] = set()
        clusters = []
        for seed_index, seed in enumerate(candidates):
            if seed_index in assigned:
                continue
            assigned.add(seed_index)
            group = [seed]
            for other_index in range(seed_index + 1, len(candidates)):
                if other_index in assigned:
                    continue
                other = candidates[other_index]
                if contents_overlap(seed, other) or keywords_overlap(seed, other):
                    assigned.add(other_index)
                    group.append(other)
            clusters.append(_combine(group))
        return clusters

    def merge(
        self,
        candidates: list[RetrievalCandidate],
        limit: int,
        similarity_threshold: float,
    ) -> list[MergedKnowledgeItem]:
        if not candidates or limit <= 0:
            return []

        with_entity = [c for c in candidates if c.entity_id and c.entity_id.strip()]
        without_entity = [c for c in candidates if not (c.entity_id and c.entity_id.strip())]
        embedded = [c for c in without_entity if c.embedding]
        plain = [c for c in without_entity if not c.embedding]

        items = (
            self.group_by_entity(with_entity)
            + self.cluster_by_embedding(embedded, similarity_threshold)
            + self.cluster_by_overlap(plain)
        )
        items.sort(key=lambda item: item.score, reverse=True)
        return items[:limit]
