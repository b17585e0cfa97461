"""Shared fixtures and in-memory collaborators."""

from collections.abc import Callable

import pytest

from bot_recall.core.cache import CacheService
from bot_recall.core.config import ChunkingConfig, MemoryConfig, RetrievalConfig
from bot_recall.core.errors import ConcurrentUpdateError
from bot_recall.domain.models import (
    BotProfile,
    ChatMessage,
    CustomerMemory,
    GenerationOptions,
    KnowledgeFragment,
    RetrievalCandidate,
)
from bot_recall.domain.similarity import cosine
from bot_recall.infrastructure.embeddings import EmbeddingProvider, HashingEmbeddingService


class FakeDocumentStore:
    """Dict-backed DocumentStore with the same version semantics as Neo4j."""

    def __init__(self) -> None:
        self.fragments: dict[str, KnowledgeFragment] = {}
        self.memories: dict[tuple[str, str], CustomerMemory] = {}
        self.profiles: dict[str, BotProfile] = {}
        self.text_results: dict[str, list[RetrievalCandidate]] = {}
        self.upserts = 0
        # Called before each memory upsert; tests use it to simulate a concurrent writer
        self.before_upsert: Callable[[CustomerMemory], None] | None = None

    async def find_fragments(self, bot_scope: str) -> list[KnowledgeFragment]:
        return [fragment for fragment in self.fragments.values() if fragment.bot_scope == bot_scope]

    async def find_fragments_with_embedding(self, bot_scope: str, model: str | None = None) -> list[KnowledgeFragment]:
        return [
            fragment
            for fragment in await self.find_fragments(bot_scope)
            if fragment.has_embedding and (model is None or fragment.embedding_model == model)
        ]

    async def text_search(self, bot_scope: str, query: str, limit: int) -> list[RetrievalCandidate]:
        if bot_scope in self.text_results:
            return self.text_results[bot_scope][:limit]
        words = set(query.lower().split())
        hits = []
        for fragment in await self.find_fragments(bot_scope):
            score = len(words & set(fragment.content.lower().split()))
            if score:
                hits.append(RetrievalCandidate.from_fragment(fragment, keyword=float(score)))
        hits.sort(key=lambda candidate: candidate.score, reverse=True)
        return hits[:limit]

    async def get_customer_memory(self, customer_id: str, bot_scope: str) -> CustomerMemory | None:
        memory = self.memories.get((bot_scope, customer_id))
        return memory.model_copy(deep=True) if memory else None

    async def upsert_customer_memory(self, memory: CustomerMemory) -> CustomerMemory:
        if self.before_upsert is not None:
            self.before_upsert(memory)
        key = (memory.bot_scope, memory.customer_id)
        stored = self.memories.get(key)
        stored_version = stored.version if stored else 0
        if stored_version != memory.version:
            raise ConcurrentUpdateError(
                message="version mismatch",
                details={"source": "fake_store", "operation": "upsert_customer_memory"},
            )
        saved = memory.model_copy(update={"version": memory.version + 1}, deep=True)
        self.memories[key] = saved
        self.upserts += 1
        return saved.model_copy(deep=True)

    async def upsert_fragments(self, bot_scope: str, fragments: list[KnowledgeFragment]) -> int:
        for fragment in fragments:
            self.fragments[fragment.chunk_id] = fragment.model_copy(update={"bot_scope": bot_scope})
        return len(fragments)

    async def get_bot_profile(self, bot_scope: str) -> BotProfile | None:
        return self.profiles.get(bot_scope)

    async def find_fragments_needing_embedding(self, model: str, limit: int) -> list[KnowledgeFragment]:
        pending = [
            fragment
            for fragment in self.fragments.values()
            if not fragment.has_embedding or fragment.embedding_model != model
        ]
        return pending[:limit]

    async def set_fragment_embedding(self, chunk_id: str, embedding: list[float], model: str) -> None:
        fragment = self.fragments[chunk_id]
        self.fragments[chunk_id] = fragment.model_copy(update={"embedding": embedding, "embedding_model": model})


class FakeVectorIndex:
    """Brute-force cosine over a store's fragments, or a scripted failure."""

    def __init__(self, store: FakeDocumentStore, error: Exception | None = None):
        self.store = store
        self.error = error
        self.calls = 0

    async def nearest_neighbors(
        self, bot_scope: str, query_vector: list[float], num_candidates: int, limit: int
    ) -> list[RetrievalCandidate]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        fragments = await self.store.find_fragments_with_embedding(bot_scope)
        scored = [
            RetrievalCandidate.from_fragment(fragment, semantic=cosine(query_vector, fragment.embedding))
            for fragment in fragments
        ]
        scored.sort(key=lambda candidate: candidate.score, reverse=True)
        return scored[:limit]


class FakeLanguageModel:
    """Returns scripted replies in order; an Exception entry is raised instead."""

    def __init__(self, *replies: str | Exception):
        self.replies = list(replies)
        self.calls: list[tuple[list[ChatMessage], GenerationOptions]] = []

    async def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str:
        self.calls.append((messages, options))
        reply = self.replies.pop(0) if self.replies else "{}"
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeEmbedder:
    """Neural stand-in: fixed vectors per text, an error for unknown texts if asked."""

    def __init__(self, vectors: dict[str, list[float]], error: Exception | None = None, dimensions: int = 3):
        self.vectors = vectors
        self.error = error
        self.dimensions = dimensions
        self.calls: list[str] = []

    @property
    def model_name(self) -> str:
        return "fake-neural"

    def get_model_dimensions(self) -> int:
        return self.dimensions

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vectors.get(text, [0.0] * self.dimensions)


@pytest.fixture
def cache() -> CacheService:
    return CacheService(ttl_seconds=3600, max_entries=100)


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def retrieval_config() -> RetrievalConfig:
    return RetrievalConfig()


@pytest.fixture
def memory_config() -> MemoryConfig:
    return MemoryConfig()


@pytest.fixture
def chunking_config() -> ChunkingConfig:
    return ChunkingConfig()


@pytest.fixture
def hashing_provider(cache: CacheService) -> EmbeddingProvider:
    return EmbeddingProvider(cache=cache, primary=None, fallback=HashingEmbeddingService(64))


def make_fragment(
    chunk_id: str,
    content: str,
    bot_scope: str = "shop",
    embedding: list[float] | None = None,
    entity_id: str | None = None,
    keywords: list[str] | None = None,
) -> KnowledgeFragment:
    return KnowledgeFragment(
        chunk_id=chunk_id,
        bot_scope=bot_scope,
        content=content,
        embedding=embedding,
        embedding_model="fake-neural" if embedding else None,
        entity_id=entity_id,
        keywords=keywords or [],
    )
