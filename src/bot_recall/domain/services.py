"""Domain service protocols.

The retrieval and memory layers only ever talk to their collaborators through
these protocols; concrete adapters live under ``bot_recall.infrastructure``.
"""

from typing import Protocol, runtime_checkable

from bot_recall.domain.models import (
    BotProfile,
    ChatMessage,
    CustomerMemory,
    GenerationOptions,
    KnowledgeFragment,
    RetrievalCandidate,
)


@runtime_checkable
class DocumentStore(Protocol):
    """Holds knowledge fragments, customer memories and bot profiles."""

    async def find_fragments(self, bot_scope: str) -> list[KnowledgeFragment]: ...

    async def find_fragments_with_embedding(self, bot_scope: str, model: str | None = None) -> list[KnowledgeFragment]:
        """Fragments with a stored vector; only those embedded by ``model`` when given."""
        ...

    async def text_search(self, bot_scope: str, query: str, limit: int) -> list[RetrievalCandidate]:
        """Keyword search; candidates carry the store's native relevance score."""
        ...

    async def get_customer_memory(self, customer_id: str, bot_scope: str) -> CustomerMemory | None: ...

    async def upsert_customer_memory(self, memory: CustomerMemory) -> CustomerMemory:
        """Write ``memory`` and return it with its new version.

        Raises ConcurrentUpdateError when the stored version is not ``memory.version``.
        """
        ...

    async def upsert_fragments(self, bot_scope: str, fragments: list[KnowledgeFragment]) -> int: ...

    async def get_bot_profile(self, bot_scope: str) -> BotProfile | None: ...

    async def find_fragments_needing_embedding(self, model: str, limit: int) -> list[KnowledgeFragment]: ...

    async def set_fragment_embedding(self, chunk_id: str, embedding: list[float], model: str) -> None: ...


@runtime_checkable
class VectorIndex(Protocol):
    """Approximate nearest-neighbour search over fragment embeddings."""

    async def nearest_neighbors(
        self,
        bot_scope: str,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
    ) -> list[RetrievalCandidate]: ...


@runtime_checkable
class LanguageModel(Protocol):
    """Chat-completion style text generation."""

    async def generate(self, messages: list[ChatMessage], options: GenerationOptions) -> str: ...


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns text into a vector."""

    @property
    def model_name(self) -> str: ...

    def get_model_dimensions(self) -> int: ...

    async def embed(self, text: str) -> list[float]: ...
