"""DocumentStore used when no persistent store is reachable at startup."""

from bot_recall.core.logging import get_logger
from bot_recall.domain.models import BotProfile, CustomerMemory, KnowledgeFragment, RetrievalCandidate

logger = get_logger(__name__)


class NullDocumentStore:
    """Answers every read with nothing and accepts every write without keeping it.

    With this store retrieval degrades to an empty result and customer
    memories live only for the duration of a turn.
    """

    def __init__(self) -> None:
        logger.warning("No document store available, running with NullDocumentStore")

    async def find_fragments(self, bot_scope: str) -> list[KnowledgeFragment]:
        return []

    async def find_fragments_with_embedding(self, bot_scope: str, model: str | None = None) -> list[KnowledgeFragment]:
        return []

    async def text_search(self, bot_scope: str, query: str, limit: int) -> list[RetrievalCandidate]:
        return []

    async def get_customer_memory(self, customer_id: str, bot_scope: str) -> CustomerMemory | None:
        return None

    async def upsert_customer_memory(self, memory: CustomerMemory) -> CustomerMemory:
        logger.debug("Discarding customer memory write", customer_id=memory.customer_id)
        return memory.model_copy(update={"version": memory.version + 1})

    async def upsert_fragments(self, bot_scope: str, fragments: list[KnowledgeFragment]) -> int:
        logger.debug(f"Discarding {len(fragments)} fragments", bot_scope=bot_scope)
        return 0

    async def get_bot_profile(self, bot_scope: str) -> BotProfile | None:
        return None

    async def find_fragments_needing_embedding(self, model: str, limit: int) -> list[KnowledgeFragment]:
        return []

    async def set_fragment_embedding(self, chunk_id: str, embedding: list[float], model: str) -> None:
        return None
