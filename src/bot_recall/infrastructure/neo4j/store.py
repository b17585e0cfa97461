"""Neo4j implementation of the DocumentStore protocol."""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from neo4j import AsyncDriver, AsyncSession
from neo4j.exceptions import DriverError, Neo4jError

from bot_recall.core.base import DatabaseErrorDetails, ErrorLevel
from bot_recall.core.config import Settings, settings
from bot_recall.core.decorators import with_error_handling, with_session
from bot_recall.core.errors import ConcurrentUpdateError, StoreUnavailableError
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import (
    BotProfile,
    CustomerMemory,
    KnowledgeFragment,
    RagSettings,
    RetrievalCandidate,
)
from bot_recall.infrastructure.neo4j.queries import (
    BotProfileQueries,
    CustomerMemoryQueries,
    FragmentQueries,
    SchemaQueries,
    fulltext_query,
)

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def translate_neo4j_errors(operation: str) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Re-raise driver and server failures as StoreUnavailableError."""

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except (Neo4jError, DriverError) as e:
                raise StoreUnavailableError(
                    message=f"Neo4j {operation} failed: {e!s}",
                    details=DatabaseErrorDetails(
                        source="Neo4jDocumentStore",
                        operation=operation,
                        service_name="Neo4j",
                        query_type=operation,
                    ),
                ) from e

        return wrapper

    return decorator


def fragment_to_row(fragment: KnowledgeFragment) -> dict[str, Any]:
    row = fragment.to_neo4j_properties()
    row["keywords_text"] = " ".join(fragment.keywords)
    return row


def node_to_bot_profile(node: Any) -> BotProfile:
    data = dict(node)
    return BotProfile(
        bot_scope=data["bot_scope"],
        name=data.get("name") or "",
        system_prompt=data.get("system_prompt") or "",
        status=data.get("status") or "active",
        customer_fields=list(data.get("customer_fields") or []),
        product_focus=list(data.get("product_focus") or []),
        rag=RagSettings(
            max_chunks=data.get("rag_max_chunks"),
            similarity_threshold=data.get("rag_similarity_threshold"),
        ),
    )


class Neo4jDocumentStore:
    """Fragments, customer memories and bot profiles stored as Neo4j nodes.

    Customer memories are kept as a JSON payload on a ``CustomerMemory`` node
    with an integer ``version`` used for optimistic concurrency.
    """

    def __init__(self, driver: AsyncDriver, config: Settings | None = None):
        config = config or settings
        self.driver = driver
        self.database = config.neo4j_database
        self.fulltext_index_name = config.fulltext_index_name
        self.vector_index_name = config.vector_index_name

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def ensure_schema(self, session: AsyncSession, dimensions: int) -> None:
        """Create constraints and the vector and full-text indexes if missing."""
        for statement in SchemaQueries.constraints():
            await session.run(statement)
        query, params = SchemaQueries.vector_index(self.vector_index_name, dimensions)
        await session.run(query, params)
        query, params = SchemaQueries.fulltext_index(self.fulltext_index_name)
        await session.run(query, params)
        logger.info("Neo4j schema ensured", vector_dimensions=dimensions)

    @translate_neo4j_errors("find_fragments")
    @with_session()
    async def find_fragments(self, session: AsyncSession, bot_scope: str) -> list[KnowledgeFragment]:
        query, params = FragmentQueries.find_by_scope(bot_scope)
        result = await session.run(query, params)
        return [KnowledgeFragment.from_neo4j_record(dict(record["f"])) async for record in result]

    @translate_neo4j_errors("find_fragments_with_embedding")
    @with_session()
    async def find_fragments_with_embedding(
        self, session: AsyncSession, bot_scope: str, model: str | None = None
    ) -> list[KnowledgeFragment]:
        query, params = FragmentQueries.find_with_embedding(bot_scope, model)
        result = await session.run(query, params)
        return [KnowledgeFragment.from_neo4j_record(dict(record["f"])) async for record in result]

    @translate_neo4j_errors("text_search")
    @with_session()
    async def text_search(
        self, session: AsyncSession, bot_scope: str, query: str, limit: int
    ) -> list[RetrievalCandidate]:
        lucene = fulltext_query(query)
        if not lucene:
            return []

        cypher, params = FragmentQueries.text_search(self.fulltext_index_name, bot_scope, lucene, limit)
        result = await session.run(cypher, params)
        candidates = []
        async for record in result:
            fragment = KnowledgeFragment.from_neo4j_record(dict(record["f"]))
            candidates.append(RetrievalCandidate.from_fragment(fragment, keyword=float(record["score"])))
        return candidates

    @translate_neo4j_errors("get_customer_memory")
    @with_session()
    async def get_customer_memory(
        self, session: AsyncSession, customer_id: str, bot_scope: str
    ) -> CustomerMemory | None:
        query, params = CustomerMemoryQueries.get(customer_id, bot_scope)
        result = await session.run(query, params)
        record = await result.single(strict=False)
        if record is None or not record["payload"]:
            return None

        memory = CustomerMemory.model_validate_json(record["payload"])
        # The node's counter is authoritative over the one inside the payload
        memory.version = int(record["version"] or 0)
        return memory

    @translate_neo4j_errors("upsert_customer_memory")
    @with_session()
    async def upsert_customer_memory(self, session: AsyncSession, memory: CustomerMemory) -> CustomerMemory:
        stored = memory.model_copy(update={"version": memory.version + 1})
        query, params = CustomerMemoryQueries.upsert_versioned(
            customer_id=memory.customer_id,
            bot_scope=memory.bot_scope,
            expected_version=memory.version,
            payload=stored.model_dump_json(),
            turn_count=memory.turn_count,
            last_updated=memory.last_updated.isoformat(),
        )
        result = await session.run(query, params)
        record = await result.single(strict=False)
        if record is None:
            raise ConcurrentUpdateError(
                message=f"Customer memory {memory.customer_id} changed since version {memory.version}",
                details={
                    "source": "Neo4jDocumentStore",
                    "operation": "upsert_customer_memory",
                    "customer_id": memory.customer_id,
                    "bot_scope": memory.bot_scope,
                },
            )
        stored.version = int(record["version"])
        return stored

    @translate_neo4j_errors("upsert_fragments")
    @with_session()
    async def upsert_fragments(self, session: AsyncSession, bot_scope: str, fragments: list[KnowledgeFragment]) -> int:
        if not fragments:
            return 0
        query, params = FragmentQueries.upsert_many(bot_scope, [fragment_to_row(f) for f in fragments])
        result = await session.run(query, params)
        record = await result.single(strict=False)
        written = int(record["written"]) if record else 0
        logger.info(f"Upserted {written} fragments", bot_scope=bot_scope)
        return written

    @translate_neo4j_errors("get_bot_profile")
    @with_session()
    async def get_bot_profile(self, session: AsyncSession, bot_scope: str) -> BotProfile | None:
        query, params = BotProfileQueries.get(bot_scope)
        result = await session.run(query, params)
        record = await result.single(strict=False)
        return node_to_bot_profile(record["b"]) if record else None

    @translate_neo4j_errors("find_fragments_needing_embedding")
    @with_session()
    async def find_fragments_needing_embedding(
        self, session: AsyncSession, model: str, limit: int
    ) -> list[KnowledgeFragment]:
        query, params = FragmentQueries.needing_embedding(model, limit)
        result = await session.run(query, params)
        return [KnowledgeFragment.from_neo4j_record(dict(record["f"])) async for record in result]

    @translate_neo4j_errors("set_fragment_embedding")
    @with_session()
    async def set_fragment_embedding(
        self, session: AsyncSession, chunk_id: str, embedding: list[float], model: str
    ) -> None:
        query, params = FragmentQueries.set_embedding(chunk_id, embedding, model)
        await session.run(query, params)
