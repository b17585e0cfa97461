"""Neo4j native vector index adapter."""

from neo4j import AsyncDriver, AsyncSession

from bot_recall.core.config import Settings, settings
from bot_recall.core.decorators import with_session
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import KnowledgeFragment, RetrievalCandidate
from bot_recall.infrastructure.neo4j.queries import FragmentQueries
from bot_recall.infrastructure.neo4j.store import translate_neo4j_errors

logger = get_logger(__name__)


class Neo4jVectorIndex:
    """``db.index.vector.queryNodes`` restricted to one bot scope.

    The index spans every bot, so it is over-fetched by ``vector_scope_overfetch``
    before the scope filter applies. Scores are the index's native cosine
    similarity.
    """

    def __init__(self, driver: AsyncDriver, config: Settings | None = None):
        config = config or settings
        self.driver = driver
        self.database = config.neo4j_database
        self.index_name = config.vector_index_name
        self.scope_overfetch = config.vector_scope_overfetch

    @translate_neo4j_errors("vector_search")
    @with_session()
    async def nearest_neighbors(
        self,
        session: AsyncSession,
        bot_scope: str,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
    ) -> list[RetrievalCandidate]:
        query, params = FragmentQueries.vector_search(
            self.index_name, bot_scope, query_vector, num_candidates, limit, scope_overfetch=self.scope_overfetch
        )
        result = await session.run(query, params)
        candidates = []
        async for record in result:
            fragment = KnowledgeFragment.from_neo4j_record(dict(record["f"]))
            candidates.append(RetrievalCandidate.from_fragment(fragment, semantic=float(record["score"])))
        logger.debug(f"Vector index returned {len(candidates)} candidates", bot_scope=bot_scope)
        return candidates
