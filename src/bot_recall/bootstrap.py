"""Process wiring: build every service once and hand out a single container."""

import os
from dataclasses import dataclass, field

import logfire
from neo4j import AsyncDriver

from bot_recall.core.base import ApplicationError
from bot_recall.core.cache import CacheService
from bot_recall.core.config import Settings, settings
from bot_recall.core.errors import StoreUnavailableError
from bot_recall.core.locks import KeyedLock
from bot_recall.core.logging import get_logger, setup_logging
from bot_recall.domain.models import FragmentDraft, MergedKnowledgeItem, SourceMeta
from bot_recall.domain.services import DocumentStore, LanguageModel, VectorIndex
from bot_recall.infrastructure.embeddings import EmbeddingProvider, create_embedding_provider
from bot_recall.infrastructure.llm import AnthropicLanguageModel
from bot_recall.infrastructure.neo4j import Neo4jDocumentStore, Neo4jVectorIndex, connect_neo4j_driver
from bot_recall.infrastructure.repositories import NullDocumentStore
from bot_recall.services.bot_profiles import BotProfileService
from bot_recall.services.chat import ChatTurnService
from bot_recall.services.chunking import DocumentChunker
from bot_recall.services.clustering import KnowledgeMerger
from bot_recall.services.extraction import KnowledgeExtractor
from bot_recall.services.ingestion import DocumentIngestionService
from bot_recall.services.maintenance import EmbeddingBackfill, MaintenanceJobs
from bot_recall.services.memory import CustomerMemoryEngine, MemoryConsolidator, MemoryService
from bot_recall.services.retrieval import RetrievalOrchestrator, default_strategies

logger = get_logger(__name__)


def configure_observability(config: Settings | None = None) -> None:
    """Configure Logfire and route structlog and stdlib logging through it."""
    config = config or settings
    logfire.configure(
        service_name=config.service_name,
        token=os.getenv("LOGFIRE_TOKEN"),
        send_to_logfire="if-token-present",
    )
    setup_logging(level="DEBUG" if config.debug else "INFO", log_format=config.log_format)


@dataclass
class BotRecall:
    """Every service of the process, built once by ``create_bot_recall``."""

    config: Settings
    cache: CacheService
    store: DocumentStore
    embeddings: EmbeddingProvider
    chunker: DocumentChunker
    retrieval: RetrievalOrchestrator
    profiles: BotProfileService
    memory: MemoryService
    ingestion: DocumentIngestionService
    maintenance: MaintenanceJobs
    llm: LanguageModel | None = None
    chat: ChatTurnService | None = None
    vector_index: VectorIndex | None = None
    driver: AsyncDriver | None = field(default=None, repr=False)

    def chunk_document(self, raw_text: str, source_meta: SourceMeta | None = None) -> list[FragmentDraft]:
        return self.chunker.chunk(raw_text, source_meta)

    async def embed(self, text: str) -> list[float]:
        return await self.embeddings.embed(text)

    async def retrieve_context(
        self,
        bot_scope: str,
        query: str,
        limit: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[MergedKnowledgeItem]:
        return await self.retrieval.retrieve_context(bot_scope, query, limit, similarity_threshold)

    def record_turn(
        self,
        customer_id: str,
        bot_scope: str,
        user_message: str,
        bot_response: str,
        derived_facts: dict | None = None,
    ) -> None:
        """Fire-and-forget memory update."""
        self.memory.record_turn_in_background(customer_id, bot_scope, user_message, bot_response, derived_facts)

    async def start(self) -> None:
        await self.maintenance.start()

    async def close(self) -> None:
        await self.memory.drain()
        await self.maintenance.shutdown()
        if self.driver is not None:
            await self.driver.close()
            logger.info("Neo4j driver closed")


def _create_llm(config: Settings) -> LanguageModel | None:
    try:
        return AnthropicLanguageModel(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            timeout_seconds=config.llm_timeout_seconds,
            max_retries=config.llm_max_retries,
        )
    except ApplicationError as e:
        logger.warning(f"Language model unavailable, extraction, consolidation and chat disabled: {e.message}")
        return None


async def create_bot_recall(
    config: Settings | None = None,
    store: DocumentStore | None = None,
    llm: LanguageModel | None = None,
    neural: bool = True,
    require_profiles: bool = False,
) -> BotRecall:
    """Build the container.

    Without an explicit ``store`` Neo4j is connected; if it is unreachable the
    process runs on a ``NullDocumentStore`` with an empty knowledge base.
    """
    config = config or settings
    cache = CacheService(ttl_seconds=config.cache_ttl_seconds, max_entries=config.cache_max_entries)
    embeddings = create_embedding_provider(
        cache, api_key=config.voyage_api_key, model=config.voyage_model, neural=neural
    )

    driver: AsyncDriver | None = None
    vector_index: VectorIndex | None = None
    if store is None:
        try:
            driver = await connect_neo4j_driver(config)
        except StoreUnavailableError as e:
            logger.error(f"Running without a document store: {e.message}")
            store = NullDocumentStore()
        else:
            neo4j_store = Neo4jDocumentStore(driver, config)
            await neo4j_store.ensure_schema(embeddings.dimensions)
            store = neo4j_store
            vector_index = Neo4jVectorIndex(driver, config)

    llm = llm if llm is not None else _create_llm(config)

    profiles = BotProfileService(store, cache, require_profile=require_profiles)
    merger = KnowledgeMerger(config.retrieval)
    retrieval = RetrievalOrchestrator(
        embeddings,
        default_strategies(store, vector_index, config.retrieval),
        cache,
        merger=merger,
        profiles=profiles,
        config=config.retrieval,
    )
    consolidator = MemoryConsolidator(llm, config.memory, config.llm_timeout_seconds) if llm else None
    memory = MemoryService(store, CustomerMemoryEngine(config.memory, consolidator=consolidator), KeyedLock())
    chunker = DocumentChunker(config.chunking)
    ingestion = DocumentIngestionService(
        chunker,
        embeddings,
        store,
        cache,
        extractor=KnowledgeExtractor(llm, config.chunking) if llm else None,
    )
    maintenance = MaintenanceJobs(
        cache,
        backfill=EmbeddingBackfill(store, embeddings),
        flush_interval_seconds=config.cache_ttl_seconds,
    )
    chat = ChatTurnService(profiles, memory, retrieval, llm) if llm else None

    logger.info(
        "Bot recall ready",
        store=type(store).__name__,
        embedding_model=embeddings.model_name,
        language_model=type(llm).__name__ if llm else None,
    )
    return BotRecall(
        config=config,
        cache=cache,
        store=store,
        embeddings=embeddings,
        chunker=chunker,
        retrieval=retrieval,
        profiles=profiles,
        memory=memory,
        ingestion=ingestion,
        maintenance=maintenance,
        llm=llm,
        chat=chat,
        vector_index=vector_index,
        driver=driver,
    )
