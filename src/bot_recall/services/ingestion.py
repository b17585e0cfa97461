"""Document ingestion: chunk, optionally extract, embed, store."""

from pydantic import BaseModel

from bot_recall.core.cache import RETRIEVAL_NAMESPACE, CacheService
from bot_recall.core.logging import bound_log_context, get_logger
from bot_recall.domain.models import ExtractedKnowledge, FragmentDraft, KnowledgeFragment, SourceMeta
from bot_recall.domain.services import DocumentStore
from bot_recall.infrastructure.embeddings.provider import EmbeddingProvider
from bot_recall.services.chunking import DocumentChunker, make_chunk_id
from bot_recall.services.extraction import KnowledgeExtractor

logger = get_logger(__name__)


class IngestionReport(BaseModel):
    bot_scope: str
    drafts: int
    fragments: int
    stored: int
    embedding_model: str
    degraded: int = 0
    extracted: bool = False


def fragment_from_draft(bot_scope: str, draft: FragmentDraft) -> KnowledgeFragment:
    return KnowledgeFragment(
        chunk_id=draft.chunk_id,
        bot_scope=bot_scope,
        content=draft.content,
        source_meta=draft.source_meta,
    )


def fragment_from_item(bot_scope: str, item: ExtractedKnowledge, index: int) -> KnowledgeFragment:
    # Item ids derive from the source chunk so re-ingesting replaces them
    chunk_id = make_chunk_id(f"{item.chunk_id or item.source_meta.identifier}:item", index, item.start or 0)
    return KnowledgeFragment(
        chunk_id=chunk_id,
        bot_scope=bot_scope,
        content=item.content,
        keywords=item.keywords,
        entity_id=item.entity_id,
        title=item.title or None,
        source_meta=item.source_meta,
    )


class DocumentIngestionService:
    """Turns raw document text into stored, embedded knowledge fragments."""

    def __init__(
        self,
        chunker: DocumentChunker,
        embeddings: EmbeddingProvider,
        store: DocumentStore,
        cache: CacheService,
        extractor: KnowledgeExtractor | None = None,
    ):
        self.chunker = chunker
        self.embeddings = embeddings
        self.store = store
        self.cache = cache
        self.extractor = extractor

    async def build_fragments(
        self, bot_scope: str, drafts: list[FragmentDraft], extract: bool
    ) -> list[KnowledgeFragment]:
        if extract and self.extractor is not None:
            items = await self.extractor.extract_all(drafts)
            if items:
                return [fragment_from_item(bot_scope, item, index) for index, item in enumerate(items)]
            logger.info("Extraction produced nothing, storing raw chunks")
        return [fragment_from_draft(bot_scope, draft) for draft in drafts]

    async def ingest(
        self,
        bot_scope: str,
        raw_text: str,
        source_meta: SourceMeta | None = None,
        extract: bool = False,
    ) -> IngestionReport:
        """Store ``raw_text`` as fragments of ``bot_scope``.

        Raises:
            StoreUnavailableError: If the fragments cannot be written
        """
        with bound_log_context(bot_scope=bot_scope):
            drafts = self.chunker.chunk(raw_text, source_meta)
            fragments = await self.build_fragments(bot_scope, drafts, extract)

            degraded = 0
            for fragment in fragments:
                result = await self.embeddings.embed_tagged(fragment.content)
                fragment.embedding = result.vector
                # Degraded vectors keep the hashing model name so the backfill job retries them
                fragment.embedding_model = result.model_name
                degraded += result.degraded

            stored = await self.store.upsert_fragments(bot_scope, fragments) if fragments else 0
            # Cached answers may predate the new fragments
            self.cache.invalidate(RETRIEVAL_NAMESPACE)

            logger.info(
                f"Ingested {stored} fragments",
                drafts=len(drafts),
                degraded=degraded,
                source=(source_meta or SourceMeta()).identifier,
            )
            return IngestionReport(
                bot_scope=bot_scope,
                drafts=len(drafts),
                fragments=len(fragments),
                stored=stored,
                embedding_model=self.embeddings.model_name,
                degraded=degraded,
                extracted=extract and self.extractor is not None,
            )
