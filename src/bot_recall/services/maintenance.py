from apscheduler.schedulers.asyncio import AsyncIOScheduler

from bot_recall.core.base import ErrorLevel
from bot_recall.core.cache import RETRIEVAL_NAMESPACE, CacheService
from bot_recall.core.config import settings
from bot_recall.core.decorators import with_error_handling
from bot_recall.core.logging import get_logger
from bot_recall.domain.services import DocumentStore
from bot_recall.infrastructure.embeddings.provider import EmbeddingProvider

logger = get_logger(__name__)

BACKFILL_INTERVAL_MINUTES = 30
BACKFILL_BATCH_SIZE = 100


class EmbeddingBackfill:
    """Embeds fragments stored without a vector from the active model."""

    def __init__(self, store: DocumentStore, embeddings: EmbeddingProvider, batch_size: int = BACKFILL_BATCH_SIZE):
        self.store = store
        self.embeddings = embeddings
        self.batch_size = batch_size

    async def run(self) -> int:
        """Process one batch. Returns the number of fragments re-embedded."""
        if not self.embeddings.is_neural:
            logger.debug("Embedding backfill skipped in hashing mode")
            return 0

        model = self.embeddings.model_name
        fragments = await self.store.find_fragments_needing_embedding(model, self.batch_size)
        updated = 0
        for fragment in fragments:
            result = await self.embeddings.embed_tagged(fragment.content)
            if result.degraded:
                # The neural backend is down; the next run picks the rest up
                logger.warning("Embedding backfill interrupted by a degraded embedding", chunk_id=fragment.chunk_id)
                break
            await self.store.set_fragment_embedding(fragment.chunk_id, result.vector, result.model_name)
            updated += 1
        return updated


class MaintenanceJobs:
    """Scheduled cache flushes and embedding backfill."""

    def __init__(
        self,
        cache: CacheService,
        backfill: EmbeddingBackfill | None = None,
        flush_interval_seconds: float | None = None,
        backfill_interval_minutes: int = BACKFILL_INTERVAL_MINUTES,
    ):
        self.cache = cache
        self.backfill = backfill
        self.flush_interval_seconds = flush_interval_seconds or settings.cache_ttl_seconds
        self.backfill_interval_minutes = backfill_interval_minutes
        self.scheduler = AsyncIOScheduler()
        self._setup_jobs()

    def _setup_jobs(self):
        self.scheduler.add_job(
            self.flush_caches,
            "interval",
            seconds=self.flush_interval_seconds,
            id="flush_caches",
            max_instances=1,
            coalesce=True,
        )
        if self.backfill is not None:
            self.scheduler.add_job(
                self.backfill_embeddings,
                "interval",
                minutes=self.backfill_interval_minutes,
                id="backfill_embeddings",
                max_instances=1,
                coalesce=True,
            )

    async def start(self):
        self.scheduler.start()
        logger.info("Maintenance jobs started")

    async def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        logger.info("Maintenance jobs stopped")

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=False, default=0)
    async def flush_caches(self) -> int:
        return self.cache.flush()

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=False, default=0)
    async def backfill_embeddings(self) -> int:
        if self.backfill is None:
            return 0
        updated = await self.backfill.run()
        if updated:
            # Retrieval answers computed without these vectors are stale
            self.cache.invalidate(RETRIEVAL_NAMESPACE)
            logger.info(f"Backfilled embeddings for {updated} fragments")
        return updated

    def get_job_status(self) -> dict:
        return {
            "scheduler_running": self.scheduler.running,
            "jobs": [
                {
                    "id": job.id,
                    "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
                }
                for job in self.scheduler.get_jobs()
            ],
            "cache": self.cache.stats(),
        }
