"""Loading and persisting customer memory."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from bot_recall.core.base import ApplicationError
from bot_recall.core.errors import ConcurrentUpdateError
from bot_recall.core.locks import KeyedLock
from bot_recall.core.logging import bound_log_context, get_logger
from bot_recall.domain.models import CustomerMemory, FactValue
from bot_recall.domain.services import DocumentStore
from bot_recall.services.memory.engine import CustomerMemoryEngine

logger = get_logger(__name__)


class MemoryService:
    """Read-modify-write of customer memories.

    Writes for the same ``(bot_scope, customer_id)`` are serialised in-process
    by a ``KeyedLock``; across processes the store's version check applies and
    a conflicting write is retried once against a fresh copy.
    """

    def __init__(self, store: DocumentStore, engine: CustomerMemoryEngine, lock: KeyedLock | None = None):
        self.store = store
        self.engine = engine
        self.lock = lock or KeyedLock()
        self._background: set[asyncio.Task[Any]] = set()

    async def load(
        self,
        customer_id: str,
        bot_scope: str,
        seed_fields: dict[str, FactValue] | None = None,
    ) -> CustomerMemory:
        """Stored memory, or a fresh one seeded with pre-collected fields."""
        memory = await self.store.get_customer_memory(customer_id, bot_scope)
        if memory is None:
            return CustomerMemory.new(customer_id, bot_scope, seed_fields)
        return memory

    async def _apply_and_save(
        self,
        customer_id: str,
        bot_scope: str,
        user_message: str,
        bot_response: str,
        derived_facts: dict[str, FactValue],
        intent: str | None,
        product_focus: list[str] | None,
        seed_fields: dict[str, FactValue] | None,
    ) -> CustomerMemory:
        memory = await self.load(customer_id, bot_scope, seed_fields)
        # Direct facts first, so conversation proposals cannot displace them
        memory = self.engine.apply_direct_facts(memory, derived_facts)
        memory = await self.engine.record_turn(memory, user_message, bot_response, intent, product_focus)
        return await self.store.upsert_customer_memory(memory)

    async def record_turn(
        self,
        customer_id: str,
        bot_scope: str,
        user_message: str,
        bot_response: str,
        derived_facts: dict[str, FactValue] | None = None,
        intent: str | None = None,
        product_focus: list[str] | None = None,
        seed_fields: dict[str, FactValue] | None = None,
    ) -> CustomerMemory:
        """Record one exchange and persist the result.

        Raises:
            ConcurrentUpdateError: If the write still conflicts after one retry
            StoreUnavailableError: If the store cannot be read or written
        """
        args = (
            customer_id,
            bot_scope,
            user_message,
            bot_response,
            derived_facts or {},
            intent,
            product_focus,
            seed_fields,
        )
        with bound_log_context(bot_scope=bot_scope, customer_id=customer_id):
            async with self.lock.hold((bot_scope, customer_id)):
                try:
                    return await self._apply_and_save(*args)
                except ConcurrentUpdateError:
                    logger.info("Customer memory changed concurrently, retrying once")
                    return await self._apply_and_save(*args)

    def _track(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _record_logged(self, *args: Any, **kwargs: Any) -> None:
        try:
            await self.record_turn(*args, **kwargs)
        except ApplicationError as e:
            logger.error(f"Background memory update failed: {e.message}", error_code=e.code.value)
        except Exception:
            logger.exception("Background memory update failed")

    def record_turn_in_background(
        self,
        customer_id: str,
        bot_scope: str,
        user_message: str,
        bot_response: str,
        derived_facts: dict[str, FactValue] | None = None,
        intent: str | None = None,
        product_focus: list[str] | None = None,
        seed_fields: dict[str, FactValue] | None = None,
    ) -> asyncio.Task[Any]:
        """Fire-and-forget ``record_turn``; failures are logged, never raised."""
        return self._track(
            self._record_logged(
                customer_id,
                bot_scope,
                user_message,
                bot_response,
                derived_facts=derived_facts,
                intent=intent,
                product_focus=product_focus,
                seed_fields=seed_fields,
            )
        )

    @property
    def pending(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for every background update started so far."""
        while pending := [task for task in self._background if not task.done()]:
            await asyncio.gather(*pending, return_exceptions=True)
