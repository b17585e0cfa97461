"""Tests for persisting customer memory."""

import pytest
from conftest import FakeDocumentStore

from bot_recall.core.errors import ConcurrentUpdateError, StoreUnavailableError
from bot_recall.domain.models import CustomerMemory, FactSource, MemoryFact
from bot_recall.services.memory import CustomerMemoryEngine, MemoryService
from bot_recall.services.memory.rules import NAME_FIELD, PHONE_FIELD


@pytest.fixture
def service(store, memory_config):
    return MemoryService(store, CustomerMemoryEngine(memory_config))


class TestRecordTurn:
    async def test_first_contact_is_seeded_and_saved(self, service, store):
        saved = await service.record_turn(
            "cust-1",
            "shop",
            "xin chào, tên tôi là Lan",
            "Chào chị Lan",
            seed_fields={"email": "lan@example.com"},
        )

        assert saved.version == 1
        assert saved.turn_count == 1
        assert saved.get_fact("email").source == FactSource.DIRECT
        assert saved.get_fact(NAME_FIELD).field_value == "Lan"
        assert store.memories[("shop", "cust-1")].turn_count == 1

    async def test_derived_facts_are_stored_as_direct(self, service, store):
        await service.record_turn(
            "cust-1", "shop", "gọi tôi qua 0987654321", "Dạ", derived_facts={PHONE_FIELD: "0912345678"}
        )

        fact = store.memories[("shop", "cust-1")].get_fact(PHONE_FIELD)
        assert fact.field_value == "0912345678"
        assert fact.confidence == 1.0

    async def test_successive_turns_build_on_stored_memory(self, service, store):
        await service.record_turn("cust-1", "shop", "hello there", "hi")
        saved = await service.record_turn("cust-1", "shop", "giá bao nhiêu", "100k")

        assert saved.turn_count == 2
        assert saved.version == 2
        assert [turn.user_message for turn in saved.conversation_history] == ["hello there", "giá bao nhiêu"]

    async def test_conflicting_write_is_retried_against_fresh_copy(self, service, store):
        def concurrent_writer(memory):
            store.before_upsert = None
            other = CustomerMemory.new("cust-1", "shop", {"email": "other@example.com"})
            store.memories[("shop", "cust-1")] = other.model_copy(update={"version": 1})

        store.before_upsert = concurrent_writer

        saved = await service.record_turn("cust-1", "shop", "hello there", "hi")

        assert saved.version == 2
        assert saved.get_fact("email").field_value == "other@example.com"
        assert store.upserts == 1

    async def test_second_conflict_propagates(self, service, store):
        def always_conflicting(memory):
            current = store.memories.get(("shop", "cust-1"))
            version = current.version + 1 if current else 1
            store.memories[("shop", "cust-1")] = CustomerMemory(
                customer_id="cust-1", bot_scope="shop", version=version
            )

        store.before_upsert = always_conflicting

        with pytest.raises(ConcurrentUpdateError):
            await service.record_turn("cust-1", "shop", "hello there", "hi")


class TestBackground:
    async def test_background_updates_are_drained(self, service, store):
        for index in range(3):
            service.record_turn_in_background("cust-1", "shop", f"message {index}", "ok")

        assert service.pending == 3
        await service.drain()

        assert service.pending == 0
        saved = store.memories[("shop", "cust-1")]
        assert saved.turn_count == 3
        assert saved.version == 3

    async def test_background_failures_are_swallowed(self, memory_config):
        class BrokenStore(FakeDocumentStore):
            async def get_customer_memory(self, customer_id, bot_scope):
                raise StoreUnavailableError(
                    message="database down",
                    details={"source": "test", "operation": "get_customer_memory"},
                )

        service = MemoryService(BrokenStore(), CustomerMemoryEngine(memory_config))

        task = service.record_turn_in_background("cust-1", "shop", "hello there", "hi")
        await service.drain()

        assert task.done()
        assert task.exception() is None


class TestLoad:
    async def test_stored_memory_wins_over_seed(self, service, store):
        stored = CustomerMemory(customer_id="cust-1", bot_scope="shop", version=4)
        stored.put_fact(MemoryFact(field_name="email", field_value="old@example.com", confidence=1.0))
        store.memories[("shop", "cust-1")] = stored

        memory = await service.load("cust-1", "shop", {"email": "new@example.com"})

        assert memory.get_fact("email").field_value == "old@example.com"
        assert memory.version == 4
