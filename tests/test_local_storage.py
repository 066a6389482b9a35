"""Tests for the local JSON backend."""

import asyncio
import json
import pytest
from datetime import date
from decimal import Decimal

from charity_ledger.models import AuditEventBuilder, Collection
from charity_ledger.services.storage import (
    LocalJSONAuditStorage,
    LocalJSONBackend,
    LocalJSONRecordStore,
    NotFoundError,
    StorageError,
)


DAY = date(2024, 3, 1)


def product_values(name: str = "Dates") -> dict:
    return {
        "name": name,
        "unit": "kg",
        "sale_price": Decimal("12"),
        "quantity": Decimal("20"),
        "buying_date": DAY,
    }


class TestLocalJSONRecordStore:

    def test_file_named_by_versioned_key(self, tmp_path):
        store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
        assert store.path == tmp_path / "charity.products.v4.json"

    def test_missing_file_is_empty_collection(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            assert await store.list_all() == []

        asyncio.run(scenario())

    def test_create_assigns_identity(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            record = await store.create({**product_values(), "id": "forced"})

            assert record.id != "forced"
            assert record.created_at == record.updated_at
            assert (await store.get(record.id)).name == "Dates"

        asyncio.run(scenario())

    def test_newest_first(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            first = await store.create(product_values("First"))
            second = await store.create(product_values("Second"))

            assert [r.id for r in await store.list_all()] == [second.id, first.id]

        asyncio.run(scenario())

    def test_file_is_a_json_array(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            await store.create(product_values())

            raw = json.loads(store.path.read_text(encoding="utf-8"))
            assert isinstance(raw, list)
            assert raw[0]["sale_price"] == "12"
            assert not list(tmp_path.glob("*.tmp"))

        asyncio.run(scenario())

    def test_update_keeps_identity(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            record = await store.create(product_values())

            updated = await store.update(
                record.id, {"sale_price": Decimal("15"), "created_at": "2000-01-01T00:00:00Z"}
            )

            assert updated.sale_price == Decimal("15")
            assert updated.created_at == record.created_at
            assert updated.updated_at >= record.updated_at

        asyncio.run(scenario())

    def test_update_many_all_or_nothing(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            record = await store.create(product_values())

            with pytest.raises(NotFoundError):
                await store.update_many({
                    record.id: {"sale_price": Decimal("99")},
                    "missing": {"sale_price": Decimal("1")},
                })

            assert (await store.get(record.id)).sale_price == Decimal("12")

        asyncio.run(scenario())

    def test_update_many_empty_is_noop(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            assert await store.update_many({}) == []
            assert not store.path.exists()

        asyncio.run(scenario())

    def test_delete(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            record = await store.create(product_values())

            await store.delete(record.id)

            assert await store.get(record.id) is None
            with pytest.raises(NotFoundError):
                await store.delete(record.id)

        asyncio.run(scenario())

    def test_corrupt_file_is_storage_error(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            store.path.write_text("{not json", encoding="utf-8")

            with pytest.raises(StorageError):
                await store.list_all()

        asyncio.run(scenario())

    def test_non_array_file_is_storage_error(self, tmp_path):
        async def scenario():
            store = LocalJSONRecordStore(Collection.PRODUCTS, tmp_path)
            store.path.write_text('{"id": "x"}', encoding="utf-8")

            with pytest.raises(StorageError):
                await store.list_all()

        asyncio.run(scenario())


class TestLocalJSONBackend:

    def test_collections_are_cached(self, tmp_path):
        backend = LocalJSONBackend(tmp_path)
        assert backend.collection(Collection.SALES) is backend.collection(Collection.SALES)
        assert backend.name == "local"

    def test_audit_storage_round_trip(self, tmp_path):
        async def scenario():
            storage = LocalJSONBackend(tmp_path).audit_storage()
            first = AuditEventBuilder.record_created("sales", "s1")
            second = AuditEventBuilder.record_deleted("sales", "s1")

            assert await storage.append_event(first)
            assert await storage.append_event(second)

            events = await storage.get_recent_events(limit=1)
            assert [e.event_id for e in events] == [second.event_id]

        asyncio.run(scenario())

    def test_audit_storage_missing_file(self, tmp_path):
        async def scenario():
            storage = LocalJSONAuditStorage(tmp_path / "audit.jsonl")
            assert await storage.get_recent_events() == []

        asyncio.run(scenario())
