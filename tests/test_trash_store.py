"""
Tests for the soft delete store.

Tests cover moving records to the trash, duplicate suppression, listing,
permanent deletion and the maintenance tools, against both the memory and
the SQL storage backends.
"""

import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from dateutil import tz

from records_toolkit.trash import (
    AlreadyTrashed,
    ContextRefs,
    DeleteVerificationFailure,
    MemoryTrashStorage,
    SoftDeleteStore,
    SQLTrashStorage,
    TrashAdmin,
    TrashRecord,
    TrashRecordNotFound,
    TrashType,
)


def make_store(storage=None, **kwargs):
    kwargs.setdefault("repair_on_list", True)
    kwargs.setdefault("default_deleted_by", "tester")
    return SoftDeleteStore(storage or MemoryTrashStorage(), **kwargs)


def aged_record(original_id, name, minutes_ago, original_type="suppliers"):
    """Build a record as if it had been trashed some minutes ago."""
    store = make_store()
    payload = {"name": name}
    return TrashRecord(
        original_id=original_id,
        original_type=original_type,
        payload=payload,
        fingerprint=store.guard.fingerprint(payload),
        deleted_at=datetime.now(tz=tz.UTC) - timedelta(minutes=minutes_ago),
        deleted_by="tester",
    )


class TestMoveToTrash:
    """Test moving records into the trash."""

    @pytest.mark.asyncio
    async def test_move_returns_trash_id(self):
        """A new record is stored with its original id and provenance."""
        store = make_store()

        trash_id = await store.move_to_trash(
            {"id": "s1", "name": "Acme", "email": None}, TrashType.SUPPLIERS
        )

        record = await store.get(trash_id)
        assert record.id == trash_id
        assert record.original_id == "s1"
        assert record.original_type == "suppliers"
        assert record.payload == {"name": "Acme"}
        assert record.deleted_by == "tester"
        assert record.deleted_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_explicit_deleted_by(self):
        store = make_store()

        trash_id = await store.move_to_trash(
            {"id": "c1", "name": "Client"}, "customers", deleted_by="alice"
        )

        assert (await store.get(trash_id)).deleted_by == "alice"

    @pytest.mark.asyncio
    async def test_duplicate_move_is_skipped(self):
        """A second identical move writes nothing."""
        store = make_store()
        payload = {"id": "s1", "name": "Acme"}

        first = await store.move_to_trash(payload, "suppliers")
        second = await store.move_to_trash(payload, "suppliers")

        assert isinstance(second, AlreadyTrashed)
        assert not second
        assert second.existing_id == first
        assert len(await store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_changed_content_is_trashed_again(self):
        """Same entity with a different name counts as a new delete."""
        store = make_store()

        await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")
        result = await store.move_to_trash(
            {"id": "s1", "name": "Acme Ltd"}, "suppliers"
        )

        assert isinstance(result, str)
        assert len(await store.list_all()) == 2

    @pytest.mark.asyncio
    async def test_missing_id_is_synthesized(self):
        store = make_store()

        trash_id = await store.move_to_trash({"name": "No Id"}, "customers")

        record = await store.get(trash_id)
        assert record.original_id.startswith("generated_")

    @pytest.mark.asyncio
    async def test_missing_id_duplicate_move_is_skipped(self):
        """Deleting the same id-less record twice leaves one trash record."""
        store = make_store()

        first = await store.move_to_trash({"name": "Steel Rod"}, "rawmaterials")
        second = await store.move_to_trash({"name": "Steel Rod"}, "rawmaterials")

        assert isinstance(first, str)
        assert isinstance(second, AlreadyTrashed)
        assert second.existing_id == first
        assert [r.id for r in await store.list_all()] == [first]

    @pytest.mark.asyncio
    async def test_context_refs_extracted_for_quotes(self):
        """Quote parents are captured from the payload when not supplied."""
        store = make_store()

        trash_id = await store.move_to_trash(
            {
                "id": "q1",
                "supplierName": "Acme",
                "price": "12.5",
                "rawMaterialId": "rm1",
                "rawMaterialName": "Steel Rod",
            },
            TrashType.PRICE_QUOTES,
        )

        refs = (await store.get(trash_id)).context_refs
        assert refs.parent_type == "rawmaterials"
        assert refs.parent_id == "rm1"
        assert refs.parent_name == "Steel Rod"

    @pytest.mark.asyncio
    async def test_explicit_context_refs_win(self):
        store = make_store()
        refs = ContextRefs(owner_id="t9", owner_name="Tender 9")

        trash_id = await store.move_to_trash(
            {"id": "i1", "materialName": "Cable", "tenderId": "t1"},
            TrashType.TENDER_ITEMS,
            context_refs=refs,
        )

        assert (await store.get(trash_id)).context_refs == refs

    @pytest.mark.asyncio
    async def test_activity_logged(self):
        """Moves are reported to the optional activity logger."""
        activity_logger = AsyncMock()
        store = make_store(activity_logger=activity_logger)

        trash_id = await store.move_to_trash({"id": "e1", "name": "Bob"}, "employees")

        activity_logger.log_activity.assert_awaited_once_with(
            action="TRASH",
            entity_type="employees",
            entity_id=trash_id,
            details={"original_id": "e1", "deleted_by": "tester"},
        )

    @pytest.mark.asyncio
    async def test_activity_log_failure_keeps_trash_record(self, caplog):
        activity_logger = AsyncMock()
        activity_logger.log_activity.side_effect = RuntimeError("audit down")
        store = make_store(activity_logger=activity_logger)

        with caplog.at_level(logging.WARNING):
            trash_id = await store.move_to_trash(
                {"id": "e1", "name": "Bob"}, "employees"
            )

        assert (await store.get(trash_id)).original_id == "e1"
        assert "Activity log for TRASH" in caplog.text


class TestListing:
    """Test listing trash records."""

    @pytest.mark.asyncio
    async def test_newest_first(self):
        storage = MemoryTrashStorage()
        store = make_store(storage)
        await storage.add(aged_record("s1", "Old", minutes_ago=30))
        await storage.add(aged_record("s2", "New", minutes_ago=1))
        await storage.add(aged_record("s3", "Middle", minutes_ago=10))

        records = await store.list_all()

        assert [r.original_id for r in records] == ["s2", "s3", "s1"]

    @pytest.mark.asyncio
    async def test_filter_by_type_and_search(self):
        store = make_store()
        await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")
        await store.move_to_trash({"id": "s2", "name": "Globex"}, "suppliers")
        await store.move_to_trash({"id": "c1", "name": "Acme Retail"}, "customers")

        suppliers = await store.list_all(types=[TrashType.SUPPLIERS])
        acme = await store.list_all(search="ACME")
        acme_suppliers = await store.list_all(types=["suppliers"], search="acme")

        assert {r.original_id for r in suppliers} == {"s1", "s2"}
        assert {r.original_id for r in acme} == {"s1", "c1"}
        assert [r.original_id for r in acme_suppliers] == ["s1"]

    @pytest.mark.asyncio
    async def test_repair_purges_older_duplicate(self):
        """Listing keeps the newest of a duplicate group and deletes the rest."""
        storage = MemoryTrashStorage()
        store = make_store(storage)
        old_id = await storage.add(aged_record("s1", "Acme", minutes_ago=20))
        new_id = await storage.add(aged_record("s1", "Acme", minutes_ago=5))

        records = await store.list_all()

        assert [r.id for r in records] == [new_id]
        assert await storage.get(old_id) is None

    @pytest.mark.asyncio
    async def test_repair_disabled(self):
        storage = MemoryTrashStorage()
        store = make_store(storage, repair_on_list=False)
        await storage.add(aged_record("s1", "Acme", minutes_ago=20))
        await storage.add(aged_record("s1", "Acme", minutes_ago=5))

        assert len(await store.list_all()) == 2
        assert len(await storage.list()) == 2


class TestPermanentDelete:
    """Test permanent deletion."""

    @pytest.mark.asyncio
    async def test_delete_removes_record(self):
        store = make_store()
        trash_id = await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")

        assert await store.permanently_delete(trash_id) is True

        with pytest.raises(TrashRecordNotFound):
            await store.get(trash_id)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self):
        """Deleting an absent record succeeds."""
        store = make_store()
        trash_id = await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")

        assert await store.permanently_delete(trash_id) is True
        assert await store.permanently_delete(trash_id) is True
        assert await store.permanently_delete("never-existed") is True

    @pytest.mark.asyncio
    async def test_delete_verification_failure(self):
        """A backend that silently keeps the record is reported."""
        storage = MemoryTrashStorage()
        store = make_store(storage)
        trash_id = await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")
        storage.remove = AsyncMock(return_value=None)

        with pytest.raises(DeleteVerificationFailure) as exc_info:
            await store.permanently_delete(trash_id)

        assert exc_info.value.trash_id == trash_id

    @pytest.mark.asyncio
    async def test_get_unknown_record(self):
        store = make_store()

        with pytest.raises(TrashRecordNotFound) as exc_info:
            await store.get("missing")

        assert exc_info.value.trash_id == "missing"


class TestTrashAdmin:
    """Test maintenance operations."""

    @pytest.mark.asyncio
    async def test_purge_all(self):
        store = make_store()
        admin = TrashAdmin(store)
        for index in range(3):
            await store.move_to_trash(
                {"id": f"s{index}", "name": f"Supplier {index}"}, "suppliers"
            )

        assert await admin.purge_all() == 3
        assert await store.list_all() == []
        assert await admin.purge_all() == 0

    @pytest.mark.asyncio
    async def test_find_duplicates(self):
        """Duplicate groups are reported without being repaired."""
        storage = MemoryTrashStorage()
        admin = TrashAdmin(make_store(storage))
        await storage.add(aged_record("s1", "Acme", minutes_ago=20))
        await storage.add(aged_record("s1", "Acme", minutes_ago=5))
        await storage.add(aged_record("s2", "Globex", minutes_ago=1))

        groups = await admin.find_duplicates()

        assert len(groups) == 1
        [((original_type, original_id, _), records)] = list(groups.items())
        assert (original_type, original_id) == ("suppliers", "s1")
        assert len(records) == 2
        assert records[0].deleted_at > records[1].deleted_at
        assert len(await storage.list()) == 3


class TestSQLTrashStorage:
    """Test the SQL storage backend."""

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        storage = SQLTrashStorage(f"sqlite:///{tmp_path / 'trash.db'}")
        await storage.initialize()
        store = make_store(storage)

        trash_id = await store.move_to_trash(
            {
                "id": "q1",
                "supplierName": "Acme",
                "price": "10",
                "localProductId": "lp1",
            },
            "price_quotes",
        )

        record = await store.get(trash_id)
        assert record.original_id == "q1"
        assert record.payload["supplierName"] == "Acme"
        assert record.context_refs.parent_type == "localproducts"
        assert record.context_refs.parent_id == "lp1"
        assert record.deleted_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_list_order_and_remove(self, tmp_path):
        storage = SQLTrashStorage(f"sqlite:///{tmp_path / 'trash.db'}")
        await storage.initialize()
        older = await storage.add(aged_record("s1", "Acme", minutes_ago=10))
        newer = await storage.add(aged_record("s2", "Globex", minutes_ago=1))

        assert [r.id for r in await storage.list()] == [newer, older]

        await storage.remove(older)
        await storage.remove(older)

        assert [r.id for r in await storage.list()] == [newer]
        assert await storage.get(older) is None

    @pytest.mark.asyncio
    async def test_uninitialized_storage(self):
        storage = SQLTrashStorage("sqlite:///:memory:")

        with pytest.raises(RuntimeError):
            await storage.list()
