"""
Tests for namespaces, notifications and context extraction.
"""

import pytest

from records_toolkit.trash import (
    ContextRefs,
    EphemeralNamespaceStrategy,
    EventBus,
    FileKeyValueStore,
    MemoryKeyValueStore,
    StorageWriteFailure,
    TrashRecord,
    TrashType,
    extract_context_refs,
    namespace_key,
)
from records_toolkit.trash.strategies import same_tender_item


class TestKeyValueStores:
    """Test the namespace stores."""

    def test_namespace_key(self):
        assert namespace_key("tenderItems", "t1") == "tenderItems_t1"

    @pytest.mark.asyncio
    async def test_memory_store_copies(self):
        store = MemoryKeyValueStore()
        records = [{"id": "a"}]

        await store.set("k", records)
        records.append({"id": "b"})
        loaded = await store.get("k")
        loaded.append({"id": "c"})

        assert await store.get("k") == [{"id": "a"}]
        assert await store.get("missing") == []

    @pytest.mark.asyncio
    async def test_file_store_round_trip(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path / "namespaces"))

        await store.set("tenderItems_t1", [{"id": "i1", "materialName": "كابل"}])

        reopened = FileKeyValueStore(str(tmp_path / "namespaces"))
        assert await reopened.get("tenderItems_t1") == [
            {"id": "i1", "materialName": "كابل"}
        ]
        assert await reopened.get("tenderItems_t2") == []

    @pytest.mark.asyncio
    async def test_file_store_sanitizes_keys(self, tmp_path):
        store = FileKeyValueStore(str(tmp_path))

        await store.set("tenderDocuments_../x", [{"id": "d1"}])

        assert (tmp_path / "tenderDocuments_.._x.json").exists()
        assert await store.get("tenderDocuments_../x") == [{"id": "d1"}]

    @pytest.mark.asyncio
    async def test_file_store_unreadable_data(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        store = FileKeyValueStore(str(tmp_path))

        assert await store.get("broken") == []

    @pytest.mark.asyncio
    async def test_file_store_skips_malformed_entries(self, tmp_path):
        """Entries that are not objects are dropped when reading."""
        (tmp_path / "tenderItems_t1.json").write_text(
            '[{"id": "i1"}, "stray", 7, null, ["i2"]]', encoding="utf-8"
        )
        store = FileKeyValueStore(str(tmp_path))

        assert await store.get("tenderItems_t1") == [{"id": "i1"}]

    @pytest.mark.asyncio
    async def test_restore_into_namespace_with_malformed_entries(self, tmp_path):
        (tmp_path / "tenderItems_t1.json").write_text(
            '["stray", {"id": "i0", "internalId": "A0"}]', encoding="utf-8"
        )
        store = FileKeyValueStore(str(tmp_path))
        strategy = EphemeralNamespaceStrategy(
            store,
            resource_kind="tenderItems",
            business_key=same_tender_item,
            event_name="tenderItemRestored",
        )
        record = TrashRecord(
            id="trash-i1",
            original_id="i1",
            original_type="tenderItems",
            payload={"internalId": "A1"},
            context_refs=ContextRefs(owner_id="t1"),
            deleted_by="tester",
        )

        result = await strategy.restore(record, {"internalId": "A1"})

        items = await store.get("tenderItems_t1")
        assert result.restored_id == "i1"
        assert [item["id"] for item in items] == ["i0", "i1"]

    @pytest.mark.asyncio
    async def test_file_store_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = FileKeyValueStore(str(blocker / "namespaces"))

        with pytest.raises(StorageWriteFailure):
            await store.set("tenderItems_t1", [])


class TestEventBus:
    """Test the publish/subscribe notifier."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        bus = EventBus()
        received = []

        async def async_handler(name, detail):
            received.append(("async", detail["n"]))

        bus.subscribe("changed", lambda name, detail: received.append(("sync", name)))
        bus.subscribe("changed", async_handler)

        await bus.notify("changed", {"n": 1})
        await bus.notify("other", {"n": 2})

        assert received == [("sync", "changed"), ("async", 1)]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def failing(name, detail):
            raise RuntimeError("boom")

        bus.subscribe("changed", failing)
        bus.subscribe("changed", lambda name, detail: received.append(detail))

        await bus.notify("changed", {"n": 1})

        assert received == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        def handler(name, detail):
            received.append(name)

        bus.subscribe("changed", handler)

        assert bus.unsubscribe("changed", handler) is True
        assert bus.unsubscribe("changed", handler) is False

        await bus.notify("changed", {})
        assert received == []


class TestContextExtraction:
    """Test context references captured at delete time."""

    def test_flat_types_have_no_context(self):
        refs = extract_context_refs(TrashType.SUPPLIERS, {"name": "Acme"})

        assert refs.is_empty()

    def test_quote_parent_preference(self):
        """Raw material references win over product references."""
        refs = extract_context_refs(
            "price_quotes",
            {"rawMaterialId": "rm1", "localProductId": "lp1"},
        )

        assert refs.parent_type == "rawmaterials"
        assert refs.parent_id == "rm1"

    def test_quote_local_product(self):
        refs = extract_context_refs(
            "price_quotes",
            {"localProductId": "lp1", "localProductName": "Paint"},
        )

        assert refs == ContextRefs(
            parent_type="localproducts", parent_id="lp1", parent_name="Paint"
        )

    def test_quote_generic_parent(self):
        refs = extract_context_refs("price_quotes", {"parentId": "rm1"})

        assert refs.parent_id == "rm1"
        assert refs.parent_type is None

    def test_tender_item_owner(self):
        nested = extract_context_refs(
            "tenderItems",
            {"tenderContext": {"tenderId": "t1", "tenderTitle": "Grid"}},
        )
        flat = extract_context_refs("tenderItems", {"tenderId": "t2"})

        assert (nested.owner_id, nested.owner_name) == ("t1", "Grid")
        assert flat.owner_id == "t2"

    def test_document_owners(self):
        tender_doc = extract_context_refs("tender_documents", {"tenderId": "t1"})
        employee_doc = extract_context_refs(
            "employee_documents", {"employeeId": "e1", "employeeName": "Sara"}
        )

        assert tender_doc.owner_id == "t1"
        assert (employee_doc.owner_id, employee_doc.owner_name) == ("e1", "Sara")
