"""
Basic Usage Example - Records Toolkit

This is a demonstration file prioritizing readability over production
readiness. It wires the trash store to in-memory collections and walks
through the three restore families:

- a supplier restored as a new top-level document,
- a price quote merged back into its raw material,
- a tender item restored into the tender's namespace.
"""

import asyncio

from records_toolkit import configure
from records_toolkit.documents import MemoryDocumentCollection
from records_toolkit.trash import (
    NAMESPACE_CHANGED,
    EventBus,
    MemoryKeyValueStore,
    MemoryTrashStorage,
    MissingParent,
    SoftDeleteStore,
    TrashType,
    build_restoration_router,
    default_display_resolver,
)
from records_toolkit.trash.catalog import FLAT_TYPES, QUOTE_PARENT_TYPES

# Configure the toolkit
configure(
    application_name="Records Example App",
    environment="development",
    trash_storage_backend="memory",
    default_deleted_by="demo user",
)


async def main() -> None:
    store = SoftDeleteStore(MemoryTrashStorage())
    collections = {
        t.value: MemoryDocumentCollection(t.value)
        for t in FLAT_TYPES + QUOTE_PARENT_TYPES
    }
    namespaces = MemoryKeyValueStore()
    events = EventBus()
    events.subscribe(
        NAMESPACE_CHANGED,
        lambda name, detail: print(f"📣 {detail['key']} changed"),
    )

    router = build_restoration_router(
        store,
        flat_services={t: collections[t.value] for t in FLAT_TYPES},
        quote_parents={t: collections[t.value] for t in QUOTE_PARENT_TYPES},
        namespaces=namespaces,
        notifier=events,
    )
    display = default_display_resolver()

    # 1. Flat restore
    supplier_id = await store.move_to_trash(
        {"id": "s1", "name": "Acme Trading", "email": "sales@acme.test"},
        TrashType.SUPPLIERS,
    )
    duplicate = await store.move_to_trash(
        {"id": "s1", "name": "Acme Trading"}, TrashType.SUPPLIERS
    )
    print(f"✅ Supplier trashed as {supplier_id}, second delete skipped: {duplicate}")

    result = await router.restore(supplier_id)
    print(f"✅ Supplier restored as {result.restored_id} in {result.location}")

    # 2. Nested restore
    materials = collections[TrashType.RAW_MATERIALS.value]
    material_id = await materials.create(
        {
            "name": "Steel Rod",
            "priceQuotes": [{"id": "q0", "supplierName": "Globex", "price": "20"}],
        }
    )
    quote_id = await store.move_to_trash(
        {
            "id": "q1",
            "supplierName": "Acme Trading",
            "price": "17.5",
            "rawMaterialId": material_id,
            "rawMaterialName": "Steel Rod",
        },
        TrashType.PRICE_QUOTES,
    )

    for record in await store.list_all():
        item = display.resolve(record)
        print(f"🗑  {item.label}: {item.display_name} ({item.context_name})")

    await router.restore(quote_id)
    material = await materials.get(material_id)
    print(
        f"✅ Quote restored; lowest price {material['price']} "
        f"from {material['supplier']}"
    )

    # 3. Namespace restore
    item_id = await store.move_to_trash(
        {
            "id": "i1",
            "materialName": "Copper Cable",
            "quantity": 40,
            "tenderContext": {"tenderId": "t7", "tenderTitle": "Grid Upgrade"},
        },
        TrashType.TENDER_ITEMS,
    )
    result = await router.restore(item_id)
    print(f"✅ Tender item restored into {result.location}")

    # 4. A quote whose parent is gone stays in the trash
    orphan_id = await store.move_to_trash(
        {"supplierName": "Initech", "price": "9", "parentId": "deleted-material"},
        TrashType.PRICE_QUOTES,
    )
    try:
        await router.restore(orphan_id)
    except MissingParent as e:
        print(f"❌ {e}")

    print(f"🗑  {len(await store.list_all())} record(s) left in the trash")


if __name__ == "__main__":
    asyncio.run(main())
