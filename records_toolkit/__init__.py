"""
Records Toolkit - trash store and restoration engine for business records.

Business records (suppliers, customers, materials, products, employees,
tenders and their documents) are never hard-deleted from the user's point
of view: a delete moves a snapshot into the trash, from where it can be
listed, restored to its home location, or purged.

Key Features
------------
* **Soft Delete Store**: Sanitized, deduplicated snapshots of deleted records
* **Type-aware Restore**: Flat collections, parent arrays, per-owner namespaces
* **Display Mapping**: Uniform trash listings across entity shapes
* **Maintenance**: Duplicate reports and purge-all

Quick Start
-----------
>>> from records_toolkit.trash import (
...     MemoryTrashStorage, SoftDeleteStore, build_restoration_router
... )
>>> store = SoftDeleteStore(MemoryTrashStorage())
>>> router = build_restoration_router(store, flat_services={"suppliers": service})
>>> trash_id = await store.move_to_trash({"id": "s1", "name": "Acme"}, "suppliers")
>>> result = await router.restore(trash_id)

Documentation
-------------
See the /examples directory for usage examples.
"""

__version__ = "1.0.0"

from .config import RecordsConfig, configure, get_config
from .trash import (
    AlreadyTrashed,
    RestorationRouter,
    SoftDeleteStore,
    TrashRecord,
    TrashType,
    build_restoration_router,
)

__all__ = [
    # Trash
    "SoftDeleteStore",
    "RestorationRouter",
    "build_restoration_router",
    "TrashRecord",
    "TrashType",
    "AlreadyTrashed",
    # Configuration
    "RecordsConfig",
    "get_config",
    "configure",
]
