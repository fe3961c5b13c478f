"""
Trash Module - soft delete store and type-aware restoration.

Deleted business records are kept as immutable snapshots and can be
restored to their home location: a top-level collection, a parent's
embedded array, or a per-owner namespace.
"""

from .admin import TrashAdmin
from .catalog import build_restoration_router, strategy_kind
from .context import extract_context_refs
from .dedup import DeduplicationGuard
from .display import (
    DisplayInfo,
    DisplayInfoResolver,
    ItemDisplay,
    default_display_resolver,
)
from .exceptions import (
    DeleteVerificationFailure,
    MissingParent,
    StorageWriteFailure,
    TrashError,
    TrashRecordNotFound,
    UnsupportedType,
)
from .models import (
    AlreadyTrashed,
    ContextRefs,
    RestoreResult,
    StrategyKind,
    TrashRecord,
    TrashType,
)
from .namespace import (
    NAMESPACE_CHANGED,
    EventBus,
    FileKeyValueStore,
    MemoryKeyValueStore,
    namespace_key,
)
from .router import RestorationRouter
from .sanitizer import sanitize_record
from .storage import (
    MemoryTrashStorage,
    SQLTrashStorage,
    TrashStorage,
    get_trash_storage,
)
from .store import SoftDeleteStore
from .strategies import (
    EphemeralNamespaceStrategy,
    FlatCollectionStrategy,
    LowestPriceAggregate,
    NestedArrayMergeStrategy,
    ParentBinding,
)

__all__ = [
    # Store
    "SoftDeleteStore",
    "TrashAdmin",
    "DeduplicationGuard",
    "sanitize_record",
    "extract_context_refs",
    # Restoration
    "RestorationRouter",
    "build_restoration_router",
    "strategy_kind",
    "FlatCollectionStrategy",
    "NestedArrayMergeStrategy",
    "EphemeralNamespaceStrategy",
    "ParentBinding",
    "LowestPriceAggregate",
    # Storage
    "TrashStorage",
    "MemoryTrashStorage",
    "SQLTrashStorage",
    "get_trash_storage",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "EventBus",
    "NAMESPACE_CHANGED",
    "namespace_key",
    # Display
    "DisplayInfo",
    "DisplayInfoResolver",
    "ItemDisplay",
    "default_display_resolver",
    # Models
    "TrashRecord",
    "TrashType",
    "ContextRefs",
    "AlreadyTrashed",
    "RestoreResult",
    "StrategyKind",
    # Exceptions
    "TrashError",
    "TrashRecordNotFound",
    "MissingParent",
    "UnsupportedType",
    "StorageWriteFailure",
    "DeleteVerificationFailure",
]
