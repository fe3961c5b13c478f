"""
Restore strategies.

Each entity family is restored differently:

* flat records become brand-new top-level documents,
* nested records are merged back into their parent's array field,
* ephemeral records are appended to a per-owner namespace.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
)

from .dedup import DeduplicationGuard
from .exceptions import MissingParent
from .models import RestoreResult, StrategyKind, TrashRecord, utcnow
from .namespace import NAMESPACE_CHANGED, KeyValueStore, Notifier, namespace_key

logger = logging.getLogger(__name__)


class KeyedLocks:
    """
    One ``asyncio.Lock`` per key, dropped once nobody holds or awaits it.

    Restores of different trash records into the same parent or namespace
    must not interleave their read-modify-write cycles.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            self._waiters[key] = 0
        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


class FlatCollaborator(Protocol):
    """CRUD service for an independent top-level collection."""

    async def create(self, payload: Dict[str, Any]) -> str:
        ...

    async def read_all(self) -> List[Dict[str, Any]]:
        ...

    async def update(self, record_id: str, payload: Dict[str, Any]) -> None:
        ...


class NestedCollaborator(Protocol):
    """Service for parents that embed sub-records in an array field."""

    async def read_all(self) -> List[Dict[str, Any]]:
        ...

    async def update(self, record_id: str, full_record: Dict[str, Any]) -> None:
        ...


class RestoreStrategy(Protocol):
    kind: StrategyKind

    async def restore(
        self, record: TrashRecord, payload: Dict[str, Any]
    ) -> RestoreResult:
        ...


class FlatCollectionStrategy:
    """Restore by creating a new document with a freshly assigned id."""

    kind = StrategyKind.FLAT

    def __init__(self, collaborator: FlatCollaborator, collection: str):
        self.collaborator = collaborator
        self.collection = collection

    async def restore(
        self, record: TrashRecord, payload: Dict[str, Any]
    ) -> RestoreResult:
        # The original id is never reused; stale references elsewhere must
        # not resolve to the resurrected document.
        data = {k: v for k, v in payload.items() if k != "id"}
        new_id = await self.collaborator.create(data)

        logger.info(
            "Restored %s %s as new document %s",
            record.original_type,
            record.original_id,
            new_id,
        )

        return RestoreResult(
            trash_id=record.id,
            original_type=record.original_type,
            strategy=self.kind,
            restored_id=str(new_id),
            location=self.collection,
        )


def _price_value(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class LowestPriceAggregate:
    """
    Recompute the lowest quoted price and its supplier on a parent.

    Ties keep the earlier quote. Unparsable prices count as zero.
    """

    def __init__(
        self,
        price_field: str = "price",
        supplier_fields: Iterable[str] = ("supplier",),
    ):
        self.price_field = price_field
        self.supplier_fields = tuple(supplier_fields)

    def __call__(
        self, parent: Dict[str, Any], quotes: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if not quotes:
            return parent

        lowest = quotes[0]
        for quote in quotes[1:]:
            if _price_value(quote.get("price")) < _price_value(lowest.get("price")):
                lowest = quote

        updated = dict(parent)
        updated[self.price_field] = lowest.get("price")
        for field in self.supplier_fields:
            updated[field] = lowest.get("supplierName")
        return updated


class ParentBinding:
    """How sub-records are merged back into one parent collection."""

    def __init__(
        self,
        collaborator: NestedCollaborator,
        defaults: Optional[Mapping[str, Any]] = None,
        aggregate: Optional[
            Callable[[Dict[str, Any], List[Dict[str, Any]]], Dict[str, Any]]
        ] = None,
        reference_fields: Iterable[str] = (),
    ):
        self.collaborator = collaborator
        self.defaults = dict(defaults or {})
        self.aggregate = aggregate or LowestPriceAggregate()
        self.reference_fields = tuple(reference_fields)


# Keys that only describe where a sub-record came from
GENERIC_REFERENCE_FIELDS = ("parentId", "parentType", "parentName")


class NestedArrayMergeStrategy:
    """
    Restore a sub-record into its parent's embedded array.

    The only guards are a missing parent and sub-id collisions; business
    rules were satisfied when the sub-record was first created.
    """

    kind = StrategyKind.NESTED_MERGE

    def __init__(
        self,
        parents: Mapping[str, ParentBinding],
        array_field: str = "priceQuotes",
        default_parent_type: Optional[str] = None,
        guard: Optional[DeduplicationGuard] = None,
    ):
        if not parents:
            raise ValueError("At least one parent binding is required")
        self.parents = dict(parents)
        self.array_field = array_field
        self.default_parent_type = default_parent_type or next(iter(self.parents))
        self.guard = guard or DeduplicationGuard()
        self._locks = KeyedLocks()

    def _binding(self, record: TrashRecord) -> Tuple[str, ParentBinding]:
        parent_type = record.context_refs.parent_type or self.default_parent_type
        binding = self.parents.get(parent_type)
        if binding is None:
            raise MissingParent(record.id, parent_type, record.context_refs.parent_id)
        return parent_type, binding

    async def _find_parent(
        self, binding: ParentBinding, parent_id: str
    ) -> Optional[Dict[str, Any]]:
        for candidate in await binding.collaborator.read_all():
            if str(candidate.get("id")) == parent_id:
                return candidate
        return None

    async def restore(
        self, record: TrashRecord, payload: Dict[str, Any]
    ) -> RestoreResult:
        parent_type, binding = self._binding(record)
        parent_id = record.context_refs.parent_id

        if not parent_id:
            raise MissingParent(record.id, parent_type, None)

        stripped = set(GENERIC_REFERENCE_FIELDS) | set(binding.reference_fields)
        sub_record = {k: v for k, v in payload.items() if k not in stripped}
        for field, default in binding.defaults.items():
            if sub_record.get(field) in (None, ""):
                sub_record[field] = default

        async with self._locks.hold((parent_type, parent_id)):
            parent = await self._find_parent(binding, parent_id)
            if parent is None:
                raise MissingParent(record.id, parent_type, parent_id)

            existing: List[Dict[str, Any]] = list(parent.get(self.array_field) or [])
            sub_record["id"] = self.guard.new_sub_id([q.get("id") for q in existing])

            merged = existing + [sub_record]
            updated = binding.aggregate(dict(parent), merged)
            updated[self.array_field] = merged

            await binding.collaborator.update(parent_id, updated)

        logger.info(
            "Restored %s into %s %s (%d entries)",
            record.original_type,
            parent_type,
            parent_id,
            len(merged),
        )

        return RestoreResult(
            trash_id=record.id,
            original_type=record.original_type,
            strategy=self.kind,
            restored_id=sub_record["id"],
            location=f"{parent_type}/{parent_id}.{self.array_field}",
            details={"parent_id": parent_id, "entry_count": len(merged)},
        )


BusinessKey = Callable[[Mapping[str, Any], Mapping[str, Any]], bool]


def same_tender_item(
    existing: Mapping[str, Any], restored: Mapping[str, Any]
) -> bool:
    """Tender line items match on internal id or material identity."""
    internal_id = restored.get("internalId")
    if internal_id is not None and existing.get("internalId") == internal_id:
        return True
    material_id = restored.get("materialInternalId")
    return (
        material_id is not None
        and existing.get("materialInternalId") == material_id
        and existing.get("materialName") == restored.get("materialName")
    )


def same_document(existing: Mapping[str, Any], restored: Mapping[str, Any]) -> bool:
    """Documents match only on the exact id and storage path."""
    return existing.get("id") == restored.get("id") and (
        existing.get("storagePath") == restored.get("storagePath")
    )


class EphemeralNamespaceStrategy:
    """
    Restore a record into a ``<resourceKind>_<ownerId>`` namespace.

    A record matching an existing entry by business key gets a regenerated
    id instead of being rejected. Notifications are sent after the write
    has been committed and their failure is only logged.
    """

    kind = StrategyKind.EPHEMERAL_NAMESPACE

    def __init__(
        self,
        store: KeyValueStore,
        resource_kind: str,
        business_key: BusinessKey,
        event_name: str,
        notifier: Optional[Notifier] = None,
        id_field: str = "id",
        default_owner: str = "new",
        guard: Optional[DeduplicationGuard] = None,
    ):
        self.store = store
        self.resource_kind = resource_kind
        self.business_key = business_key
        self.event_name = event_name
        self.notifier = notifier
        self.id_field = id_field
        self.default_owner = default_owner
        self.guard = guard or DeduplicationGuard()
        self._locks = KeyedLocks()

    async def restore(
        self, record: TrashRecord, payload: Dict[str, Any]
    ) -> RestoreResult:
        owner_id = record.context_refs.owner_id or self.default_owner
        key = namespace_key(self.resource_kind, owner_id)

        restored = dict(payload)
        if self.id_field not in restored:
            restored[self.id_field] = record.original_id

        async with self._locks.hold(key):
            existing = await self.store.get(key)

            if any(self.business_key(item, restored) for item in existing):
                taken = [item.get(self.id_field) for item in existing]
                new_id = self.guard.new_sub_id(taken)
                logger.warning(
                    "%s already holds %s %s, restoring under new id %s",
                    key,
                    self.resource_kind,
                    restored[self.id_field],
                    new_id,
                )
                restored[self.id_field] = new_id

            restored["restoredAt"] = utcnow().isoformat()
            restored["restoredFrom"] = "trash"

            records = existing + [restored]
            await self.store.set(key, records)

        await self._notify(NAMESPACE_CHANGED, {"key": key, "records": records})
        await self._notify(
            self.event_name, {"ownerId": owner_id, "restoredRecord": restored}
        )

        logger.info("Restored %s into namespace %s", record.original_type, key)

        return RestoreResult(
            trash_id=record.id,
            original_type=record.original_type,
            strategy=self.kind,
            restored_id=str(restored[self.id_field]),
            location=key,
            details={"owner_id": owner_id, "entry_count": len(records)},
        )

    async def _notify(self, event_name: str, detail: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(event_name, detail)
        except Exception:
            logger.warning(
                "Notification %s failed after namespace write",
                event_name,
                exc_info=True,
            )
