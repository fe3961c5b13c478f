"""
Built-in entity families and their restore wiring.

Adding an entity family means adding a registration here (or calling
``RestorationRouter.register`` directly); the router itself never changes.
"""

from typing import Any, Dict, Mapping, Optional

from .context import QUOTE_REFERENCE_FIELDS
from .models import StrategyKind, TrashType, type_tag
from .namespace import KeyValueStore, Notifier
from .router import RestorationRouter
from .store import SoftDeleteStore
from .strategies import (
    EphemeralNamespaceStrategy,
    FlatCollaborator,
    FlatCollectionStrategy,
    LowestPriceAggregate,
    NestedArrayMergeStrategy,
    NestedCollaborator,
    ParentBinding,
    same_document,
    same_tender_item,
)

FLAT_TYPES = (
    TrashType.SUPPLIERS,
    TrashType.FOREIGN_SUPPLIERS,
    TrashType.CUSTOMERS,
    TrashType.EMPLOYEES,
    TrashType.RAW_MATERIALS,
    TrashType.LOCAL_PRODUCTS,
    TrashType.FOREIGN_PRODUCTS,
    TrashType.MANUFACTURED_PRODUCTS,
)

QUOTE_PARENT_TYPES = (
    TrashType.RAW_MATERIALS,
    TrashType.LOCAL_PRODUCTS,
    TrashType.FOREIGN_PRODUCTS,
)

UNKNOWN_SUPPLIER = "unknown supplier"

QUOTE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    TrashType.RAW_MATERIALS.value: {
        "supplierName": UNKNOWN_SUPPLIER,
        "price": "0",
        "date": "",
        "supplierType": "local",
    },
    TrashType.LOCAL_PRODUCTS.value: {
        "supplierName": UNKNOWN_SUPPLIER,
        "price": "0",
        "date": "",
        "supplierType": "local",
    },
    TrashType.FOREIGN_PRODUCTS.value: {
        "supplierName": UNKNOWN_SUPPLIER,
        "price": "0",
        "date": "",
        "supplierType": "foreign",
    },
}

# Raw materials also record which supplier currently offers the best price
QUOTE_SUPPLIER_FIELDS: Dict[str, tuple] = {
    TrashType.RAW_MATERIALS.value: ("supplier", "lowestPriceSupplier"),
}

# type -> (namespace resource kind, business key, restore event)
EPHEMERAL_TYPES = {
    TrashType.TENDER_ITEMS.value: (
        "tenderItems",
        same_tender_item,
        "tenderItemRestored",
    ),
    TrashType.TENDER_DOCUMENTS.value: (
        "tenderDocuments",
        same_document,
        "tenderDocumentRestored",
    ),
}


def strategy_kind(original_type: Any) -> Optional[StrategyKind]:
    """Restore family of a built-in type tag, or None if it has none."""
    tag = type_tag(original_type)
    if tag in {t.value for t in FLAT_TYPES}:
        return StrategyKind.FLAT
    if tag == TrashType.PRICE_QUOTES.value:
        return StrategyKind.NESTED_MERGE
    if tag in EPHEMERAL_TYPES:
        return StrategyKind.EPHEMERAL_NAMESPACE
    return None


def quote_parent_bindings(
    parents: Mapping[Any, NestedCollaborator],
) -> Dict[str, ParentBinding]:
    bindings: Dict[str, ParentBinding] = {}
    for parent_type, collaborator in parents.items():
        tag = type_tag(parent_type)
        bindings[tag] = ParentBinding(
            collaborator,
            defaults=QUOTE_DEFAULTS.get(tag),
            aggregate=LowestPriceAggregate(
                supplier_fields=QUOTE_SUPPLIER_FIELDS.get(tag, ("supplier",))
            ),
            reference_fields=QUOTE_REFERENCE_FIELDS,
        )
    return bindings


def build_restoration_router(
    store: SoftDeleteStore,
    flat_services: Optional[Mapping[Any, FlatCollaborator]] = None,
    quote_parents: Optional[Mapping[Any, NestedCollaborator]] = None,
    namespaces: Optional[KeyValueStore] = None,
    notifier: Optional[Notifier] = None,
    activity_logger: Optional[Any] = None,
) -> RestorationRouter:
    """
    Create a router with strategies for every supplied collaborator.

    Args:
        store: Trash store the router restores from
        flat_services: CRUD service per flat type tag
        quote_parents: Services of the collections that embed price quotes
        namespaces: Store for tender items and tender documents
        notifier: Receives namespace change and restore events
        activity_logger: Optional service with an async ``log_activity``

    Returns:
        Router; types without a collaborator stay unregistered and fail
        with ``UnsupportedType`` on restore
    """
    router = RestorationRouter(store, activity_logger=activity_logger)

    for original_type, service in (flat_services or {}).items():
        tag = type_tag(original_type)
        router.register(tag, FlatCollectionStrategy(service, collection=tag))

    if quote_parents:
        bindings = quote_parent_bindings(quote_parents)
        default_parent = (
            TrashType.RAW_MATERIALS.value
            if TrashType.RAW_MATERIALS.value in bindings
            else None
        )
        router.register(
            TrashType.PRICE_QUOTES,
            NestedArrayMergeStrategy(
                bindings,
                array_field="priceQuotes",
                default_parent_type=default_parent,
                guard=store.guard,
            ),
        )

    if namespaces is not None:
        for tag, (resource_kind, business_key, event_name) in EPHEMERAL_TYPES.items():
            router.register(
                tag,
                EphemeralNamespaceStrategy(
                    namespaces,
                    resource_kind=resource_kind,
                    business_key=business_key,
                    event_name=event_name,
                    notifier=notifier,
                    guard=store.guard,
                ),
            )

    return router
