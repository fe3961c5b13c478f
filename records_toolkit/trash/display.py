"""
Presentation mapping for trash listings.

Every entity family registers how it should be labelled and which of its
fields are worth showing; nothing is guessed from the record at read time.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from .models import TrashRecord, TrashType, type_tag

FieldExtractor = Callable[[TrashRecord], Dict[str, Any]]

NOT_SPECIFIED = "not specified"


def _first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return default


def _money(value: Any) -> str:
    return f"{value} SAR" if value not in (None, "") else NOT_SPECIFIED


def _file_size(value: Any) -> str:
    try:
        return f"{float(value) / 1024 / 1024:.2f} MB"
    except (TypeError, ValueError):
        return NOT_SPECIFIED


def _no_fields(record: TrashRecord) -> Dict[str, Any]:
    return {}


@dataclass(frozen=True)
class DisplayInfo:
    """How one entity family is presented in a trash listing."""

    label: str
    icon_key: str
    color_key: str
    name_fields: tuple = ("name", "title", "fileName", "supplierName")
    field_extractor: FieldExtractor = _no_fields
    context_extractor: Optional[Callable[[TrashRecord], Optional[str]]] = None


@dataclass
class ItemDisplay:
    """Resolved presentation of a single trash record."""

    label: str
    icon_key: str
    color_key: str
    display_name: str
    context_name: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


UNKNOWN_DISPLAY = DisplayInfo(
    label="unknown item", icon_key="bi-question-circle", color_key="secondary"
)


class DisplayInfoResolver:
    """Resolve trash records to their registered presentation."""

    def __init__(self, fallback: DisplayInfo = UNKNOWN_DISPLAY):
        self.fallback = fallback
        self._registry: Dict[str, DisplayInfo] = {}

    def register(self, original_type: Any, info: DisplayInfo) -> None:
        self._registry[type_tag(original_type)] = info

    def info_for(self, original_type: Any) -> DisplayInfo:
        return self._registry.get(type_tag(original_type), self.fallback)

    def resolve(self, record: TrashRecord) -> ItemDisplay:
        info = self.info_for(record.original_type)
        payload = record.payload

        display_name = _first(payload, *info.name_fields, default=None)
        context_name = None
        if info.context_extractor is not None:
            context_name = info.context_extractor(record)

        return ItemDisplay(
            label=info.label,
            icon_key=info.icon_key,
            color_key=info.color_key,
            display_name=str(display_name) if display_name else "unnamed item",
            context_name=context_name,
            fields={
                k: v for k, v in info.field_extractor(record).items() if v is not None
            },
        )


def _contact_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "email": p.get("email"),
        "phone": p.get("phone"),
        "address": p.get("address"),
        "taxNumber": p.get("taxNumber"),
    }


def _employee_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "email": p.get("email"),
        "phone": p.get("phone"),
        "department": p.get("department"),
        "jobTitle": p.get("jobTitle"),
        "status": p.get("status"),
    }


def _product_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "category": p.get("category", NOT_SPECIFIED),
        "unit": p.get("unit"),
        "price": _money(p.get("price")),
        "supplier": _first(p, "supplier", "lowestPriceSupplier", "manufacturer"),
    }


def _raw_material_fields(record: TrashRecord) -> Dict[str, Any]:
    fields = _product_fields(record)
    fields["minimumStock"] = record.payload.get("minimumStock", 0)
    return fields


def _manufactured_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "productCode": p.get("productCode"),
        "category": p.get("category"),
        "manufacturer": p.get("manufacturer"),
        "unitPrice": _money(p.get("unitPrice")),
        "stockQuantity": p.get("stockQuantity", NOT_SPECIFIED),
        "unit": p.get("unit"),
        "status": "active" if p.get("status") == "active" else "inactive",
    }


def _quote_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "supplierName": p.get("supplierName"),
        "price": _money(p.get("price")),
        "date": p.get("date"),
    }


def _tender_item_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "materialName": p.get("materialName"),
        "quantity": p.get("quantity"),
        "unitPrice": _money(p.get("unitPrice")),
        "totalPrice": _money(p.get("totalPrice")),
        "materialCategory": p.get("materialCategory"),
        "materialUnit": p.get("materialUnit"),
    }


def _document_fields(record: TrashRecord) -> Dict[str, Any]:
    p = record.payload
    return {
        "fileName": p.get("fileName"),
        "originalFileName": p.get("originalFileName"),
        "fileSize": _file_size(p.get("fileSize")),
        "fileType": p.get("fileType", "unknown type"),
        "uploadedAt": _first(p, "uploadedAt", "createdAt"),
    }


def _parent_name(record: TrashRecord) -> Optional[str]:
    return record.context_refs.parent_name or record.context_refs.parent_id


def _owner_name(record: TrashRecord) -> Optional[str]:
    return record.context_refs.owner_name or record.context_refs.owner_id


BUILTIN_DISPLAY_INFO: Dict[str, DisplayInfo] = {
    TrashType.SUPPLIERS.value: DisplayInfo(
        "local supplier", "bi-building", "primary", field_extractor=_contact_fields
    ),
    TrashType.FOREIGN_SUPPLIERS.value: DisplayInfo(
        "foreign supplier", "bi-globe", "info", field_extractor=_contact_fields
    ),
    TrashType.CUSTOMERS.value: DisplayInfo(
        "customer", "bi-person-check", "success", field_extractor=_contact_fields
    ),
    TrashType.EMPLOYEES.value: DisplayInfo(
        "employee",
        "bi-person-badge",
        "primary",
        name_fields=("fullName", "name"),
        field_extractor=_employee_fields,
    ),
    TrashType.RAW_MATERIALS.value: DisplayInfo(
        "raw material",
        "bi-box-seam",
        "warning",
        field_extractor=_raw_material_fields,
    ),
    TrashType.LOCAL_PRODUCTS.value: DisplayInfo(
        "local product", "bi-box-seam", "success", field_extractor=_product_fields
    ),
    TrashType.FOREIGN_PRODUCTS.value: DisplayInfo(
        "foreign product", "bi-box-seam", "info", field_extractor=_product_fields
    ),
    TrashType.MANUFACTURED_PRODUCTS.value: DisplayInfo(
        "manufactured product",
        "bi-boxes",
        "info",
        name_fields=("title", "productName", "name"),
        field_extractor=_manufactured_fields,
    ),
    TrashType.MANUFACTURED_PRODUCT_DOCUMENTS.value: DisplayInfo(
        "manufactured product document",
        "bi-file-earmark-text",
        "info",
        name_fields=("fileName", "originalFileName"),
        field_extractor=_document_fields,
    ),
    TrashType.PRICE_QUOTES.value: DisplayInfo(
        "price quote",
        "bi-currency-dollar",
        "dark",
        name_fields=("supplierName",),
        field_extractor=_quote_fields,
        context_extractor=_parent_name,
    ),
    TrashType.TENDER_ITEMS.value: DisplayInfo(
        "tender item",
        "bi-list-task",
        "secondary",
        name_fields=("materialName", "name"),
        field_extractor=_tender_item_fields,
        context_extractor=_owner_name,
    ),
    TrashType.TENDER_DOCUMENTS.value: DisplayInfo(
        "tender document",
        "bi-file-earmark",
        "warning",
        name_fields=("fileName", "originalFileName"),
        field_extractor=_document_fields,
        context_extractor=_owner_name,
    ),
    TrashType.EMPLOYEE_DOCUMENTS.value: DisplayInfo(
        "employee document",
        "bi-file-earmark-person",
        "info",
        name_fields=("fileName", "originalFileName"),
        field_extractor=_document_fields,
        context_extractor=_owner_name,
    ),
}


def default_display_resolver() -> DisplayInfoResolver:
    """Resolver with every built-in entity family registered."""
    resolver = DisplayInfoResolver()
    for original_type, info in BUILTIN_DISPLAY_INFO.items():
        resolver.register(original_type, info)
    return resolver
