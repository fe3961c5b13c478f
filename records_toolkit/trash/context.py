"""Capture parent and owner references from a record at delete time."""

from typing import Any, Callable, Dict, Mapping, Optional

from .models import ContextRefs, TrashType, type_tag

# (id field, name field, parent type) in order of preference
QUOTE_PARENT_FIELDS = (
    ("rawMaterialId", "rawMaterialName", TrashType.RAW_MATERIALS.value),
    ("localProductId", "localProductName", TrashType.LOCAL_PRODUCTS.value),
    ("foreignProductId", "foreignProductName", TrashType.FOREIGN_PRODUCTS.value),
)

# Every payload key that only points at a quote's parent
QUOTE_REFERENCE_FIELDS = tuple(
    field
    for id_field, name_field, _ in QUOTE_PARENT_FIELDS
    for field in (id_field, name_field)
)


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _quote_refs(payload: Mapping[str, Any]) -> ContextRefs:
    for id_field, name_field, parent_type in QUOTE_PARENT_FIELDS:
        if _text(payload.get(id_field)):
            return ContextRefs(
                parent_type=parent_type,
                parent_id=_text(payload.get(id_field)),
                parent_name=_text(payload.get(name_field)),
            )
    return ContextRefs(
        parent_type=_text(payload.get("parentType")),
        parent_id=_text(payload.get("parentId")),
        parent_name=_text(payload.get("parentName")),
    )


def _tender_item_refs(payload: Mapping[str, Any]) -> ContextRefs:
    tender = payload.get("tenderContext")
    if not isinstance(tender, Mapping):
        tender = {}
    return ContextRefs(
        owner_id=_text(tender.get("tenderId")) or _text(payload.get("tenderId")),
        owner_name=_text(tender.get("tenderTitle"))
        or _text(payload.get("tenderTitle")),
    )


def _tender_document_refs(payload: Mapping[str, Any]) -> ContextRefs:
    return ContextRefs(
        owner_id=_text(payload.get("tenderId")),
        owner_name=_text(payload.get("tenderTitle")),
    )


def _employee_document_refs(payload: Mapping[str, Any]) -> ContextRefs:
    return ContextRefs(
        owner_id=_text(payload.get("employeeId")),
        owner_name=_text(payload.get("employeeName")),
    )


EXTRACTORS: Dict[str, Callable[[Mapping[str, Any]], ContextRefs]] = {
    TrashType.PRICE_QUOTES.value: _quote_refs,
    TrashType.TENDER_ITEMS.value: _tender_item_refs,
    TrashType.TENDER_DOCUMENTS.value: _tender_document_refs,
    TrashType.EMPLOYEE_DOCUMENTS.value: _employee_document_refs,
}


def extract_context_refs(
    original_type: Any, payload: Mapping[str, Any]
) -> ContextRefs:
    """
    Derive context references for a record about to be trashed.

    Flat entity families have no owner and yield empty references.
    """
    extractor = EXTRACTORS.get(type_tag(original_type))
    if extractor is None:
        return ContextRefs()
    return extractor(payload)
