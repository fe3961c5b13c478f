"""
Data models for the trash store.

These models define the immutable trash record, the context captured at
delete time, and the results returned by trash and restore operations.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dateutil import tz
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Keys that belong to the trash store rather than to the deleted entity
STORE_FIELDS = frozenset(
    {
        "id",
        "originalId",
        "originalType",
        "originalCollection",
        "deletedAt",
        "deletedBy",
        "original_id",
        "original_type",
        "deleted_at",
        "deleted_by",
    }
)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=tz.UTC)


class TrashType(str, Enum):
    """Built-in entity families that can be moved to the trash."""

    SUPPLIERS = "suppliers"
    FOREIGN_SUPPLIERS = "foreignSuppliers"
    CUSTOMERS = "customers"
    EMPLOYEES = "employees"
    RAW_MATERIALS = "rawmaterials"
    LOCAL_PRODUCTS = "localproducts"
    FOREIGN_PRODUCTS = "foreignproducts"
    MANUFACTURED_PRODUCTS = "manufacturedProducts"
    PRICE_QUOTES = "price_quotes"
    TENDER_ITEMS = "tenderItems"
    TENDER_DOCUMENTS = "tender_documents"
    MANUFACTURED_PRODUCT_DOCUMENTS = "manufactured_product_documents"
    EMPLOYEE_DOCUMENTS = "employee_documents"


class StrategyKind(str, Enum):
    """Families of restore behavior."""

    FLAT = "flat"
    NESTED_MERGE = "nested_merge"
    EPHEMERAL_NAMESPACE = "ephemeral_namespace"


def type_tag(original_type: Any) -> str:
    """Normalize a TrashType member or plain string to its tag."""
    if isinstance(original_type, Enum):
        return str(original_type.value)
    return str(original_type)


class ContextRefs(BaseModel):
    """Foreign keys to an owning parent, captured at delete time."""

    model_config = ConfigDict(frozen=True)

    parent_type: Optional[str] = Field(
        None, description="Type tag of the parent holding the record"
    )
    parent_id: Optional[str] = Field(None, description="ID of the parent record")
    parent_name: Optional[str] = Field(None, description="Display name of parent")
    owner_id: Optional[str] = Field(
        None, description="Owner of an ephemeral namespace (e.g. a tender)"
    )
    owner_name: Optional[str] = Field(None, description="Display name of owner")

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class TrashRecord(BaseModel):
    """Immutable snapshot of a deleted entity plus restoration metadata."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(None, description="Store-assigned identifier")
    original_id: str = Field(
        ..., description="ID of the entity in its home", min_length=1
    )
    original_type: str = Field(..., description="Entity family tag", min_length=1)
    payload: Dict[str, Any] = Field(
        default_factory=dict, description="Sanitized snapshot of the entity"
    )
    context_refs: ContextRefs = Field(default_factory=ContextRefs)
    fingerprint: str = Field("", description="Content fingerprint for dedup")
    deleted_at: datetime = Field(default_factory=utcnow)
    deleted_by: str = Field(..., description="Who deleted the entity")

    @field_validator("original_type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        """Accept TrashType members as well as plain tags."""
        return type_tag(v)

    @field_validator("deleted_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Backends without timezone support hand back naive UTC values."""
        if v.tzinfo is None:
            return v.replace(tzinfo=tz.UTC)
        return v

    @property
    def dedup_key(self) -> tuple:
        return (self.original_type, self.original_id, self.fingerprint)

    def recover_payload(self) -> Dict[str, Any]:
        """Return the original entity fields without store-only keys."""
        return {k: v for k, v in self.payload.items() if k not in STORE_FIELDS}


class AlreadyTrashed(BaseModel):
    """Result of a redundant move-to-trash: nothing was written."""

    model_config = ConfigDict(frozen=True)

    existing_id: Optional[str] = None
    original_type: str
    original_id: str

    def __bool__(self) -> bool:
        return False


class RestoreResult(BaseModel):
    """Reference to the restored entity in its home location."""

    model_config = ConfigDict(use_enum_values=True)

    trash_id: Optional[str] = None
    original_type: str
    strategy: StrategyKind
    restored_id: str = Field(..., description="ID of the restored entity")
    location: str = Field(..., description="Collection, parent or namespace key")
    details: Dict[str, Any] = Field(default_factory=dict)
