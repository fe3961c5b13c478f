"""Exceptions for trash and restoration operations."""

from typing import Optional


class TrashError(Exception):
    """Base exception for trash operations."""

    def __init__(self, message: str, trash_id: Optional[str] = None):
        self.trash_id = trash_id
        super().__init__(message)


class TrashRecordNotFound(TrashError):
    """Raised when a trash record does not exist (or was already restored)."""

    def __init__(self, trash_id: str):
        super().__init__(f"Trash record {trash_id} not found", trash_id=trash_id)


class MissingParent(TrashError):
    """Raised when a nested record's owning parent no longer exists."""

    def __init__(
        self,
        trash_id: Optional[str],
        parent_type: Optional[str],
        parent_id: Optional[str],
    ):
        self.parent_type = parent_type
        self.parent_id = parent_id
        if parent_id:
            message = (
                f"Cannot restore trash record {trash_id}: parent "
                f"{parent_type or 'record'} {parent_id} no longer exists"
            )
        else:
            message = (
                f"Cannot restore trash record {trash_id}: "
                "no parent reference was captured at delete time"
            )
        super().__init__(message, trash_id=trash_id)


class UnsupportedType(TrashError):
    """Raised when no restore strategy is registered for a type tag."""

    def __init__(self, trash_id: Optional[str], original_type: str):
        self.original_type = original_type
        super().__init__(
            f"Cannot restore trash record {trash_id}: "
            f"no restore strategy registered for type '{original_type}'",
            trash_id=trash_id,
        )


class StorageWriteFailure(TrashError):
    """Raised when a storage backend fails to persist a change."""

    def __init__(self, message: str, trash_id: Optional[str] = None):
        super().__init__(message, trash_id=trash_id)


class DeleteVerificationFailure(TrashError):
    """Raised when a deleted trash record is still observable afterwards."""

    def __init__(self, trash_id: str):
        super().__init__(
            f"Trash record {trash_id} is still present after deletion",
            trash_id=trash_id,
        )
