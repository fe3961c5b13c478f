"""
Storage backends for trash records.

Provides an abstract interface and implementations for persisting trash
records. Backends only add, list, fetch and remove; records are never
updated in place.
"""

import asyncio
import itertools
import json
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import JSON, Column, DateTime, Index, String, create_engine, desc
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .exceptions import StorageWriteFailure
from .models import ContextRefs, TrashRecord

Base = declarative_base()


class TrashRecordDB(Base):  # type: ignore[valid-type,misc]
    """SQLAlchemy model for trash records."""

    __tablename__ = "trash_records"

    id = Column(String(50), primary_key=True)
    original_id = Column(String(100), nullable=False)
    original_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    context_refs = Column(JSON, nullable=True)
    fingerprint = Column(String(64), nullable=False, default="")
    deleted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    deleted_by = Column(String(200), nullable=False)

    __table_args__ = (
        Index("idx_trash_dedup", original_type, original_id, fingerprint),
    )


class TrashStorage(ABC):
    """Abstract base class for trash record storage backends."""

    async def initialize(self) -> None:
        """Initialize the storage backend."""
        pass

    @abstractmethod
    async def add(self, record: TrashRecord) -> str:
        """
        Persist a new trash record.

        Args:
            record: Record to store; its ``id`` is ignored

        Returns:
            Store-assigned id

        Raises:
            StorageWriteFailure: If the write fails
        """

    @abstractmethod
    async def list(self) -> List[TrashRecord]:
        """Return all records ordered by ``deleted_at`` descending."""

    async def get(self, trash_id: str) -> Optional[TrashRecord]:
        """
        Get a record by id.

        Args:
            trash_id: Store-assigned id

        Returns:
            Record or None if not found
        """
        for record in await self.list():
            if record.id == trash_id:
                return record
        return None

    @abstractmethod
    async def remove(self, trash_id: str) -> None:
        """
        Remove a record. Removing an absent id is not an error.

        Raises:
            StorageWriteFailure: If the delete fails
        """


class MemoryTrashStorage(TrashStorage):
    """In-process storage backend, used for tests and the memory backend."""

    def __init__(self) -> None:
        self._records: Dict[str, Tuple[int, TrashRecord]] = {}
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

    async def add(self, record: TrashRecord) -> str:
        trash_id = str(uuid.uuid4())
        async with self._lock:
            stored = record.model_copy(update={"id": trash_id})
            self._records[trash_id] = (next(self._sequence), stored)
        return trash_id

    async def list(self) -> List[TrashRecord]:
        # Insertion order breaks ties between identical timestamps
        entries = sorted(
            self._records.values(),
            key=lambda entry: (entry[1].deleted_at, entry[0]),
            reverse=True,
        )
        return [record for _, record in entries]

    async def get(self, trash_id: str) -> Optional[TrashRecord]:
        entry = self._records.get(trash_id)
        return entry[1] if entry else None

    async def remove(self, trash_id: str) -> None:
        async with self._lock:
            self._records.pop(trash_id, None)


class SQLTrashStorage(TrashStorage):
    """SQL database storage backend for trash records."""

    def __init__(self, connection_string: str):
        """
        Initialize SQL trash storage.

        Args:
            connection_string: Database connection string
        """
        self.connection_string = connection_string
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]

    async def initialize(self) -> None:
        """Initialize the database."""
        if self.connection_string.startswith("sqlite"):
            # SQLite doesn't support pool_size and max_overflow
            self.engine = create_engine(self.connection_string, pool_pre_ping=True)
        else:
            self.engine = create_engine(
                self.connection_string,
                pool_pre_ping=True,
                pool_size=10,
                max_overflow=20,
            )

        Base.metadata.create_all(bind=self.engine)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def _session(self) -> Any:
        if self.SessionLocal is None:  # nosec B101
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self.SessionLocal()

    def _record_to_db(self, record: TrashRecord, trash_id: str) -> TrashRecordDB:
        return TrashRecordDB(
            id=trash_id,
            original_id=record.original_id,
            original_type=record.original_type,
            payload=record.payload,
            context_refs=record.context_refs.model_dump(exclude_none=True),
            fingerprint=record.fingerprint,
            deleted_at=record.deleted_at,
            deleted_by=record.deleted_by,
        )

    def _db_to_record(self, db_record: TrashRecordDB) -> TrashRecord:
        deleted_at: datetime = db_record.deleted_at  # type: ignore[assignment]
        return TrashRecord(
            id=db_record.id,
            original_id=db_record.original_id,
            original_type=db_record.original_type,
            payload=db_record.payload or {},
            context_refs=ContextRefs(**(db_record.context_refs or {})),
            fingerprint=db_record.fingerprint or "",
            deleted_at=deleted_at,
            deleted_by=db_record.deleted_by,
        )

    async def add(self, record: TrashRecord) -> str:
        trash_id = str(uuid.uuid4())
        try:
            with self._session() as session:
                session.add(self._record_to_db(record, trash_id))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteFailure(
                f"Failed to write trash record for {record.original_type} "
                f"{record.original_id}: {exc}"
            ) from exc
        return trash_id

    async def list(self) -> List[TrashRecord]:
        with self._session() as session:
            rows = (
                session.query(TrashRecordDB)
                .order_by(desc(TrashRecordDB.deleted_at))
                .all()
            )
            return [self._db_to_record(row) for row in rows]

    async def get(self, trash_id: str) -> Optional[TrashRecord]:
        with self._session() as session:
            row = (
                session.query(TrashRecordDB)
                .filter(TrashRecordDB.id == trash_id)
                .first()
            )
            if row:
                return self._db_to_record(row)
            return None

    async def remove(self, trash_id: str) -> None:
        try:
            with self._session() as session:
                session.query(TrashRecordDB).filter(
                    TrashRecordDB.id == trash_id
                ).delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteFailure(
                f"Failed to delete trash record {trash_id}: {exc}", trash_id=trash_id
            ) from exc


# Storage factory
_storage_instances: Dict[str, TrashStorage] = {}


async def get_trash_storage(backend: str = "memory", **kwargs: Any) -> TrashStorage:
    """
    Get or create a trash storage instance.

    Args:
        backend: Storage backend type (memory, sqlite, postgresql)
        **kwargs: Backend-specific parameters

    Returns:
        Initialized trash storage instance
    """
    cache_key = f"{backend}:{json.dumps(kwargs, sort_keys=True)}"

    if cache_key not in _storage_instances:
        if backend == "memory":
            storage: TrashStorage = MemoryTrashStorage()
        elif backend in ("sqlite", "postgresql"):
            connection_string = kwargs.get("connection_string")
            if not connection_string:
                raise ValueError(f"connection_string is required for {backend} backend")
            storage = SQLTrashStorage(connection_string)
        else:
            raise ValueError(f"Unknown storage backend: {backend}")

        await storage.initialize()
        _storage_instances[cache_key] = storage

    return _storage_instances[cache_key]
