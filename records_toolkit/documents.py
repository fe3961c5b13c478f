"""
Document collections for business records.

Default implementations of the collaborator services the trash restore
strategies write to: ``create``, ``read_all`` and ``update`` per
collection. Records are schemaless JSON documents, which matches the
varying shapes of suppliers, materials, products and employees.
"""

import copy
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil import tz
from sqlalchemy import JSON, Column, DateTime, Index, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .trash.exceptions import StorageWriteFailure

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(tz=tz.UTC)


class DocumentDB(Base):  # type: ignore[valid-type,misc]
    """SQLAlchemy model for business documents."""

    __tablename__ = "documents"

    id = Column(String(50), primary_key=True)
    collection = Column(String(100), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_documents_collection", collection, created_at),)


class MemoryDocumentCollection:
    """In-process collection, used by tests and the memory backend."""

    def __init__(self, name: str, records: Optional[List[Dict[str, Any]]] = None):
        self.name = name
        self._records: Dict[str, Dict[str, Any]] = {}
        for record in records or []:
            record_id = str(record.get("id") or uuid.uuid4())
            self._records[record_id] = {**copy.deepcopy(record), "id": record_id}

    async def create(self, payload: Dict[str, Any]) -> str:
        record_id = str(uuid.uuid4())
        data = copy.deepcopy(payload)
        data["id"] = record_id
        self._records[record_id] = data
        return record_id

    async def read_all(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._records.values()]

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record else None

    async def update(self, record_id: str, payload: Dict[str, Any]) -> None:
        if record_id not in self._records:
            raise StorageWriteFailure(f"{self.name} {record_id} does not exist")
        self._records[record_id] = {**copy.deepcopy(payload), "id": record_id}

    async def delete(self, record_id: str) -> None:
        self._records.pop(record_id, None)


class SQLDocumentCollection:
    """Collection of JSON documents in a SQL table shared by all collections."""

    def __init__(
        self, name: str, session_factory: sessionmaker  # type: ignore[type-arg]
    ):
        self.name = name
        self.SessionLocal = session_factory

    @staticmethod
    def _to_dict(row: DocumentDB) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(row.data or {})  # type: ignore[arg-type]
        data["id"] = row.id
        return data

    async def create(self, payload: Dict[str, Any]) -> str:
        record_id = str(uuid.uuid4())
        data = {k: v for k, v in payload.items() if k != "id"}
        try:
            with self.SessionLocal() as session:
                session.add(
                    DocumentDB(
                        id=record_id,
                        collection=self.name,
                        data=data,
                        created_at=_now(),
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteFailure(
                f"Failed to create {self.name} document: {exc}"
            ) from exc
        return record_id

    async def read_all(self) -> List[Dict[str, Any]]:
        with self.SessionLocal() as session:
            rows = (
                session.query(DocumentDB)
                .filter(DocumentDB.collection == self.name)
                .order_by(DocumentDB.created_at)
                .all()
            )
            return [self._to_dict(row) for row in rows]

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        with self.SessionLocal() as session:
            row = (
                session.query(DocumentDB)
                .filter(
                    DocumentDB.collection == self.name, DocumentDB.id == record_id
                )
                .first()
            )
            return self._to_dict(row) if row else None

    async def update(self, record_id: str, payload: Dict[str, Any]) -> None:
        data = {k: v for k, v in payload.items() if k != "id"}
        try:
            with self.SessionLocal() as session:
                updated = (
                    session.query(DocumentDB)
                    .filter(
                        DocumentDB.collection == self.name,
                        DocumentDB.id == record_id,
                    )
                    .update(
                        {"data": data, "updated_at": _now()},
                        synchronize_session=False,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteFailure(
                f"Failed to update {self.name} {record_id}: {exc}"
            ) from exc

        if not updated:
            raise StorageWriteFailure(f"{self.name} {record_id} does not exist")

    async def delete(self, record_id: str) -> None:
        try:
            with self.SessionLocal() as session:
                session.query(DocumentDB).filter(
                    DocumentDB.collection == self.name, DocumentDB.id == record_id
                ).delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteFailure(
                f"Failed to delete {self.name} {record_id}: {exc}"
            ) from exc


class DocumentDatabase:
    """Engine and session factory handing out SQL document collections."""

    def __init__(self, connection_string: str):
        self.connection_string = connection_string
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]

    def initialize(self) -> None:
        self.engine = create_engine(self.connection_string, pool_pre_ping=True)
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def collection(self, name: str) -> SQLDocumentCollection:
        if self.SessionLocal is None:  # nosec B101
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return SQLDocumentCollection(name, self.SessionLocal)
