"""
Service layer for the trash store.

Moves records into the trash, lists them, and deletes them permanently.
Every delete is idempotent so that concurrent callers (a restore racing a
purge, the listing repair pass racing either) never fail on records that
are already gone.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from ..config import get_config
from .context import extract_context_refs
from .dedup import DeduplicationGuard
from .exceptions import DeleteVerificationFailure, TrashRecordNotFound
from .models import AlreadyTrashed, ContextRefs, TrashRecord, type_tag
from .sanitizer import sanitize_record
from .storage import TrashStorage

logger = logging.getLogger(__name__)


class SoftDeleteStore:
    """
    Persisted store of trash records.

    Records are written once by :meth:`move_to_trash` and removed once by
    :meth:`permanently_delete`, either directly or after a successful
    restore. They are never updated in place.
    """

    def __init__(
        self,
        storage: TrashStorage,
        guard: Optional[DeduplicationGuard] = None,
        activity_logger: Optional[Any] = None,
        repair_on_list: Optional[bool] = None,
        default_deleted_by: Optional[str] = None,
    ):
        """
        Initialize the trash store.

        Args:
            storage: Backend holding the trash records
            guard: Duplicate detection; a default guard is created if omitted
            activity_logger: Optional service with an async ``log_activity``
            repair_on_list: Purge older duplicates while listing
                (defaults to configuration)
            default_deleted_by: Provenance used when callers pass none
                (defaults to configuration)
        """
        config = get_config()
        self.storage = storage
        self.guard = guard or DeduplicationGuard()
        self.activity_logger = activity_logger
        self.repair_on_list = (
            config.repair_duplicates_on_list
            if repair_on_list is None
            else repair_on_list
        )
        self.default_deleted_by = default_deleted_by or config.default_deleted_by

    async def move_to_trash(
        self,
        payload: Any,
        original_type: Any,
        context_refs: Optional[ContextRefs] = None,
        deleted_by: Optional[str] = None,
    ) -> Union[str, AlreadyTrashed]:
        """
        Move a deleted entity into the trash.

        Args:
            payload: The entity's fields, including its ``id`` if it has one
            original_type: Entity family tag
            context_refs: Parent/owner references; derived from the payload
                when omitted
            deleted_by: Who deleted the entity

        Returns:
            The new trash record id, or ``AlreadyTrashed`` when an identical
            record is already in the trash

        Raises:
            StorageWriteFailure: If the backend cannot persist the record
        """
        tag = type_tag(original_type)
        snapshot = sanitize_record(payload)

        decision = self.guard.check(await self.storage.list(), snapshot, tag)
        if decision.is_duplicate:
            existing = decision.duplicate
            logger.warning(
                "%s %s is already in the trash as %s, skipping",
                tag,
                decision.original_id,
                existing.id if existing else None,
            )
            return AlreadyTrashed(
                existing_id=existing.id if existing else None,
                original_type=tag,
                original_id=decision.original_id,
            )

        if context_refs is None:
            context_refs = extract_context_refs(tag, snapshot)

        record = TrashRecord(
            original_id=decision.original_id,
            original_type=tag,
            payload={k: v for k, v in snapshot.items() if k != "id"},
            context_refs=context_refs,
            fingerprint=decision.fingerprint,
            deleted_by=deleted_by or self.default_deleted_by,
        )

        trash_id = await self.storage.add(record)
        logger.info("Moved %s %s to trash as %s", tag, record.original_id, trash_id)

        await self._log_activity(
            "TRASH",
            trash_id,
            tag,
            {"original_id": record.original_id, "deleted_by": record.deleted_by},
        )

        return trash_id

    async def list_all(
        self,
        types: Optional[Iterable[Any]] = None,
        search: Optional[str] = None,
    ) -> List[TrashRecord]:
        """
        List trash records, newest first.

        When two records share a dedup key, the older one is deleted as a
        side effect and left out of the result.

        Args:
            types: Optional type tags to keep
            search: Optional case-insensitive text matched against the
                payload's identifying fields

        Returns:
            Active trash records ordered by ``deleted_at`` descending
        """
        records = await self.storage.list()

        unique: List[TrashRecord] = []
        seen: Dict[tuple, TrashRecord] = {}
        for record in records:
            if record.dedup_key in seen and self.repair_on_list:
                logger.warning(
                    "Trash record %s duplicates newer record %s, purging",
                    record.id,
                    seen[record.dedup_key].id,
                )
                if record.id:
                    await self.permanently_delete(record.id)
                continue
            seen.setdefault(record.dedup_key, record)
            unique.append(record)

        if types is not None:
            wanted = {type_tag(t) for t in types}
            unique = [r for r in unique if r.original_type in wanted]

        if search:
            needle = search.casefold()
            unique = [r for r in unique if needle in self._search_text(r)]

        return unique

    def _search_text(self, record: TrashRecord) -> str:
        values = [
            str(record.payload.get(field, ""))
            for field in self.guard.identifying_fields
        ]
        values.append(record.original_id)
        return " ".join(values).casefold()

    async def get(self, trash_id: str) -> TrashRecord:
        """
        Get a single trash record.

        Raises:
            TrashRecordNotFound: If no record has this id
        """
        record = await self.storage.get(trash_id)
        if record is None:
            raise TrashRecordNotFound(trash_id)
        return record

    async def permanently_delete(self, trash_id: str) -> bool:
        """
        Permanently delete a trash record.

        A record that is already gone counts as deleted.

        Returns:
            True once the record is confirmed absent

        Raises:
            DeleteVerificationFailure: If the record is still present after
                the delete call
        """
        if await self.storage.get(trash_id) is None:
            logger.debug("Trash record %s already absent", trash_id)
            return True

        await self.storage.remove(trash_id)

        if await self.storage.get(trash_id) is not None:
            raise DeleteVerificationFailure(trash_id)

        logger.info("Permanently deleted trash record %s", trash_id)
        return True

    async def purge_all(self) -> int:
        """
        Permanently delete every trash record.

        Returns:
            Number of records deleted
        """
        records = await self.storage.list()
        for record in records:
            if record.id:
                await self.permanently_delete(record.id)

        logger.info("Purged %d trash records", len(records))
        await self._log_activity("PURGE", None, None, {"count": len(records)})
        return len(records)

    async def _log_activity(
        self,
        action: str,
        trash_id: Optional[str],
        original_type: Optional[str],
        details: Dict[str, Any],
    ) -> None:
        if not self.activity_logger:
            return
        try:
            await self.activity_logger.log_activity(
                action=action,
                entity_type=original_type,
                entity_id=trash_id,
                details=details,
            )
        except Exception:
            logger.warning(
                "Activity log for %s %s failed", action, trash_id, exc_info=True
            )
