"""
Restoration routing.

Dispatches a restore request to the strategy registered for the record's
type tag. Fetching the record, running the strategy and deleting the
record on success form one unit of work per trash id.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .exceptions import UnsupportedType
from .models import RestoreResult, type_tag
from .store import SoftDeleteStore
from .strategies import RestoreStrategy

logger = logging.getLogger(__name__)


class RestorationRouter:
    """Strategy registry and restore entry point."""

    def __init__(
        self,
        store: SoftDeleteStore,
        strategies: Optional[Dict[Any, RestoreStrategy]] = None,
        activity_logger: Optional[Any] = None,
    ):
        self.store = store
        self.activity_logger = activity_logger
        self._strategies: Dict[str, RestoreStrategy] = {}
        # Restores of one trash id run one at a time
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

        for original_type, strategy in (strategies or {}).items():
            self.register(original_type, strategy)

    def register(self, original_type: Any, strategy: RestoreStrategy) -> None:
        """Register (or replace) the strategy for a type tag."""
        self._strategies[type_tag(original_type)] = strategy

    def unregister(self, original_type: Any) -> bool:
        return self._strategies.pop(type_tag(original_type), None) is not None

    def is_registered(self, original_type: Any) -> bool:
        return type_tag(original_type) in self._strategies

    def strategy_for(self, original_type: Any) -> Optional[RestoreStrategy]:
        return self._strategies.get(type_tag(original_type))

    @property
    def registered_types(self) -> List[str]:
        return sorted(self._strategies)

    def _acquire_slot(self, trash_id: str) -> asyncio.Lock:
        if trash_id not in self._locks:
            self._locks[trash_id] = asyncio.Lock()
            self._waiters[trash_id] = 0
        self._waiters[trash_id] += 1
        return self._locks[trash_id]

    def _release_slot(self, trash_id: str) -> None:
        self._waiters[trash_id] -= 1
        if self._waiters[trash_id] == 0:
            del self._waiters[trash_id]
            del self._locks[trash_id]

    async def restore(self, trash_id: str) -> RestoreResult:
        """
        Restore a trash record to its home location.

        Args:
            trash_id: Id of the trash record

        Returns:
            Reference to the restored entity

        Raises:
            TrashRecordNotFound: No such record (or it was already restored)
            UnsupportedType: No strategy is registered for the record's type
            MissingParent: A nested record's parent no longer exists
            StorageWriteFailure: A backend write failed

        The trash record is kept whenever an exception is raised, so the
        restore can be retried.
        """
        lock = self._acquire_slot(trash_id)
        try:
            async with lock:
                return await self._restore(trash_id)
        finally:
            self._release_slot(trash_id)

    async def _restore(self, trash_id: str) -> RestoreResult:
        record = await self.store.get(trash_id)
        payload = record.recover_payload()

        strategy = self.strategy_for(record.original_type)
        if strategy is None:
            logger.error(
                "No restore strategy registered for %s (trash record %s)",
                record.original_type,
                trash_id,
            )
            raise UnsupportedType(trash_id, record.original_type)

        try:
            result = await strategy.restore(record, payload)
        except Exception:
            logger.warning(
                "Restore of %s %s failed, trash record %s kept",
                record.original_type,
                record.original_id,
                trash_id,
                exc_info=True,
            )
            raise

        await self.store.permanently_delete(trash_id)

        logger.info(
            "Restored trash record %s (%s) to %s",
            trash_id,
            record.original_type,
            result.location,
        )

        if self.activity_logger:
            try:
                await self.activity_logger.log_activity(
                    action="RESTORE",
                    entity_type=record.original_type,
                    entity_id=trash_id,
                    details={
                        "original_id": record.original_id,
                        "restored_id": result.restored_id,
                        "location": result.location,
                    },
                )
            except Exception:
                # The restore is already committed
                logger.warning(
                    "Activity log for restore of %s failed",
                    trash_id,
                    exc_info=True,
                )

        return result
