"""Maintenance operations on the trash store."""

import logging
from collections import defaultdict
from typing import Dict, List

from .models import TrashRecord
from .store import SoftDeleteStore

logger = logging.getLogger(__name__)


class TrashAdmin:
    """
    Cleanup tools for corrupted or duplicated trash contents.

    Nothing here asks for confirmation; callers are expected to do that.
    """

    def __init__(self, store: SoftDeleteStore):
        self.store = store

    async def purge_all(self) -> int:
        """Permanently delete every trash record and return the count."""
        logger.warning("Purging all trash records")
        return await self.store.purge_all()

    async def find_duplicates(self) -> Dict[tuple, List[TrashRecord]]:
        """
        Report groups of records sharing a dedup key.

        Reads the backend directly so the listing repair pass does not
        remove the evidence. Each group is ordered newest first.
        """
        groups: Dict[tuple, List[TrashRecord]] = defaultdict(list)
        for record in await self.store.storage.list():
            groups[record.dedup_key].append(record)
        return {key: records for key, records in groups.items() if len(records) > 1}
