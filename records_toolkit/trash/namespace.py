"""
Per-owner key-value namespaces and change notifications.

Some records (tender line items, tender documents) live in a namespace per
owner instead of the primary document store. The namespace store and the
publish/subscribe notifier are injected so restores into them can run and
be observed without any UI runtime.
"""

import asyncio
import copy
import inspect
import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Protocol

from .exceptions import StorageWriteFailure

logger = logging.getLogger(__name__)

NAMESPACE_CHANGED = "namespace.changed"


def namespace_key(resource_kind: str, owner_id: str) -> str:
    """Build the ``<resourceKind>_<ownerId>`` namespace key."""
    return f"{resource_kind}_{owner_id}"


class KeyValueStore(Protocol):
    """Storage for per-owner record arrays."""

    async def get(self, key: str) -> List[Dict[str, Any]]:
        """Return the records under ``key``; a missing key yields ``[]``."""
        ...

    async def set(self, key: str, records: List[Dict[str, Any]]) -> None:
        """Replace the records under ``key``."""
        ...


class Notifier(Protocol):
    """Fire-and-forget change notifications."""

    async def notify(self, event_name: str, detail: Dict[str, Any]) -> None:
        ...


class MemoryKeyValueStore:
    """In-process namespace store."""

    def __init__(self) -> None:
        self._data: Dict[str, List[Dict[str, Any]]] = {}

    async def get(self, key: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._data.get(key, []))

    async def set(self, key: str, records: List[Dict[str, Any]]) -> None:
        self._data[key] = copy.deepcopy(records)

    def keys(self) -> List[str]:
        return sorted(self._data)


class FileKeyValueStore:
    """Namespace store keeping one JSON file per key in a directory."""

    _UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, storage_path: str):
        self.storage_path = Path(storage_path)
        self.file_lock = asyncio.Lock()

    def _path(self, key: str) -> Path:
        return self.storage_path / f"{self._UNSAFE.sub('_', key)}.json"

    async def get(self, key: str) -> List[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Namespace %s holds unreadable data, treating as empty", key)
            return []
        if not isinstance(data, list):
            return []
        records = [entry for entry in data if isinstance(entry, dict)]
        if len(records) != len(data):
            logger.warning(
                "Namespace %s: skipped %d malformed entries",
                key,
                len(data) - len(records),
            )
        return records

    async def set(self, key: str, records: List[Dict[str, Any]]) -> None:
        async with self.file_lock:
            try:
                self.storage_path.mkdir(parents=True, exist_ok=True)
                with open(self._path(key), "w", encoding="utf-8") as f:
                    json.dump(records, f, ensure_ascii=False, default=str)
            except OSError as exc:
                raise StorageWriteFailure(
                    f"Failed to write namespace {key}: {exc}"
                ) from exc


Handler = Callable[[str, Dict[str, Any]], Any]


class EventBus:
    """
    Minimal publish/subscribe notifier.

    Handlers receive ``(event_name, detail)`` and may be plain functions or
    coroutine functions. A failing handler is logged and does not stop the
    remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> bool:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def notify(self, event_name: str, detail: Dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event_name, [])):
            try:
                result = handler(event_name, detail)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", event_name)
