"""Normalize arbitrary records into storable trash snapshots."""

from datetime import date, datetime, time
from typing import Any, Dict, Mapping


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    if isinstance(obj, Mapping):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dict__"):
        return {k: v for k, v in vars(obj).items() if not k.startswith("_")}
    return {}


def sanitize_record(obj: Any) -> Dict[str, Any]:
    """
    Build a storable snapshot of a record.

    ``None`` values are dropped, date and time values become ISO-8601
    strings, and nested mappings are cleaned recursively. Lists are kept
    exactly as given.

    Args:
        obj: Mapping, pydantic model or plain object

    Returns:
        New dictionary; the input is never modified
    """
    cleaned: Dict[str, Any] = {}

    for key, value in _as_mapping(obj).items():
        if value is None:
            continue

        if isinstance(value, (datetime, date, time)):
            cleaned[key] = value.isoformat()
        elif isinstance(value, Mapping):
            cleaned[key] = sanitize_record(value)
        else:
            cleaned[key] = value

    return cleaned
