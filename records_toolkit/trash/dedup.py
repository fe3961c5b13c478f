"""
Duplicate detection for the trash store.

Redundant delete triggers (double clicks, concurrent UI events) must not
produce several trash entries for the same entity, and restored
sub-records must never collide with ids already present in their parent.
"""

import hashlib
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Collection, Iterable, Mapping, Optional

from .models import TrashRecord, type_tag

# Human-identifying fields, in order of preference
IDENTIFYING_FIELDS = ("name", "title", "fileName", "supplierName")

_BASE36 = string.digits + string.ascii_lowercase
SYNTHESIZED_PREFIX = "generated_"


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class DedupDecision:
    """Outcome of checking a payload against the active trash records."""

    original_id: str
    fingerprint: str
    duplicate: Optional[TrashRecord] = None

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate is not None


class DeduplicationGuard:
    """Fingerprinting, id synthesis and duplicate lookup."""

    def __init__(self, identifying_fields: Iterable[str] = IDENTIFYING_FIELDS):
        self.identifying_fields = tuple(identifying_fields)

    def fingerprint(self, payload: Mapping[str, Any]) -> str:
        """
        Derive a content fingerprint from the first identifying field.

        Args:
            payload: Sanitized record fields

        Returns:
            Hex SHA-256 digest, or an empty string when the record has no
            identifying field
        """
        for field in self.identifying_fields:
            value = payload.get(field)
            if value is None or value == "":
                continue
            normalized = str(value).strip().casefold()
            return hashlib.sha256(f"{field}:{normalized}".encode("utf-8")).hexdigest()
        return ""

    @staticmethod
    def synthesize_id() -> str:
        """Generate a stand-in id for records that arrive without one."""
        return f"{SYNTHESIZED_PREFIX}{_epoch_ms()}_{_random_suffix(9)}"

    @staticmethod
    def has_original_id(payload: Mapping[str, Any]) -> bool:
        original_id = payload.get("id")
        return original_id is not None and str(original_id).strip() != ""

    def ensure_original_id(self, payload: Mapping[str, Any]) -> str:
        if not self.has_original_id(payload):
            return self.synthesize_id()
        return str(payload["id"])

    @staticmethod
    def find_synthesized(
        records: Iterable[TrashRecord], original_type: Any, fingerprint: str
    ) -> Optional[TrashRecord]:
        """Return an id-less record of the same type and content, if any."""
        if not fingerprint:
            return None
        tag = type_tag(original_type)
        for record in records:
            if (
                record.original_type == tag
                and record.original_id.startswith(SYNTHESIZED_PREFIX)
                and record.fingerprint == fingerprint
            ):
                return record
        return None

    @staticmethod
    def find_duplicate(
        records: Iterable[TrashRecord],
        original_type: Any,
        original_id: str,
        fingerprint: str,
    ) -> Optional[TrashRecord]:
        """Return the active record with the same dedup key, if any."""
        key = (type_tag(original_type), original_id, fingerprint)
        for record in records:
            if record.dedup_key == key:
                return record
        return None

    def check(
        self,
        records: Iterable[TrashRecord],
        payload: Mapping[str, Any],
        original_type: Any,
    ) -> DedupDecision:
        """
        Check a payload against the active trash records.

        The original id is synthesized first when missing, so the decision
        always carries a usable id. A payload without an id matches an
        earlier id-less record with the same non-empty fingerprint.
        """
        records = list(records)
        fingerprint = self.fingerprint(payload)

        if not self.has_original_id(payload):
            previous = self.find_synthesized(records, original_type, fingerprint)
            if previous is not None:
                return DedupDecision(
                    original_id=previous.original_id,
                    fingerprint=fingerprint,
                    duplicate=previous,
                )

        original_id = self.ensure_original_id(payload)
        duplicate = self.find_duplicate(
            records, original_type, original_id, fingerprint
        )
        return DedupDecision(
            original_id=original_id, fingerprint=fingerprint, duplicate=duplicate
        )

    @staticmethod
    def new_sub_id(existing_ids: Collection[Any]) -> str:
        """
        Generate an id for a restored sub-record.

        Starts with the regular ``<ms>_<suffix>_restored`` form and escalates
        to a longer ``_restored_v2`` form while the candidate collides with
        an id already present in the parent.
        """
        taken = {str(i) for i in existing_ids if i is not None}
        candidate = f"{_epoch_ms()}_{_random_suffix(9)}_restored"

        while candidate in taken:
            jitter = secrets.randbelow(1000)
            candidate = (
                f"{_epoch_ms() + jitter}_{_random_suffix(12)}_restored_v2"
            )

        return candidate
