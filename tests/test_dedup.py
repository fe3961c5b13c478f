"""
Tests for trash duplicate detection.
"""

import re

from records_toolkit.trash import DeduplicationGuard, TrashRecord
from records_toolkit.trash import dedup as dedup_module


def make_record(original_id="rm1", original_type="rawmaterials", name="Steel Rod"):
    guard = DeduplicationGuard()
    payload = {"name": name}
    return TrashRecord(
        id=f"trash-{original_id}",
        original_id=original_id,
        original_type=original_type,
        payload=payload,
        fingerprint=guard.fingerprint(payload),
        deleted_by="tester",
    )


class TestFingerprint:
    """Test content fingerprints."""

    def test_uses_first_identifying_field(self):
        """The name wins over title, file name and supplier name."""
        guard = DeduplicationGuard()

        both = guard.fingerprint({"name": "Rod", "title": "Other"})
        name_only = guard.fingerprint({"name": "Rod"})

        assert both == name_only

    def test_field_name_is_part_of_fingerprint(self):
        """Equal values in different fields do not collide."""
        guard = DeduplicationGuard()

        assert guard.fingerprint({"name": "Acme"}) != guard.fingerprint(
            {"supplierName": "Acme"}
        )

    def test_normalizes_case_and_whitespace(self):
        guard = DeduplicationGuard()

        assert guard.fingerprint({"title": " Steel Rod "}) == guard.fingerprint(
            {"title": "steel rod"}
        )

    def test_no_identifying_field(self):
        """Records without identifying fields have an empty fingerprint."""
        guard = DeduplicationGuard()

        assert guard.fingerprint({"price": "10"}) == ""
        assert guard.fingerprint({"name": ""}) == ""


class TestOriginalId:
    """Test original id handling."""

    def test_keeps_existing_id(self):
        guard = DeduplicationGuard()

        assert guard.ensure_original_id({"id": 42}) == "42"

    def test_synthesizes_missing_id(self):
        """Missing or blank ids are replaced with a generated id."""
        guard = DeduplicationGuard()

        for payload in ({}, {"id": None}, {"id": "  "}):
            generated = guard.ensure_original_id(payload)
            assert re.fullmatch(r"generated_\d+_[0-9a-z]{9}", generated)

    def test_synthesized_ids_differ(self):
        guard = DeduplicationGuard()

        assert guard.ensure_original_id({}) != guard.ensure_original_id({})


class TestDuplicateLookup:
    """Test duplicate detection against active records."""

    def test_detects_duplicate(self):
        guard = DeduplicationGuard()
        existing = make_record()

        decision = guard.check(
            [existing], {"id": "rm1", "name": "Steel Rod"}, "rawmaterials"
        )

        assert decision.is_duplicate
        assert decision.duplicate is existing

    def test_other_type_is_not_duplicate(self):
        guard = DeduplicationGuard()

        decision = guard.check(
            [make_record()], {"id": "rm1", "name": "Steel Rod"}, "localproducts"
        )

        assert not decision.is_duplicate

    def test_changed_content_is_not_duplicate(self):
        """Same entity with a different name is a new delete event."""
        guard = DeduplicationGuard()

        decision = guard.check(
            [make_record()], {"id": "rm1", "name": "Copper Rod"}, "rawmaterials"
        )

        assert not decision.is_duplicate
        assert decision.original_id == "rm1"

    def test_missing_id_matches_synthesized_record(self):
        """An id-less payload matches an earlier id-less delete of it."""
        guard = DeduplicationGuard()
        existing = make_record(original_id="generated_1700000000000_abcdefghi")

        decision = guard.check([existing], {"name": "steel rod "}, "rawmaterials")

        assert decision.duplicate is existing
        assert decision.original_id == existing.original_id

    def test_missing_id_ignores_real_ids(self):
        """Records that arrived with their own id are not matched by content."""
        guard = DeduplicationGuard()

        decision = guard.check([make_record()], {"name": "Steel Rod"}, "rawmaterials")

        assert not decision.is_duplicate
        assert decision.original_id.startswith("generated_")

    def test_missing_id_without_fingerprint_is_never_duplicate(self):
        guard = DeduplicationGuard()
        existing = TrashRecord(
            original_id="generated_1700000000000_abcdefghi",
            original_type="rawmaterials",
            payload={"quantity": 3},
            deleted_by="tester",
        )

        decision = guard.check([existing], {"quantity": 3}, "rawmaterials")

        assert not decision.is_duplicate
        assert decision.original_id != existing.original_id


class TestSubIds:
    """Test id generation for restored sub-records."""

    def test_regular_form(self):
        sub_id = DeduplicationGuard.new_sub_id([])

        assert re.fullmatch(r"\d+_[0-9a-z]{9}_restored", sub_id)

    def test_escalates_on_collision(self, monkeypatch):
        """A colliding candidate is replaced with the higher-entropy form."""
        suffixes = iter(["aaaaaaaaa", "bbbbbbbbbbbb"])
        monkeypatch.setattr(dedup_module, "_epoch_ms", lambda: 1000)
        monkeypatch.setattr(
            dedup_module, "_random_suffix", lambda length: next(suffixes)
        )

        sub_id = DeduplicationGuard.new_sub_id(["1000_aaaaaaaaa_restored"])

        assert sub_id.endswith("_bbbbbbbbbbbb_restored_v2")
        assert sub_id != "1000_aaaaaaaaa_restored"
