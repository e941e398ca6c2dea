"""Tests for the chain-hashed provenance tracker.

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

import json

from cbam_engine.provenance import (
    ProvenanceTracker,
    compute_hash,
    get_provenance_tracker,
    reset_provenance_tracker,
)


class TestComputeHash:
    """Tests for compute_hash."""

    def test_key_order_independent(self):
        """Canonical JSON makes key order irrelevant."""
        assert compute_hash({"a": 1, "b": 2}) == compute_hash({"b": 2, "a": 1})

    def test_sha256_hex(self):
        """Hash is a 64-character hex digest."""
        digest = compute_hash({"cn_code": "72083900"})

        assert len(digest) == 64
        int(digest, 16)


class TestProvenanceTracker:
    """Tests for ProvenanceTracker."""

    def test_first_entry_links_to_genesis(self, tracker):
        """The first entry's predecessor is the genesis hash."""
        tracker.record("benchmark", "72083900", "resolve", "abc")
        chain = tracker.get_chain("benchmark", "72083900")

        assert chain[0]["previous_hash"] == tracker.genesis_hash

    def test_entries_are_linked(self, tracker):
        """Each entry references the chain hash of the one before."""
        first = tracker.record("eori", "NL123456789", "validate", "h1")
        tracker.record("eori", "DE1234567890", "validate", "h2")
        newest = tracker.get_global_chain()[0]

        assert newest["previous_hash"] == first
        assert tracker.entry_count == 2
        assert tracker.entity_count == 2

    def test_verify_global_chain(self, tracker):
        """An untouched chain verifies."""
        for index in range(3):
            tracker.record("entry_validation", f"E{index}", "validate", f"h{index}")

        valid, chain = tracker.verify_chain()

        assert valid is True
        assert len(chain) == 3

    def test_tampering_detected(self, tracker):
        """Changing a stored data hash breaks verification."""
        tracker.record("materiality", "E1", "assess", "h1")
        tracker.record("materiality", "E2", "assess", "h2")
        tracker._global_chain[0]["data_hash"] = "forged"

        assert tracker.verify_chain()[0] is False
        assert tracker.verify_chain("materiality", "E1")[0] is False
        assert tracker.verify_chain("materiality", "E2")[0] is True

    def test_export_json(self, tracker):
        """Export is a JSON list of entries."""
        tracker.record("submission", "RPT-1", "validate", "h")

        data = json.loads(tracker.export_json())

        assert data[0]["entity_id"] == "RPT-1"

    def test_shared_tracker(self):
        """The process tracker is reused until reset."""
        first = get_provenance_tracker()

        assert get_provenance_tracker() is first
        reset_provenance_tracker()
        assert get_provenance_tracker() is not first
