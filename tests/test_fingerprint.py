"""
Tests for change fingerprints and the sync decision

Tests cover:
- Fingerprints are stable under key order
- decide(): explicit create/update, change-driven update only
- In-flight entities are never acted on
- ChangeTracker previous/current bookkeeping
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from channex_sync.services.fingerprint import ChangeTracker, SyncAction, compute_fingerprint, decide


class TestComputeFingerprint:

    def test_key_order_does_not_matter(self):
        assert compute_fingerprint({"a": 1, "b": [1, 2]}) == compute_fingerprint({"b": [1, 2], "a": 1})

    def test_value_change_changes_fingerprint(self):
        assert compute_fingerprint({"title": "A"}) != compute_fingerprint({"title": "B"})

    def test_is_sha256_hex(self):
        fingerprint = compute_fingerprint({"title": "A"})
        assert len(fingerprint) == 64
        int(fingerprint, 16)


class TestDecide:
    """Next action for one entity"""

    @pytest.mark.parametrize("exists, expected", [
        (True, SyncAction.UPDATE),
        (False, SyncAction.CREATE),
    ])
    def test_explicit(self, exists, expected):
        assert decide(None, "x", in_flight=False, exists_remotely=exists, explicit=True) is expected

    def test_in_flight_wins_over_everything(self):
        assert decide("a", "b", in_flight=True, exists_remotely=True, explicit=True) is SyncAction.NONE
        assert decide("a", "b", in_flight=True, exists_remotely=True) is SyncAction.NONE

    def test_first_observation_does_nothing(self):
        """No baseline yet: nothing to compare against"""
        assert decide(None, "b", in_flight=False, exists_remotely=True) is SyncAction.NONE

    def test_unchanged_does_nothing(self):
        assert decide("a", "a", in_flight=False, exists_remotely=True) is SyncAction.NONE

    def test_changed_and_mapped_updates(self):
        assert decide("a", "b", in_flight=False, exists_remotely=True) is SyncAction.UPDATE

    def test_changed_but_unmapped_never_creates(self):
        """Change-driven syncs must not create entities in Channex"""
        assert decide("a", "b", in_flight=False, exists_remotely=False) is SyncAction.NONE


class TestChangeTracker:

    def test_observe_returns_previous_and_current(self):
        tracker = ChangeTracker()

        previous, current = tracker.observe("property:1", {"title": "A"})
        assert previous is None
        assert current == compute_fingerprint({"title": "A"})

        previous2, current2 = tracker.observe("property:1", {"title": "B"})
        assert previous2 == current
        assert current2 != current

    def test_keys_are_independent(self):
        tracker = ChangeTracker()
        tracker.observe("property:1", {"title": "A"})

        assert tracker.previous("property:2") is None

    def test_forget(self):
        tracker = ChangeTracker()
        tracker.observe("rate_plan:9", {"title": "A"})
        tracker.forget("rate_plan:9")

        assert tracker.previous("rate_plan:9") is None

    def test_restore_puts_back_previous(self):
        tracker = ChangeTracker()
        _, first = tracker.observe("group:1", {"title": "A"})
        previous, current = tracker.observe("group:1", {"title": "B"})

        tracker.restore("group:1", previous, current)

        assert tracker.previous("group:1") == first

    def test_restore_keeps_newer_observation(self):
        tracker = ChangeTracker()
        tracker.observe("group:1", {"title": "A"})
        previous, current = tracker.observe("group:1", {"title": "B"})
        _, newest = tracker.observe("group:1", {"title": "C"})

        tracker.restore("group:1", previous, current)

        assert tracker.previous("group:1") == newest
