"""
Tests for idle copy classification.

Tests:
- Warn at 13h, reassign at 25h under the normal profile
- Monotonic classification in elapsed time
- Examiner activity starts a new idle episode
- One warning per idle episode
- Unclassifiable copies are skipped, not fatal
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from allocation.idle_monitor import (
    IdleAction,
    classify_copy,
    scan_copies,
    warned_this_episode,
)
from allocation.thresholds import NORMAL_PROFILE, PEAK_PROFILE
from database.models.copies import CopyStatus
from tests.conftest import NOW


def make_copy(copy_id=1, status=CopyStatus.ASSIGNED, assigned_hours_ago=0.0, **overrides):
    values = {
        "id": copy_id,
        "exam_id": 10,
        "status": status,
        "assigned_examiner_id": 7,
        "assigned_at": NOW - timedelta(hours=assigned_hours_ago),
        "last_updated_by_examiner": None,
        "last_warned_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestClassifyCopy:
    """Tests for classify_copy."""

    def test_warn_after_thirteen_hours(self):
        decision = classify_copy(make_copy(assigned_hours_ago=13), NOW, NORMAL_PROFILE)

        assert decision.action is IdleAction.WARN
        assert decision.hours_idle == pytest.approx(13)
        assert decision.examiner_id == 7

    def test_reassign_after_twenty_five_hours(self):
        decision = classify_copy(make_copy(assigned_hours_ago=25), NOW, NORMAL_PROFILE)

        assert decision.action is IdleAction.REASSIGN

    @pytest.mark.parametrize(
        "hours,expected",
        [
            (0, IdleAction.OK),
            (11.99, IdleAction.OK),
            (12, IdleAction.WARN),
            (23.99, IdleAction.WARN),
            (24, IdleAction.REASSIGN),
            (240, IdleAction.REASSIGN),
        ],
    )
    def test_monotonic_in_elapsed_time(self, hours, expected):
        decision = classify_copy(make_copy(assigned_hours_ago=hours), NOW, NORMAL_PROFILE)

        assert decision.action is expected

    def test_peak_profile_is_stricter(self):
        copy = make_copy(assigned_hours_ago=13)

        assert classify_copy(copy, NOW, PEAK_PROFILE).action is IdleAction.REASSIGN

    def test_examiner_touch_starts_new_episode(self):
        """Assigned 30h ago but examined 2h ago: nothing to do."""
        copy = make_copy(
            status=CopyStatus.EXAMINING,
            assigned_hours_ago=30,
            last_updated_by_examiner=NOW - timedelta(hours=2),
        )

        decision = classify_copy(copy, NOW, NORMAL_PROFILE)

        assert decision.action is IdleAction.OK
        assert decision.hours_idle == pytest.approx(2)

    def test_already_warned_episode_is_not_warned_again(self):
        copy = make_copy(assigned_hours_ago=20, last_warned_at=NOW - timedelta(hours=6))

        assert warned_this_episode(copy)
        assert classify_copy(copy, NOW, NORMAL_PROFILE).action is IdleAction.OK

    def test_warned_copy_still_reassigned(self):
        copy = make_copy(assigned_hours_ago=26, last_warned_at=NOW - timedelta(hours=12))

        assert classify_copy(copy, NOW, NORMAL_PROFILE).action is IdleAction.REASSIGN

    def test_warning_from_previous_episode_does_not_count(self):
        """Warned, then the examiner worked on it, then went idle again."""
        copy = make_copy(
            status=CopyStatus.EXAMINING,
            assigned_hours_ago=40,
            last_warned_at=NOW - timedelta(hours=28),
            last_updated_by_examiner=NOW - timedelta(hours=14),
        )

        assert not warned_this_episode(copy)
        assert classify_copy(copy, NOW, NORMAL_PROFILE).action is IdleAction.WARN

    def test_rejects_closed_copy(self):
        with pytest.raises(ValueError):
            classify_copy(make_copy(status=CopyStatus.EVALUATED), NOW, NORMAL_PROFILE)

    def test_rejects_copy_without_timestamp(self):
        with pytest.raises(ValueError):
            classify_copy(make_copy(assigned_at=None), NOW, NORMAL_PROFILE)

    def test_future_timestamp_counts_as_zero(self):
        copy = make_copy(assigned_at=NOW + timedelta(hours=1))

        decision = classify_copy(copy, NOW, NORMAL_PROFILE)

        assert decision.action is IdleAction.OK
        assert decision.hours_idle == 0


class TestScanCopies:
    """Tests for scan_copies."""

    def test_collects_decisions_and_skips(self):
        copies = [
            make_copy(1, assigned_hours_ago=1),
            make_copy(2, assigned_at=None),
            make_copy(3, assigned_hours_ago=30),
        ]

        decisions, skipped = scan_copies(copies, NOW, NORMAL_PROFILE)

        assert [(d.copy_id, d.action) for d in decisions] == [
            (1, IdleAction.OK),
            (3, IdleAction.REASSIGN),
        ]
        assert [s["copy_id"] for s in skipped] == [2]
        assert "timestamp" in skipped[0]["reason"]
