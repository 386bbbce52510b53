"""
Tests for the stats store against SQLite.

Tests:
- Atomic counter updates and the running checking-time mean
- Version-checked copy updates and conflict rollback
- Missing examiner handling
"""

import pytest

from allocation.exceptions import CopyConflictError, ExaminerNotFoundError
from database.models.copies import CopyStatus
from tests.conftest import NOW, assert_workload_invariant, load_copy, load_stats


class TestExaminerCounters:
    """Tests for counter updates."""

    async def test_assignment_and_evaluation_counters(self, store, seed):
        await seed.examiner(1)

        async with store.transaction() as tx:
            await tx.record_assignment(1, count=3)
            await tx.record_evaluation(1, checking_hours=4)
            await tx.record_evaluation(1, checking_hours=8)
            await tx.record_reassigned_away(1)

        stats = await load_stats(store, 1)
        assert stats.total_copies_assigned == 3
        assert stats.total_copies_evaluated == 2
        assert stats.total_copies_reassigned == 1
        assert stats.current_workload == 0
        assert stats.average_checking_time_hours == pytest.approx(6)
        assert_workload_invariant(stats)

    async def test_running_mean_continues_from_stored_value(self, store, seed):
        await seed.examiner(
            1,
            total_copies_assigned=5,
            total_copies_evaluated=4,
            current_workload=1,
            average_checking_time_hours=10,
        )

        async with store.transaction() as tx:
            await tx.record_evaluation(1, checking_hours=20)

        stats = await load_stats(store, 1)
        assert stats.average_checking_time_hours == pytest.approx(12)

    async def test_warning_and_activity(self, store, seed):
        await seed.examiner(1)

        async with store.transaction() as tx:
            await tx.record_warning(1)
            await tx.record_warning(1)
            await tx.touch_examiner(1, NOW)
            await tx.save_score(1, 72.5, NOW)

        stats = await load_stats(store, 1)
        assert stats.warning_count == 2
        assert stats.last_active_at == NOW
        assert stats.performance_score == 72.5
        assert stats.score_computed_at == NOW

    async def test_missing_examiner(self, store):
        with pytest.raises(ExaminerNotFoundError):
            async with store.transaction() as tx:
                await tx.record_assignment(404)

    async def test_ensure_stats_creates_zeroed_row(self, store):
        async with store.transaction() as tx:
            await tx.ensure_stats(5)

        stats = await load_stats(store, 5)
        assert stats.total_copies_assigned == 0
        assert stats.is_active is True
        assert_workload_invariant(stats)

    async def test_upsert_keeps_counters(self, store, seed):
        await seed.examiner(1, total_copies_assigned=2, current_workload=2)

        async with store.transaction() as tx:
            await tx.upsert_examiner(1, email="new@example.com")

        stats = await load_stats(store, 1)
        assert stats.email == "new@example.com"
        assert stats.name == "Examiner 1"
        assert stats.current_workload == 2


class TestCopyUpdates:
    """Tests for version-checked copy updates."""

    async def test_update_bumps_version(self, store, seed):
        copy = await seed.copy(10)

        async with store.transaction() as tx:
            current = await tx.require_copy(copy.id)
            version = await tx.update_copy(current, status=CopyStatus.ASSIGNED)

        reloaded = await load_copy(store, copy.id)
        assert version == 2
        assert reloaded.version == 2
        assert reloaded.status == CopyStatus.ASSIGNED

    async def test_stale_version_conflicts_and_rolls_back(self, store, seed):
        await seed.examiner(1)
        copy = await seed.copy(10)

        async with store.transaction() as tx:
            stale = await tx.require_copy(copy.id)
        async with store.transaction() as tx:
            fresh = await tx.require_copy(copy.id)
            await tx.update_copy(fresh, needs_attention=True)

        with pytest.raises(CopyConflictError) as exc_info:
            async with store.transaction() as tx:
                await tx.record_assignment(1)
                await tx.update_copy(stale, status=CopyStatus.ASSIGNED, assigned_examiner_id=1)

        assert exc_info.value.retryable is True
        stats = await load_stats(store, 1)
        assert stats.total_copies_assigned == 0
        reloaded = await load_copy(store, copy.id)
        assert reloaded.status == CopyStatus.UNASSIGNED

    async def test_open_copy_listing(self, store, seed):
        await seed.copy(10)
        held = await seed.copy(10, status=CopyStatus.ASSIGNED, assigned_examiner_id=1, assigned_at=NOW)
        await seed.copy(10, status=CopyStatus.EVALUATED, assigned_examiner_id=1, assigned_at=NOW)

        async with store.transaction() as tx:
            open_copies = await tx.list_open_copies()

        assert [c.id for c in open_copies] == [held.id]
