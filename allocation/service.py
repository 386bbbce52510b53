"""
Allocation service: the operations the rest of the portal calls.

Admin screens, the examiner workflow and the scheduled jobs all go through
this facade, so every counter and copy mutation passes through the
``StatsStore`` and every long-running job through its guard.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable

from allocation.distributor import apply_plan, load_candidates, plan_distribution
from allocation.exceptions import (
    InvalidCopyStateError,
    InvalidThresholdsError,
    NotCopyHolderError,
)
from allocation.guards import (
    DAILY_SUMMARY_GUARD,
    REALLOCATION_GUARD,
    STATS_RECOMPUTE_GUARD,
    JobGuard,
    LocalJobGuard,
    run_guarded,
)
from allocation.idle_monitor import idle_reference
from allocation.notifier import AssignmentNotice, Notifier
from allocation.reallocation import ReallocationExecutor, ReallocationReport
from allocation.reports import build_daily_summary
from allocation.scoring import DEFAULT_ACTIVITY_WINDOW, calculate_performance_score
from allocation.store import StatsStore
from allocation.thresholds import (
    NORMAL_PROFILE,
    PEAK_PROFILE,
    PeakWindow,
    ThresholdProfile,
    profiles_from_settings,
    validate_thresholds,
)
from core.utils.datetime import hours_between, now as utc_now
from database.models.copies import OPEN_STATUSES, Copy, CopyStatus
from database.models.examiners import ExaminerStats

logger = logging.getLogger(__name__)


@dataclass
class DistributionResult:
    assigned: list[tuple[int, int]] = field(default_factory=list)
    unassigned: list[int] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)


@dataclass
class StatsRecomputeResult:
    stats: list[ExaminerStats] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class IdleCopy:
    copy: Copy
    hours_idle: float


class AllocationService:
    def __init__(
        self,
        store: StatsStore,
        notifier: Notifier,
        guard: JobGuard | None = None,
        clock: Callable[[], datetime] = utc_now,
        normal_profile: ThresholdProfile = NORMAL_PROFILE,
        peak_profile: ThresholdProfile = PEAK_PROFILE,
        peak_window: PeakWindow = PeakWindow(),
        activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
    ):
        self.store = store
        self.notifier = notifier
        self.guard = guard or LocalJobGuard()
        self.clock = clock
        self.normal_profile = normal_profile
        self.peak_profile = peak_profile
        self.peak_window = peak_window
        self.activity_window = activity_window
        self.executor = ReallocationExecutor(store, notifier, activity_window)

    @classmethod
    def from_settings(cls, settings, store: StatsStore, notifier: Notifier, guard: JobGuard | None = None):
        """Build a service with thresholds, peak window and activity window from settings."""
        normal, peak, window = profiles_from_settings(settings)
        return cls(
            store=store,
            notifier=notifier,
            guard=guard,
            normal_profile=normal,
            peak_profile=peak,
            peak_window=window,
            activity_window=timedelta(days=settings.activity_window_days),
        )

    # ==================== Distribution ==================== #

    async def distribute(
        self, exam_id: int, copy_ids: Iterable[int] | None = None
    ) -> DistributionResult:
        """
        Hand out unassigned copies of an exam to its active panel.

        Without ``copy_ids`` every unassigned copy of the exam is distributed.
        The whole pass commits atomically; a concurrent change to any of the
        copies raises ``CopyConflictError`` and nothing is written.
        """
        now = self.clock()
        result = DistributionResult()

        async with self.store.transaction() as tx:
            if copy_ids is None:
                copies = await tx.list_unassigned_copies(exam_id)
            else:
                requested = list(dict.fromkeys(copy_ids))
                found = {c.id: c for c in await tx.list_copies(requested)}
                copies = []
                for copy_id in requested:
                    copy = found.get(copy_id)
                    if copy is None:
                        result.skipped.append({"copy_id": copy_id, "reason": "not found"})
                    elif copy.exam_id != exam_id:
                        result.skipped.append(
                            {"copy_id": copy_id, "reason": f"belongs to exam {copy.exam_id}"}
                        )
                    elif copy.status != CopyStatus.UNASSIGNED:
                        result.skipped.append(
                            {"copy_id": copy_id, "reason": f"status is {copy.status.value}"}
                        )
                    else:
                        copies.append(copy)

            candidates = await load_candidates(
                tx, exam_id, now, activity_window=self.activity_window
            )
            plan = plan_distribution([c.id for c in copies], candidates)
            await apply_plan(tx, {c.id: c for c in copies}, plan, now)

        result.assigned = plan.assignments
        result.unassigned = plan.unassigned
        logger.info(
            f"Distributed exam {exam_id}: {len(result.assigned)} assigned, "
            f"{len(result.unassigned)} left unassigned, {len(result.skipped)} skipped"
        )
        for examiner_id, batch in plan.batches().items():
            self.notifier.notify(AssignmentNotice(examiner_id=examiner_id, copy_ids=tuple(batch)))
        return result

    # ==================== Reallocation ==================== #

    async def trigger_reallocation(
        self, idle_threshold_hours: float, warning_threshold_hours: float
    ) -> ReallocationReport:
        """On-demand idle sweep with caller-supplied thresholds."""
        validate_thresholds(idle_threshold_hours, warning_threshold_hours)
        profile = ThresholdProfile(
            name="on_demand",
            idle_hours=idle_threshold_hours,
            warning_hours=warning_threshold_hours,
        )
        return await self.run_idle_sweep(profile)

    async def run_idle_sweep(self, profile: ThresholdProfile) -> ReallocationReport:
        return await run_guarded(
            self.guard,
            REALLOCATION_GUARD,
            lambda: self.executor.run(profile, self.clock()),
        )

    async def run_normal_sweep(self) -> ReallocationReport:
        return await self.run_idle_sweep(self.normal_profile)

    async def run_peak_sweep(self) -> ReallocationReport | None:
        """Peak-profile sweep; does nothing outside the peak window."""
        if not self.peak_window.contains(self.clock()):
            logger.info("Peak sweep skipped: outside the peak window")
            return None
        return await self.run_idle_sweep(self.peak_profile)

    async def reallocate_one(self, copy_id: int, new_examiner_id: int) -> Copy:
        return await self.executor.reallocate_one(copy_id, new_examiner_id, self.clock())

    async def list_idle_copies(self, idle_hours: float) -> list[IdleCopy]:
        """Open copies idle for at least ``idle_hours``, most idle first."""
        if idle_hours is None or not math.isfinite(idle_hours) or idle_hours < 0:
            raise InvalidThresholdsError(f"Idle hours must be non-negative (got {idle_hours})")
        now = self.clock()
        async with self.store.transaction() as tx:
            open_copies = await tx.list_open_copies()

        idle = []
        for copy in open_copies:
            reference = idle_reference(copy)
            if reference is None:
                continue
            hours = hours_between(reference, now)
            if hours >= idle_hours:
                idle.append(IdleCopy(copy=copy, hours_idle=round(hours, 2)))
        idle.sort(key=lambda item: (-item.hours_idle, item.copy.id))
        return idle

    # ==================== Examiner stats ==================== #

    async def recompute_stats(self, examiner_id: int | None = None) -> StatsRecomputeResult:
        return await run_guarded(
            self.guard, STATS_RECOMPUTE_GUARD, lambda: self._recompute_stats(examiner_id)
        )

    async def _recompute_stats(self, examiner_id: int | None) -> StatsRecomputeResult:
        now = self.clock()
        result = StatsRecomputeResult()
        async with self.store.transaction() as tx:
            if examiner_id is not None:
                records = [await tx.require_stats(examiner_id)]
            else:
                records = await tx.list_stats()

            for record in records:
                try:
                    score = calculate_performance_score(record, now, self.activity_window)
                except (TypeError, ValueError, ArithmeticError) as e:
                    logger.warning(f"Skipping score for examiner {record.examiner_id}: {e}")
                    result.skipped.append({"examiner_id": record.examiner_id, "reason": str(e)})
                    continue
                await tx.save_score(record.examiner_id, score, now)

            ids = [r.examiner_id for r in records]
            result.stats = await tx.list_stats(ids)
        logger.info(
            f"Recomputed scores for {len(result.stats) - len(result.skipped)} examiners, "
            f"{len(result.skipped)} skipped"
        )
        return result

    async def set_examiner_active(self, examiner_id: int, is_active: bool) -> ExaminerStats:
        async with self.store.transaction() as tx:
            await tx.set_active(examiner_id, is_active)
            stats = await tx.require_stats(examiner_id)
        logger.info(f"Examiner {examiner_id} marked {'active' if is_active else 'inactive'}")
        return stats

    async def register_examiner(
        self, examiner_id: int, email: str | None = None, name: str | None = None
    ) -> ExaminerStats:
        async with self.store.transaction() as tx:
            stats = await tx.upsert_examiner(examiner_id, email=email, name=name)
        return stats

    async def get_performance_dashboard(self) -> list[ExaminerStats]:
        """All examiner stats, best stored score first (unscored last)."""
        async with self.store.transaction() as tx:
            stats = await tx.list_stats()
        return sorted(
            stats,
            key=lambda s: (
                s.performance_score is None,
                -(s.performance_score or 0),
                s.examiner_id,
            ),
        )

    async def daily_summary(self) -> dict:
        return await run_guarded(self.guard, DAILY_SUMMARY_GUARD, self._daily_summary)

    async def _daily_summary(self) -> dict:
        now = self.clock()
        async with self.store.transaction() as tx:
            stats = await tx.list_stats()
            open_copies = await tx.list_open_copies()
            attention = await tx.list_attention_copies()
        summary = build_daily_summary(stats, open_copies, attention, now, self.normal_profile)
        logger.info(
            f"Daily allocation summary: {summary['idle_copies']} idle copies, "
            f"{len(summary['pending_reassignments'])} pending reassignments",
            extra={"summary": summary},
        )
        return summary

    # ==================== Examiner workflow ==================== #

    async def _held_copy(self, tx, copy_id: int, examiner_id: int) -> Copy:
        copy = await tx.require_copy(copy_id)
        if copy.status == CopyStatus.EVALUATED:
            raise InvalidCopyStateError(f"Copy {copy_id} is already evaluated")
        if copy.status not in OPEN_STATUSES or copy.assigned_examiner_id != examiner_id:
            raise NotCopyHolderError(copy_id, examiner_id)
        return copy

    async def start_evaluation(self, copy_id: int, examiner_id: int) -> Copy:
        """Holder opens the copy: ``assigned -> examining`` and a fresh idle episode."""
        now = self.clock()
        async with self.store.transaction() as tx:
            copy = await self._held_copy(tx, copy_id, examiner_id)
            values = {"last_updated_by_examiner": now}
            if copy.status == CopyStatus.ASSIGNED:
                values["status"] = CopyStatus.EXAMINING
            if copy.evaluation_started_at is None:
                values["evaluation_started_at"] = now
            await tx.update_copy(copy, **values)
            await tx.touch_examiner(examiner_id, now)
        return copy

    async def record_activity(self, copy_id: int, examiner_id: int) -> Copy:
        """Holder saved progress on the copy."""
        now = self.clock()
        async with self.store.transaction() as tx:
            copy = await self._held_copy(tx, copy_id, examiner_id)
            await tx.update_copy(copy, last_updated_by_examiner=now)
            await tx.touch_examiner(examiner_id, now)
        return copy

    async def complete_evaluation(self, copy_id: int, examiner_id: int) -> Copy:
        """Holder finished marking the copy."""
        now = self.clock()
        async with self.store.transaction() as tx:
            copy = await self._held_copy(tx, copy_id, examiner_id)
            checking_hours = max(0.0, hours_between(copy.assigned_at or now, now))
            await tx.update_copy(
                copy,
                status=CopyStatus.EVALUATED,
                evaluation_completed_at=now,
                last_updated_by_examiner=now,
                evaluation_started_at=copy.evaluation_started_at or now,
            )
            await tx.record_evaluation(examiner_id, checking_hours)
            await tx.touch_examiner(examiner_id, now)
        logger.info(
            f"Examiner {examiner_id} evaluated copy {copy_id} in {checking_hours:.1f}h"
        )
        return copy
