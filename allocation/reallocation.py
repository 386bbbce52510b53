"""
Reallocation executor: applies idle monitor decisions.

Every copy is handled in its own transaction, and the decision is
re-checked against a fresh read of the copy first. A copy the holder touched
since the scan (or that another operation changed) is left alone; a version
conflict or a stats inconsistency skips that copy and the run carries on.
Notifications go out only after the copy's transaction has committed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from allocation.distributor import apply_plan, load_candidates, plan_distribution
from allocation.exceptions import (
    AllocationError,
    ExaminerInactiveError,
    InvalidCopyStateError,
    StatsInconsistencyError,
)
from allocation.idle_monitor import IdleAction, IdleDecision, classify_copy, scan_copies
from allocation.notifier import (
    AssignmentNotice,
    Notifier,
    ReassignmentNotice,
    WarningNotice,
)
from allocation.scoring import DEFAULT_ACTIVITY_WINDOW
from allocation.store import StatsStore, StoreTransaction
from allocation.thresholds import ThresholdProfile
from database.models.copies import OPEN_STATUSES, Copy, CopyStatus

logger = logging.getLogger(__name__)


@dataclass
class ReallocationReport:
    profile: str
    warned: list[int] = field(default_factory=list)
    reassigned: list[tuple[int, int, int]] = field(default_factory=list)
    unassignable: list[int] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    def counts(self) -> dict:
        return {
            "warned": len(self.warned),
            "reassigned": len(self.reassigned),
            "unassignable": len(self.unassignable),
            "skipped": len(self.skipped),
        }


async def release_copy(tx: StoreTransaction, copy: Copy) -> int:
    """
    Take a copy away from its holder.

    The holder's workload drops and their reassigned counter rises; the copy
    keeps status ``assigned`` with no holder until the caller places it.
    """
    old_examiner_id = copy.assigned_examiner_id
    stats = await tx.get_stats(old_examiner_id)
    if stats is None:
        raise StatsInconsistencyError(
            old_examiner_id, f"Holder {old_examiner_id} of copy {copy.id} has no stats record"
        )
    if stats.current_workload <= 0:
        raise StatsInconsistencyError(
            old_examiner_id,
            f"Holder {old_examiner_id} of copy {copy.id} has workload "
            f"{stats.current_workload}; cannot release",
        )
    await tx.record_reassigned_away(old_examiner_id)
    await tx.update_copy(
        copy,
        status=CopyStatus.ASSIGNED,
        assigned_examiner_id=None,
        reassignment_count=Copy.reassignment_count + 1,
    )
    return old_examiner_id


async def park_unassignable(tx: StoreTransaction, copy: Copy) -> None:
    """Leave a copy unassigned and flagged for administrator attention."""
    await tx.update_copy(
        copy,
        status=CopyStatus.UNASSIGNED,
        assigned_examiner_id=None,
        assigned_at=None,
        evaluation_started_at=None,
        last_updated_by_examiner=None,
        last_warned_at=None,
        needs_attention=True,
    )


class ReallocationExecutor:
    def __init__(
        self,
        store: StatsStore,
        notifier: Notifier,
        activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
    ):
        self.store = store
        self.notifier = notifier
        self.activity_window = activity_window

    async def run(self, profile: ThresholdProfile, now: datetime) -> ReallocationReport:
        """Scan every open copy under ``profile`` and act on the result."""
        report = ReallocationReport(profile=profile.name)

        async with self.store.transaction() as tx:
            open_copies = await tx.list_open_copies()
        decisions, skipped = scan_copies(open_copies, now, profile)
        report.skipped.extend(skipped)

        for decision in decisions:
            if decision.action is IdleAction.OK:
                continue
            try:
                if decision.action is IdleAction.WARN:
                    await self.warn(decision, profile, now, report)
                else:
                    await self.reassign(decision, profile, now, report)
            except (AllocationError, ValueError) as e:
                logger.warning(
                    f"Skipping copy {decision.copy_id} ({decision.action.value}): {e}"
                )
                report.skipped.append({"copy_id": decision.copy_id, "reason": str(e)})
            except SQLAlchemyError as e:
                logger.error(
                    f"Database error on copy {decision.copy_id} ({decision.action.value}); skipping",
                    exc_info=True,
                )
                report.skipped.append(
                    {"copy_id": decision.copy_id, "reason": f"database error: {type(e).__name__}"}
                )

        logger.info(f"Reallocation run ({profile.name}) finished: {report.counts()}")
        return report

    def _still_applies(self, copy: Copy, decision: IdleDecision, profile, now) -> bool:
        if copy.status not in OPEN_STATUSES or copy.assigned_examiner_id != decision.examiner_id:
            return False
        return classify_copy(copy, now, profile).action is decision.action

    async def warn(
        self,
        decision: IdleDecision,
        profile: ThresholdProfile,
        now: datetime,
        report: ReallocationReport,
    ) -> None:
        async with self.store.transaction() as tx:
            copy = await tx.require_copy(decision.copy_id)
            if not self._still_applies(copy, decision, profile, now):
                return
            await tx.update_copy(copy, last_warned_at=now)
            await tx.record_warning(decision.examiner_id)

        report.warned.append(decision.copy_id)
        logger.info(
            f"Warned examiner {decision.examiner_id} about copy {decision.copy_id} "
            f"idle for {decision.hours_idle:.1f}h"
        )
        self.notifier.notify(
            WarningNotice(
                examiner_id=decision.examiner_id,
                copy_id=decision.copy_id,
                idle_hours=round(decision.hours_idle, 1),
            )
        )

    async def reassign(
        self,
        decision: IdleDecision,
        profile: ThresholdProfile,
        now: datetime,
        report: ReallocationReport,
    ) -> None:
        async with self.store.transaction() as tx:
            copy = await tx.require_copy(decision.copy_id)
            if not self._still_applies(copy, decision, profile, now):
                return
            old_examiner_id = await release_copy(tx, copy)

            candidates = await load_candidates(
                tx, copy.exam_id, now, exclude=[old_examiner_id],
                activity_window=self.activity_window,
            )
            plan = plan_distribution([copy.id], candidates)
            if plan.assignments:
                await apply_plan(tx, {copy.id: copy}, plan, now)
                new_examiner_id = plan.assignments[0][1]
            else:
                await park_unassignable(tx, copy)
                new_examiner_id = None

        if new_examiner_id is None:
            report.unassignable.append(copy.id)
            logger.warning(
                f"Copy {copy.id} taken from examiner {old_examiner_id} has no eligible "
                f"holder in exam {copy.exam_id}; flagged for attention"
            )
        else:
            report.reassigned.append((copy.id, old_examiner_id, new_examiner_id))
            logger.info(
                f"Reassigned copy {copy.id} from examiner {old_examiner_id} "
                f"to {new_examiner_id} after {decision.hours_idle:.1f}h idle"
            )
        self.notifier.notify(
            ReassignmentNotice(
                old_examiner_id=old_examiner_id,
                new_examiner_id=new_examiner_id,
                copy_id=copy.id,
            )
        )

    async def reallocate_one(self, copy_id: int, new_examiner_id: int, now: datetime) -> Copy:
        """Administrator override: move a copy to ``new_examiner_id`` directly."""
        async with self.store.transaction() as tx:
            copy = await tx.require_copy(copy_id)
            if copy.status == CopyStatus.EVALUATED:
                raise InvalidCopyStateError(f"Copy {copy_id} is already evaluated")
            new_stats = await tx.require_stats(new_examiner_id)
            if not new_stats.is_active:
                raise ExaminerInactiveError(new_examiner_id)
            old_examiner_id = copy.assigned_examiner_id
            if old_examiner_id == new_examiner_id:
                raise InvalidCopyStateError(
                    f"Examiner {new_examiner_id} already holds copy {copy_id}"
                )

            if old_examiner_id is not None:
                await release_copy(tx, copy)
            await tx.update_copy(
                copy,
                status=CopyStatus.ASSIGNED,
                assigned_examiner_id=new_examiner_id,
                assigned_at=now,
                evaluation_started_at=None,
                last_updated_by_examiner=None,
                last_warned_at=None,
                needs_attention=False,
            )
            await tx.record_assignment(new_examiner_id)

        logger.info(
            f"Manually reallocated copy {copy_id} from {old_examiner_id} to {new_examiner_id}"
        )
        if old_examiner_id is None:
            self.notifier.notify(
                AssignmentNotice(examiner_id=new_examiner_id, copy_ids=(copy_id,))
            )
        else:
            self.notifier.notify(
                ReassignmentNotice(
                    old_examiner_id=old_examiner_id,
                    new_examiner_id=new_examiner_id,
                    copy_id=copy_id,
                )
            )
        return copy
