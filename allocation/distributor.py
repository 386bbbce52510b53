"""
Distributor: plan which examiner receives each unassigned copy.

Examiners are ranked by score (descending), then current workload
(ascending), then examiner id. The ranked list is walked round-robin; each
visit grants one copy while the examiner still has capacity left for this
pass. Copies left over when every examiner is exhausted stay unassigned and
are returned to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from allocation.capacity import calculate_capacity
from allocation.scoring import DEFAULT_ACTIVITY_WINDOW, calculate_performance_score
from database.models.copies import CopyStatus


@dataclass(frozen=True)
class ExaminerCandidate:
    examiner_id: int
    score: float
    current_workload: int
    capacity: int

    @property
    def sort_key(self) -> tuple:
        return (-self.score, self.current_workload, self.examiner_id)


@dataclass
class DistributionPlan:
    assignments: list[tuple[int, int]] = field(default_factory=list)
    unassigned: list[int] = field(default_factory=list)

    def batches(self) -> dict[int, list[int]]:
        """Copies granted per examiner, in grant order."""
        grouped: dict[int, list[int]] = {}
        for copy_id, examiner_id in self.assignments:
            grouped.setdefault(examiner_id, []).append(copy_id)
        return grouped


def build_candidates(
    examiner_ids: Iterable[int],
    stats_by_id: dict,
    now: datetime,
    activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
) -> list[ExaminerCandidate]:
    """
    Score and size every eligible examiner for one pass.

    Inactive examiners are dropped. An examiner without a stats record is
    treated as score 0 with no workload; nothing is written back.
    """
    candidates = []
    for examiner_id in examiner_ids:
        stats = stats_by_id.get(examiner_id)
        if stats is None:
            score, workload = 0.0, 0
        else:
            if not stats.is_active:
                continue
            score = calculate_performance_score(stats, now, activity_window)
            workload = stats.current_workload or 0
        candidates.append(
            ExaminerCandidate(
                examiner_id=examiner_id,
                score=score,
                current_workload=workload,
                capacity=calculate_capacity(score, workload),
            )
        )
    return candidates


def rank_candidates(candidates: Iterable[ExaminerCandidate]) -> list[ExaminerCandidate]:
    return sorted(candidates, key=lambda c: c.sort_key)


def plan_distribution(
    copy_ids: Sequence[int], candidates: Iterable[ExaminerCandidate]
) -> DistributionPlan:
    """Round-robin copies over ranked candidates without exceeding any capacity."""
    ranked = rank_candidates(candidates)
    plan = DistributionPlan()
    if not ranked:
        plan.unassigned = list(copy_ids)
        return plan

    remaining = {c.examiner_id: c.capacity for c in ranked}
    pending = list(copy_ids)
    position = 0

    while position < len(pending) and any(r > 0 for r in remaining.values()):
        for candidate in ranked:
            if position >= len(pending):
                break
            if remaining[candidate.examiner_id] <= 0:
                continue
            plan.assignments.append((pending[position], candidate.examiner_id))
            remaining[candidate.examiner_id] -= 1
            position += 1

    plan.unassigned = pending[position:]
    return plan


async def load_candidates(
    tx,
    exam_id: int,
    now: datetime,
    exclude: Iterable[int] = (),
    activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
) -> list[ExaminerCandidate]:
    """Candidates for an exam: its panel minus ``exclude``, scored as of ``now``."""
    excluded = set(exclude)
    panel = [e for e in await tx.exam_examiner_ids(exam_id) if e not in excluded]
    if not panel:
        return []
    stats_by_id = {s.examiner_id: s for s in await tx.list_stats(panel)}
    return build_candidates(panel, stats_by_id, now, activity_window)


async def apply_plan(tx, copies_by_id: dict, plan: DistributionPlan, now: datetime) -> None:
    """
    Write a plan inside the caller's transaction.

    Each copy is moved to ``assigned`` under its version check; each
    receiving examiner gets one counter update for the whole batch.
    """
    for copy_id, examiner_id in plan.assignments:
        await tx.update_copy(
            copies_by_id[copy_id],
            status=CopyStatus.ASSIGNED,
            assigned_examiner_id=examiner_id,
            assigned_at=now,
            evaluation_started_at=None,
            last_updated_by_examiner=None,
            last_warned_at=None,
            needs_attention=False,
        )
    for examiner_id, batch in plan.batches().items():
        await tx.ensure_stats(examiner_id)
        await tx.record_assignment(examiner_id, count=len(batch))
