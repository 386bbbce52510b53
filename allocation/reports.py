"""Read-only summaries for administrators."""

from datetime import datetime
from typing import Iterable

from allocation.idle_monitor import idle_reference
from allocation.thresholds import ThresholdProfile
from core.utils.datetime import hours_between

TOP_PERFORMER_SCORE = 80
NEEDS_ATTENTION_SCORE = 50
SCORE_BUCKETS = ("0-20", "20-40", "40-60", "60-80", "80-100")


def score_bucket(score: float | None) -> str:
    value = score or 0.0
    index = min(int(value // 20), len(SCORE_BUCKETS) - 1)
    return SCORE_BUCKETS[index]


def build_daily_summary(
    stats: Iterable,
    open_copies: Iterable,
    attention_copies: Iterable,
    now: datetime,
    profile: ThresholdProfile,
) -> dict:
    """
    Summary of the allocation state as of ``now``.

    Idle copies are counted against ``profile.idle_hours``; stored scores are
    reported as they are, not recomputed.
    """
    stats = list(stats)
    distribution = {bucket: 0 for bucket in SCORE_BUCKETS}
    for record in stats:
        distribution[score_bucket(record.performance_score)] += 1

    idle_count = 0
    for copy in open_copies:
        reference = idle_reference(copy)
        if reference is not None and hours_between(reference, now) >= profile.idle_hours:
            idle_count += 1

    return {
        "generated_at": now.isoformat(),
        "total_examiners": len(stats),
        "active_examiners": sum(1 for s in stats if s.is_active),
        "idle_copies": idle_count,
        "pending_reassignments": [c.id for c in attention_copies],
        "score_distribution": distribution,
        "top_performers": [
            {"examiner_id": s.examiner_id, "name": s.name, "score": s.performance_score}
            for s in stats
            if (s.performance_score or 0) >= TOP_PERFORMER_SCORE
        ],
        "needs_attention": [
            {
                "examiner_id": s.examiner_id,
                "name": s.name,
                "score": s.performance_score,
                "workload": s.current_workload,
            }
            for s in stats
            if (s.performance_score or 0) < NEEDS_ATTENTION_SCORE and s.current_workload > 0
        ],
    }
