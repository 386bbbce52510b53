"""
Performance scoring for examiners.

The score is a weighted composite of four components, each clamped to
[0, 100] before weighting:

    completion   40%   evaluated / assigned * 100 (0 when nothing assigned)
    speed        30%   100 - 2 * average checking hours
    reliability  20%   100 - 5 * copies reassigned away
    activity     10%   100 if active within the activity window, else 50

Examiners with nothing assigned yet score 0 on completion, which keeps
brand-new examiners below proven ones until they finish work.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from core.utils.datetime import ensure_utc

COMPLETION_WEIGHT = 0.40
SPEED_WEIGHT = 0.30
RELIABILITY_WEIGHT = 0.20
ACTIVITY_WEIGHT = 0.10

SPEED_PENALTY_PER_HOUR = 2
RELIABILITY_PENALTY_PER_REASSIGNMENT = 5
ACTIVE_SCORE = 100.0
INACTIVE_SCORE = 50.0
DEFAULT_ACTIVITY_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class ScoreBreakdown:
    completion_rate: float
    speed: float
    reliability: float
    activity: float

    @property
    def total(self) -> float:
        score = (
            COMPLETION_WEIGHT * self.completion_rate
            + SPEED_WEIGHT * self.speed
            + RELIABILITY_WEIGHT * self.reliability
            + ACTIVITY_WEIGHT * self.activity
        )
        return round(clamp_score(score), 2)


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


def score_breakdown(
    stats,
    now: datetime,
    activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
) -> ScoreBreakdown:
    """Component scores for an examiner stats record (any object with the stats attributes)."""
    assigned = stats.total_copies_assigned or 0
    evaluated = stats.total_copies_evaluated or 0
    reassigned = stats.total_copies_reassigned or 0
    avg_hours = stats.average_checking_time_hours or 0.0

    completion = (evaluated / assigned) * 100 if assigned > 0 else 0.0
    speed = 100 - avg_hours * SPEED_PENALTY_PER_HOUR
    reliability = 100 - reassigned * RELIABILITY_PENALTY_PER_REASSIGNMENT

    last_active = stats.last_active_at
    if last_active is not None and ensure_utc(now) - ensure_utc(last_active) <= activity_window:
        activity = ACTIVE_SCORE
    else:
        activity = INACTIVE_SCORE

    return ScoreBreakdown(
        completion_rate=clamp_score(completion),
        speed=clamp_score(speed),
        reliability=clamp_score(reliability),
        activity=clamp_score(activity),
    )


def calculate_performance_score(
    stats,
    now: datetime,
    activity_window: timedelta = DEFAULT_ACTIVITY_WINDOW,
) -> float:
    """
    Score an examiner in [0, 100].

    Pure: depends only on the record, ``now`` and the activity window.
    """
    return score_breakdown(stats, now, activity_window).total
