"""Capacity calculation: how many more copies an examiner may receive now."""

import math

SCORE_PER_COPY = 20
MIN_CAPACITY = 1


def calculate_capacity(performance_score: float | None, current_workload: int) -> int:
    """
    ``max(1, floor(score / 20 - workload))``.

    Always at least one so an active examiner is never starved; a missing
    score counts as 0.
    """
    score = performance_score or 0.0
    raw = math.floor(score / SCORE_PER_COPY - (current_workload or 0))
    return max(MIN_CAPACITY, raw)
