"""
Idle monitor: classify open copies as ok / warn / reassign.

An idle episode starts at the holder's last touch of the copy
(``last_updated_by_examiner``) or, if they never touched it, at
``assigned_at``. A warning belongs to the episode it was issued in, so a
``last_warned_at`` older than the episode start does not count.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum
from typing import Iterable

from allocation.thresholds import ThresholdProfile
from core.utils.datetime import ensure_utc, hours_between
from database.models.copies import OPEN_STATUSES

logger = logging.getLogger(__name__)


class IdleAction(str, PyEnum):
    OK = "ok"
    WARN = "warn"
    REASSIGN = "reassign"


@dataclass(frozen=True)
class IdleDecision:
    copy_id: int
    exam_id: int
    examiner_id: int | None
    action: IdleAction
    hours_idle: float


def idle_reference(copy) -> datetime | None:
    """Start of the copy's current idle episode."""
    return copy.last_updated_by_examiner or copy.assigned_at


def warned_this_episode(copy) -> bool:
    reference = idle_reference(copy)
    if copy.last_warned_at is None or reference is None:
        return False
    return ensure_utc(copy.last_warned_at) >= ensure_utc(reference)


def classify_copy(copy, now: datetime, profile: ThresholdProfile) -> IdleDecision:
    """
    Classify a single assigned or examining copy.

    Raises ``ValueError`` for copies that are not open or carry no
    assignment timestamp.
    """
    if copy.status not in OPEN_STATUSES:
        raise ValueError(f"Copy {copy.id} is not assigned (status={copy.status})")
    reference = idle_reference(copy)
    if reference is None:
        raise ValueError(f"Copy {copy.id} has no assignment timestamp")

    elapsed = max(0.0, hours_between(reference, now))
    if elapsed >= profile.idle_hours:
        action = IdleAction.REASSIGN
    elif elapsed >= profile.warning_hours and not warned_this_episode(copy):
        action = IdleAction.WARN
    else:
        action = IdleAction.OK

    return IdleDecision(
        copy_id=copy.id,
        exam_id=copy.exam_id,
        examiner_id=copy.assigned_examiner_id,
        action=action,
        hours_idle=elapsed,
    )


def scan_copies(
    copies: Iterable, now: datetime, profile: ThresholdProfile
) -> tuple[list[IdleDecision], list[dict]]:
    """
    Classify every copy, collecting the ones that cannot be classified.

    Returns ``(decisions, skipped)`` where ``skipped`` holds
    ``{"copy_id", "reason"}`` entries.
    """
    decisions: list[IdleDecision] = []
    skipped: list[dict] = []
    for copy in copies:
        try:
            decisions.append(classify_copy(copy, now, profile))
        except ValueError as e:
            logger.warning(f"Skipping copy {copy.id} during idle scan: {e}")
            skipped.append({"copy_id": copy.id, "reason": str(e)})
    return decisions, skipped
