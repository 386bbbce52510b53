"""Idle/warning threshold profiles and wall-clock profile selection."""

import math
from dataclasses import dataclass
from datetime import datetime

from allocation.exceptions import InvalidThresholdsError
from core.utils.datetime import local_time


@dataclass(frozen=True)
class ThresholdProfile:
    """Hours of inactivity after which a copy is warned and then reassigned."""

    name: str
    idle_hours: float
    warning_hours: float

    def __post_init__(self):
        validate_thresholds(self.idle_hours, self.warning_hours)


def validate_thresholds(idle_hours: float, warning_hours: float) -> None:
    """Reject missing, non-finite or negative thresholds, and a warning not below idle."""
    if idle_hours is None or warning_hours is None:
        raise InvalidThresholdsError("Both idle and warning thresholds are required")
    if not (math.isfinite(idle_hours) and math.isfinite(warning_hours)):
        raise InvalidThresholdsError(
            f"Thresholds must be finite (idle={idle_hours}, warning={warning_hours})"
        )
    if idle_hours < 0 or warning_hours < 0:
        raise InvalidThresholdsError(
            f"Thresholds must be non-negative (idle={idle_hours}, warning={warning_hours})"
        )
    if warning_hours >= idle_hours:
        raise InvalidThresholdsError(
            f"Warning threshold ({warning_hours}h) must be below idle threshold ({idle_hours}h)"
        )


NORMAL_PROFILE = ThresholdProfile(name="normal", idle_hours=24, warning_hours=12)
PEAK_PROFILE = ThresholdProfile(name="peak", idle_hours=12, warning_hours=6)


@dataclass(frozen=True)
class PeakWindow:
    """Local wall-clock hours [start_hour, end_hour) during which the peak profile applies."""

    start_hour: int = 9
    end_hour: int = 18
    timezone: str = "UTC"

    def contains(self, moment: datetime) -> bool:
        wall = local_time(moment, self.timezone)
        return self.start_hour <= wall.hour < self.end_hour


def select_profile(
    moment: datetime,
    window: PeakWindow = PeakWindow(),
    normal: ThresholdProfile = NORMAL_PROFILE,
    peak: ThresholdProfile = PEAK_PROFILE,
) -> ThresholdProfile:
    """Pure function of ``moment``: peak profile inside the window, normal otherwise."""
    return peak if window.contains(moment) else normal


def profiles_from_settings(settings) -> tuple[ThresholdProfile, ThresholdProfile, PeakWindow]:
    """Build (normal, peak, window) from application settings; invalid values raise."""
    normal = ThresholdProfile(
        name="normal",
        idle_hours=settings.normal_idle_hours,
        warning_hours=settings.normal_warning_hours,
    )
    peak = ThresholdProfile(
        name="peak",
        idle_hours=settings.peak_idle_hours,
        warning_hours=settings.peak_warning_hours,
    )
    window = PeakWindow(
        start_hour=settings.peak_start_hour,
        end_hour=settings.peak_end_hour,
        timezone=settings.scheduler_timezone,
    )
    return normal, peak, window
