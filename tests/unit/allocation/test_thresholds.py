"""Tests for threshold profiles and peak-window profile selection."""

import math
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from allocation.exceptions import InvalidThresholdsError
from allocation.thresholds import (
    NORMAL_PROFILE,
    PEAK_PROFILE,
    PeakWindow,
    ThresholdProfile,
    profiles_from_settings,
    select_profile,
    validate_thresholds,
)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


class TestValidation:
    """Tests for threshold validation."""

    def test_default_profiles(self):
        assert (NORMAL_PROFILE.idle_hours, NORMAL_PROFILE.warning_hours) == (24, 12)
        assert (PEAK_PROFILE.idle_hours, PEAK_PROFILE.warning_hours) == (12, 6)

    @pytest.mark.parametrize(
        "idle,warning",
        [
            (-1, 0),
            (24, -2),
            (12, 12),
            (6, 12),
            (None, 6),
            (math.nan, 12),
            (24, math.nan),
            (math.inf, 12),
            (math.inf, math.inf),
        ],
    )
    def test_rejects_invalid(self, idle, warning):
        with pytest.raises(InvalidThresholdsError):
            validate_thresholds(idle, warning)

    def test_profile_rejects_invalid(self):
        with pytest.raises(InvalidThresholdsError):
            ThresholdProfile(name="broken", idle_hours=4, warning_hours=8)

    def test_invalid_thresholds_is_value_error(self):
        with pytest.raises(ValueError):
            validate_thresholds(1, 2)

    def test_zero_warning_allowed(self):
        validate_thresholds(1, 0)


class TestProfileSelection:
    """Tests for select_profile and PeakWindow."""

    @pytest.mark.parametrize(
        "moment,expected",
        [
            (at(8, 59), NORMAL_PROFILE),
            (at(9, 0), PEAK_PROFILE),
            (at(13, 30), PEAK_PROFILE),
            (at(17, 59), PEAK_PROFILE),
            (at(18, 0), NORMAL_PROFILE),
            (at(23, 0), NORMAL_PROFILE),
        ],
    )
    def test_utc_window(self, moment, expected):
        assert select_profile(moment) == expected

    def test_local_timezone(self):
        """09:00 in Kolkata is 03:30 UTC."""
        window = PeakWindow(timezone="Asia/Kolkata")

        assert window.contains(at(3, 30))
        assert not window.contains(at(3, 29))
        assert select_profile(at(13, 0), window=window) == NORMAL_PROFILE

    def test_profiles_from_settings(self):
        settings = SimpleNamespace(
            normal_idle_hours=48,
            normal_warning_hours=24,
            peak_idle_hours=8,
            peak_warning_hours=4,
            peak_start_hour=10,
            peak_end_hour=16,
            scheduler_timezone="Europe/London",
        )

        normal, peak, window = profiles_from_settings(settings)

        assert normal == ThresholdProfile("normal", 48, 24)
        assert peak == ThresholdProfile("peak", 8, 4)
        assert window == PeakWindow(10, 16, "Europe/London")

    def test_profiles_from_settings_rejects_invalid(self):
        settings = SimpleNamespace(
            normal_idle_hours=12,
            normal_warning_hours=24,
            peak_idle_hours=12,
            peak_warning_hours=6,
            peak_start_hour=9,
            peak_end_hour=18,
            scheduler_timezone="UTC",
        )

        with pytest.raises(InvalidThresholdsError):
            profiles_from_settings(settings)
