"""Tests for scheduled job definitions and dispatch."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from celery.schedules import crontab

from allocation.reallocation import ReallocationReport
from allocation.scheduler import JobName, beat_schedule, peak_hours, run_job


def make_settings(**overrides):
    values = {"peak_start_hour": 9, "peak_end_hour": 18, "daily_summary_hour": 8}
    values.update(overrides)
    return SimpleNamespace(**values)


class TestBeatSchedule:
    """Tests for beat_schedule."""

    def test_four_jobs(self):
        schedule = beat_schedule(make_settings())

        assert set(schedule) == {
            "idle-sweep-hourly",
            "idle-sweep-peak",
            "recompute-stats",
            "daily-summary",
        }
        assert schedule["idle-sweep-hourly"]["task"] == "workers.tasks.allocation.idle_sweep"
        assert schedule["idle-sweep-hourly"]["schedule"] == crontab(minute=0)
        assert schedule["recompute-stats"]["schedule"] == crontab(minute=0, hour="*/6")
        assert schedule["daily-summary"]["schedule"] == crontab(minute=0, hour=8)

    def test_peak_runs_every_two_hours_inside_window(self):
        schedule = beat_schedule(make_settings())

        peak = schedule["idle-sweep-peak"]["schedule"]
        assert peak.hour == {9, 11, 13, 15, 17}

    @pytest.mark.parametrize(
        "start,end,expected",
        [(9, 18, "9-17/2"), (8, 20, "8-19/2"), (10, 11, "10-10/2")],
    )
    def test_peak_hours(self, start, end, expected):
        assert peak_hours(start, end) == expected

    def test_empty_peak_window(self):
        with pytest.raises(ValueError):
            peak_hours(18, 9)


class TestRunJob:
    """Tests for run_job dispatch."""

    def make_service(self):
        service = MagicMock()
        report = ReallocationReport(profile="normal", warned=[1], reassigned=[(2, 3, 4)])
        service.run_normal_sweep = AsyncMock(return_value=report)
        service.run_peak_sweep = AsyncMock(return_value=None)
        service.recompute_stats = AsyncMock(
            return_value=SimpleNamespace(stats=[SimpleNamespace(examiner_id=5)], skipped=[])
        )
        service.daily_summary = AsyncMock(return_value={"idle_copies": 0})
        return service

    async def test_idle_sweep(self):
        result = await run_job(self.make_service(), JobName.IDLE_SWEEP)

        assert result["status"] == "completed"
        assert result["warned"] == [1]
        assert result["reassigned"] == [[2, 3, 4]]

    async def test_peak_sweep_outside_window(self):
        result = await run_job(self.make_service(), "peak_idle_sweep")

        assert result["status"] == "skipped"

    async def test_recompute(self):
        result = await run_job(self.make_service(), JobName.RECOMPUTE_STATS)

        assert result == {"status": "completed", "scored": [5], "skipped": []}

    async def test_daily_summary(self):
        service = self.make_service()

        result = await run_job(service, JobName.DAILY_SUMMARY)

        assert result["summary"] == {"idle_copies": 0}
        service.daily_summary.assert_awaited_once()
