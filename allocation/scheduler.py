"""
Scheduled allocation jobs.

Four jobs on independent clocks. Both idle sweeps take the ``reallocation``
guard, so they never overlap each other or an on-demand sweep; the peak sweep
fires every two hours through the peak window and re-checks the window when
it runs.
"""

import logging
from dataclasses import dataclass
from enum import Enum as PyEnum

from celery.schedules import crontab

from allocation.reallocation import ReallocationReport

logger = logging.getLogger(__name__)


class JobName(str, PyEnum):
    IDLE_SWEEP = "idle_sweep"
    PEAK_IDLE_SWEEP = "peak_idle_sweep"
    RECOMPUTE_STATS = "recompute_stats"
    DAILY_SUMMARY = "daily_summary"


@dataclass(frozen=True)
class ScheduledJob:
    name: JobName
    entry: str
    task: str
    schedule: crontab


def peak_hours(start_hour: int, end_hour: int) -> str:
    """Crontab hour field firing every two hours from ``start_hour`` inside [start, end)."""
    last = end_hour - 1
    if last < start_hour:
        raise ValueError(f"Empty peak window [{start_hour}, {end_hour})")
    return f"{start_hour}-{last}/2"


def scheduled_jobs(settings) -> list[ScheduledJob]:
    return [
        ScheduledJob(
            name=JobName.IDLE_SWEEP,
            entry="idle-sweep-hourly",
            task="workers.tasks.allocation.idle_sweep",
            schedule=crontab(minute=0),
        ),
        ScheduledJob(
            name=JobName.PEAK_IDLE_SWEEP,
            entry="idle-sweep-peak",
            task="workers.tasks.allocation.peak_idle_sweep",
            schedule=crontab(
                minute=0, hour=peak_hours(settings.peak_start_hour, settings.peak_end_hour)
            ),
        ),
        ScheduledJob(
            name=JobName.RECOMPUTE_STATS,
            entry="recompute-stats",
            task="workers.tasks.allocation.recompute_stats",
            schedule=crontab(minute=0, hour="*/6"),
        ),
        ScheduledJob(
            name=JobName.DAILY_SUMMARY,
            entry="daily-summary",
            task="workers.tasks.allocation.daily_summary",
            schedule=crontab(minute=0, hour=settings.daily_summary_hour),
        ),
    ]


def beat_schedule(settings) -> dict:
    """Celery beat schedule for the allocation jobs."""
    return {
        job.entry: {
            "task": job.task,
            "schedule": job.schedule,
            "options": {"queue": "allocation"},
        }
        for job in scheduled_jobs(settings)
    }


def report_payload(report: ReallocationReport | None) -> dict:
    if report is None:
        return {"status": "skipped", "reason": "outside peak window"}
    return {
        "status": "completed",
        "profile": report.profile,
        "warned": report.warned,
        "reassigned": [list(item) for item in report.reassigned],
        "unassignable": report.unassignable,
        "skipped": report.skipped,
    }


async def run_job(service, job: JobName) -> dict:
    """Run one job against ``service`` and return a JSON-serialisable result."""
    job = JobName(job)
    logger.info(f"Running scheduled job {job.value}", extra={"job": job.value})

    if job is JobName.IDLE_SWEEP:
        return report_payload(await service.run_normal_sweep())
    if job is JobName.PEAK_IDLE_SWEEP:
        return report_payload(await service.run_peak_sweep())
    if job is JobName.RECOMPUTE_STATS:
        result = await service.recompute_stats()
        return {
            "status": "completed",
            "scored": [s.examiner_id for s in result.stats],
            "skipped": result.skipped,
        }
    summary = await service.daily_summary()
    return {"status": "completed", "summary": summary}
