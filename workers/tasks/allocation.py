"""
Allocation job tasks.

Each task runs its job in a fresh event loop with its own ``NullPool``
engine. Guards live in Redis so a scheduled run and an administrator's
on-demand run of the same job never overlap; a run that finds its guard taken
is logged and reported as rejected.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from allocation.exceptions import JobAlreadyRunningError
from allocation.guards import RedisJobGuard
from allocation.notifier import CeleryNotifier
from allocation.scheduler import JobName, run_job
from allocation.service import AllocationService
from allocation.store import StatsStore
from core.config import settings
from database.engine import create_engine, create_session_factory
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@asynccontextmanager
async def job_service():
    engine = create_engine(null_pool=True)
    guard = RedisJobGuard(str(settings.redis_url), settings.job_lock_timeout_seconds)
    try:
        yield AllocationService.from_settings(
            settings,
            store=StatsStore(create_session_factory(engine)),
            notifier=CeleryNotifier(),
            guard=guard,
        )
    finally:
        await guard.close()
        await engine.dispose()


async def execute_job(job: JobName) -> dict:
    async with job_service() as service:
        try:
            return await run_job(service, job)
        except JobAlreadyRunningError as e:
            logger.warning(f"Scheduled {job.value} not started: {e}", extra={"job": job.value})
            return {"status": "rejected", "reason": str(e)}


def run_sync(job: JobName) -> dict:
    return asyncio.run(execute_job(job))


@celery_app.task(name="workers.tasks.allocation.idle_sweep")
def idle_sweep() -> dict:
    """Hourly idle sweep with the normal thresholds."""
    return run_sync(JobName.IDLE_SWEEP)


@celery_app.task(name="workers.tasks.allocation.peak_idle_sweep")
def peak_idle_sweep() -> dict:
    """Idle sweep with the peak thresholds; skipped outside the peak window."""
    return run_sync(JobName.PEAK_IDLE_SWEEP)


@celery_app.task(name="workers.tasks.allocation.recompute_stats")
def recompute_stats() -> dict:
    return run_sync(JobName.RECOMPUTE_STATS)


@celery_app.task(name="workers.tasks.allocation.daily_summary")
def daily_summary() -> dict:
    return run_sync(JobName.DAILY_SUMMARY)
