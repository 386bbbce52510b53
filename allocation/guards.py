"""
Per-job mutual exclusion.

A guard is acquired without waiting: if the job is already running the
caller gets ``JobAlreadyRunningError`` instead of queueing behind it.
Scheduled runs and on-demand administrator runs of the same job share a
guard name, and both idle sweeps share the ``reallocation`` guard because
they mutate the same copies.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.asyncio import Redis, from_url

from allocation.exceptions import JobAlreadyRunningError

logger = logging.getLogger(__name__)

REALLOCATION_GUARD = "reallocation"
STATS_RECOMPUTE_GUARD = "stats_recompute"
DAILY_SUMMARY_GUARD = "daily_summary"


class JobGuard:
    """Base class for job guards."""

    def hold(self, job_name: str):
        """Async context manager holding the guard for ``job_name``."""
        raise NotImplementedError


class LocalJobGuard(JobGuard):
    """In-process guard for tests and single-process deployments."""

    def __init__(self):
        self._running: set[str] = set()

    def is_running(self, job_name: str) -> bool:
        return job_name in self._running

    @asynccontextmanager
    async def hold(self, job_name: str) -> AsyncIterator[None]:
        if job_name in self._running:
            logger.warning(f"Rejecting run of '{job_name}': already in flight")
            raise JobAlreadyRunningError(job_name)
        self._running.add(job_name)
        try:
            yield
        finally:
            self._running.discard(job_name)


class RedisJobGuard(JobGuard):
    """
    Guard shared by the API process and the Celery workers.

    The lock expires after ``timeout`` seconds so a crashed holder cannot
    block the job forever.
    """

    def __init__(self, redis_url: str, timeout: int, key_prefix: str = "allocation:job"):
        self.redis_url = redis_url
        self.timeout = timeout
        self.key_prefix = key_prefix
        self._redis: Redis | None = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(self.redis_url)
        return self._redis

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @asynccontextmanager
    async def hold(self, job_name: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            f"{self.key_prefix}:{job_name}", timeout=self.timeout, blocking=False
        )
        if not await lock.acquire():
            logger.warning(f"Rejecting run of '{job_name}': already in flight")
            raise JobAlreadyRunningError(job_name)
        try:
            yield
        finally:
            try:
                await lock.release()
            except Exception:
                # Expired and possibly taken over by another holder
                logger.warning(f"Guard for '{job_name}' expired before release", exc_info=True)


async def run_guarded(guard: JobGuard, job_name: str, coro_factory):
    """Run ``coro_factory()`` while holding ``job_name``."""
    async with guard.hold(job_name):
        logger.info(f"Job '{job_name}' started")
        result = await coro_factory()
        logger.info(f"Job '{job_name}' finished")
        return result

