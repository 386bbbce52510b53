"""FastAPI dependencies for dependency injection."""

from functools import lru_cache

from allocation.guards import RedisJobGuard
from allocation.notifier import CeleryNotifier
from allocation.service import AllocationService
from allocation.store import StatsStore
from core.config import settings
from database.engine import AsyncSessionLocal


@lru_cache
def get_job_guard() -> RedisJobGuard:
    """Redis guard shared with the Celery workers."""
    return RedisJobGuard(str(settings.redis_url), settings.job_lock_timeout_seconds)


@lru_cache
def get_allocation_service() -> AllocationService:
    """
    Process-wide allocation service.

    On-demand runs take the same Redis guards as the scheduled jobs, and
    notices are queued on the Celery workers.
    """
    return AllocationService.from_settings(
        settings,
        store=StatsStore(AsyncSessionLocal),
        notifier=CeleryNotifier(),
        guard=get_job_guard(),
    )
