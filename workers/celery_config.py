"""Celery configuration for the allocation jobs and notification delivery."""

from kombu import Exchange, Queue

from allocation.scheduler import beat_schedule as allocation_beat_schedule
from core.config import settings

# Broker configuration (Redis)
broker_url = str(settings.celery_broker_url)
result_backend = str(settings.celery_result_backend)

# Task routing and serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = settings.scheduler_timezone
enable_utc = True

# Task execution settings
task_track_started = True
task_time_limit = 30 * 60  # 30 minutes hard limit
task_soft_time_limit = 25 * 60  # 25 minutes soft limit

# Worker settings
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000
worker_hijack_root_logger = False

# Queue configuration with routing
default_exchange = Exchange("allocation", type="direct")
task_default_queue = "allocation"
task_queues = (
    Queue("allocation", exchange=default_exchange, routing_key="allocation"),
    Queue("notifications", exchange=default_exchange, routing_key="notifications"),
)

# Task routing
task_routes = {
    "workers.tasks.allocation.*": {"queue": "allocation"},
    "workers.tasks.notifications.*": {"queue": "notifications"},
}

# Periodic jobs
beat_schedule = allocation_beat_schedule(settings)

# Result backend settings
result_expires = 24 * 3600  # Daily summaries stay readable for a day
