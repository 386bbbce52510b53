"""Celery app factory."""

from celery import Celery

celery_app = Celery(
    "copycheck_allocation",
    include=["workers.tasks.allocation", "workers.tasks.notifications"],
)
celery_app.config_from_object("workers.celery_config")
