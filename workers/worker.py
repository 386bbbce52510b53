"""Worker script to run Celery workers (with the embedded beat scheduler)."""

from core.config import settings
from core.middleware.logging import setup_logging
from workers.celery_app import celery_app

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

if __name__ == "__main__":
    # A single worker runs beat; start more workers without -B
    celery_app.worker_main(
        argv=[
            "worker",
            "-B",
            f"--loglevel={settings.log_level.lower()}",
            "--concurrency=4",
            "-Q",
            "allocation,notifications",
        ]
    )
