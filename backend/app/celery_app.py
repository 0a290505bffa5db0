"""Celery application configuration."""

import logging

from celery import Celery
from celery.signals import setup_logging

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "repofix",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.analyze_repo", "app.tasks.fix_issues"],
)

# Configuration
celery_app.conf.update(
    # Task execution
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_time_limit=1800,  # 30 minutes max per task
    task_soft_time_limit=1740,

    # Redelivery; runs that are no longer pending are skipped by the services
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Worker configuration
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    # Periodic jobs
    beat_schedule={
        "reap-stale-runs": {
            "task": "app.tasks.analyze_repo.reap_stale_runs",
            "schedule": float(settings.reaper_interval_seconds),
        },
    },
)


@setup_logging.connect
def configure_logging(**kwargs) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
