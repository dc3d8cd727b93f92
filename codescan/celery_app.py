"""Celery application for detached scan and integration work."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from codescan.config import settings
from codescan.core.logging import setup_logging

celery_app = Celery(
    "codescan",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
    include=[
        "codescan.tasks.scan",
        "codescan.tasks.integration",
        "codescan.tasks.maintenance",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_default_queue="scans",
    task_routes={
        "codescan.tasks.scan.*": {"queue": "scans"},
        "codescan.tasks.integration.*": {"queue": "integrations"},
        "codescan.tasks.maintenance.*": {"queue": "maintenance"},
    },
    beat_schedule={
        "flag-stale-jobs": {
            "task": "codescan.tasks.maintenance.flag_stale_jobs",
            "schedule": crontab(minute="*/5"),
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Workers log through the same handler and formatter as the API."""
    setup_logging()
