"""Celery application for the tournament status scheduler.

Redis DB 1 is the broker and DB 2 holds results; the API's rate limiter
keeps DB 0. Beat drives the periodic reconcile pass.
"""

from celery import Celery
from celery.signals import setup_logging

from arena.config import get_settings
from arena.logging_config import configure_logging
from arena.tasks.schedules import CELERY_BEAT_SCHEDULE, CELERY_TASK_ROUTES

settings = get_settings()

REDIS_BASE_URL = settings.redis_url.rsplit("/", 1)[0]

celery_app = Celery(
    "arena_tasks",
    broker=f"{REDIS_BASE_URL}/1",
    backend=f"{REDIS_BASE_URL}/2",
    include=["arena.tasks.tournament_status"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes=CELERY_TASK_ROUTES,
    beat_schedule=CELERY_BEAT_SCHEDULE,
    # Reconcile and backfill passes are idempotent under redelivery
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    result_expires=settings.status_reconcile_interval_seconds * 10,
)


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    """Replace Celery's own handlers with the structlog pipeline."""
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.app_env == "production",
        service="worker",
    )
