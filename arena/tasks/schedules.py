"""Celery Beat schedule configuration.

Tasks:
- Every minute: tournament status reconciliation
"""

from arena.config import get_settings

settings = get_settings()


# Celery Beat schedule
CELERY_BEAT_SCHEDULE = {
    # Advance upcoming -> live -> completed without any client online
    "reconcile-tournament-statuses": {
        "task": "arena.tasks.tournament_status.reconcile_tournament_statuses_task",
        "schedule": settings.status_reconcile_interval_seconds,
        "options": {
            "queue": "tournaments",
            # A pass that waited longer than one interval is superseded by the next
            "expires": settings.status_reconcile_interval_seconds,
        },
    },
}


# Task routing configuration
CELERY_TASK_ROUTES = {
    "arena.tasks.tournament_status.*": {"queue": "tournaments"},
}
