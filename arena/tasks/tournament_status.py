"""Tournament status tasks.

The reconciliation pass runs from Celery Beat once per interval, so
tournaments advance whether or not any client is online. The timestamp
backfill runs once whenever a worker comes up.
"""

import asyncio
import logging
from datetime import datetime, timezone

from celery.signals import worker_ready
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arena.config import get_settings
from arena.services.tournament_status import TournamentStatusEngine
from arena.tasks.celery_app import celery_app
from arena.utils.db import build_engine, build_session_factory

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="arena.tasks.tournament_status.reconcile_tournament_statuses_task",
)
def reconcile_tournament_statuses_task(self):
    """Advance tournament statuses against the clock.

    No automatic retry: the next scheduled pass picks up anything missed.
    """
    logger.info(f"Starting tournament status reconciliation (task {self.request.id})")
    return asyncio.run(run_reconcile())


@celery_app.task(
    bind=True,
    name="arena.tasks.tournament_status.backfill_live_timestamps_task",
    max_retries=3,
    default_retry_delay=30,
    autoretry_for=(Exception,),
    retry_backoff=True,
)
def backfill_live_timestamps_task(self):
    """Stamp live tournaments that never recorded when they went live."""
    logger.info(
        f"Starting live timestamp backfill (attempt {self.request.retries + 1})"
    )
    return asyncio.run(run_backfill())


@worker_ready.connect
def _backfill_on_worker_ready(sender=None, **kwargs):
    backfill_live_timestamps_task.delay()


async def run_reconcile(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict:
    """Run one reconciliation pass and summarize it.

    Without a session factory a dedicated engine is created for this event
    loop and disposed afterwards.
    """
    settings = get_settings()
    engine = None
    if session_factory is None:
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)

    try:
        status_engine = TournamentStatusEngine(session_factory, settings)
        result = await status_engine.reconcile()
        return {
            "status": "success",
            **result.to_dict(),
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
    finally:
        if engine is not None:
            await engine.dispose()


async def run_backfill(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict:
    settings = get_settings()
    engine = None
    if session_factory is None:
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)

    try:
        status_engine = TournamentStatusEngine(session_factory, settings)
        stamped = await status_engine.backfill_missing_timestamps()
        return {
            "status": "success",
            "backfilled": stamped,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
    finally:
        if engine is not None:
            await engine.dispose()
