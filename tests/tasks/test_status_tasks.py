"""Tests for the tournament status Celery tasks."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from arena.models import Tournament, TournamentStatus
from arena.tasks.celery_app import celery_app
from arena.tasks.schedules import CELERY_BEAT_SCHEDULE
from arena.tasks.tournament_status import (
    backfill_live_timestamps_task,
    reconcile_tournament_statuses_task,
    run_backfill,
    run_reconcile,
)
from arena.utils.clock import utcnow


class TestRunReconcile:
    @pytest.mark.asyncio
    async def test_summarizes_pass(self, session_factory, make_tournament, fetch):
        now = utcnow()
        due = await make_tournament(scheduled_at=now - timedelta(minutes=1))
        finished = await make_tournament(
            status=TournamentStatus.LIVE,
            scheduled_at=now - timedelta(minutes=15),
            status_updated_at=now - timedelta(minutes=11),
        )
        await make_tournament(scheduled_at=now + timedelta(hours=3))

        summary = await run_reconcile(session_factory)

        assert summary["status"] == "success"
        assert summary["updated_to_live"] == 1
        assert summary["updated_to_completed"] == 1
        assert summary["failed"] == 0
        assert "processed_at" in summary
        assert (await fetch(Tournament, due)).status == TournamentStatus.LIVE.value
        assert (await fetch(Tournament, finished)).status == TournamentStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_backfill_summary(self, session_factory, make_tournament, fetch):
        tournament_id = await make_tournament(
            status=TournamentStatus.LIVE,
            scheduled_at=utcnow() - timedelta(minutes=30),
        )

        first = await run_backfill(session_factory)
        second = await run_backfill(session_factory)

        assert (first["status"], first["backfilled"]) == ("success", 1)
        assert second["backfilled"] == 0
        assert (await fetch(Tournament, tournament_id)).status_updated_at is not None


class TestCeleryWiring:
    def test_reconcile_scheduled_on_tournament_queue(self, settings):
        entry = CELERY_BEAT_SCHEDULE["reconcile-tournament-statuses"]

        assert entry["task"] == reconcile_tournament_statuses_task.name
        assert entry["schedule"] == settings.status_reconcile_interval_seconds
        assert entry["options"]["queue"] == "tournaments"
        assert reconcile_tournament_statuses_task.name in celery_app.tasks

    def test_reconcile_task_returns_summary(self):
        summary = {"status": "success", "updated_to_live": 2}
        with patch(
            "arena.tasks.tournament_status.run_reconcile",
            new=AsyncMock(return_value=summary),
        ) as run:
            result = reconcile_tournament_statuses_task.apply()

        assert result.get() == summary
        run.assert_awaited_once()

    def test_backfill_task_returns_summary(self):
        summary = {"status": "success", "backfilled": 0}
        with patch(
            "arena.tasks.tournament_status.run_backfill",
            new=AsyncMock(return_value=summary),
        ):
            result = backfill_live_timestamps_task.apply()

        assert result.get() == summary
