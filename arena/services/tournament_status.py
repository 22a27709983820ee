"""Tournament status engine.

Keeps tournament status in step with wall-clock time:

- upcoming -> live once the scheduled start (less a grace buffer) has passed
- live -> completed once the live window has elapsed since going live
- live without a transition timestamp is stamped and left for the next pass

Every tournament is advanced in its own transaction under the row's version
check, so passes may run concurrently from several workers: the loser of a
race simply skips that tournament.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import lazyload
from sqlalchemy.orm.exc import StaleDataError

from arena.config import Settings, get_settings
from arena.models.audit import SYSTEM_ACTOR
from arena.models.tournament import Tournament, TournamentStatus
from arena.services.audit import AuditService
from arena.utils.clock import as_utc, utcnow
from arena.utils.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


# Lifecycle graph. pending transitions belong to admins, the rest to the engine.
ALLOWED_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.PENDING: frozenset({TournamentStatus.UPCOMING, TournamentStatus.REJECTED}),
    TournamentStatus.UPCOMING: frozenset({TournamentStatus.LIVE}),
    TournamentStatus.LIVE: frozenset({TournamentStatus.COMPLETED}),
    TournamentStatus.COMPLETED: frozenset(),
    TournamentStatus.REJECTED: frozenset(),
}


def ensure_transition(current: TournamentStatus | str, new: TournamentStatus | str) -> None:
    """Raise unless ``current -> new`` is an edge of the lifecycle.

    Raises:
        InvalidTransitionError: For any other status change
    """
    current = TournamentStatus(current)
    new = TournamentStatus(new)
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, new.value)


class TransitionAction(str, Enum):
    """What a reconciliation pass does to one tournament."""

    GO_LIVE = "go_live"
    COMPLETE = "complete"
    BACKFILL = "backfill"
    NONE = "none"


def plan_transition(
    tournament: Tournament,
    now: datetime,
    live_window: timedelta,
    grace: timedelta,
) -> TransitionAction:
    """Decide the action for one tournament at ``now``. Performs no I/O."""
    status = tournament.status_enum

    if status is TournamentStatus.UPCOMING:
        scheduled_at = as_utc(tournament.scheduled_at)
        if scheduled_at is not None and now - grace >= scheduled_at:
            return TransitionAction.GO_LIVE
        return TransitionAction.NONE

    if status is TournamentStatus.LIVE:
        went_live_at = as_utc(tournament.status_updated_at)
        if went_live_at is None:
            return TransitionAction.BACKFILL
        if now - went_live_at >= live_window:
            return TransitionAction.COMPLETE
        return TransitionAction.NONE

    if status in (
        TournamentStatus.PENDING,
        TournamentStatus.COMPLETED,
        TournamentStatus.REJECTED,
    ):
        return TransitionAction.NONE

    raise ValueError(f"Unhandled tournament status: {status}")


@dataclass
class ReconcileResult:
    """Counts from one reconciliation pass."""

    updated_to_live: int = 0
    updated_to_completed: int = 0
    backfilled: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total_writes(self) -> int:
        return self.updated_to_live + self.updated_to_completed + self.backfilled

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class TournamentStatusEngine:
    """Periodic reconciliation of tournament status against the clock."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        settings = settings or get_settings()
        self.live_window = timedelta(minutes=settings.live_window_minutes)
        self.grace = timedelta(seconds=settings.start_grace_seconds)

    @property
    def completion_reason(self) -> str:
        minutes = int(self.live_window.total_seconds() // 60)
        return f"Auto-completed after {minutes} minutes of being live"

    async def reconcile(self, now: datetime | None = None) -> ReconcileResult:
        """Run one pass over every tournament that can still advance.

        A failure on one tournament is logged and counted; the pass carries
        on with the rest.
        """
        now = now or utcnow()
        result = ReconcileResult()

        tournament_ids = await self._candidate_ids(
            Tournament.status.in_(
                [TournamentStatus.UPCOMING.value, TournamentStatus.LIVE.value]
            )
        )

        for tournament_id in tournament_ids:
            try:
                action = await self._advance(tournament_id, now)
            except StaleDataError:
                logger.info(f"Tournament {tournament_id} changed concurrently, skipping this pass")
                result.skipped += 1
                continue
            except Exception:
                logger.exception(f"Failed to reconcile tournament {tournament_id}")
                result.failed += 1
                continue

            if action is TransitionAction.GO_LIVE:
                result.updated_to_live += 1
            elif action is TransitionAction.COMPLETE:
                result.updated_to_completed += 1
            elif action is TransitionAction.BACKFILL:
                result.backfilled += 1

        if result.total_writes or result.failed:
            logger.info(
                f"Status reconciliation: live={result.updated_to_live} "
                f"completed={result.updated_to_completed} "
                f"backfilled={result.backfilled} skipped={result.skipped} "
                f"failed={result.failed}"
            )
        return result

    async def reconcile_safely(self, now: datetime | None = None) -> ReconcileResult | None:
        """Reconcile before a read; never lets a failure reach the reader."""
        try:
            return await self.reconcile(now)
        except Exception:
            logger.exception("Opportunistic status reconciliation failed")
            return None

    async def backfill_missing_timestamps(self, now: datetime | None = None) -> int:
        """Stamp every live tournament that has no transition timestamp.

        Returns the number of tournaments stamped; a repeat call returns 0.
        """
        now = now or utcnow()
        stamped = 0

        tournament_ids = await self._candidate_ids(
            Tournament.status == TournamentStatus.LIVE.value,
            Tournament.status_updated_at.is_(None),
        )

        for tournament_id in tournament_ids:
            try:
                action = await self._advance(
                    tournament_id, now, only=TransitionAction.BACKFILL
                )
            except StaleDataError:
                logger.info(f"Tournament {tournament_id} changed concurrently, not backfilled")
                continue
            except Exception:
                logger.exception(f"Failed to backfill tournament {tournament_id}")
                continue
            if action is TransitionAction.BACKFILL:
                stamped += 1

        if stamped:
            logger.info(f"Backfilled status timestamp on {stamped} live tournaments")
        return stamped

    async def _candidate_ids(self, *criteria) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(Tournament.id).where(*criteria))
            return list(result.scalars().all())

    async def _advance(
        self,
        tournament_id: str,
        now: datetime,
        only: TransitionAction | None = None,
    ) -> TransitionAction:
        """Apply the planned action to one tournament in its own transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                tournament = await session.get(
                    Tournament,
                    tournament_id,
                    options=[lazyload(Tournament.participants)],
                )
                if tournament is None:
                    return TransitionAction.NONE

                action = plan_transition(tournament, now, self.live_window, self.grace)
                if only is not None and action is not only:
                    return TransitionAction.NONE

                if action is TransitionAction.GO_LIVE:
                    ensure_transition(tournament.status, TournamentStatus.LIVE)
                    tournament.status = TournamentStatus.LIVE.value
                    tournament.status_updated_at = now
                    logger.info(f"Tournament {tournament.id} '{tournament.name}' is now live")

                elif action is TransitionAction.COMPLETE:
                    ensure_transition(tournament.status, TournamentStatus.COMPLETED)
                    previous = tournament.status
                    tournament.status = TournamentStatus.COMPLETED.value
                    tournament.status_updated_at = now
                    AuditService(session).record(
                        "tournament.status_change",
                        SYSTEM_ACTOR,
                        target_type="tournament",
                        target_id=tournament.id,
                        context={
                            "tournament_name": tournament.name,
                            "previous_status": previous,
                            "new_status": TournamentStatus.COMPLETED.value,
                            "reason": self.completion_reason,
                        },
                    )
                    logger.info(f"Tournament {tournament.id} '{tournament.name}' completed")

                elif action is TransitionAction.BACKFILL:
                    tournament.status_updated_at = now
                    logger.info(
                        f"Tournament {tournament.id} live without timestamp, stamped for next pass"
                    )

                return action
