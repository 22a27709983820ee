"""Featured tournaments shown on the home page.

Admins keep a short ordered list of tournaments to highlight. Public reads
drop entries whose tournament is pending or rejected; deleting a tournament
removes its entry.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.settings import FeaturedTournament
from arena.models.tournament import Tournament
from arena.services.audit import AuditService
from arena.services.tournament import HIDDEN_STATUSES
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import ErrorCode, NotFoundError, PreconditionError, ValidationError
from arena.utils.sanitize import sanitize_optional

logger = logging.getLogger(__name__)


class FeaturedTournamentService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def list_featured(
        self,
        *,
        include_hidden: bool = False,
    ) -> list[tuple[FeaturedTournament, Tournament]]:
        """Entries with their tournaments, in display order."""
        query = (
            select(FeaturedTournament, Tournament)
            .join(Tournament, Tournament.id == FeaturedTournament.tournament_id)
            .order_by(FeaturedTournament.display_order.asc())
        )
        if not include_hidden:
            query = query.where(Tournament.status.not_in(HIDDEN_STATUSES))

        result = await self.session.execute(query)
        return list(result.tuples().all())

    async def add_featured(
        self,
        admin_id: str,
        tournament_id: str,
        *,
        display_order: int | None = None,
        headline: str | None = None,
    ) -> FeaturedTournament:
        """Feature a tournament at ``display_order`` (appended when omitted).

        Raises:
            ValidationError: display_order below 1
            NotFoundError: Unknown tournament
            PreconditionError: Tournament is pending/rejected, or already featured
        """
        if display_order is not None and display_order < 1:
            raise ValidationError(
                code=ErrorCode.INVALID_ORDER,
                message="Display order must be at least 1",
                details={"displayOrder": display_order},
            )
        cleaned_headline = sanitize_optional(headline)

        async def unit() -> FeaturedTournament:
            tournament = await self.session.get(Tournament, tournament_id, populate_existing=True)
            if not tournament:
                raise NotFoundError("Tournament", tournament_id)
            if tournament.status in HIDDEN_STATUSES:
                raise PreconditionError(
                    code=ErrorCode.TOURNAMENT_HIDDEN,
                    message="Only approved tournaments can be featured",
                    details={"status": tournament.status},
                )

            entries = await self._entries()
            if any(entry.tournament_id == tournament_id for entry in entries):
                raise PreconditionError(
                    code=ErrorCode.ALREADY_FEATURED,
                    message="This tournament is already featured",
                )

            entry = FeaturedTournament(
                tournament_id=tournament_id,
                headline=cleaned_headline,
                added_by=admin_id,
            )
            position = len(entries) if display_order is None else display_order - 1
            entries.insert(min(position, len(entries)), entry)
            self.session.add(entry)
            self._renumber(entries)

            AuditService(self.session).record(
                "featured.add",
                admin_id,
                target_type="tournament",
                target_id=tournament_id,
                context={
                    "tournament_name": tournament.name,
                    "display_order": entry.display_order,
                },
            )
            return entry

        entry = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="add_featured",
        )
        logger.info(
            f"Tournament featured: id={tournament_id} order={entry.display_order} "
            f"by={admin_id[:8]}..."
        )
        return entry

    async def remove_featured(self, admin_id: str, tournament_id: str) -> None:
        async def unit() -> None:
            entries = await self._entries()
            entry = next((e for e in entries if e.tournament_id == tournament_id), None)
            if entry is None:
                raise NotFoundError("Featured tournament", tournament_id)

            entries.remove(entry)
            await self.session.delete(entry)
            self._renumber(entries)

            AuditService(self.session).record(
                "featured.remove",
                admin_id,
                target_type="tournament",
                target_id=tournament_id,
                context={"display_order": entry.display_order},
            )

        await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="remove_featured",
        )
        logger.info(f"Tournament unfeatured: id={tournament_id} by={admin_id[:8]}...")

    async def reorder(self, admin_id: str, tournament_ids: list[str]) -> None:
        """Set the display order; ``tournament_ids`` must name every entry once."""
        if len(set(tournament_ids)) != len(tournament_ids):
            raise ValidationError(
                code=ErrorCode.INVALID_ORDER,
                message="Each featured tournament may appear only once",
                details={"tournamentIds": tournament_ids},
            )

        async def unit() -> None:
            by_id = {entry.tournament_id: entry for entry in await self._entries()}
            if set(tournament_ids) != set(by_id):
                raise ValidationError(
                    code=ErrorCode.INVALID_ORDER,
                    message="The new order must list every featured tournament",
                    details={"expected": sorted(by_id), "received": tournament_ids},
                )

            self._renumber([by_id[tid] for tid in tournament_ids])
            AuditService(self.session).record(
                "featured.reorder",
                admin_id,
                target_type="settings",
                target_id="featured_tournaments",
                context={"order": tournament_ids},
            )

        await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="reorder_featured",
        )
        logger.info(f"Featured tournaments reordered by={admin_id[:8]}...")

    async def _entries(self) -> list[FeaturedTournament]:
        result = await self.session.execute(
            select(FeaturedTournament)
            .order_by(FeaturedTournament.display_order.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    def _renumber(entries: list[FeaturedTournament]) -> None:
        for position, entry in enumerate(entries, start=1):
            entry.display_order = position
