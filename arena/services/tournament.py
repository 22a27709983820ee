"""Tournament Service for listing and administering tournaments.

Automatic status changes live in the status engine; this service covers
the admin-owned edges (pending -> upcoming / rejected) and the descriptive
fields, results and participant list.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.settings import FeaturedTournament
from arena.models.tournament import Participant, Tournament, TournamentStatus
from arena.models.user import User
from arena.schemas.tournament import TournamentCreate, TournamentUpdate
from arena.services.audit import AuditService
from arena.services.tournament_status import ensure_transition
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import (
    ErrorCode,
    InvalidAmountError,
    MissingFieldError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from arena.utils.sanitize import sanitize_input, sanitize_optional, sanitize_url

logger = logging.getLogger(__name__)

# Not visible in public listings
HIDDEN_STATUSES = (TournamentStatus.PENDING.value, TournamentStatus.REJECTED.value)

RESULT_STATUSES = (TournamentStatus.LIVE.value, TournamentStatus.COMPLETED.value)

_TEXT_FIELDS = ("match_details", "rules", "map_name", "game_version")
_AMOUNT_FIELDS = ("entry_fee", "prize_pool", "per_kill_amount")


class TournamentService:
    """Tournament CRUD, approval and participant administration."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_tournament(self, admin_id: str, data: TournamentCreate) -> Tournament:
        """Admin-created tournaments are approved and open immediately."""
        tournament = Tournament(
            **self._clean_fields(data.model_dump()),
            status=TournamentStatus.UPCOMING.value,
            approved=True,
            approved_at=utcnow(),
            created_by=admin_id,
        )
        self.session.add(tournament)
        await self.session.flush()

        logger.info(f"Tournament created: id={tournament.id} name='{tournament.name}'")
        return tournament

    async def submit_tournament(self, user: User, data: TournamentCreate) -> Tournament:
        """User-submitted tournaments wait in ``pending`` for an admin."""
        tournament = Tournament(
            **self._clean_fields(data.model_dump()),
            status=TournamentStatus.PENDING.value,
            approved=False,
            created_by=user.id,
            creator_email=user.email,
        )
        self.session.add(tournament)
        await self.session.flush()

        logger.info(
            f"Tournament submitted: id={tournament.id} by={user.id[:8]}... "
            f"name='{tournament.name}'"
        )
        return tournament

    async def update_tournament(
        self,
        admin_id: str,
        tournament_id: str,
        data: TournamentUpdate,
    ) -> Tournament:
        """Edit descriptive fields. Status and participants are never touched here."""
        changes = self._clean_fields(data.model_dump(exclude_unset=True), partial=True)

        async def unit() -> Tournament:
            tournament = await self._get_for_update(tournament_id)
            new_max = changes.get("max_participants")
            if new_max is not None and new_max < tournament.participant_count:
                raise ValidationError(
                    code=ErrorCode.INVALID_AMOUNT,
                    message="Maximum participants cannot be lower than the number already joined",
                    details={
                        "maxParticipants": new_max,
                        "participantCount": tournament.participant_count,
                    },
                )
            for field, value in changes.items():
                setattr(tournament, field, value)
            return tournament

        tournament = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="update_tournament",
        )
        logger.info(f"Tournament updated: id={tournament_id} fields={sorted(changes)} by={admin_id[:8]}...")
        return tournament

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    async def approve_tournament(self, admin_id: str, tournament_id: str) -> Tournament:
        async def unit() -> Tournament:
            tournament = await self._get_for_update(tournament_id)
            ensure_transition(tournament.status, TournamentStatus.UPCOMING)
            tournament.status = TournamentStatus.UPCOMING.value
            tournament.approved = True
            tournament.approved_at = utcnow()
            AuditService(self.session).record(
                "tournament.approve",
                admin_id,
                target_type="tournament",
                target_id=tournament.id,
                context={
                    "tournament_name": tournament.name,
                    "previous_status": TournamentStatus.PENDING.value,
                    "new_status": TournamentStatus.UPCOMING.value,
                },
            )
            return tournament

        tournament = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="approve_tournament",
        )
        logger.info(f"Tournament approved: id={tournament_id} by={admin_id[:8]}...")
        return tournament

    async def reject_tournament(
        self,
        admin_id: str,
        tournament_id: str,
        reason: str,
    ) -> Tournament:
        cleaned_reason = sanitize_input(reason)
        if not cleaned_reason:
            raise MissingFieldError("reason", "Please provide a reason for rejection")

        async def unit() -> Tournament:
            tournament = await self._get_for_update(tournament_id)
            ensure_transition(tournament.status, TournamentStatus.REJECTED)
            tournament.status = TournamentStatus.REJECTED.value
            tournament.approved = False
            tournament.rejection_reason = cleaned_reason
            tournament.rejected_at = utcnow()
            AuditService(self.session).record(
                "tournament.reject",
                admin_id,
                target_type="tournament",
                target_id=tournament.id,
                context={
                    "tournament_name": tournament.name,
                    "previous_status": TournamentStatus.PENDING.value,
                    "new_status": TournamentStatus.REJECTED.value,
                    "reason": cleaned_reason,
                },
            )
            return tournament

        tournament = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="reject_tournament",
        )
        logger.info(f"Tournament rejected: id={tournament_id} by={admin_id[:8]}...")
        return tournament

    # ------------------------------------------------------------------
    # Results and participants
    # ------------------------------------------------------------------

    async def publish_result(
        self,
        admin_id: str,
        tournament_id: str,
        *,
        image_url: str | None = None,
        notes: str | None = None,
    ) -> Tournament:
        """Attach a result image and/or notes to a live or completed tournament."""
        cleaned_url = sanitize_url(image_url)
        cleaned_notes = sanitize_optional(notes)
        if not cleaned_url and not cleaned_notes:
            raise MissingFieldError("result", "Please provide a result image or notes")

        async def unit() -> Tournament:
            tournament = await self._get_for_update(tournament_id)
            if tournament.status not in RESULT_STATUSES:
                raise PreconditionError(
                    code=ErrorCode.INVALID_TRANSITION,
                    message="Results can only be published for live or completed tournaments",
                    details={"status": tournament.status},
                )
            if cleaned_url:
                tournament.result_image_url = cleaned_url
            if cleaned_notes:
                tournament.result_notes = cleaned_notes
            return tournament

        tournament = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="publish_result",
        )
        logger.info(f"Tournament result published: id={tournament_id} by={admin_id[:8]}...")
        return tournament

    async def remove_participant(
        self,
        admin_id: str,
        tournament_id: str,
        user_id: str,
    ) -> Tournament:
        """Remove a participant. The entry fee is not refunded."""

        async def unit() -> Tournament:
            tournament = await self._get_for_update(tournament_id)
            result = await self.session.execute(
                select(Participant).where(
                    Participant.tournament_id == tournament.id,
                    Participant.user_id == user_id,
                )
            )
            participant = result.scalar_one_or_none()
            if not participant:
                raise NotFoundError("Participant", user_id)

            await self.session.delete(participant)
            tournament.participant_count = max(tournament.participant_count - 1, 0)

            user = await self.session.get(User, user_id, populate_existing=True)
            if user and tournament.id in (user.joined_tournament_ids or []):
                user.joined_tournament_ids = [
                    tid for tid in user.joined_tournament_ids if tid != tournament.id
                ]

            AuditService(self.session).record(
                "tournament.remove_participant",
                admin_id,
                target_type="tournament",
                target_id=tournament.id,
                context={"user_id": user_id, "username": participant.username},
            )
            return tournament

        tournament = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="remove_participant",
        )
        await self.session.refresh(tournament, ["participants"])
        logger.info(
            f"Participant removed: tournament={tournament_id} user={user_id[:8]}... "
            f"by={admin_id[:8]}..."
        )
        return tournament

    async def delete_tournament(self, admin_id: str, tournament_id: str) -> None:
        tournament = await self.session.get(Tournament, tournament_id)
        if not tournament:
            raise NotFoundError("Tournament", tournament_id)

        AuditService(self.session).record(
            "tournament.delete",
            admin_id,
            target_type="tournament",
            target_id=tournament.id,
            context={
                "tournament_name": tournament.name,
                "status": tournament.status,
                "participant_count": tournament.participant_count,
            },
        )
        featured = await self.session.get(FeaturedTournament, tournament.id)
        if featured:
            await self.session.delete(featured)
        await self.session.delete(tournament)
        await self.session.flush()
        logger.info(f"Tournament deleted: id={tournament_id} by={admin_id[:8]}...")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_tournament(
        self,
        tournament_id: str,
        *,
        include_hidden: bool = False,
    ) -> Tournament:
        tournament = await self.session.get(Tournament, tournament_id)
        if not tournament or (not include_hidden and tournament.status in HIDDEN_STATUSES):
            raise NotFoundError("Tournament", tournament_id)
        return tournament

    async def list_tournaments(
        self,
        status: TournamentStatus | None = None,
        *,
        include_hidden: bool = False,
    ) -> list[Tournament]:
        """Tournaments by scheduled start. Public callers never see pending or rejected."""
        query = select(Tournament)
        if status:
            query = query.where(Tournament.status == status.value)
        if not include_hidden:
            query = query.where(Tournament.status.not_in(HIDDEN_STATUSES))
        query = query.order_by(Tournament.scheduled_at.asc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_user_submissions(self, user_id: str) -> list[Tournament]:
        result = await self.session.execute(
            select(Tournament)
            .where(Tournament.created_by == user_id, Tournament.creator_email.is_not(None))
            .order_by(Tournament.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_joined(self, user_id: str) -> list[Tournament]:
        result = await self.session.execute(
            select(Tournament)
            .join(Participant, Participant.tournament_id == Tournament.id)
            .where(Participant.user_id == user_id)
            .order_by(Tournament.scheduled_at.desc())
        )
        return list(result.scalars().unique().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_for_update(self, tournament_id: str) -> Tournament:
        tournament = await self.session.get(Tournament, tournament_id, populate_existing=True)
        if not tournament:
            raise NotFoundError("Tournament", tournament_id)
        return tournament

    @staticmethod
    def _clean_fields(values: dict, partial: bool = False) -> dict:
        """Sanitize free text and re-check amounts on a model dump."""
        cleaned = dict(values)

        if "name" in cleaned or not partial:
            name = sanitize_input(cleaned.get("name"))
            if not name:
                raise MissingFieldError("name", "Tournament name is required")
            cleaned["name"] = name

        if not partial and not cleaned.get("scheduled_at"):
            raise MissingFieldError("scheduled_at", "Please select a date and time")
        if partial and "scheduled_at" in cleaned and cleaned["scheduled_at"] is None:
            cleaned.pop("scheduled_at")

        for field in _AMOUNT_FIELDS:
            if field in cleaned:
                if cleaned[field] is None:
                    cleaned.pop(field)
                elif cleaned[field] < 0:
                    raise InvalidAmountError(
                        f"{field.replace('_', ' ').capitalize()} cannot be negative",
                        amount=cleaned[field],
                        min_amount=0,
                    )

        if "max_participants" in cleaned:
            if cleaned["max_participants"] is None:
                cleaned.pop("max_participants")
            elif cleaned["max_participants"] < 1:
                raise InvalidAmountError(
                    "Maximum participants must be at least 1",
                    amount=cleaned["max_participants"],
                    min_amount=1,
                )

        for field in _TEXT_FIELDS:
            if field in cleaned:
                cleaned[field] = sanitize_optional(cleaned[field])

        if "game_logo_url" in cleaned:
            cleaned["game_logo_url"] = sanitize_url(cleaned["game_logo_url"])

        if "game_type" in cleaned:
            if cleaned["game_type"] is None:
                cleaned.pop("game_type")
            else:
                cleaned["game_type"] = getattr(cleaned["game_type"], "value", cleaned["game_type"])

        if "is_private" in cleaned and cleaned["is_private"] is None:
            cleaned.pop("is_private")

        return cleaned
