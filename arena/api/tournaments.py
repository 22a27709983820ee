"""Tournament API endpoints.

Endpoints:
- GET /tournaments - Public listing (upcoming, live, completed)
- GET /tournaments/featured - Home page shortlist in display order
- GET /tournaments/{id} - Tournament detail with participants
- POST /tournaments/{id}/join - Pay the entry fee and join
- POST /tournaments/submissions - Submit a tournament for approval
- GET /tournaments/submissions/mine - Caller's submissions
- GET /tournaments/joined/mine - Tournaments the caller joined
"""

import logging

from fastapi import APIRouter, Query, status

from arena.api.deps import CurrentUser, DbSession, StatusEngine, VerifiedUser
from arena.config import get_settings
from arena.models.tournament import TournamentStatus
from arena.schemas.tournament import (
    FeaturedTournamentResponse,
    JoinRequest,
    JoinResponse,
    TournamentCreate,
    TournamentDetailResponse,
    TournamentResponse,
)
from arena.services.featured import FeaturedTournamentService
from arena.services.tournament import TournamentService
from arena.services.wallet import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])


async def _reconcile_before_read(status_engine) -> None:
    if get_settings().reconcile_on_read:
        await status_engine.reconcile_safely()


@router.get("", response_model=list[TournamentResponse])
async def list_tournaments(
    db: DbSession,
    status_engine: StatusEngine,
    _user: CurrentUser,
    status_filter: TournamentStatus | None = Query(default=None, alias="status"),
) -> list[TournamentResponse]:
    await _reconcile_before_read(status_engine)
    tournaments = await TournamentService(db).list_tournaments(status_filter)
    return [TournamentResponse.model_validate(t) for t in tournaments]


@router.get("/featured", response_model=list[FeaturedTournamentResponse])
async def list_featured_tournaments(
    db: DbSession,
    status_engine: StatusEngine,
    _user: CurrentUser,
) -> list[FeaturedTournamentResponse]:
    await _reconcile_before_read(status_engine)
    rows = await FeaturedTournamentService(db).list_featured()
    return [FeaturedTournamentResponse.from_entry(entry, t) for entry, t in rows]


@router.get("/submissions/mine", response_model=list[TournamentResponse])
async def list_my_submissions(
    db: DbSession,
    current_user: CurrentUser,
) -> list[TournamentResponse]:
    tournaments = await TournamentService(db).list_user_submissions(current_user.id)
    return [TournamentResponse.model_validate(t) for t in tournaments]


@router.get("/joined/mine", response_model=list[TournamentResponse])
async def list_my_tournaments(
    db: DbSession,
    status_engine: StatusEngine,
    current_user: CurrentUser,
) -> list[TournamentResponse]:
    await _reconcile_before_read(status_engine)
    tournaments = await TournamentService(db).list_joined(current_user.id)
    return [TournamentResponse.model_validate(t) for t in tournaments]


@router.post(
    "/submissions",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_tournament(
    data: TournamentCreate,
    db: DbSession,
    current_user: VerifiedUser,
) -> TournamentResponse:
    """Submit a tournament; it stays hidden until an admin approves it."""
    tournament = await TournamentService(db).submit_tournament(current_user, data)
    return TournamentResponse.model_validate(tournament)


@router.get("/{tournament_id}", response_model=TournamentDetailResponse)
async def get_tournament(
    tournament_id: str,
    db: DbSession,
    status_engine: StatusEngine,
    _user: CurrentUser,
) -> TournamentDetailResponse:
    await _reconcile_before_read(status_engine)
    tournament = await TournamentService(db).get_tournament(tournament_id)
    return TournamentDetailResponse.model_validate(tournament)


@router.post("/{tournament_id}/join", response_model=JoinResponse)
async def join_tournament(
    tournament_id: str,
    body: JoinRequest,
    db: DbSession,
    current_user: VerifiedUser,
) -> JoinResponse:
    """Join an upcoming tournament with an in-game username."""
    user_id = current_user.id
    wallet = WalletService(db)
    participant = await wallet.join_tournament(user_id, tournament_id, body.username)
    balance = await wallet.get_balance(user_id)

    return JoinResponse(
        tournament_id=participant.tournament_id,
        username=participant.username,
        joined_at=participant.joined_at,
        wallet_balance=balance,
    )
