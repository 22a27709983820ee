"""Admin API endpoints.

All routes require ``role == admin``.

Tournaments: create/update/delete, approve/reject submissions, publish
results, remove participants, trigger a reconciliation pass.
Funding: list/approve/reject withdrawals and recharges.
Rewards: grant and list.
Users: list, delete, change role.
Featured: ordered home page shortlist (add, remove, reorder).
Settings: payment account details, game logo upload.
"""

import logging

from fastapi import APIRouter, File, Query, UploadFile, status

from arena.api.deps import AdminUser, DbSession, ImageHost, StatusEngine
from arena.models.funding import RequestStatus
from arena.models.tournament import TournamentStatus
from arena.schemas.common import (
    RoleUpdateRequest,
    SuccessResponse,
    UploadResponse,
    UserProfileResponse,
)
from arena.schemas.tournament import (
    FeaturedAdd,
    FeaturedOrder,
    FeaturedTournamentResponse,
    ReconcileResponse,
    TournamentCreate,
    TournamentDetailResponse,
    TournamentReject,
    TournamentResponse,
    TournamentResult,
    TournamentUpdate,
)
from arena.schemas.wallet import (
    PaymentAccountsResponse,
    PaymentAccountsUpdate,
    RechargeResponse,
    ReviewRequest,
    RewardCreate,
    RewardResponse,
    WithdrawalResponse,
)
from arena.services.featured import FeaturedTournamentService
from arena.services.payment_settings import PaymentSettingsService
from arena.services.recharge import RechargeService
from arena.services.reward import RewardService
from arena.services.tournament import TournamentService
from arena.services.user import UserService
from arena.services.withdrawal import WithdrawalService
from arena.utils.image_host import ImageKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================
# Tournaments
# ============================================================


@router.get("/tournaments", response_model=list[TournamentResponse])
async def list_all_tournaments(
    db: DbSession,
    _admin: AdminUser,
    status_filter: TournamentStatus | None = Query(default=None, alias="status"),
) -> list[TournamentResponse]:
    """All tournaments including pending and rejected submissions."""
    tournaments = await TournamentService(db).list_tournaments(
        status_filter, include_hidden=True
    )
    return [TournamentResponse.model_validate(t) for t in tournaments]


@router.post(
    "/tournaments",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_tournament(
    data: TournamentCreate,
    db: DbSession,
    admin: AdminUser,
) -> TournamentResponse:
    tournament = await TournamentService(db).create_tournament(admin.id, data)
    return TournamentResponse.model_validate(tournament)


@router.post("/tournaments/reconcile", response_model=ReconcileResponse)
async def reconcile_tournaments(
    status_engine: StatusEngine,
    admin: AdminUser,
) -> ReconcileResponse:
    """Run a status reconciliation pass now."""
    result = await status_engine.reconcile()
    logger.info(f"Manual reconciliation by={admin.id[:8]}...: {result.to_dict()}")
    return ReconcileResponse.model_validate(result)


@router.get("/tournaments/{tournament_id}", response_model=TournamentDetailResponse)
async def get_tournament(
    tournament_id: str,
    db: DbSession,
    _admin: AdminUser,
) -> TournamentDetailResponse:
    tournament = await TournamentService(db).get_tournament(tournament_id, include_hidden=True)
    return TournamentDetailResponse.model_validate(tournament)


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
async def update_tournament(
    tournament_id: str,
    data: TournamentUpdate,
    db: DbSession,
    admin: AdminUser,
) -> TournamentResponse:
    tournament = await TournamentService(db).update_tournament(admin.id, tournament_id, data)
    return TournamentResponse.model_validate(tournament)


@router.delete("/tournaments/{tournament_id}", response_model=SuccessResponse)
async def delete_tournament(
    tournament_id: str,
    db: DbSession,
    admin: AdminUser,
) -> SuccessResponse:
    await TournamentService(db).delete_tournament(admin.id, tournament_id)
    return SuccessResponse(message="Tournament deleted")


@router.post("/tournaments/{tournament_id}/approve", response_model=TournamentResponse)
async def approve_tournament(
    tournament_id: str,
    db: DbSession,
    admin: AdminUser,
) -> TournamentResponse:
    tournament = await TournamentService(db).approve_tournament(admin.id, tournament_id)
    return TournamentResponse.model_validate(tournament)


@router.post("/tournaments/{tournament_id}/reject", response_model=TournamentResponse)
async def reject_tournament(
    tournament_id: str,
    body: TournamentReject,
    db: DbSession,
    admin: AdminUser,
) -> TournamentResponse:
    tournament = await TournamentService(db).reject_tournament(
        admin.id, tournament_id, body.reason
    )
    return TournamentResponse.model_validate(tournament)


@router.post("/tournaments/{tournament_id}/results", response_model=TournamentResponse)
async def publish_result(
    tournament_id: str,
    body: TournamentResult,
    db: DbSession,
    admin: AdminUser,
) -> TournamentResponse:
    tournament = await TournamentService(db).publish_result(
        admin.id,
        tournament_id,
        image_url=body.result_image_url,
        notes=body.result_notes,
    )
    return TournamentResponse.model_validate(tournament)


@router.delete(
    "/tournaments/{tournament_id}/participants/{user_id}",
    response_model=TournamentDetailResponse,
)
async def remove_participant(
    tournament_id: str,
    user_id: str,
    db: DbSession,
    admin: AdminUser,
) -> TournamentDetailResponse:
    """Remove a participant. The entry fee is not refunded."""
    tournament = await TournamentService(db).remove_participant(admin.id, tournament_id, user_id)
    return TournamentDetailResponse.model_validate(tournament)


# ============================================================
# Withdrawals
# ============================================================


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    db: DbSession,
    _admin: AdminUser,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
) -> list[WithdrawalResponse]:
    requests = await WithdrawalService(db).list_requests(status_filter)
    return [WithdrawalResponse.model_validate(r) for r in requests]


@router.post("/withdrawals/{request_id}/approve", response_model=WithdrawalResponse)
async def approve_withdrawal(
    request_id: str,
    body: ReviewRequest,
    db: DbSession,
    admin: AdminUser,
) -> WithdrawalResponse:
    request = await WithdrawalService(db).approve_withdrawal(
        admin.id,
        request_id,
        notes=body.notes,
        proof_image_url=body.proof_image_url,
    )
    return WithdrawalResponse.model_validate(request)


@router.post("/withdrawals/{request_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    request_id: str,
    body: ReviewRequest,
    db: DbSession,
    admin: AdminUser,
) -> WithdrawalResponse:
    request = await WithdrawalService(db).reject_withdrawal(
        admin.id,
        request_id,
        notes=body.notes,
        proof_image_url=body.proof_image_url,
    )
    return WithdrawalResponse.model_validate(request)


# ============================================================
# Recharges
# ============================================================


@router.get("/recharges", response_model=list[RechargeResponse])
async def list_recharges(
    db: DbSession,
    _admin: AdminUser,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
) -> list[RechargeResponse]:
    requests = await RechargeService(db).list_requests(status_filter)
    return [RechargeResponse.model_validate(r) for r in requests]


@router.post("/recharges/{request_id}/approve", response_model=RechargeResponse)
async def approve_recharge(
    request_id: str,
    body: ReviewRequest,
    db: DbSession,
    admin: AdminUser,
) -> RechargeResponse:
    request = await RechargeService(db).approve_recharge(admin.id, request_id, notes=body.notes)
    return RechargeResponse.model_validate(request)


@router.post("/recharges/{request_id}/reject", response_model=RechargeResponse)
async def reject_recharge(
    request_id: str,
    body: ReviewRequest,
    db: DbSession,
    admin: AdminUser,
) -> RechargeResponse:
    request = await RechargeService(db).reject_recharge(admin.id, request_id, notes=body.notes)
    return RechargeResponse.model_validate(request)


# ============================================================
# Rewards
# ============================================================


@router.post(
    "/rewards",
    response_model=RewardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_reward(
    body: RewardCreate,
    db: DbSession,
    admin: AdminUser,
) -> RewardResponse:
    record = await RewardService(db).grant_reward(
        admin.id,
        body.user_id,
        body.amount,
        description=body.description,
        game_name=body.game_name,
        position=body.position,
    )
    return RewardResponse.model_validate(record)


@router.get("/rewards", response_model=list[RewardResponse])
async def list_rewards(
    db: DbSession,
    _admin: AdminUser,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[RewardResponse]:
    records = await RewardService(db).list_all(limit=limit, offset=offset)
    return [RewardResponse.model_validate(r) for r in records]


# ============================================================
# Users
# ============================================================


@router.get("/users", response_model=list[UserProfileResponse])
async def list_users(
    db: DbSession,
    _admin: AdminUser,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[UserProfileResponse]:
    users = await UserService(db).list_users(limit=limit, offset=offset)
    return [UserProfileResponse.model_validate(u) for u in users]


@router.delete("/users/{user_id}", response_model=SuccessResponse)
async def delete_user(
    user_id: str,
    db: DbSession,
    admin: AdminUser,
) -> SuccessResponse:
    """Hard delete. Tournament seats and funding requests are kept."""
    orphans = await UserService(db).delete_user(admin.id, user_id)
    return SuccessResponse(
        message=(
            f"User deleted ({orphans['participations']} tournament entries and "
            f"{orphans['pending_withdrawals'] + orphans['pending_recharges']} "
            "pending requests kept)"
        )
    )


@router.put("/users/{user_id}/role", response_model=UserProfileResponse)
async def set_user_role(
    user_id: str,
    body: RoleUpdateRequest,
    db: DbSession,
    admin: AdminUser,
) -> UserProfileResponse:
    user = await UserService(db).set_role(admin.id, user_id, body.role)
    return UserProfileResponse.model_validate(user)


# ============================================================
# Featured tournaments
# ============================================================


async def _featured_list(db: DbSession) -> list[FeaturedTournamentResponse]:
    rows = await FeaturedTournamentService(db).list_featured(include_hidden=True)
    return [FeaturedTournamentResponse.from_entry(entry, t) for entry, t in rows]


@router.get("/featured-tournaments", response_model=list[FeaturedTournamentResponse])
async def list_featured(db: DbSession, _admin: AdminUser) -> list[FeaturedTournamentResponse]:
    """All entries, including ones whose tournament is no longer public."""
    return await _featured_list(db)


@router.post(
    "/featured-tournaments",
    response_model=list[FeaturedTournamentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_featured(
    body: FeaturedAdd,
    db: DbSession,
    admin: AdminUser,
) -> list[FeaturedTournamentResponse]:
    await FeaturedTournamentService(db).add_featured(
        admin.id,
        body.tournament_id,
        display_order=body.display_order,
        headline=body.headline,
    )
    return await _featured_list(db)


@router.put("/featured-tournaments/order", response_model=list[FeaturedTournamentResponse])
async def reorder_featured(
    body: FeaturedOrder,
    db: DbSession,
    admin: AdminUser,
) -> list[FeaturedTournamentResponse]:
    await FeaturedTournamentService(db).reorder(admin.id, body.tournament_ids)
    return await _featured_list(db)


@router.delete(
    "/featured-tournaments/{tournament_id}",
    response_model=list[FeaturedTournamentResponse],
)
async def remove_featured(
    tournament_id: str,
    db: DbSession,
    admin: AdminUser,
) -> list[FeaturedTournamentResponse]:
    await FeaturedTournamentService(db).remove_featured(admin.id, tournament_id)
    return await _featured_list(db)


# ============================================================
# Settings and uploads
# ============================================================


@router.put("/payment-accounts", response_model=PaymentAccountsResponse)
async def update_payment_accounts(
    body: PaymentAccountsUpdate,
    db: DbSession,
    admin: AdminUser,
) -> PaymentAccountsResponse:
    settings = await PaymentSettingsService(db).update(admin.id, body.model_dump())
    return PaymentAccountsResponse.model_validate(settings)


@router.post("/uploads/logo", response_model=UploadResponse)
async def upload_logo(
    image_host: ImageHost,
    _admin: AdminUser,
    file: UploadFile = File(...),
) -> UploadResponse:
    """Upload a game logo (max 2MB)."""
    content = await file.read()
    url = await image_host.upload(content, file.filename, file.content_type, ImageKind.LOGO)
    return UploadResponse(url=url)


@router.post("/uploads/result", response_model=UploadResponse)
async def upload_result_image(
    image_host: ImageHost,
    _admin: AdminUser,
    file: UploadFile = File(...),
) -> UploadResponse:
    """Upload a tournament result screenshot (max 5MB)."""
    content = await file.read()
    url = await image_host.upload(content, file.filename, file.content_type, ImageKind.PROOF)
    return UploadResponse(url=url)
