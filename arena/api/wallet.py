"""Wallet API endpoints.

Endpoints:
- GET /wallet/balance - Current balance
- GET /wallet/transactions - Ledger history
- POST /wallet/withdrawals - Request a withdrawal
- GET /wallet/withdrawals - Caller's withdrawal requests
- POST /wallet/recharges - Request a recharge with payment proof
- GET /wallet/recharges - Caller's recharge requests
- GET /wallet/rewards - Rewards granted to the caller
- GET /wallet/payment-accounts - Where to send recharge payments
"""

import logging

from fastapi import APIRouter, Query, status

from arena.api.deps import CurrentUser, DbSession, VerifiedUser
from arena.models.wallet import TransactionType
from arena.schemas.wallet import (
    BalanceResponse,
    PaymentAccountsResponse,
    RechargeCreate,
    RechargeResponse,
    RewardResponse,
    TransactionResponse,
    WithdrawalCreate,
    WithdrawalResponse,
)
from arena.services.payment_settings import PaymentSettingsService
from arena.services.recharge import RechargeService
from arena.services.reward import RewardService
from arena.services.wallet import WalletService
from arena.services.withdrawal import WithdrawalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(db: DbSession, current_user: CurrentUser) -> BalanceResponse:
    balance = await WalletService(db).get_balance(current_user.id)
    return BalanceResponse(wallet_balance=balance)


@router.get("/transactions", response_model=list[TransactionResponse])
async def get_transactions(
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    tx_type: TransactionType | None = Query(default=None, alias="type"),
) -> list[TransactionResponse]:
    transactions = await WalletService(db).get_transactions(
        current_user.id,
        limit=limit,
        offset=offset,
        tx_type=tx_type,
    )
    return [TransactionResponse.model_validate(tx) for tx in transactions]


@router.post(
    "/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_withdrawal(
    body: WithdrawalCreate,
    db: DbSession,
    current_user: VerifiedUser,
) -> WithdrawalResponse:
    """Request a payout; the balance is debited when an admin approves."""
    request = await WithdrawalService(db).request_withdrawal(
        current_user.id,
        body.amount,
        account_name=body.account_name,
        account_number=body.account_number,
        bank_name=body.bank_name,
    )
    return WithdrawalResponse.model_validate(request)


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    db: DbSession,
    current_user: CurrentUser,
) -> list[WithdrawalResponse]:
    requests = await WithdrawalService(db).list_for_user(current_user.id)
    return [WithdrawalResponse.model_validate(r) for r in requests]


@router.post(
    "/recharges",
    response_model=RechargeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_recharge(
    body: RechargeCreate,
    db: DbSession,
    current_user: VerifiedUser,
) -> RechargeResponse:
    """Report a manual payment; upload the proof through /uploads/proof first."""
    request = await RechargeService(db).request_recharge(
        current_user.id,
        body.amount,
        payment_method=body.payment_method.value if body.payment_method else None,
        transaction_ref=body.transaction_ref,
        proof_image_url=body.proof_image_url,
    )
    return RechargeResponse.model_validate(request)


@router.get("/recharges", response_model=list[RechargeResponse])
async def list_recharges(
    db: DbSession,
    current_user: CurrentUser,
) -> list[RechargeResponse]:
    requests = await RechargeService(db).list_for_user(current_user.id)
    return [RechargeResponse.model_validate(r) for r in requests]


@router.get("/rewards", response_model=list[RewardResponse])
async def list_rewards(
    db: DbSession,
    current_user: CurrentUser,
) -> list[RewardResponse]:
    rewards = await RewardService(db).list_for_user(current_user.id)
    return [RewardResponse.model_validate(r) for r in rewards]


@router.get("/payment-accounts", response_model=PaymentAccountsResponse)
async def get_payment_accounts(
    db: DbSession,
    _user: CurrentUser,
) -> PaymentAccountsResponse:
    settings = await PaymentSettingsService(db).get()
    if settings is None:
        return PaymentAccountsResponse()
    return PaymentAccountsResponse.model_validate(settings)
