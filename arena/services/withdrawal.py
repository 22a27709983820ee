"""Withdrawal Service for manual bank payouts.

Features:
- Minimum amount and balance checks at request time
- Admin approval debits the wallet in the same transaction
- Debit floored at the current balance if it shrank since the request
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.funding import RequestStatus, WithdrawalRequest
from arena.models.user import User
from arena.models.wallet import TransactionType
from arena.services.audit import AuditService
from arena.services.history import fetch_newest_first
from arena.services.wallet import WalletService
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import (
    ErrorCode,
    InvalidAmountError,
    MissingFieldError,
    NotFoundError,
    PreconditionError,
    RequestAlreadyProcessedError,
    ValidationError,
)
from arena.utils.sanitize import sanitize_input, sanitize_optional, sanitize_url

logger = logging.getLogger(__name__)


def _proof_url(value: str | None) -> str | None:
    """Admin-supplied payout proof: absent is fine, anything but an https URL is not."""
    if value is None or not value.strip():
        return None
    cleaned = sanitize_url(value)
    if cleaned is None:
        raise ValidationError(
            code=ErrorCode.INVALID_IMAGE,
            message="Proof image must be an https URL",
            details={"field": "proof_image_url"},
        )
    return cleaned


class WithdrawalService:
    """Withdrawal request lifecycle: pending -> approved | rejected."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self._wallet = WalletService(session, self.settings)

    async def request_withdrawal(
        self,
        user_id: str,
        amount: int,
        *,
        account_name: str,
        account_number: str,
        bank_name: str,
    ) -> WithdrawalRequest:
        """Create a pending withdrawal request.

        The balance is not touched until an admin approves the request.

        Raises:
            InvalidAmountError: Below the minimum
            MissingFieldError: An account detail is empty
            PreconditionError: Amount exceeds the current balance
        """
        min_amount = self.settings.min_withdrawal_amount
        if amount < min_amount:
            raise InvalidAmountError(
                f"Minimum withdrawal amount is {min_amount:,}",
                amount=amount,
                min_amount=min_amount,
            )

        account = {
            "account_name": sanitize_input(account_name),
            "account_number": sanitize_input(account_number),
            "bank_name": sanitize_input(bank_name),
        }
        for field, value in account.items():
            if not value:
                raise MissingFieldError(field, "Please fill in all account details")

        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        if amount > user.wallet_balance:
            raise PreconditionError(
                code=ErrorCode.INSUFFICIENT_BALANCE,
                message="Withdrawal amount cannot exceed your balance",
                details={"balance": user.wallet_balance, "amount": amount},
            )

        request = WithdrawalRequest(
            user_id=user.id,
            user_email=user.email,
            amount=amount,
            status=RequestStatus.PENDING.value,
            requested_at=utcnow(),
            **account,
        )
        self.session.add(request)
        await self.session.flush()

        logger.info(
            f"Withdrawal requested: user={user_id[:8]}... amount={amount:,} request={request.id}"
        )
        return request

    async def approve_withdrawal(
        self,
        admin_id: str,
        request_id: str,
        *,
        notes: str | None = None,
        proof_image_url: str | None = None,
    ) -> WithdrawalRequest:
        """Approve a pending request and debit the requester's wallet.

        The debit is min(amount, current balance) so the balance never goes
        negative; the amount actually taken is kept in ``debited_amount``.
        """
        proof_url = _proof_url(proof_image_url)

        async def unit() -> WithdrawalRequest:
            request = await self._get_pending(request_id)
            user = await self.session.get(User, request.user_id, populate_existing=True)
            if not user:
                raise NotFoundError("User", request.user_id)

            debit = min(request.amount, user.wallet_balance)
            if debit > 0:
                self._wallet.post_entry(
                    user,
                    -debit,
                    TransactionType.WITHDRAWAL,
                    reference_id=request.id,
                    description=f"Withdrawal to {request.bank_name}",
                )
            if debit < request.amount:
                logger.warning(
                    f"Withdrawal {request.id} debit floored at balance: "
                    f"requested={request.amount:,} debited={debit:,}"
                )

            self._close(request, RequestStatus.APPROVED, admin_id, notes)
            request.proof_image_url = proof_url
            request.debited_amount = debit

            AuditService(self.session).record(
                "withdrawal.approve",
                admin_id,
                target_type="withdrawal_request",
                target_id=request.id,
                context={
                    "user_id": request.user_id,
                    "amount": request.amount,
                    "debited_amount": debit,
                },
            )
            return request

        request = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="approve_withdrawal",
        )
        logger.info(f"Withdrawal approved: request={request_id} by={admin_id[:8]}...")
        return request

    async def reject_withdrawal(
        self,
        admin_id: str,
        request_id: str,
        *,
        notes: str | None = None,
        proof_image_url: str | None = None,
    ) -> WithdrawalRequest:
        """Reject a pending request. No balance change."""
        proof_url = _proof_url(proof_image_url)

        async def unit() -> WithdrawalRequest:
            request = await self._get_pending(request_id)
            self._close(request, RequestStatus.REJECTED, admin_id, notes)
            request.proof_image_url = proof_url
            AuditService(self.session).record(
                "withdrawal.reject",
                admin_id,
                target_type="withdrawal_request",
                target_id=request.id,
                context={"user_id": request.user_id, "amount": request.amount},
            )
            return request

        request = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="reject_withdrawal",
        )
        logger.info(f"Withdrawal rejected: request={request_id} by={admin_id[:8]}...")
        return request

    async def list_requests(
        self,
        status: RequestStatus | None = None,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> list[WithdrawalRequest]:
        """All requests, newest first (admin view)."""
        query = select(WithdrawalRequest)
        if status:
            query = query.where(WithdrawalRequest.status == status.value)
        return await fetch_newest_first(
            self.session, query, WithdrawalRequest.requested_at, limit=limit, offset=offset
        )

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WithdrawalRequest]:
        query = select(WithdrawalRequest).where(WithdrawalRequest.user_id == user_id)
        return await fetch_newest_first(
            self.session, query, WithdrawalRequest.requested_at, limit=limit, offset=offset
        )

    async def _get_pending(self, request_id: str) -> WithdrawalRequest:
        request = await self.session.get(WithdrawalRequest, request_id, populate_existing=True)
        if not request:
            raise NotFoundError("Withdrawal request", request_id)
        if request.status != RequestStatus.PENDING.value:
            raise RequestAlreadyProcessedError(request.id, request.status)
        return request

    @staticmethod
    def _close(
        request: WithdrawalRequest,
        status: RequestStatus,
        admin_id: str,
        notes: str | None,
    ) -> None:
        request.status = status.value
        request.processed_at = utcnow()
        request.processed_by = admin_id
        request.admin_notes = sanitize_optional(notes)
