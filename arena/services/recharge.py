"""Recharge Service for manual top-ups backed by a payment proof."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.funding import PaymentMethod, RechargeRequest, RequestStatus
from arena.models.user import User
from arena.models.wallet import TransactionType
from arena.services.audit import AuditService
from arena.services.history import fetch_newest_first
from arena.services.wallet import WalletService
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import (
    InvalidAmountError,
    MissingFieldError,
    NotFoundError,
    RequestAlreadyProcessedError,
)
from arena.utils.sanitize import sanitize_input, sanitize_optional, sanitize_url

logger = logging.getLogger(__name__)


class RechargeService:
    """Recharge request lifecycle: pending -> approved | rejected.

    The proof image is uploaded to the image host first; only its URL is
    stored here.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self._wallet = WalletService(session, self.settings)

    async def request_recharge(
        self,
        user_id: str,
        amount: int,
        *,
        payment_method: str | None,
        transaction_ref: str | None,
        proof_image_url: str | None,
    ) -> RechargeRequest:
        """Create a pending recharge request.

        Raises:
            InvalidAmountError: Amount not positive
            MissingFieldError: Payment method, transaction ID or proof missing
        """
        if amount <= 0:
            raise InvalidAmountError("Please enter a valid amount", amount=amount, min_amount=1)

        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise MissingFieldError("payment_method", "Please select a payment method") from None

        reference = sanitize_input(transaction_ref)
        if not reference:
            raise MissingFieldError("transaction_ref", "Please enter the transaction ID")

        proof_url = sanitize_url(proof_image_url)
        if not proof_url:
            raise MissingFieldError("proof_image_url", "Please upload a payment proof image")

        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        request = RechargeRequest(
            user_id=user.id,
            user_email=user.email,
            amount=amount,
            payment_method=method.value,
            transaction_ref=reference,
            proof_image_url=proof_url,
            status=RequestStatus.PENDING.value,
            requested_at=utcnow(),
        )
        self.session.add(request)
        await self.session.flush()

        logger.info(
            f"Recharge requested: user={user_id[:8]}... amount={amount:,} "
            f"method={method.value} request={request.id}"
        )
        return request

    async def approve_recharge(
        self,
        admin_id: str,
        request_id: str,
        *,
        notes: str | None = None,
    ) -> RechargeRequest:
        """Approve a pending request and credit the requester's wallet."""

        async def unit() -> RechargeRequest:
            request = await self._get_pending(request_id)
            user = await self.session.get(User, request.user_id, populate_existing=True)
            if not user:
                raise NotFoundError("User", request.user_id)

            self._wallet.post_entry(
                user,
                request.amount,
                TransactionType.RECHARGE,
                reference_id=request.id,
                description=f"Recharge via {request.payment_method}",
            )
            self._close(request, RequestStatus.APPROVED, admin_id, notes)

            AuditService(self.session).record(
                "recharge.approve",
                admin_id,
                target_type="recharge_request",
                target_id=request.id,
                context={"user_id": request.user_id, "amount": request.amount},
            )
            return request

        request = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="approve_recharge",
        )
        logger.info(f"Recharge approved: request={request_id} by={admin_id[:8]}...")
        return request

    async def reject_recharge(
        self,
        admin_id: str,
        request_id: str,
        *,
        notes: str | None = None,
    ) -> RechargeRequest:
        """Reject a pending request. No balance change."""

        async def unit() -> RechargeRequest:
            request = await self._get_pending(request_id)
            self._close(request, RequestStatus.REJECTED, admin_id, notes)
            AuditService(self.session).record(
                "recharge.reject",
                admin_id,
                target_type="recharge_request",
                target_id=request.id,
                context={"user_id": request.user_id, "amount": request.amount},
            )
            return request

        request = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="reject_recharge",
        )
        logger.info(f"Recharge rejected: request={request_id} by={admin_id[:8]}...")
        return request

    async def list_requests(
        self,
        status: RequestStatus | None = None,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RechargeRequest]:
        query = select(RechargeRequest)
        if status:
            query = query.where(RechargeRequest.status == status.value)
        return await fetch_newest_first(
            self.session, query, RechargeRequest.requested_at, limit=limit, offset=offset
        )

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RechargeRequest]:
        query = select(RechargeRequest).where(RechargeRequest.user_id == user_id)
        return await fetch_newest_first(
            self.session, query, RechargeRequest.requested_at, limit=limit, offset=offset
        )

    async def _get_pending(self, request_id: str) -> RechargeRequest:
        request = await self.session.get(RechargeRequest, request_id, populate_existing=True)
        if not request:
            raise NotFoundError("Recharge request", request_id)
        if request.status != RequestStatus.PENDING.value:
            raise RequestAlreadyProcessedError(request.id, request.status)
        return request

    @staticmethod
    def _close(
        request: RechargeRequest,
        status: RequestStatus,
        admin_id: str,
        notes: str | None,
    ) -> None:
        request.status = status.value
        request.processed_at = utcnow()
        request.processed_by = admin_id
        request.admin_notes = sanitize_optional(notes)
