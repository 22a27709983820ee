"""Wallet Service for balance operations.

Features:
- Ledger entries with SHA-256 integrity hash for every balance change
- Tournament join: debit, participant seat and capacity in one transaction
- Optimistic concurrency (version columns) instead of distributed locks
"""

import hashlib
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.tournament import Participant, Tournament, TournamentStatus
from arena.models.user import User
from arena.models.wallet import TransactionType, WalletTransaction
from arena.services.history import fetch_newest_first
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import (
    ErrorCode,
    InsufficientBalanceError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from arena.utils.sanitize import sanitize_input

logger = logging.getLogger(__name__)


class WalletService:
    """Wallet service for balance operations.

    Balance changes only go through ``post_entry``, which pairs the new
    balance with a WalletTransaction row in the same unit of work.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def get_balance(self, user_id: str) -> int:
        """Get user's wallet balance."""
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user.wallet_balance

    def post_entry(
        self,
        user: User,
        amount: int,
        tx_type: TransactionType,
        *,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> WalletTransaction:
        """Apply a signed balance change to a loaded user and record it.

        Args:
            user: User row read in the current unit of work
            amount: Amount to transfer (positive = credit, negative = debit)
            tx_type: Transaction type for logging
            reference_id: Tournament or request the change belongs to
            description: Optional description

        Returns:
            WalletTransaction record (not yet flushed)

        Raises:
            InsufficientBalanceError: If debit exceeds balance
        """
        if amount == 0:
            raise ValueError("Ledger entries must move a non-zero amount")

        balance_before = user.wallet_balance
        if amount < 0 and balance_before < abs(amount):
            raise InsufficientBalanceError(balance=balance_before, required=abs(amount))

        balance_after = balance_before + amount
        user.wallet_balance = balance_after

        tx = WalletTransaction(
            user_id=user.id,
            tx_type=tx_type.value,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=reference_id,
            description=description,
            integrity_hash=self.compute_integrity_hash(
                user_id=user.id,
                tx_type=tx_type,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
            ),
        )
        self.session.add(tx)

        logger.info(
            f"Wallet transfer: user={user.id[:8]}... "
            f"type={tx_type.value} amount={amount:+,} "
            f"balance={balance_before:,} -> {balance_after:,}"
        )
        return tx

    def normalize_username(self, desired_username: str | None) -> str:
        """Sanitize an in-tournament username and check its length.

        Raises:
            ValidationError: If empty or outside the allowed length
        """
        username = sanitize_input(desired_username)
        min_len = self.settings.username_min_length
        max_len = self.settings.username_max_length

        if not username:
            raise ValidationError(
                code=ErrorCode.INVALID_USERNAME,
                message="Please enter your in-game username",
                details={"field": "username"},
            )
        if not min_len <= len(username) <= max_len:
            raise ValidationError(
                code=ErrorCode.INVALID_USERNAME,
                message=f"Username must be between {min_len} and {max_len} characters",
                details={"minLength": min_len, "maxLength": max_len, "length": len(username)},
            )
        return username

    async def join_tournament(
        self,
        user_id: str,
        tournament_id: str,
        desired_username: str | None,
    ) -> Participant:
        """Pay the entry fee and take a seat in an upcoming tournament.

        The debit, the ledger entry, the joined-list update, the participant
        row and the capacity counter are written together; a concurrent join
        that invalidates any check forces a re-check against fresh rows.

        Raises:
            ValidationError: Username empty or wrong length
            PreconditionError: Not open, already joined, full, username
                taken or insufficient balance
            ConflictError: Contention did not settle within the retry budget
        """
        username = self.normalize_username(desired_username)
        username_key = username.lower()

        async def unit() -> Participant:
            user = await self.session.get(User, user_id, populate_existing=True)
            if not user:
                raise NotFoundError("User", user_id)

            tournament = await self.session.get(
                Tournament, tournament_id, populate_existing=True
            )
            if not tournament:
                raise NotFoundError("Tournament", tournament_id)

            if tournament.status != TournamentStatus.UPCOMING.value:
                raise PreconditionError(
                    code=ErrorCode.TOURNAMENT_NOT_OPEN,
                    message="This tournament is not open for registration",
                    details={"status": tournament.status},
                )

            result = await self.session.execute(
                select(Participant)
                .where(Participant.tournament_id == tournament.id)
                .execution_options(populate_existing=True)
            )
            seated = list(result.scalars().all())

            if any(p.user_id == user.id for p in seated):
                raise PreconditionError(
                    code=ErrorCode.ALREADY_JOINED,
                    message="You have already joined this tournament",
                )

            if max(len(seated), tournament.participant_count) >= tournament.max_participants:
                raise PreconditionError(
                    code=ErrorCode.TOURNAMENT_FULL,
                    message="Tournament is full",
                    details={"maxParticipants": tournament.max_participants},
                )

            if any(p.username_key == username_key for p in seated):
                raise PreconditionError(
                    code=ErrorCode.USERNAME_TAKEN,
                    message="This username is already taken in this tournament",
                    details={"username": username},
                )

            if user.wallet_balance < tournament.entry_fee:
                raise InsufficientBalanceError(
                    balance=user.wallet_balance,
                    required=tournament.entry_fee,
                )

            if tournament.entry_fee > 0:
                self.post_entry(
                    user,
                    -tournament.entry_fee,
                    TransactionType.ENTRY_FEE,
                    reference_id=tournament.id,
                    description=f"Entry fee: {tournament.name}",
                )

            # Reassign so the JSON column registers the change
            user.joined_tournament_ids = [*(user.joined_tournament_ids or []), tournament.id]

            participant = Participant(
                tournament_id=tournament.id,
                user_id=user.id,
                email=user.email,
                username=username,
                username_key=username_key,
                joined_at=utcnow(),
            )
            self.session.add(participant)
            tournament.participant_count = len(seated) + 1
            return participant

        participant = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="join_tournament",
        )

        logger.info(
            f"Tournament joined: user={user_id[:8]}... tournament={tournament_id} "
            f"username={participant.username}"
        )
        return participant

    async def get_transactions(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
        tx_type: TransactionType | None = None,
    ) -> list[WalletTransaction]:
        """Get user's transaction history, newest first."""
        query = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
        if tx_type:
            query = query.where(WalletTransaction.tx_type == tx_type.value)

        return await fetch_newest_first(
            self.session,
            query,
            WalletTransaction.created_at,
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def compute_integrity_hash(
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        balance_before: int,
        balance_after: int,
    ) -> str:
        """Compute SHA-256 integrity hash for transaction.

        This hash can be verified later to detect tampering.
        """
        data = f"{user_id}:{tx_type.value}:{amount}:{balance_before}:{balance_after}"
        return hashlib.sha256(data.encode()).hexdigest()

    @staticmethod
    def verify_integrity(tx: WalletTransaction) -> bool:
        """Verify transaction integrity hash."""
        expected = WalletService.compute_integrity_hash(
            user_id=tx.user_id,
            tx_type=TransactionType(tx.tx_type),
            amount=tx.amount,
            balance_before=tx.balance_before,
            balance_after=tx.balance_after,
        )
        return tx.integrity_hash == expected
