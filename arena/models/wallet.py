"""Wallet ledger history."""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base, UUIDMixin
from arena.utils.clock import utcnow


class TransactionType(str, Enum):
    """Causes of a wallet balance change."""

    ENTRY_FEE = "entry_fee"
    WITHDRAWAL = "withdrawal"
    RECHARGE = "recharge"
    REWARD = "reward"


class WalletTransaction(Base, UUIDMixin):
    """One balance change with before/after snapshot and tamper hash.

    Every wallet mutation writes exactly one of these in the same
    transaction as the balance update.
    """

    __tablename__ = "wallet_transactions"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    tx_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Signed change: positive credit, negative debit",
    )
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Tournament, withdrawal, recharge or reward id
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    integrity_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 over user, type, amount and balances",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<WalletTransaction {self.tx_type} {self.amount:+,}>"
