"""Withdrawal and recharge request models.

Both requests move pending -> approved or pending -> rejected exactly once.
The wallet change happens in the same transaction as the approval.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base, UUIDMixin
from arena.utils.clock import utcnow


class RequestStatus(str, Enum):
    """Funding request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    """Manual payment channels accepted for recharges."""

    EASY_PASA = "Easy Pasa"
    BANK_TRANSFER = "Bank Transfer"


class WithdrawalRequest(Base, UUIDMixin):
    """User request to pay wallet funds out to a bank account."""

    __tablename__ = "withdrawal_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
    )

    # Requester (no foreign key: requests survive user deletion)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Payout account
    account_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=RequestStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    proof_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    debited_amount: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Amount actually debited on approval (floored at the balance)",
    )

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<WithdrawalRequest {self.amount:,} status={self.status}>"


class RechargeRequest(Base, UUIDMixin):
    """User claim of a manual payment, credited once an admin checks the proof."""

    __tablename__ = "recharge_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recharge_requests_amount_positive"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    transaction_ref: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Transaction ID reported by the payer",
    )
    proof_image_url: Mapped[str] = mapped_column(String(500), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=RequestStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<RechargeRequest {self.amount:,} via {self.payment_method} status={self.status}>"
