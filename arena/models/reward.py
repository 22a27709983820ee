"""Admin-granted reward ledger."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base, UUIDMixin
from arena.utils.clock import utcnow


class RewardRecord(Base, UUIDMixin):
    """Immutable record of one reward grant.

    new_balance always equals previous_balance + amount.
    """

    __tablename__ = "rewards"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    game_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position: Mapped[str | None] = mapped_column(String(50), nullable=True)
    added_by: Mapped[str] = mapped_column(String(128), nullable=False)
    previous_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    new_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RewardRecord {self.amount:+,} to={self.user_id[:8]}...>"
