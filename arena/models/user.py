"""User model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base, TimestampMixin


class UserRole(str, Enum):
    """Account roles."""

    USER = "user"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """Platform account keyed by the identity provider's UID."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_balance_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        comment="Identity provider UID",
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.USER.value,
        nullable=False,
    )

    wallet_balance: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Wallet balance in whole currency units",
    )
    joined_tournament_ids: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.id[:8]}... {self.email}>"
