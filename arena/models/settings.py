"""Admin-managed settings: payment account details and featured tournaments."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base
from arena.utils.clock import utcnow

PAYMENT_SETTINGS_ID = "payment_accounts"


class PaymentAccountSettings(Base):
    """Singleton row telling users where to send recharge payments."""

    __tablename__ = "payment_account_settings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=PAYMENT_SETTINGS_ID,
    )
    bank_account_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    easy_pasa_owner_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    easy_pasa_info: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class FeaturedTournament(Base):
    """One slot in the home page's featured shortlist.

    Rows sort by ``display_order``; every add, remove and reorder renumbers
    the whole list 1..n.
    """

    __tablename__ = "featured_tournaments"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    headline: Mapped[str | None] = mapped_column(String(200), nullable=True)
    added_by: Mapped[str] = mapped_column(String(128), nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<FeaturedTournament {self.tournament_id[:8]}... #{self.display_order}>"
