"""Tournament and participant models.

- TournamentStatus: closed lifecycle enumeration
- GameType: supported titles (open-ended via OTHER)
- Tournament: scheduled match with entry fee and capacity
- Participant: one joined player, unique per user and per username
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arena.models.base import Base, TimestampMixin, UUIDMixin
from arena.utils.clock import utcnow


class TournamentStatus(str, Enum):
    """Tournament lifecycle states."""

    PENDING = "pending"
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    REJECTED = "rejected"


class GameType(str, Enum):
    """Game titles tournaments are organized for."""

    PUBG = "PUBG"
    DEAD_SHOT = "Dead Shot"
    EIGHT_BALL_POOL = "8 Ball Pool"
    CALL_OF_DUTY = "Call of Duty"
    FREE_FIRE = "Free Fire"
    OTHER = "Other"


class Tournament(Base, UUIDMixin, TimestampMixin):
    """Tournament record.

    participant_count mirrors the number of Participant rows and is bumped in
    the same transaction as each insert, so the version check on this row
    serializes joins against the last open slot.
    """

    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint("entry_fee >= 0", name="ck_tournaments_entry_fee_non_negative"),
        CheckConstraint("max_participants >= 1", name="ck_tournaments_max_participants_positive"),
        CheckConstraint(
            "participant_count <= max_participants",
            name="ck_tournaments_participant_count_capacity",
        ),
    )

    # Descriptive fields
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    game_type: Mapped[str] = mapped_column(
        String(50),
        default=GameType.PUBG.value,
        nullable=False,
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    entry_fee: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    prize_pool: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    per_kill_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    match_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    rules: Mapped[str | None] = mapped_column(Text, nullable=True)
    map_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    game_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    game_logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.UPCOMING.value,
        nullable=False,
        index=True,
    )
    status_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Time of the last automatic status transition",
    )

    # Results
    result_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    result_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # User submissions
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    creator_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    participants: Mapped[list["Participant"]] = relationship(
        "Participant",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Participant.joined_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def status_enum(self) -> TournamentStatus:
        return TournamentStatus(self.status)

    def __repr__(self) -> str:
        return f"<Tournament {self.name} status={self.status}>"


class Participant(Base, UUIDMixin):
    """A user's seat in a tournament. Never mutated after insert."""

    __tablename__ = "tournament_participants"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_participant_tournament_user"),
        UniqueConstraint(
            "tournament_id", "username_key", name="uq_participant_tournament_username"
        ),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # No foreign key: deleting a user leaves participation rows in place
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    username_key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Lower-cased username for case-insensitive uniqueness",
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    tournament: Mapped["Tournament"] = relationship(
        "Tournament",
        back_populates="participants",
    )

    def __repr__(self) -> str:
        return f"<Participant {self.username} in {self.tournament_id[:8]}...>"
