"""Audit log model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from arena.models.base import Base, UUIDMixin
from arena.utils.clock import utcnow

SYSTEM_ACTOR = "system"


class AuditLog(Base, UUIDMixin):
    """Append-only record of status changes and admin actions."""

    __tablename__ = "audit_logs"

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    """
    Action examples:
    - tournament.status_change
    - tournament.approve
    - tournament.reject
    - withdrawal.approve
    - recharge.reject
    - reward.grant
    - user.delete
    """

    # "system" or an admin UID
    actor: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)

    context: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    """
    Context examples:
    {
        "tournament_name": "Sunday Squads",
        "previous_status": "live",
        "new_status": "completed",
        "reason": "Auto-completed after 10 minutes of being live"
    }
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} by={self.actor[:8]}>"
