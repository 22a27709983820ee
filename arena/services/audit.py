"""Audit trail for status changes and admin actions."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Writes audit entries into the caller's transaction.

    Entries are only persisted if the surrounding unit of work commits, so
    an audit row always describes a change that actually happened.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def record(
        self,
        action: str,
        actor: str,
        *,
        target_type: str | None = None,
        target_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            actor=actor,
            target_type=target_type,
            target_id=target_id,
            context=context or {},
        )
        self.session.add(entry)
        logger.debug(f"Audit: action={action} actor={actor} target={target_type}:{target_id}")
        return entry

    async def list_entries(
        self,
        *,
        action: str | None = None,
        target_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Newest entries first, optionally filtered."""
        query = select(AuditLog)
        if action:
            query = query.where(AuditLog.action == action)
        if target_id:
            query = query.where(AuditLog.target_id == target_id)
        query = query.order_by(AuditLog.created_at.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
