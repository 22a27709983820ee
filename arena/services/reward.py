"""Reward Service for admin-granted credits."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.base import generate_uuid
from arena.models.reward import RewardRecord
from arena.models.user import User
from arena.models.wallet import TransactionType
from arena.services.audit import AuditService
from arena.services.history import fetch_newest_first
from arena.services.wallet import WalletService
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import InvalidAmountError, NotFoundError
from arena.utils.sanitize import sanitize_optional

logger = logging.getLogger(__name__)

DEFAULT_REWARD_DESCRIPTION = "Reward added by administrator"


def describe_reward(
    description: str | None,
    game_name: str | None,
    position: str | None,
) -> str:
    """Explicit description first, then game/position, then the generic text."""
    if description:
        return description
    if game_name:
        text = f"Reward for {game_name}"
        if position:
            text += f" - {position} position"
        return text
    return DEFAULT_REWARD_DESCRIPTION


class RewardService:
    """Grants rewards; every grant leaves one immutable RewardRecord."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self._wallet = WalletService(session, self.settings)

    async def grant_reward(
        self,
        admin_id: str,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        game_name: str | None = None,
        position: str | None = None,
    ) -> RewardRecord:
        """Credit a user's wallet and record the grant.

        Raises:
            InvalidAmountError: Amount not positive
            NotFoundError: Unknown user
        """
        if amount <= 0:
            raise InvalidAmountError("Please enter a valid amount", amount=amount, min_amount=1)

        game_name = sanitize_optional(game_name)
        position = sanitize_optional(position)
        text = describe_reward(sanitize_optional(description), game_name, position)

        async def unit() -> RewardRecord:
            user = await self.session.get(User, user_id, populate_existing=True)
            if not user:
                raise NotFoundError("User", user_id)

            reward_id = generate_uuid()
            tx = self._wallet.post_entry(
                user,
                amount,
                TransactionType.REWARD,
                reference_id=reward_id,
                description=text,
            )
            record = RewardRecord(
                id=reward_id,
                user_id=user.id,
                user_email=user.email,
                amount=amount,
                description=text,
                game_name=game_name,
                position=position,
                added_by=admin_id,
                previous_balance=tx.balance_before,
                new_balance=tx.balance_after,
                created_at=utcnow(),
            )
            self.session.add(record)

            AuditService(self.session).record(
                "reward.grant",
                admin_id,
                target_type="user",
                target_id=user.id,
                context={"reward_id": record.id, "amount": amount, "description": text},
            )
            return record

        record = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="grant_reward",
        )
        logger.info(
            f"Reward granted: user={user_id[:8]}... amount={amount:+,} "
            f"balance={record.previous_balance:,} -> {record.new_balance:,}"
        )
        return record

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RewardRecord]:
        query = select(RewardRecord).where(RewardRecord.user_id == user_id)
        return await fetch_newest_first(
            self.session, query, RewardRecord.created_at, limit=limit, offset=offset
        )

    async def list_all(self, *, limit: int = 100, offset: int = 0) -> list[RewardRecord]:
        return await fetch_newest_first(
            self.session, select(RewardRecord), RewardRecord.created_at, limit=limit, offset=offset
        )
