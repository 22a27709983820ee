"""User Service: identity sync and admin account management."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import Settings, get_settings
from arena.models.funding import RechargeRequest, RequestStatus, WithdrawalRequest
from arena.models.tournament import Participant
from arena.models.user import User, UserRole
from arena.services.audit import AuditService
from arena.utils.clock import utcnow
from arena.utils.concurrency import optimistic_retry
from arena.utils.errors import ErrorCode, NotFoundError, PreconditionError, ValidationError
from arena.utils.security import Identity

logger = logging.getLogger(__name__)


class UserService:
    """Accounts mirror identities issued by the identity provider."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def get_user(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def sync_identity(self, identity: Identity) -> User:
        """Create the account on first sign-in, otherwise refresh it.

        New accounts start with role ``user`` and an empty wallet.
        """

        async def unit() -> User:
            user = await self.session.get(User, identity.uid, populate_existing=True)
            now = utcnow()
            if user is None:
                user = User(
                    id=identity.uid,
                    email=identity.email,
                    email_verified=identity.email_verified,
                    role=UserRole.USER.value,
                    wallet_balance=0,
                    joined_tournament_ids=[],
                    last_login_at=now,
                )
                self.session.add(user)
                logger.info(f"User created: id={identity.uid[:8]}... email={identity.email}")
                return user

            user.email = identity.email
            user.email_verified = identity.email_verified
            user.last_login_at = now
            return user

        return await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="sync_identity",
        )

    async def list_users(self, *, limit: int = 100, offset: int = 0) -> list[User]:
        result = await self.session.execute(
            select(User).order_by(User.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    async def set_role(self, admin_id: str, user_id: str, role: str) -> User:
        try:
            new_role = UserRole(role)
        except ValueError:
            raise ValidationError(
                code=ErrorCode.INVALID_ROLE,
                message="Role must be 'user' or 'admin'",
                details={"role": role},
            ) from None

        async def unit() -> User:
            user = await self.session.get(User, user_id, populate_existing=True)
            if not user:
                raise NotFoundError("User", user_id)
            previous = user.role
            user.role = new_role.value
            AuditService(self.session).record(
                "user.set_role",
                admin_id,
                target_type="user",
                target_id=user.id,
                context={"previous_role": previous, "new_role": new_role.value},
            )
            return user

        user = await optimistic_retry(
            self.session,
            unit,
            max_attempts=self.settings.ledger_max_retries,
            operation="set_role",
        )
        logger.info(f"User role changed: id={user_id[:8]}... role={new_role.value}")
        return user

    async def delete_user(self, admin_id: str, user_id: str) -> dict[str, int]:
        """Hard delete an account.

        Tournament seats and funding requests are left in place; their
        counts are written to the audit entry so they can be cleaned up
        deliberately later.

        Returns:
            Counts of the rows left referring to the deleted user
        """
        if admin_id == user_id:
            raise PreconditionError(
                code=ErrorCode.CANNOT_DELETE_SELF,
                message="Administrators cannot delete their own account",
            )

        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        orphans = {
            "participations": await self._count(
                select(func.count()).select_from(Participant).where(Participant.user_id == user_id)
            ),
            "pending_withdrawals": await self._count(
                select(func.count())
                .select_from(WithdrawalRequest)
                .where(
                    WithdrawalRequest.user_id == user_id,
                    WithdrawalRequest.status == RequestStatus.PENDING.value,
                )
            ),
            "pending_recharges": await self._count(
                select(func.count())
                .select_from(RechargeRequest)
                .where(
                    RechargeRequest.user_id == user_id,
                    RechargeRequest.status == RequestStatus.PENDING.value,
                )
            ),
        }

        AuditService(self.session).record(
            "user.delete",
            admin_id,
            target_type="user",
            target_id=user_id,
            context={
                "email": user.email,
                "wallet_balance": user.wallet_balance,
                "orphaned": orphans,
            },
        )
        await self.session.delete(user)
        await self.session.flush()

        logger.info(f"User deleted: id={user_id[:8]}... orphaned={orphans}")
        return orphans

    async def _count(self, query) -> int:
        result = await self.session.execute(query)
        return int(result.scalar_one())
