"""API dependencies for authentication and common utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import get_settings
from arena.logging_config import bind_context
from arena.models.user import User
from arena.services.tournament_status import TournamentStatusEngine
from arena.services.user import UserService
from arena.utils.db import async_session_factory, get_db
from arena.utils.errors import ErrorCode, PreconditionError
from arena.utils.image_host import ImageHostClient
from arena.utils.security import Identity, TokenError, verify_identity_token

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "kind": "precondition",
                "message": message,
                "details": {},
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """Verify the identity provider token (required auth)."""
    if not credentials:
        raise _unauthorized("AUTH_REQUIRED", "Authentication required")

    try:
        return verify_identity_token(credentials.credentials)
    except TokenError as e:
        raise _unauthorized(e.code, e.message)


async def get_current_user(
    identity: Annotated[Identity, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the account for the token's identity, creating it on first use.

    The sync is committed on its own so a later rollback in the request
    cannot discard a freshly created account.
    """
    user = await UserService(db).sync_identity(identity)
    await db.commit()
    bind_context(user_id=user.id)
    return user


async def get_verified_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Self-service wallet and join operations need a verified email."""
    if not current_user.email_verified:
        raise PreconditionError(
            code=ErrorCode.EMAIL_NOT_VERIFIED,
            message="Please verify your email address first",
        )
    return current_user


async def get_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "ADMIN_REQUIRED",
                    "kind": "precondition",
                    "message": "Administrator access required",
                    "details": {},
                }
            },
        )
    return current_user


def get_status_engine() -> TournamentStatusEngine:
    return TournamentStatusEngine(async_session_factory, get_settings())


def get_image_host() -> ImageHostClient:
    return ImageHostClient(get_settings())


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
VerifiedUser = Annotated[User, Depends(get_verified_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
StatusEngine = Annotated[TournamentStatusEngine, Depends(get_status_engine)]
ImageHost = Annotated[ImageHostClient, Depends(get_image_host)]
