"""Identity token verification.

The identity provider authenticates users; its token bridge issues a signed
JWT carrying the UID, email and verified flag. This module only verifies
those tokens and never stores credentials.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from arena.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Opaque identity handed over by the identity provider."""

    uid: str
    email: str
    email_verified: bool = False


class TokenError(Exception):
    """Token validation error with specific code."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def create_identity_token(
    identity: Identity,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an identity token.

    Used by the token bridge in development and by tests.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": identity.uid,
        "email": identity.email,
        "email_verified": identity.email_verified,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
    }
    if settings.identity_jwt_audience:
        payload["aud"] = settings.identity_jwt_audience

    return jwt.encode(
        payload,
        settings.identity_jwt_secret,
        algorithm=settings.identity_jwt_algorithm,
    )


def verify_identity_token(token: str) -> Identity:
    """Verify an identity token and return the identity it carries.

    Raises:
        TokenError: If the token is missing, expired or malformed
    """
    if not token:
        raise TokenError("AUTH_INVALID_TOKEN", "Invalid or expired token")

    settings = get_settings()
    options = {"require_exp": True, "require_sub": True}
    if not settings.identity_jwt_audience:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
            audience=settings.identity_jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Identity token verification failed: token expired")
        raise TokenError("TOKEN_EXPIRED", "Token has expired")
    except jwt.JWTClaimsError as e:
        logger.debug(f"Identity token verification failed: invalid claims - {e}")
        raise TokenError("AUTH_INVALID_TOKEN", "Invalid token claims")
    except JWTError as e:
        logger.warning(f"Identity token verification failed: {type(e).__name__}")
        raise TokenError("AUTH_INVALID_TOKEN", "Invalid or expired token")

    uid = payload.get("sub")
    email = payload.get("email")
    if not uid or not email:
        raise TokenError("AUTH_INVALID_TOKEN", "Invalid token payload")

    return Identity(
        uid=str(uid),
        email=str(email),
        email_verified=bool(payload.get("email_verified", False)),
    )
