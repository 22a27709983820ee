"""Tests for identity token verification."""

from datetime import timedelta

import pytest
from jose import jwt

from arena.utils.security import (
    Identity,
    TokenError,
    create_identity_token,
    verify_identity_token,
)


class TestVerifyIdentityToken:
    def test_round_trip(self):
        identity = Identity(uid="uid-abc", email="player@example.com", email_verified=True)

        assert verify_identity_token(create_identity_token(identity)) == identity

    def test_expired_token(self):
        token = create_identity_token(
            Identity(uid="uid-abc", email="player@example.com"),
            expires_delta=timedelta(seconds=-5),
        )

        with pytest.raises(TokenError) as exc_info:
            verify_identity_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token(self, token):
        with pytest.raises(TokenError) as exc_info:
            verify_identity_token(token)
        assert exc_info.value.code == "AUTH_INVALID_TOKEN"

    def test_wrong_secret(self, settings):
        token = jwt.encode(
            {"sub": "uid-abc", "email": "player@example.com", "exp": 9999999999},
            "another-secret-value-that-is-long-enough",
            algorithm=settings.identity_jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            verify_identity_token(token)
        assert exc_info.value.code == "AUTH_INVALID_TOKEN"

    def test_missing_email(self, settings):
        token = jwt.encode(
            {"sub": "uid-abc", "exp": 9999999999},
            settings.identity_jwt_secret,
            algorithm=settings.identity_jwt_algorithm,
        )

        with pytest.raises(TokenError, match="Invalid token payload"):
            verify_identity_token(token)

    def test_verified_flag_defaults_to_false(self, settings):
        token = jwt.encode(
            {"sub": "uid-abc", "email": "player@example.com", "exp": 9999999999},
            settings.identity_jwt_secret,
            algorithm=settings.identity_jwt_algorithm,
        )

        assert verify_identity_token(token).email_verified is False
