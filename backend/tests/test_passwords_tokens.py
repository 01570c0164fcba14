"""Tests for argon2id password hashing and access tokens."""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import jwt
import pytest

from app.auth.passwords import hash_password, verify_password
from app.auth.tokens import JWT_ALGORITHM, create_access_token, decode_access_token
from app.config import settings
from app.errors import UnauthorizedError
from app.models.base import RoleEnum


def _user(user_id=7, role=RoleEnum.SUPERVISOR):
    return SimpleNamespace(user_id=user_id, email="sup@test.com", role=role)


class TestPasswords:
    def test_hash_is_argon2id(self):
        hashed = hash_password("Test123!")
        assert hashed.startswith("$argon2id$")

    def test_hash_is_salted(self):
        assert hash_password("Test123!") != hash_password("Test123!")

    def test_verify_round_trip(self):
        hashed = hash_password("Test123!")
        assert verify_password("Test123!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_verify_garbage_hash_is_false(self):
        assert verify_password("Test123!", "not-a-hash") is False

    def test_pepper_is_appended(self):
        with patch.object(settings, "PASSWORD_PEPPER", "pep"):
            hashed = hash_password("Test123!")
            assert verify_password("Test123!", hashed) is True
        # Without the pepper the same plaintext no longer matches
        assert verify_password("Test123!", hashed) is False
        assert verify_password("Test123!pep", hashed) is True


class TestAccessTokens:
    def test_round_trip_carries_identity(self):
        payload = decode_access_token(create_access_token(_user()))
        assert payload["user_id"] == 7
        assert payload["sub"] == "7"
        assert payload["role"] == "SUPERVISOR"
        assert payload["email"] == "sup@test.com"

    def test_expired_token_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "7", "type": "access",
                "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1),
                "iss": settings.JWT_ISSUER, "aud": settings.JWT_AUDIENCE,
            },
            settings.JWT_ACCESS_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(UnauthorizedError, match="expired"):
            decode_access_token(token)

    def test_wrong_audience_rejected(self):
        token = jwt.encode(
            {"sub": "7", "type": "access", "iss": settings.JWT_ISSUER, "aud": "someone-else"},
            settings.JWT_ACCESS_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(UnauthorizedError):
            decode_access_token(token)

    def test_wrong_secret_rejected(self):
        token = jwt.encode(
            {"sub": "7", "type": "access", "iss": settings.JWT_ISSUER, "aud": settings.JWT_AUDIENCE},
            "another-secret-that-is-long-enough-xx",
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(UnauthorizedError):
            decode_access_token(token)

    def test_non_access_type_rejected(self):
        token = jwt.encode(
            {"sub": "7", "type": "refresh", "iss": settings.JWT_ISSUER, "aud": settings.JWT_AUDIENCE},
            settings.JWT_ACCESS_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(UnauthorizedError, match="type"):
            decode_access_token(token)
