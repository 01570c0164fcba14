"""Access tokens: short-lived HS256 JWTs carrying user identity and role.

Tokens are stateless and verified by signature, expiry, issuer and audience.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings
from app.errors import UnauthorizedError
from app.utils.civil_time import parse_ttl_to_seconds

JWT_ALGORITHM = "HS256"
_DEFAULT_ACCESS_TTL_SECONDS = 15 * 60


def access_token_ttl_seconds() -> int:
    return parse_ttl_to_seconds(settings.JWT_ACCESS_TTL, _DEFAULT_ACCESS_TTL_SECONDS)


def create_access_token(user) -> str:
    """Create an access token for a ``User`` row."""
    now = datetime.now(timezone.utc)
    role = user.role.value if hasattr(user.role, "value") else str(user.role)
    payload = {
        "sub": str(user.user_id),  # PyJWT >= 2.8 requires sub to be a string
        "email": user.email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=access_token_ttl_seconds()),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_ACCESS_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate *token*. Raises ``UnauthorizedError`` on any failure."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_ACCESS_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")
    try:
        payload["user_id"] = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token subject")
    return payload
