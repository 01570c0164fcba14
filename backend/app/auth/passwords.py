"""Password hashing: argon2id with a fixed cost profile and a static pepper.

The pepper is appended to the plaintext before hashing. Cost parameters come
from settings and are fixed for the life of the process; callers never pass
them. Errors raised by the hashing primitive propagate unchanged.
"""
from __future__ import annotations

from functools import lru_cache

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from app.config import settings


@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=settings.ARGON2_TIME_COST,
        memory_cost=settings.ARGON2_MEMORY_COST,
        parallelism=settings.ARGON2_PARALLELISM,
        type=Type.ID,
    )


def _peppered(plain: str) -> str:
    return f"{plain}{settings.PASSWORD_PEPPER}"


def hash_password(plain: str) -> str:
    """Return the encoded argon2id hash of *plain* + pepper."""
    return get_password_hasher().hash(_peppered(plain))


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return get_password_hasher().verify(hashed, _peppered(plain))
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
