"""Shared slowapi limiter; login is limited per client address."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)
