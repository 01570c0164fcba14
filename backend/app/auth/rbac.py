"""Role and ownership guards as FastAPI dependencies."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.auth.tokens import decode_access_token
from app.database import get_db
from app.errors import ForbiddenError, ProfileIncompleteError, UnauthorizedError
from app.models.base import ProfileStatusEnum, RoleEnum
from app.models.user import User

_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedError("Missing or invalid authorization header")

    payload = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.user_id == payload["user_id"]).first()
    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise UnauthorizedError("User is inactive")
    return user


def require_roles(*roles: RoleEnum):
    allowed = frozenset(roles)

    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            required = ", ".join(r.value for r in roles)
            raise ForbiddenError(f"Insufficient role. Required: {required}")
        return user

    return _guard


require_super_admin = require_roles(RoleEnum.SUPER_ADMIN)
require_supervisor = require_roles(RoleEnum.SUPER_ADMIN, RoleEnum.SUPERVISOR)
require_guide = require_roles(RoleEnum.SUPER_ADMIN, RoleEnum.SUPERVISOR, RoleEnum.GUIA)


def require_ownership_or_role(*roles: RoleEnum):
    """Pass when the path ``user_id`` is the caller's own id or the caller holds a role."""
    allowed = frozenset(roles)

    def _guard(request: Request, user: User = Depends(get_current_user)) -> User:
        raw = request.path_params.get("user_id")
        is_owner = raw is not None and str(raw) == str(user.user_id)
        if not is_owner and user.role not in allowed:
            raise ForbiddenError("Access denied: insufficient permissions")
        return user

    return _guard


def require_completed_profile(user: User = Depends(get_current_user)) -> User:
    if user.profile_status == ProfileStatusEnum.INCOMPLETE:
        raise ProfileIncompleteError(
            "You must complete your profile before accessing this resource",
            details={"required_action": "complete_profile"},
        )
    return user
