"""User accounts: seed upserts with role profiles, plus account management.

A user holds at most one role profile, chosen by role: SUPERVISOR users get
a ``Supervisor`` row, GUIA users a ``Guide`` row, SUPER_ADMIN users none.
Profiles are keyed 1:1 by user_id. Changing a user's role does not remove a
profile created under the previous role.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.auth.passwords import hash_password, verify_password
from app.errors import (
    BusinessRuleError, ConflictError, ForbiddenError, NotFoundError, SeedIntegrityError, UnauthorizedError,
)
from app.models.base import ProfileStatusEnum, RoleEnum
from app.models.user import Guide, Supervisor, User
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

SEED_SUPERVISOR_PHONE = "+57 300 123 4567"
SEED_GUIDE_PHONE = "+57 300 555 0000"
SEED_GUIDE_ADDRESS = "Cartagena, Colombia"


@dataclass(frozen=True)
class SeedUser:
    email: str
    password: str
    first_name: str
    last_name: str
    role: RoleEnum


@dataclass
class SeededUser:
    user_id: int
    supervisor_id: Optional[int] = None
    guide_id: Optional[int] = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def upsert_user(
    db: Session,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: RoleEnum,
    email_verified_at: Optional[datetime],
    profile_completed_at: Optional[datetime] = None,
) -> User:
    """Create or fully rewrite the account for *email* with a fresh password hash."""
    email = normalize_email(email)
    password_hash = hash_password(password)
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email)
        db.add(user)
    user.password_hash = password_hash
    user.first_name = first_name
    user.last_name = last_name
    user.role = role
    user.is_active = True
    user.profile_status = ProfileStatusEnum.COMPLETE
    user.profile_completed_at = profile_completed_at
    user.email_verified_at = email_verified_at
    db.flush()
    return user


def upsert_supervisor_profile(db: Session, user_id: int, phone: Optional[str]) -> Supervisor:
    profile = db.query(Supervisor).filter(Supervisor.user_id == user_id).first()
    if profile is None:
        profile = Supervisor(user_id=user_id)
        db.add(profile)
    profile.phone = phone
    db.flush()
    return profile


def upsert_guide_profile(db: Session, user_id: int, phone: Optional[str], address: Optional[str]) -> Guide:
    profile = db.query(Guide).filter(Guide.user_id == user_id).first()
    if profile is None:
        profile = Guide(user_id=user_id)
        db.add(profile)
    profile.phone = phone
    profile.address = address
    db.flush()
    return profile


def upsert_user_with_profile(db: Session, seed: SeedUser, verified_at: datetime) -> SeededUser:
    """Upsert the account, then the profile matching its role. Commits."""
    try:
        user = upsert_user(
            db,
            email=seed.email,
            password=seed.password,
            first_name=seed.first_name,
            last_name=seed.last_name,
            role=seed.role,
            email_verified_at=verified_at,
            profile_completed_at=verified_at,
        )
        result = SeededUser(user_id=user.user_id)
        if seed.role == RoleEnum.SUPERVISOR:
            result.supervisor_id = upsert_supervisor_profile(
                db, user.user_id, SEED_SUPERVISOR_PHONE
            ).supervisor_id
        elif seed.role == RoleEnum.GUIA:
            result.guide_id = upsert_guide_profile(
                db, user.user_id, SEED_GUIDE_PHONE, SEED_GUIDE_ADDRESS
            ).guide_id
        db.commit()
    except Exception:
        db.rollback()
        raise
    return result


def upsert_super_admin(db: Session, email: str, password: str) -> User:
    try:
        user = upsert_user(
            db,
            email=email,
            password=password,
            first_name="Super",
            last_name="Admin",
            role=RoleEnum.SUPER_ADMIN,
            email_verified_at=datetime.now(timezone.utc),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("upsert_super_admin: ready email=%s", email)
    return user


def resolve_user_id_or_raise(db: Session, email: str) -> int:
    user = db.query(User.user_id).filter(User.email == normalize_email(email)).first()
    if user is None:
        raise SeedIntegrityError(f"No user with email={email}")
    return user.user_id


def ensure_supervisor_profile(db: Session, user_id: int) -> Supervisor:
    """Return the caller's supervisor profile, creating an empty one if missing.

    Port calls and service windows need a supervisor FK; super admins acting
    as supervisors get a profile on first use.
    """
    profile = db.query(Supervisor).filter(Supervisor.user_id == user_id).first()
    if profile is None:
        logger.warning("supervisor profile not found for user_id=%s; creating one", user_id)
        profile = Supervisor(user_id=user_id)
        db.add(profile)
        db.flush()
    return profile


# ---------------------------------------------------------------------------
# Account management
# ---------------------------------------------------------------------------

def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    if not user.is_active:
        raise UnauthorizedError("User is inactive")
    return user


def list_users(
    db: Session,
    q: Optional[str] = None,
    role: Optional[RoleEnum] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
        ))
    query = query.order_by(User.created_at.desc(), User.user_id.desc())
    return paginate(query, page, page_size)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def create_user(
    db: Session,
    email: str,
    password: str,
    role: RoleEnum,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    """Create an account with an INCOMPLETE profile and its (empty) role profile."""
    email = normalize_email(email)
    if db.query(User.user_id).filter(User.email == email).first() is not None:
        raise ConflictError("User with this email already exists")
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=True,
        profile_status=ProfileStatusEnum.INCOMPLETE,
    )
    db.add(user)
    db.flush()
    if role == RoleEnum.SUPERVISOR:
        db.add(Supervisor(user_id=user.user_id))
    elif role == RoleEnum.GUIA:
        db.add(Guide(user_id=user.user_id))
    db.commit()
    db.refresh(user)
    logger.info("user created: user_id=%s role=%s", user.user_id, role.value)
    return user


def deactivate_user(db: Session, user_id: int, actor_user_id: int) -> User:
    user = get_user(db, user_id)
    if not user.is_active:
        raise BusinessRuleError("User is already inactive")
    if user.user_id == actor_user_id:
        raise BusinessRuleError("You cannot deactivate your own account")
    user.is_active = False
    db.commit()
    db.refresh(user)
    logger.info("user deactivated: user_id=%s actor_user_id=%s", user_id, actor_user_id)
    return user


def activate_user(db: Session, user_id: int, actor_user_id: int) -> User:
    user = get_user(db, user_id)
    if user.is_active:
        raise BusinessRuleError("User is already active")
    user.is_active = True
    db.commit()
    db.refresh(user)
    logger.info("user activated: user_id=%s actor_user_id=%s", user_id, actor_user_id)
    return user


# ---------------------------------------------------------------------------
# Profile and self-service
# ---------------------------------------------------------------------------

def _set_profile_contact(db: Session, user: User, phone: Optional[str], address: Optional[str] = None) -> None:
    if user.role == RoleEnum.SUPERVISOR:
        upsert_supervisor_profile(db, user.user_id, phone)
    elif user.role == RoleEnum.GUIA:
        existing = db.query(Guide).filter(Guide.user_id == user.user_id).first()
        if address is None and existing is not None:
            address = existing.address
        upsert_guide_profile(db, user.user_id, phone, address)


def complete_profile(
    db: Session,
    user: User,
    first_name: str,
    last_name: str,
    phone: str,
    address: Optional[str] = None,
) -> User:
    """Fill in names and contact data and mark the profile COMPLETE.

    The first completion stamps ``profile_completed_at``; later calls only
    rewrite the data.
    """
    try:
        user.first_name = first_name
        user.last_name = last_name
        _set_profile_contact(db, user, phone, address)
        if user.profile_status != ProfileStatusEnum.COMPLETE or user.profile_completed_at is None:
            user.profile_status = ProfileStatusEnum.COMPLETE
            user.profile_completed_at = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("profile completed: user_id=%s role=%s", user.user_id, user.role.value)
    return user


def update_me(db: Session, user: User, fields: dict) -> User:
    try:
        if fields.get("first_name") is not None:
            user.first_name = fields["first_name"]
        if fields.get("last_name") is not None:
            user.last_name = fields["last_name"]
        if fields.get("phone") is not None:
            _set_profile_contact(db, user, fields["phone"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("user updated own account: user_id=%s fields=%s", user.user_id, sorted(fields))
    return user


def update_user(db: Session, user_id: int, fields: dict, actor: User) -> User:
    """Names for the owner or a super admin; role and active flag for super admins only."""
    user = get_user(db, user_id)
    if actor.role != RoleEnum.SUPER_ADMIN:
        if actor.user_id != user.user_id:
            raise ForbiddenError("You can only update your own profile")
        if fields.get("role") is not None or fields.get("is_active") is not None:
            raise ForbiddenError("You cannot change role or active status")
    if fields.get("is_active") is False and user.user_id == actor.user_id:
        raise BusinessRuleError("You cannot deactivate your own account")

    try:
        if fields.get("first_name") is not None:
            user.first_name = fields["first_name"]
        if fields.get("last_name") is not None:
            user.last_name = fields["last_name"]
        if fields.get("is_active") is not None:
            user.is_active = fields["is_active"]
        role = fields.get("role")
        if role is not None and role != user.role:
            user.role = role
            # A previous role's profile is kept; the new role gets one if missing
            if role == RoleEnum.SUPERVISOR:
                ensure_supervisor_profile(db, user.user_id)
            elif role == RoleEnum.GUIA and db.query(Guide).filter(Guide.user_id == user.user_id).first() is None:
                db.add(Guide(user_id=user.user_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info(
        "user updated: user_id=%s fields=%s actor_user_id=%s", user_id, sorted(fields), actor.user_id
    )
    return user


def change_password(
    db: Session, user_id: int, current_password: str, new_password: str, actor_user_id: int
) -> None:
    if actor_user_id != user_id:
        raise ForbiddenError("You can only change your own password")
    user = get_user(db, user_id)
    if not user.is_active:
        raise BusinessRuleError("Cannot change password for inactive user")
    if not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("password changed: user_id=%s", user_id)
