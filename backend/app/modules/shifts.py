"""Shifts (turnos): assignment and attendance transitions.

Shift lifecycle::

    AVAILABLE ──assign/claim──▶ ASSIGNED ──check_in──▶ IN_PROGRESS ──check_out──▶ COMPLETED
        ▲                          │
        └─────────unassign─────────┤
                                   └──no_show──▶ NO_SHOW

Every mutation first passes the operational gate: the port call and the
window must be ACTIVO, the port call neither CANCELED nor DEPARTED and the
window neither CANCELED nor CLOSED.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.base import (
    PortCallStatusEnum, RoleEnum, ServiceWindowStatusEnum, ShiftStatusEnum, StatusEnum,
)
from app.models.service_window import ServiceWindow
from app.models.shift import Shift
from app.models.user import Guide, User
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def _load_shift(db: Session, shift_id: int) -> Shift:
    shift = (
        db.query(Shift)
        .options(joinedload(Shift.service_window).joinedload(ServiceWindow.port_call))
        .filter(Shift.shift_id == shift_id)
        .first()
    )
    if shift is None:
        raise NotFoundError("Shift not found")
    return shift


def ensure_operational(shift: Shift) -> None:
    """Raise ConflictError unless the shift's window and port call accept changes."""
    window = shift.service_window
    port_call = window.port_call
    if port_call.status != StatusEnum.ACTIVO:
        raise ConflictError("Port call is not active")
    if window.status != StatusEnum.ACTIVO:
        raise ConflictError("Service window is not active")
    if port_call.operational_status == PortCallStatusEnum.CANCELED:
        raise ConflictError("Port call is canceled")
    if port_call.operational_status == PortCallStatusEnum.DEPARTED:
        raise ConflictError("Port call already departed")
    if window.operational_status == ServiceWindowStatusEnum.CANCELED:
        raise ConflictError("Service window is canceled")
    if window.operational_status == ServiceWindowStatusEnum.CLOSED:
        raise ConflictError("Service window is closed")


def _guide_for_user(db: Session, user: User) -> Guide:
    guide = db.query(Guide).filter(Guide.user_id == user.user_id).first()
    if guide is None:
        raise NotFoundError("Guide profile not found for this user")
    return guide


def assign_shift(db: Session, shift_id: int, guide_id: int, actor_user_id: int) -> Shift:
    if db.query(Guide.guide_id).filter(Guide.guide_id == guide_id).first() is None:
        raise NotFoundError("Guide (guide_id) not found")

    shift = _load_shift(db, shift_id)
    ensure_operational(shift)
    if shift.status != ShiftStatusEnum.AVAILABLE or shift.guide_id is not None:
        raise ConflictError("Shift is not available for assignment")

    taken = (
        db.query(Shift.shift_id)
        .filter(Shift.window_id == shift.window_id, Shift.guide_id == guide_id)
        .first()
    )
    if taken is not None:
        raise ConflictError("Guide already holds a shift in this service window")

    try:
        # Conditional update so a concurrent assignment cannot win twice
        updated = (
            db.query(Shift)
            .filter(
                Shift.shift_id == shift_id,
                Shift.status == ShiftStatusEnum.AVAILABLE,
                Shift.guide_id.is_(None),
            )
            .update(
                {Shift.guide_id: guide_id, Shift.status: ShiftStatusEnum.ASSIGNED},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise ConflictError("Shift is no longer available")
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Guide already holds a shift in this service window")
    except Exception:
        db.rollback()
        raise
    db.refresh(shift)
    logger.info(
        "shift assigned: shift_id=%s guide_id=%s actor_user_id=%s", shift_id, guide_id, actor_user_id
    )
    return shift


def unassign_shift(db: Session, shift_id: int, actor_user_id: int, reason: Optional[str] = None) -> Shift:
    shift = _load_shift(db, shift_id)
    ensure_operational(shift)
    if shift.status in (ShiftStatusEnum.IN_PROGRESS, ShiftStatusEnum.COMPLETED):
        raise ConflictError("A shift in progress or completed cannot be unassigned")
    if shift.status != ShiftStatusEnum.ASSIGNED:
        raise ConflictError("Only an ASSIGNED shift can be unassigned")
    previous_guide = shift.guide_id
    shift.guide_id = None
    shift.status = ShiftStatusEnum.AVAILABLE
    if reason:
        shift.notes = reason
    db.commit()
    db.refresh(shift)
    logger.info(
        "shift unassigned: shift_id=%s previous_guide_id=%s actor_user_id=%s",
        shift_id, previous_guide, actor_user_id,
    )
    return shift


def _require_assigned_guide(db: Session, shift: Shift, user: User) -> None:
    if user.role == RoleEnum.SUPER_ADMIN:
        return
    guide = _guide_for_user(db, user)
    if shift.guide_id != guide.guide_id:
        raise ForbiddenError("Shift is not assigned to you")


def check_in_shift(db: Session, shift_id: int, user: User) -> Shift:
    shift = _load_shift(db, shift_id)
    ensure_operational(shift)
    _require_assigned_guide(db, shift, user)
    if shift.status != ShiftStatusEnum.ASSIGNED:
        raise ConflictError("Only an ASSIGNED shift can be checked in")
    shift.status = ShiftStatusEnum.IN_PROGRESS
    shift.check_in_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(shift)
    logger.info("shift check-in: shift_id=%s user_id=%s", shift_id, user.user_id)
    return shift


def check_out_shift(db: Session, shift_id: int, user: User) -> Shift:
    shift = _load_shift(db, shift_id)
    ensure_operational(shift)
    _require_assigned_guide(db, shift, user)
    if shift.status != ShiftStatusEnum.IN_PROGRESS:
        raise ConflictError("Only an IN_PROGRESS shift can be checked out")
    shift.status = ShiftStatusEnum.COMPLETED
    shift.check_out_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(shift)
    logger.info("shift check-out: shift_id=%s user_id=%s", shift_id, user.user_id)
    return shift


def mark_no_show(db: Session, shift_id: int, actor_user_id: int) -> Shift:
    shift = _load_shift(db, shift_id)
    ensure_operational(shift)
    if shift.status != ShiftStatusEnum.ASSIGNED:
        raise ConflictError("Only an ASSIGNED shift can be marked NO_SHOW")
    shift.status = ShiftStatusEnum.NO_SHOW
    db.commit()
    db.refresh(shift)
    logger.info("shift no-show: shift_id=%s actor_user_id=%s", shift_id, actor_user_id)
    return shift


def list_shifts(
    db: Session,
    window_id: Optional[int] = None,
    guide_id: Optional[int] = None,
    status: Optional[ShiftStatusEnum] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    query = db.query(Shift)
    if window_id is not None:
        query = query.filter(Shift.window_id == window_id)
    if guide_id is not None:
        query = query.filter(Shift.guide_id == guide_id)
    if status is not None:
        query = query.filter(Shift.status == status)
    query = query.order_by(Shift.start_utc.asc(), Shift.window_id.asc(), Shift.number.asc())
    return paginate(query, page, page_size)


def list_my_shifts(
    db: Session,
    user: User,
    status: Optional[ShiftStatusEnum] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    guide = _guide_for_user(db, user)
    return list_shifts(db, guide_id=guide.guide_id, status=status, page=page, page_size=page_size)


def get_shift(db: Session, shift_id: int, user: User) -> Shift:
    """Supervisors and admins see any shift; a guide only their own."""
    shift = _load_shift(db, shift_id)
    if user.role == RoleEnum.GUIA:
        guide = _guide_for_user(db, user)
        if shift.guide_id != guide.guide_id:
            raise ForbiddenError("Shift is not assigned to you")
    return shift


def next_my_shift(db: Session, user: User, now: Optional[datetime] = None) -> Optional[Shift]:
    """The caller's earliest ASSIGNED or IN_PROGRESS shift that has not ended yet."""
    guide = _guide_for_user(db, user)
    now = now or datetime.now(timezone.utc)
    return (
        db.query(Shift)
        .filter(
            Shift.guide_id == guide.guide_id,
            Shift.status.in_([ShiftStatusEnum.ASSIGNED, ShiftStatusEnum.IN_PROGRESS]),
            or_(Shift.end_utc.is_(None), Shift.end_utc >= now),
        )
        .order_by(Shift.start_utc.asc(), Shift.shift_id.asc())
        .first()
    )


def active_my_shift(db: Session, user: User) -> Optional[Shift]:
    guide = _guide_for_user(db, user)
    return (
        db.query(Shift)
        .filter(Shift.guide_id == guide.guide_id, Shift.status == ShiftStatusEnum.IN_PROGRESS)
        .order_by(Shift.check_in_at.desc(), Shift.shift_id.desc())
        .first()
    )


def claim_shift(db: Session, shift_id: int, user: User) -> Shift:
    """A guide takes an AVAILABLE shift for themselves."""
    guide = _guide_for_user(db, user)
    shift = assign_shift(db, shift_id, guide.guide_id, actor_user_id=user.user_id)
    logger.info("shift claimed: shift_id=%s guide_id=%s", shift_id, guide.guide_id)
    return shift
