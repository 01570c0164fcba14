"""Service windows (atenciones) and reconciliation of their shift slots.

A window owns shifts numbered 1..total_slots. The seed upsert finds a window
by its logical identity (port_call_id, start_utc, end_utc), writes the full
window row, then reconciles its shifts in one transaction:

1. ensure  - every number in 1..total_slots has a shift; existing shifts
             only get their start/end refreshed.
2. plan    - each plan entry inside 1..total_slots overwrites that shift's
             status, guide, check-in/out and cancellation fields. Entries
             outside the range are skipped.
3. shrink  - shifts numbered above total_slots are deleted only when they
             are AVAILABLE and unassigned. Anything with history stays.

Re-applying the same input converges to the same shift states.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.errors import BusinessRuleError, NotFoundError, ValidationAppError
from app.models.base import ServiceWindowStatusEnum, ShiftStatusEnum, StatusEnum
from app.models.port_call import PortCall
from app.models.service_window import ServiceWindow
from app.models.shift import Shift
from app.modules.users import ensure_supervisor_profile
from app.utils.civil_time import as_utc
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotPlanItem:
    number: int
    status: ShiftStatusEnum
    guide_id: Optional[int] = None
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


@dataclass
class ServiceWindowState:
    port_call_id: int
    supervisor_id: int
    start_utc: datetime
    end_utc: datetime
    total_slots: int
    operational_status: ServiceWindowStatusEnum
    description: Optional[str] = None
    created_by_id: Optional[int] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    canceled_by_id: Optional[int] = None
    slot_plan: list[SlotPlanItem] = field(default_factory=list)


def find_service_window(db: Session, port_call_id: int, start_utc: datetime, end_utc: datetime) -> Optional[ServiceWindow]:
    return (
        db.query(ServiceWindow)
        .filter(
            ServiceWindow.port_call_id == port_call_id,
            ServiceWindow.start_utc == start_utc,
            ServiceWindow.end_utc == end_utc,
        )
        .first()
    )


def ensure_slots(db: Session, window: ServiceWindow, total_slots: int, created_by_id: Optional[int] = None) -> int:
    """Make shifts 1..total_slots exist. Returns how many were created."""
    existing = {
        shift.number: shift
        for shift in db.query(Shift).filter(
            Shift.window_id == window.window_id,
            Shift.number <= total_slots,
        )
    }
    created = 0
    for number in range(1, total_slots + 1):
        shift = existing.get(number)
        if shift is None:
            db.add(Shift(
                window_id=window.window_id,
                number=number,
                status=ShiftStatusEnum.AVAILABLE,
                guide_id=None,
                start_utc=window.start_utc,
                end_utc=window.end_utc,
                created_by_id=created_by_id,
            ))
            created += 1
            continue
        shift.start_utc = window.start_utc
        shift.end_utc = window.end_utc
    db.flush()
    return created


def apply_slot_plan(db: Session, window_id: int, total_slots: int, plan: list[SlotPlanItem]) -> int:
    """Overwrite the mutable fields of the planned shifts. Returns how many were applied.

    Guides are released before any is written, so a plan can be re-applied
    after guides were moved between shifts of the same window. A shift
    outside the plan that holds a planned guide loses that guide and, when
    it was only ASSIGNED, goes back to AVAILABLE.
    """
    items = [item for item in plan if 1 <= item.number <= total_slots]
    if not items:
        return 0
    shifts = {
        shift.number: shift
        for shift in db.query(Shift).filter(
            Shift.window_id == window_id,
            Shift.number.in_([item.number for item in items]),
        )
    }
    planned_guides = {item.guide_id for item in items if item.guide_id is not None}

    for shift in shifts.values():
        shift.guide_id = None
    if planned_guides:
        holders = (
            db.query(Shift)
            .filter(
                Shift.window_id == window_id,
                Shift.guide_id.in_(planned_guides),
                Shift.number.notin_(list(shifts)),
            )
            .all()
        )
        for shift in holders:
            logger.warning(
                "shift %s (window %s #%d) released guide %s claimed by the slot plan",
                shift.shift_id, window_id, shift.number, shift.guide_id,
            )
            shift.guide_id = None
            if shift.status == ShiftStatusEnum.ASSIGNED:
                shift.status = ShiftStatusEnum.AVAILABLE
    # (window, guide) is unique; all planned guides must be free before the writes
    db.flush()

    applied = 0
    for item in items:
        shift = shifts.get(item.number)
        if shift is None:
            continue
        shift.status = item.status
        shift.guide_id = item.guide_id
        shift.check_in_at = item.check_in_at
        shift.check_out_at = item.check_out_at
        shift.canceled_at = item.canceled_at
        shift.cancel_reason = item.cancel_reason
        applied += 1
    db.flush()
    return applied


def shrink_slots(db: Session, window_id: int, total_slots: int) -> tuple[int, int]:
    """Delete free shifts numbered above total_slots. Returns (deleted, kept)."""
    extras = (
        db.query(Shift)
        .filter(Shift.window_id == window_id, Shift.number > total_slots)
        .all()
    )
    deleted = 0
    for shift in extras:
        if shift.status == ShiftStatusEnum.AVAILABLE and shift.guide_id is None:
            db.delete(shift)
            deleted += 1
    db.flush()
    return deleted, len(extras) - deleted


def upsert_service_window_with_slots(db: Session, state: ServiceWindowState) -> ServiceWindow:
    """Create or update the window at (port_call_id, start_utc, end_utc) and reconcile its shifts.

    The window row and its shift reconciliation commit together; a failure
    rolls back both, so a partially reconciled window is never stored.
    """
    try:
        window = find_service_window(db, state.port_call_id, state.start_utc, state.end_utc)
        if window is None:
            window = ServiceWindow(
                port_call_id=state.port_call_id,
                start_utc=state.start_utc,
                end_utc=state.end_utc,
                created_by_id=state.created_by_id,
            )
            db.add(window)
        window.supervisor_id = state.supervisor_id
        window.total_slots = state.total_slots
        window.description = state.description
        window.status = StatusEnum.ACTIVO
        window.operational_status = state.operational_status
        window.canceled_at = state.canceled_at
        window.cancel_reason = state.cancel_reason
        window.canceled_by_id = state.canceled_by_id
        db.flush()

        created = ensure_slots(db, window, state.total_slots, state.created_by_id)
        applied = apply_slot_plan(db, window.window_id, state.total_slots, state.slot_plan)
        deleted, kept = shrink_slots(db, window.window_id, state.total_slots)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if kept:
        logger.warning(
            "service window %s: %d shift(s) above total_slots=%d kept (assigned or with history)",
            window.window_id, kept, state.total_slots,
        )
    logger.info(
        "upsert_service_window_with_slots: id=%s port_call_id=%s status=%s total_slots=%d "
        "created=%d planned=%d deleted=%d",
        window.window_id, state.port_call_id, state.operational_status.value,
        state.total_slots, created, applied, deleted,
    )
    return window


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def create_service_window(db: Session, fields: dict, actor_user_id: int) -> ServiceWindow:
    """Open a window on a port call and materialize its shifts 1..total_slots."""
    start_utc = fields["start_utc"]
    end_utc = fields["end_utc"]
    if end_utc < start_utc:
        raise ValidationAppError("end_utc must be >= start_utc")
    total_slots = fields["total_slots"]
    if total_slots < 1:
        raise ValidationAppError("total_slots must be >= 1")
    port_call = db.query(PortCall).filter(PortCall.port_call_id == fields["port_call_id"]).first()
    if port_call is None:
        raise NotFoundError("Port call (port_call_id) does not exist")

    try:
        supervisor = ensure_supervisor_profile(db, actor_user_id)
        window = ServiceWindow(
            port_call_id=port_call.port_call_id,
            supervisor_id=supervisor.supervisor_id,
            start_utc=start_utc,
            end_utc=end_utc,
            total_slots=total_slots,
            description=fields.get("description"),
            status=StatusEnum.ACTIVO,
            operational_status=ServiceWindowStatusEnum.OPEN,
            created_by_id=actor_user_id,
        )
        db.add(window)
        db.flush()
        ensure_slots(db, window, total_slots, created_by_id=actor_user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(window)
    logger.info(
        "service window created: window_id=%s port_call_id=%s total_slots=%d actor_user_id=%s",
        window.window_id, window.port_call_id, total_slots, actor_user_id,
    )
    return window


def list_service_windows(
    db: Session,
    port_call_id: Optional[int] = None,
    operational_status: Optional[ServiceWindowStatusEnum] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    """List windows whose [start, end] overlaps [date_from, date_to]."""
    query = db.query(ServiceWindow)
    if port_call_id is not None:
        query = query.filter(ServiceWindow.port_call_id == port_call_id)
    if operational_status is not None:
        query = query.filter(ServiceWindow.operational_status == operational_status)
    if date_to is not None:
        query = query.filter(ServiceWindow.start_utc <= date_to)
    if date_from is not None:
        query = query.filter(ServiceWindow.end_utc >= date_from)
    query = query.order_by(ServiceWindow.start_utc.asc(), ServiceWindow.window_id.asc())
    return paginate(query, page, page_size)


def get_service_window(db: Session, window_id: int) -> ServiceWindow:
    window = (
        db.query(ServiceWindow)
        .options(selectinload(ServiceWindow.shifts))
        .filter(ServiceWindow.window_id == window_id)
        .first()
    )
    if window is None:
        raise NotFoundError("Service window not found")
    return window


def slot_summary(window: ServiceWindow) -> dict:
    """Count the window's shifts per status."""
    counts = {status.value: 0 for status in ShiftStatusEnum}
    for shift in window.shifts:
        counts[shift.status.value] += 1
    return counts


def window_summary(db: Session, window_id: int) -> dict:
    window = get_service_window(db, window_id)
    return {
        "window_id": window.window_id,
        "total_slots": window.total_slots,
        "operational_status": window.operational_status,
        "slot_summary": slot_summary(window),
    }


def list_window_shifts(db: Session, window_id: int) -> list[Shift]:
    """All shifts of the window by number, including any kept above total_slots."""
    return list(get_service_window(db, window_id).shifts)


def _require_open(window: ServiceWindow, action: str) -> None:
    if window.operational_status != ServiceWindowStatusEnum.OPEN:
        raise BusinessRuleError(
            f"Only an OPEN service window can be {action} "
            f"(current: {window.operational_status.value})"
        )


def _require_no_shift_in_progress(window: ServiceWindow) -> None:
    in_progress = sum(1 for shift in window.shifts if shift.status == ShiftStatusEnum.IN_PROGRESS)
    if in_progress:
        raise BusinessRuleError(
            "Service window has shifts in progress",
            details={"in_progress": in_progress},
        )


def update_service_window(db: Session, window_id: int, fields: dict, actor_user_id: int) -> ServiceWindow:
    """Edit an OPEN window. A new total_slots or time range reconciles the shifts."""
    window = get_service_window(db, window_id)
    _require_open(window, "edited")

    start_utc = as_utc(fields.get("start_utc") or window.start_utc)
    end_utc = as_utc(fields.get("end_utc") or window.end_utc)
    if end_utc < start_utc:
        raise ValidationAppError("end_utc must be >= start_utc")

    # Shifts are reconciled through queries below, not through the loaded collection
    db.expire(window, ["shifts"])
    try:
        window.start_utc = start_utc
        window.end_utc = end_utc
        if fields.get("total_slots") is not None:
            window.total_slots = fields["total_slots"]
        if "description" in fields:
            window.description = fields["description"]
        if fields.get("status") is not None:
            window.status = fields["status"]
        db.flush()
        created = ensure_slots(db, window, window.total_slots, created_by_id=actor_user_id)
        deleted, kept = shrink_slots(db, window.window_id, window.total_slots)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if kept:
        logger.warning(
            "service window %s: %d shift(s) above total_slots=%d kept (assigned or with history)",
            window_id, kept, window.total_slots,
        )
    logger.info(
        "service window updated: window_id=%s fields=%s created=%d deleted=%d actor_user_id=%s",
        window_id, sorted(fields), created, deleted, actor_user_id,
    )
    return get_service_window(db, window_id)


def cancel_service_window(
    db: Session, window_id: int, actor_user_id: int, reason: Optional[str] = None
) -> ServiceWindow:
    """Cancel an OPEN window and every shift in it that has not started.

    AVAILABLE and ASSIGNED shifts become CANCELED with the same audit
    fields; assigned guides stay on the row as history.
    """
    window = get_service_window(db, window_id)
    _require_open(window, "canceled")
    _require_no_shift_in_progress(window)

    now = datetime.now(timezone.utc)
    canceled_shifts = 0
    for shift in window.shifts:
        if shift.status in (ShiftStatusEnum.AVAILABLE, ShiftStatusEnum.ASSIGNED):
            shift.status = ShiftStatusEnum.CANCELED
            shift.canceled_at = now
            shift.cancel_reason = reason
            shift.canceled_by_id = actor_user_id
            canceled_shifts += 1
    window.operational_status = ServiceWindowStatusEnum.CANCELED
    window.canceled_at = now
    window.cancel_reason = reason
    window.canceled_by_id = actor_user_id
    db.commit()
    logger.info(
        "service window canceled: window_id=%s shifts=%d actor_user_id=%s",
        window_id, canceled_shifts, actor_user_id,
    )
    return get_service_window(db, window_id)


def close_service_window(db: Session, window_id: int, actor_user_id: int) -> ServiceWindow:
    window = get_service_window(db, window_id)
    _require_open(window, "closed")
    _require_no_shift_in_progress(window)
    window.operational_status = ServiceWindowStatusEnum.CLOSED
    db.commit()
    logger.info("service window closed: window_id=%s actor_user_id=%s", window_id, actor_user_id)
    return get_service_window(db, window_id)
