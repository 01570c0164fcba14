"""Port calls (recaladas): seed upsert, business codes and lifecycle transitions.

Lifecycle (``operational_status``)::

    SCHEDULED ──arrive──▶ ARRIVED ──depart──▶ DEPARTED
        │                    │
        └──────cancel────────┘──▶ CANCELED

The seed upsert is a full-row replace keyed by ``code``: every mutable
field is written on every call, including explicit ``None`` for arrival,
departure and cancellation fields that do not apply to the target status.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from app.errors import BusinessRuleError, ForbiddenError, NotFoundError, ValidationAppError
from app.models.base import (
    PortCallSourceEnum, PortCallStatusEnum, RoleEnum, ServiceWindowStatusEnum, StatusEnum,
)
from app.models.country import Country
from app.models.port_call import PortCall
from app.models.service_window import ServiceWindow
from app.models.ship import Ship
from app.modules.users import ensure_supervisor_profile
from app.utils.civil_time import as_utc, format_ymd, instant_to_civil_date
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


@dataclass
class PortCallState:
    """Complete target state of a port call row; every field is written on upsert."""
    code: str
    ship_id: int
    origin_country_id: int
    supervisor_id: int
    scheduled_arrival_utc: datetime
    scheduled_departure_utc: Optional[datetime]
    operational_status: PortCallStatusEnum
    arrived_at_utc: Optional[datetime] = None
    departed_at_utc: Optional[datetime] = None
    terminal: Optional[str] = None
    berth: Optional[str] = None
    estimated_passengers: Optional[int] = None
    estimated_crew: Optional[int] = None
    notes: Optional[str] = None
    source: PortCallSourceEnum = PortCallSourceEnum.MANUAL
    status: StatusEnum = StatusEnum.ACTIVO
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


def build_seed_port_call_code(now: datetime, seq: int) -> str:
    """``RA-<civil year>-90<YYYYMMDD><seq>``, dated in the UTC-5 civil frame."""
    civil = instant_to_civil_date(now)
    return f"RA-{civil.year}-90{format_ymd(civil)}{seq:02d}"


def build_port_call_code(scheduled_arrival: datetime, port_call_id: int) -> str:
    """Final code for API-created port calls, e.g. ``RA-2026-000015``."""
    return f"RA-{scheduled_arrival.year}-{port_call_id:06d}"


def _temp_port_call_code() -> str:
    return f"TEMP-{uuid.uuid4().hex}"


def upsert_port_call(db: Session, state: PortCallState) -> PortCall:
    """Create or fully replace the port call identified by ``state.code``. Commits."""
    arrived_at = state.arrived_at_utc
    departed_at = state.departed_at_utc
    canceled_at = state.canceled_at
    cancel_reason = state.cancel_reason
    # Only the fields that belong to the target status survive
    if state.operational_status == PortCallStatusEnum.SCHEDULED:
        arrived_at = departed_at = None
    elif state.operational_status == PortCallStatusEnum.ARRIVED:
        departed_at = None
    if state.operational_status != PortCallStatusEnum.CANCELED:
        canceled_at = cancel_reason = None

    try:
        port_call = db.query(PortCall).filter(PortCall.code == state.code).first()
        if port_call is None:
            port_call = PortCall(code=state.code)
            db.add(port_call)
        port_call.ship_id = state.ship_id
        port_call.origin_country_id = state.origin_country_id
        port_call.supervisor_id = state.supervisor_id
        port_call.scheduled_arrival_utc = state.scheduled_arrival_utc
        port_call.scheduled_departure_utc = state.scheduled_departure_utc
        port_call.arrived_at_utc = arrived_at
        port_call.departed_at_utc = departed_at
        port_call.status = state.status
        port_call.operational_status = state.operational_status
        port_call.terminal = state.terminal
        port_call.berth = state.berth
        port_call.estimated_passengers = state.estimated_passengers
        port_call.estimated_crew = state.estimated_crew
        port_call.notes = state.notes
        port_call.source = state.source
        port_call.canceled_at = canceled_at
        port_call.cancel_reason = cancel_reason
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "upsert_port_call: code=%s id=%s status=%s",
        state.code, port_call.port_call_id, state.operational_status.value,
    )
    return port_call


# ---------------------------------------------------------------------------
# CRUD and lifecycle
# ---------------------------------------------------------------------------

def create_port_call(db: Session, fields: dict, actor_user_id: int) -> PortCall:
    """Register a SCHEDULED port call supervised by the caller.

    The row is inserted with a temporary unique code, then renamed to its
    final ``RA-YYYY-NNNNNN`` code once the id is known, in one transaction.
    """
    arrival = fields["scheduled_arrival_utc"]
    departure = fields.get("scheduled_departure_utc")
    if departure is not None and departure < arrival:
        raise ValidationAppError("scheduled_departure_utc must be >= scheduled_arrival_utc")
    if db.query(Ship.ship_id).filter(Ship.ship_id == fields["ship_id"]).first() is None:
        raise NotFoundError("Ship (ship_id) does not exist")
    country_exists = (
        db.query(Country.country_id)
        .filter(Country.country_id == fields["origin_country_id"])
        .first()
    )
    if country_exists is None:
        raise NotFoundError("Country (origin_country_id) does not exist")

    try:
        supervisor = ensure_supervisor_profile(db, actor_user_id)
        port_call = PortCall(
            code=_temp_port_call_code(),
            ship_id=fields["ship_id"],
            origin_country_id=fields["origin_country_id"],
            supervisor_id=supervisor.supervisor_id,
            scheduled_arrival_utc=arrival,
            scheduled_departure_utc=departure,
            terminal=fields.get("terminal"),
            berth=fields.get("berth"),
            estimated_passengers=fields.get("estimated_passengers"),
            estimated_crew=fields.get("estimated_crew"),
            notes=fields.get("notes"),
            source=fields.get("source") or PortCallSourceEnum.MANUAL,
            status=fields.get("status") or StatusEnum.ACTIVO,
            operational_status=PortCallStatusEnum.SCHEDULED,
        )
        db.add(port_call)
        db.flush()
        port_call.code = build_port_call_code(arrival, port_call.port_call_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(port_call)
    logger.info(
        "port call created: port_call_id=%s code=%s actor_user_id=%s",
        port_call.port_call_id, port_call.code, actor_user_id,
    )
    return port_call


def list_port_calls(
    db: Session,
    q: Optional[str] = None,
    ship_id: Optional[int] = None,
    origin_country_id: Optional[int] = None,
    operational_status: Optional[PortCallStatusEnum] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 10,
) -> dict:
    """List port calls whose [arrival, departure] range overlaps [date_from, date_to]."""
    query = db.query(PortCall).options(joinedload(PortCall.ship), joinedload(PortCall.origin_country))
    if ship_id is not None:
        query = query.filter(PortCall.ship_id == ship_id)
    if origin_country_id is not None:
        query = query.filter(PortCall.origin_country_id == origin_country_id)
    if operational_status is not None:
        query = query.filter(PortCall.operational_status == operational_status)
    if date_to is not None:
        query = query.filter(PortCall.scheduled_arrival_utc <= date_to)
    if date_from is not None:
        query = query.filter(or_(
            PortCall.scheduled_departure_utc >= date_from,
            and_(PortCall.scheduled_departure_utc.is_(None), PortCall.scheduled_arrival_utc >= date_from),
        ))
    if q:
        pattern = f"%{q}%"
        query = query.join(Ship, PortCall.ship_id == Ship.ship_id).filter(or_(
            PortCall.code.ilike(pattern),
            PortCall.notes.ilike(pattern),
            Ship.name.ilike(pattern),
        ))
    query = query.order_by(PortCall.scheduled_arrival_utc.asc(), PortCall.port_call_id.asc())
    return paginate(query, page, page_size)


def get_port_call(db: Session, port_call_id: int) -> PortCall:
    port_call = (
        db.query(PortCall)
        .options(joinedload(PortCall.ship), joinedload(PortCall.origin_country))
        .filter(PortCall.port_call_id == port_call_id)
        .first()
    )
    if port_call is None:
        raise NotFoundError("Port call not found")
    return port_call


SCHEDULED_EDITABLE = (
    "ship_id",
    "origin_country_id",
    "scheduled_arrival_utc",
    "scheduled_departure_utc",
    "terminal",
    "berth",
    "estimated_passengers",
    "estimated_crew",
    "notes",
    "source",
)
# Once the ship is in port only operational details can change
ARRIVED_EDITABLE = (
    "scheduled_departure_utc",
    "terminal",
    "berth",
    "estimated_passengers",
    "estimated_crew",
    "notes",
)


def update_port_call(db: Session, port_call_id: int, fields: dict, actor_user_id: int) -> PortCall:
    """Partial update. Which fields are accepted depends on the lifecycle state.

    Fields not editable in the current state are ignored; when none remain
    the request is rejected.
    """
    port_call = get_port_call(db, port_call_id)
    current = port_call.operational_status
    if current in (PortCallStatusEnum.DEPARTED, PortCallStatusEnum.CANCELED):
        raise BusinessRuleError(f"A {current.value} port call cannot be edited")

    allowed = SCHEDULED_EDITABLE if current == PortCallStatusEnum.SCHEDULED else ARRIVED_EDITABLE
    changes = {key: value for key, value in fields.items() if key in allowed}
    if not changes:
        raise ValidationAppError(
            "No editable fields for the current state",
            details={"operational_status": current.value, "editable": list(allowed)},
        )

    if changes.get("ship_id") is not None:
        if db.query(Ship.ship_id).filter(Ship.ship_id == changes["ship_id"]).first() is None:
            raise NotFoundError("Ship (ship_id) does not exist")
    if changes.get("origin_country_id") is not None:
        exists = db.query(Country.country_id).filter(Country.country_id == changes["origin_country_id"]).first()
        if exists is None:
            raise NotFoundError("Country (origin_country_id) does not exist")

    arrival = as_utc(changes.get("scheduled_arrival_utc") or port_call.scheduled_arrival_utc)
    departure = as_utc(changes.get("scheduled_departure_utc", port_call.scheduled_departure_utc))
    if departure is not None and departure < arrival:
        raise ValidationAppError("scheduled_departure_utc must be >= scheduled_arrival_utc")

    for key, value in changes.items():
        if value is None and key in ("ship_id", "origin_country_id", "scheduled_arrival_utc", "source"):
            continue
        setattr(port_call, key, value)
    db.commit()
    db.refresh(port_call)
    logger.info(
        "port call updated: port_call_id=%s status=%s fields=%s actor_user_id=%s",
        port_call_id, current.value, sorted(changes), actor_user_id,
    )
    return port_call


def arrive_port_call(
    db: Session, port_call_id: int, actor_user_id: int, arrived_at: Optional[datetime] = None
) -> PortCall:
    port_call = get_port_call(db, port_call_id)
    if port_call.operational_status != PortCallStatusEnum.SCHEDULED:
        raise BusinessRuleError(
            f"Only a SCHEDULED port call can be marked ARRIVED "
            f"(current: {port_call.operational_status.value})"
        )
    port_call.operational_status = PortCallStatusEnum.ARRIVED
    port_call.arrived_at_utc = arrived_at or datetime.now(timezone.utc)
    db.commit()
    db.refresh(port_call)
    logger.info("port call arrived: port_call_id=%s actor_user_id=%s", port_call_id, actor_user_id)
    return port_call


def depart_port_call(
    db: Session, port_call_id: int, actor_user_id: int, departed_at: Optional[datetime] = None
) -> PortCall:
    port_call = get_port_call(db, port_call_id)
    if port_call.operational_status != PortCallStatusEnum.ARRIVED:
        raise BusinessRuleError(
            f"Only an ARRIVED port call can be marked DEPARTED "
            f"(current: {port_call.operational_status.value})"
        )
    departed_at = departed_at or datetime.now(timezone.utc)
    arrived_at = as_utc(port_call.arrived_at_utc)
    if arrived_at is not None and as_utc(departed_at) < arrived_at:
        raise ValidationAppError("departed_at must be >= arrived_at")
    port_call.operational_status = PortCallStatusEnum.DEPARTED
    port_call.departed_at_utc = departed_at
    db.commit()
    db.refresh(port_call)
    logger.info("port call departed: port_call_id=%s actor_user_id=%s", port_call_id, actor_user_id)
    return port_call


def cancel_port_call(
    db: Session, port_call_id: int, actor_user_id: int, actor_role: RoleEnum, reason: Optional[str] = None
) -> PortCall:
    """Cancel a port call. Service windows are never cascaded; any window not yet CANCELED blocks the cancel."""
    port_call = get_port_call(db, port_call_id)
    if port_call.operational_status == PortCallStatusEnum.DEPARTED:
        raise BusinessRuleError("A DEPARTED port call cannot be canceled")
    if port_call.operational_status == PortCallStatusEnum.CANCELED:
        raise BusinessRuleError("Port call is already CANCELED")
    if port_call.operational_status == PortCallStatusEnum.ARRIVED and actor_role != RoleEnum.SUPER_ADMIN:
        raise ForbiddenError("Only SUPER_ADMIN can cancel a port call that already ARRIVED")
    windows = (
        db.query(ServiceWindow)
        .filter(
            ServiceWindow.port_call_id == port_call_id,
            ServiceWindow.operational_status != ServiceWindowStatusEnum.CANCELED,
        )
        .count()
    )
    if windows > 0:
        raise BusinessRuleError(
            "Port call has active service windows; cancel them first",
            details={"service_windows": windows},
        )
    port_call.operational_status = PortCallStatusEnum.CANCELED
    port_call.canceled_at = datetime.now(timezone.utc)
    port_call.cancel_reason = reason
    db.commit()
    db.refresh(port_call)
    logger.info("port call canceled: port_call_id=%s actor_user_id=%s", port_call_id, actor_user_id)
    return port_call


def delete_port_call(db: Session, port_call_id: int, actor_user_id: int) -> dict:
    """Hard delete, allowed only for a SCHEDULED port call without service windows."""
    port_call = get_port_call(db, port_call_id)
    if port_call.operational_status != PortCallStatusEnum.SCHEDULED:
        raise BusinessRuleError("Only a SCHEDULED port call can be deleted; cancel it instead")
    if db.query(ServiceWindow).filter(ServiceWindow.port_call_id == port_call_id).count() > 0:
        raise BusinessRuleError("Port call has service windows and cannot be deleted")
    deleted = {"port_call_id": port_call.port_call_id, "code": port_call.code}
    db.delete(port_call)
    db.commit()
    logger.info("port call deleted: port_call_id=%s actor_user_id=%s", port_call_id, actor_user_id)
    return deleted
