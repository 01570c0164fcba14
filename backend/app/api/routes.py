import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.auth.rbac import (
    get_current_user,
    require_completed_profile,
    require_guide,
    require_ownership_or_role,
    require_super_admin,
    require_supervisor,
)
from app.auth.tokens import access_token_ttl_seconds, create_access_token
from app.config import settings
from app.database import get_db
from app.errors import ValidationAppError
from app.models.base import (
    PortCallStatusEnum, RoleEnum, ServiceWindowStatusEnum, ShiftStatusEnum, StatusEnum,
)
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.auth import LoginRequest, LoginResponse
from app.schemas.country import CountryCreateRequest, CountryRead, CountryUpdateRequest
from app.schemas.port_call import (
    PortCallArriveRequest, PortCallCancelRequest, PortCallCreateRequest, PortCallDepartRequest, PortCallRead,
    PortCallUpdateRequest,
)
from app.schemas.service_window import (
    ServiceWindowCancelRequest, ServiceWindowCreateRequest, ServiceWindowDetail, ServiceWindowRead,
    ServiceWindowSummary, ServiceWindowUpdateRequest,
)
from app.schemas.ship import ShipCreateRequest, ShipRead, ShipUpdateRequest
from app.schemas.shift import ShiftAssignRequest, ShiftRead, ShiftUnassignRequest
from app.schemas.user import (
    PasswordChangeRequest, ProfileCompleteRequest, UserCreateRequest, UserRead, UserUpdateMeRequest,
    UserUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _page(result: dict, schema) -> dict:
    """Serialize the ORM items of a paginate() envelope with *schema*."""
    return {**result, "items": [schema.model_validate(item) for item in result["items"]]}


def _window_detail(window) -> ServiceWindowDetail:
    from app.modules.service_windows import slot_summary

    detail = ServiceWindowDetail.model_validate(window)
    detail.slot_summary = slot_summary(window)
    return detail


def _validate_date_range(date_from: Optional[datetime], date_to: Optional[datetime]) -> None:
    if date_from and date_to and date_from > date_to:
        raise ValidationAppError("date_from must be <= date_to")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@router.post("/auth/login", tags=["auth"], response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)):
    from app.modules.users import authenticate

    user = authenticate(db, body.email, body.password)
    logger.info("login: user_id=%s role=%s", user.user_id, user.role.value)
    return LoginResponse(
        access_token=create_access_token(user),
        expires_in=access_token_ttl_seconds(),
        user=UserRead.model_validate(user),
    )


@router.get("/auth/me", tags=["auth"], response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return user


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.get("/users", tags=["users"])
def list_users(
    q: Optional[str] = None,
    role: Optional[RoleEnum] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_super_admin),
):
    from app.modules.users import list_users as _list_users
    return _page(_list_users(db, q=q, role=role, is_active=is_active, page=page, page_size=page_size), UserRead)


@router.patch("/users/me/profile", tags=["users"], response_model=UserRead)
def complete_my_profile(
    body: ProfileCompleteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    from app.modules.users import complete_profile
    return complete_profile(
        db, user, first_name=body.first_name, last_name=body.last_name, phone=body.phone, address=body.address
    )


@router.patch("/users/me", tags=["users"], response_model=UserRead)
def update_me(body: UserUpdateMeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    from app.modules.users import update_me as _update_me
    return _update_me(db, user, body.model_dump(exclude_unset=True))


@router.get("/users/{user_id}", tags=["users"], response_model=UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_ownership_or_role(RoleEnum.SUPER_ADMIN)),
):
    from app.modules.users import get_user as _get_user
    return _get_user(db, user_id)


@router.post("/users", tags=["users"], response_model=UserRead, status_code=201)
def create_user(
    body: UserCreateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_super_admin),
):
    from app.modules.users import create_user as _create_user
    user = _create_user(
        db,
        email=body.email,
        password=body.password,
        role=body.role,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    logger.info("user %s created by actor_user_id=%s", user.user_id, actor.user_id)
    return user


@router.patch("/users/{user_id}", tags=["users"], response_model=UserRead)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_ownership_or_role(RoleEnum.SUPER_ADMIN)),
):
    from app.modules.users import update_user as _update_user
    return _update_user(db, user_id, body.model_dump(exclude_unset=True), actor)


@router.patch("/users/{user_id}/password", tags=["users"], status_code=204)
def change_password(
    user_id: int,
    body: PasswordChangeRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_ownership_or_role()),
):
    from app.modules.users import change_password as _change_password
    _change_password(db, user_id, body.current_password, body.new_password, actor_user_id=actor.user_id)


@router.patch("/users/{user_id}/deactivate", tags=["users"], response_model=UserRead)
def deactivate_user(user_id: int, db: Session = Depends(get_db), actor: User = Depends(require_super_admin)):
    from app.modules.users import deactivate_user as _deactivate_user
    return _deactivate_user(db, user_id, actor_user_id=actor.user_id)


@router.patch("/users/{user_id}/activate", tags=["users"], response_model=UserRead)
def activate_user(user_id: int, db: Session = Depends(get_db), actor: User = Depends(require_super_admin)):
    from app.modules.users import activate_user as _activate_user
    return _activate_user(db, user_id, actor_user_id=actor.user_id)


# ---------------------------------------------------------------------------
# Countries
# ---------------------------------------------------------------------------

@router.get("/countries", tags=["catalog"])
def list_countries(
    q: Optional[str] = None,
    code: Optional[str] = None,
    status: Optional[StatusEnum] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_guide),
):
    from app.modules.countries import list_countries as _list_countries
    result = _list_countries(
        db, q=q, code=code.strip().upper() if code else None, status=status, page=page, page_size=page_size
    )
    return _page(result, CountryRead)


@router.get("/countries/lookup", tags=["catalog"], response_model=list[CountryRead])
def lookup_countries(db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.countries import lookup_countries as _lookup_countries
    return _lookup_countries(db)


@router.get("/countries/{country_id}", tags=["catalog"], response_model=CountryRead)
def get_country(country_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.countries import get_country as _get_country
    return _get_country(db, country_id)


@router.post("/countries", tags=["catalog"], response_model=CountryRead, status_code=201)
def create_country(body: CountryCreateRequest, db: Session = Depends(get_db), _: User = Depends(require_super_admin)):
    from app.modules.countries import create_country as _create_country
    return _create_country(db, code=body.code, name=body.name, status=body.status)


@router.patch("/countries/{country_id}", tags=["catalog"], response_model=CountryRead)
def update_country(
    country_id: int,
    body: CountryUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_supervisor),
):
    from app.modules.countries import update_country as _update_country
    return _update_country(db, country_id, body.model_dump(exclude_unset=True))


@router.delete("/countries/{country_id}", tags=["catalog"])
def delete_country(country_id: int, db: Session = Depends(get_db), _: User = Depends(require_super_admin)):
    from app.modules.countries import delete_country as _delete_country
    return _delete_country(db, country_id)


# ---------------------------------------------------------------------------
# Ships
# ---------------------------------------------------------------------------

@router.get("/ships", tags=["catalog"])
def list_ships(
    q: Optional[str] = None,
    country_id: Optional[int] = None,
    status: Optional[StatusEnum] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_guide),
):
    from app.modules.ships import list_ships as _list_ships
    return _page(
        _list_ships(db, q=q, country_id=country_id, status=status, page=page, page_size=page_size), ShipRead
    )


@router.get("/ships/lookup", tags=["catalog"], response_model=list[ShipRead])
def lookup_ships(db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.ships import lookup_ships as _lookup_ships
    return _lookup_ships(db)


@router.get("/ships/{ship_id}", tags=["catalog"], response_model=ShipRead)
def get_ship(ship_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.ships import get_ship as _get_ship
    return _get_ship(db, ship_id)


@router.post("/ships", tags=["catalog"], response_model=ShipRead, status_code=201)
def create_ship(body: ShipCreateRequest, db: Session = Depends(get_db), _: User = Depends(require_super_admin)):
    from app.modules.ships import create_ship as _create_ship
    return _create_ship(db, body.model_dump())


@router.patch("/ships/{ship_id}", tags=["catalog"], response_model=ShipRead)
def update_ship(
    ship_id: int,
    body: ShipUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_supervisor),
):
    from app.modules.ships import update_ship as _update_ship
    return _update_ship(db, ship_id, body.model_dump(exclude_unset=True))


@router.delete("/ships/{ship_id}", tags=["catalog"], response_model=ShipRead)
def delete_ship(ship_id: int, db: Session = Depends(get_db), _: User = Depends(require_super_admin)):
    """Soft delete: the ship is marked INACTIVO."""
    from app.modules.ships import deactivate_ship
    return deactivate_ship(db, ship_id)


# ---------------------------------------------------------------------------
# Port calls
# ---------------------------------------------------------------------------

@router.get("/port-calls", tags=["port-calls"])
def list_port_calls(
    q: Optional[str] = None,
    ship_id: Optional[int] = None,
    origin_country_id: Optional[int] = None,
    operational_status: Optional[PortCallStatusEnum] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_guide),
):
    from app.modules.port_calls import list_port_calls as _list_port_calls

    _validate_date_range(date_from, date_to)
    result = _list_port_calls(
        db,
        q=q,
        ship_id=ship_id,
        origin_country_id=origin_country_id,
        operational_status=operational_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return _page(result, PortCallRead)


@router.get("/port-calls/{port_call_id}", tags=["port-calls"], response_model=PortCallRead)
def get_port_call(port_call_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.port_calls import get_port_call as _get_port_call
    return _get_port_call(db, port_call_id)


@router.post("/port-calls", tags=["port-calls"], response_model=PortCallRead, status_code=201)
def create_port_call(
    body: PortCallCreateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.port_calls import create_port_call as _create_port_call
    return _create_port_call(db, body.model_dump(), actor_user_id=actor.user_id)


@router.patch("/port-calls/{port_call_id}", tags=["port-calls"], response_model=PortCallRead)
def update_port_call(
    port_call_id: int,
    body: PortCallUpdateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.port_calls import update_port_call as _update
    return _update(db, port_call_id, body.model_dump(exclude_unset=True), actor_user_id=actor.user_id)


@router.patch("/port-calls/{port_call_id}/arrive", tags=["port-calls"], response_model=PortCallRead)
def arrive_port_call(
    port_call_id: int,
    body: Optional[PortCallArriveRequest] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.port_calls import arrive_port_call as _arrive
    return _arrive(db, port_call_id, actor.user_id, arrived_at=body.arrived_at_utc if body else None)


@router.patch("/port-calls/{port_call_id}/depart", tags=["port-calls"], response_model=PortCallRead)
def depart_port_call(
    port_call_id: int,
    body: Optional[PortCallDepartRequest] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.port_calls import depart_port_call as _depart
    return _depart(db, port_call_id, actor.user_id, departed_at=body.departed_at_utc if body else None)


@router.patch("/port-calls/{port_call_id}/cancel", tags=["port-calls"], response_model=PortCallRead)
def cancel_port_call(
    port_call_id: int,
    body: Optional[PortCallCancelRequest] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.port_calls import cancel_port_call as _cancel
    return _cancel(db, port_call_id, actor.user_id, actor.role, reason=body.reason if body else None)


@router.delete("/port-calls/{port_call_id}", tags=["port-calls"])
def delete_port_call(port_call_id: int, db: Session = Depends(get_db), actor: User = Depends(require_supervisor)):
    from app.modules.port_calls import delete_port_call as _delete
    return _delete(db, port_call_id, actor.user_id)


# ---------------------------------------------------------------------------
# Service windows
# ---------------------------------------------------------------------------

@router.post("/service-windows", tags=["service-windows"], response_model=ServiceWindowDetail, status_code=201)
def create_service_window(
    body: ServiceWindowCreateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.service_windows import create_service_window as _create, get_service_window

    window = _create(db, body.model_dump(), actor_user_id=actor.user_id)
    return _window_detail(get_service_window(db, window.window_id))


@router.get("/service-windows", tags=["service-windows"])
def list_service_windows(
    port_call_id: Optional[int] = None,
    operational_status: Optional[ServiceWindowStatusEnum] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_guide),
):
    from app.modules.service_windows import list_service_windows as _list

    _validate_date_range(date_from, date_to)
    result = _list(
        db,
        port_call_id=port_call_id,
        operational_status=operational_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return _page(result, ServiceWindowRead)


@router.get("/service-windows/{window_id}", tags=["service-windows"], response_model=ServiceWindowDetail)
def get_service_window(window_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.service_windows import get_service_window as _get
    return _window_detail(_get(db, window_id))


@router.get("/service-windows/{window_id}/shifts", tags=["service-windows"], response_model=list[ShiftRead])
def list_window_shifts(window_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.service_windows import list_window_shifts as _list_window_shifts
    return _list_window_shifts(db, window_id)


@router.get("/service-windows/{window_id}/summary", tags=["service-windows"], response_model=ServiceWindowSummary)
def service_window_summary(window_id: int, db: Session = Depends(get_db), _: User = Depends(require_guide)):
    from app.modules.service_windows import window_summary
    return window_summary(db, window_id)


@router.patch("/service-windows/{window_id}", tags=["service-windows"], response_model=ServiceWindowDetail)
def update_service_window(
    window_id: int,
    body: ServiceWindowUpdateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.service_windows import update_service_window as _update
    return _window_detail(_update(db, window_id, body.model_dump(exclude_unset=True), actor_user_id=actor.user_id))


@router.patch("/service-windows/{window_id}/cancel", tags=["service-windows"], response_model=ServiceWindowDetail)
def cancel_service_window(
    window_id: int,
    body: Optional[ServiceWindowCancelRequest] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.service_windows import cancel_service_window as _cancel
    return _window_detail(_cancel(db, window_id, actor.user_id, reason=body.reason if body else None))


@router.patch("/service-windows/{window_id}/close", tags=["service-windows"], response_model=ServiceWindowDetail)
def close_service_window(window_id: int, db: Session = Depends(get_db), actor: User = Depends(require_supervisor)):
    from app.modules.service_windows import close_service_window as _close
    return _window_detail(_close(db, window_id, actor.user_id))


# ---------------------------------------------------------------------------
# Shifts
# ---------------------------------------------------------------------------

@router.get("/shifts", tags=["shifts"])
def list_shifts(
    window_id: Optional[int] = None,
    guide_id: Optional[int] = None,
    status: Optional[ShiftStatusEnum] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    _: User = Depends(require_supervisor),
):
    from app.modules.shifts import list_shifts as _list
    return _page(
        _list(db, window_id=window_id, guide_id=guide_id, status=status, page=page, page_size=page_size),
        ShiftRead,
    )


@router.get("/shifts/me", tags=["shifts"])
def list_my_shifts(
    status: Optional[ShiftStatusEnum] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import list_my_shifts as _list_mine
    return _page(_list_mine(db, user, status=status, page=page, page_size=page_size), ShiftRead)


@router.get("/shifts/me/next", tags=["shifts"], response_model=Optional[ShiftRead])
def next_my_shift(
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import next_my_shift as _next
    return _next(db, user)


@router.get("/shifts/me/active", tags=["shifts"], response_model=Optional[ShiftRead])
def active_my_shift(
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import active_my_shift as _active
    return _active(db, user)


@router.get("/shifts/{shift_id}", tags=["shifts"], response_model=ShiftRead)
def get_shift(shift_id: int, db: Session = Depends(get_db), user: User = Depends(require_guide)):
    from app.modules.shifts import get_shift as _get
    return _get(db, shift_id, user)


@router.post("/shifts/{shift_id}/claim", tags=["shifts"], response_model=ShiftRead)
def claim_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import claim_shift as _claim
    return _claim(db, shift_id, user)


@router.patch("/shifts/{shift_id}/assign", tags=["shifts"], response_model=ShiftRead)
def assign_shift(
    shift_id: int,
    body: ShiftAssignRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.shifts import assign_shift as _assign
    return _assign(db, shift_id, body.guide_id, actor_user_id=actor.user_id)


@router.patch("/shifts/{shift_id}/unassign", tags=["shifts"], response_model=ShiftRead)
def unassign_shift(
    shift_id: int,
    body: Optional[ShiftUnassignRequest] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_supervisor),
):
    from app.modules.shifts import unassign_shift as _unassign
    return _unassign(db, shift_id, actor_user_id=actor.user_id, reason=body.reason if body else None)


@router.patch("/shifts/{shift_id}/check-in", tags=["shifts"], response_model=ShiftRead)
def check_in_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import check_in_shift as _check_in
    return _check_in(db, shift_id, user)


@router.patch("/shifts/{shift_id}/check-out", tags=["shifts"], response_model=ShiftRead)
def check_out_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_guide),
    _: User = Depends(require_completed_profile),
):
    from app.modules.shifts import check_out_shift as _check_out
    return _check_out(db, shift_id, user)


@router.patch("/shifts/{shift_id}/no-show", tags=["shifts"], response_model=ShiftRead)
def mark_no_show(shift_id: int, db: Session = Depends(get_db), actor: User = Depends(require_supervisor)):
    from app.modules.shifts import mark_no_show as _no_show
    return _no_show(db, shift_id, actor_user_id=actor.user_id)
