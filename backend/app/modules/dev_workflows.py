"""Development fixtures: seed users, port calls in every state, windows and shift plans.

Everything is anchored on the current civil (UTC-5) day with a reference
instant of 12:30 civil time, so the agenda always shows "today" data:

- ARRIVED port call today with a CLOSED morning window and an OPEN window
  in progress
- SCHEDULED port call this afternoon with an OPEN window
- DEPARTED port call yesterday with a CLOSED historical window
- CANCELED port call tomorrow with a CANCELED window

Only run when ``APP_ENV=development``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import SeedIntegrityError
from app.models.base import (
    PortCallSourceEnum, PortCallStatusEnum, RoleEnum, ServiceWindowStatusEnum, ShiftStatusEnum,
)
from app.modules.port_calls import PortCallState, build_seed_port_call_code, upsert_port_call
from app.modules.service_windows import ServiceWindowState, SlotPlanItem, upsert_service_window_with_slots
from app.modules.ships import resolve_country_id_or_raise, resolve_ship_id_or_raise
from app.modules.users import SeedUser, resolve_user_id_or_raise, upsert_user_with_profile
from app.utils.civil_time import civil_to_instant, instant_to_civil_date

logger = logging.getLogger(__name__)

TERMINAL = "Terminal de Cruceros"


def seed_users_from_settings(settings: Settings) -> list[SeedUser]:
    return [
        SeedUser(settings.SEED_SUPERVISOR_1_EMAIL, settings.SEED_SUPERVISOR_1_PASS,
                 "María", "González", RoleEnum.SUPERVISOR),
        SeedUser(settings.SEED_SUPERVISOR_2_EMAIL, settings.SEED_SUPERVISOR_2_PASS,
                 "Julián", "Pérez", RoleEnum.SUPERVISOR),
        SeedUser(settings.SEED_GUIA_1_EMAIL, settings.SEED_GUIA_1_PASS,
                 "Carlos", "Rodríguez", RoleEnum.GUIA),
        SeedUser(settings.SEED_GUIA_2_EMAIL, settings.SEED_GUIA_2_PASS,
                 "Ana", "Martínez", RoleEnum.GUIA),
        SeedUser(settings.SEED_GUIA_3_EMAIL, settings.SEED_GUIA_3_PASS,
                 "Sofía", "López", RoleEnum.GUIA),
        SeedUser(settings.SEED_GUIA_4_EMAIL, settings.SEED_GUIA_4_PASS,
                 "Mateo", "García", RoleEnum.GUIA),
    ]


def reference_instant(now: Optional[datetime] = None) -> datetime:
    """12:30 civil time on the civil day containing *now*."""
    today = instant_to_civil_date(now or datetime.now(timezone.utc))
    return civil_to_instant(today.year, today.month, today.day, 12, 30)


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return civil_to_instant(day.year, day.month, day.day, hour, minute)


def upsert_dev_workflows(db: Session, settings: Settings, now: Optional[datetime] = None) -> dict:
    """Seed the development data set. Returns the ids of what was written."""
    now = reference_instant(now)
    today = instant_to_civil_date(now)
    yesterday = today - timedelta(days=1)
    tomorrow = today + timedelta(days=1)

    seeded = {}
    for seed in seed_users_from_settings(settings):
        seeded[seed.email] = upsert_user_with_profile(db, seed, verified_at=now)
    logger.info("upsert_dev_workflows: %d seed users ready", len(seeded))

    supervisor_1 = seeded[settings.SEED_SUPERVISOR_1_EMAIL].supervisor_id
    supervisor_2 = seeded[settings.SEED_SUPERVISOR_2_EMAIL].supervisor_id
    if supervisor_1 is None or supervisor_2 is None:
        raise SeedIntegrityError("Seed supervisors could not be resolved")
    guides = [
        seeded[email].guide_id
        for email in (
            settings.SEED_GUIA_1_EMAIL,
            settings.SEED_GUIA_2_EMAIL,
            settings.SEED_GUIA_3_EMAIL,
            settings.SEED_GUIA_4_EMAIL,
        )
    ]
    if any(guide_id is None for guide_id in guides):
        raise SeedIntegrityError("Seed guides could not be resolved")

    created_by_id = resolve_user_id_or_raise(db, settings.SEED_SUPERADMIN_EMAIL)

    ship_1 = resolve_ship_id_or_raise(db, "Wonder of the Seas")
    ship_2 = resolve_ship_id_or_raise(db, "MSC Meraviglia")
    ship_3 = resolve_ship_id_or_raise(db, "Norwegian Epic")
    country_us = resolve_country_id_or_raise(db, "US")
    country_it = resolve_country_id_or_raise(db, "IT")
    country_es = resolve_country_id_or_raise(db, "ES")

    arrived = upsert_port_call(db, PortCallState(
        code=build_seed_port_call_code(now, 1),
        ship_id=ship_1,
        origin_country_id=country_us,
        supervisor_id=supervisor_1,
        scheduled_arrival_utc=_at(today, 9, 30),
        scheduled_departure_utc=_at(today, 18, 0),
        arrived_at_utc=_at(today, 9, 45),
        operational_status=PortCallStatusEnum.ARRIVED,
        terminal=TERMINAL,
        berth="Muelle 1",
        estimated_passengers=5200,
        estimated_crew=1900,
        notes="[SEED] Port call ARRIVED today.",
        source=PortCallSourceEnum.MANUAL,
    ))
    scheduled = upsert_port_call(db, PortCallState(
        code=build_seed_port_call_code(now, 2),
        ship_id=ship_2,
        origin_country_id=country_it,
        supervisor_id=supervisor_2,
        scheduled_arrival_utc=_at(today, 16, 0),
        scheduled_departure_utc=_at(tomorrow, 6, 0),
        operational_status=PortCallStatusEnum.SCHEDULED,
        terminal=TERMINAL,
        berth="Muelle 2",
        estimated_passengers=4300,
        estimated_crew=1500,
        notes="[SEED] Port call SCHEDULED this afternoon.",
    ))
    departed = upsert_port_call(db, PortCallState(
        code=build_seed_port_call_code(now, 3),
        ship_id=ship_3,
        origin_country_id=country_es,
        supervisor_id=supervisor_1,
        scheduled_arrival_utc=_at(yesterday, 7, 0),
        scheduled_departure_utc=_at(yesterday, 19, 0),
        arrived_at_utc=_at(yesterday, 7, 20),
        departed_at_utc=_at(yesterday, 18, 45),
        operational_status=PortCallStatusEnum.DEPARTED,
        terminal=TERMINAL,
        berth="Muelle 3",
        estimated_passengers=3900,
        estimated_crew=1350,
        notes="[SEED] Port call DEPARTED yesterday.",
    ))
    canceled = upsert_port_call(db, PortCallState(
        code=build_seed_port_call_code(now, 4),
        ship_id=ship_2,
        origin_country_id=country_it,
        supervisor_id=supervisor_2,
        scheduled_arrival_utc=_at(tomorrow, 9, 0),
        scheduled_departure_utc=_at(tomorrow, 17, 0),
        operational_status=PortCallStatusEnum.CANCELED,
        terminal=TERMINAL,
        berth="Muelle 2",
        estimated_passengers=4100,
        estimated_crew=1400,
        notes="[SEED] Port call CANCELED.",
        canceled_at=now,
        cancel_reason="[SEED] Example cancellation",
    ))
    logger.info("upsert_dev_workflows: port calls ready (SCHEDULED/ARRIVED/DEPARTED/CANCELED)")

    windows = [
        ServiceWindowState(
            port_call_id=arrived.port_call_id,
            supervisor_id=supervisor_1,
            created_by_id=created_by_id,
            description="[SEED] CLOSED window (morning)",
            start_utc=_at(today, 8, 0),
            end_utc=_at(today, 10, 0),
            operational_status=ServiceWindowStatusEnum.CLOSED,
            total_slots=4,
            slot_plan=[
                SlotPlanItem(1, ShiftStatusEnum.COMPLETED, guides[0],
                             check_in_at=_at(today, 8, 5), check_out_at=_at(today, 9, 55)),
                SlotPlanItem(2, ShiftStatusEnum.COMPLETED, guides[1],
                             check_in_at=_at(today, 8, 10), check_out_at=_at(today, 9, 50)),
                SlotPlanItem(3, ShiftStatusEnum.NO_SHOW, guides[2]),
                SlotPlanItem(4, ShiftStatusEnum.CANCELED, None,
                             canceled_at=_at(today, 9, 0), cancel_reason="[SEED] Example cancellation"),
            ],
        ),
        ServiceWindowState(
            port_call_id=arrived.port_call_id,
            supervisor_id=supervisor_1,
            created_by_id=created_by_id,
            description="[SEED] OPEN window (in progress 11:00-13:00)",
            start_utc=_at(today, 11, 0),
            end_utc=_at(today, 13, 0),
            operational_status=ServiceWindowStatusEnum.OPEN,
            total_slots=6,
            slot_plan=[
                SlotPlanItem(1, ShiftStatusEnum.IN_PROGRESS, guides[3], check_in_at=_at(today, 11, 5)),
                SlotPlanItem(2, ShiftStatusEnum.ASSIGNED, guides[2]),
                SlotPlanItem(3, ShiftStatusEnum.AVAILABLE),
                SlotPlanItem(4, ShiftStatusEnum.AVAILABLE),
                SlotPlanItem(5, ShiftStatusEnum.AVAILABLE),
                SlotPlanItem(6, ShiftStatusEnum.CANCELED, None,
                             canceled_at=_at(today, 12, 0), cancel_reason="[SEED] Slot canceled"),
            ],
        ),
        ServiceWindowState(
            port_call_id=scheduled.port_call_id,
            supervisor_id=supervisor_2,
            created_by_id=created_by_id,
            description="[SEED] SCHEDULED window (pre-assigned)",
            start_utc=_at(today, 17, 0),
            end_utc=_at(today, 20, 0),
            operational_status=ServiceWindowStatusEnum.OPEN,
            total_slots=3,
            slot_plan=[
                SlotPlanItem(1, ShiftStatusEnum.ASSIGNED, guides[0]),
                SlotPlanItem(2, ShiftStatusEnum.AVAILABLE),
                SlotPlanItem(3, ShiftStatusEnum.AVAILABLE),
            ],
        ),
        ServiceWindowState(
            port_call_id=departed.port_call_id,
            supervisor_id=supervisor_1,
            created_by_id=created_by_id,
            description="[SEED] Historical window (closed yesterday)",
            start_utc=_at(yesterday, 12, 0),
            end_utc=_at(yesterday, 15, 0),
            operational_status=ServiceWindowStatusEnum.CLOSED,
            total_slots=2,
            slot_plan=[
                SlotPlanItem(1, ShiftStatusEnum.COMPLETED, guides[1],
                             check_in_at=_at(yesterday, 12, 10), check_out_at=_at(yesterday, 14, 55)),
                SlotPlanItem(2, ShiftStatusEnum.COMPLETED, guides[2],
                             check_in_at=_at(yesterday, 12, 15), check_out_at=_at(yesterday, 14, 50)),
            ],
        ),
        ServiceWindowState(
            port_call_id=canceled.port_call_id,
            supervisor_id=supervisor_2,
            created_by_id=created_by_id,
            description="[SEED] CANCELED window",
            start_utc=_at(tomorrow, 10, 0),
            end_utc=_at(tomorrow, 12, 0),
            operational_status=ServiceWindowStatusEnum.CANCELED,
            total_slots=2,
            slot_plan=[
                SlotPlanItem(1, ShiftStatusEnum.CANCELED, None,
                             canceled_at=now, cancel_reason="[SEED] Window canceled"),
                SlotPlanItem(2, ShiftStatusEnum.CANCELED, None,
                             canceled_at=now, cancel_reason="[SEED] Window canceled"),
            ],
            canceled_at=now,
            cancel_reason="[SEED] Window cancellation",
            canceled_by_id=created_by_id,
        ),
    ]
    window_ids = [upsert_service_window_with_slots(db, state).window_id for state in windows]
    logger.info("upsert_dev_workflows: %d service windows with shifts ready", len(window_ids))

    return {
        "users": len(seeded),
        "port_calls": [arrived.port_call_id, scheduled.port_call_id, departed.port_call_id, canceled.port_call_id],
        "service_windows": window_ids,
    }
