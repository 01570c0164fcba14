"""Tests for port-call codes, the full-replace upsert and lifecycle transitions."""
import re
from datetime import datetime, timedelta, timezone

import pytest

from app.errors import BusinessRuleError, ForbiddenError, NotFoundError, ValidationAppError
from app.models.base import PortCallSourceEnum, PortCallStatusEnum, RoleEnum, ServiceWindowStatusEnum
from app.models.country import Country
from app.models.port_call import PortCall
from app.models.ship import Ship
from app.modules.port_calls import (
    PortCallState,
    arrive_port_call,
    build_port_call_code,
    build_seed_port_call_code,
    cancel_port_call,
    create_port_call,
    delete_port_call,
    depart_port_call,
    list_port_calls,
    update_port_call,
    upsert_port_call,
)

from factories import make_port_call, make_supervisor_profile, make_user, make_window

ARRIVAL = datetime(2026, 2, 11, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def refs(catalog):
    db = catalog
    ship = db.query(Ship).order_by(Ship.ship_id).first()
    country = db.query(Country).filter(Country.code == "IT").one()
    supervisor = make_supervisor_profile(db)
    return db, ship, country, supervisor


def _state(ship, country, supervisor, status, **overrides):
    values = dict(
        code="RA-2026-TEST01",
        ship_id=ship.ship_id,
        origin_country_id=country.country_id,
        supervisor_id=supervisor.supervisor_id,
        scheduled_arrival_utc=ARRIVAL,
        scheduled_departure_utc=ARRIVAL + timedelta(hours=10),
        operational_status=status,
    )
    values.update(overrides)
    return PortCallState(**values)


class TestCodes:
    def test_seed_code_uses_civil_date(self):
        # 03:00Z on the 12th is still the 11th at UTC-5
        now = datetime(2026, 2, 12, 3, 0, tzinfo=timezone.utc)
        assert build_seed_port_call_code(now, 1) == "RA-2026-902026021101"

    def test_seed_code_sequence_is_zero_padded(self):
        now = datetime(2026, 2, 11, 17, 30, tzinfo=timezone.utc)
        assert build_seed_port_call_code(now, 4).endswith("04")

    def test_api_code_format(self):
        assert build_port_call_code(ARRIVAL, 15) == "RA-2026-000015"


class TestUpsertPortCall:
    def test_insert_then_update_by_code(self, refs):
        db, ship, country, supervisor = refs
        first = upsert_port_call(db, _state(ship, country, supervisor, PortCallStatusEnum.SCHEDULED))
        second = upsert_port_call(
            db, _state(ship, country, supervisor, PortCallStatusEnum.SCHEDULED, berth="Muelle 3")
        )
        assert first.port_call_id == second.port_call_id
        assert db.query(PortCall).count() == 1
        assert second.berth == "Muelle 3"

    def test_scheduled_clears_actual_times(self, refs):
        db, ship, country, supervisor = refs
        upsert_port_call(db, _state(
            ship, country, supervisor, PortCallStatusEnum.DEPARTED,
            arrived_at_utc=ARRIVAL, departed_at_utc=ARRIVAL + timedelta(hours=9),
        ))
        port_call = upsert_port_call(db, _state(
            ship, country, supervisor, PortCallStatusEnum.SCHEDULED, arrived_at_utc=ARRIVAL,
        ))
        assert port_call.arrived_at_utc is None
        assert port_call.departed_at_utc is None

    def test_cancel_fields_cleared_when_not_canceled(self, refs):
        db, ship, country, supervisor = refs
        upsert_port_call(db, _state(
            ship, country, supervisor, PortCallStatusEnum.CANCELED,
            canceled_at=ARRIVAL, cancel_reason="Clima",
        ))
        port_call = upsert_port_call(db, _state(
            ship, country, supervisor, PortCallStatusEnum.ARRIVED, arrived_at_utc=ARRIVAL,
        ))
        assert port_call.operational_status == PortCallStatusEnum.ARRIVED
        assert port_call.canceled_at is None
        assert port_call.cancel_reason is None
        assert port_call.arrived_at_utc is not None


class TestCreatePortCall:
    def test_create_assigns_final_code(self, refs):
        db, ship, country, supervisor = refs
        port_call = create_port_call(
            db,
            {"ship_id": ship.ship_id, "origin_country_id": country.country_id, "scheduled_arrival_utc": ARRIVAL},
            actor_user_id=supervisor.user_id,
        )
        assert port_call.code == f"RA-2026-{port_call.port_call_id:06d}"
        assert port_call.operational_status == PortCallStatusEnum.SCHEDULED
        assert port_call.supervisor_id == supervisor.supervisor_id

    def test_create_gives_admin_a_supervisor_profile(self, refs):
        db, ship, country, _ = refs
        admin = make_user(db, RoleEnum.SUPER_ADMIN)
        port_call = create_port_call(
            db,
            {"ship_id": ship.ship_id, "origin_country_id": country.country_id, "scheduled_arrival_utc": ARRIVAL},
            actor_user_id=admin.user_id,
        )
        assert re.fullmatch(r"RA-2026-\d{6}", port_call.code)
        assert port_call.supervisor.user_id == admin.user_id

    def test_departure_before_arrival(self, refs):
        db, ship, country, supervisor = refs
        with pytest.raises(ValidationAppError):
            create_port_call(db, {
                "ship_id": ship.ship_id,
                "origin_country_id": country.country_id,
                "scheduled_arrival_utc": ARRIVAL,
                "scheduled_departure_utc": ARRIVAL - timedelta(hours=1),
            }, actor_user_id=supervisor.user_id)

    def test_unknown_ship(self, refs):
        db, _, country, supervisor = refs
        with pytest.raises(NotFoundError):
            create_port_call(db, {
                "ship_id": 9999, "origin_country_id": country.country_id, "scheduled_arrival_utc": ARRIVAL,
            }, actor_user_id=supervisor.user_id)


class TestTransitions:
    def test_arrive_then_depart(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        arrived = arrive_port_call(db, port_call.port_call_id, supervisor.user_id, arrived_at=ARRIVAL)
        assert arrived.operational_status == PortCallStatusEnum.ARRIVED
        departed = depart_port_call(
            db, port_call.port_call_id, supervisor.user_id, departed_at=ARRIVAL + timedelta(hours=8)
        )
        assert departed.operational_status == PortCallStatusEnum.DEPARTED

    def test_arrive_twice_rejected(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        with pytest.raises(BusinessRuleError):
            arrive_port_call(db, port_call.port_call_id, supervisor.user_id)

    def test_depart_requires_arrived(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        with pytest.raises(BusinessRuleError):
            depart_port_call(db, port_call.port_call_id, supervisor.user_id)

    def test_depart_before_arrival_rejected(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        arrive_port_call(db, port_call.port_call_id, supervisor.user_id, arrived_at=ARRIVAL)
        with pytest.raises(ValidationAppError):
            depart_port_call(
                db, port_call.port_call_id, supervisor.user_id, departed_at=ARRIVAL - timedelta(minutes=5)
            )

    def test_cancel_scheduled(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        canceled = cancel_port_call(
            db, port_call.port_call_id, supervisor.user_id, RoleEnum.SUPERVISOR, reason="Clima"
        )
        assert canceled.operational_status == PortCallStatusEnum.CANCELED
        assert canceled.cancel_reason == "Clima"
        assert canceled.canceled_at is not None

    def test_cancel_arrived_needs_super_admin(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        with pytest.raises(ForbiddenError):
            cancel_port_call(db, port_call.port_call_id, supervisor.user_id, RoleEnum.SUPERVISOR)
        admin = make_user(db, RoleEnum.SUPER_ADMIN)
        canceled = cancel_port_call(db, port_call.port_call_id, admin.user_id, RoleEnum.SUPER_ADMIN)
        assert canceled.operational_status == PortCallStatusEnum.CANCELED

    def test_cancel_departed_rejected(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.DEPARTED
        )
        with pytest.raises(BusinessRuleError):
            cancel_port_call(db, port_call.port_call_id, supervisor.user_id, RoleEnum.SUPER_ADMIN)

    def test_cancel_blocked_by_service_windows(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        make_window(db, port_call.port_call_id, supervisor.supervisor_id)
        with pytest.raises(BusinessRuleError) as exc:
            cancel_port_call(db, port_call.port_call_id, supervisor.user_id, RoleEnum.SUPERVISOR)
        assert exc.value.details == {"service_windows": 1}

    def test_canceled_windows_do_not_block_cancel(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        make_window(
            db, port_call.port_call_id, supervisor.supervisor_id,
            operational_status=ServiceWindowStatusEnum.CANCELED,
        )
        canceled = cancel_port_call(db, port_call.port_call_id, supervisor.user_id, RoleEnum.SUPERVISOR)
        assert canceled.operational_status == PortCallStatusEnum.CANCELED

    def test_delete_scheduled_without_windows(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        deleted = delete_port_call(db, port_call.port_call_id, supervisor.user_id)
        assert deleted["code"] == port_call.code
        assert db.query(PortCall).count() == 0

    def test_delete_arrived_rejected(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        with pytest.raises(BusinessRuleError):
            delete_port_call(db, port_call.port_call_id, supervisor.user_id)


class TestListPortCalls:
    def test_filters_by_status_and_ship_name(self, refs):
        db, ship, country, supervisor = refs
        make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        assert list_port_calls(db, operational_status=PortCallStatusEnum.ARRIVED)["total"] == 1
        assert list_port_calls(db, q=ship.name[:4])["total"] == 2
        assert list_port_calls(db, q="no-such-ship")["total"] == 0

    def test_date_window_overlap(self, refs):
        db, ship, country, supervisor = refs
        make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id, arrival=ARRIVAL)
        assert list_port_calls(db, date_from=ARRIVAL - timedelta(days=1), date_to=ARRIVAL)["total"] == 1
        assert list_port_calls(db, date_to=ARRIVAL - timedelta(days=1))["total"] == 0


class TestUpdatePortCall:
    def test_scheduled_accepts_full_edit(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        other_ship = db.query(Ship).filter(Ship.ship_id != ship.ship_id).first()
        updated = update_port_call(db, port_call.port_call_id, {
            "ship_id": other_ship.ship_id,
            "scheduled_departure_utc": ARRIVAL + timedelta(hours=8),
            "berth": "Muelle 2",
            "source": PortCallSourceEnum.IMPORT,
        }, actor_user_id=supervisor.user_id)
        assert updated.ship_id == other_ship.ship_id
        assert updated.berth == "Muelle 2"
        assert updated.source == PortCallSourceEnum.IMPORT
        assert updated.code == port_call.code

    def test_arrived_ignores_itinerary_fields(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        other_ship = db.query(Ship).filter(Ship.ship_id != ship.ship_id).first()
        updated = update_port_call(
            db, port_call.port_call_id, {"ship_id": other_ship.ship_id, "notes": "Llegó tarde"},
            actor_user_id=supervisor.user_id,
        )
        assert updated.ship_id == ship.ship_id
        assert updated.notes == "Llegó tarde"

    def test_arrived_with_only_itinerary_fields_rejected(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(
            db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=PortCallStatusEnum.ARRIVED
        )
        with pytest.raises(ValidationAppError) as exc:
            update_port_call(db, port_call.port_call_id, {"ship_id": ship.ship_id}, supervisor.user_id)
        assert exc.value.details["operational_status"] == "ARRIVED"

    @pytest.mark.parametrize("status", [PortCallStatusEnum.DEPARTED, PortCallStatusEnum.CANCELED])
    def test_closed_lifecycle_rejected(self, refs, status):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id, status=status)
        with pytest.raises(BusinessRuleError):
            update_port_call(db, port_call.port_call_id, {"notes": "x"}, supervisor.user_id)

    def test_departure_checked_against_stored_arrival(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id, arrival=ARRIVAL)
        with pytest.raises(ValidationAppError):
            update_port_call(
                db, port_call.port_call_id, {"scheduled_departure_utc": ARRIVAL - timedelta(hours=1)},
                supervisor.user_id,
            )

    def test_unknown_country(self, refs):
        db, ship, country, supervisor = refs
        port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
        with pytest.raises(NotFoundError):
            update_port_call(db, port_call.port_call_id, {"origin_country_id": 9999}, supervisor.user_id)
