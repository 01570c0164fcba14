"""Tests for the service-window upsert and its shift-slot reconciliation."""
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import BusinessRuleError, NotFoundError, ValidationAppError
from app.models.base import RoleEnum, ServiceWindowStatusEnum, ShiftStatusEnum
from app.models.country import Country
from app.models.service_window import ServiceWindow
from app.models.ship import Ship
from app.models.shift import Shift
from app.modules.service_windows import (
    ServiceWindowState,
    SlotPlanItem,
    cancel_service_window,
    close_service_window,
    create_service_window,
    get_service_window,
    list_service_windows,
    list_window_shifts,
    slot_summary,
    update_service_window,
    upsert_service_window_with_slots,
    window_summary,
)
from app.modules.shifts import assign_shift, unassign_shift

from factories import make_guide_profile, make_port_call, make_supervisor_profile, make_user

START = datetime(2026, 2, 11, 17, 30, tzinfo=timezone.utc)
END = datetime(2026, 2, 11, 21, 30, tzinfo=timezone.utc)


@pytest.fixture
def port_call_ctx(catalog):
    """A scheduled port call plus a supervisor profile."""
    db = catalog
    supervisor = make_supervisor_profile(db)
    ship = db.query(Ship).order_by(Ship.ship_id).first()
    country = db.query(Country).filter(Country.code == "US").one()
    port_call = make_port_call(db, ship.ship_id, country.country_id, supervisor.supervisor_id)
    return db, port_call, supervisor


def _state(port_call, supervisor, total_slots, plan=(), status=ServiceWindowStatusEnum.OPEN):
    return ServiceWindowState(
        port_call_id=port_call.port_call_id,
        supervisor_id=supervisor.supervisor_id,
        start_utc=START,
        end_utc=END,
        total_slots=total_slots,
        operational_status=status,
        description="Recorrido",
        slot_plan=list(plan),
    )


def _shifts(db, window_id):
    return {
        s.number: s
        for s in db.query(Shift).filter(Shift.window_id == window_id).order_by(Shift.number)
    }


def _stored_columns(db, window_id):
    return [
        (s.number, s.status, s.guide_id, s.check_in_at, s.check_out_at, s.canceled_at,
         s.cancel_reason, s.notes, s.start_utc, s.end_utc)
        for s in _shifts(db, window_id).values()
    ]


class TestUpsertServiceWindowWithSlots:
    def test_creates_window_and_available_slots(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 4))
        shifts = _shifts(db, window.window_id)
        assert sorted(shifts) == [1, 2, 3, 4]
        assert all(s.status == ShiftStatusEnum.AVAILABLE for s in shifts.values())
        assert all(s.guide_id is None for s in shifts.values())

    def test_rerun_reuses_window(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        first = upsert_service_window_with_slots(db, _state(port_call, supervisor, 2))
        second = upsert_service_window_with_slots(db, _state(port_call, supervisor, 2))
        assert first.window_id == second.window_id
        assert db.query(ServiceWindow).count() == 1
        assert db.query(Shift).count() == 2

    def test_plan_applies_and_is_idempotent(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        check_in = datetime(2026, 2, 11, 17, 40, tzinfo=timezone.utc)
        plan = [
            SlotPlanItem(1, ShiftStatusEnum.IN_PROGRESS, guide.guide_id, check_in_at=check_in),
            SlotPlanItem(2, ShiftStatusEnum.AVAILABLE),
        ]
        stored = []
        for _ in range(2):
            window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))
            db.expire_all()
            stored.append(_stored_columns(db, window.window_id))
        assert stored[0] == stored[1]

        shifts = _shifts(db, window.window_id)
        assert shifts[1].status == ShiftStatusEnum.IN_PROGRESS
        assert shifts[1].guide_id == guide.guide_id
        assert shifts[1].check_in_at.replace(tzinfo=None) == check_in.replace(tzinfo=None)
        assert shifts[2].status == ShiftStatusEnum.AVAILABLE
        assert db.query(Shift).count() == 3

    def test_plan_reapplies_after_guide_moved(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [
            SlotPlanItem(1, ShiftStatusEnum.ASSIGNED, guide.guide_id),
            SlotPlanItem(2, ShiftStatusEnum.AVAILABLE),
        ]
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))
        shifts = _shifts(db, window.window_id)
        unassign_shift(db, shifts[1].shift_id, supervisor.user_id)
        assign_shift(db, shifts[2].shift_id, guide.guide_id, supervisor.user_id)

        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))

        db.expire_all()
        shifts = _shifts(db, window.window_id)
        assert shifts[1].status == ShiftStatusEnum.ASSIGNED
        assert shifts[1].guide_id == guide.guide_id
        assert shifts[2].status == ShiftStatusEnum.AVAILABLE
        assert shifts[2].guide_id is None

    def test_plan_takes_guide_from_unplanned_slot(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [SlotPlanItem(1, ShiftStatusEnum.ASSIGNED, guide.guide_id)]
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))
        shifts = _shifts(db, window.window_id)
        unassign_shift(db, shifts[1].shift_id, supervisor.user_id)
        assign_shift(db, shifts[3].shift_id, guide.guide_id, supervisor.user_id)

        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))

        db.expire_all()
        shifts = _shifts(db, window.window_id)
        assert shifts[1].guide_id == guide.guide_id
        assert shifts[3].status == ShiftStatusEnum.AVAILABLE
        assert shifts[3].guide_id is None

    def test_plan_entry_outside_range_is_skipped(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [SlotPlanItem(7, ShiftStatusEnum.ASSIGNED, guide.guide_id)]
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3, plan))
        shifts = _shifts(db, window.window_id)
        assert sorted(shifts) == [1, 2, 3]
        assert all(s.guide_id is None for s in shifts.values())

    def test_shrink_keeps_assigned_slot(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [SlotPlanItem(5, ShiftStatusEnum.ASSIGNED, guide.guide_id)]
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 6, plan))

        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 3))

        shifts = _shifts(db, window.window_id)
        assert sorted(shifts) == [1, 2, 3, 5]
        assert shifts[5].status == ShiftStatusEnum.ASSIGNED
        assert shifts[5].guide_id == guide.guide_id
        assert window.total_slots == 3

    def test_existing_slot_status_survives_ensure(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [SlotPlanItem(2, ShiftStatusEnum.ASSIGNED, guide.guide_id)]
        upsert_service_window_with_slots(db, _state(port_call, supervisor, 2, plan))
        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 4))
        shifts = _shifts(db, window.window_id)
        assert sorted(shifts) == [1, 2, 3, 4]
        assert shifts[2].status == ShiftStatusEnum.ASSIGNED

    def test_window_fields_fully_rewritten(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        canceled = _state(port_call, supervisor, 1, status=ServiceWindowStatusEnum.CANCELED)
        canceled.canceled_at = END
        canceled.cancel_reason = "Lluvia"
        upsert_service_window_with_slots(db, canceled)

        window = upsert_service_window_with_slots(db, _state(port_call, supervisor, 1))
        assert window.operational_status == ServiceWindowStatusEnum.OPEN
        assert window.canceled_at is None
        assert window.cancel_reason is None

    def test_duplicate_guide_in_plan_rolls_back(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        guide = make_guide_profile(db)
        plan = [
            SlotPlanItem(1, ShiftStatusEnum.ASSIGNED, guide.guide_id),
            SlotPlanItem(2, ShiftStatusEnum.ASSIGNED, guide.guide_id),
        ]
        with pytest.raises(IntegrityError):
            upsert_service_window_with_slots(db, _state(port_call, supervisor, 2, plan))
        assert db.query(ServiceWindow).count() == 0
        assert db.query(Shift).count() == 0


class TestServiceWindowCrud:
    def test_create_materializes_slots(self, port_call_ctx):
        db, port_call, _ = port_call_ctx
        admin = make_user(db, RoleEnum.SUPER_ADMIN)
        window = create_service_window(
            db,
            {"port_call_id": port_call.port_call_id, "start_utc": START, "end_utc": END, "total_slots": 3},
            actor_user_id=admin.user_id,
        )
        detail = get_service_window(db, window.window_id)
        assert [s.number for s in detail.shifts] == [1, 2, 3]
        assert slot_summary(detail)["AVAILABLE"] == 3
        assert slot_summary(detail)["ASSIGNED"] == 0

    def test_create_rejects_inverted_range(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        with pytest.raises(ValidationAppError):
            create_service_window(
                db,
                {"port_call_id": port_call.port_call_id, "start_utc": END, "end_utc": START, "total_slots": 1},
                actor_user_id=supervisor.user_id,
            )

    def test_create_unknown_port_call(self, port_call_ctx):
        db, _, supervisor = port_call_ctx
        with pytest.raises(NotFoundError):
            create_service_window(
                db,
                {"port_call_id": 9999, "start_utc": START, "end_utc": END, "total_slots": 1},
                actor_user_id=supervisor.user_id,
            )

    def test_list_filters_by_overlap(self, port_call_ctx):
        db, port_call, supervisor = port_call_ctx
        upsert_service_window_with_slots(db, _state(port_call, supervisor, 1))
        inside = list_service_windows(db, date_from=datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc))
        after = list_service_windows(db, date_from=datetime(2026, 2, 12, 0, 0, tzinfo=timezone.utc))
        assert inside["total"] == 1
        assert after["total"] == 0


class TestServiceWindowLifecycle:
    def _window(self, port_call_ctx, total_slots=3):
        db, port_call, supervisor = port_call_ctx
        admin = make_user(db, RoleEnum.SUPER_ADMIN)
        window = create_service_window(
            db,
            {"port_call_id": port_call.port_call_id, "start_utc": START, "end_utc": END,
             "total_slots": total_slots},
            actor_user_id=admin.user_id,
        )
        return db, window, admin

    def test_update_grows_slots_and_moves_times(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        later_end = datetime(2026, 2, 11, 22, 30, tzinfo=timezone.utc)
        updated = update_service_window(
            db, window.window_id, {"total_slots": 5, "end_utc": later_end, "description": "Tarde"},
            actor_user_id=admin.user_id,
        )
        assert [s.number for s in updated.shifts] == [1, 2, 3, 4, 5]
        assert updated.description == "Tarde"
        assert all(s.end_utc.replace(tzinfo=None) == later_end.replace(tzinfo=None) for s in updated.shifts)

    def test_update_shrink_keeps_assigned_slot(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        guide = make_guide_profile(db)
        shift_3 = _shifts(db, window.window_id)[3]
        assign_shift(db, shift_3.shift_id, guide.guide_id, admin.user_id)

        updated = update_service_window(db, window.window_id, {"total_slots": 1}, actor_user_id=admin.user_id)

        assert updated.total_slots == 1
        assert [s.number for s in updated.shifts] == [1, 3]

    def test_update_rejects_inverted_range(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        with pytest.raises(ValidationAppError):
            update_service_window(db, window.window_id, {"end_utc": START.replace(hour=10)}, admin.user_id)

    def test_cancel_cancels_pending_shifts(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        guide = make_guide_profile(db)
        shift_1 = _shifts(db, window.window_id)[1]
        assign_shift(db, shift_1.shift_id, guide.guide_id, admin.user_id)

        canceled = cancel_service_window(db, window.window_id, admin.user_id, reason="Lluvia")

        assert canceled.operational_status == ServiceWindowStatusEnum.CANCELED
        assert canceled.cancel_reason == "Lluvia"
        assert canceled.canceled_by_id == admin.user_id
        assert slot_summary(canceled)["CANCELED"] == 3
        assert canceled.shifts[0].guide_id == guide.guide_id
        assert canceled.shifts[0].cancel_reason == "Lluvia"

    def test_cancel_blocked_by_shift_in_progress(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        shift_1 = _shifts(db, window.window_id)[1]
        shift_1.status = ShiftStatusEnum.IN_PROGRESS
        db.commit()
        with pytest.raises(BusinessRuleError) as exc:
            cancel_service_window(db, window.window_id, admin.user_id)
        assert exc.value.details == {"in_progress": 1}

    def test_close_then_no_more_changes(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx)
        closed = close_service_window(db, window.window_id, admin.user_id)
        assert closed.operational_status == ServiceWindowStatusEnum.CLOSED
        with pytest.raises(BusinessRuleError):
            close_service_window(db, window.window_id, admin.user_id)
        with pytest.raises(BusinessRuleError):
            cancel_service_window(db, window.window_id, admin.user_id)
        with pytest.raises(BusinessRuleError):
            update_service_window(db, window.window_id, {"description": "x"}, admin.user_id)

    def test_shifts_and_summary(self, port_call_ctx):
        db, window, admin = self._window(port_call_ctx, total_slots=2)
        assert [s.number for s in list_window_shifts(db, window.window_id)] == [1, 2]
        summary = window_summary(db, window.window_id)
        assert summary["total_slots"] == 2
        assert summary["slot_summary"]["AVAILABLE"] == 2
        with pytest.raises(NotFoundError):
            window_summary(db, 9999)
