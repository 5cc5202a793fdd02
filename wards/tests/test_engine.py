from datetime import timedelta
from decimal import Decimal

import pytest

from wards.errors import ConflictError, InvalidStateError, ValidationError
from wards.models import Allocation, Patient, Room
from wards.services import engine

from .helpers import T0


def patient(pk=1, status=Patient.STATUS_ACTIVE):
    return Patient(pk=pk, name='Ana Lima', email=f'p{pk}@example.com', status=status)


def room(pk=1, status=Room.STATUS_AVAILABLE, price='100.00'):
    return Room(pk=pk, room_number=str(100 + pk), status=status, price_per_day=Decimal(price))


def active(pk=10, patient_id=1, room_id=1, when=T0):
    return Allocation(pk=pk, patient_id=patient_id, room_id=room_id, allocation_date=when,
                      status=Allocation.STATUS_ACTIVE)


class TestAllocate:
    def test_occupies_room(self):
        r = room()
        decision = engine.decide_allocate(patient(), r, None, None, allocation_date=None, now=T0)
        assert decision.allocation.status == Allocation.STATUS_ACTIVE
        assert decision.allocation.allocation_date == T0
        assert decision.allocation.total_amount is None
        assert decision.rooms == [r]
        assert r.status == Room.STATUS_OCCUPIED

    def test_patient_conflict_checked_before_room(self):
        with pytest.raises(ConflictError, match='patient already allocated'):
            engine.decide_allocate(
                patient(), room(status=Room.STATUS_MAINTENANCE), active(), None,
                allocation_date=None, now=T0,
            )

    def test_inactive_patient(self):
        with pytest.raises(ConflictError, match='patient not active'):
            engine.decide_allocate(patient(status=Patient.STATUS_DECEASED), room(), None, None,
                                   allocation_date=None, now=T0)

    @pytest.mark.parametrize('status', [Room.STATUS_OCCUPIED, Room.STATUS_MAINTENANCE, Room.STATUS_RESERVED])
    def test_room_not_available(self, status):
        r = room(status=status)
        with pytest.raises(ConflictError, match='room not available'):
            engine.decide_allocate(patient(), r, None, None, allocation_date=None, now=T0)
        assert r.status == status

    def test_room_with_active_allocation(self):
        with pytest.raises(ConflictError):
            engine.decide_allocate(patient(2), room(), None, active(), allocation_date=None, now=T0)


class TestDischarge:
    def test_bills_and_frees_room(self):
        a, r = active(), room(status=Room.STATUS_OCCUPIED, price='150.00')
        decision = engine.decide_discharge(a, r, discharge_date=T0 + timedelta(days=3), now=T0)
        assert a.status == Allocation.STATUS_COMPLETED
        assert a.total_amount == Decimal('450.00')
        assert a.discharge_date == T0 + timedelta(days=3)
        assert r.status == Room.STATUS_AVAILABLE
        assert decision.rooms == [r]

    def test_defaults_to_now(self):
        a = active()
        engine.decide_discharge(a, room(status=Room.STATUS_OCCUPIED), discharge_date=None, now=T0 + timedelta(hours=5))
        assert a.discharge_date == T0 + timedelta(hours=5)
        assert a.total_amount == Decimal('100.00')

    def test_terminal_allocation_rejected(self):
        a = active()
        a.status = Allocation.STATUS_COMPLETED
        with pytest.raises(InvalidStateError):
            engine.decide_discharge(a, room(), discharge_date=None, now=T0)

    def test_date_before_allocation(self):
        with pytest.raises(ValidationError):
            engine.decide_discharge(active(), room(), discharge_date=T0 - timedelta(days=1), now=T0)


def test_cancel_clears_amount():
    a, r = active(), room(status=Room.STATUS_OCCUPIED)
    engine.decide_cancel(a, r)
    assert a.status == Allocation.STATUS_CANCELLED
    assert a.total_amount is None and a.discharge_date is None
    assert r.status == Room.STATUS_AVAILABLE
    with pytest.raises(InvalidStateError):
        engine.decide_cancel(a, r)


class TestTransfer:
    def test_moves_allocation(self):
        a, src, dst = active(), room(1, Room.STATUS_OCCUPIED), room(2)
        decision = engine.decide_transfer(a, src, dst, None)
        assert a.room_id == 2
        assert a.allocation_date == T0
        assert decision.rooms == [dst, src]
        assert (dst.status, src.status) == (Room.STATUS_OCCUPIED, Room.STATUS_AVAILABLE)

    def test_same_room(self):
        src = room(1, Room.STATUS_OCCUPIED)
        with pytest.raises(ValidationError):
            engine.decide_transfer(active(), src, src, active())

    def test_target_taken(self):
        with pytest.raises(ConflictError, match='target room not available'):
            engine.decide_transfer(active(), room(1, Room.STATUS_OCCUPIED), room(2), active(11, 2, 2))


class TestAdminChecks:
    def test_room_status_locked_while_occupied(self):
        with pytest.raises(ConflictError):
            engine.check_room_change(room(status=Room.STATUS_OCCUPIED), Room.STATUS_MAINTENANCE, None, active())

    def test_occupied_cannot_be_set_by_hand(self):
        with pytest.raises(ValidationError):
            engine.check_room_change(room(), Room.STATUS_OCCUPIED, None, None)

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            engine.check_room_change(room(), None, Decimal('-5'), None)

    def test_free_room_can_go_to_maintenance(self):
        engine.check_room_change(room(), Room.STATUS_MAINTENANCE, Decimal('80'), None)

    def test_patient_with_stay_cannot_be_discharged_by_edit(self):
        with pytest.raises(ConflictError):
            engine.check_patient_status_change(patient(), Patient.STATUS_DISCHARGED, active())
        engine.check_patient_status_change(patient(), Patient.STATUS_DISCHARGED, None)

    def test_deletable(self):
        engine.check_deletable('room', None)
        with pytest.raises(ConflictError):
            engine.check_deletable('room', active())


class TestBuildBill:
    def test_active_is_estimated(self):
        bill = engine.build_bill(active(), room(price='80.00'), now=T0 + timedelta(days=1, hours=2))
        assert bill.estimated is True
        assert bill.days == 2
        assert bill.total_amount == Decimal('160.00')

    def test_completed_uses_stored_amount(self):
        a = active()
        a.status = Allocation.STATUS_COMPLETED
        a.discharge_date = T0 + timedelta(days=2)
        a.total_amount = Decimal('300.00')
        # Room rate changed after discharge; the bill does not.
        bill = engine.build_bill(a, room(price='999.00'), now=T0 + timedelta(days=30))
        assert bill.estimated is False
        assert bill.total_amount == Decimal('300.00')
        assert bill.price_per_day == Decimal('150.00')

    def test_cancelled_has_no_bill(self):
        a = active()
        a.status = Allocation.STATUS_CANCELLED
        with pytest.raises(InvalidStateError):
            engine.build_bill(a, room(), now=T0)
