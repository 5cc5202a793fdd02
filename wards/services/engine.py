"""
Allocation state machine.

Pure decision logic: every ``decide_*`` function receives records freshly
read by the gateway, checks the preconditions of one action and, when the
action is legal, mutates those in-memory records and returns them as a
:class:`Decision` listing what must be written.  Nothing here touches the
database, so a rejected action has no side effects.

States: ACTIVE (initial) -> COMPLETED | CANCELLED (terminal).  Transfer
keeps the allocation ACTIVE and only swaps the room backing it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from ..errors import ConflictError, InvalidStateError, ValidationError
from ..models import Allocation, Patient, Room
from . import billing

ACTION_ALLOCATE = 'allocate'
ACTION_DISCHARGE = 'discharge'
ACTION_CANCEL = 'cancel'
ACTION_TRANSFER = 'transfer'

ROOM_STATUSES = {choice for choice, _ in Room.STATUS_CHOICES}
PATIENT_STATUSES = {choice for choice, _ in Patient.STATUS_CHOICES}


@dataclass
class Decision:
    """Mutations implied by a legal action.

    The allocation is written first, then ``rooms`` in list order.
    """
    action: str
    allocation: Allocation
    rooms: List[Room] = field(default_factory=list)


def _ensure_active(allocation: Allocation) -> None:
    if not allocation.is_active:
        raise InvalidStateError(f'allocation {allocation.pk} is {allocation.status}, not ACTIVE')


def decide_allocate(
    patient: Patient,
    room: Room,
    patient_active: Optional[Allocation],
    room_active: Optional[Allocation],
    *,
    allocation_date: Optional[datetime],
    notes: str = '',
    now: datetime,
) -> Decision:
    # Checked by patient id: a second request is rejected even for another room.
    if patient_active is not None:
        raise ConflictError('patient already allocated')
    if patient.status != Patient.STATUS_ACTIVE:
        raise ConflictError('patient not active')
    if room_active is not None or room.status != Room.STATUS_AVAILABLE:
        raise ConflictError('room not available')

    allocation = Allocation(
        patient_id=patient.pk,
        room_id=room.pk,
        allocation_date=allocation_date or now,
        status=Allocation.STATUS_ACTIVE,
        notes=notes or '',
    )
    room.status = Room.STATUS_OCCUPIED
    return Decision(ACTION_ALLOCATE, allocation, [room])


def decide_discharge(
    allocation: Allocation,
    room: Room,
    *,
    discharge_date: Optional[datetime],
    now: datetime,
) -> Decision:
    _ensure_active(allocation)
    discharge_date = discharge_date or now
    if discharge_date < allocation.allocation_date:
        raise ValidationError('discharge date is before allocation date')

    # Billed at the current room's rate, over the whole stay.
    allocation.total_amount = billing.amount(allocation.allocation_date, discharge_date, room.price_per_day)
    allocation.discharge_date = discharge_date
    allocation.status = Allocation.STATUS_COMPLETED
    room.status = Room.STATUS_AVAILABLE
    return Decision(ACTION_DISCHARGE, allocation, [room])


def decide_cancel(allocation: Allocation, room: Room) -> Decision:
    _ensure_active(allocation)
    allocation.status = Allocation.STATUS_CANCELLED
    allocation.total_amount = None
    allocation.discharge_date = None
    room.status = Room.STATUS_AVAILABLE
    return Decision(ACTION_CANCEL, allocation, [room])


def decide_transfer(
    allocation: Allocation,
    current_room: Room,
    target_room: Room,
    target_active: Optional[Allocation],
) -> Decision:
    _ensure_active(allocation)
    if target_room.pk == allocation.room_id:
        raise ValidationError('target room is the current room')
    if target_active is not None or target_room.status != Room.STATUS_AVAILABLE:
        raise ConflictError('target room not available')

    # allocation_date is untouched: the bill still covers the whole stay.
    allocation.room_id = target_room.pk
    target_room.status = Room.STATUS_OCCUPIED
    current_room.status = Room.STATUS_AVAILABLE
    # Occupy the target before freeing the source.
    return Decision(ACTION_TRANSFER, allocation, [target_room, current_room])


def check_patient_status_change(patient: Patient, new_status: str, active: Optional[Allocation]) -> None:
    if new_status not in PATIENT_STATUSES:
        raise ValidationError(f'unknown patient status {new_status!r}')
    if new_status == patient.status or new_status == Patient.STATUS_ACTIVE:
        return
    if active is not None:
        raise ConflictError(
            f'cannot mark patient {new_status}: discharge or cancel allocation {active.pk} first'
        )


def check_room_change(room: Room, new_status: Optional[str], new_price, active: Optional[Allocation]) -> None:
    if new_price is not None and Decimal(str(new_price)) < 0:
        raise ValidationError('price per day must not be negative')
    if new_status is None or new_status == room.status:
        return
    if new_status not in ROOM_STATUSES:
        raise ValidationError(f'unknown room status {new_status!r}')
    if active is not None:
        raise ConflictError('Cannot change status of an occupied room. Please discharge the patient first.')
    if new_status == Room.STATUS_OCCUPIED:
        raise ValidationError('OCCUPIED is set by allocating a patient, not by editing the room')


def check_deletable(kind: str, active: Optional[Allocation]) -> None:
    if active is not None:
        raise ConflictError(f'{kind} has active allocation {active.pk}')


def build_bill(allocation: Allocation, room: Room, *, now: datetime, patient_name: Optional[str] = None) -> billing.Bill:
    """Bill for a completed stay, or an estimate for an ACTIVE one.

    Estimates use ``now`` as the discharge date and never mutate the
    allocation.
    """
    if allocation.status == Allocation.STATUS_CANCELLED:
        raise InvalidStateError(f'allocation {allocation.pk} was cancelled and has no bill')

    if allocation.status == Allocation.STATUS_COMPLETED:
        discharge_date = allocation.discharge_date
        days = billing.billable_days(allocation.allocation_date, discharge_date)
        total = Decimal(allocation.total_amount)
        rate = (total / days).quantize(billing.CENTS, rounding=ROUND_HALF_UP)
        estimated = False
    else:
        discharge_date = now
        days = billing.billable_days(allocation.allocation_date, discharge_date)
        rate = Decimal(str(room.price_per_day))
        total = billing.amount(allocation.allocation_date, discharge_date, rate)
        estimated = True

    return billing.Bill(
        allocation_id=allocation.pk,
        patient_id=allocation.patient_id,
        patient_name=patient_name,
        room_id=allocation.room_id,
        room_number=room.room_number,
        allocation_date=allocation.allocation_date,
        discharge_date=discharge_date,
        days=days,
        price_per_day=rate,
        total_amount=total,
        generated_at=now,
        estimated=estimated,
    )
