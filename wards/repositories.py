"""
Record stores used by the consistency gateway.

:class:`Repository` is the contract the gateway relies on: single-record
reads and writes with no cross-record transaction.  Two implementations
ship with the app:

* :class:`OrmRepository` talks to the Django database.  Each write is its
  own transaction.  The partial unique constraints on ``Allocation`` turn
  a write that would create a second ACTIVE allocation for a patient or
  room into a :class:`~wards.errors.ConflictError`.
* :class:`MemoryRepository` keeps snapshots in process memory and
  enforces the same uniqueness rules.  It backs the test-suite and any
  caller embedding the engine without a database.
"""
from __future__ import annotations

import itertools
import threading
from typing import Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef
from django.utils import timezone

from .errors import ConflictError, NotFoundError
from .models import Allocation, Patient, Room


class Repository:
    """Single-record read/write primitives for patients, rooms and allocations."""

    def get_patient(self, patient_id) -> Patient:
        raise NotImplementedError

    def get_room(self, room_id) -> Room:
        raise NotImplementedError

    def get_allocation(self, allocation_id) -> Allocation:
        raise NotImplementedError

    def get_active_allocation_by_patient(self, patient_id) -> Optional[Allocation]:
        raise NotImplementedError

    def get_active_allocation_by_room(self, room_id) -> Optional[Allocation]:
        raise NotImplementedError

    def save_allocation(self, allocation: Allocation) -> Allocation:
        raise NotImplementedError

    def save_room(self, room: Room) -> Room:
        raise NotImplementedError

    def repair_room_status(self, room_id, previous: str, expected: str) -> bool:
        """Set a room to ``expected`` only if it still reads ``previous`` and its
        ACTIVE allocation still calls for it (one for OCCUPIED, none otherwise).

        Returns False when the write did not land.
        """
        raise NotImplementedError

    def save_patient(self, patient: Patient) -> Patient:
        raise NotImplementedError

    def delete_patient(self, patient_id) -> None:
        raise NotImplementedError

    def delete_room(self, room_id) -> None:
        raise NotImplementedError

    def list_rooms(self) -> List[Room]:
        raise NotImplementedError

    def list_active_allocations(self) -> List[Allocation]:
        raise NotImplementedError


class OrmRepository(Repository):

    def get_patient(self, patient_id) -> Patient:
        patient = Patient.objects.filter(pk=patient_id).first()
        if patient is None:
            raise NotFoundError(f'patient {patient_id} not found')
        return patient

    def get_room(self, room_id) -> Room:
        room = Room.objects.filter(pk=room_id).first()
        if room is None:
            raise NotFoundError(f'room {room_id} not found')
        return room

    def get_allocation(self, allocation_id) -> Allocation:
        allocation = Allocation.objects.filter(pk=allocation_id).first()
        if allocation is None:
            raise NotFoundError(f'allocation {allocation_id} not found')
        return allocation

    def get_active_allocation_by_patient(self, patient_id) -> Optional[Allocation]:
        return Allocation.objects.filter(patient_id=patient_id, status=Allocation.STATUS_ACTIVE).first()

    def get_active_allocation_by_room(self, room_id) -> Optional[Allocation]:
        return Allocation.objects.filter(room_id=room_id, status=Allocation.STATUS_ACTIVE).first()

    def save_allocation(self, allocation: Allocation) -> Allocation:
        try:
            with transaction.atomic():
                allocation.save()
        except IntegrityError as exc:
            raise ConflictError('another ACTIVE allocation already holds this patient or room') from exc
        return allocation

    def save_room(self, room: Room) -> Room:
        try:
            with transaction.atomic():
                room.save()
        except IntegrityError as exc:
            raise ConflictError(f'room number {room.room_number} already exists') from exc
        return room

    def repair_room_status(self, room_id, previous: str, expected: str) -> bool:
        # One UPDATE, so a discharge or allocate committed elsewhere since the
        # read makes it match nothing.
        active = Exists(Allocation.objects.filter(room_id=OuterRef('pk'), status=Allocation.STATUS_ACTIVE))
        held = active if expected == Room.STATUS_OCCUPIED else ~active
        updated = Room.objects.filter(held, pk=room_id, status=previous).update(
            status=expected, updated_at=timezone.now()
        )
        return updated == 1

    def save_patient(self, patient: Patient) -> Patient:
        try:
            with transaction.atomic():
                patient.save()
        except IntegrityError as exc:
            raise ConflictError(f'email {patient.email} already registered') from exc
        return patient

    def delete_patient(self, patient_id) -> None:
        Patient.objects.filter(pk=patient_id).delete()

    def delete_room(self, room_id) -> None:
        Room.objects.filter(pk=room_id).delete()

    def list_rooms(self) -> List[Room]:
        return list(Room.objects.order_by('id'))

    def list_active_allocations(self) -> List[Allocation]:
        return list(Allocation.objects.filter(status=Allocation.STATUS_ACTIVE).order_by('id'))


def _snapshot(obj) -> dict:
    return {f.attname: getattr(obj, f.attname) for f in obj._meta.concrete_fields}


class MemoryRepository(Repository):
    """Thread-safe in-process store.

    Records are stored as field snapshots and handed out as fresh model
    instances, so callers can mutate what they read without touching the
    store until they save.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: Dict[type, Dict[int, dict]] = {Patient: {}, Room: {}, Allocation: {}}
        self._ids = {model: itertools.count(1) for model in self._rows}

    # -- internals -----------------------------------------------------------

    def _load(self, model, pk, label: str):
        with self._lock:
            data = self._rows[model].get(pk)
            if data is None:
                raise NotFoundError(f'{label} {pk} not found')
            return model(**data)

    def _find(self, model, **match) -> List:
        with self._lock:
            return [
                model(**data)
                for _, data in sorted(self._rows[model].items())
                if all(data.get(k) == v for k, v in match.items())
            ]

    def _store(self, obj):
        model = type(obj)
        with self._lock:
            if obj.pk is None:
                obj.pk = next(pk for pk in self._ids[model] if pk not in self._rows[model])
            now = timezone.now()
            if getattr(obj, 'created_at', None) is None:
                obj.created_at = now
            obj.updated_at = now
            self._rows[model][obj.pk] = _snapshot(obj)
            return obj

    def _taken(self, model, obj, **match) -> bool:
        return any(other.pk != obj.pk for other in self._find(model, **match))

    # -- Repository ----------------------------------------------------------

    def add(self, obj):
        """Insert a patient, room or allocation without any rule checks."""
        return self._store(obj)

    def get_patient(self, patient_id) -> Patient:
        return self._load(Patient, patient_id, 'patient')

    def get_room(self, room_id) -> Room:
        return self._load(Room, room_id, 'room')

    def get_allocation(self, allocation_id) -> Allocation:
        return self._load(Allocation, allocation_id, 'allocation')

    def get_active_allocation_by_patient(self, patient_id) -> Optional[Allocation]:
        found = self._find(Allocation, patient_id=patient_id, status=Allocation.STATUS_ACTIVE)
        return found[0] if found else None

    def get_active_allocation_by_room(self, room_id) -> Optional[Allocation]:
        found = self._find(Allocation, room_id=room_id, status=Allocation.STATUS_ACTIVE)
        return found[0] if found else None

    def save_allocation(self, allocation: Allocation) -> Allocation:
        with self._lock:
            if allocation.status == Allocation.STATUS_ACTIVE and (
                self._taken(Allocation, allocation, patient_id=allocation.patient_id, status=Allocation.STATUS_ACTIVE)
                or self._taken(Allocation, allocation, room_id=allocation.room_id, status=Allocation.STATUS_ACTIVE)
            ):
                raise ConflictError('another ACTIVE allocation already holds this patient or room')
            return self._store(allocation)

    def save_room(self, room: Room) -> Room:
        with self._lock:
            if self._taken(Room, room, room_number=room.room_number):
                raise ConflictError(f'room number {room.room_number} already exists')
            return self._store(room)

    def repair_room_status(self, room_id, previous: str, expected: str) -> bool:
        with self._lock:
            data = self._rows[Room].get(room_id)
            if data is None or data['status'] != previous:
                return False
            held = bool(self._find(Allocation, room_id=room_id, status=Allocation.STATUS_ACTIVE))
            if held != (expected == Room.STATUS_OCCUPIED):
                return False
            self._store(Room(**dict(data, status=expected)))
            return True

    def save_patient(self, patient: Patient) -> Patient:
        with self._lock:
            if self._taken(Patient, patient, email=patient.email):
                raise ConflictError(f'email {patient.email} already registered')
            return self._store(patient)

    def delete_patient(self, patient_id) -> None:
        with self._lock:
            self._rows[Patient].pop(patient_id, None)
            self._drop_allocations(patient_id=patient_id)

    def delete_room(self, room_id) -> None:
        with self._lock:
            self._rows[Room].pop(room_id, None)
            self._drop_allocations(room_id=room_id)

    def _drop_allocations(self, **match) -> None:
        # Mirrors the ON DELETE CASCADE of the database schema.
        rows = self._rows[Allocation]
        for pk in [pk for pk, data in rows.items() if all(data.get(k) == v for k, v in match.items())]:
            del rows[pk]

    def list_rooms(self) -> List[Room]:
        return self._find(Room)

    def list_active_allocations(self) -> List[Allocation]:
        return self._find(Allocation, status=Allocation.STATUS_ACTIVE)

    def list_allocations(self) -> List[Allocation]:
        return self._find(Allocation)
