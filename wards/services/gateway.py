"""
Consistency gateway: applies allocation engine decisions to a repository.

Every mutating operation follows the same sequence while holding the
keyed locks of every record involved:

1. read the patient / room / allocation records fresh;
2. let :mod:`wards.services.engine` decide against that snapshot;
3. write the allocation first, then the room(s).

The repository offers no cross-record transaction.  If a room write fails
after the allocation was written the gateway raises
:class:`~wards.errors.PartialFailureError` naming what was committed and
does not roll anything back; the reconciliation job
(``manage.py reconcile_occupancy``) or an operator repairs it.  A failed
allocation write leaves nothing behind and its error propagates unchanged.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional

from django.conf import settings
from django.utils import timezone

from ..errors import AllocationError, ConflictError, PartialFailureError
from ..models import Allocation, Patient, Room
from ..repositories import OrmRepository, Repository
from . import engine
from .billing import Bill
from .locks import KeyedLock, allocation_key, patient_key, room_key

logger = logging.getLogger(__name__)


class AllocationGateway:
    # How often to re-key when the allocation moved rooms between the
    # unlocked read and the locked one.
    MAX_RELOCK = 3

    def __init__(self, repository: Repository, locks: Optional[KeyedLock] = None, clock=timezone.now) -> None:
        self.repository = repository
        self.locks = locks if locks is not None else KeyedLock()
        self.clock = clock

    # -- allocation actions --------------------------------------------------

    def allocate(
        self,
        patient_id,
        room_id,
        allocation_date: Optional[datetime] = None,
        notes: str = '',
    ) -> Allocation:
        repo = self.repository
        with self._rejections(engine.ACTION_ALLOCATE, patient=patient_id, room=room_id):
            with self.locks.hold(patient_key(patient_id), room_key(room_id)):
                patient = repo.get_patient(patient_id)
                room = repo.get_room(room_id)
                decision = engine.decide_allocate(
                    patient,
                    room,
                    repo.get_active_allocation_by_patient(patient_id),
                    repo.get_active_allocation_by_room(room_id),
                    allocation_date=allocation_date,
                    notes=notes,
                    now=self.clock(),
                )
                return self._commit(decision)

    def discharge(self, allocation_id, discharge_date: Optional[datetime] = None) -> Allocation:
        with self._rejections(engine.ACTION_DISCHARGE, allocation=allocation_id):
            with self._locked_allocation(allocation_id) as allocation:
                room = self.repository.get_room(allocation.room_id)
                decision = engine.decide_discharge(
                    allocation, room, discharge_date=discharge_date, now=self.clock()
                )
                return self._commit(decision)

    def cancel(self, allocation_id) -> Allocation:
        with self._rejections(engine.ACTION_CANCEL, allocation=allocation_id):
            with self._locked_allocation(allocation_id) as allocation:
                room = self.repository.get_room(allocation.room_id)
                return self._commit(engine.decide_cancel(allocation, room))

    def transfer(self, allocation_id, new_room_id) -> Allocation:
        repo = self.repository
        with self._rejections(engine.ACTION_TRANSFER, allocation=allocation_id, room=new_room_id):
            with self._locked_allocation(allocation_id, room_key(new_room_id)) as allocation:
                current = repo.get_room(allocation.room_id)
                target = current if str(new_room_id) == str(allocation.room_id) else repo.get_room(new_room_id)
                decision = engine.decide_transfer(
                    allocation, current, target, repo.get_active_allocation_by_room(target.pk)
                )
                return self._commit(decision)

    # -- billing (read only) -------------------------------------------------

    def bill(self, allocation_id) -> Bill:
        repo = self.repository
        allocation = repo.get_allocation(allocation_id)
        room = repo.get_room(allocation.room_id)
        patient = repo.get_patient(allocation.patient_id)
        return engine.build_bill(allocation, room, now=self.clock(), patient_name=patient.name)

    def estimate_current_bill(self, allocation_id) -> Decimal:
        return self.bill(allocation_id).total_amount

    # -- admin edits guarded by the occupancy rules --------------------------

    def update_patient(self, patient_id, changes: dict) -> Patient:
        repo = self.repository
        with self.locks.hold(patient_key(patient_id)):
            patient = repo.get_patient(patient_id)
            if 'status' in changes:
                engine.check_patient_status_change(
                    patient, changes['status'], repo.get_active_allocation_by_patient(patient_id)
                )
            for name, value in changes.items():
                setattr(patient, name, value)
            return repo.save_patient(patient)

    def delete_patient(self, patient_id) -> None:
        repo = self.repository
        with self.locks.hold(patient_key(patient_id)):
            repo.get_patient(patient_id)
            engine.check_deletable('patient', repo.get_active_allocation_by_patient(patient_id))
            repo.delete_patient(patient_id)
        logger.info('patient %s deleted', patient_id)

    def update_room(self, room_id, changes: dict) -> Room:
        repo = self.repository
        with self.locks.hold(room_key(room_id)):
            room = repo.get_room(room_id)
            engine.check_room_change(
                room,
                changes.get('status'),
                changes.get('price_per_day'),
                repo.get_active_allocation_by_room(room_id),
            )
            for name, value in changes.items():
                setattr(room, name, value)
            return repo.save_room(room)

    def delete_room(self, room_id) -> None:
        repo = self.repository
        with self.locks.hold(room_key(room_id)):
            repo.get_room(room_id)
            engine.check_deletable('room', repo.get_active_allocation_by_room(room_id))
            repo.delete_room(room_id)
        logger.info('room %s deleted', room_id)

    # -- internals -----------------------------------------------------------

    @contextmanager
    def _locked_allocation(self, allocation_id, *extra_keys: str) -> Iterator[Allocation]:
        """Lock an allocation together with its patient and current room.

        The room is only known after reading the allocation, so the record
        is read again under the locks; if a concurrent transfer moved it in
        between, the keys are recomputed.
        """
        repo = self.repository
        for _ in range(self.MAX_RELOCK):
            seen = repo.get_allocation(allocation_id)
            keys = (allocation_key(allocation_id), patient_key(seen.patient_id), room_key(seen.room_id))
            with self.locks.hold(*keys, *extra_keys):
                fresh = repo.get_allocation(allocation_id)
                if fresh.room_id == seen.room_id:
                    yield fresh
                    return
        raise ConflictError(f'allocation {allocation_id} keeps changing rooms, try again')

    @contextmanager
    def _rejections(self, action: str, **ids) -> Iterator[None]:
        try:
            yield
        except PartialFailureError:
            raise
        except AllocationError as exc:
            logger.info('%s rejected (%s): %s %s', action, exc.code, exc.message, ids)
            raise

    def _commit(self, decision: engine.Decision) -> Allocation:
        repo = self.repository
        allocation = decision.allocation
        pending: List[str] = [
            allocation_key(allocation.pk if allocation.pk is not None else 'new'),
            *(room_key(room.pk) for room in decision.rooms),
        ]
        committed: List[str] = []

        try:
            saved = repo.save_allocation(allocation)
        except ConflictError:
            # Conditional write lost to a concurrent writer; nothing committed.
            raise
        except Exception as exc:
            # First write failed: nothing committed, so not a partial failure.
            logger.error('%s failed before any write: %s (%s)', decision.action, pending[0], exc)
            raise
        committed.append(allocation_key(saved.pk))
        pending.pop(0)

        for room in decision.rooms:
            try:
                repo.save_room(room)
            except Exception as exc:
                self._partial(decision, committed, pending, exc)
            committed.append(pending.pop(0))

        logger.info('%s committed: %s', decision.action, ', '.join(committed))
        return saved

    def _partial(self, decision: engine.Decision, committed: List[str], pending: List[str], exc: Exception) -> None:
        failed, rest = pending[0], pending[1:]
        logger.error(
            '%s stopped part way: committed=%s failed=%s pending=%s (%s)',
            decision.action, committed, failed, rest, exc,
        )
        raise PartialFailureError(
            f'{decision.action} wrote {len(committed)} of {len(committed) + len(pending)} records; '
            f'{failed} failed: {exc}',
            committed=committed,
            failed=failed,
            pending=rest,
        ) from exc


_default_gateway: Optional[AllocationGateway] = None
_default_guard = threading.Lock()


def get_gateway() -> AllocationGateway:
    """Process-wide gateway over the Django database.

    One instance per process so every request thread shares the same
    keyed locks.
    """
    global _default_gateway
    with _default_guard:
        if _default_gateway is None:
            timeout = getattr(settings, 'WARDS_LOCK_TIMEOUT', None)
            _default_gateway = AllocationGateway(OrmRepository(), KeyedLock(timeout=timeout))
        return _default_gateway
