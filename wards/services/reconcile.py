"""
Occupancy reconciliation.

A room must be OCCUPIED exactly when an ACTIVE allocation references it.
After a :class:`~wards.errors.PartialFailureError` that may not hold;
these helpers find the rooms that drifted and put their status back in
line with the allocations, which are the source of truth.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..models import Room
from ..repositories import Repository
from .locks import KeyedLock, room_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Drift:
    room_id: int
    room_number: str
    status: str
    expected: str
    allocation_id: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            'roomId': self.room_id,
            'roomNumber': self.room_number,
            'status': self.status,
            'expected': self.expected,
            'allocationId': self.allocation_id,
        }


def _expected_status(room: Room, allocation_id: Optional[int]) -> Optional[str]:
    if allocation_id is not None:
        return Room.STATUS_OCCUPIED if room.status != Room.STATUS_OCCUPIED else None
    # Free rooms keep whatever admin status they have, except OCCUPIED.
    return Room.STATUS_AVAILABLE if room.status == Room.STATUS_OCCUPIED else None


def find_occupancy_drift(repository: Repository) -> List[Drift]:
    active_by_room = {a.room_id: a.pk for a in repository.list_active_allocations()}
    drift = []
    for room in repository.list_rooms():
        allocation_id = active_by_room.get(room.pk)
        expected = _expected_status(room, allocation_id)
        if expected is not None:
            drift.append(Drift(room.pk, room.room_number, room.status, expected, allocation_id))
    return drift


def repair_occupancy_drift(repository: Repository, locks: Optional[KeyedLock] = None) -> List[Drift]:
    """Fix every drifted room; returns what was repaired.

    Each room is re-checked under its lock, which orders the repair against
    gateway actions in this process.  The write itself is conditional (see
    :meth:`~wards.repositories.Repository.repair_room_status`), so an
    allocation action committed by another process after the re-check makes
    the repair a no-op instead of being overwritten.
    """
    locks = locks if locks is not None else KeyedLock()
    repaired = []
    for candidate in find_occupancy_drift(repository):
        with locks.hold(room_key(candidate.room_id)):
            room = repository.get_room(candidate.room_id)
            active = repository.get_active_allocation_by_room(candidate.room_id)
            expected = _expected_status(room, active.pk if active is not None else None)
            if expected is None:
                continue
            previous = room.status
            if not repository.repair_room_status(room.pk, previous, expected):
                logger.info('room %s changed while repairing, left as is', room.room_number)
                continue
            logger.warning('room %s status repaired: %s -> %s', room.room_number, previous, expected)
            repaired.append(Drift(room.pk, room.room_number, previous, expected, active.pk if active else None))
    return repaired
