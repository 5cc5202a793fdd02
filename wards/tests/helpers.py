from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from wards.models import Patient, Room

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=dt_timezone.utc)


def make_patient(repo, email='ana@example.com', name='Ana Lima', status=Patient.STATUS_ACTIVE):
    return repo.add(Patient(name=name, email=email, status=status))


def make_room(repo, number='101', price='100.00', status=Room.STATUS_AVAILABLE):
    return repo.add(Room(room_number=number, room_type='SINGLE', floor=1, capacity=1,
                         price_per_day=Decimal(price), status=status))


class Clock:
    """Settable clock for the gateway."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now
