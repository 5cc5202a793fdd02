"""
Room charge calculation.

Bills are a flat per-day rate times the number of billable days between
allocation and discharge.  Partial days are rounded up and a stay always
bills at least one day, so a same-day discharge is charged one day.
Rounding to cents happens once, on the final product.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..errors import ValidationError

CENTS = Decimal('0.01')
ONE_DAY = timedelta(days=1)


def billable_days(allocation_date: datetime, discharge_date: datetime) -> int:
    elapsed = abs(discharge_date - allocation_date)
    days = math.ceil(elapsed / ONE_DAY)
    return days or 1


def amount(allocation_date: datetime, discharge_date: datetime, price_per_day) -> Decimal:
    """Return the charge for a stay, rounded half-up to two places."""
    rate = Decimal(str(price_per_day))
    if rate < 0:
        raise ValidationError('price per day must not be negative')
    days = billable_days(allocation_date, discharge_date)
    return (rate * days).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Bill:
    allocation_id: int
    patient_id: int
    room_id: int
    room_number: str
    allocation_date: datetime
    discharge_date: datetime
    days: int
    price_per_day: Decimal
    total_amount: Decimal
    generated_at: datetime
    # True when discharge_date is a stand-in for "now" on an ACTIVE stay
    estimated: bool = False
    patient_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            'allocationId': self.allocation_id,
            'patientId': self.patient_id,
            'patientName': self.patient_name,
            'roomId': self.room_id,
            'roomNumber': self.room_number,
            'allocationDate': self.allocation_date.isoformat(),
            'dischargeDate': self.discharge_date.isoformat(),
            'days': self.days,
            'roomPricePerDay': str(self.price_per_day),
            'totalAmount': str(self.total_amount),
            'generatedAt': self.generated_at.isoformat(),
            'estimated': self.estimated,
        }
