"""
Ward dashboard endpoint.

Summarises patients, rooms and allocations by status.  The payload is
cached for a short while and dropped whenever a write view changes any
of the counted records.
"""
from __future__ import annotations

from django.core.cache import cache
from django.db.models import Count
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Allocation, Patient, Room

DASHBOARD_CACHE_KEY = 'wards:dashboard'
DASHBOARD_TTL = 60


def invalidate_dashboard() -> None:
    cache.delete(DASHBOARD_CACHE_KEY)


def _by_status(model, choices) -> dict:
    counts = {value: 0 for value, _ in choices}
    for row in model.objects.values('status').annotate(n=Count('id')):
        counts[row['status']] = row['n']
    return counts


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ward_dashboard(request):
    cached = cache.get(DASHBOARD_CACHE_KEY)
    if cached:
        return Response(cached)
    rooms = _by_status(Room, Room.STATUS_CHOICES)
    total_rooms = sum(rooms.values())
    payload = {
        'ok': True,
        'data': {
            'patients': _by_status(Patient, Patient.STATUS_CHOICES),
            'rooms': rooms,
            'allocations': _by_status(Allocation, Allocation.STATUS_CHOICES),
            # 入住率
            'occupancyRate': round(rooms[Room.STATUS_OCCUPIED] / total_rooms, 4) if total_rooms else 0.0,
        },
    }
    cache.set(DASHBOARD_CACHE_KEY, payload, DASHBOARD_TTL)
    return Response(payload)
