"""
URL mappings for the ward API.

Trailing slashes are deliberately omitted.  Literal segments such as
``available`` and ``active`` are registered before the ``<int:pk>``
routes that would otherwise shadow them.
"""
from django.urls import path, include

from .views import allocations, health, patients, rooms
from .views.dashboard import ward_dashboard

urlpatterns = [
    # django_prometheus.urls serves /metrics itself
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    path('api/dashboard', ward_dashboard),

    path('api/patients', patients.patients),
    path('api/patients/<int:pk>', patients.patient_detail),

    path('api/rooms', rooms.rooms),
    path('api/rooms/available', rooms.available_rooms),
    path('api/rooms/available/count', rooms.available_room_count),
    path('api/rooms/<int:pk>', rooms.room_detail),

    path('api/allocations', allocations.allocations),
    path('api/allocations/active', allocations.active_allocations),
    path('api/allocations/patient/<int:patient_id>', allocations.patient_current),
    path('api/allocations/patient/<int:patient_id>/history', allocations.patient_history),
    path('api/allocations/room/<int:room_id>', allocations.room_current),
    path('api/allocations/room/<int:room_id>/history', allocations.room_history),
    path('api/allocations/<int:pk>', allocations.allocation_detail),
    path('api/allocations/<int:pk>/discharge', allocations.discharge),
    path('api/allocations/<int:pk>/cancel', allocations.cancel),
    path('api/allocations/<int:pk>/transfer', allocations.transfer),
    path('api/allocations/<int:pk>/bill', allocations.bill),
]
