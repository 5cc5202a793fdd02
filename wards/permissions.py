"""
Permission classes for ward data.

Any authenticated user may read; changing patients, rooms or
allocations is reserved for ward staff: Django staff users or members
of the group named by ``settings.WARD_STAFF_GROUP``.
"""
from django.conf import settings
from rest_framework.permissions import BasePermission, SAFE_METHODS


def is_ward_staff(user) -> bool:
    if not (user and user.is_authenticated):
        return False
    if user.is_staff or user.is_superuser:
        return True
    group_name = getattr(settings, 'WARD_STAFF_GROUP', 'ward_staff')
    return user.groups.filter(name=group_name).exists()


class IsWardStaff(BasePermission):
    """Allow access only to ward staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_ward_staff(getattr(request, "user", None))


class IsWardStaffOrReadOnly(BasePermission):
    """Reads for any authenticated user, writes for ward staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if request.method in SAFE_METHODS:
            return bool(user and user.is_authenticated)
        return is_ward_staff(user)
