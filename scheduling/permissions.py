"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"doctor", "admin", "super"}


def is_staff_user(user) -> bool:
    """Practitioners and administrators may act on any booking."""
    return bool(user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES)


class IsStaffRole(BasePermission):
    """Allow access only to practitioners and administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_staff_user(getattr(request, "user", None))
