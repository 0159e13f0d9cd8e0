# hm_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

# Group/role names (Django auth Group names recommended)
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_NURSE = "NURSE"
ROLE_RECEPTION = "RECEPTION"
ROLE_READONLY = "READONLY"

ALL_ROLES = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_READONLY}
CLINICAL_ROLES = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE}


def _user_roles(user) -> Set[str]:
    """
    Resolve roles from Django groups (superuser counts as ADMIN).
    Authenticated users without any group are READONLY.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if not roles:
        roles.add(ROLE_READONLY)

    return roles


class BaseRolePermission(BasePermission):
    """
    Role-based access per viewset action.

    - ADMIN bypass.
    - allowed_roles_per_action maps action name -> allowed roles.
    - Unknown SAFE actions fall back to list/retrieve; unknown writes are denied.
    """
    message = "You do not have permission to perform this action."

    allowed_roles_per_action: dict[str, Set[str]] = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": {ROLE_ADMIN},
    }

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = _user_roles(user)
        if ROLE_ADMIN in roles:
            return True

        action = getattr(view, "action", None)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            read_action = "retrieve" if "pk" in kwargs else "list"
            allowed = self.allowed_roles_per_action.get(read_action)

        if allowed is not None:
            return bool(roles & allowed)

        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class WardPermission(BaseRolePermission):
    """Ward setup is admin-only; statistics are visible to everyone."""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "create_beds": {ROLE_ADMIN},
        "stats": ALL_ROLES,
        "matrix": ALL_ROLES,
    }


class BedPermission(BaseRolePermission):
    """Beds: nurses toggle maintenance/cleaning, admins run bed setup."""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": {ROLE_ADMIN},
        "set_status": CLINICAL_ROLES,
        "bulk_status": CLINICAL_ROLES,
        "available": ALL_ROLES,
        "history": ALL_ROLES,
    }


class EncounterPermission(BaseRolePermission):
    """Patient flow: admit / transfer / discharge."""
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": CLINICAL_ROLES | {ROLE_RECEPTION},
        "transfer": CLINICAL_ROLES,
        "discharge": CLINICAL_ROLES,
        "timeline": ALL_ROLES,
        "census": ALL_ROLES,
        "length_of_stay": ALL_ROLES,
        "statistics": ALL_ROLES,
        "discharge_planning": ALL_ROLES,
    }
