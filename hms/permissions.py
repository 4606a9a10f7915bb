"""
Permission classes for role based access control.

Each view family declares exactly one gate role; membership is checked
with :func:`hms.roles.require_role`, so there is no inheritance between
roles and no super-admin bypass.
"""
from rest_framework.permissions import BasePermission

from .errors import PasswordChangeRequired
from .roles import Role, require_role


class RolePermission(BasePermission):
    """Allow access only to authenticated users holding ``role``."""
    role: Role
    message = 'You do not have the role required for this action.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return require_role(user.roles, self.role)


class IsSuperAdmin(RolePermission):
    role = Role.SUPER_ADMIN


class IsHospitalAdmin(RolePermission):
    role = Role.HOSPITAL_ADMIN


class IsDoctor(RolePermission):
    role = Role.DOCTOR


class IsNurse(RolePermission):
    role = Role.NURSE


class IsPharmacist(RolePermission):
    role = Role.PHARMACIST


class IsReceptionist(RolePermission):
    role = Role.RECEPTIONIST


class PasswordRotated(BasePermission):
    """Block users whose password must be changed before doing anything else.

    Installed as a default permission; the change-password, logout,
    refresh and profile views opt out by listing their own classes.
    """

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if user and user.is_authenticated and user.must_change_password:
            raise PasswordChangeRequired()
        return True
