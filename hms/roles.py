"""
Role and action definitions.

Roles are flat: holding one role never implies another and there is no
super-admin bypass.  Every role owns an explicit set of actions; the
table below must cover every member of :class:`Role`, which is checked
when this module is imported.
"""
from __future__ import annotations

from typing import Iterable

from django.core.exceptions import ImproperlyConfigured
from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = 'SUPER_ADMIN', 'Platform administrator'
    HOSPITAL_ADMIN = 'HOSPITAL_ADMIN', 'Hospital administrator'
    DOCTOR = 'DOCTOR', 'Medical practitioner'
    NURSE = 'NURSE', 'Nursing staff'
    PHARMACIST = 'PHARMACIST', 'Pharmacy staff'
    RECEPTIONIST = 'RECEPTIONIST', 'Front desk staff'


class Action(models.TextChoices):
    # platform
    HOSPITAL_MANAGE = 'hospital:manage'
    PLATFORM_USERS_READ = 'platform-users:read'
    PLATFORM_STATS_READ = 'platform-stats:read'
    # tenant administration
    STAFF_READ = 'staff:read'
    STAFF_CREATE = 'staff:create'
    STAFF_DELETE = 'staff:delete'
    PASSWORD_FORCE_CHANGE = 'password:force-change'
    # clinical
    PATIENT_READ = 'patient:read'
    PATIENT_REGISTER = 'patient:register'
    PATIENT_UPDATE = 'patient:update'
    PATIENT_DISCHARGE = 'patient:discharge'
    VITAL_READ = 'vital:read'
    VITAL_RECORD = 'vital:record'
    CARE_NOTE_ADD = 'care-note:add'
    PRESCRIPTION_READ = 'prescription:read'
    PRESCRIPTION_CREATE = 'prescription:create'
    PRESCRIPTION_DISPENSE = 'prescription:dispense'
    DASHBOARD_READ = 'dashboard:read'


ROLE_ACTIONS: dict[Role, frozenset[Action]] = {
    Role.SUPER_ADMIN: frozenset({
        Action.HOSPITAL_MANAGE,
        Action.PLATFORM_USERS_READ,
        Action.PLATFORM_STATS_READ,
    }),
    Role.HOSPITAL_ADMIN: frozenset({
        Action.STAFF_READ,
        Action.STAFF_CREATE,
        Action.STAFF_DELETE,
        Action.PASSWORD_FORCE_CHANGE,
        Action.DASHBOARD_READ,
    }),
    Role.DOCTOR: frozenset({
        Action.PATIENT_READ,
        Action.PATIENT_REGISTER,
        Action.PATIENT_DISCHARGE,
        Action.VITAL_READ,
        Action.PRESCRIPTION_READ,
        Action.PRESCRIPTION_CREATE,
        Action.DASHBOARD_READ,
    }),
    Role.NURSE: frozenset({
        Action.PATIENT_READ,
        Action.VITAL_READ,
        Action.VITAL_RECORD,
        Action.CARE_NOTE_ADD,
        Action.PRESCRIPTION_READ,
        Action.DASHBOARD_READ,
    }),
    Role.PHARMACIST: frozenset({
        Action.PRESCRIPTION_READ,
        Action.PRESCRIPTION_DISPENSE,
        Action.DASHBOARD_READ,
    }),
    Role.RECEPTIONIST: frozenset({
        Action.PATIENT_READ,
        Action.PATIENT_REGISTER,
        Action.PATIENT_UPDATE,
        Action.DASHBOARD_READ,
    }),
}

_unmapped = set(Role) - set(ROLE_ACTIONS)
if _unmapped:
    raise ImproperlyConfigured(f"roles without an action set: {sorted(_unmapped)}")

# Roles that are never scoped to a tenant
TENANTLESS_ROLES = frozenset({Role.SUPER_ADMIN})


def parse_roles(names: Iterable[str]) -> frozenset[Role]:
    """Convert role names to :class:`Role` members, rejecting unknown names."""
    roles = set()
    for name in names:
        try:
            roles.add(Role(name))
        except ValueError:
            raise ValueError(f"unknown role: {name!r}") from None
    return frozenset(roles)


def require_role(user_roles: Iterable[str], required_role: str) -> bool:
    """Return True iff ``required_role`` is one of ``user_roles``.

    Membership is exact: no prefix matching, no inheritance.
    """
    return str(required_role) in {str(r) for r in user_roles}


def allowed_actions(user_roles: Iterable[str]) -> frozenset[Action]:
    actions: set[Action] = set()
    for role in user_roles:
        try:
            actions |= ROLE_ACTIONS[Role(role)]
        except ValueError:
            continue
    return frozenset(actions)


def can_perform(user_roles: Iterable[str], action: Action) -> bool:
    return action in allowed_actions(user_roles)
