"""
Staff accounts managed by a hospital administrator.
"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q

from hms.errors import Conflict, InvalidState, ValidationFailed
from hms.models import UserRole
from hms.roles import Action, Role
from hms.services import notifications
from hms.services.audit import log_action
from hms.services.gateway import (
    Listing, authorize, bool_param, get_scoped_or_404, list_scoped, list_unscoped, tenant_of,
)
from hms.services.passwords import generate_temp_password, record_history

logger = logging.getLogger(__name__)

User = get_user_model()

STAFF_ROLES = frozenset({Role.DOCTOR, Role.NURSE, Role.PHARMACIST, Role.RECEPTIONIST})


def _role_filter(value):
    if value not in Role.values:
        raise ValidationFailed(details={'role': [f'Unknown role: {value}']})
    return Q(pk__in=UserRole.objects.filter(role=value).values('user_id'))


USER_LIST = Listing(
    search_fields=('first_name', 'last_name', 'email', 'username'),
    sort_fields={'createdAt': 'created_at', 'firstName': 'first_name', 'lastName': 'last_name',
                 'lastLogin': 'last_login'},
    filters={
        'role': _role_filter,
        'tenantId': lambda v: Q(tenant_id=v),
        'isActive': lambda v: Q(is_active=bool_param(v)),
    },
)


def _users():
    return User.objects.select_related('tenant').prefetch_related('role_links')


def staff_username(first_name: str, last_name: str, domain: str) -> str:
    local = '.'.join(part.strip().lower().replace(' ', '') for part in (first_name, last_name) if part.strip())
    return f"{local}@{domain.lower()}"


def list_staff(actor, params):
    authorize(actor, Action.STAFF_READ)
    return list_scoped(_users(), actor, params, USER_LIST)


def list_platform_users(actor, params):
    authorize(actor, Action.PLATFORM_USERS_READ)
    return list_unscoped(_users(), params, USER_LIST)


def create_staff(actor, data: dict):
    """Create a staff account with a temporary password.

    Returns ``(user, temp_password, warnings)``; the temporary password
    is only ever handed back to the creating administrator and emailed
    to the new user.
    """
    authorize(actor, Action.STAFF_CREATE)
    tenant_id = tenant_of(actor)
    roles = frozenset(Role(r) for r in data['roles'])
    if not roles or not roles <= STAFF_ROLES:
        raise ValidationFailed(details={'roles': ['Roles must be chosen from DOCTOR, NURSE, PHARMACIST, RECEPTIONIST']})

    username = staff_username(data['first_name'], data['last_name'], actor.tenant.domain)
    email = data['email'].strip().lower()
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('User with this email already exists')
    if User.objects.filter(username__iexact=username).exists():
        raise Conflict('User with this username already exists')

    temp_password = generate_temp_password()
    with transaction.atomic():
        user = User.objects.create_user(
            username=username,
            email=email,
            password=temp_password,
            first_name=data['first_name'],
            last_name=data['last_name'],
            phone=data.get('phone', ''),
            department=data.get('department', ''),
            tenant_id=tenant_id,
            must_change_password=True,
        )
        UserRole.objects.bulk_create([UserRole(user=user, role=role) for role in sorted(roles)])
        record_history(user)
        log_action(user=actor, action='user_create', object_type='user', object_id=user.pk,
                   detail={'roles': sorted(roles)})
    logger.info("user %s created staff user %s", actor.pk, user.pk)

    warnings = []
    warning = notifications.send_welcome_email(
        email, first_name=user.first_name, last_name=user.last_name, username=username,
        temp_password=temp_password,
    )
    if warning:
        warnings.append(warning)
    return user, temp_password, warnings


def remove_staff(actor, pk) -> None:
    authorize(actor, Action.STAFF_DELETE)
    target = get_scoped_or_404(User.objects.all(), actor, label='User', pk=pk)
    if target.pk == actor.pk:
        raise InvalidState('You cannot remove your own account')
    with transaction.atomic():
        log_action(user=actor, action='user_delete', object_type='user', object_id=target.pk,
                   detail={'username': target.username})
        target.delete()
    logger.info("user %s removed staff user %s", actor.pk, pk)


def user_dict(u) -> dict:
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'firstName': u.first_name,
        'lastName': u.last_name,
        'phone': u.phone,
        'department': u.department,
        'roles': sorted(str(r) for r in u.roles),
        'tenantId': u.tenant_id,
        'isActive': u.is_active,
        'mustChangePassword': u.must_change_password,
        'lastLogin': u.last_login.isoformat() if u.last_login else None,
        'createdAt': u.created_at.isoformat() if u.created_at else None,
    }
