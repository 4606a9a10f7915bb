"""
Sign-in, token refresh and sign-out.
"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone

from hms.errors import Forbidden, InvalidCredential
from hms.models import Hospital
from hms.services import tokens
from hms.services.audit import log_action

logger = logging.getLogger(__name__)

User = get_user_model()


def find_user_by_identifier(identifier: str):
    """Look a user up by username first, then by email."""
    identifier = (identifier or '').strip()
    if not identifier:
        return None
    qs = User.objects.select_related('tenant').prefetch_related('role_links')
    return (
        qs.filter(username__iexact=identifier).first()
        or qs.filter(Q(email__iexact=identifier)).first()
    )


def login(identifier: str, password: str, *, ip: str | None = None) -> dict:
    user = find_user_by_identifier(identifier)
    if user is None or not user.is_active or not user.check_password(password):
        logger.warning("failed login for %r from %s", identifier, ip)
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'identifier': identifier, 'ip': ip})
        raise InvalidCredential('Invalid credentials')
    if user.tenant_id and user.tenant.status != Hospital.Status.ACTIVE:
        log_action(user=user, action='login', object_type='user', object_id=user.pk,
                   detail={'result': 'tenant_inactive', 'ip': ip})
        raise Forbidden(f'Hospital account is {user.tenant.status.lower()}')

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    log_action(user=user, action='login', object_type='user', object_id=user.pk,
               detail={'result': 'ok', 'ip': ip})

    payload = tokens.issue_pair(user)
    payload['mustChangePassword'] = user.must_change_password
    return payload


def logout(user, raw_refresh: str | None) -> int:
    """Revoke one refresh token, or every token of ``user`` when none is given."""
    if raw_refresh:
        revoked = 1 if tokens.revoke(raw_refresh, user=user) else 0
    else:
        revoked = tokens.revoke_all(user)
    log_action(user=user, action='logout', object_type='user', object_id=user.pk, detail={'revoked': revoked})
    return revoked
