"""
Bearer token authentication.

``authenticate_bearer`` turns the raw ``Authorization`` header into an
:class:`AuthResult` without touching any session state.  The DRF
authentication class below is a thin adapter around it; keeping the
two apart lets the settings module import this class without pulling
in view code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from django.contrib.auth import get_user_model
from rest_framework import authentication, exceptions
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

KEYWORD = 'Bearer'


@dataclass(frozen=True)
class AuthResult:
    authenticated: bool
    user: Optional[object] = None
    error: Optional[str] = None
    roles: tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        if not self.authenticated:
            return {'authenticated': False, 'error': self.error, 'status': 401}
        return {
            'authenticated': True,
            'user': {
                'id': self.user.pk,
                'tenantId': self.user.tenant_id,
                'roles': sorted(self.roles),
            },
        }


def _failure(message: str) -> AuthResult:
    return AuthResult(authenticated=False, error=message)


def authenticate_bearer(header: Optional[str]) -> AuthResult:
    """Resolve a ``Bearer <jwt>`` header to the active user it names."""
    if not header:
        return _failure('Authentication credentials were not provided')
    parts = header.split()
    if len(parts) != 2 or parts[0] != KEYWORD:
        return _failure('Malformed authorization header')
    try:
        token = AccessToken(parts[1])
    except TokenError:
        return _failure('Token is invalid or expired')

    user_id = token.get(api_settings.USER_ID_CLAIM)
    if user_id is None:
        return _failure('Token carries no user identity')
    User = get_user_model()
    user = (
        User.objects.select_related('tenant')
        .prefetch_related('role_links')
        .filter(**{api_settings.USER_ID_FIELD: user_id})
        .first()
    )
    if user is None or not user.is_active:
        return _failure('User not found or inactive')
    if user.tenant_id and user.tenant.status != 'ACTIVE':
        return _failure('Hospital account is not active')
    return AuthResult(authenticated=True, user=user, roles=tuple(str(r) for r in user.roles))


class BearerAuthentication(authentication.BaseAuthentication):
    """Authenticate ``Authorization: Bearer <access token>`` requests.

    Requests without the header stay anonymous so public endpoints keep
    working; any header that is present but not valid is rejected.
    """

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).decode('latin-1')
        if not header:
            return None
        result = authenticate_bearer(header)
        if not result.authenticated:
            raise exceptions.AuthenticationFailed(result.error)
        return result.user, result

    def authenticate_header(self, request):
        return f'{KEYWORD} realm="api"'
