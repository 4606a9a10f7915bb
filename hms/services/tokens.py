"""
Access/refresh token issuing and revocation.

Refresh tokens are simplejwt tokens tracked in the ``token_blacklist``
app: every issued token has an ``OutstandingToken`` row and revoking it
adds a ``BlacklistedToken`` row (with its timestamp).  A blacklisted
token is never removed from the blacklist.
"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from hms.errors import Unauthenticated

logger = logging.getLogger(__name__)

User = get_user_model()


def _add_claims(token, user) -> None:
    token['tenantId'] = user.tenant_id
    token['roles'] = sorted(str(r) for r in user.roles)
    token['email'] = user.email


def issue_pair(user) -> dict:
    refresh = RefreshToken.for_user(user)
    _add_claims(refresh, user)
    access = refresh.access_token
    return {
        'accessToken': str(access),
        'refreshToken': str(refresh),
        'expiresIn': int(api_settings.ACCESS_TOKEN_LIFETIME.total_seconds()),
    }


def refresh_access(raw_refresh: str) -> dict:
    """Exchange a live refresh token for a new access token.

    Claims are rebuilt from the current user row so role changes take
    effect on the next refresh.
    """
    try:
        refresh = RefreshToken(raw_refresh)
    except TokenError as exc:
        raise Unauthenticated('Refresh token is invalid, expired or revoked') from exc

    user = User.objects.filter(
        **{api_settings.USER_ID_FIELD: refresh.get(api_settings.USER_ID_CLAIM)}
    ).first()
    if user is None or not user.is_active:
        raise Unauthenticated('User not found or inactive')

    access = refresh.access_token
    _add_claims(access, user)
    return {
        'accessToken': str(access),
        'expiresIn': int(api_settings.ACCESS_TOKEN_LIFETIME.total_seconds()),
    }


def revoke(raw_refresh: str, *, user=None) -> bool:
    """Blacklist one refresh token.  Returns False when it was not usable."""
    try:
        refresh = RefreshToken(raw_refresh)
    except TokenError:
        return False
    if user is not None and str(refresh.get(api_settings.USER_ID_CLAIM)) != str(user.pk):
        return False
    refresh.blacklist()
    return True


def revoke_all(user) -> int:
    """Blacklist every outstanding refresh token of ``user``.

    Joins the caller's transaction when there is one so revocation
    commits together with the credential change that triggered it.
    """
    with transaction.atomic():
        outstanding = list(
            OutstandingToken.objects.filter(user=user, blacklistedtoken__isnull=True)
        )
        BlacklistedToken.objects.bulk_create(
            [BlacklistedToken(token=token) for token in outstanding],
            ignore_conflicts=True,
        )
    if outstanding:
        logger.info("revoked %d refresh token(s) for user %s", len(outstanding), user.pk)
    return len(outstanding)
