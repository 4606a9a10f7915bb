"""
Password policy and credential lifecycle.

Strength rules, reuse checks against the last three passwords, self
service and forced rotation, and the email reset-token flow.  Every
successful password change updates the hash, clears the rotation flag,
appends a history entry and revokes all refresh tokens in a single
transaction.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import timedelta

from django.contrib.auth import get_user_model, password_validation
from django.contrib.auth.hashers import check_password
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from hms.errors import InvalidCredential, InvalidOrExpiredToken, PasswordReused, PolicyViolation
from hms.models import PasswordHistory, PasswordResetToken
from hms.roles import Action
from hms.services import notifications, tokens
from hms.services.audit import log_action
from hms.services.gateway import authorize, get_scoped_or_404
from hms.validators import MIN_LENGTH, SYMBOLS

logger = logging.getLogger(__name__)

User = get_user_model()

HISTORY_DEPTH = 3
RESET_TOKEN_TTL = timedelta(hours=1)
TEMP_PASSWORD_LENGTH = 12

RESET_REQUEST_MESSAGE = 'If email exists, reset link sent.'


@dataclass(frozen=True)
class PasswordCheck:
    is_valid: bool
    errors: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {'isValid': self.is_valid, 'errors': list(self.errors)}


def validate_password(candidate: str, user=None) -> PasswordCheck:
    """Run the configured password validators and report all failures."""
    try:
        password_validation.validate_password(candidate or '', user)
    except ValidationError as e:
        return PasswordCheck(is_valid=False, errors=list(e.messages))
    return PasswordCheck(is_valid=True)


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password that always passes :func:`validate_password`."""
    classes = (string.ascii_uppercase, string.ascii_lowercase, string.digits, SYMBOLS)
    alphabet = ''.join(classes)
    chars = [secrets.choice(group) for group in classes]
    chars += [secrets.choice(alphabet) for _ in range(max(length, MIN_LENGTH) - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return ''.join(chars)


def is_recent_password(user, candidate: str) -> bool:
    recent = PasswordHistory.objects.filter(user=user).order_by('-created_at', '-id')[:HISTORY_DEPTH]
    return any(check_password(candidate, entry.password_hash) for entry in recent)


def record_history(user) -> PasswordHistory:
    return PasswordHistory.objects.create(user=user, password_hash=user.password)


def _enforce_policy(user, new_password: str) -> None:
    check = validate_password(new_password, user)
    if not check.is_valid:
        raise PolicyViolation(check.errors[0], details={'errors': check.errors})
    if is_recent_password(user, new_password):
        raise PasswordReused()


def _apply_new_password(user, new_password: str) -> None:
    user.set_password(new_password)
    user.must_change_password = False
    user.save(update_fields=['password', 'must_change_password'])
    record_history(user)
    tokens.revoke_all(user)


def change_password(user, old_password: str, new_password: str) -> None:
    if not user.check_password(old_password):
        logger.warning("password change rejected for user %s: wrong current password", user.pk)
        raise InvalidCredential()
    _enforce_policy(user, new_password)
    with transaction.atomic():
        _apply_new_password(user, new_password)
        log_action(user=user, action='password_change', object_type='user', object_id=user.pk)
    logger.info("password changed for user %s", user.pk)


def force_password_change(admin, target_user_id) -> User:
    authorize(admin, Action.PASSWORD_FORCE_CHANGE)
    target = get_scoped_or_404(User.objects.all(), admin, label='User', pk=target_user_id)
    with transaction.atomic():
        target.must_change_password = True
        target.save(update_fields=['must_change_password'])
        revoked = tokens.revoke_all(target)
        log_action(user=admin, action='password_force_change', object_type='user', object_id=target.pk,
                   detail={'revoked': revoked})
    logger.info("user %s forced password change for user %s", admin.pk, target.pk)
    return target


def _digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def issue_reset_token(user) -> str:
    """Create a fresh reset token, superseding any unused one.  Returns the raw token."""
    raw = secrets.token_hex(32)
    with transaction.atomic():
        PasswordResetToken.objects.filter(user=user, is_used=False).update(is_used=True)
        PasswordResetToken.objects.create(
            user=user,
            token_hash=_digest(raw),
            expires_at=timezone.now() + RESET_TOKEN_TTL,
        )
    return raw


def request_password_reset(email: str) -> str:
    """Start the reset flow.  The returned message never depends on ``email``."""
    user = User.objects.filter(email__iexact=(email or '').strip(), is_active=True).first()
    if user is None:
        logger.info("password reset requested for unknown address")
        return RESET_REQUEST_MESSAGE
    raw = issue_reset_token(user)
    log_action(user=user, action='password_reset_request', object_type='user', object_id=user.pk)
    warning = notifications.send_password_reset_email(user.email, raw)
    if warning:
        logger.warning("reset email for user %s not delivered", user.pk)
    return RESET_REQUEST_MESSAGE


def reset_password_with_token(raw_token: str, new_password: str) -> User:
    now = timezone.now()
    with transaction.atomic():
        token = (
            PasswordResetToken.objects.select_for_update()
            .select_related('user')
            .filter(token_hash=_digest(raw_token or ''))
            .first()
        )
        if token is None or token.is_used or token.expires_at <= now:
            raise InvalidOrExpiredToken()
        user = token.user
        _enforce_policy(user, new_password)
        _apply_new_password(user, new_password)
        token.is_used = True
        token.used_at = now
        token.save(update_fields=['is_used', 'used_at'])
        log_action(user=user, action='password_reset_complete', object_type='user', object_id=user.pk)
    logger.info("password reset completed for user %s", user.pk)
    return user
