"""
Email one-time codes.

A six digit code is emailed to prove that the sender controls an
address before it becomes an administrator login.  Codes live for ten
minutes, are stored as keyed digests and are consumed exactly once.
"""
from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from django.db import transaction
from django.utils import timezone
from django.utils.crypto import constant_time_compare, salted_hmac

from hms.errors import InvalidOrExpiredToken
from hms.models import EmailOtp
from hms.services import notifications

logger = logging.getLogger(__name__)

OTP_TTL = timedelta(minutes=10)
OTP_DIGITS = 6


def _digest(email: str, purpose: str, code: str) -> str:
    return salted_hmac('hms.otp', f'{purpose}:{email}:{code}', algorithm='sha256').hexdigest()


def _normalize(email: str) -> str:
    return (email or '').strip().lower()


def issue_otp(email: str, purpose: str = EmailOtp.Purpose.HOSPITAL_REGISTRATION) -> str:
    """Store a fresh code for ``email``, retiring unused ones.  Returns the raw code."""
    email = _normalize(email)
    code = f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"
    with transaction.atomic():
        EmailOtp.objects.filter(email=email, purpose=purpose, is_used=False).update(is_used=True)
        EmailOtp.objects.create(
            email=email,
            purpose=purpose,
            code_hash=_digest(email, purpose, code),
            expires_at=timezone.now() + OTP_TTL,
        )
    return code


def send_registration_otp(email: str) -> list:
    """Issue and email a registration code; returns delivery warnings."""
    code = issue_otp(email, EmailOtp.Purpose.HOSPITAL_REGISTRATION)
    logger.info("registration code issued")
    warning = notifications.send_otp_email(_normalize(email), code)
    return [warning] if warning else []


def consume_otp(email: str, code: str, purpose: str = EmailOtp.Purpose.HOSPITAL_REGISTRATION) -> EmailOtp:
    """Mark the matching live code as used or raise :class:`InvalidOrExpiredToken`.

    Callers run this inside their own transaction so the code is only
    spent when the surrounding work commits.
    """
    email = _normalize(email)
    now = timezone.now()
    expected = _digest(email, purpose, str(code or '').strip())
    with transaction.atomic():
        otp = (
            EmailOtp.objects.select_for_update()
            .filter(email=email, purpose=purpose, is_used=False, expires_at__gt=now)
            .order_by('-created_at', '-id')
            .first()
        )
        if otp is None or not constant_time_compare(otp.code_hash, expected):
            logger.warning("rejected verification code for %s", purpose)
            raise InvalidOrExpiredToken('Invalid or expired verification code')
        otp.is_used = True
        otp.used_at = now
        otp.save(update_fields=['is_used', 'used_at'])
    return otp
