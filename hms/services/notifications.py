"""
Outgoing email.

Delivery is best effort: a failure is logged and returned as a warning
string so callers can surface it without undoing committed changes.
"""
from __future__ import annotations

import logging
from smtplib import SMTPException
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _send(subject: str, body: str, recipient: str) -> Optional[str]:
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
    except (SMTPException, OSError) as exc:
        logger.warning("email %r to %s failed: %s", subject, recipient, exc)
        return f"Email could not be delivered to {recipient}"
    return None


def reset_link(raw_token: str) -> str:
    return f"{settings.APP_URL}/auth/reset-password?token={raw_token}"


def send_password_reset_email(email: str, raw_token: str) -> Optional[str]:
    body = (
        "A password reset was requested for your MediCare account.\n\n"
        f"Reset your password: {reset_link(raw_token)}\n\n"
        "The link expires in one hour. If you did not ask for a reset you can ignore this email."
    )
    return _send('Reset your MediCare password', body, email)


def send_welcome_email(email: str, *, first_name: str, last_name: str, username: str,
                       temp_password: str) -> Optional[str]:
    body = (
        f"Hello {first_name} {last_name},\n\n"
        "An account has been created for you on MediCare.\n\n"
        f"Username: {username}\n"
        f"Temporary password: {temp_password}\n\n"
        f"Sign in at {settings.APP_URL}/auth/login. You will be asked to choose a new password."
    )
    return _send('Welcome to MediCare', body, email)


def send_registration_email(email: str, *, hospital_name: str, tenant_id: str, admin_username: str) -> Optional[str]:
    body = (
        f"Thank you for registering {hospital_name}.\n\n"
        f"Hospital ID: {tenant_id}\n"
        f"Administrator login: {admin_username}\n\n"
        "Your account is pending approval. You will be able to sign in once it is activated."
    )
    return _send('MediCare registration received', body, email)


def send_otp_email(email: str, code: str) -> Optional[str]:
    body = (
        f"Your MediCare verification code is {code}.\n\n"
        "Enter it to complete your hospital registration. The code expires in 10 minutes."
    )
    return _send('Your MediCare verification code', body, email)
