"""
Domain error taxonomy.

These exceptions carry a stable ``code`` and a user-facing message and
know nothing about HTTP.  ``hms.exceptions`` maps them to status codes at
the API boundary.
"""
from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    code = 'domain_error'
    default_message = 'Request could not be completed'

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(DomainError):
    code = 'unauthenticated'
    default_message = 'Authentication required'


class Forbidden(DomainError):
    code = 'forbidden'
    default_message = 'Access denied'


class NotFound(DomainError):
    code = 'not_found'
    default_message = 'Not found'


class ValidationFailed(DomainError):
    code = 'validation_failed'
    default_message = 'Validation failed'


class PolicyViolation(DomainError):
    code = 'policy_violation'
    default_message = 'Invalid password'


class PasswordReused(DomainError):
    code = 'password_reused'
    default_message = 'Password cannot be same as last 3 passwords'


class InvalidCredential(DomainError):
    code = 'invalid_credential'
    default_message = 'Incorrect old password'


class InvalidOrExpiredToken(DomainError):
    code = 'invalid_or_expired_token'
    default_message = 'Invalid or expired token'


class InvalidState(DomainError):
    code = 'invalid_state'
    default_message = 'Operation not allowed in the current state'


class Conflict(DomainError):
    code = 'conflict'
    default_message = 'Record already exists'


class PasswordChangeRequired(DomainError):
    code = 'password_change_required'
    default_message = 'Password change required before continuing'
