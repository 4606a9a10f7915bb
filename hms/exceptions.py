"""
DRF exception handler.

Every error leaving the API has the shape
``{'ok': False, 'error': {'code': ..., 'message': ..., 'details'?: ...}}``.
Domain errors from :mod:`hms.errors` are mapped to HTTP status codes
here and nowhere else.
"""
from __future__ import annotations

import logging

from django.db import IntegrityError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from . import errors

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    errors.Unauthenticated.code: status.HTTP_401_UNAUTHORIZED,
    errors.InvalidCredential.code: status.HTTP_401_UNAUTHORIZED,
    errors.Forbidden.code: status.HTTP_403_FORBIDDEN,
    errors.PasswordChangeRequired.code: status.HTTP_403_FORBIDDEN,
    errors.NotFound.code: status.HTTP_404_NOT_FOUND,
    errors.ValidationFailed.code: status.HTTP_400_BAD_REQUEST,
    errors.PolicyViolation.code: status.HTTP_400_BAD_REQUEST,
    errors.PasswordReused.code: status.HTTP_400_BAD_REQUEST,
    errors.InvalidOrExpiredToken.code: status.HTTP_400_BAD_REQUEST,
    errors.InvalidState.code: status.HTTP_400_BAD_REQUEST,
    errors.Conflict.code: status.HTTP_409_CONFLICT,
}

# DRF exception class -> domain code
DRF_CODES = (
    (exceptions.NotAuthenticated, errors.Unauthenticated.code),
    (exceptions.AuthenticationFailed, errors.Unauthenticated.code),
    (exceptions.PermissionDenied, errors.Forbidden.code),
    (exceptions.NotFound, errors.NotFound.code),
    (exceptions.ValidationError, errors.ValidationFailed.code),
    (exceptions.ParseError, errors.ValidationFailed.code),
    (exceptions.Throttled, 'throttled'),
    (exceptions.MethodNotAllowed, 'method_not_allowed'),
)


def error_body(code: str, message, details=None) -> dict:
    error = {'code': code, 'message': message}
    if details is not None:
        error['details'] = details
    return {'ok': False, 'error': error}


def _domain_response(exc: errors.DomainError) -> Response:
    status_code = STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)
    return Response(error_body(exc.code, exc.message, exc.details), status=status_code)


def api_exception_handler(exc, context):
    if isinstance(exc, errors.DomainError):
        return _domain_response(exc)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        if isinstance(exc, IntegrityError):
            logger.warning("integrity error in %s: %s", context.get('view'), exc)
            return Response(error_body(errors.Conflict.code, errors.Conflict.default_message),
                            status=status.HTTP_409_CONFLICT)
        logger.exception("unhandled error in %s", context.get('view'), exc_info=exc)
        return Response(error_body('server_error', 'Internal server error'),
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = 'api_error'
    for exc_class, mapped in DRF_CODES:
        if isinstance(exc, exc_class):
            code = mapped
            break

    # normalize response
    if isinstance(exc, exceptions.ValidationError):
        return Response(error_body(code, 'Validation failed', resp.data), status=resp.status_code,
                        headers=_auth_headers(resp))
    detail = resp.data.get('detail', resp.data) if isinstance(resp.data, dict) else resp.data
    return Response(error_body(code, str(detail)), status=resp.status_code, headers=_auth_headers(resp))


def _auth_headers(resp: Response) -> dict:
    headers = {}
    for name in ('WWW-Authenticate', 'Retry-After'):
        if resp.has_header(name):
            headers[name] = resp[name]
    return headers
