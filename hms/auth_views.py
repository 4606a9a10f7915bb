"""
Authentication and credential views.

Sign-in, token refresh, sign-out and the password endpoints.  The
change-password, logout and profile views leave out
:class:`~hms.permissions.PasswordRotated` so a user who must rotate
their password can still do so.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from hms.serializers.auth import (
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    LogoutSerializer,
    RefreshSerializer,
    ResetPasswordSerializer,
    ValidatePasswordSerializer,
)
from hms.services import accounts, passwords, tokens
from hms.services.users import user_dict


def _client_ip(request) -> str | None:
    return request.META.get('REMOTE_ADDR')


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Sign in with a username or email and a password.
    Accepts ``identifier`` (or ``username`` / ``email``) and ``password``.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    payload = accounts.login(vd['identifier'], vd['password'], ip=_client_ip(request))
    return Response({'ok': True, **payload})

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Return a new access token for a refresh token that has not been revoked."""
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response({'ok': True, **tokens.refresh_access(s.validated_data['refreshToken'])})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Revoke the given refresh token, or all of the caller's tokens when none is sent."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    revoked = accounts.logout(request.user, s.validated_data.get('refreshToken'))
    return Response({'ok': True, 'revoked': revoked})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'user': user_dict(request.user), 'auth': request.auth.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    passwords.change_password(request.user, s.validated_data['oldPassword'], s.validated_data['newPassword'])
    return Response({'ok': True, 'message': 'Password changed successfully. Please log in again.'})


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password_view(request):
    s = ForgotPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    message = passwords.request_password_reset(s.validated_data['email'])
    return Response({'ok': True, 'message': message})

forgot_password_view.cls.throttle_scope = 'password_reset'


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password_view(request):
    s = ResetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    passwords.reset_password_with_token(s.validated_data['token'], s.validated_data['newPassword'])
    return Response({'ok': True, 'message': 'Password reset successfully. Please log in.'})

reset_password_view.cls.throttle_scope = 'password_reset'


@api_view(['POST'])
@permission_classes([AllowAny])
def validate_password_view(request):
    """Report which strength rules a candidate password breaks."""
    s = ValidatePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    check = passwords.validate_password(s.validated_data['password'])
    return Response({'ok': True, **check.as_dict()})
