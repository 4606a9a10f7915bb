"""
Platform administration: hospitals, users across hospitals and the
platform dashboard.  Hospital self-registration is public and lives here
because it produces the records the platform administrator approves.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsSuperAdmin, PasswordRotated
from hms.serializers.users import (
    HospitalOtpSerializer,
    HospitalRegisterSerializer,
    HospitalStatusSerializer,
    HospitalUpdateSerializer,
)
from hms.services import dashboard, hospitals, otp, users
from hms.services.hospitals import hospital_dict
from hms.services.users import user_dict

SUPER_ADMIN = [IsAuthenticated, PasswordRotated, IsSuperAdmin]


@api_view(['POST'])
@permission_classes([AllowAny])
def send_hospital_otp(request):
    """Email a verification code to the prospective administrator."""
    s = HospitalOtpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    warnings = otp.send_registration_otp(s.validated_data['admin_email'])
    return Response({'ok': True, 'message': 'Verification code sent', 'warnings': warnings})

send_hospital_otp.cls.throttle_scope = 'otp'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_hospital(request):
    s = HospitalRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital, admin, warnings = hospitals.register_hospital(s.validated_data)
    return Response({
        'ok': True,
        'message': 'Registration received. Your hospital is pending approval.',
        'hospital': hospital_dict(hospital),
        'adminUsername': admin.username,
        'warnings': warnings,
    }, status=201)


@api_view(['GET'])
@permission_classes(SUPER_ADMIN)
def hospitals_view(request):
    rows, pagination = hospitals.list_hospitals(request.user, request.query_params)
    return Response({'ok': True, 'hospitals': [hospital_dict(h) for h in rows], 'pagination': pagination})


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes(SUPER_ADMIN)
def hospital_detail(request, hospital_id: str):
    if request.method == 'DELETE':
        hospitals.delete_hospital(request.user, hospital_id)
        return Response({'ok': True, 'message': 'Hospital deleted'})
    if request.method == 'PATCH':
        s = HospitalUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        hospital = hospitals.update_hospital(request.user, hospital_id, dict(s.validated_data))
    else:
        hospital = hospitals.get_hospital(request.user, hospital_id)
    return Response({'ok': True, 'hospital': hospital_dict(hospital)})


@api_view(['GET'])
@permission_classes(SUPER_ADMIN)
def hospital_stats(request):
    """Active hospitals with user, patient and prescription counts."""
    rows = hospitals.hospital_stats(request.user)
    return Response({'ok': True, 'hospitals': [hospital_dict(h) for h in rows]})



@api_view(['POST'])
@permission_classes(SUPER_ADMIN)
def hospital_status(request, hospital_id: str):
    """Apply ``approve``, ``suspend``, ``reactivate`` or ``deactivate``."""
    s = HospitalStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital = hospitals.change_status(request.user, hospital_id, s.validated_data['action'])
    return Response({'ok': True, 'hospital': hospital_dict(hospital)})


@api_view(['GET'])
@permission_classes(SUPER_ADMIN)
def platform_users(request):
    """All users, optionally narrowed with ``tenantId`` or ``role``."""
    rows, pagination = users.list_platform_users(request.user, request.query_params)
    return Response({'ok': True, 'users': [user_dict(u) for u in rows], 'pagination': pagination})


@api_view(['GET'])
@permission_classes(SUPER_ADMIN)
def platform_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.platform_stats(request.user)})
