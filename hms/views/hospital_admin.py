"""
Hospital administrator endpoints: staff accounts and the hospital dashboard.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsHospitalAdmin, PasswordRotated
from hms.serializers.users import StaffCreateSerializer
from hms.services import dashboard, passwords, users
from hms.services.users import user_dict

HOSPITAL_ADMIN = [IsAuthenticated, PasswordRotated, IsHospitalAdmin]


@api_view(['GET', 'POST'])
@permission_classes(HOSPITAL_ADMIN)
def users_view(request):
    if request.method == 'POST':
        s = StaffCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user, temp_password, warnings = users.create_staff(request.user, s.validated_data)
        return Response({
            'ok': True,
            'message': 'User created successfully',
            'user': user_dict(user),
            'tempPassword': temp_password,
            'warnings': warnings,
        }, status=201)
    rows, pagination = users.list_staff(request.user, request.query_params)
    return Response({'ok': True, 'users': [user_dict(u) for u in rows], 'pagination': pagination})


@api_view(['DELETE'])
@permission_classes(HOSPITAL_ADMIN)
def user_detail(request, pk: int):
    users.remove_staff(request.user, pk)
    return Response({'ok': True, 'message': 'User removed'})


@api_view(['POST'])
@permission_classes(HOSPITAL_ADMIN)
def force_password_change(request, pk: int):
    passwords.force_password_change(request.user, pk)
    return Response({'ok': True, 'message': 'Password change forced. User sessions cleared.'})


@api_view(['GET'])
@permission_classes(HOSPITAL_ADMIN)
def hospital_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.hospital_admin_stats(request.user)})
