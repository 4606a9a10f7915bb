"""
Front desk endpoints: patient registration and contact details.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsReceptionist, PasswordRotated
from hms.serializers.patient import PatientContactSerializer, PatientCreateSerializer
from hms.services import dashboard, patients
from hms.services.patients import patient_dict

RECEPTIONIST = [IsAuthenticated, PasswordRotated, IsReceptionist]


@api_view(['GET', 'POST'])
@permission_classes(RECEPTIONIST)
def patients_view(request):
    if request.method == 'POST':
        s = PatientCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = patients.register_patient(request.user, s.validated_data)
        return Response({'ok': True, 'patient': patient_dict(patient)}, status=201)
    rows, pagination = patients.list_patients(request.user, request.query_params)
    return Response({'ok': True, 'patients': [patient_dict(p) for p in rows], 'pagination': pagination})


@api_view(['GET', 'PATCH'])
@permission_classes(RECEPTIONIST)
def patient_detail(request, pk: int):
    """Read a patient, or update contact fields (phone, email, address, city, state, pincode, photoUrl)."""
    if request.method == 'PATCH':
        s = PatientContactSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = patients.update_patient_contact(request.user, pk, s.validated_data)
    else:
        patient = patients.get_patient(request.user, pk)
    return Response({'ok': True, 'patient': patient_dict(patient)})


@api_view(['GET'])
@permission_classes(RECEPTIONIST)
def receptionist_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.receptionist_stats(request.user)})
