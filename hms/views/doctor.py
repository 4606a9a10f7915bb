"""
Doctor endpoints.

Patients of the doctor's hospital, their vitals and prescriptions,
prescribing, discharge and the doctor dashboard.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsDoctor, PasswordRotated
from hms.serializers.patient import DischargeSerializer, PatientCreateSerializer
from hms.serializers.prescription import PrescriptionCreateSerializer
from hms.services import dashboard, patients, prescriptions
from hms.services.patients import patient_dict, vital_dict
from hms.services.prescriptions import prescription_dict

DOCTOR = [IsAuthenticated, PasswordRotated, IsDoctor]


@api_view(['GET', 'POST'])
@permission_classes(DOCTOR)
def patients_view(request):
    """List patients (search, patientType, isDischarged) or register a new one."""
    if request.method == 'POST':
        s = PatientCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = patients.register_patient(request.user, s.validated_data)
        return Response({'ok': True, 'patient': patient_dict(patient)}, status=201)
    rows, pagination = patients.list_patients(request.user, request.query_params)
    return Response({'ok': True, 'patients': [patient_dict(p) for p in rows], 'pagination': pagination})


@api_view(['GET'])
@permission_classes(DOCTOR)
def patient_detail(request, pk: int):
    patient = patients.get_patient(request.user, pk)
    _, vitals = patients.list_vitals(request.user, pk, limit=5)
    _, rx = prescriptions.list_for_patient(request.user, pk)
    return Response({
        'ok': True,
        'patient': patient_dict(patient),
        'latestVitals': [vital_dict(v) for v in vitals],
        'prescriptions': [prescription_dict(p) for p in rx],
    })


@api_view(['GET'])
@permission_classes(DOCTOR)
def patient_vitals(request, pk: int):
    _, vitals = patients.list_vitals(request.user, pk)
    return Response({'ok': True, 'vitals': [vital_dict(v) for v in vitals]})


@api_view(['GET', 'POST'])
@permission_classes(DOCTOR)
def patient_prescriptions(request, pk: int):
    if request.method == 'POST':
        s = PrescriptionCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rx = prescriptions.create_prescription(request.user, pk, s.validated_data)
        return Response({'ok': True, 'prescription': prescription_dict(rx)}, status=201)
    _, rows = prescriptions.list_for_patient(request.user, pk)
    return Response({'ok': True, 'prescriptions': [prescription_dict(p) for p in rows]})


@api_view(['POST'])
@permission_classes(DOCTOR)
def discharge_patient(request, pk: int):
    s = DischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = patients.discharge_patient(request.user, pk, s.validated_data['notes'])
    return Response({'ok': True, 'message': 'Patient discharged successfully', 'patient': patient_dict(patient)})


@api_view(['GET'])
@permission_classes(DOCTOR)
def my_prescriptions(request):
    rows, pagination = prescriptions.list_prescriptions(request.user, request.query_params, mine=True)
    return Response({'ok': True, 'prescriptions': [prescription_dict(p) for p in rows],
                     'pagination': pagination})


@api_view(['GET'])
@permission_classes(DOCTOR)
def doctor_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.doctor_stats(request.user)})
