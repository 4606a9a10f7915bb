"""
Nurse endpoints: ward patients, vitals, care notes and prescriptions.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsNurse, PasswordRotated
from hms.serializers.patient import CareNoteSerializer, VitalSerializer
from hms.services import dashboard, patients, prescriptions
from hms.services.patients import care_note_dict, patient_dict, vital_dict
from hms.services.prescriptions import prescription_dict

NURSE = [IsAuthenticated, PasswordRotated, IsNurse]


@api_view(['GET'])
@permission_classes(NURSE)
def patients_view(request):
    rows, pagination = patients.list_patients(request.user, request.query_params)
    return Response({'ok': True, 'patients': [patient_dict(p) for p in rows], 'pagination': pagination})


@api_view(['GET'])
@permission_classes(NURSE)
def patient_detail(request, pk: int):
    patient = patients.get_patient(request.user, pk)
    _, vitals = patients.list_vitals(request.user, pk, limit=10)
    _, rx = prescriptions.list_for_patient(request.user, pk)
    notes = patient.care_notes.select_related('nurse')[:20]
    return Response({
        'ok': True,
        'patient': patient_dict(patient),
        'vitals': [vital_dict(v) for v in vitals],
        'careNotes': [care_note_dict(n) for n in notes],
        'prescriptions': [prescription_dict(p) for p in rx],
    })


@api_view(['GET', 'POST'])
@permission_classes(NURSE)
def patient_vitals(request, pk: int):
    if request.method == 'POST':
        s = VitalSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vital = patients.record_vital(request.user, pk, s.validated_data)
        return Response({'ok': True, 'vital': vital_dict(vital)}, status=201)
    _, vitals = patients.list_vitals(request.user, pk)
    return Response({'ok': True, 'vitals': [vital_dict(v) for v in vitals]})


@api_view(['POST'])
@permission_classes(NURSE)
def add_care_note(request, pk: int):
    s = CareNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    note = patients.add_care_note(request.user, pk, s.validated_data['note'])
    return Response({'ok': True, 'careNote': care_note_dict(note)}, status=201)


@api_view(['GET'])
@permission_classes(NURSE)
def prescriptions_view(request):
    rows, pagination = prescriptions.list_prescriptions(request.user, request.query_params)
    return Response({'ok': True, 'prescriptions': [prescription_dict(p) for p in rows],
                     'pagination': pagination})


@api_view(['GET'])
@permission_classes(NURSE)
def prescription_detail(request, pk: int):
    rx = prescriptions.get_prescription(request.user, pk)
    return Response({'ok': True, 'prescription': prescription_dict(rx)})


@api_view(['GET'])
@permission_classes(NURSE)
def nurse_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.nurse_stats(request.user)})
