"""
Pharmacy endpoints: the dispensing queue.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hms.permissions import IsPharmacist, PasswordRotated
from hms.services import dashboard, prescriptions
from hms.services.prescriptions import prescription_dict

PHARMACIST = [IsAuthenticated, PasswordRotated, IsPharmacist]


@api_view(['GET'])
@permission_classes(PHARMACIST)
def prescriptions_view(request):
    """List prescriptions; ``status=pending|dispensed`` narrows the queue."""
    rows, pagination = prescriptions.list_prescriptions(request.user, request.query_params)
    return Response({'ok': True, 'prescriptions': [prescription_dict(p) for p in rows],
                     'pagination': pagination})


@api_view(['GET'])
@permission_classes(PHARMACIST)
def prescription_detail(request, pk: int):
    rx = prescriptions.get_prescription(request.user, pk)
    return Response({'ok': True, 'prescription': prescription_dict(rx)})


@api_view(['POST'])
@permission_classes(PHARMACIST)
def dispense(request, pk: int):
    rx = prescriptions.dispense(request.user, pk)
    return Response({'ok': True, 'message': 'Prescription dispensed', 'prescription': prescription_dict(rx)})


@api_view(['GET'])
@permission_classes(PHARMACIST)
def pharmacist_dashboard(request):
    return Response({'ok': True, 'stats': dashboard.pharmacist_stats(request.user)})
