"""
Prescriptions: written by doctors, read by nurses, dispensed by pharmacists.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from hms.errors import InvalidState, ValidationFailed
from hms.models import Patient, Prescription
from hms.roles import Action
from hms.services import sequences
from hms.services.audit import log_action
from hms.services.gateway import Listing, authorize, bool_param, get_scoped_or_404, list_scoped
from hms.services.patients import ensure_admissible

logger = logging.getLogger(__name__)


def _status_filter(value):
    value = str(value).lower()
    if value not in ('pending', 'dispensed'):
        raise ValidationFailed(details={'status': ['Must be pending or dispensed']})
    return Q(is_dispensed=(value == 'dispensed'))


PRESCRIPTION_LIST = Listing(
    search_fields=('prescription_id', 'diagnosis', 'patient__first_name', 'patient__last_name',
                   'patient__patient_id'),
    sort_fields={'createdAt': 'created_at', 'prescriptionId': 'prescription_id', 'dispensedAt': 'dispensed_at'},
    filters={
        'patientId': lambda v: Q(patient__patient_id=v),
        'isDispensed': lambda v: Q(is_dispensed=bool_param(v)),
        'status': _status_filter,
    },
)


def _base():
    return Prescription.objects.select_related('patient', 'doctor', 'dispensed_by')


def list_prescriptions(actor, params, *, mine: bool = False):
    authorize(actor, Action.PRESCRIPTION_READ)
    qs = _base()
    if mine:
        qs = qs.filter(doctor=actor)
    return list_scoped(qs, actor, params, PRESCRIPTION_LIST)


def list_for_patient(actor, patient_pk):
    authorize(actor, Action.PRESCRIPTION_READ)
    patient = get_scoped_or_404(Patient.objects.all(), actor, label='Patient', pk=patient_pk)
    return patient, list(_base().filter(patient=patient))


def get_prescription(actor, pk) -> Prescription:
    authorize(actor, Action.PRESCRIPTION_READ)
    return get_scoped_or_404(_base(), actor, label='Prescription', pk=pk)


def create_prescription(actor, patient_pk, data: dict) -> Prescription:
    authorize(actor, Action.PRESCRIPTION_CREATE)
    with transaction.atomic():
        patient = get_scoped_or_404(Patient.objects.select_for_update(), actor, label='Patient', pk=patient_pk)
        ensure_admissible(patient)
        prescription = Prescription.objects.create(
            tenant_id=patient.tenant_id,
            prescription_id=sequences.generate_id(patient.tenant_id, sequences.PRESCRIPTION),
            patient=patient,
            doctor=actor,
            **data,
        )
        log_action(user=actor, action='prescription_create', object_type='prescription',
                   object_id=prescription.pk, detail={'prescriptionId': prescription.prescription_id})
    logger.info("prescription %s written by user %s", prescription.prescription_id, actor.pk)
    return prescription


def dispense(actor, pk) -> Prescription:
    authorize(actor, Action.PRESCRIPTION_DISPENSE)
    with transaction.atomic():
        prescription = get_scoped_or_404(
            Prescription.objects.select_for_update(), actor, label='Prescription', pk=pk
        )
        if prescription.is_dispensed:
            raise InvalidState('Prescription has already been dispensed')
        prescription.is_dispensed = True
        prescription.dispensed_at = timezone.now()
        prescription.dispensed_by = actor
        prescription.save(update_fields=['is_dispensed', 'dispensed_at', 'dispensed_by', 'updated_at'])
        log_action(user=actor, action='prescription_dispense', object_type='prescription',
                   object_id=prescription.pk)
    return get_scoped_or_404(_base(), actor, label='Prescription', pk=pk)


def prescription_dict(rx: Prescription) -> dict:
    patient = rx.patient
    doctor = rx.doctor
    return {
        'id': rx.id,
        'prescriptionId': rx.prescription_id,
        'patient': {
            'id': patient.id,
            'patientId': patient.patient_id,
            'name': patient.full_name,
            'isDischarged': patient.is_discharged,
        },
        'doctor': {'id': doctor.id, 'name': doctor.get_full_name() or doctor.username} if doctor else None,
        'diagnosis': rx.diagnosis,
        'notes': rx.notes,
        'medicines': rx.medicines,
        'isDispensed': rx.is_dispensed,
        'dispensedAt': rx.dispensed_at.isoformat() if rx.dispensed_at else None,
        'dispensedBy': rx.dispensed_by_id,
        'createdAt': rx.created_at.isoformat() if rx.created_at else None,
    }
