"""
Patient registry and bedside records (vitals, care notes).

All reads and writes are confined to the caller's hospital via
:mod:`hms.services.gateway`.  A discharged patient stays readable but no
longer accepts new vitals, care notes or prescriptions.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from hms.errors import InvalidState, ValidationFailed
from hms.models import CareNote, Patient, Vital
from hms.roles import Action
from hms.services import sequences
from hms.services.audit import log_action
from hms.services.gateway import Listing, authorize, bool_param, get_scoped_or_404, list_scoped, tenant_of

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ('phone', 'email', 'address', 'city', 'state', 'pincode', 'photo_url')


def _patient_type_filter(value):
    value = str(value).upper()
    if value not in Patient.PatientType.values:
        raise ValidationFailed(details={'patientType': [f'Unknown patient type: {value}']})
    return Q(patient_type=value)


PATIENT_LIST = Listing(
    search_fields=('first_name', 'last_name', 'patient_id', 'phone'),
    sort_fields={
        'createdAt': 'created_at',
        'firstName': 'first_name',
        'lastName': 'last_name',
        'patientId': 'patient_id',
    },
    filters={
        'patientType': _patient_type_filter,
        'isDischarged': lambda v: Q(is_discharged=bool_param(v)),
        'department': lambda v: Q(department__iexact=v),
    },
)


def ensure_admissible(patient: Patient) -> None:
    if patient.is_discharged:
        raise InvalidState('Patient has been discharged')


def get_patient(actor, pk) -> Patient:
    authorize(actor, Action.PATIENT_READ)
    qs = Patient.objects.select_related('created_by', 'discharged_by')
    return get_scoped_or_404(qs, actor, label='Patient', pk=pk)


def list_patients(actor, params):
    authorize(actor, Action.PATIENT_READ)
    return list_scoped(Patient.objects.all(), actor, params, PATIENT_LIST)


def register_patient(actor, data: dict) -> Patient:
    authorize(actor, Action.PATIENT_REGISTER)
    tenant_id = tenant_of(actor)
    with transaction.atomic():
        patient = Patient.objects.create(
            tenant_id=tenant_id,
            patient_id=sequences.generate_id(tenant_id, sequences.PATIENT),
            created_by=actor,
            **data,
        )
        log_action(user=actor, action='patient_register', object_type='patient', object_id=patient.pk,
                   detail={'patientId': patient.patient_id})
    logger.info("patient %s registered by user %s", patient.patient_id, actor.pk)
    return patient


def update_patient_contact(actor, pk, data: dict) -> Patient:
    authorize(actor, Action.PATIENT_UPDATE)
    changes = {k: v for k, v in data.items() if k in CONTACT_FIELDS}
    with transaction.atomic():
        patient = get_scoped_or_404(Patient.objects.select_for_update(), actor, label='Patient', pk=pk)
        for name, value in changes.items():
            setattr(patient, name, value)
        patient.save(update_fields=[*changes, 'updated_at'])
        log_action(user=actor, action='patient_update', object_type='patient', object_id=patient.pk,
                   detail={'fields': sorted(changes)})
    return patient


def discharge_patient(actor, pk, notes: str = '') -> Patient:
    authorize(actor, Action.PATIENT_DISCHARGE)
    with transaction.atomic():
        patient = get_scoped_or_404(Patient.objects.select_for_update(), actor, label='Patient', pk=pk)
        if patient.is_discharged:
            raise InvalidState('Patient is already discharged')
        patient.is_discharged = True
        patient.discharged_at = timezone.now()
        patient.discharged_by = actor
        patient.discharge_notes = notes
        patient.save(update_fields=['is_discharged', 'discharged_at', 'discharged_by', 'discharge_notes',
                                    'updated_at'])
        log_action(user=actor, action='patient_discharge', object_type='patient', object_id=patient.pk)
    return patient


def list_vitals(actor, patient_pk, limit: int = 50):
    authorize(actor, Action.VITAL_READ)
    patient = get_scoped_or_404(Patient.objects.all(), actor, label='Patient', pk=patient_pk)
    return patient, list(patient.vitals.select_related('recorded_by')[:limit])


def record_vital(actor, patient_pk, data: dict) -> Vital:
    authorize(actor, Action.VITAL_RECORD)
    with transaction.atomic():
        patient = get_scoped_or_404(Patient.objects.select_for_update(), actor, label='Patient', pk=patient_pk)
        ensure_admissible(patient)
        vital = Vital.objects.create(tenant_id=patient.tenant_id, patient=patient, recorded_by=actor, **data)
    return vital


def add_care_note(actor, patient_pk, note: str) -> CareNote:
    authorize(actor, Action.CARE_NOTE_ADD)
    with transaction.atomic():
        patient = get_scoped_or_404(Patient.objects.select_for_update(), actor, label='Patient', pk=patient_pk)
        ensure_admissible(patient)
        care_note = CareNote.objects.create(tenant_id=patient.tenant_id, patient=patient, nurse=actor, note=note)
    return care_note


# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------
def _name(user):
    if user is None:
        return None
    return {'id': user.id, 'name': user.get_full_name() or user.username}


def _iso(value):
    return value.isoformat() if value else None


def patient_dict(p: Patient) -> dict:
    return {
        'id': p.id,
        'patientId': p.patient_id,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'dateOfBirth': _iso(p.date_of_birth),
        'gender': p.gender,
        'bloodGroup': p.blood_group,
        'email': p.email,
        'phone': p.phone,
        'address': p.address,
        'city': p.city,
        'state': p.state,
        'pincode': p.pincode,
        'emergencyContact': {
            'name': p.emergency_contact_name,
            'phone': p.emergency_contact_phone,
            'relation': p.emergency_contact_relation,
        },
        'patientType': p.patient_type,
        'department': p.department,
        'photoUrl': p.photo_url,
        'isDischarged': p.is_discharged,
        'dischargedAt': _iso(p.discharged_at),
        'dischargeNotes': p.discharge_notes,
        'tenantId': p.tenant_id,
        'createdAt': _iso(p.created_at),
    }


def vital_dict(v: Vital) -> dict:
    return {
        'id': v.id,
        'patient': v.patient_id,
        'bloodPressureSystolic': v.blood_pressure_systolic,
        'bloodPressureDiastolic': v.blood_pressure_diastolic,
        'temperature': float(v.temperature) if v.temperature is not None else None,
        'pulse': v.pulse,
        'spo2': v.spo2,
        'weight': float(v.weight) if v.weight is not None else None,
        'notes': v.notes,
        'recordedBy': _name(v.recorded_by),
        'recordedAt': _iso(v.recorded_at),
    }


def care_note_dict(n: CareNote) -> dict:
    return {
        'id': n.id,
        'patient': n.patient_id,
        'note': n.note,
        'nurse': _name(n.nurse),
        'createdAt': _iso(n.created_at),
    }
