"""
Human readable per-hospital identifiers such as ``CGH-P-0001``.

The counter lives in a :class:`~hms.models.TenantSequence` row that is
locked and incremented inside the caller's transaction, so concurrent
registrations for the same hospital never draw the same number.  The
display id columns also carry a unique constraint per tenant.
"""
from __future__ import annotations

import re

from django.db import transaction
from django.db.models import F

from hms.models import Hospital, Patient, Prescription, TenantSequence

PATIENT = 'P'
PRESCRIPTION = 'RX'

# kind tag -> (model, display id field) used to seed a new counter
_SOURCES = {
    PATIENT: (Patient, 'patient_id'),
    PRESCRIPTION: (Prescription, 'prescription_id'),
}

SEQUENCE_WIDTH = 4
CODE_LENGTH = 4
FALLBACK_CODE = 'H'

ID_PATTERN = re.compile(r'^[A-Z]{1,4}-(P|RX)-\d{4,}$')


def hospital_code(name: str) -> str:
    """First letter of each word, uppercased, at most four letters."""
    letters = []
    for word in (name or '').split():
        initial = next((c for c in word if c.isascii() and c.isalpha()), None)
        if initial:
            letters.append(initial.upper())
    return ''.join(letters)[:CODE_LENGTH] or FALLBACK_CODE


def format_id(code: str, kind: str, value: int) -> str:
    return f"{code}-{kind}-{value:0{SEQUENCE_WIDTH}d}"


def next_value(tenant_id: str, kind: str) -> int:
    if kind not in _SOURCES:
        raise ValueError(f"unknown sequence kind: {kind!r}")
    with transaction.atomic():
        seq = TenantSequence.objects.select_for_update().filter(tenant_id=tenant_id, kind=kind).first()
        if seq is None:
            model, _ = _SOURCES[kind]
            seed = model.objects.filter(tenant_id=tenant_id).count()
            seq, _ = TenantSequence.objects.get_or_create(
                tenant_id=tenant_id, kind=kind, defaults={'last_value': seed}
            )
            seq = TenantSequence.objects.select_for_update().get(pk=seq.pk)
        TenantSequence.objects.filter(pk=seq.pk).update(last_value=F('last_value') + 1)
        seq.refresh_from_db(fields=['last_value'])
        return seq.last_value


def generate_id(tenant_id: str, kind: str) -> str:
    hospital = Hospital.objects.only('name').get(pk=tenant_id)
    return format_id(hospital_code(hospital.name), kind, next_value(tenant_id, kind))
