"""
Hospital (tenant) registration and platform administration.
"""
from __future__ import annotations

import logging
import secrets

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from hms.errors import Conflict, InvalidState, NotFound, PolicyViolation
from hms.models import EmailOtp, Hospital, UserRole
from hms.roles import Action, Role
from hms.services import notifications, otp, tokens
from hms.services.audit import log_action
from hms.services.gateway import Listing, authorize, list_unscoped
from hms.services.passwords import record_history, validate_password
from hms.services.sequences import hospital_code

logger = logging.getLogger(__name__)

User = get_user_model()

HOSPITAL_LIST = Listing(
    search_fields=('id', 'name', 'email', 'domain', 'license_number'),
    sort_fields={'createdAt': 'created_at', 'name': 'name', 'status': 'status'},
    filters={'status': lambda v: Q(status=str(v).upper())},
)

# action -> (allowed source states, target state)
TRANSITIONS = {
    'approve': ({Hospital.Status.PENDING}, Hospital.Status.ACTIVE),
    'suspend': ({Hospital.Status.ACTIVE}, Hospital.Status.SUSPENDED),
    'reactivate': ({Hospital.Status.SUSPENDED, Hospital.Status.INACTIVE}, Hospital.Status.ACTIVE),
    'deactivate': ({Hospital.Status.PENDING, Hospital.Status.ACTIVE, Hospital.Status.SUSPENDED},
                   Hospital.Status.INACTIVE),
}


def admin_username(domain: str) -> str:
    return f"admin@{domain.lower()}"


def _new_tenant_id(name: str) -> str:
    code = hospital_code(name)
    while True:
        candidate = f"{code}{secrets.randbelow(10000):04d}"
        if not Hospital.objects.filter(pk=candidate).exists():
            return candidate


def register_hospital(data: dict):
    """Create a PENDING hospital and its administrator account.

    The emailed verification code for the administrator address is
    consumed in the same transaction, so a failed registration leaves it
    usable.  Returns ``(hospital, admin_user, warnings)``.
    """
    domain = data['domain'].strip().lower()
    email = data['email'].strip().lower()
    admin_email = data['admin_email'].strip().lower()
    username = admin_username(domain)

    if Hospital.objects.filter(email__iexact=email).exists():
        raise Conflict('Hospital with this email already exists')
    if Hospital.objects.filter(license_number__iexact=data['license_number']).exists():
        raise Conflict('Hospital with this license number already exists')
    if Hospital.objects.filter(domain__iexact=domain).exists():
        raise Conflict('Hospital with this domain already exists')
    if User.objects.filter(Q(email__iexact=admin_email) | Q(username__iexact=username)).exists():
        raise Conflict('Administrator account already exists')

    check = validate_password(data['admin_password'])
    if not check.is_valid:
        raise PolicyViolation(check.errors[0], details={'errors': check.errors})

    with transaction.atomic():
        otp.consume_otp(admin_email, data.get('otp_code', ''), EmailOtp.Purpose.HOSPITAL_REGISTRATION)
        hospital = Hospital.objects.create(
            id=_new_tenant_id(data['name']),
            name=data['name'],
            domain=domain,
            email=email,
            phone=data.get('phone', ''),
            license_number=data['license_number'],
            address=data.get('address', ''),
        )
        admin = User.objects.create_user(
            username=username,
            email=admin_email,
            password=data['admin_password'],
            first_name=data['admin_first_name'],
            last_name=data['admin_last_name'],
            phone=data.get('admin_phone', ''),
            tenant=hospital,
        )
        UserRole.objects.create(user=admin, role=Role.HOSPITAL_ADMIN)
        record_history(admin)
        log_action(user=admin, action='hospital_register', object_type='hospital', object_id=hospital.pk)
    logger.info("hospital %s registered, awaiting approval", hospital.pk)

    warnings = []
    warning = notifications.send_registration_email(
        email, hospital_name=hospital.name, tenant_id=hospital.pk, admin_username=username,
    )
    if warning:
        warnings.append(warning)
    return hospital, admin, warnings


def _with_counts():
    return Hospital.objects.annotate(
        user_count=Count('users', distinct=True),
        patient_count=Count('patients', distinct=True),
        prescription_count=Count('prescriptions', distinct=True),
    )


def list_hospitals(actor, params):
    authorize(actor, Action.HOSPITAL_MANAGE)
    return list_unscoped(_with_counts(), params, HOSPITAL_LIST)


def get_hospital(actor, hospital_id) -> Hospital:
    authorize(actor, Action.HOSPITAL_MANAGE)
    hospital = _with_counts().filter(pk=hospital_id).first()
    if hospital is None:
        raise NotFound('Hospital not found')
    return hospital


def change_status(actor, hospital_id, action: str) -> Hospital:
    authorize(actor, Action.HOSPITAL_MANAGE)
    if action not in TRANSITIONS:
        raise InvalidState(f'Unknown hospital action: {action}')
    sources, target = TRANSITIONS[action]
    now = timezone.now()
    with transaction.atomic():
        hospital = Hospital.objects.select_for_update().filter(pk=hospital_id).first()
        if hospital is None:
            raise NotFound('Hospital not found')
        if hospital.status not in sources:
            raise InvalidState(f'Cannot {action} a hospital that is {hospital.status.lower()}')
        previous = hospital.status
        hospital.status = target
        if action == 'approve':
            hospital.activated_at = now
        elif action == 'suspend':
            hospital.suspended_at = now
        elif action == 'reactivate':
            hospital.suspended_at = None
            hospital.activated_at = hospital.activated_at or now
        hospital.save(update_fields=['status', 'activated_at', 'suspended_at', 'updated_at'])
        if target in (Hospital.Status.SUSPENDED, Hospital.Status.INACTIVE):
            for user in hospital.users.all():
                tokens.revoke_all(user)
        log_action(user=actor, action=f'hospital_{action}', object_type='hospital', object_id=hospital.pk,
                   detail={'from': previous, 'to': target})
    logger.info("hospital %s: %s -> %s", hospital.pk, previous, target)
    return get_hospital(actor, hospital.pk)


def update_hospital(actor, hospital_id, data: dict) -> Hospital:
    """Edit a hospital's contact details; ``data`` holds only supplied fields."""
    authorize(actor, Action.HOSPITAL_MANAGE)
    with transaction.atomic():
        hospital = Hospital.objects.select_for_update().filter(pk=hospital_id).first()
        if hospital is None:
            raise NotFound('Hospital not found')
        if 'email' in data:
            data['email'] = data['email'].strip().lower()
            if Hospital.objects.filter(email__iexact=data['email']).exclude(pk=hospital.pk).exists():
                raise Conflict('Hospital with this email already exists')
        changed = sorted(data)
        for name, value in data.items():
            setattr(hospital, name, value)
        hospital.save(update_fields=changed + ['updated_at'])
        log_action(user=actor, action='hospital_update', object_type='hospital', object_id=hospital.pk,
                   detail={'fields': changed})
    logger.info("hospital %s updated: %s", hospital.pk, ', '.join(changed) or 'no changes')
    return get_hospital(actor, hospital.pk)


def delete_hospital(actor, hospital_id) -> None:
    """Remove a hospital with its users and clinical records."""
    authorize(actor, Action.HOSPITAL_MANAGE)
    with transaction.atomic():
        hospital = Hospital.objects.select_for_update().filter(pk=hospital_id).first()
        if hospital is None:
            raise NotFound('Hospital not found')
        for user in hospital.users.all():
            tokens.revoke_all(user)
        log_action(user=actor, action='hospital_delete', object_type='hospital', object_id=hospital.pk,
                   detail={'name': hospital.name})
        hospital.delete()
    logger.info("hospital %s deleted by user %s", hospital_id, actor.pk)


def hospital_stats(actor) -> list:
    """Active hospitals with their user, patient and prescription counts."""
    authorize(actor, Action.HOSPITAL_MANAGE)
    return list(_with_counts().filter(status=Hospital.Status.ACTIVE).order_by('-created_at'))


def hospital_dict(h: Hospital) -> dict:
    data = {
        'id': h.id,
        'tenantId': h.id,
        'name': h.name,
        'domain': h.domain,
        'email': h.email,
        'phone': h.phone,
        'licenseNumber': h.license_number,
        'address': h.address,
        'status': h.status,
        'activatedAt': h.activated_at.isoformat() if h.activated_at else None,
        'suspendedAt': h.suspended_at.isoformat() if h.suspended_at else None,
        'createdAt': h.created_at.isoformat() if h.created_at else None,
    }
    if hasattr(h, 'user_count'):
        data['userCount'] = h.user_count
        data['patientCount'] = h.patient_count
        data['prescriptionCount'] = h.prescription_count
    return data
