"""
Dashboard counters per role.

Results are cached for ``DASHBOARD_CACHE_SECONDS`` under a key that
includes the role, the hospital and the user, so one tenant never sees
another's numbers.
"""
from __future__ import annotations

from datetime import datetime, time

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Count
from django.utils import timezone

from hms.models import CareNote, Hospital, Patient, Prescription, UserRole, Vital
from hms.roles import Action, Role
from hms.services.gateway import authorize, scoped

User = get_user_model()


def _start_of_day():
    today = timezone.localdate()
    return timezone.make_aware(datetime.combine(today, time.min))


def _cached(role: Role, actor, builder) -> dict:
    key = f"dashboard:{role.value}:{actor.tenant_id or 'platform'}:{actor.pk}"
    data = cache.get(key)
    if data is None:
        data = builder()
        cache.set(key, data, settings.DASHBOARD_CACHE_SECONDS)
    return data


def doctor_stats(actor) -> dict:
    authorize(actor, Action.DASHBOARD_READ)

    def build():
        patients = scoped(Patient.objects.all(), actor)
        mine = scoped(Prescription.objects.filter(doctor=actor), actor)
        return {
            'totalPatients': patients.count(),
            'opdPatients': patients.filter(patient_type=Patient.PatientType.OPD, is_discharged=False).count(),
            'ipdPatients': patients.filter(patient_type=Patient.PatientType.IPD, is_discharged=False).count(),
            'dischargedPatients': patients.filter(is_discharged=True).count(),
            'myPrescriptions': mine.count(),
            'todayPrescriptions': mine.filter(created_at__gte=_start_of_day()).count(),
        }
    return _cached(Role.DOCTOR, actor, build)


def nurse_stats(actor) -> dict:
    authorize(actor, Action.DASHBOARD_READ)

    def build():
        since = _start_of_day()
        return {
            'activePatients': scoped(Patient.objects.filter(is_discharged=False), actor).count(),
            'ipdPatients': scoped(Patient.objects.filter(is_discharged=False,
                                                         patient_type=Patient.PatientType.IPD), actor).count(),
            'vitalsToday': scoped(Vital.objects.filter(recorded_at__gte=since), actor).count(),
            'careNotesToday': scoped(CareNote.objects.filter(created_at__gte=since), actor).count(),
            'pendingPrescriptions': scoped(Prescription.objects.filter(is_dispensed=False), actor).count(),
        }
    return _cached(Role.NURSE, actor, build)


def pharmacist_stats(actor) -> dict:
    authorize(actor, Action.DASHBOARD_READ)

    def build():
        prescriptions = scoped(Prescription.objects.all(), actor)
        return {
            'totalPrescriptions': prescriptions.count(),
            'pendingPrescriptions': prescriptions.filter(is_dispensed=False).count(),
            'dispensedPrescriptions': prescriptions.filter(is_dispensed=True).count(),
            'dispensedToday': prescriptions.filter(dispensed_at__gte=_start_of_day()).count(),
        }
    return _cached(Role.PHARMACIST, actor, build)


def receptionist_stats(actor) -> dict:
    authorize(actor, Action.DASHBOARD_READ)

    def build():
        patients = scoped(Patient.objects.all(), actor)
        return {
            'totalPatients': patients.count(),
            'registeredToday': patients.filter(created_at__gte=_start_of_day()).count(),
            'opdPatients': patients.filter(patient_type=Patient.PatientType.OPD).count(),
            'ipdPatients': patients.filter(patient_type=Patient.PatientType.IPD).count(),
        }
    return _cached(Role.RECEPTIONIST, actor, build)


def hospital_admin_stats(actor) -> dict:
    authorize(actor, Action.DASHBOARD_READ)

    def build():
        staff = scoped(User.objects.all(), actor)
        by_role = (
            UserRole.objects.filter(user__tenant_id=actor.tenant_id)
            .values('role').annotate(n=Count('id')).order_by('role')
        )
        return {
            'totalStaff': staff.count(),
            'activeStaff': staff.filter(is_active=True).count(),
            'pendingPasswordChanges': staff.filter(must_change_password=True).count(),
            'staffByRole': {row['role']: row['n'] for row in by_role},
            'totalPatients': scoped(Patient.objects.all(), actor).count(),
            'totalPrescriptions': scoped(Prescription.objects.all(), actor).count(),
        }
    return _cached(Role.HOSPITAL_ADMIN, actor, build)


def platform_stats(actor) -> dict:
    authorize(actor, Action.PLATFORM_STATS_READ)

    def build():
        by_status = Hospital.objects.values('status').annotate(n=Count('id'))
        counts = {row['status']: row['n'] for row in by_status}
        return {
            'totalHospitals': sum(counts.values()),
            'hospitalsByStatus': {status: counts.get(status, 0) for status in Hospital.Status.values},
            'totalUsers': User.objects.count(),
            'totalPatients': Patient.objects.count(),
            'totalPrescriptions': Prescription.objects.count(),
        }
    return _cached(Role.SUPER_ADMIN, actor, build)
