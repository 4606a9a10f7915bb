"""
Hospital registration, platform administration and staff management.
"""
import re
from datetime import timedelta
from io import StringIO

import pytest
from django.contrib import admin
from django.core import mail
from django.core.management import CommandError, call_command
from django.test import RequestFactory
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken

from hms.admin import UserAdmin
from hms.models import AuditEvent, EmailOtp, Hospital, Patient, PasswordHistory, Prescription, User
from hms.roles import Role
from hms.services import otp, tokens
from hms.services.prescriptions import create_prescription

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db

REGISTRATION = {
    'name': 'Sunrise Care Clinic',
    'domain': 'sunrise.example.org',
    'email': 'info@sunrise.example.org',
    'phone': '555-0110',
    'licenseNumber': 'LIC-SUN-1',
    'address': '1 Main Street',
    'adminFirstName': 'Sam',
    'adminLastName': 'Ortiz',
    'adminEmail': 'sam@sunrise.example.org',
    'adminPassword': 'Adm1n!Secret',
}


def register(**overrides):
    data = {**REGISTRATION, **overrides}
    if 'otpCode' not in data:
        data['otpCode'] = otp.issue_otp(data['adminEmail'])
    return APIClient().post('/api/hospitals/register', data, format='json')


# ---------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------
def test_registration_creates_pending_hospital_and_admin():
    r = register()
    assert r.status_code == 201
    hospital = r.data['hospital']
    assert hospital['status'] == 'PENDING'
    assert re.fullmatch(r'SCC\d{4}', hospital['tenantId'])
    assert r.data['adminUsername'] == 'admin@sunrise.example.org'

    admin = User.objects.get(username='admin@sunrise.example.org')
    assert admin.tenant_id == hospital['tenantId']
    assert admin.roles == {Role.HOSPITAL_ADMIN}
    assert PasswordHistory.objects.filter(user=admin).count() == 1
    assert len(mail.outbox) == 1


def test_pending_hospital_admin_cannot_sign_in():
    register()
    r = APIClient().post('/api/auth/login',
                         {'identifier': 'admin@sunrise.example.org', 'password': 'Adm1n!Secret'}, format='json')
    assert r.status_code == 403


@pytest.mark.parametrize('overrides', [
    {'adminEmail': 'other@sunrise.example.org'},
    {'email': 'other@sunrise.example.org', 'adminEmail': 'x@sunrise.example.org'},
    {'email': 'new@x.example.org', 'licenseNumber': 'LIC-2', 'domain': 'other.example.org',
     'adminEmail': 'sam@sunrise.example.org'},
])
def test_registration_conflicts(overrides):
    assert register().status_code == 201
    r = register(**overrides)
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'
    assert Hospital.objects.count() == 1


def test_registration_rejects_weak_admin_password():
    r = register(adminPassword='password')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'policy_violation'
    assert not Hospital.objects.exists()


def test_registration_validates_input():
    r = register(domain='not a domain', email='nope')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_failed'
    assert set(r.data['error']['details']) == {'domain', 'email'}


# ---------------------------------------------------------------------
# Email verification codes
# ---------------------------------------------------------------------
def test_send_otp_emails_a_code_that_completes_registration():
    r = APIClient().post('/api/hospitals/send-otp', {'adminEmail': 'Sam@Sunrise.example.org'}, format='json')
    assert r.status_code == 200
    assert r.data['warnings'] == []
    assert mail.outbox[0].to == ['sam@sunrise.example.org']
    code = re.search(r'\b(\d{6})\b', mail.outbox[0].body).group(1)

    assert register(otpCode=code).status_code == 201
    issued = EmailOtp.objects.get(email='sam@sunrise.example.org')
    assert issued.is_used and issued.used_at is not None
    assert issued.code_hash != code


def test_send_otp_validates_email():
    r = APIClient().post('/api/hospitals/send-otp', {'adminEmail': 'nope'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_failed'
    assert not EmailOtp.objects.exists()


@pytest.mark.parametrize('code', ['', '12345', 'abcdef'])
def test_registration_requires_a_six_digit_code(code):
    r = register(otpCode=code)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_failed'
    assert 'otpCode' in r.data['error']['details']


def test_wrong_code_is_rejected():
    code = otp.issue_otp(REGISTRATION['adminEmail'])
    r = register(otpCode=f'{(int(code) + 1) % 1000000:06d}')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_or_expired_token'
    assert not Hospital.objects.exists()
    assert register(otpCode=code).status_code == 201


def test_code_for_another_address_is_rejected():
    code = otp.issue_otp('someone@else.example.org')
    r = register(otpCode=code)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_or_expired_token'


def test_expired_code_is_rejected():
    code = otp.issue_otp(REGISTRATION['adminEmail'])
    EmailOtp.objects.update(expires_at=timezone.now() - timedelta(seconds=1))
    r = register(otpCode=code)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_or_expired_token'
    assert not Hospital.objects.exists()


def test_new_code_supersedes_previous():
    first = otp.issue_otp(REGISTRATION['adminEmail'])
    second = otp.issue_otp(REGISTRATION['adminEmail'])
    while second == first:
        second = otp.issue_otp(REGISTRATION['adminEmail'])

    assert register(otpCode=first).status_code == 400
    assert register(otpCode=second).status_code == 201


def test_code_cannot_be_reused():
    from hms.errors import InvalidOrExpiredToken
    code = otp.issue_otp(REGISTRATION['adminEmail'])
    assert register(otpCode=code).status_code == 201
    with pytest.raises(InvalidOrExpiredToken):
        otp.consume_otp(REGISTRATION['adminEmail'], code)


def test_failed_registration_keeps_code_usable(hospital):
    code = otp.issue_otp(REGISTRATION['adminEmail'])
    assert register(otpCode=code, adminPassword='password').status_code == 400
    assert register(otpCode=code, licenseNumber=hospital.license_number).status_code == 409
    assert EmailOtp.objects.filter(is_used=False).count() == 1
    assert register(otpCode=code).status_code == 201



# ---------------------------------------------------------------------
# Platform administration
# ---------------------------------------------------------------------
def test_super_admin_approves_hospital(client_for, super_admin):
    tenant_id = register().data['hospital']['tenantId']
    client = client_for(super_admin)

    r = client.get('/api/admin/hospitals', {'status': 'pending'})
    assert [h['id'] for h in r.data['hospitals']] == [tenant_id]

    r = client.post(f'/api/admin/hospitals/{tenant_id}/status', {'action': 'approve'}, format='json')
    assert r.status_code == 200
    assert r.data['hospital']['status'] == 'ACTIVE'
    assert r.data['hospital']['activatedAt'] is not None
    assert r.data['hospital']['userCount'] == 1

    login = APIClient().post('/api/auth/login',
                             {'identifier': 'sam@sunrise.example.org', 'password': 'Adm1n!Secret'}, format='json')
    assert login.status_code == 200


def test_invalid_status_transition(client_for, super_admin, hospital):
    r = client_for(super_admin).post(f'/api/admin/hospitals/{hospital.pk}/status', {'action': 'approve'},
                                     format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_state'


def test_unknown_hospital_is_not_found(client_for, super_admin):
    r = client_for(super_admin).get('/api/admin/hospitals/NOPE0000')
    assert r.status_code == 404


def test_suspension_revokes_sessions_and_blocks_access(client_for, super_admin, hospital, doctor):
    tokens.issue_pair(doctor)
    doctor_client = client_for(doctor)
    assert doctor_client.get('/api/doctor/dashboard').status_code == 200

    r = client_for(super_admin).post(f'/api/admin/hospitals/{hospital.pk}/status', {'action': 'suspend'},
                                     format='json')
    assert r.status_code == 200
    assert r.data['hospital']['status'] == 'SUSPENDED'
    assert BlacklistedToken.objects.filter(token__user=doctor).count() == 2
    assert doctor_client.get('/api/doctor/dashboard').status_code == 401
    assert AuditEvent.objects.filter(action='hospital_suspend', object_id=hospital.pk).exists()


def test_hospital_admin_cannot_use_platform_endpoints(client_for, hospital_admin):
    assert client_for(hospital_admin).get('/api/admin/hospitals').status_code == 403


def test_platform_users_can_be_narrowed_by_tenant(client_for, super_admin, doctor, nurse, make_user,
                                                   other_hospital):
    make_user(Role.DOCTOR, tenant=other_hospital)
    client = client_for(super_admin)

    r = client.get('/api/admin/users')
    assert r.data['pagination']['total'] == 4

    r = client.get('/api/admin/users', {'tenantId': doctor.tenant_id})
    assert {u['id'] for u in r.data['users']} == {doctor.pk, nurse.pk}

    r = client.get('/api/admin/users', {'role': 'DOCTOR'})
    assert r.data['pagination']['total'] == 2

    r = client.get('/api/admin/users', {'role': 'JANITOR'})
    assert r.status_code == 400


def test_platform_dashboard(client_for, super_admin, hospital, make_hospital):
    make_hospital(status=Hospital.Status.PENDING)
    r = client_for(super_admin).get('/api/admin/dashboard')
    assert r.status_code == 200
    stats = r.data['stats']
    assert stats['totalHospitals'] == 2
    assert stats['hospitalsByStatus']['ACTIVE'] == 1
    assert stats['hospitalsByStatus']['PENDING'] == 1
    assert stats['totalUsers'] == 1


def test_super_admin_updates_hospital(client_for, super_admin, hospital):
    r = client_for(super_admin).patch(f'/api/admin/hospitals/{hospital.pk}',
                                      {'name': 'City General', 'email': 'Desk@City.example.org'}, format='json')
    assert r.status_code == 200
    assert r.data['hospital']['name'] == 'City General'
    assert r.data['hospital']['email'] == 'desk@city.example.org'
    assert r.data['hospital']['domain'] == hospital.domain
    hospital.refresh_from_db()
    assert hospital.name == 'City General'
    assert AuditEvent.objects.filter(action='hospital_update', object_id=hospital.pk).exists()


def test_hospital_update_email_conflict(client_for, super_admin, hospital, other_hospital):
    r = client_for(super_admin).patch(f'/api/admin/hospitals/{hospital.pk}', {'email': other_hospital.email},
                                      format='json')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'


@pytest.mark.parametrize('payload', [{'name': 'A'}, {'email': 'nope'}, {}])
def test_hospital_update_validates_input(client_for, super_admin, hospital, payload):
    r = client_for(super_admin).patch(f'/api/admin/hospitals/{hospital.pk}', payload, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_failed'


def test_super_admin_deletes_hospital_with_its_records(client_for, super_admin, hospital, other_hospital,
                                                        doctor, make_user, make_patient):
    patient = make_patient(doctor)
    create_prescription(doctor, patient.pk, {'diagnosis': 'Seasonal flu', 'medicines': []})
    outsider = make_user(Role.DOCTOR, tenant=other_hospital)

    r = client_for(super_admin).delete(f'/api/admin/hospitals/{hospital.pk}')
    assert r.status_code == 200
    assert not Hospital.objects.filter(pk=hospital.pk).exists()
    assert not User.objects.filter(pk=doctor.pk).exists()
    assert not Patient.objects.exists()
    assert not Prescription.objects.exists()
    assert User.objects.filter(pk=outsider.pk).exists()
    assert AuditEvent.objects.filter(action='hospital_delete', object_id=hospital.pk).exists()


def test_hospital_delete_requires_platform_role(client_for, super_admin, hospital_admin, hospital):
    assert client_for(hospital_admin).delete(f'/api/admin/hospitals/{hospital.pk}').status_code == 403
    assert client_for(super_admin).delete('/api/admin/hospitals/NOPE0000').status_code == 404
    assert Hospital.objects.filter(pk=hospital.pk).exists()


def test_hospital_stats_lists_active_hospitals(client_for, super_admin, hospital, doctor, make_hospital,
                                               make_patient):
    make_hospital(status=Hospital.Status.PENDING)
    patient = make_patient(doctor)
    create_prescription(doctor, patient.pk, {'diagnosis': 'Seasonal flu', 'medicines': []})

    r = client_for(super_admin).get('/api/admin/hospitals/stats')
    assert r.status_code == 200
    assert [h['id'] for h in r.data['hospitals']] == [hospital.pk]
    stats = r.data['hospitals'][0]
    assert (stats['userCount'], stats['patientCount'], stats['prescriptionCount']) == (1, 1, 1)



# ---------------------------------------------------------------------
# Staff management
# ---------------------------------------------------------------------
STAFF = {'firstName': 'Lee', 'lastName': 'Park', 'email': 'lee.park@example.org', 'roles': ['NURSE']}


def test_admin_creates_staff(client_for, hospital_admin):
    r = client_for(hospital_admin).post('/api/hospital/users', STAFF, format='json')
    assert r.status_code == 201
    assert r.data['warnings'] == []
    user = User.objects.get(pk=r.data['user']['id'])
    assert user.tenant_id == hospital_admin.tenant_id
    assert user.must_change_password
    assert user.roles == {Role.NURSE}
    assert user.check_password(r.data['tempPassword'])
    assert mail.outbox[0].to == ['lee.park@example.org']


def test_duplicate_staff_email_conflicts(client_for, hospital_admin):
    client = client_for(hospital_admin)
    assert client.post('/api/hospital/users', STAFF, format='json').status_code == 201
    r = client.post('/api/hospital/users', {**STAFF, 'firstName': 'Leo'}, format='json')
    assert r.status_code == 409


@pytest.mark.parametrize('roles', [['JANITOR'], ['HOSPITAL_ADMIN'], ['SUPER_ADMIN'], []])
def test_staff_roles_are_restricted(client_for, hospital_admin, roles):
    r = client_for(hospital_admin).post('/api/hospital/users', {**STAFF, 'roles': roles}, format='json')
    assert r.status_code == 400
    assert not User.objects.filter(email='lee.park@example.org').exists()


def test_staff_list_is_scoped(client_for, hospital_admin, doctor, make_user, other_hospital):
    make_user(Role.DOCTOR, tenant=other_hospital)
    r = client_for(hospital_admin).get('/api/hospital/users')
    assert {u['id'] for u in r.data['users']} == {hospital_admin.pk, doctor.pk}


def test_admin_removes_staff(client_for, hospital_admin, doctor):
    client = client_for(hospital_admin)
    r = client.delete(f'/api/hospital/users/{doctor.pk}')
    assert r.status_code == 200
    assert not User.objects.filter(pk=doctor.pk).exists()

    r = client.delete(f'/api/hospital/users/{hospital_admin.pk}')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_state'


def test_user_cannot_change_hospital(doctor, other_hospital):
    from hms.errors import InvalidState
    doctor.tenant = other_hospital
    with pytest.raises(InvalidState):
        doctor.save()


def test_admin_site_locks_user_hospital(super_admin, doctor):
    request = RequestFactory().get('/admin/')
    request.user = super_admin
    model_admin = UserAdmin(User, admin.site)

    assert 'tenant' not in model_admin.get_readonly_fields(request)
    assert 'tenant' in model_admin.get_readonly_fields(request, doctor)
    assert 'tenant' not in model_admin.get_form(request, doctor).base_fields



# ---------------------------------------------------------------------
# Management command
# ---------------------------------------------------------------------
def test_ensure_super_admin_is_idempotent():
    out = StringIO()
    call_command('ensure_super_admin', '--username', 'root', '--email', 'root@example.org',
                 '--password', PASSWORD, stdout=out)
    assert 'created: root' in out.getvalue()
    call_command('ensure_super_admin', '--username', 'root', '--password', PASSWORD, stdout=out)
    assert 'already exists' in out.getvalue()

    user = User.objects.get(username='root')
    assert user.tenant_id is None
    assert user.roles == {Role.SUPER_ADMIN}
    assert not user.must_change_password


def test_ensure_super_admin_generates_password():
    out = StringIO()
    call_command('ensure_super_admin', '--username', 'root', '--email', 'root@example.org',
                 '--password', '', stdout=out)
    temp = re.search(r'temporary password: (\S+)', out.getvalue()).group(1)
    user = User.objects.get(username='root')
    assert user.check_password(temp)
    assert user.must_change_password


def test_ensure_super_admin_rejects_weak_password():
    with pytest.raises(CommandError):
        call_command('ensure_super_admin', '--username', 'root', '--password', 'weak', stdout=StringIO())
    assert not User.objects.filter(username='root').exists()


def test_healthz(client):
    r = client.get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}
