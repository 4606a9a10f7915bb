import itertools

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from hms.models import Hospital, User, UserRole
from hms.roles import Role
from hms.services import tokens
from hms.services.passwords import record_history

PASSWORD = 'Str0ng!Pass'

_seq = itertools.count(1)


@pytest.fixture(autouse=True)
def _fast_hashing_and_clean_cache(settings):
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_hospital(db):
    def make(name='City General Hospital', status=Hospital.Status.ACTIVE, **extra):
        n = next(_seq)
        defaults = {
            'id': f"H{n:04d}",
            'domain': f"hospital{n}.example.org",
            'email': f"contact{n}@hospital{n}.example.org",
            'license_number': f"LIC-{n:05d}",
        }
        defaults.update(extra)
        return Hospital.objects.create(name=name, status=status, **defaults)
    return make


@pytest.fixture
def make_user(db):
    def make(*roles, tenant=None, password=PASSWORD, must_change_password=False, **extra):
        n = next(_seq)
        user = User.objects.create_user(
            username=extra.pop('username', f"user{n}"),
            email=extra.pop('email', f"user{n}@example.org"),
            password=password,
            tenant=tenant,
            must_change_password=must_change_password,
            **extra,
        )
        UserRole.objects.bulk_create([UserRole(user=user, role=role) for role in roles])
        record_history(user)
        return user
    return make


@pytest.fixture
def hospital(make_hospital):
    return make_hospital()


@pytest.fixture
def other_hospital(make_hospital):
    return make_hospital(name='Riverside Medical Centre')


@pytest.fixture
def doctor(make_user, hospital):
    return make_user(Role.DOCTOR, tenant=hospital, first_name='Dana', last_name='Reyes')


@pytest.fixture
def nurse(make_user, hospital):
    return make_user(Role.NURSE, tenant=hospital)


@pytest.fixture
def pharmacist(make_user, hospital):
    return make_user(Role.PHARMACIST, tenant=hospital)


@pytest.fixture
def receptionist(make_user, hospital):
    return make_user(Role.RECEPTIONIST, tenant=hospital)


@pytest.fixture
def hospital_admin(make_user, hospital):
    return make_user(Role.HOSPITAL_ADMIN, tenant=hospital)


@pytest.fixture
def super_admin(make_user):
    return make_user(Role.SUPER_ADMIN)


@pytest.fixture
def client_for():
    def make(user):
        client = APIClient()
        access = tokens.issue_pair(user)['accessToken']
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        return client
    return make


@pytest.fixture
def make_patient(db):
    from hms.services.patients import register_patient

    def make(actor, **data):
        payload = {'first_name': 'Ann', 'last_name': 'Lee', 'phone': '555-0100'}
        payload.update(data)
        return register_patient(actor, payload)
    return make
