from datetime import timedelta

import pytest
from django.contrib.auth import password_validation
from django.core import mail
from django.core.exceptions import ValidationError
from django.utils import timezone
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from hms.errors import (
    InvalidCredential,
    InvalidOrExpiredToken,
    InvalidState,
    NotFound,
    PasswordReused,
    PolicyViolation,
)
from hms.models import PasswordHistory, PasswordResetToken
from hms.roles import Role
from hms.services import passwords, tokens

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('candidate', ['Abcdef1!', 'Zz9@zzzz', 'P@ssw0rd-long-enough'])
def test_valid_passwords_pass(candidate):
    check = passwords.validate_password(candidate)
    assert check.is_valid
    assert check.errors == []


@pytest.mark.parametrize('candidate, message', [
    ('Ab1!', 'Password must be at least 8 characters'),
    ('abcdefg1!', 'Password must contain at least one uppercase letter'),
    ('ABCDEFG1!', 'Password must contain at least one lowercase letter'),
    ('Abcdefgh!', 'Password must contain at least one number'),
    ('Abcdefgh1', 'Password must contain at least one special character'),
    ('Abcdefg1(', 'Password must contain at least one special character'),
])
def test_each_rule_reported(candidate, message):
    check = passwords.validate_password(candidate)
    assert not check.is_valid
    assert check.errors == [message]


def test_all_violations_reported_together():
    check = passwords.validate_password('abc')
    assert check.as_dict() == {
        'isValid': False,
        'errors': [
            'Password must be at least 8 characters',
            'Password must contain at least one uppercase letter',
            'Password must contain at least one number',
            'Password must contain at least one special character',
        ],
    }


def test_temp_passwords_satisfy_policy():
    for _ in range(50):
        temp = passwords.generate_temp_password()
        assert len(temp) == 12
        assert passwords.validate_password(temp).is_valid


def test_change_password_rejects_wrong_old_password(doctor):
    with pytest.raises(InvalidCredential):
        passwords.change_password(doctor, 'Wr0ng!Pass', 'N3w!Password')
    assert PasswordHistory.objects.filter(user=doctor).count() == 1


def test_change_password_checks_old_password_before_policy(doctor):
    with pytest.raises(InvalidCredential):
        passwords.change_password(doctor, 'Wr0ng!Pass', 'weak')


def test_change_password_rejects_weak_password(doctor):
    with pytest.raises(PolicyViolation) as exc:
        passwords.change_password(doctor, PASSWORD, 'weakpass')
    assert 'Password must contain at least one uppercase letter' in exc.value.details['errors']


def test_change_password_rejects_current_password(doctor):
    with pytest.raises(PasswordReused):
        passwords.change_password(doctor, PASSWORD, PASSWORD)


def test_only_last_three_passwords_are_checked(doctor):
    history = [PASSWORD, 'Second!Pass2', 'Third!Pass3', 'Fourth!Pass4']
    for old, new in zip(history, history[1:]):
        passwords.change_password(doctor, old, new)
        doctor.refresh_from_db()

    # PASSWORD is now the 4th most recent entry and may be used again
    for recent in history[1:]:
        with pytest.raises(PasswordReused):
            passwords.change_password(doctor, 'Fourth!Pass4', recent)
    passwords.change_password(doctor, 'Fourth!Pass4', PASSWORD)
    assert PasswordHistory.objects.filter(user=doctor).count() == 5


def test_history_stores_hashes_not_plaintext(doctor):
    passwords.change_password(doctor, PASSWORD, 'N3w!Password')
    hashes = list(PasswordHistory.objects.filter(user=doctor).values_list('password_hash', flat=True))
    assert 'N3w!Password' not in hashes
    assert all(h.startswith('md5$') for h in hashes)


def test_history_entries_cannot_be_edited(doctor):
    entry = PasswordHistory.objects.filter(user=doctor).first()
    entry.password_hash = 'tampered'
    with pytest.raises(InvalidState):
        entry.save()


def test_successful_change_revokes_tokens_and_clears_flag(make_user, hospital):
    user = make_user(Role.NURSE, tenant=hospital, must_change_password=True)
    tokens.issue_pair(user)
    tokens.issue_pair(user)

    passwords.change_password(user, PASSWORD, 'N3w!Password')

    user.refresh_from_db()
    assert user.must_change_password is False
    assert user.check_password('N3w!Password')
    assert PasswordHistory.objects.filter(user=user).count() == 2
    outstanding = OutstandingToken.objects.filter(user=user)
    assert outstanding.count() == 2
    assert BlacklistedToken.objects.filter(token__user=user).count() == 2


def test_failed_change_leaves_tokens_alone(doctor):
    tokens.issue_pair(doctor)
    with pytest.raises(PasswordReused):
        passwords.change_password(doctor, PASSWORD, PASSWORD)
    assert not BlacklistedToken.objects.filter(token__user=doctor).exists()


def test_force_password_change_same_tenant(hospital_admin, doctor):
    tokens.issue_pair(doctor)
    passwords.force_password_change(hospital_admin, doctor.pk)
    doctor.refresh_from_db()
    assert doctor.must_change_password is True
    assert BlacklistedToken.objects.filter(token__user=doctor).count() == 1


def test_force_password_change_other_tenant_is_not_found(hospital_admin, make_user, other_hospital):
    stranger = make_user(Role.DOCTOR, tenant=other_hospital)
    with pytest.raises(NotFound):
        passwords.force_password_change(hospital_admin, stranger.pk)
    stranger.refresh_from_db()
    assert stranger.must_change_password is False


def test_reset_request_for_unknown_email_sends_nothing():
    message = passwords.request_password_reset('nobody@example.org')
    assert message == passwords.RESET_REQUEST_MESSAGE
    assert mail.outbox == []
    assert not PasswordResetToken.objects.exists()


def test_reset_request_emails_a_link(doctor):
    message = passwords.request_password_reset(doctor.email.upper())
    assert message == passwords.RESET_REQUEST_MESSAGE
    assert len(mail.outbox) == 1
    assert '/auth/reset-password?token=' in mail.outbox[0].body
    token = PasswordResetToken.objects.get(user=doctor)
    assert token.status == 'issued'
    assert token.expires_at - timezone.now() <= timedelta(hours=1)


def test_reset_with_token_changes_password_and_consumes_token(doctor):
    tokens.issue_pair(doctor)
    raw = passwords.issue_reset_token(doctor)

    passwords.reset_password_with_token(raw, 'R3set!Password')

    doctor.refresh_from_db()
    assert doctor.check_password('R3set!Password')
    token = PasswordResetToken.objects.get(user=doctor)
    assert token.is_used and token.used_at is not None
    assert token.status == 'used'
    assert BlacklistedToken.objects.filter(token__user=doctor).count() == 1
    with pytest.raises(InvalidOrExpiredToken):
        passwords.reset_password_with_token(raw, 'An0ther!Password')


def test_new_reset_token_supersedes_previous(doctor):
    first = passwords.issue_reset_token(doctor)
    second = passwords.issue_reset_token(doctor)

    with pytest.raises(InvalidOrExpiredToken):
        passwords.reset_password_with_token(first, 'R3set!Password')
    passwords.reset_password_with_token(second, 'R3set!Password')

    statuses = sorted(t.status for t in PasswordResetToken.objects.filter(user=doctor))
    assert statuses == ['superseded', 'used']


def test_expired_reset_token_is_rejected(doctor):
    raw = passwords.issue_reset_token(doctor)
    PasswordResetToken.objects.filter(user=doctor).update(expires_at=timezone.now() - timedelta(seconds=1))
    with pytest.raises(InvalidOrExpiredToken):
        passwords.reset_password_with_token(raw, 'R3set!Password')
    doctor.refresh_from_db()
    assert doctor.check_password(PASSWORD)


def test_unknown_reset_token_is_rejected():
    with pytest.raises(InvalidOrExpiredToken):
        passwords.reset_password_with_token('not-a-token', 'R3set!Password')


def test_reset_with_reused_password_keeps_token_usable(doctor):
    raw = passwords.issue_reset_token(doctor)
    with pytest.raises(PasswordReused):
        passwords.reset_password_with_token(raw, PASSWORD)
    assert PasswordResetToken.objects.get(user=doctor).status == 'issued'
    passwords.reset_password_with_token(raw, 'R3set!Password')


# ---------------------------------------------------------------------
# Django password validators
# ---------------------------------------------------------------------
def test_policy_is_enforced_by_django_validators(doctor):
    with pytest.raises(ValidationError) as exc:
        password_validation.validate_password('a', user=doctor)
    assert exc.value.messages == [
        'Password must be at least 8 characters',
        'Password must contain at least one uppercase letter',
        'Password must contain at least one number',
        'Password must contain at least one special character',
    ]
    password_validation.validate_password('Abcdef1!', user=doctor)


def test_validators_publish_help_texts():
    help_texts = password_validation.password_validators_help_texts()
    assert len(help_texts) == 5
    assert 'Your password must contain at least 8 characters.' in help_texts


def test_validators_follow_settings(settings):
    settings.AUTH_PASSWORD_VALIDATORS = [
        {'NAME': 'hms.validators.MinimumLengthValidator', 'OPTIONS': {'min_length': 12}},
    ]
    check = passwords.validate_password('Abcdef1!')
    assert check.errors == ['Password must be at least 12 characters']
    assert passwords.validate_password('abcdefghijkl').is_valid


# ---------------------------------------------------------------------
# Atomicity of password changes
# ---------------------------------------------------------------------
@pytest.fixture
def failing_revocation(monkeypatch):
    def revoke_all(user):
        raise RuntimeError('token store unavailable')
    monkeypatch.setattr(tokens, 'revoke_all', revoke_all)


@pytest.mark.django_db(transaction=True)
def test_change_password_rolls_back_when_revocation_fails(make_user, hospital, failing_revocation):
    user = make_user(Role.NURSE, tenant=hospital, must_change_password=True)
    with pytest.raises(RuntimeError):
        passwords.change_password(user, PASSWORD, 'N3w!Password')

    user.refresh_from_db()
    assert user.check_password(PASSWORD)
    assert user.must_change_password is True
    assert PasswordHistory.objects.filter(user=user).count() == 1


@pytest.mark.django_db(transaction=True)
def test_reset_rolls_back_when_revocation_fails(make_user, hospital, failing_revocation):
    user = make_user(Role.NURSE, tenant=hospital, must_change_password=True)
    raw = passwords.issue_reset_token(user)
    with pytest.raises(RuntimeError):
        passwords.reset_password_with_token(raw, 'R3set!Password')

    user.refresh_from_db()
    assert user.check_password(PASSWORD)
    assert user.must_change_password is True
    assert PasswordHistory.objects.filter(user=user).count() == 1
    token = PasswordResetToken.objects.get(user=user)
    assert token.status == 'issued'
    assert token.used_at is None
