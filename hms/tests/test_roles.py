import pytest

from hms.errors import Forbidden
from hms.roles import ROLE_ACTIONS, Action, Role, allowed_actions, can_perform, parse_roles, require_role
from hms.services.gateway import authorize


def test_every_role_has_an_action_set():
    assert set(ROLE_ACTIONS) == set(Role)


def test_require_role_is_exact_membership():
    assert require_role({'DOCTOR', 'NURSE'}, 'DOCTOR')
    assert not require_role({'DOCTOR'}, 'DOC')
    assert not require_role({'DOCTOR'}, 'doctor')
    assert not require_role(set(), 'DOCTOR')


def test_super_admin_does_not_inherit_other_roles():
    assert not require_role({Role.SUPER_ADMIN}, Role.HOSPITAL_ADMIN)
    assert not require_role({Role.HOSPITAL_ADMIN}, Role.DOCTOR)
    assert not can_perform({Role.SUPER_ADMIN}, Action.PATIENT_READ)


def test_clinical_roles_have_disjoint_write_actions():
    assert can_perform({Role.DOCTOR}, Action.PRESCRIPTION_CREATE)
    assert not can_perform({Role.NURSE}, Action.PRESCRIPTION_CREATE)
    assert not can_perform({Role.DOCTOR}, Action.PRESCRIPTION_DISPENSE)
    assert can_perform({Role.PHARMACIST}, Action.PRESCRIPTION_DISPENSE)
    assert can_perform({Role.NURSE}, Action.VITAL_RECORD)
    assert not can_perform({Role.RECEPTIONIST}, Action.VITAL_RECORD)


def test_actions_of_multiple_roles_are_combined():
    actions = allowed_actions({'DOCTOR', 'PHARMACIST'})
    assert Action.PRESCRIPTION_CREATE in actions
    assert Action.PRESCRIPTION_DISPENSE in actions


def test_parse_roles_rejects_unknown_names():
    assert parse_roles(['NURSE']) == frozenset({Role.NURSE})
    with pytest.raises(ValueError):
        parse_roles(['JANITOR'])


@pytest.mark.django_db
def test_authorize_raises_forbidden(nurse):
    authorize(nurse, Action.VITAL_RECORD)
    with pytest.raises(Forbidden):
        authorize(nurse, Action.PRESCRIPTION_CREATE)
