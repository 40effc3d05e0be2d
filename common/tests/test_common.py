import pytest
from django.contrib.auth.models import AnonymousUser, Group, User
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError

from common.context import (
    ROLE_DOCTOR,
    ROLE_PATIENT,
    ROLE_RECEPTIONIST,
    SYSTEM,
    Caller,
    caller_from_user,
)
from common.errors import NotFoundError, TicketAllocationFailed
from common.utils import parse_bool


def test_error_payload():
    err = NotFoundError("找不到醫師 3", doctor_id=3)
    assert err.status_code == 404
    assert err.as_dict() == {"error": "not_found", "message": "找不到醫師 3", "details": {"doctor_id": 3}}
    assert TicketAllocationFailed().status_code == 409


def test_caller_str():
    assert str(SYSTEM) == "system"
    assert str(Caller(role=ROLE_DOCTOR, user_id=4)) == "doctor#4"
    assert Caller(role=ROLE_RECEPTIONIST).is_staff_role
    assert not Caller(role=ROLE_PATIENT).is_staff_role


@pytest.mark.django_db
class TestCallerFromUser:
    def test_anonymous(self):
        assert caller_from_user(AnonymousUser()) == Caller(role=ROLE_PATIENT)
        assert caller_from_user(None).role == ROLE_PATIENT

    def test_doctor_wins_over_reception(self, make_user, groups):
        user = make_user("both", "RECEPTION")
        user.groups.add(groups["DOCTOR"])
        assert caller_from_user(user) == Caller(role=ROLE_DOCTOR, user_id=user.pk)

    def test_reception(self, make_user):
        user = make_user("desk", "RECEPTION")
        assert caller_from_user(user).role == ROLE_RECEPTIONIST

    def test_no_group(self, make_user):
        assert caller_from_user(make_user("nobody")).role == ROLE_PATIENT


@pytest.mark.parametrize("value, expected", [("1", True), ("yes", True), (True, True), ("0", False), ("", False), (None, False)])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_parse_bool_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_bool("maybe")


@pytest.mark.django_db
class TestInitRoles:
    def test_creates_groups(self):
        call_command("init_roles")
        assert set(Group.objects.values_list("name", flat=True)) == {"DOCTOR", "RECEPTION", "PATIENT"}

    def test_assign(self):
        User.objects.create_user("frontdesk")
        call_command("init_roles", "--assign", "frontdesk:reception")
        assert User.objects.get(username="frontdesk").groups.filter(name="RECEPTION").exists()

    def test_assign_unknown_user(self):
        with pytest.raises(CommandError):
            call_command("init_roles", "--assign", "ghost:DOCTOR")

    def test_assign_unknown_group(self):
        User.objects.create_user("frontdesk")
        with pytest.raises(CommandError):
            call_command("init_roles", "--assign", "frontdesk:ADMIN")
