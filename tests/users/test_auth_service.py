from __future__ import annotations

import pytest

from src.classsync.classsync.core.enums import Role
from src.classsync.classsync.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from src.classsync.classsync.users.model import User
from src.classsync.classsync.users.service import AuthService, UserService


def test_authenticate_returns_session_user(users):
    user = AuthService(users).authenticate(Role.STUDENT, " S1 ", "student123")
    assert (user.user_id, user.role, user.identifier) == (4, Role.STUDENT, "S1")
    assert (user.branch, user.year, user.section) == ("CSE", 3, "A")


@pytest.mark.parametrize(
    "role,identifier,secret",
    [
        (Role.STUDENT, "S1", "wrong"),
        (Role.FACULTY, "S1", "student123"),  # right secret, wrong role
        (Role.STUDENT, "nobody", "student123"),
        ("janitor", "S1", "student123"),
    ],
)
def test_authenticate_failures_share_one_message(users, role, identifier, secret):
    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        AuthService(users).authenticate(role, identifier, secret)


def test_placeholder_hash_is_a_failed_login(users):
    users._users[99] = User(99, Role.FACULTY, "Legacy", "FAC099", "not-a-real-hash")
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(Role.FACULTY, "FAC099", "anything")


def test_inactive_accounts_cannot_log_in(users):
    users._users[98] = User(98, Role.FACULTY, "Retired", "FAC098", users.get_by_id(2).password_hash, is_active=False)
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(Role.FACULTY, "FAC098", "faculty123")


def test_create_student_account(users):
    svc = UserService(users)
    user_id = svc.create_account(
        current_role=Role.ADMIN,
        role=Role.STUDENT,
        name="Student Three",
        identifier="S3",
        password="secret1",
        branch="CSE",
        year="3",
        section="A",
    )
    created = users.get_by_id(user_id)
    assert created.year == 3
    assert AuthService(users).authenticate(Role.STUDENT, "S3", "secret1").user_id == user_id


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"password": "123"}, "at least 6"),
        ({"branch": None}, "Branch is required"),
        ({"identifier": "S1"}, "already exists"),
        ({"name": "  "}, "Name is required"),
    ],
)
def test_create_account_validation(users, overrides, reason):
    kwargs = dict(
        current_role=Role.ADMIN,
        role=Role.STUDENT,
        name="Student Three",
        identifier="S3",
        password="secret1",
        branch="CSE",
        year=3,
        section="A",
    )
    kwargs.update(overrides)
    with pytest.raises(ValidationError, match=reason):
        UserService(users).create_account(**kwargs)


def test_only_admins_manage_accounts(users):
    svc = UserService(users)
    with pytest.raises(AuthorizationError):
        svc.create_account(current_role=Role.FACULTY, role=Role.FACULTY, name="X", identifier="FAC009", password="secret1")
    with pytest.raises(AuthorizationError):
        svc.list_users(current_role=Role.STUDENT)
    with pytest.raises(AuthorizationError):
        svc.delete_user(current_role=Role.FACULTY, user_id=4)


def test_delete_user_rules(users):
    svc = UserService(users)
    with pytest.raises(ValidationError, match="cannot be deleted"):
        svc.delete_user(current_role=Role.ADMIN, user_id=1)
    with pytest.raises(ValidationError, match="does not exist"):
        svc.delete_user(current_role=Role.ADMIN, user_id=404)

    svc.delete_user(current_role=Role.ADMIN, user_id=5)
    assert [u.identifier for u in svc.list_users(current_role=Role.ADMIN, role=Role.STUDENT)] == ["S1"]


def test_update_user_changes_profile_and_password(users):
    svc = UserService(users)
    updated = svc.update_user(current_role=Role.ADMIN, user_id=4, name="  Student Uno ", section="B", password="fresh-pass")

    assert (updated.name, updated.section, updated.branch, updated.year) == ("Student Uno", "B", "CSE", 3)
    assert users.get_by_id(4) == updated
    assert AuthService(users).authenticate(Role.STUDENT, "S1", "fresh-pass").name == "Student Uno"
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(Role.STUDENT, "S1", "student123")


def test_deactivated_user_cannot_log_in(users):
    svc = UserService(users)
    svc.update_user(current_role=Role.ADMIN, user_id=2, is_active=False)
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(Role.FACULTY, "FAC001", "faculty123")

    svc.update_user(current_role=Role.ADMIN, user_id=2, is_active=True)
    assert AuthService(users).authenticate(Role.FACULTY, "FAC001", "faculty123").user_id == 2


@pytest.mark.parametrize(
    "user_id,changes,reason",
    [
        (404, {"name": "X"}, "does not exist"),
        (4, {}, "Nothing to update"),
        (4, {"password": "123"}, "at least 6"),
        (4, {"section": "  "}, "Section is required"),
        (4, {"year": "third"}, "Year"),
        (4, {"is_active": "no"}, "true or false"),
        (1, {"is_active": False}, "cannot be deactivated"),
    ],
)
def test_update_user_validation(users, user_id, changes, reason):
    with pytest.raises(ValidationError, match=reason):
        UserService(users).update_user(current_role=Role.ADMIN, user_id=user_id, **changes)


def test_only_admins_update_accounts(users):
    with pytest.raises(AuthorizationError):
        UserService(users).update_user(current_role=Role.FACULTY, user_id=4, name="X")
    assert users.get_by_id(4).name == "Student One"
