from __future__ import annotations

from datetime import datetime

import pytest
from werkzeug.security import generate_password_hash

from src.classsync.classsync.classes.model import ClassSchedule
from src.classsync.classsync.container import wire_services
from src.classsync.classsync.core.enums import Role
from src.classsync.classsync.main import create_app
from src.classsync.classsync.users.model import User

from tests.fakes import InMemoryAttendance, InMemoryClasses, InMemorySessions, InMemoryUsers


@pytest.fixture
def fixed_now() -> datetime:
    # Monday, inside period 1 (9:30 - 10:20 AM)
    return datetime(2026, 2, 2, 9, 45, 0)


@pytest.fixture
def os_class() -> ClassSchedule:
    return ClassSchedule(
        class_id=1,
        subject="Operating Systems",
        faculty_id="FAC001",
        branch="CSE",
        year=3,
        section="A",
        periods=(1, 2, 3),
        students=frozenset({"S1", "S2"}),
    )


@pytest.fixture
def users() -> InMemoryUsers:
    def make(user_id, role, name, identifier, password, **kw):
        return User(
            user_id=user_id,
            role=role,
            name=name,
            identifier=identifier,
            password_hash=generate_password_hash(password),
            **kw,
        )

    return InMemoryUsers(
        [
            make(1, Role.ADMIN, "Admin", "admin", "admin123"),
            make(2, Role.FACULTY, "Dr. Rao", "FAC001", "faculty123"),
            make(3, Role.FACULTY, "Dr. Iyer", "FAC002", "faculty123"),
            make(4, Role.STUDENT, "Student One", "S1", "student123", branch="CSE", year=3, section="A"),
            make(5, Role.STUDENT, "Student Two", "S2", "student123", branch="CSE", year=3, section="A"),
        ]
    )


@pytest.fixture
def container(os_class, users):
    return wire_services(
        users_repo=users,
        classes_repo=InMemoryClasses([os_class]),
        sessions_repo=InMemorySessions(),
        attendance_repo=InMemoryAttendance(),
    )


@pytest.fixture
def app(container, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    return create_app(container)


@pytest.fixture
def login():
    def _login(client, role: str, identifier: str, password: str):
        return client.post("/api/login", json={"role": role, "identifier": identifier, "password": password})

    return _login
