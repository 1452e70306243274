from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Closed set of roles, resolved once when a user logs in or connects."""

    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class AttendanceMethod(str, Enum):
    """How a record was produced."""

    PROXIMITY = "proximity"
    MANUAL = "manual"


class SessionEventKind(str, Enum):
    STARTED = "started"
    MARKED = "marked"
    STOPPED = "stopped"
    CANCELLED = "cancelled"
