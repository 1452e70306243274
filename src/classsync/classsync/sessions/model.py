from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..attendance.model import AttendanceRecord
from ..core.enums import SessionEventKind, SessionStatus


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one scanning window for a class, date and set of periods.

    Immutable once completed or cancelled; records live in the attendance store and
    are attached here only when a caller asks for the full session.
    """

    session_id: int
    class_id: int
    session_date: date
    periods: tuple[int, ...]
    faculty_id: str
    status: SessionStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    records: tuple[AttendanceRecord, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


@dataclass(frozen=True)
class DiscoveredDevice:
    """In-memory sighting; becomes an AttendanceRecord once resolved to a student."""

    device_id: str
    device_name: str
    signal: float
    discovered_at: datetime
    student_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "signal": self.signal,
            "studentId": self.student_id,
            "discoveredAt": self.discovered_at.isoformat(timespec="seconds"),
        }


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    session: AttendanceSession
    record: Optional[AttendanceRecord] = None
