from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceMethod, AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one presence determination.

    Records are never mutated or deleted once written (audit trail). At most one
    record exists per (student_id, record_date, period).
    """

    record_id: int
    session_id: Optional[int]
    class_id: int
    student_id: str
    record_date: date
    period: int
    status: AttendanceStatus
    method: AttendanceMethod
    recorded_at: datetime
    device_id: Optional[str] = None
    signal_strength: Optional[float] = None

    @property
    def key(self) -> tuple[str, date, int]:
        return (self.student_id, self.record_date, self.period)


@dataclass(frozen=True)
class NewAttendanceRecord:
    """Write model accepted by the store (record_id is assigned on insert)."""

    session_id: Optional[int]
    class_id: int
    student_id: str
    record_date: date
    period: int
    status: AttendanceStatus
    method: AttendanceMethod
    recorded_at: datetime
    device_id: Optional[str] = None
    signal_strength: Optional[float] = None


@dataclass(frozen=True)
class RecordFilter:
    student_id: Optional[str] = None
    class_id: Optional[int] = None
    session_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    period: Optional[int] = None
    method: Optional[AttendanceMethod] = None
