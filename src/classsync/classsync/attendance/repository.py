from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord, NewAttendanceRecord, RecordFilter


class AttendanceRepository(Protocol):
    def insert_record(self, record: NewAttendanceRecord) -> int:
        """Insert under the (student_id, record_date, period) unique constraint.

        Raises DuplicateAttendance on conflict; never overwrites. Returns record_id.
        """

        raise NotImplementedError

    def get_for_student_date_period(self, *, student_id: str, record_date: date, period: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        """Records of one session, oldest first."""

        raise NotImplementedError

    def query(self, filters: RecordFilter, *, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
