from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import SessionStatus
from .model import AttendanceSession


class SessionRepository(Protocol):
    def create(
        self,
        *,
        class_id: int,
        session_date: date,
        periods: Sequence[int],
        faculty_id: str,
        start_time: datetime,
    ) -> int:
        raise NotImplementedError

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def find_active(self, *, class_id: int, session_date: date) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def list_active(self) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def finish(self, *, session_id: int, status: SessionStatus, end_time: datetime) -> bool:
        """Move an active session to a terminal status.

        Only rows still 'active' are changed; returns False otherwise.
        """

        raise NotImplementedError

    def list_for_faculty(self, faculty_id: str, *, limit: int) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def list_for_classes(self, class_ids: Sequence[int]) -> Sequence[AttendanceSession]:
        raise NotImplementedError
