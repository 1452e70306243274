from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import ClassSchedule, TimetableEntry


class ClassRepository(Protocol):
    """Repository interface for classes, rosters and the weekly timetable.

    Services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, class_id: int) -> Optional[ClassSchedule]:
        raise NotImplementedError

    def list_for_faculty(self, faculty_id: str) -> Sequence[ClassSchedule]:
        """Active classes owned by a faculty member."""

        raise NotImplementedError

    def list_for_student(self, student_id: str) -> Sequence[ClassSchedule]:
        raise NotImplementedError

    def create_class(
        self,
        *,
        subject: str,
        faculty_id: str,
        branch: str,
        year: int,
        semester: str,
        section: str,
        periods: Sequence[int],
        students: Iterable[str],
    ) -> int:
        raise NotImplementedError

    def add_student(self, *, class_id: int, student_id: str) -> bool:
        raise NotImplementedError

    def remove_student(self, *, class_id: int, student_id: str) -> bool:
        raise NotImplementedError

    def set_active(self, *, class_id: int, is_active: bool) -> bool:
        raise NotImplementedError

    def list_timetable(self, *, branch: str, year: int, section: str) -> Sequence[TimetableEntry]:
        raise NotImplementedError

    def list_timetable_for_faculty(self, faculty_id: str) -> Sequence[TimetableEntry]:
        raise NotImplementedError

    def replace_timetable(self, *, branch: str, year: int, section: str, entries: Sequence[TimetableEntry]) -> int:
        """Atomically swap the whole timetable of one (branch, year, section).

        Either every new entry is installed or the old set stays untouched.
        Returns the number of entries installed.
        """

        raise NotImplementedError
