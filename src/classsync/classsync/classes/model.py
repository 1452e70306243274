from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ClassSchedule:
    """Domain entity: a recurring class (subject taught to one branch/year/section).

    The roster only changes through administrator edits; archiving is a soft delete.
    """

    class_id: int
    subject: str
    faculty_id: str
    branch: str
    year: int
    section: str
    periods: tuple[int, ...]
    students: frozenset[str] = field(default_factory=frozenset)
    semester: str = ""
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.subject} ({self.branch} {self.year}-{self.section})"


@dataclass(frozen=True)
class TimetableSlot:
    """Input row for a timetable bulk replace (scope comes from the request)."""

    day: str
    period: int
    subject: str
    faculty_id: str
    room: str = ""


@dataclass(frozen=True)
class TimetableEntry:
    day: str
    period: int
    subject: str
    faculty_id: str
    room: str
    branch: str
    year: int
    section: str
