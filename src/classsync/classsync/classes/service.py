from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..common.validators import require_int, require_non_empty
from ..core.constants import WEEKDAYS
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, InvalidPeriods, UnknownClass, ValidationError
from ..timeslots.resolver import TimeSlotResolver, parse_clock
from .model import ClassSchedule, TimetableEntry, TimetableSlot
from .repository import ClassRepository

logger = logging.getLogger(__name__)


def normalize_day(value: str) -> str:
    day = (value or "").strip().upper()
    if day not in WEEKDAYS:
        raise ValidationError(f"Invalid day: {value!r}")
    return day


class ClassRegistry:
    """Read-mostly registry of classes, rosters and timetables.

    Writes are administrative: class setup, roster edits, archiving and the
    scoped timetable bulk replace.
    """

    def __init__(self, classes: ClassRepository, resolver: TimeSlotResolver):
        self._classes = classes
        self._resolver = resolver

    @staticmethod
    def _require_admin(current_role: Role) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can change classes or timetables")

    def get_class(self, class_id: int) -> ClassSchedule:
        cls = self._classes.get_by_id(int(class_id))
        if not cls:
            raise UnknownClass(f"Unknown class: {class_id}")
        return cls

    def find_class(self, class_id: int) -> Optional[ClassSchedule]:
        return self._classes.get_by_id(int(class_id))

    def roster_of(self, class_id: int) -> frozenset[str]:
        return self.get_class(class_id).students

    def classes_owned_by(self, faculty_id: str) -> list[ClassSchedule]:
        return [c for c in self._classes.list_for_faculty(faculty_id) if c.is_active]

    def classes_for_student(self, student_id: str) -> list[ClassSchedule]:
        return list(self._classes.list_for_student(student_id))

    def schedule_for(self, branch: str, year: int, section: str) -> dict[str, list[TimetableEntry]]:
        """Timetable of one (branch, year, section), grouped by weekday in week order."""

        entries = self._classes.list_timetable(branch=branch, year=int(year), section=section)
        grouped: dict[str, list[TimetableEntry]] = {}
        for day in WEEKDAYS:
            day_entries = sorted((e for e in entries if e.day == day), key=lambda e: e.period)
            if day_entries:
                grouped[day] = day_entries
        return grouped

    def timetable_for_faculty(self, faculty_id: str) -> list[TimetableEntry]:
        entries = self._classes.list_timetable_for_faculty(faculty_id)
        return sorted(entries, key=lambda e: (WEEKDAYS.index(e.day) if e.day in WEEKDAYS else len(WEEKDAYS), e.period))

    def current_and_next(
        self, branch: str, year: int, section: str, *, now: datetime
    ) -> tuple[Optional[TimetableEntry], Optional[TimetableEntry]]:
        """Entry in progress and the next entry later today (either may be None)."""

        today = WEEKDAYS[now.weekday()]
        entries = self.schedule_for(branch, year, section).get(today, [])
        current_period = self._resolver.period_for_time(now)
        minutes = parse_clock(now)

        current = None
        upcoming = None
        for e in entries:
            if not self._resolver.has_period(e.period):
                continue
            if e.period == current_period:
                current = e
            elif upcoming is None and self._resolver.slot(e.period).start_minutes > minutes:
                upcoming = e
        return current, upcoming

    def _validate_periods(self, periods: Sequence[int]) -> tuple[int, ...]:
        if not periods:
            raise InvalidPeriods("A class needs at least one period")
        ints = [require_int(p, "Period") for p in periods]
        out = tuple(sorted(set(ints)))
        if len(out) != len(ints):
            raise InvalidPeriods("Duplicate periods")
        unknown = [p for p in out if not self._resolver.has_period(p)]
        if unknown:
            raise InvalidPeriods(f"Unknown periods: {unknown}")
        return out

    def create_class(
        self,
        *,
        current_role: Role,
        subject: str,
        faculty_id: str,
        branch: str,
        year: int,
        section: str,
        periods: Sequence[int],
        students: Iterable[str] = (),
        semester: str = "",
    ) -> int:
        self._require_admin(current_role)

        subject = require_non_empty(subject, "Subject")
        faculty_id = require_non_empty(faculty_id, "Faculty ID")
        branch = require_non_empty(branch, "Branch")
        section = require_non_empty(section, "Section")
        year = require_int(year, "Year")
        roster = sorted({require_non_empty(s, "Student ID") for s in students})

        class_id = self._classes.create_class(
            subject=subject,
            faculty_id=faculty_id,
            branch=branch,
            year=year,
            semester=(semester or "").strip(),
            section=section,
            periods=self._validate_periods(periods),
            students=roster,
        )
        logger.info(f"Class {class_id} created: {subject} {branch} {year}-{section} (faculty {faculty_id})")
        return class_id

    def add_student(self, *, current_role: Role, class_id: int, student_id: str) -> bool:
        self._require_admin(current_role)
        self.get_class(class_id)
        return self._classes.add_student(class_id=int(class_id), student_id=require_non_empty(student_id, "Student ID"))

    def remove_student(self, *, current_role: Role, class_id: int, student_id: str) -> bool:
        self._require_admin(current_role)
        self.get_class(class_id)
        return self._classes.remove_student(class_id=int(class_id), student_id=require_non_empty(student_id, "Student ID"))

    def archive_class(self, *, current_role: Role, class_id: int) -> None:
        self._require_admin(current_role)
        self.get_class(class_id)
        self._classes.set_active(class_id=int(class_id), is_active=False)
        logger.info(f"Class {class_id} archived")

    def replace_timetable(
        self,
        *,
        current_role: Role,
        branch: str,
        year: int,
        section: str,
        slots: Sequence[TimetableSlot],
    ) -> int:
        """Validate every slot first, then install the whole set in one write."""

        self._require_admin(current_role)
        branch = require_non_empty(branch, "Branch")
        section = require_non_empty(section, "Section")
        year = require_int(year, "Year")

        entries: list[TimetableEntry] = []
        seen: set[tuple[str, int]] = set()
        for slot in slots:
            day = normalize_day(slot.day)
            period = require_int(slot.period, "Period")
            if not self._resolver.has_period(period):
                raise ValidationError(f"Unknown period {period} on {day}")
            if (day, period) in seen:
                raise ValidationError(f"Duplicate timetable slot: {day} period {period}")
            seen.add((day, period))
            entries.append(
                TimetableEntry(
                    day=day,
                    period=period,
                    subject=require_non_empty(slot.subject, "Subject"),
                    faculty_id=require_non_empty(slot.faculty_id, "Faculty ID"),
                    room=(slot.room or "").strip(),
                    branch=branch,
                    year=year,
                    section=section,
                )
            )

        count = self._classes.replace_timetable(branch=branch, year=year, section=section, entries=entries)
        logger.info(f"Timetable for {branch} {year}-{section} replaced ({count} entries)")
        return count
