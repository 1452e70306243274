from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..attendance.model import AttendanceRecord, RecordFilter
from ..attendance.service import AttendanceService
from ..classes.service import ClassRegistry
from ..core.enums import AttendanceMethod, AttendanceStatus, Role, SessionStatus
from ..core.exceptions import AuthorizationError
from ..sessions.repository import SessionRepository

_ATTENDED = {AttendanceStatus.PRESENT, AttendanceStatus.LATE}


@dataclass(frozen=True)
class SummaryData:
    overall: dict
    subjects: list[dict]


def _percentage(attended: int, total: int) -> float:
    return round(attended * 100.0 / total, 1) if total else 0.0


class ReportService:
    """Read-only attendance summaries built on the store's query boundary."""

    def __init__(self, classes: ClassRegistry, sessions: SessionRepository, attendance: AttendanceService):
        self._classes = classes
        self._sessions = sessions
        self._attendance = attendance

    def student_summary(
        self,
        student_id: str,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> SummaryData:
        """Attended vs. held periods, overall and per class.

        A period counts as held once a session covering it was started and not
        cancelled. Present and late records count as attended.
        """

        classes = self._classes.classes_for_student(student_id)
        held: dict[int, int] = {c.class_id: 0 for c in classes}
        for s in self._sessions.list_for_classes(list(held)):
            if s.status == SessionStatus.CANCELLED:
                continue
            if (start and s.session_date < start) or (end and s.session_date > end):
                continue
            held[s.class_id] += len(s.periods)

        attended: dict[int, int] = {c.class_id: 0 for c in classes}
        records = self._attendance.query_records(RecordFilter(student_id=student_id, start_date=start, end_date=end))
        for r in records:
            if r.class_id in attended and r.status in _ATTENDED:
                attended[r.class_id] += 1

        subjects: list[dict] = []
        for c in classes:
            subjects.append(
                {
                    "class_id": c.class_id,
                    "subject": c.subject,
                    "faculty_id": c.faculty_id,
                    "attended": attended[c.class_id],
                    "total": held[c.class_id],
                    "percentage": _percentage(attended[c.class_id], held[c.class_id]),
                }
            )

        total_attended = sum(attended.values())
        total_held = sum(held.values())
        overall = {
            "student_id": student_id,
            "attended": total_attended,
            "total": total_held,
            "percentage": _percentage(total_attended, total_held),
        }
        return SummaryData(overall=overall, subjects=subjects)

    def day_records(
        self,
        on: date,
        *,
        current_role: Role,
        faculty_id: str,
        class_id: Optional[int] = None,
        period: Optional[int] = None,
        method: Optional[AttendanceMethod] = None,
    ) -> list[AttendanceRecord]:
        """Every record of one day; faculty see only the classes they own."""

        if current_role == Role.ADMIN:
            class_ids = [class_id] if class_id is not None else [None]
        elif current_role == Role.FACULTY:
            owned = [c.class_id for c in self._classes.classes_owned_by(faculty_id)]
            if class_id is not None and class_id not in owned:
                raise AuthorizationError("Faculty can only view their own classes")
            class_ids = [class_id] if class_id is not None else owned
        else:
            raise AuthorizationError("Only faculty can view daily attendance")

        records: list[AttendanceRecord] = []
        for cid in class_ids:
            records.extend(
                self._attendance.query_records(
                    RecordFilter(class_id=cid, start_date=on, end_date=on, period=period, method=method)
                )
            )
        return sorted(records, key=lambda r: (r.class_id, r.period, r.recorded_at, r.student_id))
