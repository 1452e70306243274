from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import parse_iso_date
from ..common.validators import require_float, require_int, require_non_empty
from ..core.enums import AttendanceMethod, AttendanceStatus
from ..core.exceptions import DuplicateAttendance, ValidationError
from .model import AttendanceRecord, NewAttendanceRecord, RecordFilter
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

EXPORT_FIELDS = [
    "record_date",
    "period",
    "student_id",
    "class_id",
    "session_id",
    "status",
    "method",
    "recorded_at",
    "device_id",
    "signal_strength",
]


@dataclass(frozen=True)
class ImportResult:
    imported: int
    duplicates: int


class AttendanceService:
    """Attendance store: the single write path for attendance records.

    Uniqueness of (student, date, period) is enforced by the repository's
    storage-level constraint; conflicts surface as DuplicateAttendance and
    existing records are never overwritten.
    """

    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    def record(
        self,
        *,
        session_id: Optional[int],
        class_id: int,
        student_id: str,
        record_date: date,
        period: int,
        method: AttendanceMethod,
        recorded_at: datetime,
        status: AttendanceStatus = AttendanceStatus.PRESENT,
        device_id: Optional[str] = None,
        signal_strength: Optional[float] = None,
    ) -> AttendanceRecord:
        new = NewAttendanceRecord(
            session_id=session_id,
            class_id=int(class_id),
            student_id=student_id,
            record_date=record_date,
            period=int(period),
            status=status,
            method=method,
            recorded_at=recorded_at,
            device_id=device_id,
            signal_strength=signal_strength,
        )
        record_id = self._attendance.insert_record(new)
        return AttendanceRecord(record_id=record_id, **asdict(new))

    def get_record(self, *, student_id: str, record_date: date, period: int) -> Optional[AttendanceRecord]:
        return self._attendance.get_for_student_date_period(student_id=student_id, record_date=record_date, period=int(period))

    def records_for_session(self, session_id: int) -> list[AttendanceRecord]:
        return list(self._attendance.list_for_session(int(session_id)))

    def query_records(self, filters: Optional[RecordFilter] = None, *, limit: Optional[int] = None) -> list[AttendanceRecord]:
        """Read-only boundary used by export/reporting."""

        return list(self._attendance.query(filters or RecordFilter(), limit=limit))

    def export_rows(self, filters: Optional[RecordFilter] = None) -> list[dict]:
        rows: list[dict] = []
        for r in self.query_records(filters):
            rows.append(
                {
                    "record_date": r.record_date.strftime("%Y-%m-%d"),
                    "period": r.period,
                    "student_id": r.student_id,
                    "class_id": r.class_id,
                    "session_id": r.session_id if r.session_id is not None else "",
                    "status": r.status.value,
                    "method": r.method.value,
                    "recorded_at": r.recorded_at.isoformat(timespec="seconds"),
                    "device_id": r.device_id or "",
                    "signal_strength": r.signal_strength if r.signal_strength is not None else "",
                }
            )
        return rows

    @staticmethod
    def _optional_int(value, field_name: str) -> Optional[int]:
        if value is None or str(value).strip() == "":
            return None
        return require_int(value, field_name)

    @staticmethod
    def _optional_float(value, field_name: str) -> Optional[float]:
        if value is None or str(value).strip() == "":
            return None
        return require_float(value, field_name)

    def _parse_row(self, row: dict, line: int) -> NewAttendanceRecord:
        try:
            recorded_at = datetime.fromisoformat(str(row.get("recorded_at", "")).strip())
        except ValueError:
            raise ValidationError(f"Row {line}: invalid recorded_at")
        try:
            status = AttendanceStatus(str(row.get("status", "")).strip())
            method = AttendanceMethod(str(row.get("method", "")).strip())
        except ValueError:
            raise ValidationError(f"Row {line}: invalid status or method")

        return NewAttendanceRecord(
            session_id=self._optional_int(row.get("session_id"), "session_id"),
            class_id=require_int(row.get("class_id"), "class_id"),
            student_id=require_non_empty(row.get("student_id", ""), "student_id"),
            record_date=parse_iso_date(str(row.get("record_date", ""))),
            period=require_int(row.get("period"), "period"),
            status=status,
            method=method,
            recorded_at=recorded_at,
            device_id=(str(row.get("device_id") or "").strip() or None),
            signal_strength=self._optional_float(row.get("signal_strength"), "signal_strength"),
        )

    def import_rows(self, rows: Iterable[dict]) -> ImportResult:
        """Re-insert exported rows through the same unique insert.

        Every row is parsed before anything is written; rows that collide with an
        existing (student, date, period) are counted, not overwritten.
        """

        parsed: Sequence[NewAttendanceRecord] = [self._parse_row(row, i) for i, row in enumerate(rows, start=1)]

        imported = 0
        duplicates = 0
        for rec in parsed:
            try:
                self._attendance.insert_record(rec)
                imported += 1
            except DuplicateAttendance:
                duplicates += 1

        logger.info(f"Attendance import finished: {imported} imported, {duplicates} duplicates skipped")
        return ImportResult(imported=imported, duplicates=duplicates)
