from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceMethod, AttendanceStatus
from ..core.exceptions import DuplicateAttendance
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import AttendanceRecord, NewAttendanceRecord, RecordFilter
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, session_id, class_id, student_id, record_date, period,
    status, method, recorded_at, device_id, signal_strength
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        session_id=int(r["session_id"]) if r.get("session_id") is not None else None,
        class_id=int(r["class_id"]),
        student_id=str(r["student_id"]),
        record_date=r["record_date"],
        period=int(r["period"]),
        status=AttendanceStatus(r["status"]),
        method=AttendanceMethod(r["method"]),
        recorded_at=r["recorded_at"],
        device_id=r.get("device_id"),
        signal_strength=float(r["signal_strength"]) if r.get("signal_strength") is not None else None,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert_record(self, record: NewAttendanceRecord) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        session_id, class_id, student_id, record_date, period,
                        status, method, recorded_at, device_id, signal_strength
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.session_id,
                        int(record.class_id),
                        record.student_id,
                        record.record_date,
                        int(record.period),
                        record.status.value,
                        record.method.value,
                        record.recorded_at,
                        record.device_id,
                        record.signal_strength,
                    ),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateAttendance(
                    f"Attendance already marked for {record.student_id} on {record.record_date} period {record.period}"
                ) from e
            raise

    def get_for_student_date_period(self, *, student_id: str, record_date: date, period: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s AND record_date=%s AND period=%s
                """,
                (student_id, record_date, int(period)),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE session_id=%s
                ORDER BY recorded_at ASC, record_id ASC
                """,
                (int(session_id),),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def query(self, filters: RecordFilter, *, limit: Optional[int] = None) -> Sequence[AttendanceRecord]:
        clauses: list[str] = []
        params: list[object] = []

        if filters.student_id is not None:
            clauses.append("student_id=%s")
            params.append(filters.student_id)
        if filters.class_id is not None:
            clauses.append("class_id=%s")
            params.append(int(filters.class_id))
        if filters.session_id is not None:
            clauses.append("session_id=%s")
            params.append(int(filters.session_id))
        if filters.start_date is not None:
            clauses.append("record_date>=%s")
            params.append(filters.start_date)
        if filters.end_date is not None:
            clauses.append("record_date<=%s")
            params.append(filters.end_date)
        if filters.period is not None:
            clauses.append("period=%s")
            params.append(int(filters.period))
        if filters.method is not None:
            clauses.append("method=%s")
            params.append(filters.method.value)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        tail = ""
        if limit is not None:
            tail = "LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                {where}
                ORDER BY record_date DESC, period ASC, student_id ASC
                {tail}
                """,
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]
