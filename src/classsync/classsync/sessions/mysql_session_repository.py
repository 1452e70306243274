from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import SessionStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, join_ints, split_ints
from .model import AttendanceSession
from .repository import SessionRepository

_COLUMNS = "session_id, class_id, session_date, periods, faculty_id, status, start_time, end_time"


def _to_session(r: dict) -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r["session_id"]),
        class_id=int(r["class_id"]),
        session_date=r["session_date"],
        periods=split_ints(r["periods"]),
        faculty_id=str(r["faculty_id"]),
        status=SessionStatus(r["status"]),
        start_time=r["start_time"],
        end_time=r.get("end_time"),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        class_id: int,
        session_date: date,
        periods: Sequence[int],
        faculty_id: str,
        start_time: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(class_id, session_date, periods, faculty_id, status, start_time)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(class_id), session_date, join_ints(periods), faculty_id, SessionStatus.ACTIVE.value, start_time),
            )
            return int(cur.lastrowid)

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_sessions WHERE session_id=%s", (int(session_id),))
            r = fetchone(cur)
            return _to_session(r) if r else None

    def find_active(self, *, class_id: int, session_date: date) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE class_id=%s AND session_date=%s AND status=%s
                ORDER BY session_id DESC
                LIMIT 1
                """,
                (int(class_id), session_date, SessionStatus.ACTIVE.value),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def list_active(self) -> Sequence[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_sessions WHERE status=%s ORDER BY session_id ASC",
                (SessionStatus.ACTIVE.value,),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def finish(self, *, session_id: int, status: SessionStatus, end_time: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET status=%s, end_time=%s
                WHERE session_id=%s AND status=%s
                """,
                (status.value, end_time, int(session_id), SessionStatus.ACTIVE.value),
            )
            return cur.rowcount > 0

    def list_for_faculty(self, faculty_id: str, *, limit: int) -> Sequence[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE faculty_id=%s
                ORDER BY session_date DESC, session_id DESC
                LIMIT %s
                """,
                (faculty_id, int(limit)),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def list_for_classes(self, class_ids: Sequence[int]) -> Sequence[AttendanceSession]:
        if not class_ids:
            return []
        placeholders = ",".join(["%s"] * len(class_ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE class_id IN ({placeholders})
                ORDER BY session_date ASC, session_id ASC
                """,
                tuple(int(c) for c in class_ids),
            )
            return [_to_session(r) for r in fetchall(cur)]
