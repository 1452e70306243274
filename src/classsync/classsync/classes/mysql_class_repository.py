from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, join_ints, split_ints
from .model import ClassSchedule, TimetableEntry
from .repository import ClassRepository

_CLASS_COLUMNS = "c.class_id, c.subject, c.faculty_id, c.branch, c.year, c.semester, c.section, c.periods, c.is_active"


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _rosters(self, cur, class_ids: Sequence[int]) -> dict[int, set[str]]:
        out: dict[int, set[str]] = {int(cid): set() for cid in class_ids}
        if not class_ids:
            return out
        placeholders = ",".join(["%s"] * len(class_ids))
        cur.execute(
            f"SELECT class_id, student_id FROM class_students WHERE class_id IN ({placeholders})",
            tuple(int(cid) for cid in class_ids),
        )
        for r in fetchall(cur):
            out[int(r["class_id"])].add(str(r["student_id"]))
        return out

    def _to_classes(self, cur, rows) -> list[ClassSchedule]:
        rosters = self._rosters(cur, [int(r["class_id"]) for r in rows])
        return [
            ClassSchedule(
                class_id=int(r["class_id"]),
                subject=r["subject"],
                faculty_id=str(r["faculty_id"]),
                branch=r["branch"],
                year=int(r["year"]),
                section=r["section"],
                periods=split_ints(r["periods"]),
                students=frozenset(rosters.get(int(r["class_id"]), set())),
                semester=r.get("semester") or "",
                is_active=bool(r.get("is_active", True)),
            )
            for r in rows
        ]

    def get_by_id(self, class_id: int) -> Optional[ClassSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_CLASS_COLUMNS} FROM classes c WHERE c.class_id=%s", (int(class_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._to_classes(cur, [r])[0]

    def list_for_faculty(self, faculty_id: str) -> Sequence[ClassSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CLASS_COLUMNS}
                FROM classes c
                WHERE c.faculty_id=%s AND c.is_active=1
                ORDER BY c.subject ASC, c.class_id ASC
                """,
                (faculty_id,),
            )
            return self._to_classes(cur, fetchall(cur))

    def list_for_student(self, student_id: str) -> Sequence[ClassSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CLASS_COLUMNS}
                FROM classes c
                JOIN class_students cs ON cs.class_id = c.class_id
                WHERE cs.student_id=%s
                ORDER BY c.subject ASC
                """,
                (student_id,),
            )
            return self._to_classes(cur, fetchall(cur))

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO classes(subject, faculty_id, branch, year, semester, section, periods, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (subject, faculty_id, branch, int(year), semester, section, join_ints(periods)),
            )
            class_id = int(cur.lastrowid)
            roster = sorted(set(students))
            if roster:
                cur.executemany(
                    "INSERT INTO class_students(class_id, student_id) VALUES(%s,%s)",
                    [(class_id, s) for s in roster],
                )
            return class_id

    def add_student(self, *, class_id: int, student_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT IGNORE INTO class_students(class_id, student_id) VALUES(%s,%s)",
                (int(class_id), student_id),
            )
            return cur.rowcount > 0

    def remove_student(self, *, class_id: int, student_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM class_students WHERE class_id=%s AND student_id=%s",
                (int(class_id), student_id),
            )
            return cur.rowcount > 0

    def set_active(self, *, class_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE classes SET is_active=%s WHERE class_id=%s", (1 if is_active else 0, int(class_id)))
            return cur.rowcount > 0

    @staticmethod
    def _to_entries(rows) -> list[TimetableEntry]:
        return [
            TimetableEntry(
                day=r["day"],
                period=int(r["period"]),
                subject=r["subject"],
                faculty_id=str(r["faculty_id"]),
                room=r.get("room") or "",
                branch=r["branch"],
                year=int(r["year"]),
                section=r["section"],
            )
            for r in rows
        ]

    def list_timetable(self, *, branch: str, year: int, section: str) -> Sequence[TimetableEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT day, period, subject, faculty_id, room, branch, year, section
                FROM timetable_entries
                WHERE branch=%s AND year=%s AND section=%s
                ORDER BY period ASC
                """,
                (branch, int(year), section),
            )
            return self._to_entries(fetchall(cur))

    def list_timetable_for_faculty(self, faculty_id: str) -> Sequence[TimetableEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT day, period, subject, faculty_id, room, branch, year, section
                FROM timetable_entries
                WHERE faculty_id=%s
                ORDER BY period ASC
                """,
                (faculty_id,),
            )
            return self._to_entries(fetchall(cur))

    def replace_timetable(self, *, branch: str, year: int, section: str, entries: Sequence[TimetableEntry]) -> int:
        # One transaction: DELETE + INSERT commit together or roll back together.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM timetable_entries WHERE branch=%s AND year=%s AND section=%s",
                (branch, int(year), section),
            )
            if entries:
                cur.executemany(
                    """
                    INSERT INTO timetable_entries(branch, year, section, day, period, subject, room, faculty_id)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    [(branch, int(year), section, e.day, int(e.period), e.subject, e.room, e.faculty_id) for e in entries],
                )
            return len(entries)
