from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

from .connection import DBConfig

logger = logging.getLogger(__name__)

# role, name, identifier, password, branch, year, section
DEMO_USERS = (
    ("admin", "Admin Demo", "admin", "admin123", None, None, None),
    ("faculty", "Dr. Rao", "FAC001", "faculty123", None, None, None),
    ("student", "Asha K", "21CS001", "student123", "CSE", 3, "A"),
    ("student", "Ravi M", "21CS002", "student123", "CSE", 3, "A"),
    ("student", "Meena S", "21CS003", "student123", "CSE", 3, "A"),
)

DEMO_CLASS = {
    "subject": "Operating Systems",
    "faculty_id": "FAC001",
    "branch": "CSE",
    "year": 3,
    "semester": "5",
    "section": "A",
    "periods": "1,2,3",
}

# day, period, subject, room
DEMO_TIMETABLE = (
    ("MONDAY", 1, "Operating Systems", "C-201"),
    ("MONDAY", 2, "Operating Systems", "C-201"),
    ("MONDAY", 5, "Computer Networks", "C-105"),
    ("TUESDAY", 3, "Operating Systems", "C-201"),
    ("WEDNESDAY", 1, "Computer Networks", "C-105"),
)


def as_db_config(db_config: dict) -> DBConfig:
    return DBConfig(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "classsync_db")),
    )


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = {"host": target.host, "port": target.port, "user": target.user, "password": target.password}
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def split_statements(sql: str) -> Iterable[str]:
    """Split a schema file into statements.

    Drops ``--`` comment lines and the file's own CREATE DATABASE / USE lines,
    so the schema can be applied to whatever database is configured.
    """

    lines = [line for line in sql.splitlines() if not line.lstrip().startswith("--")]
    for stmt in "\n".join(lines).split(";"):
        stmt = stmt.strip()
        if not stmt or re.match(r"(?i)^(CREATE\s+DATABASE|USE)\b", stmt):
            continue
        yield stmt


def ensure_database_exists(db_config: dict) -> None:
    target = as_db_config(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    target = as_db_config(db_config)
    ensure_database_exists(db_config)

    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt in split_statements(Path(schema_path).read_text(encoding="utf-8")):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info(f"Schema applied to {target.describe()}")


def ensure_demo_data(db_config: dict) -> None:
    """Upsert demo accounts, one class with its roster and a small timetable."""

    target = as_db_config(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor(dictionary=True)

        for role, name, identifier, password, branch, year, section in DEMO_USERS:
            cur.execute(
                """
                INSERT INTO users(role, name, identifier, password_hash, branch, year, section, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,1)
                ON DUPLICATE KEY UPDATE name=VALUES(name), password_hash=VALUES(password_hash),
                    branch=VALUES(branch), year=VALUES(year), section=VALUES(section), is_active=1
                """,
                (role, name, identifier, generate_password_hash(password), branch, year, section),
            )

        cur.execute(
            "SELECT class_id FROM classes WHERE subject=%s AND faculty_id=%s AND branch=%s AND year=%s AND section=%s",
            (DEMO_CLASS["subject"], DEMO_CLASS["faculty_id"], DEMO_CLASS["branch"], DEMO_CLASS["year"], DEMO_CLASS["section"]),
        )
        row = cur.fetchone()
        if row:
            class_id = int(row["class_id"])
        else:
            cur.execute(
                """
                INSERT INTO classes(subject, faculty_id, branch, year, semester, section, periods)
                VALUES(%(subject)s,%(faculty_id)s,%(branch)s,%(year)s,%(semester)s,%(section)s,%(periods)s)
                """,
                DEMO_CLASS,
            )
            class_id = int(cur.lastrowid)

        students = [u[2] for u in DEMO_USERS if u[0] == "student"]
        cur.executemany(
            "INSERT IGNORE INTO class_students(class_id, student_id) VALUES(%s,%s)",
            [(class_id, s) for s in students],
        )

        cur.execute(
            "DELETE FROM timetable_entries WHERE branch=%s AND year=%s AND section=%s",
            (DEMO_CLASS["branch"], DEMO_CLASS["year"], DEMO_CLASS["section"]),
        )
        cur.executemany(
            """
            INSERT INTO timetable_entries(branch, year, section, day, period, subject, room, faculty_id)
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            [
                (DEMO_CLASS["branch"], DEMO_CLASS["year"], DEMO_CLASS["section"], day, period, subject, room, DEMO_CLASS["faculty_id"])
                for day, period, subject, room in DEMO_TIMETABLE
            ],
        )

        conn.commit()
    finally:
        conn.close()
    logger.info(f"Demo data ready in {target.describe()}")


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(as_db_config(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
