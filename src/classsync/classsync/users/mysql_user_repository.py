from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_COLUMNS = "user_id, role, name, identifier, password_hash, branch, year, section, is_active"


def _to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        role=Role(row["role"]),
        name=row["name"],
        identifier=row["identifier"],
        password_hash=row["password_hash"],
        branch=row.get("branch"),
        year=int(row["year"]) if row.get("year") is not None else None,
        section=row.get("section"),
        is_active=bool(row.get("is_active", True)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def get_by_identifier(self, role: Role, identifier: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE role=%s AND identifier=%s", (role.value, identifier))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def create_user(
        self,
        *,
        role: Role,
        name: str,
        identifier: str,
        password_hash: str,
        branch: Optional[str],
        year: Optional[int],
        section: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(role, name, identifier, password_hash, branch, year, section, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (role.value, name, identifier, password_hash, branch, year, section),
            )
            return int(cur.lastrowid)

    def update_user(self, user: User) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE users
                SET name=%s, password_hash=%s, branch=%s, year=%s, section=%s, is_active=%s
                WHERE user_id=%s
                """,
                (user.name, user.password_hash, user.branch, user.year, user.section, int(user.is_active), int(user.user_id)),
            )

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM users WHERE user_id=%s", (int(user_id),))
            return cur.rowcount > 0

    def list_users(self, *, role: Optional[Role] = None) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            if role is None:
                cur.execute(f"SELECT {_COLUMNS} FROM users ORDER BY role, identifier")
            else:
                cur.execute(f"SELECT {_COLUMNS} FROM users WHERE role=%s ORDER BY identifier", (role.value,))
            return [_to_user(r) for r in fetchall(cur)]
