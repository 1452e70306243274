from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """An account as supplied by the identity provider.

    ``identifier`` is the roll number for students and the faculty ID for staff.
    Students also carry the (branch, year, section) group they belong to.
    """

    user_id: int
    role: Role
    name: str
    identifier: str
    password_hash: str
    branch: Optional[str] = None
    year: Optional[int] = None
    section: Optional[str] = None
    is_active: bool = True
