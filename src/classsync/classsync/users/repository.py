from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_identifier(self, role: Role, identifier: str) -> Optional[User]:
        raise NotImplementedError

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
        raise NotImplementedError

    def update_user(self, user: User) -> None:
        raise NotImplementedError

    def delete_by_id(self, user_id: int) -> bool:
        raise NotImplementedError

    def list_users(self, *, role: Optional[Role] = None) -> Sequence[User]:
        raise NotImplementedError
