from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.validators import require_int, require_min_length, require_non_empty
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """What we store into the Flask session after login."""

    user_id: int
    role: Role
    identifier: str
    name: str
    branch: Optional[str] = None
    year: Optional[int] = None
    section: Optional[str] = None


class AuthService:
    """Use case: authenticate(role, identifier, secret)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, role: Role, identifier: str, secret: str) -> SessionUser:
        try:
            role = Role(role)
        except ValueError:
            raise AuthenticationError("Invalid credentials")

        user = self._users.get_by_identifier(role, (identifier or "").strip())
        if not user or not user.is_active:
            logger.info(f"Login failed for {role.value} {identifier!r}: unknown or inactive")
            raise AuthenticationError("Invalid credentials")

        try:
            ok = check_password_hash(user.password_hash, secret or "")
        except ValueError:
            # placeholder or corrupted hash values
            ok = False

        if not ok:
            logger.info(f"Login failed for {role.value} {identifier!r}: wrong secret")
            raise AuthenticationError("Invalid credentials")

        logger.info(f"{role.value} {user.identifier} logged in")
        return SessionUser(
            user_id=user.user_id,
            role=user.role,
            identifier=user.identifier,
            name=user.name,
            branch=user.branch,
            year=user.year,
            section=user.section,
        )


class UserService:
    """Use case: manage accounts (admin)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def create_account(
        self,
        *,
        current_role: Role,
        role: Role,
        name: str,
        identifier: str,
        password: str,
        branch: Optional[str] = None,
        year: Optional[int] = None,
        section: Optional[str] = None,
    ) -> int:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can create accounts")

        name = require_non_empty(name, "Name")
        identifier = require_non_empty(identifier, "Identifier")
        require_min_length(password, "Password", 6)

        if role == Role.STUDENT:
            branch = require_non_empty(branch, "Branch")
            section = require_non_empty(section, "Section")
            year = require_int(year, "Year")
        else:
            branch = (branch or "").strip() or None
            section = (section or "").strip() or None
            year = require_int(year, "Year") if year not in (None, "") else None

        if self._users.get_by_identifier(role, identifier):
            raise ValidationError(f"{role.value.capitalize()} {identifier} already exists")

        user_id = self._users.create_user(
            role=role,
            name=name,
            identifier=identifier,
            password_hash=generate_password_hash(password),
            branch=branch,
            year=year,
            section=section,
        )
        logger.info(f"Account created: {role.value} {identifier}")
        return user_id

    def list_users(self, *, current_role: Role, role: Optional[Role] = None) -> list[User]:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can list accounts")
        return list(self._users.list_users(role=role))

    def delete_user(self, *, current_role: Role, user_id: int) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can delete accounts")

        user = self._users.get_by_id(user_id)
        if not user:
            raise ValidationError("User does not exist")
        if user.role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be deleted")

        if not self._users.delete_by_id(user_id):
            raise ValidationError("Deleting the user failed")
        logger.info(f"Account deleted: {user.role.value} {user.identifier}")

    def update_user(
        self,
        *,
        current_role: Role,
        user_id: int,
        name: Optional[str] = None,
        password: Optional[str] = None,
        branch: Optional[str] = None,
        year: Optional[int] = None,
        section: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        """Change profile fields of an account; ``None`` leaves a field as it is.

        Role and identifier are fixed once an account exists.
        """

        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can update accounts")

        user = self._users.get_by_id(user_id)
        if not user:
            raise ValidationError("User does not exist")

        changes: dict = {}
        if name is not None:
            changes["name"] = require_non_empty(name, "Name")
        if password is not None:
            password = require_min_length(str(password), "Password", 6)
            changes["password_hash"] = generate_password_hash(password)
        if branch is not None:
            changes["branch"] = require_non_empty(branch, "Branch") if user.role == Role.STUDENT else (str(branch).strip() or None)
        if section is not None:
            changes["section"] = require_non_empty(section, "Section") if user.role == Role.STUDENT else (str(section).strip() or None)
        if year is not None:
            changes["year"] = require_int(year, "Year")
        if is_active is not None:
            if not isinstance(is_active, bool):
                raise ValidationError("isActive must be true or false")
            if user.role == Role.ADMIN and not is_active:
                raise ValidationError("Admin accounts cannot be deactivated")
            changes["is_active"] = is_active

        if not changes:
            raise ValidationError("Nothing to update")

        updated = replace(user, **changes)
        self._users.update_user(updated)
        logger.info(f"Account updated: {user.role.value} {user.identifier} ({', '.join(sorted(changes))})")
        return updated
