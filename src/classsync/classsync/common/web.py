from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import g, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserContext:
    """Typed view of the logged-in user, built once per request."""

    user_id: int
    role: Role
    identifier: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def current_user() -> Optional[UserContext]:
    if "user" not in g:
        if "user_id" not in session:
            g.user = None
        else:
            g.user = UserContext(
                user_id=int(session["user_id"]),
                role=Role(session["role"]),
                identifier=str(session["identifier"]),
                name=str(session.get("name", "")),
            )
    return g.user


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def error_response(e: Exception):
    if isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, AuthenticationError):
        status = 401
    elif isinstance(e, AuthorizationError):
        status = 403
    elif isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, ConflictError):
        status = 409
    elif isinstance(e, DomainError):
        status = 400
    else:
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"success": False, "message": "Internal server error"}), 500

    if status == 403:
        logger.warning(f"Forbidden {request.method} {request.path}: {e}")
    return jsonify({"success": False, "message": str(e)}), status


def json_api(view):
    """Run ``view`` and turn raised errors into JSON error responses."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except Exception as e:
            return error_response(e)

    return wrapper


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            return jsonify({"success": False, "message": "Please log in to continue"}), 401
        return view(*args, **kwargs)

    return wrapper


def role_required(*roles: Role):
    allowed = set(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify({"success": False, "message": "Please log in to continue"}), 401
            if user.role not in allowed:
                logger.warning(f"{user.role.value} {user.identifier} denied {request.method} {request.path}")
                return jsonify({"success": False, "message": "Access denied"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def ensure_self_or_admin(user: UserContext, identifier: str) -> None:
    if user.role != Role.ADMIN and user.identifier != identifier:
        raise AuthorizationError("You can only view your own data")
