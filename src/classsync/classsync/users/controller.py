from __future__ import annotations

from flask import Flask, jsonify, request, session

from ..common.validators import require_int
from ..common.web import current_user, json_api, json_body, login_required, role_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, ValidationError
from .model import User


def _user_json(u: User) -> dict:
    return {
        "userId": u.user_id,
        "role": u.role.value,
        "name": u.name,
        "identifier": u.identifier,
        "branch": u.branch,
        "year": u.year,
        "section": u.section,
        "isActive": u.is_active,
    }


def _parse_role(value) -> Role:
    try:
        return Role(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError("Unknown role")


def register(app: Flask, container: Container) -> None:
    @app.route("/api/login", methods=["POST"], endpoint="login")
    @json_api
    def login():
        body = json_body()
        try:
            role = Role(str(body.get("role", "")).strip().lower())
        except ValueError:
            raise AuthenticationError("Invalid credentials")

        s_user = container.auth_service.authenticate(role, body.get("identifier", ""), body.get("password", ""))

        session.clear()
        session["user_id"] = s_user.user_id
        session["role"] = s_user.role.value
        session["identifier"] = s_user.identifier
        session["name"] = s_user.name
        return jsonify(
            {
                "success": True,
                "user": {
                    "userId": s_user.user_id,
                    "role": s_user.role.value,
                    "identifier": s_user.identifier,
                    "name": s_user.name,
                    "branch": s_user.branch,
                    "year": s_user.year,
                    "section": s_user.section,
                },
            }
        )

    @app.route("/api/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.route("/api/me", methods=["GET"], endpoint="me")
    @login_required
    def me():
        user = current_user()
        return jsonify({"userId": user.user_id, "role": user.role.value, "identifier": user.identifier, "name": user.name})

    @app.route("/api/admin/users", methods=["GET"], endpoint="admin_users")
    @role_required(Role.ADMIN)
    @json_api
    def admin_users():
        role = _parse_role(request.args["role"]) if request.args.get("role") else None
        users = container.user_service.list_users(current_role=current_user().role, role=role)
        return jsonify({"users": [_user_json(u) for u in users]})

    @app.route("/api/admin/users", methods=["POST"], endpoint="add_user")
    @role_required(Role.ADMIN)
    @json_api
    def add_user():
        body = json_body()
        user_id = container.user_service.create_account(
            current_role=current_user().role,
            role=_parse_role(body.get("role")),
            name=body.get("name", ""),
            identifier=body.get("identifier", ""),
            password=body.get("password", ""),
            branch=body.get("branch"),
            year=body.get("year"),
            section=body.get("section"),
        )
        return jsonify({"success": True, "userId": user_id}), 201

    @app.route("/api/admin/users/<int:user_id>", methods=["DELETE"], endpoint="delete_user")
    @role_required(Role.ADMIN)
    @json_api
    def delete_user(user_id: int):
        container.user_service.delete_user(current_role=current_user().role, user_id=require_int(user_id, "User ID"))
        return jsonify({"success": True})

    @app.route("/api/admin/users/<int:user_id>", methods=["PUT"], endpoint="update_user")
    @role_required(Role.ADMIN)
    @json_api
    def update_user(user_id: int):
        body = json_body()
        user = container.user_service.update_user(
            current_role=current_user().role,
            user_id=require_int(user_id, "User ID"),
            name=body.get("name"),
            password=body.get("password"),
            branch=body.get("branch"),
            year=body.get("year"),
            section=body.get("section"),
            is_active=body.get("isActive"),
        )
        return jsonify({"success": True, "user": _user_json(user)})
