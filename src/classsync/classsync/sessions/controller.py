from __future__ import annotations

from flask import Flask, jsonify, request

from ..attendance.controller import record_to_json
from ..common.datetime_utils import now_local, parse_iso_date
from ..common.validators import require_int, require_int_list, require_non_empty
from ..common.web import current_user, json_api, json_body, role_required
from ..container import Container
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AuthorizationError, ValidationError
from .model import AttendanceSession


def _session_json(s: AttendanceSession) -> dict:
    return {
        "sessionId": s.session_id,
        "classId": s.class_id,
        "date": s.session_date.strftime("%Y-%m-%d"),
        "periods": list(s.periods),
        "facultyId": s.faculty_id,
        "status": s.status.value,
        "startTime": s.start_time.isoformat(timespec="seconds"),
        "endTime": s.end_time.isoformat(timespec="seconds") if s.end_time else None,
        "records": [record_to_json(r) for r in s.records],
    }


def register(app: Flask, container: Container) -> None:
    manager = container.session_manager

    def _owned_session(session_id: int) -> AttendanceSession:
        user = current_user()
        session = manager.get_session(session_id)
        if not user.is_admin and session.faculty_id != user.identifier:
            raise AuthorizationError("This session belongs to another faculty member")
        return session

    @app.route("/api/faculty/start-session", methods=["POST"], endpoint="start_session")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def start_session():
        user = current_user()
        body = json_body()
        faculty_id = body.get("facultyId") if user.is_admin else user.identifier
        session_date = parse_iso_date(body["date"]) if body.get("date") else now_local().date()
        session = manager.start_session(
            require_int(body.get("classId"), "Class ID"),
            session_date,
            require_int_list(body.get("periods"), "Periods"),
            require_non_empty(faculty_id or "", "Faculty ID"),
            current_role=user.role,
        )
        return jsonify({"success": True, "session": _session_json(session)}), 201

    @app.route("/api/faculty/stop-session", methods=["POST"], endpoint="stop_session")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def stop_session():
        body = json_body()
        session = _owned_session(require_int(body.get("sessionId"), "Session ID"))
        stopped = manager.stop_session(session.session_id)
        return jsonify({"success": True, "session": _session_json(stopped)})

    @app.route("/api/admin/sessions/<int:session_id>/cancel", methods=["POST"], endpoint="cancel_session")
    @role_required(Role.ADMIN)
    @json_api
    def cancel_session(session_id: int):
        session = manager.cancel_session(session_id)
        return jsonify({"success": True, "session": _session_json(session)})

    @app.route("/api/faculty/session-status", methods=["GET"], endpoint="session_status")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def session_status():
        user = current_user()
        faculty_id = request.args.get("facultyId") if user.is_admin else user.identifier
        active = manager.active_session_for_faculty(require_non_empty(faculty_id or "", "Faculty ID"))
        if active is None:
            return jsonify({"active": False})
        session = manager.get_session(active.session_id)
        return jsonify(
            {
                "active": True,
                "scanning": manager.is_scanning(session.session_id),
                "session": _session_json(session),
                "devices": [d.to_dict() for d in manager.discovered_devices(session.session_id)],
            }
        )

    @app.route("/api/faculty/sessions", methods=["GET"], endpoint="faculty_sessions")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def faculty_sessions():
        user = current_user()
        faculty_id = request.args.get("facultyId") if user.is_admin else user.identifier
        sessions = manager.sessions_for_faculty(require_non_empty(faculty_id or "", "Faculty ID"))
        return jsonify({"sessions": [_session_json(s) for s in sessions]})

    @app.route("/api/sessions/<int:session_id>", methods=["GET"], endpoint="session_detail")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def session_detail(session_id: int):
        return jsonify(_session_json(_owned_session(session_id)))

    @app.route("/api/faculty/mark-attendance", methods=["POST"], endpoint="mark_attendance")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def mark_attendance():
        body = json_body()
        session = _owned_session(require_int(body.get("sessionId"), "Session ID"))
        try:
            status = AttendanceStatus(body.get("status") or AttendanceStatus.PRESENT.value)
        except ValueError:
            raise ValidationError(f"Unknown status: {body.get('status')}")
        record = manager.mark_manual(
            session.session_id,
            require_non_empty(body.get("studentId", ""), "Student ID"),
            require_int(body.get("period"), "Period"),
            status=status,
        )
        return jsonify({"success": True, "record": record_to_json(record)}), 201
