from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local
from ..common.validators import require_int, require_non_empty
from ..common.web import current_user, json_api, json_body, login_required, role_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .model import ClassSchedule, TimetableEntry, TimetableSlot


def _class_json(c: ClassSchedule, *, with_roster: bool = False) -> dict:
    out = {
        "classId": c.class_id,
        "subject": c.subject,
        "facultyId": c.faculty_id,
        "branch": c.branch,
        "year": c.year,
        "semester": c.semester,
        "section": c.section,
        "periods": list(c.periods),
        "isActive": c.is_active,
    }
    if with_roster:
        out["students"] = sorted(c.students)
    return out


def _entry_json(e: TimetableEntry) -> dict:
    return {
        "day": e.day,
        "period": e.period,
        "subject": e.subject,
        "facultyId": e.faculty_id,
        "room": e.room,
        "branch": e.branch,
        "year": e.year,
        "section": e.section,
    }


def register(app: Flask, container: Container) -> None:
    registry = container.class_registry
    resolver = container.resolver

    def _group_from_request() -> tuple[str, int, str]:
        """(branch, year, section) from the query string, or the student's own group."""

        user = current_user()
        if request.args.get("branch") or user.role != Role.STUDENT:
            return (
                require_non_empty(request.args.get("branch", ""), "Branch"),
                require_int(request.args.get("year"), "Year"),
                require_non_empty(request.args.get("section", ""), "Section"),
            )
        profile = container.users_repo.get_by_id(user.user_id)
        if not profile or not profile.branch or profile.year is None or not profile.section:
            raise ValidationError("Your account has no branch/year/section")
        return profile.branch, profile.year, profile.section

    @app.route("/api/periods", methods=["GET"], endpoint="periods")
    @login_required
    def periods():
        return jsonify(
            {
                "periods": [
                    {"period": s.period, "start": s.start_time.strftime("%H:%M"), "end": s.end_time.strftime("%H:%M"), "label": resolver.label(s.period)}
                    for s in resolver.slots()
                ]
            }
        )

    @app.route("/api/timetable", methods=["GET"], endpoint="timetable")
    @login_required
    @json_api
    def timetable():
        branch, year, section = _group_from_request()
        grouped = registry.schedule_for(branch, year, section)
        return jsonify({"branch": branch, "year": year, "section": section, "days": {d: [_entry_json(e) for e in es] for d, es in grouped.items()}})

    @app.route("/api/timetable/current", methods=["GET"], endpoint="timetable_current")
    @login_required
    @json_api
    def timetable_current():
        branch, year, section = _group_from_request()
        now = now_local()
        current, upcoming = registry.current_and_next(branch, year, section, now=now)
        return jsonify(
            {
                "currentPeriod": resolver.period_for_time(now),
                "current": _entry_json(current) if current else None,
                "next": _entry_json(upcoming) if upcoming else None,
            }
        )

    @app.route("/api/faculty/timetable", methods=["GET"], endpoint="faculty_timetable")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def faculty_timetable():
        user = current_user()
        faculty_id = request.args.get("facultyId") if user.is_admin else user.identifier
        faculty_id = require_non_empty(faculty_id or "", "Faculty ID")
        return jsonify({"entries": [_entry_json(e) for e in registry.timetable_for_faculty(faculty_id)]})

    @app.route("/api/faculty/classes", methods=["GET"], endpoint="faculty_classes")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def faculty_classes():
        user = current_user()
        faculty_id = request.args.get("facultyId") if user.is_admin else user.identifier
        faculty_id = require_non_empty(faculty_id or "", "Faculty ID")
        return jsonify({"classes": [_class_json(c) for c in registry.classes_owned_by(faculty_id)]})

    @app.route("/api/student/classes", methods=["GET"], endpoint="student_classes")
    @role_required(Role.STUDENT)
    @json_api
    def student_classes():
        return jsonify({"classes": [_class_json(c) for c in registry.classes_for_student(current_user().identifier)]})

    @app.route("/api/classes/<int:class_id>/roster", methods=["GET"], endpoint="class_roster")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def class_roster(class_id: int):
        user = current_user()
        cls = registry.get_class(class_id)
        if not user.is_admin and cls.faculty_id != user.identifier:
            raise AuthorizationError("You can only view rosters of your own classes")
        return jsonify(_class_json(cls, with_roster=True))

    @app.route("/api/admin/classes", methods=["POST"], endpoint="admin_create_class")
    @role_required(Role.ADMIN)
    @json_api
    def admin_create_class():
        body = json_body()
        class_id = registry.create_class(
            current_role=current_user().role,
            subject=body.get("subject", ""),
            faculty_id=body.get("facultyId", ""),
            branch=body.get("branch", ""),
            year=body.get("year"),
            section=body.get("section", ""),
            periods=body.get("periods") or [],
            students=body.get("students") or [],
            semester=body.get("semester", ""),
        )
        return jsonify({"success": True, "classId": class_id}), 201

    @app.route("/api/admin/classes/<int:class_id>/students", methods=["POST"], endpoint="admin_add_student")
    @role_required(Role.ADMIN)
    @json_api
    def admin_add_student(class_id: int):
        body = json_body()
        added = registry.add_student(current_role=current_user().role, class_id=class_id, student_id=body.get("studentId", ""))
        return jsonify({"success": True, "added": added})

    @app.route("/api/admin/classes/<int:class_id>/students/<student_id>", methods=["DELETE"], endpoint="admin_remove_student")
    @role_required(Role.ADMIN)
    @json_api
    def admin_remove_student(class_id: int, student_id: str):
        removed = registry.remove_student(current_role=current_user().role, class_id=class_id, student_id=student_id)
        return jsonify({"success": True, "removed": removed})

    @app.route("/api/admin/classes/<int:class_id>", methods=["DELETE"], endpoint="admin_archive_class")
    @role_required(Role.ADMIN)
    @json_api
    def admin_archive_class(class_id: int):
        registry.archive_class(current_role=current_user().role, class_id=class_id)
        return jsonify({"success": True})

    @app.route("/api/admin/timetable", methods=["PUT"], endpoint="admin_replace_timetable")
    @role_required(Role.ADMIN)
    @json_api
    def admin_replace_timetable():
        body = json_body()
        raw_entries = body.get("entries")
        if not isinstance(raw_entries, list):
            raise ValidationError("entries must be a list")

        slots = []
        for item in raw_entries:
            if not isinstance(item, dict):
                raise ValidationError("Each timetable entry must be an object")
            slots.append(
                TimetableSlot(
                    day=item.get("day", ""),
                    period=item.get("period"),
                    subject=item.get("subject", ""),
                    faculty_id=item.get("facultyId", ""),
                    room=item.get("room", "") or "",
                )
            )

        count = registry.replace_timetable(
            current_role=current_user().role,
            branch=body.get("branch", ""),
            year=body.get("year"),
            section=body.get("section", ""),
            slots=slots,
        )
        return jsonify({"success": True, "count": count})
