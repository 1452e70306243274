from __future__ import annotations

import csv
import io
from datetime import date
from typing import Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local, parse_iso_date
from ..common.validators import require_int
from ..common.web import current_user, ensure_self_or_admin, json_api, login_required, role_required
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceMethod, Role
from ..core.exceptions import ValidationError
from .model import AttendanceRecord, RecordFilter
from .service import EXPORT_FIELDS


def record_to_json(r: AttendanceRecord) -> dict:
    return {
        "recordId": r.record_id,
        "sessionId": r.session_id,
        "classId": r.class_id,
        "studentId": r.student_id,
        "date": r.record_date.strftime("%Y-%m-%d"),
        "period": r.period,
        "status": r.status.value,
        "method": r.method.value,
        "recordedAt": r.recorded_at.isoformat(timespec="seconds"),
        "deviceId": r.device_id,
        "signalStrength": r.signal_strength,
    }


def _optional_date(name: str) -> Optional[date]:
    value = request.args.get(name)
    return parse_iso_date(value) if value else None


def _optional_int(name: str) -> Optional[int]:
    value = request.args.get(name)
    return require_int(value, name) if value else None


def _optional_method() -> Optional[AttendanceMethod]:
    method = request.args.get("method")
    try:
        return AttendanceMethod(method) if method else None
    except ValueError:
        raise ValidationError(f"Unknown method: {method}")


def _date_range() -> tuple[Optional[date], Optional[date]]:
    """``date`` is shorthand for start == end; it cannot be combined with either."""

    on = _optional_date("date")
    start, end = _optional_date("start"), _optional_date("end")
    if on is None:
        return start, end
    if start is not None or end is not None:
        raise ValidationError("Use either date or start/end, not both")
    return on, on


def _filters_from_args(*, student_id: Optional[str] = None) -> RecordFilter:
    start, end = _date_range()
    return RecordFilter(
        student_id=student_id or request.args.get("studentId") or None,
        class_id=_optional_int("classId"),
        session_id=_optional_int("sessionId"),
        start_date=start,
        end_date=end,
        period=_optional_int("period"),
        method=_optional_method(),
    )


def register(app: Flask, container: Container) -> None:
    def _write_report_csv(*, rows: list[dict], filename: str):
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/student/attendance/<student_id>", methods=["GET"], endpoint="student_attendance")
    @login_required
    @json_api
    def student_attendance(student_id: str):
        ensure_self_or_admin(current_user(), student_id)
        limit = _optional_int("limit") or DEFAULT_HISTORY_LIMIT
        records = container.attendance_service.query_records(_filters_from_args(student_id=student_id), limit=limit)
        return jsonify({"records": [record_to_json(r) for r in records]})

    @app.route("/api/student/attendance/summary/<student_id>", methods=["GET"], endpoint="student_attendance_summary")
    @login_required
    @json_api
    def student_attendance_summary(student_id: str):
        ensure_self_or_admin(current_user(), student_id)
        data = container.report_service.student_summary(
            student_id,
            start=_optional_date("start"),
            end=_optional_date("end"),
        )
        return jsonify({"overall": data.overall, "subjects": data.subjects})

    @app.route("/api/attendance/today", methods=["GET"], endpoint="attendance_today")
    @role_required(Role.FACULTY, Role.ADMIN)
    @json_api
    def attendance_today():
        user = current_user()
        on = _optional_date("date") or now_local().date()
        records = container.report_service.day_records(
            on,
            current_role=user.role,
            faculty_id=user.identifier,
            class_id=_optional_int("classId"),
            period=_optional_int("period"),
            method=_optional_method(),
        )
        return jsonify({"date": on.strftime("%Y-%m-%d"), "records": [record_to_json(r) for r in records]})

    @app.route("/api/admin/attendance/export", methods=["GET"], endpoint="admin_attendance_export")
    @role_required(Role.ADMIN)
    @json_api
    def admin_attendance_export():
        filters = _filters_from_args()
        rows = container.attendance_service.export_rows(filters)
        suffix = filters.start_date.strftime("%Y%m%d") if filters.start_date else "all"
        return _write_report_csv(rows=rows, filename=f"attendance_{suffix}.csv")

    @app.route("/api/admin/attendance/import", methods=["POST"], endpoint="admin_attendance_import")
    @role_required(Role.ADMIN)
    @json_api
    def admin_attendance_import():
        upload = request.files.get("file")
        raw = upload.read() if upload else request.get_data()
        if not raw:
            raise ValidationError("CSV content is required")
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV must be UTF-8 encoded")
        result = container.attendance_service.import_rows(csv.DictReader(io.StringIO(text)))
        return jsonify({"success": True, "imported": result.imported, "duplicates": result.duplicates})
