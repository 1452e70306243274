from __future__ import annotations

START = {"classId": 1, "periods": [1, 2], "date": "2026-02-02"}


def _session_with_marks(app, login):
    faculty = app.test_client()
    login(faculty, "faculty", "FAC001", "faculty123")
    session_id = faculty.post("/api/faculty/start-session", json=START).get_json()["session"]["sessionId"]
    for student_id, period in (("S2", 2), ("S1", 1), ("S2", 1)):
        resp = faculty.post("/api/faculty/mark-attendance", json={"sessionId": session_id, "studentId": student_id, "period": period})
        assert resp.status_code == 201
    return faculty


def test_today_view_lists_the_day_for_the_owning_faculty(app, login):
    faculty = _session_with_marks(app, login)

    resp = faculty.get("/api/attendance/today?date=2026-02-02")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["date"] == "2026-02-02"
    assert [(r["studentId"], r["period"]) for r in body["records"]] == [("S1", 1), ("S2", 1), ("S2", 2)]

    assert faculty.get("/api/attendance/today?date=2026-02-02&period=2").get_json()["records"][0]["studentId"] == "S2"
    assert faculty.get("/api/attendance/today?date=2026-02-03").get_json()["records"] == []


def test_today_view_defaults_to_the_current_date(app, login, monkeypatch, fixed_now):
    faculty = _session_with_marks(app, login)
    monkeypatch.setattr("src.classsync.classsync.attendance.controller.now_local", lambda: fixed_now)

    body = faculty.get("/api/attendance/today").get_json()
    assert body["date"] == "2026-02-02"
    assert len(body["records"]) == 3


def test_today_view_is_scoped_by_role(app, login):
    _session_with_marks(app, login)

    other = app.test_client()
    login(other, "faculty", "FAC002", "faculty123")
    assert other.get("/api/attendance/today?date=2026-02-02").get_json()["records"] == []
    resp = other.get("/api/attendance/today?date=2026-02-02&classId=1")
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Faculty can only view their own classes"

    admin = app.test_client()
    login(admin, "admin", "admin", "admin123")
    assert len(admin.get("/api/attendance/today?date=2026-02-02").get_json()["records"]) == 3

    student = app.test_client()
    login(student, "student", "S1", "student123")
    assert student.get("/api/attendance/today").status_code == 403


def test_date_shorthand_filters_history_and_export(app, login):
    _session_with_marks(app, login)

    student = app.test_client()
    login(student, "student", "S2", "student123")
    records = student.get("/api/student/attendance/S2?date=2026-02-02").get_json()["records"]
    assert sorted(r["period"] for r in records) == [1, 2]
    assert student.get("/api/student/attendance/S2?date=2026-02-01").get_json()["records"] == []

    resp = student.get("/api/student/attendance/S2?date=2026-02-02&start=2026-02-01")
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": "Use either date or start/end, not both"}

    admin = app.test_client()
    login(admin, "admin", "admin", "admin123")
    export = admin.get("/api/admin/attendance/export?date=2026-02-02")
    assert export.headers["Content-Disposition"] == "attachment; filename=attendance_20260202.csv"
    assert len(export.get_data().decode("utf-8-sig").strip().splitlines()) == 4


def test_admin_updates_an_account(app, login):
    admin = app.test_client()
    login(admin, "admin", "admin", "admin123")

    resp = admin.put("/api/admin/users/4", json={"section": "B", "password": "new-secret"})
    assert resp.status_code == 200
    user = resp.get_json()["user"]
    assert (user["identifier"], user["section"], user["branch"]) == ("S1", "B", "CSE")
    assert "passwordHash" not in user

    student = app.test_client()
    assert login(student, "student", "S1", "student123").status_code == 401
    assert login(student, "student", "S1", "new-secret").status_code == 200

    resp = admin.put("/api/admin/users/5", json={"isActive": False})
    assert resp.get_json()["user"]["isActive"] is False
    assert login(app.test_client(), "student", "S2", "student123").status_code == 401

    assert admin.put("/api/admin/users/404", json={"name": "X"}).status_code == 400
    assert student.put("/api/admin/users/5", json={"isActive": True}).status_code == 403
