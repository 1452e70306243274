from __future__ import annotations

import json


def _start_session(client):
    resp = client.post("/api/faculty/start-session", json={"classId": 1, "periods": [1, 2], "date": "2026-02-02"})
    assert resp.status_code == 201
    return resp.get_json()["session"]["sessionId"]


def _read_events(resp, wanted: int, *, max_chunks: int = 200) -> list[tuple[str, dict]]:
    """Pull ``wanted`` events off an open event stream, skipping heartbeats."""

    events = []
    chunks = iter(resp.response)
    first = next(chunks)
    assert (first.decode() if isinstance(first, bytes) else first) == "retry: 3000\n\n"
    for _ in range(max_chunks):
        chunk = next(chunks)
        text = chunk.decode() if isinstance(chunk, bytes) else chunk
        if text.startswith(":"):
            continue
        event_line, data_line = text.strip().split("\n")
        events.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
        if len(events) == wanted:
            break
    return events


def test_presence_requires_login(app):
    client = app.test_client()
    assert client.post("/api/presence/connect", json={}).status_code == 401


def test_scan_and_sighting_over_http(app, container, login):
    client = app.test_client()
    assert login(client, "faculty", "FAC001", "faculty123").status_code == 200
    session_id = _start_session(client)

    resp = client.post("/api/presence/connect", json={})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["reconnectDelayMs"] == 3000
    assert body["role"] == "faculty"
    connection_id = body["connectionId"]

    resp = client.post(f"/api/presence/{connection_id}/messages", json={"type": "FACULTY_SCAN_START", "facultyId": "FAC001"})
    assert resp.status_code == 202
    assert resp.get_json() == {"success": True, "accepted": "SCAN_START"}

    resp = client.post(
        f"/api/presence/{connection_id}/messages",
        json={"type": "DEVICE_DISCOVERED", "deviceId": "D1", "deviceName": "Pixel", "signal": -50, "studentId": "S1", "period": 1},
    )
    assert resp.status_code == 202

    stream = client.get(f"/api/presence/{connection_id}/events")
    assert stream.mimetype == "text/event-stream"
    events = _read_events(stream, 3)
    stream.close()

    assert [name for name, _ in events] == ["SCAN_STARTED", "DEVICE_FOUND", "ATTENDANCE_MARKED"]
    assert events[2][1] == {"type": "ATTENDANCE_MARKED", "studentId": "S1", "deviceId": "D1", "period": 1}

    detail = client.get(f"/api/sessions/{session_id}").get_json()
    assert [r["studentId"] for r in detail["records"]] == ["S1"]
    assert detail["records"][0]["method"] == "proximity"


def test_malformed_message_is_a_bad_request(app, login):
    client = app.test_client()
    login(client, "faculty", "FAC001", "faculty123")
    connection_id = client.post("/api/presence/connect", json={}).get_json()["connectionId"]

    resp = client.post(f"/api/presence/{connection_id}/messages", json={"type": "PING"})
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": "Unknown message type: PING"}


def test_connection_belongs_to_its_user(app, login):
    faculty = app.test_client()
    login(faculty, "faculty", "FAC001", "faculty123")
    connection_id = faculty.post("/api/presence/connect", json={}).get_json()["connectionId"]

    student = app.test_client()
    login(student, "student", "S1", "student123")
    resp = student.post(f"/api/presence/{connection_id}/messages", json={"type": "SCAN_STOP", "facultyId": "FAC001"})
    assert resp.status_code == 403

    assert student.delete("/api/presence/unknown").status_code == 404
    assert faculty.delete(f"/api/presence/{connection_id}").get_json() == {"success": True}
