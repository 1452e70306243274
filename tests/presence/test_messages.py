from __future__ import annotations

from datetime import datetime

import pytest

from src.classsync.classsync.core.exceptions import ValidationError
from src.classsync.classsync.presence.messages import (
    AttendanceMarked,
    AttendanceRequest,
    AttendanceResponse,
    DeviceDiscovered,
    DeviceFound,
    ErrorNotice,
    ScanStart,
    ScanStop,
    parse_message,
)
from src.classsync.classsync.sessions.model import DiscoveredDevice


def test_parse_client_messages():
    assert parse_message({"type": "SCAN_START", "facultyId": "FAC001"}) == ScanStart("FAC001")
    assert parse_message({"type": "SCAN_STOP", "facultyId": "FAC001"}) == ScanStop("FAC001")
    assert parse_message({"type": "ATTENDANCE_REQUEST", "studentId": "S1", "deviceId": "D1"}) == AttendanceRequest("S1", "D1")

    sighting = parse_message(
        {"type": "DEVICE_DISCOVERED", "deviceId": "D1", "deviceName": "Pixel", "signal": "-62", "studentId": "S1", "period": 2}
    )
    assert sighting == DeviceDiscovered(device_id="D1", device_name="Pixel", signal=-62, student_id="S1", period=2)


def test_anonymous_sighting_has_no_student():
    sighting = parse_message({"type": "DEVICE_DISCOVERED", "deviceId": "D9", "signal": -70})
    assert sighting.student_id is None
    assert sighting.period is None
    assert sighting.device_name == ""


@pytest.mark.parametrize(
    "legacy,expected",
    [
        ("FACULTY_SCAN_START", ScanStart),
        ("FACULTY_SCAN_STOP", ScanStop),
    ],
)
def test_legacy_scan_tags_are_accepted(legacy, expected):
    assert isinstance(parse_message({"type": legacy, "facultyId": "FAC001"}), expected)


def test_legacy_bluetooth_tag_maps_to_device_discovered():
    msg = parse_message({"type": "BLUETOOTH_DEVICE_DISCOVERED", "deviceId": "D1", "signal": -50})
    assert isinstance(msg, DeviceDiscovered)


@pytest.mark.parametrize(
    "data,reason",
    [
        ([], "JSON object"),
        ({"facultyId": "FAC001"}, "type is required"),
        ({"type": "PING"}, "Unknown message type"),
        ({"type": "SCAN_START"}, "Missing field: facultyId"),
        ({"type": "SCAN_START", "facultyId": "  "}, "Missing field: facultyId"),
        ({"type": "DEVICE_DISCOVERED", "deviceId": "D1", "signal": "strong"}, "must be a number"),
        ({"type": "DEVICE_DISCOVERED", "deviceId": "D1", "signal": True}, "must be a number"),
        ({"type": "DEVICE_DISCOVERED", "deviceId": "D1", "signal": float("nan")}, "must be a finite number"),
        ({"type": "ATTENDANCE_REQUEST", "studentId": "S1"}, "Missing field: deviceId"),
    ],
)
def test_malformed_messages_are_rejected(data, reason):
    with pytest.raises(ValidationError, match=reason):
        parse_message(data)


def test_server_messages_serialize_with_type_tag():
    device = DiscoveredDevice("D1", "Pixel", -60, datetime(2026, 2, 2, 9, 45, 10), "S1")

    assert DeviceFound(device).to_dict() == {
        "type": "DEVICE_FOUND",
        "device": {
            "deviceId": "D1",
            "deviceName": "Pixel",
            "signal": -60,
            "studentId": "S1",
            "discoveredAt": "2026-02-02T09:45:10",
        },
    }
    assert AttendanceMarked("S1", "D1", 1).to_dict() == {"type": "ATTENDANCE_MARKED", "studentId": "S1", "deviceId": "D1", "period": 1}
    assert AttendanceResponse(False, "No active session").to_dict()["success"] is False
    assert ErrorNotice("boom").to_dict() == {"type": "ERROR", "message": "boom"}


def test_client_message_to_dict_parses_back():
    msg = DeviceDiscovered(device_id="D1", device_name="Pixel", signal=-60, student_id="S1")
    assert parse_message(msg.to_dict()) == msg


def test_fractional_signal_is_kept_as_sent():
    msg = parse_message({"type": "DEVICE_DISCOVERED", "deviceId": "D1", "signal": -80.9, "studentId": "S1"})
    assert msg.signal == -80.9
    assert isinstance(msg.signal, float)

    msg = parse_message({"type": "DEVICE_DISCOVERED", "deviceId": "D1", "signal": "-72.25"})
    assert msg.signal == -72.25
