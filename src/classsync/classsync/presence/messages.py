"""Typed messages carried by the presence channel.

Every message is a frozen dataclass with a ``TYPE`` tag. On the wire a message
is a JSON object whose ``type`` field holds the tag; payload keys are camelCase.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from ..common.validators import require_float
from ..core.exceptions import ValidationError
from ..sessions.model import DiscoveredDevice


def _text(payload: dict, key: str, *, required: bool = True) -> Optional[str]:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"Missing field: {key}")
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"Field {key} must be a string")
    return str(value).strip()


def _number(payload: dict, key: str, *, required: bool = True) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ValidationError(f"Missing field: {key}")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Field {key} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Field {key} must be a number")


def _signal(payload: dict, key: str) -> float:
    # dBm readings are fractional; kept as sent so the threshold sees the raw value
    if payload.get(key) is None:
        raise ValidationError(f"Missing field: {key}")
    return require_float(payload[key], f"Field {key}")


# -- client -> engine --------------------------------------------------------


@dataclass(frozen=True)
class ScanStart:
    TYPE: ClassVar[str] = "SCAN_START"

    faculty_id: str

    @classmethod
    def from_payload(cls, payload: dict) -> "ScanStart":
        return cls(faculty_id=_text(payload, "facultyId"))

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "facultyId": self.faculty_id}


@dataclass(frozen=True)
class ScanStop:
    TYPE: ClassVar[str] = "SCAN_STOP"

    faculty_id: str

    @classmethod
    def from_payload(cls, payload: dict) -> "ScanStop":
        return cls(faculty_id=_text(payload, "facultyId"))

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "facultyId": self.faculty_id}


@dataclass(frozen=True)
class DeviceDiscovered:
    """A raw sighting. Without ``student_id`` it never produces a record."""

    TYPE: ClassVar[str] = "DEVICE_DISCOVERED"

    device_id: str
    device_name: str
    signal: float
    student_id: Optional[str] = None
    period: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "DeviceDiscovered":
        return cls(
            device_id=_text(payload, "deviceId"),
            device_name=_text(payload, "deviceName", required=False) or "",
            signal=_signal(payload, "signal"),
            student_id=_text(payload, "studentId", required=False),
            period=_number(payload, "period", required=False),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "type": self.TYPE,
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "signal": self.signal,
        }
        if self.student_id is not None:
            out["studentId"] = self.student_id
        if self.period is not None:
            out["period"] = self.period
        return out


@dataclass(frozen=True)
class AttendanceRequest:
    TYPE: ClassVar[str] = "ATTENDANCE_REQUEST"

    student_id: str
    device_id: str

    @classmethod
    def from_payload(cls, payload: dict) -> "AttendanceRequest":
        return cls(student_id=_text(payload, "studentId"), device_id=_text(payload, "deviceId"))

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "studentId": self.student_id, "deviceId": self.device_id}


# -- engine -> client --------------------------------------------------------


@dataclass(frozen=True)
class AttendanceMarked:
    TYPE: ClassVar[str] = "ATTENDANCE_MARKED"

    student_id: str
    device_id: str
    period: Optional[int] = None

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "studentId": self.student_id, "deviceId": self.device_id, "period": self.period}


@dataclass(frozen=True)
class ScanStarted:
    TYPE: ClassVar[str] = "SCAN_STARTED"

    message: str

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "message": self.message}


@dataclass(frozen=True)
class ScanStopped:
    TYPE: ClassVar[str] = "SCAN_STOPPED"

    message: str

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "message": self.message}


@dataclass(frozen=True)
class DeviceFound:
    TYPE: ClassVar[str] = "DEVICE_FOUND"

    device: DiscoveredDevice

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "device": self.device.to_dict()}


@dataclass(frozen=True)
class AttendanceResponse:
    TYPE: ClassVar[str] = "ATTENDANCE_RESPONSE"

    success: bool
    message: str

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "success": self.success, "message": self.message}


@dataclass(frozen=True)
class ErrorNotice:
    TYPE: ClassVar[str] = "ERROR"

    message: str

    def to_dict(self) -> dict:
        return {"type": self.TYPE, "message": self.message}


ClientMessage = Union[ScanStart, ScanStop, DeviceDiscovered, AttendanceRequest]
ServerMessage = Union[AttendanceMarked, ScanStarted, ScanStopped, DeviceFound, AttendanceResponse, ErrorNotice]

_CLIENT_TYPES = {cls.TYPE: cls for cls in (ScanStart, ScanStop, DeviceDiscovered, AttendanceRequest)}

# Tags used by the earlier browser client.
_LEGACY_TYPES = {
    "FACULTY_SCAN_START": ScanStart.TYPE,
    "FACULTY_SCAN_STOP": ScanStop.TYPE,
    "BLUETOOTH_DEVICE_DISCOVERED": DeviceDiscovered.TYPE,
}


def parse_message(data: Any) -> ClientMessage:
    """Build a client-to-engine message from a decoded JSON object."""

    if not isinstance(data, dict):
        raise ValidationError("Message must be a JSON object")
    tag = data.get("type")
    if not isinstance(tag, str):
        raise ValidationError("Message type is required")
    tag = _LEGACY_TYPES.get(tag, tag)
    cls = _CLIENT_TYPES.get(tag)
    if cls is None:
        raise ValidationError(f"Unknown message type: {tag}")
    return cls.from_payload(data)
