from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from src.classsync.classsync.attendance.service import AttendanceService
from src.classsync.classsync.classes.service import ClassRegistry
from src.classsync.classsync.core.constants import DEFAULT_PERIOD_TABLE
from src.classsync.classsync.core.enums import AttendanceMethod, Role, SessionEventKind, SessionStatus
from src.classsync.classsync.core.exceptions import (
    AuthorizationError,
    DuplicateAttendance,
    InvalidPeriods,
    PeriodNotInSession,
    SessionAlreadyActive,
    SessionNotActive,
    SignalTooWeak,
    StudentNotEnrolled,
    UnknownClass,
    UnknownSession,
)
from src.classsync.classsync.sessions.model import DiscoveredDevice
from src.classsync.classsync.sessions.registry import SessionRegistry
from src.classsync.classsync.sessions.service import SessionManager
from src.classsync.classsync.timeslots.resolver import TimeSlotResolver

from tests.fakes import InMemoryAttendance, InMemoryClasses, InMemorySessions

DAY = date(2026, 2, 2)


def _manager(os_class, *, signal_threshold=-80, sessions=None, attendance=None, registry=None):
    resolver = TimeSlotResolver(DEFAULT_PERIOD_TABLE)
    return SessionManager(
        sessions if sessions is not None else InMemorySessions(),
        ClassRegistry(InMemoryClasses([os_class]), resolver),
        AttendanceService(attendance if attendance is not None else InMemoryAttendance()),
        resolver,
        registry=registry,
        signal_threshold=signal_threshold,
    )


def test_record_presence_validation_order(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1, 2], "FAC001", now=fixed_now)

    record = manager.record_presence(session.session_id, "S1", 1, signal=-60, now=fixed_now)
    assert record.student_id == "S1"
    assert record.method == AttendanceMethod.PROXIMITY

    with pytest.raises(DuplicateAttendance):
        manager.record_presence(session.session_id, "S1", 1, signal=-60, now=fixed_now)
    with pytest.raises(StudentNotEnrolled):
        manager.record_presence(session.session_id, "S3", 1, signal=-60, now=fixed_now)
    with pytest.raises(PeriodNotInSession):
        manager.record_presence(session.session_id, "S2", 3, signal=-60, now=fixed_now)


def test_start_session_preconditions(os_class, fixed_now):
    manager = _manager(os_class)

    with pytest.raises(UnknownClass):
        manager.start_session(99, DAY, [1], "FAC001", now=fixed_now)
    with pytest.raises(InvalidPeriods):
        manager.start_session(1, DAY, [], "FAC001", now=fixed_now)
    with pytest.raises(InvalidPeriods):
        manager.start_session(1, DAY, [1, 4], "FAC001", now=fixed_now)
    with pytest.raises(InvalidPeriods):
        manager.start_session(1, DAY, [2, 2], "FAC001", now=fixed_now)
    with pytest.raises(AuthorizationError):
        manager.start_session(1, DAY, [1], "FAC002", current_role=Role.FACULTY, now=fixed_now)


def test_one_active_session_per_class_and_date(os_class, fixed_now):
    manager = _manager(os_class)
    first = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)

    with pytest.raises(SessionAlreadyActive):
        manager.start_session(1, DAY, [2], "FAC001", now=fixed_now)
    # another date is independent
    manager.start_session(1, date(2026, 2, 3), [1], "FAC001", now=fixed_now)

    manager.stop_session(first.session_id, now=fixed_now)
    second = manager.start_session(1, DAY, [2], "FAC001", now=fixed_now)
    assert second.session_id != first.session_id


def test_stop_is_idempotent_and_closes_recording(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1, 2], "FAC001", now=fixed_now)

    stopped = manager.stop_session(session.session_id, now=fixed_now)
    assert stopped.status == SessionStatus.COMPLETED
    assert stopped.end_time == fixed_now

    with pytest.raises(SessionNotActive):
        manager.record_presence(session.session_id, "S1", 1, signal=-50, now=fixed_now)
    with pytest.raises(SessionNotActive):
        manager.mark_manual(session.session_id, "S1", 1, now=fixed_now)

    again = manager.stop_session(session.session_id, now=datetime(2026, 2, 2, 11, 0))
    assert again == stopped


def test_cancel_keeps_records_and_clears_discovery(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    manager.mark_manual(session.session_id, "S1", 1, now=fixed_now)
    manager.begin_scan(session.session_id)
    manager.note_discovery(session.session_id, DiscoveredDevice("D2", "phone", -50, fixed_now, "S2"))

    cancelled = manager.cancel_session(session.session_id, now=fixed_now)
    assert cancelled.status == SessionStatus.CANCELLED
    assert manager.discovered_devices(session.session_id) == []
    assert manager.is_scanning(session.session_id) is False
    assert [r.student_id for r in manager.get_session(session.session_id).records] == ["S1"]

    assert manager.cancel_session(session.session_id) == cancelled
    with pytest.raises(SessionNotActive):
        manager.record_presence(session.session_id, "S2", 1, signal=-50, now=fixed_now)


def test_cancel_after_completion_is_rejected(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    manager.stop_session(session.session_id, now=fixed_now)
    with pytest.raises(SessionNotActive):
        manager.cancel_session(session.session_id)


def test_signal_threshold_applies_to_proximity_only(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1, 2], "FAC001", now=fixed_now)

    with pytest.raises(SignalTooWeak, match="Device not in range or signal too weak"):
        manager.record_presence(session.session_id, "S1", 1, signal=-81, now=fixed_now)
    with pytest.raises(SignalTooWeak):
        manager.record_presence(session.session_id, "S1", 1, signal=None, now=fixed_now)

    manager.record_presence(session.session_id, "S1", 1, signal=-80, now=fixed_now)
    record = manager.mark_manual(session.session_id, "S2", 2, now=fixed_now)
    assert record.method == AttendanceMethod.MANUAL
    assert record.signal_strength is None


def test_no_threshold_accepts_missing_signal(os_class, fixed_now):
    manager = _manager(os_class, signal_threshold=None)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    assert manager.record_presence(session.session_id, "S1", 1, now=fixed_now).signal_strength is None


def test_concurrent_duplicate_presence_only_one_succeeds(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)

    barrier = threading.Barrier(8)
    results: list[str] = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            manager.record_presence(session.session_id, "S1", 1, signal=-50, now=fixed_now)
            outcome = "ok"
        except DuplicateAttendance:
            outcome = "duplicate"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert sorted(results) == ["duplicate"] * 7 + ["ok"]


def test_store_constraint_wins_across_managers(os_class, fixed_now):
    # two processes sharing one store: each has its own registry and locks
    sessions = InMemorySessions()
    attendance = InMemoryAttendance()
    a = _manager(os_class, sessions=sessions, attendance=attendance)
    b = _manager(os_class, sessions=sessions, attendance=attendance)

    session = a.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    with pytest.raises(SessionAlreadyActive):
        b.start_session(1, DAY, [1], "FAC001", now=fixed_now)

    a.record_presence(session.session_id, "S1", 1, signal=-50, now=fixed_now)
    with pytest.raises(DuplicateAttendance):
        b.record_presence(session.session_id, "S1", 1, signal=-50, now=fixed_now)


def test_stop_in_one_manager_closes_recording_in_another(os_class, fixed_now):
    sessions = InMemorySessions()
    attendance = InMemoryAttendance()
    a = _manager(os_class, sessions=sessions, attendance=attendance)
    b = _manager(os_class, sessions=sessions, attendance=attendance)

    session = a.start_session(1, DAY, [1, 2], "FAC001", now=fixed_now)
    a.begin_scan(session.session_id)
    a.record_presence(session.session_id, "S1", 1, signal=-50, now=fixed_now)

    b.stop_session(session.session_id, now=fixed_now)

    with pytest.raises(SessionNotActive):
        a.record_presence(session.session_id, "S2", 1, signal=-50, now=fixed_now)
    with pytest.raises(SessionNotActive):
        a.mark_manual(session.session_id, "S2", 2, now=fixed_now)
    assert a.get_session(session.session_id).status == SessionStatus.COMPLETED
    assert a.is_scanning(session.session_id) is False
    assert [r.student_id for r in attendance.list_for_session(session.session_id)] == ["S1"]


def test_injected_registry_is_used_even_when_empty(os_class, fixed_now):
    shared = SessionRegistry()
    manager = _manager(os_class, registry=shared)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)

    assert len(shared) == 1
    assert shared.get(session.session_id).session.session_id == session.session_id


def test_fractional_signal_is_compared_unrounded(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1, 2], "FAC001", now=fixed_now)

    with pytest.raises(SignalTooWeak):
        manager.record_presence(session.session_id, "S1", 1, signal=-80.5, now=fixed_now)
    assert manager.get_session(session.session_id).records == ()

    record = manager.record_presence(session.session_id, "S1", 1, signal=-79.5, now=fixed_now)
    assert record.signal_strength == -79.5
    assert manager.record_presence(session.session_id, "S2", 1, signal=-80.0, now=fixed_now).signal_strength == -80.0


def test_listeners_get_events_after_each_transition(os_class, fixed_now):
    manager = _manager(os_class)
    seen = []
    manager.add_listener(lambda e: seen.append((e.kind, e.record.student_id if e.record else None)))

    def broken(_event):
        raise RuntimeError("listener bug")

    manager.add_listener(broken)

    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    manager.mark_manual(session.session_id, "S2", 1, now=fixed_now)
    manager.stop_session(session.session_id, now=fixed_now)
    manager.stop_session(session.session_id, now=fixed_now)

    assert seen == [
        (SessionEventKind.STARTED, None),
        (SessionEventKind.MARKED, "S2"),
        (SessionEventKind.STOPPED, None),
    ]


def test_discovery_only_while_scanning(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    device = DiscoveredDevice("D1", "phone", -55, fixed_now, "S1")

    assert manager.note_discovery(session.session_id, device) is None
    manager.begin_scan(session.session_id)
    assert manager.note_discovery(session.session_id, device) == device
    assert manager.device_signal(session.session_id, "D1") == -55
    manager.end_scan(session.session_id)
    assert manager.note_discovery(session.session_id, device) is None
    assert manager.discovered_devices(session.session_id) == [device]


def test_lookup_and_routing_helpers(os_class, fixed_now):
    manager = _manager(os_class)
    with pytest.raises(UnknownSession):
        manager.get_session(404)

    session = manager.start_session(1, fixed_now.date(), [1, 2], "FAC001", now=fixed_now)
    assert manager.active_session_for_faculty("FAC001").session_id == session.session_id
    assert manager.active_session_for_faculty("FAC002") is None

    assert manager.session_for_student_request("S1", now=fixed_now).session_id == session.session_id
    assert manager.session_for_student_request("S9", now=fixed_now) is None
    # 11:30 is period 3, which the session does not cover
    assert manager.session_for_student_request("S1", now=datetime(2026, 2, 2, 11, 30)) is None
    # lunch break has no current period
    assert manager.session_for_student_request("S1", now=datetime(2026, 2, 2, 13, 0)) is None


def test_sessions_are_rehydrated_after_restart(os_class, fixed_now):
    sessions = InMemorySessions()
    attendance = InMemoryAttendance()
    before = _manager(os_class, sessions=sessions, attendance=attendance)
    session = before.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    before.shutdown()

    after = _manager(os_class, sessions=sessions, attendance=attendance)
    after.mark_manual(session.session_id, "S1", 1, now=fixed_now)
    assert after.get_session(session.session_id).is_active
    assert after.active_session_for_faculty("FAC001").session_id == session.session_id


def test_archive_only_finished_sessions(os_class, fixed_now):
    manager = _manager(os_class)
    session = manager.start_session(1, DAY, [1], "FAC001", now=fixed_now)
    with pytest.raises(SessionNotActive):
        manager.archive(session.session_id)
    manager.stop_session(session.session_id, now=fixed_now)
    manager.archive(session.session_id)
    # still readable from the store afterwards
    assert manager.get_session(session.session_id).status == SessionStatus.COMPLETED
