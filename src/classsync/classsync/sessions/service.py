from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..attendance.service import AttendanceService
from ..classes.model import ClassSchedule
from ..classes.service import ClassRegistry
from ..common.datetime_utils import now_local
from ..common.validators import require_int, require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceMethod, AttendanceStatus, Role, SessionEventKind, SessionStatus
from ..core.exceptions import (
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
from ..timeslots.resolver import TimeSlotResolver
from .model import AttendanceSession, DiscoveredDevice, SessionEvent
from .registry import LiveSession, SessionRegistry
from .repository import SessionRepository

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEvent], None]


class SessionManager:
    """Owns the lifecycle of attendance sessions.

    State machine per session: none -> active -> (completed | cancelled).
    Every mutating call takes the session's lock and re-reads the status first,
    so a stop or cancel is observed by the very next call. Records are written
    through AttendanceService, whose storage-level unique key is the final
    arbiter for (student, date, period).
    """

    def __init__(
        self,
        sessions: SessionRepository,
        classes: ClassRegistry,
        attendance: AttendanceService,
        resolver: TimeSlotResolver,
        *,
        registry: Optional[SessionRegistry] = None,
        signal_threshold: Optional[float] = None,
    ):
        self._sessions = sessions
        self._classes = classes
        self._attendance = attendance
        self._resolver = resolver
        self._live = registry if registry is not None else SessionRegistry()
        self._signal_threshold = signal_threshold
        self._start_lock = threading.Lock()
        self._listeners: list[SessionListener] = []

    @property
    def resolver(self) -> TimeSlotResolver:
        return self._resolver

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: SessionEvent) -> None:
        # Called outside any session lock; listeners must not block the caller.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Session listener failed for {event.kind.value} event on session {event.session.session_id}")

    def _load(self, session_id: int) -> LiveSession:
        session_id = require_int(session_id, "Session ID")
        live = self._live.get(session_id)
        if live is not None:
            return live

        session = self._sessions.get_by_id(session_id)
        if not session:
            raise UnknownSession(f"Unknown session: {session_id}")
        cls = self._classes.find_class(session.class_id)
        roster = cls.students if cls else frozenset()
        return self._live.add(LiveSession(session=session, roster=roster))

    def _validate_periods(self, cls: ClassSchedule, periods: Sequence[int]) -> tuple[int, ...]:
        if not periods:
            raise InvalidPeriods("Select at least one period")
        ints = [require_int(p, "Period") for p in periods]
        chosen = tuple(sorted(set(ints)))
        if len(chosen) != len(ints):
            raise InvalidPeriods("Duplicate periods in request")
        outside = [p for p in chosen if p not in cls.periods]
        if outside:
            raise InvalidPeriods(f"Periods {outside} are not scheduled for {cls.display_name}")
        return chosen

    # -- lifecycle -----------------------------------------------------------

    def start_session(
        self,
        class_id: int,
        session_date: date,
        periods: Sequence[int],
        faculty_id: str,
        *,
        current_role: Optional[Role] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceSession:
        now = now or now_local()
        faculty_id = require_non_empty(faculty_id, "Faculty ID")

        cls = self._classes.get_class(class_id)
        if not cls.is_active:
            raise UnknownClass(f"Class {cls.class_id} is archived")
        if current_role == Role.FACULTY and cls.faculty_id != faculty_id:
            raise AuthorizationError("You can only take attendance for your own classes")
        chosen = self._validate_periods(cls, periods)

        with self._start_lock:
            running = self._live.find(
                lambda l: l.session.class_id == cls.class_id and l.session.session_date == session_date and l.session.is_active
            )
            if running or self._sessions.find_active(class_id=cls.class_id, session_date=session_date):
                raise SessionAlreadyActive(f"An attendance session is already active for {cls.display_name} on {session_date}")

            session_id = self._sessions.create(
                class_id=cls.class_id,
                session_date=session_date,
                periods=chosen,
                faculty_id=faculty_id,
                start_time=now,
            )
            session = AttendanceSession(
                session_id=session_id,
                class_id=cls.class_id,
                session_date=session_date,
                periods=chosen,
                faculty_id=faculty_id,
                status=SessionStatus.ACTIVE,
                start_time=now,
            )
            self._live.add(LiveSession(session=session, roster=cls.students))

        logger.info(f"Session {session_id} started: class {cls.class_id} on {session_date} periods {list(chosen)} by {faculty_id}")
        self._emit(SessionEvent(kind=SessionEventKind.STARTED, session=session))
        return session

    def stop_session(self, session_id: int, *, now: Optional[datetime] = None) -> AttendanceSession:
        """active -> completed. Stopping a finished session is a no-op."""

        now = now or now_local()
        live = self._load(session_id)
        with live.lock:
            if not live.session.is_active:
                return live.session
            if not self._sessions.finish(session_id=live.session.session_id, status=SessionStatus.COMPLETED, end_time=now):
                # Finished elsewhere (another process); adopt the stored state.
                stored = self._sessions.get_by_id(live.session.session_id)
                if stored:
                    live.session = stored
                live.scanning = False
                return live.session
            live.session = replace(live.session, status=SessionStatus.COMPLETED, end_time=now)
            live.scanning = False
            session = live.session

        logger.info(f"Session {session.session_id} completed")
        self._emit(SessionEvent(kind=SessionEventKind.STOPPED, session=session))
        return session

    def cancel_session(self, session_id: int, *, now: Optional[datetime] = None) -> AttendanceSession:
        """Administrative abort: active -> cancelled.

        Discovery state is discarded; records already written stay in the store.
        """

        now = now or now_local()
        live = self._load(session_id)
        with live.lock:
            if live.session.status == SessionStatus.CANCELLED:
                return live.session
            if live.session.status == SessionStatus.COMPLETED:
                raise SessionNotActive(f"Session {live.session.session_id} is already completed")
            if not self._sessions.finish(session_id=live.session.session_id, status=SessionStatus.CANCELLED, end_time=now):
                stored = self._sessions.get_by_id(live.session.session_id)
                if stored:
                    live.session = stored
                live.scanning = False
                live.discovered.clear()
                return live.session
            live.session = replace(live.session, status=SessionStatus.CANCELLED, end_time=now)
            live.scanning = False
            live.discovered.clear()
            session = live.session

        logger.info(f"Session {session.session_id} cancelled")
        self._emit(SessionEvent(kind=SessionEventKind.CANCELLED, session=session))
        return session

    def archive(self, session_id: int) -> None:
        live = self._live.get(require_int(session_id, "Session ID"))
        if live is None:
            return
        with live.lock:
            if live.session.is_active:
                raise SessionNotActive("Stop the session before archiving it")
        self._live.remove(live.session.session_id)

    def shutdown(self) -> None:
        self._live.clear()

    # -- recording -----------------------------------------------------------

    def record_presence(
        self,
        session_id: int,
        student_id: str,
        period: int,
        method: AttendanceMethod = AttendanceMethod.PROXIMITY,
        device_id: Optional[str] = None,
        signal: Optional[float] = None,
        *,
        status: AttendanceStatus = AttendanceStatus.PRESENT,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        """Validate and append one record; raises a DomainError carrying the reason.

        The stored status is re-read under the session lock, so a stop or cancel
        made by another process closes recording here as well.
        """

        now = now or now_local()
        period = require_int(period, "Period")
        live = self._load(session_id)

        with live.lock:
            session = live.session
            if session.is_active:
                stored = self._sessions.get_by_id(session.session_id)
                if stored is not None and not stored.is_active:
                    logger.info(f"Session {session.session_id} was {stored.status.value} elsewhere; adopting stored state")
                    live.session = session = stored
                    live.scanning = False
            if not session.is_active:
                raise SessionNotActive(f"Session {session.session_id} is not active")
            if student_id not in live.roster:
                raise StudentNotEnrolled(f"Student {student_id} is not enrolled in this class")
            if period not in session.periods:
                raise PeriodNotInSession(f"Period {period} is not part of this session")
            if method == AttendanceMethod.PROXIMITY and self._signal_threshold is not None:
                if signal is None or float(signal) < self._signal_threshold:
                    raise SignalTooWeak("Device not in range or signal too weak")

            try:
                record = self._attendance.record(
                    session_id=session.session_id,
                    class_id=session.class_id,
                    student_id=student_id,
                    record_date=session.session_date,
                    period=period,
                    method=method,
                    recorded_at=now,
                    status=status,
                    device_id=device_id,
                    signal_strength=float(signal) if signal is not None else None,
                )
            except DuplicateAttendance:
                logger.info(f"Duplicate attendance rejected: {student_id} period {period} on {session.session_date}")
                raise

        logger.info(f"Attendance marked: {student_id} period {period} session {session.session_id} via {method.value}")
        self._emit(SessionEvent(kind=SessionEventKind.MARKED, session=session, record=record))
        return record

    def mark_manual(
        self,
        session_id: int,
        student_id: str,
        period: int,
        *,
        status: AttendanceStatus = AttendanceStatus.PRESENT,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        return self.record_presence(session_id, student_id, period, AttendanceMethod.MANUAL, status=status, now=now)

    # -- queries -------------------------------------------------------------

    def get_session(self, session_id: int) -> AttendanceSession:
        live = self._load(session_id)
        records = tuple(self._attendance.records_for_session(live.session.session_id))
        return replace(live.session, records=records)

    def _active_lives(self) -> list[LiveSession]:
        for s in self._sessions.list_active():
            if self._live.get(s.session_id) is None:
                self._load(s.session_id)
        lives = self._live.find(lambda l: l.session.is_active)
        return sorted(lives, key=lambda l: l.session.start_time, reverse=True)

    def active_session_for_faculty(self, faculty_id: str) -> Optional[AttendanceSession]:
        for live in self._active_lives():
            if live.session.faculty_id == faculty_id:
                return live.session
        return None

    def session_for_student_request(self, student_id: str, *, now: Optional[datetime] = None) -> Optional[AttendanceSession]:
        """Active session today whose roster holds the student and whose periods include the current one."""

        now = now or now_local()
        period = self._resolver.period_for_time(now)
        if period is None:
            return None
        for live in self._active_lives():
            s = live.session
            if s.session_date == now.date() and period in s.periods and student_id in live.roster:
                return s
        return None

    def sessions_for_faculty(self, faculty_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> list[AttendanceSession]:
        return list(self._sessions.list_for_faculty(faculty_id, limit=limit))

    # -- discovery state -----------------------------------------------------

    def begin_scan(self, session_id: int) -> AttendanceSession:
        live = self._load(session_id)
        with live.lock:
            if not live.session.is_active:
                raise SessionNotActive(f"Session {live.session.session_id} is not active")
            live.scanning = True
            live.discovered.clear()
            return live.session

    def end_scan(self, session_id: int) -> bool:
        live = self._load(session_id)
        with live.lock:
            was_scanning = live.scanning
            live.scanning = False
            return was_scanning

    def is_scanning(self, session_id: int) -> bool:
        live = self._load(session_id)
        with live.lock:
            return live.scanning and live.session.is_active

    def note_discovery(self, session_id: int, device: DiscoveredDevice) -> Optional[DiscoveredDevice]:
        """Store a sighting; returns None (event dropped) when the session is not scanning."""

        live = self._load(session_id)
        with live.lock:
            if not (live.scanning and live.session.is_active):
                return None
            live.discovered[device.device_id] = device
            return device

    def discovered_devices(self, session_id: int) -> list[DiscoveredDevice]:
        live = self._load(session_id)
        with live.lock:
            return sorted(live.discovered.values(), key=lambda d: d.discovered_at)

    def device_signal(self, session_id: int, device_id: str) -> Optional[float]:
        live = self._load(session_id)
        with live.lock:
            device = live.discovered.get(device_id)
            return device.signal if device else None

    def roster_for(self, session_id: int) -> frozenset[str]:
        return self._load(session_id).roster
