from __future__ import annotations

import logging
import queue
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_IDLE_CONNECTION_SECONDS, DEFAULT_OUTBOX_LIMIT, DEFAULT_RECONNECT_DELAY_MS
from ..core.enums import AttendanceMethod, Role, SessionEventKind
from ..core.exceptions import AuthorizationError, DomainError, NotFoundError, SessionNotActive
from ..sessions.model import AttendanceSession, DiscoveredDevice, SessionEvent
from ..sessions.service import SessionManager
from .messages import (
    AttendanceMarked,
    AttendanceRequest,
    AttendanceResponse,
    ClientMessage,
    DeviceDiscovered,
    DeviceFound,
    ErrorNotice,
    ScanStart,
    ScanStarted,
    ScanStop,
    ScanStopped,
    ServerMessage,
)
from .source import PresenceSource

logger = logging.getLogger(__name__)

SourceFactory = Callable[[AttendanceSession, frozenset], PresenceSource]


class ConnectionClosed(Exception):
    """Raised by Connection.receive once the connection is closed and drained."""


_CLOSE = object()


@dataclass(frozen=True)
class ConnectionContext:
    """Identity of a connection, resolved once when it is opened."""

    connection_id: str
    role: Role
    identifier: str


class Connection:
    """One logical client connection with a bounded, ordered outbox.

    ``last_active`` moves on every inbound message and every outbox read;
    a connection with an open event stream is never considered idle.
    """

    def __init__(
        self,
        context: ConnectionContext,
        *,
        max_pending: int = DEFAULT_OUTBOX_LIMIT,
        clock: Callable[[], datetime] = now_local,
    ):
        self.context = context
        self._outbox: queue.Queue = queue.Queue(maxsize=max(1, int(max_pending)))
        self._closed = threading.Event()
        self._clock = clock
        self._lock = threading.Lock()
        self._streams = 0
        self.last_active: datetime = clock()
        self.dropped = 0
        self.scan_session_id: Optional[int] = None

    @property
    def connection_id(self) -> str:
        return self.context.connection_id

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def streaming(self) -> bool:
        with self._lock:
            return self._streams > 0

    def touch(self) -> None:
        with self._lock:
            self.last_active = self._clock()

    def stream_opened(self) -> None:
        with self._lock:
            self._streams += 1
            self.last_active = self._clock()

    def stream_closed(self) -> None:
        with self._lock:
            self._streams = max(0, self._streams - 1)
            self.last_active = self._clock()

    def idle_for(self, now: datetime) -> float:
        with self._lock:
            return (now - self.last_active).total_seconds()

    def send(self, message: ServerMessage) -> bool:
        """Queue ``message``; False when closed or when the outbox is full."""

        if self._closed.is_set():
            return False
        try:
            self._outbox.put_nowait(message.to_dict())
        except queue.Full:
            with self._lock:
                self.dropped += 1
                dropped = self.dropped
            logger.warning(f"Outbox full on presence connection {self.connection_id}; dropped {message.TYPE} ({dropped} so far)")
            return False
        return True

    def pending(self) -> int:
        return self._outbox.qsize()

    def receive(self, timeout: Optional[float] = None) -> Optional[dict]:
        """Next outgoing message, or None when ``timeout`` elapses first."""

        try:
            item = self._outbox.get(timeout=timeout)
        except queue.Empty:
            if self._closed.is_set():
                raise ConnectionClosed(self.connection_id)
            return None
        if item is _CLOSE:
            raise ConnectionClosed(self.connection_id)
        self.touch()
        return item

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        # a full outbox gives up its oldest message so the reader still sees the close
        while True:
            try:
                self._outbox.put_nowait(_CLOSE)
                return
            except queue.Full:
                try:
                    self._outbox.get_nowait()
                except queue.Empty:
                    continue


class PresenceChannel:
    """Routes presence messages between client connections and the SessionManager.

    The channel keeps no durable state: connections, observers and presence
    sources live here, everything else lives in the manager and the store.
    """

    def __init__(
        self,
        sessions: SessionManager,
        *,
        source_factory: Optional[SourceFactory] = None,
        reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
        outbox_limit: int = DEFAULT_OUTBOX_LIMIT,
        idle_timeout_seconds: Optional[float] = DEFAULT_IDLE_CONNECTION_SECONDS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._sessions = sessions
        self._source_factory = source_factory
        self.reconnect_delay_ms = int(reconnect_delay_ms)
        self._outbox_limit = int(outbox_limit)
        self._idle_timeout = idle_timeout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._observers: dict[int, set[str]] = {}
        self._sources: dict[int, PresenceSource] = {}
        sessions.add_listener(self._on_session_event)

    # -- connections ---------------------------------------------------------

    def connect(self, role: Role, identifier: str) -> ConnectionContext:
        self.reap_idle()
        context = ConnectionContext(connection_id=uuid.uuid4().hex, role=Role(role), identifier=str(identifier))
        conn = Connection(context, max_pending=self._outbox_limit, clock=self._clock)
        with self._lock:
            self._connections[context.connection_id] = conn
        logger.info(f"Presence connection {context.connection_id} opened for {context.role.value} {context.identifier}")
        return context

    def disconnect(self, connection_id: str) -> bool:
        with self._lock:
            conn = self._connections.pop(connection_id, None)
            for session_id in list(self._observers):
                observers = self._observers[session_id]
                observers.discard(connection_id)
                if not observers:
                    del self._observers[session_id]
        if conn is None:
            return False
        conn.close()
        logger.info(f"Presence connection {connection_id} closed")
        return True

    def reap_idle(self) -> list[str]:
        """Close connections that have no open stream and no traffic for the idle timeout."""

        if self._idle_timeout is None:
            return []
        now = self._clock()
        with self._lock:
            candidates = list(self._connections.values())
        stale = [c.connection_id for c in candidates if not c.streaming and c.idle_for(now) > self._idle_timeout]
        for connection_id in stale:
            logger.info(f"Presence connection {connection_id} idle for over {self._idle_timeout}s")
            self.disconnect(connection_id)
        return stale

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def get_connection(self, connection_id: str) -> Connection:
        with self._lock:
            conn = self._connections.get(connection_id)
        if conn is None:
            raise NotFoundError(f"Unknown connection: {connection_id}")
        return conn

    def observe(self, connection_id: str, session_id: int) -> None:
        self.get_connection(connection_id)
        with self._lock:
            self._observers.setdefault(int(session_id), set()).add(connection_id)

    def observers_of(self, session_id: int) -> list[Connection]:
        with self._lock:
            ids = list(self._observers.get(int(session_id), ()))
            return [self._connections[i] for i in ids if i in self._connections]

    def send(self, connection_id: str, message: ServerMessage) -> bool:
        with self._lock:
            conn = self._connections.get(connection_id)
        return conn.send(message) if conn else False

    def broadcast(self, session_id: int, message: ServerMessage) -> int:
        """Best-effort, at most once per observer. Returns how many outboxes took it."""

        return sum(1 for conn in self.observers_of(session_id) if conn.send(message))

    def shutdown(self) -> None:
        with self._lock:
            sources = list(self._sources.values())
            self._sources.clear()
            connections = list(self._connections.values())
            self._connections.clear()
            self._observers.clear()
        for source in sources:
            source.stop()
        for conn in connections:
            conn.close()

    # -- dispatch ------------------------------------------------------------

    def handle(self, connection_id: str, message: ClientMessage) -> None:
        """Process one client message. Failures are replied on the sender's outbox."""

        conn = self.get_connection(connection_id)
        conn.touch()
        try:
            if isinstance(message, ScanStart):
                self._scan_start(conn, message)
            elif isinstance(message, ScanStop):
                self._scan_stop(conn, message)
            elif isinstance(message, DeviceDiscovered):
                self._device_discovered(conn, message)
            elif isinstance(message, AttendanceRequest):
                self._attendance_request(conn, message)
            else:
                conn.send(ErrorNotice(message=f"Unsupported message: {type(message).__name__}"))
        except AuthorizationError as e:
            logger.warning(f"Presence message {message.TYPE} refused for {conn.context.role.value} {conn.context.identifier}: {e}")
            conn.send(ErrorNotice(message=str(e)))
        except DomainError as e:
            logger.info(f"Presence message {message.TYPE} rejected: {e}")
            conn.send(ErrorNotice(message=str(e)))

    def _require_faculty(self, conn: Connection, faculty_id: str) -> None:
        ctx = conn.context
        if ctx.role not in (Role.FACULTY, Role.ADMIN):
            raise AuthorizationError("Only faculty can control scanning")
        if ctx.role == Role.FACULTY and faculty_id != ctx.identifier:
            raise AuthorizationError("Faculty can only scan for their own session")

    def _scan_start(self, conn: Connection, message: ScanStart) -> None:
        self._require_faculty(conn, message.faculty_id)
        session = self._sessions.active_session_for_faculty(message.faculty_id)
        if session is None:
            raise SessionNotActive("No active session")

        self._sessions.begin_scan(session.session_id)
        conn.scan_session_id = session.session_id
        self.observe(conn.connection_id, session.session_id)
        self._attach_source(session)

        logger.info(f"Scanning started for session {session.session_id} by {conn.context.identifier}")
        self.broadcast(session.session_id, ScanStarted(message=f"Scanning started for session {session.session_id}"))

    def _scan_stop(self, conn: Connection, message: ScanStop) -> None:
        self._require_faculty(conn, message.faculty_id)
        session_id = conn.scan_session_id
        if session_id is None:
            session = self._sessions.active_session_for_faculty(message.faculty_id)
            session_id = session.session_id if session else None
        conn.scan_session_id = None
        if session_id is None:
            conn.send(ScanStopped(message="Scanning stopped"))
            return

        self._sessions.end_scan(session_id)
        self._detach_source(session_id)
        logger.info(f"Scanning stopped for session {session_id} by {conn.context.identifier}")
        if not self.broadcast(session_id, ScanStopped(message="Scanning stopped")):
            conn.send(ScanStopped(message="Scanning stopped"))

    def _device_discovered(self, conn: Connection, message: DeviceDiscovered) -> None:
        if conn.scan_session_id is None:
            return
        self._process_sighting(conn.scan_session_id, message, reply_to=conn)

    def _process_sighting(self, session_id: int, message: DeviceDiscovered, *, reply_to: Optional[Connection]) -> None:
        now = self._clock()
        device = DiscoveredDevice(
            device_id=message.device_id,
            device_name=message.device_name,
            signal=message.signal,
            discovered_at=now,
            student_id=message.student_id,
        )
        if self._sessions.note_discovery(session_id, device) is None:
            return
        self.broadcast(session_id, DeviceFound(device=device))

        if message.student_id is None:
            return
        period = message.period if message.period is not None else self._sessions.resolver.period_for_time(now)
        if period is None:
            if reply_to is not None:
                reply_to.send(AttendanceResponse(success=False, message="No period in progress"))
            return
        try:
            self._sessions.record_presence(
                session_id,
                message.student_id,
                period,
                AttendanceMethod.PROXIMITY,
                device_id=message.device_id,
                signal=message.signal,
                now=now,
            )
        except DomainError as e:
            logger.info(f"Sighting of {message.student_id} not recorded: {e}")
            if reply_to is not None:
                reply_to.send(AttendanceResponse(success=False, message=str(e)))

    def _attendance_request(self, conn: Connection, message: AttendanceRequest) -> None:
        ctx = conn.context
        if ctx.role not in (Role.STUDENT, Role.ADMIN):
            raise AuthorizationError("Only students can request attendance")
        if ctx.role == Role.STUDENT and message.student_id != ctx.identifier:
            raise AuthorizationError("Students can only request their own attendance")

        now = self._clock()
        session = self._sessions.session_for_student_request(message.student_id, now=now)
        if session is None:
            conn.send(AttendanceResponse(success=False, message="No active session"))
            return

        period = self._sessions.resolver.period_for_time(now)
        signal = self._sessions.device_signal(session.session_id, message.device_id)
        try:
            self._sessions.record_presence(
                session.session_id,
                message.student_id,
                period,
                AttendanceMethod.PROXIMITY,
                device_id=message.device_id,
                signal=signal,
                now=now,
            )
        except DomainError as e:
            logger.info(f"Attendance request from {message.student_id} rejected: {e}")
            conn.send(AttendanceResponse(success=False, message=str(e)))
            return
        conn.send(AttendanceResponse(success=True, message=f"Attendance marked for period {period}"))

    # -- presence sources ----------------------------------------------------

    def _attach_source(self, session: AttendanceSession) -> None:
        if self._source_factory is None:
            return
        with self._lock:
            if session.session_id in self._sources:
                return
            source = self._source_factory(session, self._sessions.roster_for(session.session_id))
            self._sources[session.session_id] = source
        source.start(lambda sighting: self._process_sighting(session.session_id, sighting, reply_to=None))

    def _detach_source(self, session_id: int) -> None:
        with self._lock:
            source = self._sources.pop(session_id, None)
        if source is not None:
            source.stop()

    # -- manager events ------------------------------------------------------

    def _on_session_event(self, event: SessionEvent) -> None:
        session_id = event.session.session_id
        if event.kind == SessionEventKind.MARKED and event.record is not None:
            self.broadcast(
                session_id,
                AttendanceMarked(
                    student_id=event.record.student_id,
                    device_id=event.record.device_id or "",
                    period=event.record.period,
                ),
            )
        elif event.kind in (SessionEventKind.STOPPED, SessionEventKind.CANCELLED):
            self._detach_source(session_id)
            for conn in self.observers_of(session_id):
                if conn.scan_session_id == session_id:
                    conn.scan_session_id = None
            self.broadcast(session_id, ScanStopped(message=f"Session {event.kind.value}"))
