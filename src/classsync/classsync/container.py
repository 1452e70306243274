from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Sequence

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .classes.mysql_class_repository import MySQLClassRepository
from .classes.repository import ClassRepository
from .classes.service import ClassRegistry
from .core.constants import (
    DEFAULT_PERIOD_TABLE,
    DEFAULT_IDLE_CONNECTION_SECONDS,
    DEFAULT_OUTBOX_LIMIT,
    DEFAULT_RECONNECT_DELAY_MS,
    DEFAULT_SIGNAL_THRESHOLD,
    DEFAULT_SIMULATION_DELAY_SECONDS,
)
from .database.connection import DBConfig, DatabaseConnection
from .presence.channel import PresenceChannel, SourceFactory
from .presence.source import SimulatedPresenceSource
from .reports.service import ReportService
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.registry import SessionRegistry
from .sessions.repository import SessionRepository
from .sessions.service import SessionManager
from .timeslots.resolver import TimeSlotResolver
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    classes_repo: ClassRepository
    sessions_repo: SessionRepository
    attendance_repo: AttendanceRepository

    resolver: TimeSlotResolver
    auth_service: AuthService
    user_service: UserService
    class_registry: ClassRegistry
    attendance_service: AttendanceService
    session_manager: SessionManager
    report_service: ReportService
    presence_channel: PresenceChannel


def simulated_source_factory(*, delay_seconds: float, rng: Optional[random.Random] = None) -> SourceFactory:
    def factory(session, roster):
        return SimulatedPresenceSource(roster, delay_seconds=delay_seconds, rng=rng)

    return factory


def wire_services(
    *,
    users_repo,
    classes_repo,
    sessions_repo,
    attendance_repo,
    conn: Optional[DatabaseConnection] = None,
    period_table: Sequence[Sequence] = DEFAULT_PERIOD_TABLE,
    signal_threshold: Optional[float] = DEFAULT_SIGNAL_THRESHOLD,
    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
    outbox_limit: int = DEFAULT_OUTBOX_LIMIT,
    idle_timeout_seconds: Optional[float] = DEFAULT_IDLE_CONNECTION_SECONDS,
    source_factory: Optional[SourceFactory] = None,
) -> Container:
    """Build every service on top of the given repositories.

    Shared by the MySQL wiring below and by tests using in-memory repositories.
    """

    resolver = TimeSlotResolver(period_table)
    class_registry = ClassRegistry(classes_repo, resolver)
    attendance_service = AttendanceService(attendance_repo)
    session_manager = SessionManager(
        sessions_repo,
        class_registry,
        attendance_service,
        resolver,
        registry=SessionRegistry(),
        signal_threshold=signal_threshold,
    )
    presence_channel = PresenceChannel(
        session_manager,
        source_factory=source_factory,
        reconnect_delay_ms=reconnect_delay_ms,
        outbox_limit=outbox_limit,
        idle_timeout_seconds=idle_timeout_seconds,
    )

    return Container(
        conn=conn,
        users_repo=users_repo,
        classes_repo=classes_repo,
        sessions_repo=sessions_repo,
        attendance_repo=attendance_repo,
        resolver=resolver,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo),
        class_registry=class_registry,
        attendance_service=attendance_service,
        session_manager=session_manager,
        report_service=ReportService(class_registry, sessions_repo, attendance_service),
        presence_channel=presence_channel,
    )


def build_container(
    *,
    db_config: dict,
    period_table: Sequence[Sequence] = DEFAULT_PERIOD_TABLE,
    signal_threshold: Optional[float] = DEFAULT_SIGNAL_THRESHOLD,
    reconnect_delay_ms: int = DEFAULT_RECONNECT_DELAY_MS,
    outbox_limit: int = DEFAULT_OUTBOX_LIMIT,
    idle_timeout_seconds: Optional[float] = DEFAULT_IDLE_CONNECTION_SECONDS,
    simulate_presence: bool = False,
    simulation_delay_seconds: float = DEFAULT_SIMULATION_DELAY_SECONDS,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        pool_size=int(db_config.get("pool_size", 0)),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire_services(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        classes_repo=MySQLClassRepository(conn),
        sessions_repo=MySQLSessionRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        period_table=period_table,
        signal_threshold=signal_threshold,
        reconnect_delay_ms=reconnect_delay_ms,
        outbox_limit=outbox_limit,
        idle_timeout_seconds=idle_timeout_seconds,
        source_factory=simulated_source_factory(delay_seconds=simulation_delay_seconds) if simulate_presence else None,
    )
