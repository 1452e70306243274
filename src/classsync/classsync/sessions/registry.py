from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .model import AttendanceSession, DiscoveredDevice


@dataclass
class LiveSession:
    """Process-local state of one session.

    ``lock`` serializes every mutation of this session (status transitions,
    record appends, discovery state). ``roster`` is the class roster captured
    when the session was started or loaded.
    """

    session: AttendanceSession
    roster: frozenset[str]
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    scanning: bool = False
    discovered: dict[str, DiscoveredDevice] = field(default_factory=dict)


class SessionRegistry:
    """Process-wide map of session_id -> LiveSession.

    Entries are added when a session starts (or is first touched after a
    restart) and removed only by explicit archival or shutdown. Only the
    SessionManager reads or writes it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._live: dict[int, LiveSession] = {}

    def get(self, session_id: int) -> Optional[LiveSession]:
        with self._lock:
            return self._live.get(int(session_id))

    def add(self, live: LiveSession) -> LiveSession:
        """Register ``live`` unless another thread got there first; return the winner."""

        with self._lock:
            existing = self._live.get(live.session.session_id)
            if existing is not None:
                return existing
            self._live[live.session.session_id] = live
            return live

    def find(self, predicate: Callable[[LiveSession], bool]) -> list[LiveSession]:
        with self._lock:
            snapshot = list(self._live.values())
        return [live for live in snapshot if predicate(live)]

    def remove(self, session_id: int) -> Optional[LiveSession]:
        with self._lock:
            return self._live.pop(int(session_id), None)

    def clear(self) -> None:
        with self._lock:
            self._live.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)
