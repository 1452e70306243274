from __future__ import annotations

import logging
import random
import threading
from collections import deque
from typing import Callable, Iterable, Optional, Protocol

from ..core.constants import DEFAULT_SIMULATION_DELAY_SECONDS
from .messages import DeviceDiscovered

logger = logging.getLogger(__name__)

Emit = Callable[[DeviceDiscovered], None]


class PresenceSource(Protocol):
    """Anything that can produce DeviceDiscovered sightings for one session."""

    def start(self, emit: Emit) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class SimulatedPresenceSource:
    """Synthetic stand-in for short-range radio scanning.

    Emits one sighting per rostered student, one every ``delay_seconds``,
    on a chain of ``threading.Timer`` objects. Signals are drawn from ``rng``.
    """

    def __init__(
        self,
        student_ids: Iterable[str],
        *,
        delay_seconds: float = DEFAULT_SIMULATION_DELAY_SECONDS,
        rng: Optional[random.Random] = None,
        signal_range: tuple[int, int] = (-90, -40),
    ):
        self._pending = deque(sorted(student_ids))
        self._delay = float(delay_seconds)
        self._rng = rng or random.Random()
        self._signal_range = signal_range
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._emit: Optional[Emit] = None
        self._stopped = False

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._stopped or not self._pending

    def next_sighting(self) -> Optional[DeviceDiscovered]:
        with self._lock:
            if self._stopped or not self._pending:
                return None
            student_id = self._pending.popleft()
        return DeviceDiscovered(
            device_id=f"SIM-{student_id}",
            device_name=f"{student_id} phone",
            signal=self._rng.randint(*self._signal_range),
            student_id=student_id,
        )

    def start(self, emit: Emit) -> None:
        with self._lock:
            if self._emit is not None or self._stopped:
                return
            self._emit = emit
            self._schedule()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _schedule(self) -> None:
        # caller holds self._lock
        if self._stopped or not self._pending:
            self._timer = None
            return
        timer = threading.Timer(self._delay, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        sighting = self.next_sighting()
        if sighting is not None and self._emit is not None:
            try:
                self._emit(sighting)
            except Exception:
                logger.exception(f"Simulated sighting for {sighting.student_id} could not be delivered")
        with self._lock:
            self._schedule()
