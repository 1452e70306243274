from __future__ import annotations

from dataclasses import dataclass
from datetime import time


@dataclass(frozen=True)
class TimeSlot:
    """One numbered period of the school day, in minutes since midnight."""

    period: int
    start_minutes: int
    end_minutes: int

    def contains(self, minutes: int) -> bool:
        # start inclusive, end exclusive: a boundary belongs to the period that is starting
        return self.start_minutes <= minutes < self.end_minutes

    @property
    def start_time(self) -> time:
        return time(hour=self.start_minutes // 60, minute=self.start_minutes % 60)

    @property
    def end_time(self) -> time:
        return time(hour=self.end_minutes // 60, minute=self.end_minutes % 60)
