from __future__ import annotations

import re
from datetime import datetime, time
from typing import Iterable, Optional, Sequence, Union

from ..core.exceptions import InvalidTimeFormat, UnknownPeriod, ValidationError
from .model import TimeSlot

ClockValue = Union[str, time, datetime]

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp]\.?[Mm]\.?)?\s*$")

# Timetable entries are often stored without AM/PM ("1:50"); school runs into
# the afternoon, so bare hours in this range are read as PM.
_BARE_AFTERNOON_HOURS = range(1, 7)


def parse_clock(value: ClockValue) -> int:
    """Convert a wall-clock value to minutes since midnight.

    Accepted inputs:
    - ``"9:30 AM"`` / ``"12:00 pm"`` (12-hour clock, 12 AM is midnight, 12 PM is noon)
    - ``"1:50"`` (bare hour 1-6 means afternoon, as in the stored timetable)
    - ``"14:05"`` / ``"0:15"`` (bare 24-hour values outside 1-12)
    - ``datetime.time`` / ``datetime.datetime``

    Raises InvalidTimeFormat for anything else.
    """

    if isinstance(value, datetime):
        return value.hour * 60 + value.minute
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Unsupported time value: {value!r}")

    m = _CLOCK_RE.match(value)
    if not m:
        raise InvalidTimeFormat(f"Invalid time: {value!r}")

    hours = int(m.group(1))
    minutes = int(m.group(2))
    seconds = m.group(3)
    meridiem = m.group(4)

    if minutes > 59 or (seconds is not None and int(seconds) > 59):
        raise InvalidTimeFormat(f"Invalid time: {value!r}")

    if meridiem:
        if not 1 <= hours <= 12:
            raise InvalidTimeFormat(f"Invalid 12-hour time: {value!r}")
        is_pm = meridiem.lower().startswith("p")
        if hours == 12:
            hours = 12 if is_pm else 0
        elif is_pm:
            hours += 12
    else:
        if hours > 23:
            raise InvalidTimeFormat(f"Invalid time: {value!r}")
        if hours in _BARE_AFTERNOON_HOURS:
            hours += 12

    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Render minutes since midnight as a 12-hour clock string ("1:50 PM")."""

    hours, mins = divmod(int(minutes) % (24 * 60), 60)
    suffix = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {suffix}"


class TimeSlotResolver:
    """Maps wall-clock time to class periods and back.

    Comparisons are plain minutes-since-midnight on the local wall clock; there is
    no timezone handling.
    """

    def __init__(self, table: Iterable[Sequence]):
        slots: list[TimeSlot] = []
        for row in table:
            try:
                period, start, end = row
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid period table row: {row!r}")
            slots.append(TimeSlot(period=int(period), start_minutes=parse_clock(start), end_minutes=parse_clock(end)))

        if not slots:
            raise ValidationError("Period table is empty")

        seen: set[int] = set()
        for i, slot in enumerate(slots):
            if slot.period in seen:
                raise ValidationError(f"Duplicate period {slot.period} in period table")
            seen.add(slot.period)
            if slot.start_minutes >= slot.end_minutes:
                raise ValidationError(f"Period {slot.period} ends before it starts")
            if i and slot.start_minutes < slots[i - 1].end_minutes:
                raise ValidationError(f"Period {slot.period} overlaps period {slots[i - 1].period}")

        self._slots = tuple(slots)
        self._by_period = {s.period: s for s in slots}

    def periods(self) -> tuple[int, ...]:
        return tuple(s.period for s in self._slots)

    def slots(self) -> tuple[TimeSlot, ...]:
        return self._slots

    def slot(self, period: int) -> TimeSlot:
        try:
            return self._by_period[int(period)]
        except (KeyError, TypeError, ValueError):
            raise UnknownPeriod(f"Unknown period: {period!r}")

    def has_period(self, period: int) -> bool:
        return period in self._by_period

    def period_for_time(self, value: ClockValue) -> Optional[int]:
        minutes = parse_clock(value)
        for slot in self._slots:
            if slot.contains(minutes):
                return slot.period
        return None

    def next_period_after(self, value: ClockValue) -> Optional[int]:
        minutes = parse_clock(value)
        for slot in self._slots:
            if slot.start_minutes > minutes:
                return slot.period
        return None

    def start_time_of(self, period: int) -> time:
        return self.slot(period).start_time

    def end_time_of(self, period: int) -> time:
        return self.slot(period).end_time

    def label(self, period: int) -> str:
        slot = self.slot(period)
        return f"{format_minutes(slot.start_minutes)} - {format_minutes(slot.end_minutes)}"
