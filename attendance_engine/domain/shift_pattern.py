"""
Shift pattern classification.

A schedule is described only by its time-in and time-out. From those two
values we decide whether the shift spills into the next calendar day and
which hour range on the shift date holds its time-in scan.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum

GRAVEYARD_END_HOUR = 5
GRAVEYARD_TIME_IN_START_HOUR = 20


@dataclass(frozen=True)
class HourRange:
    """Half-open ``[start, end)`` range of hours of the day."""

    start: int
    end: int

    def contains(self, value: time) -> bool:
        return self.start <= value.hour < self.end


class ShiftQuadrant(Enum):
    GRAVEYARD = HourRange(0, 5)
    MORNING = HourRange(5, 12)
    AFTERNOON = HourRange(12, 18)
    EVENING = HourRange(18, 24)

    @classmethod
    def of(cls, value: time) -> "ShiftQuadrant":
        for quadrant in cls:
            if quadrant.value.contains(value):
                return quadrant
        raise ValueError(f"time {value!r} outside of a day")  # pragma: no cover


@dataclass(frozen=True)
class ShiftPattern:
    time_in: time
    time_out: time
    is_next_day: bool
    quadrant: ShiftQuadrant
    search_window: HourRange | None

    @property
    def is_graveyard(self) -> bool:
        return self.quadrant is ShiftQuadrant.GRAVEYARD

    def scheduled_in(self, shift_date: date) -> datetime:
        # Graveyard shifts nominally start after midnight of the shift date.
        day = shift_date + timedelta(days=1) if self.is_graveyard else shift_date
        return datetime.combine(day, self.time_in)

    def scheduled_out(self, shift_date: date) -> datetime:
        day = shift_date + timedelta(days=1) if self.is_next_day else shift_date
        return datetime.combine(day, self.time_out)

    @property
    def duration_minutes(self) -> int:
        anchor = date(2000, 1, 1)
        span = self.scheduled_out(anchor) - self.scheduled_in(anchor)
        return int(span.total_seconds() // 60)

    def midpoint(self, shift_date: date) -> datetime:
        start = self.scheduled_in(shift_date)
        return start + (self.scheduled_out(shift_date) - start) / 2

    def time_in_threshold(self, early_tolerance_minutes: int = 0) -> time:
        """Earliest time-of-day on the shift date that counts as the time-in side.

        Scans on the following date strictly before this time belong to the
        time-out side of the same shift. Only meaningful for next-day shifts.
        """
        if self.is_graveyard:
            return time(GRAVEYARD_TIME_IN_START_HOUR)
        window_start = self.search_window.start if self.search_window else 0
        minutes = self.time_in.hour * 60 + self.time_in.minute - early_tolerance_minutes
        minutes = max(minutes, window_start * 60)
        return time(minutes // 60, minutes % 60)


def classify(time_in: time, time_out: time) -> ShiftPattern:
    """Classify a scheduled time-in/time-out pair.

    >>> classify(time(22), time(7)).is_next_day
    True
    >>> classify(time(0), time(9)).search_window
    HourRange(start=20, end=24)
    """
    time_in = time_in.replace(second=0, microsecond=0)
    time_out = time_out.replace(second=0, microsecond=0)
    quadrant = ShiftQuadrant.of(time_in)
    is_next_day = time_out <= time_in or time_in.hour < GRAVEYARD_END_HOUR

    window: HourRange | None = None
    if is_next_day:
        if quadrant is ShiftQuadrant.GRAVEYARD:
            window = HourRange(GRAVEYARD_TIME_IN_START_HOUR, 24)
        else:
            window = quadrant.value

    return ShiftPattern(
        time_in=time_in,
        time_out=time_out,
        is_next_day=is_next_day,
        quadrant=quadrant,
        search_window=window,
    )
