"""
Assign raw biometric scans to the shift date they belong to.

Same-day shifts own every scan on their calendar date. Next-day shifts own
the scans on their own date from the time-in threshold onwards, plus the
scans on the following date before that threshold (the time-out side).
A scan claimed by the previous date's next-day shift is never also given
to the current date. When the following date holds a same-day shift (a
schedule change), the morning scans are split at the halfway point between
the night shift's time-out and the day shift's time-in.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from attendance_engine.domain.shift_pattern import ShiftPattern

logger = logging.getLogger(__name__)

PatternLookup = Callable[[date], ShiftPattern | None]


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def handover_time(previous: ShiftPattern, current: ShiftPattern) -> time:
    """Last time-of-day a next-day shift keeps when a same-day shift follows it."""
    end = _minutes(previous.time_out)
    start = _minutes(current.time_in)
    if start <= end:
        return previous.time_out
    middle = (end + start) // 2
    return time(middle // 60, middle % 60)


@dataclass(frozen=True, order=True)
class Scan:
    timestamp: datetime
    site: str | None = field(default=None, compare=False)
    scan_id: int | None = field(default=None, compare=False)

    @property
    def date(self) -> date:
        return self.timestamp.date()


@dataclass
class ShiftBucket:
    shift_date: date
    pattern: ShiftPattern
    scans: list[Scan] = field(default_factory=list)

    @property
    def time_in_side(self) -> list[Scan]:
        return [s for s in self.scans if s.date == self.shift_date]

    @property
    def time_out_side(self) -> list[Scan]:
        next_day = self.shift_date + timedelta(days=1)
        return [s for s in self.scans if s.date == next_day]


@dataclass
class GroupingResult:
    buckets: dict[date, ShiftBucket] = field(default_factory=dict)
    unassigned: list[Scan] = field(default_factory=list)

    def bucket(self, shift_date: date) -> ShiftBucket | None:
        return self.buckets.get(shift_date)


class RecordGrouper:
    """Groups one employee's scans by shift date.

    ``pattern_for`` returns the classified active schedule for a date, or
    ``None`` when the employee has no schedule on that date.
    """

    def __init__(self, pattern_for: PatternLookup, early_tolerance_minutes: int = 0) -> None:
        self._pattern_for = pattern_for
        self._tolerance = early_tolerance_minutes

    def shift_date_for(self, scan: Scan) -> date | None:
        assigned = self._assign(scan)
        return assigned[0] if assigned is not None else None

    def _assign(self, scan: Scan) -> tuple[date, ShiftPattern] | None:
        scan_date = scan.date
        scan_time = scan.timestamp.time()

        previous = self._pattern_for(scan_date - timedelta(days=1))
        current = self._pattern_for(scan_date)
        if (
            previous is not None
            and previous.is_next_day
            and scan_time < previous.time_in_threshold(self._tolerance)
        ):
            # A same-day shift on the scan date owns everything past the handover.
            if current is None or current.is_next_day or scan_time <= handover_time(previous, current):
                return scan_date - timedelta(days=1), previous

        if current is None:
            return None
        return scan_date, current

    def group(self, scans: Iterable[Scan]) -> GroupingResult:
        result = GroupingResult()
        for scan in sorted(scans):
            assigned = self._assign(scan)
            if assigned is None:
                result.unassigned.append(scan)
                continue
            shift_date, pattern = assigned
            bucket = result.buckets.get(shift_date)
            if bucket is None:
                bucket = result.buckets[shift_date] = ShiftBucket(shift_date, pattern)
            bucket.scans.append(scan)

        if result.unassigned:
            logger.debug("%d scan(s) outside any scheduled shift", len(result.unassigned))
        return result
