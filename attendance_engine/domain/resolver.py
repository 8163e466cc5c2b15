"""
Pick the time-in and time-out scan of one shift bucket.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from attendance_engine.domain.grouping import Scan, ShiftBucket

DOUBLE_PUNCH_WARNING = "double_punch"
MAX_SHIFT_WARNING = "exceeds_max_shift"


@dataclass
class ResolvedTimes:
    time_in: Scan | None = None
    time_out: Scan | None = None
    scan_count: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def actual_in(self) -> datetime | None:
        return self.time_in.timestamp if self.time_in else None

    @property
    def actual_out(self) -> datetime | None:
        return self.time_out.timestamp if self.time_out else None


def resolve_same_day(scans: list[Scan]) -> ResolvedTimes:
    """Earliest scan is the time-in, latest is the time-out.

    A lone scan is always the time-in, however late it is.
    """
    ordered = sorted(scans)
    resolved = ResolvedTimes(scan_count=len(ordered))
    if not ordered:
        return resolved
    resolved.time_in = ordered[0]
    if len(ordered) > 1:
        resolved.time_out = ordered[-1]
    return resolved


def resolve_next_day(bucket: ShiftBucket) -> ResolvedTimes:
    """Time-in from the shift date, time-out from the following date."""
    in_side = sorted(bucket.time_in_side)
    out_side = sorted(bucket.time_out_side)
    resolved = ResolvedTimes(scan_count=len(in_side) + len(out_side))

    if in_side:
        resolved.time_in = in_side[0]
    elif bucket.pattern.is_graveyard and out_side:
        # Graveyard workers who arrive after midnight scan in on the next date.
        midpoint = bucket.pattern.midpoint(bucket.shift_date)
        if out_side[0].timestamp < midpoint:
            resolved.time_in = out_side.pop(0)

    if out_side:
        resolved.time_out = out_side[-1]
    elif len(in_side) > 1:
        # Left before midnight: the last scan on the shift date is the time-out.
        resolved.time_out = in_side[-1]
    return resolved


class TimeInOutResolver:
    def __init__(self, double_punch_minutes: int = 10, max_shift_minutes: int = 1200) -> None:
        self.double_punch_minutes = double_punch_minutes
        self.max_shift_minutes = max_shift_minutes

    def resolve(self, bucket: ShiftBucket) -> ResolvedTimes:
        if bucket.pattern.is_next_day:
            resolved = resolve_next_day(bucket)
        else:
            resolved = resolve_same_day(bucket.scans)

        if resolved.time_in and resolved.time_out:
            span = (resolved.actual_out - resolved.actual_in).total_seconds() / 60  # type: ignore[operator]
            if span < self.double_punch_minutes:
                resolved.time_out = None
                resolved.warnings.append(DOUBLE_PUNCH_WARNING)
            elif span > self.max_shift_minutes:
                resolved.time_out = None
                resolved.warnings.append(MAX_SHIFT_WARNING)
        return resolved
