"""
Map a finalized attendance outcome to at most one violation point.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from attendance_engine.domain.dates import add_months
from attendance_engine.domain.enums import (POINT_VALUES, UNDERTIME_STATUSES,
                                            AttendanceStatus, ExpirationType,
                                            PointType)

S = AttendanceStatus

STATUS_POINT_TYPES: dict[AttendanceStatus, PointType] = {
    S.NCNS: PointType.WHOLE_DAY_ABSENCE,
    S.ADVISED_ABSENCE: PointType.WHOLE_DAY_ABSENCE,
    S.HALF_DAY_ABSENCE: PointType.HALF_DAY_ABSENCE,
    S.UNDERTIME_MORE_THAN_HOUR: PointType.UNDERTIME_MORE_THAN_HOUR,
    S.UNDERTIME: PointType.UNDERTIME,
    S.TARDY: PointType.TARDY,
}

LABELS = {
    PointType.WHOLE_DAY_ABSENCE: "Whole Day Absence",
    PointType.HALF_DAY_ABSENCE: "Half-Day Absence",
    PointType.UNDERTIME_MORE_THAN_HOUR: "Undertime (>1 Hour)",
    PointType.UNDERTIME: "Undertime",
    PointType.TARDY: "Tardy",
}


@dataclass(frozen=True)
class PointFacts:
    """The attendance fields point accrual depends on."""

    shift_date: date
    status: AttendanceStatus
    secondary_status: AttendanceStatus | None = None
    is_advised: bool = False
    is_set_home: bool = False
    remarks: str | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    grace_period_minutes: int = 15
    scheduled_in: datetime | None = None
    scheduled_out: datetime | None = None
    actual_in: datetime | None = None
    actual_out: datetime | None = None


@dataclass(frozen=True)
class PointSpec:
    point_type: PointType
    points: Decimal
    expiration_type: ExpirationType
    expires_at: date
    eligible_for_gbro: bool
    violation_details: str
    status: AttendanceStatus


def is_ncns(point_type: PointType, is_advised: bool) -> bool:
    return point_type is PointType.WHOLE_DAY_ABSENCE and not is_advised


def expiration_for(
    point_type: PointType,
    shift_date: date,
    is_advised: bool,
    sro_months: int = 6,
    ncns_months: int = 12,
) -> tuple[ExpirationType, date, bool]:
    """Return (expiration_type, expires_at, eligible_for_gbro), always anchored on ``shift_date``."""
    if is_ncns(point_type, is_advised):
        return ExpirationType.NONE, add_months(shift_date, ncns_months), False
    return ExpirationType.SRO, add_months(shift_date, sro_months), True


def _point_type(facts: PointFacts, status: AttendanceStatus) -> PointType | None:
    if facts.is_set_home and status in UNDERTIME_STATUSES:
        return None
    if status is S.ADVISED_ABSENCE and facts.remarks and "half" in facts.remarks.lower():
        return PointType.HALF_DAY_ABSENCE
    return STATUS_POINT_TYPES.get(status)


def _fmt(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value else "No scan"


def _details(facts: PointFacts, status: AttendanceStatus, point_type: PointType) -> str:
    sched_in = facts.scheduled_in.strftime("%H:%M") if facts.scheduled_in else "N/A"
    sched_out = facts.scheduled_out.strftime("%H:%M") if facts.scheduled_out else "N/A"
    if status is S.NCNS:
        return (
            "No Call, No Show (NCNS): Employee did not report for work and did not "
            f"provide prior notice. Scheduled: {sched_in} - {sched_out}. No biometric scans recorded."
        )
    if status is S.ADVISED_ABSENCE:
        return f"Advised Absence ({LABELS[point_type]}). Scheduled: {sched_in} - {sched_out}."
    if status is S.HALF_DAY_ABSENCE:
        return (
            f"Half-Day Absence: Arrived {facts.tardy_minutes or 0} minutes late. "
            f"Scheduled: {sched_in}, Actual: {_fmt(facts.actual_in)}."
        )
    if status is S.TARDY:
        return (
            f"Tardy: Arrived {facts.tardy_minutes or 0} minutes late "
            f"(more than {facts.grace_period_minutes} minutes grace period). "
            f"Scheduled time in: {sched_in}, Actual time in: {_fmt(facts.actual_in)}."
        )
    if status is S.UNDERTIME:
        return (
            f"Undertime: Left {facts.undertime_minutes or 0} minutes early (up to 1 hour before "
            f"scheduled end). Scheduled: {sched_out}, Actual: {_fmt(facts.actual_out)}."
        )
    if status is S.UNDERTIME_MORE_THAN_HOUR:
        return (
            f"Undertime (>1 Hour): Left {facts.undertime_minutes or 0} minutes early. "
            f"Scheduled: {sched_out}, Actual: {_fmt(facts.actual_out)}."
        )
    return f"Attendance violation on {facts.shift_date.isoformat()}"  # pragma: no cover


def point_for(facts: PointFacts, sro_months: int = 6, ncns_months: int = 12) -> PointSpec | None:
    """Return the single point this shift earns, or ``None``.

    When both the primary and the secondary status earn points only the
    higher value is charged; the other is mentioned in the details.
    """
    candidates: list[tuple[AttendanceStatus, PointType]] = []
    for status in (facts.status, facts.secondary_status):
        if status is None:
            continue
        point_type = _point_type(facts, status)
        if point_type is not None:
            candidates.append((status, point_type))
    if not candidates:
        return None

    # Stable on ties: the primary status wins.
    candidates.sort(key=lambda c: Decimal(POINT_VALUES[c[1]]), reverse=True)
    status, point_type = candidates[0]
    details = _details(facts, status, point_type)
    if len(candidates) > 1:
        _, skipped_type = candidates[1]
        details += (
            f" [Note: Also had {LABELS[skipped_type]} violation "
            f"({POINT_VALUES[skipped_type]} pts) - only higher point value applied per shift]"
        )

    expiration_type, expires_at, eligible = expiration_for(
        point_type, facts.shift_date, facts.is_advised, sro_months, ncns_months
    )
    return PointSpec(
        point_type=point_type,
        points=Decimal(POINT_VALUES[point_type]),
        expiration_type=expiration_type,
        expires_at=expires_at,
        eligible_for_gbro=eligible,
        violation_details=details,
        status=status,
    )
