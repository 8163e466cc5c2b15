"""
Attendance status determination.

Evaluated once per (employee, shift date) after scans were grouped and the
time-in/time-out resolved. The result is a validated ``StatusOutcome``:
one primary status, an optional secondary status, and the derived minute
counts stored on the attendance row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from attendance_engine.core.config import Settings, settings
from attendance_engine.core.exceptions import InvalidStatusCombination
from attendance_engine.domain.enums import (PRIMARIES_WITH_SECONDARY,
                                            SECONDARY_STATUSES,
                                            AttendanceStatus)
from attendance_engine.domain.resolver import ResolvedTimes
from attendance_engine.domain.shift_pattern import ShiftPattern

S = AttendanceStatus

SCAN_DISTANCE_REVIEW_MINUTES = 120


@dataclass(frozen=True)
class StatusRules:
    half_day_threshold_minutes: int = 240
    undertime_hour_threshold_minutes: int = 60
    overtime_threshold_minutes: int = 30
    early_time_in_review_minutes: int = 180
    late_time_out_review_minutes: int = 240
    lunch_deduction_minutes: int = 60
    lunch_deduction_after_minutes: int = 300
    cross_site_policy: str = "flag"

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "StatusRules":
        return cls(
            half_day_threshold_minutes=cfg.HALF_DAY_THRESHOLD_MINUTES,
            undertime_hour_threshold_minutes=cfg.UNDERTIME_HOUR_THRESHOLD_MINUTES,
            overtime_threshold_minutes=cfg.OVERTIME_THRESHOLD_MINUTES,
            early_time_in_review_minutes=cfg.EARLY_TIME_IN_REVIEW_MINUTES,
            late_time_out_review_minutes=cfg.LATE_TIME_OUT_REVIEW_MINUTES,
            lunch_deduction_minutes=cfg.LUNCH_DEDUCTION_MINUTES,
            lunch_deduction_after_minutes=cfg.LUNCH_DEDUCTION_AFTER_MINUTES,
            cross_site_policy=cfg.CROSS_SITE_POLICY,
        )


@dataclass(frozen=True)
class ShiftContext:
    """Everything about the shift that is not a scan."""

    shift_date: date
    pattern: ShiftPattern
    grace_period_minutes: int = 15
    works_on_day: bool = True
    home_site: str | None = None
    is_advised: bool = False
    is_set_home: bool = False
    overtime_approved: bool = False
    on_approved_leave: bool = False

    @property
    def scheduled_in(self) -> datetime:
        return self.pattern.scheduled_in(self.shift_date)

    @property
    def scheduled_out(self) -> datetime:
        return self.pattern.scheduled_out(self.shift_date)


@dataclass(frozen=True)
class StatusOutcome:
    status: AttendanceStatus
    secondary_status: AttendanceStatus | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    overtime_minutes: int | None = None
    total_minutes_worked: int | None = None
    is_cross_site_bio: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)
    remarks: str | None = None

    def __post_init__(self) -> None:
        secondary = self.secondary_status
        if secondary is None:
            return
        if secondary not in SECONDARY_STATUSES:
            raise InvalidStatusCombination(f"{secondary.value} cannot be a secondary status")
        if self.status not in PRIMARIES_WITH_SECONDARY:
            raise InvalidStatusCombination(
                f"{self.status.value} cannot carry a secondary status ({secondary.value})"
            )

    @property
    def needs_review(self) -> bool:
        return self.status is S.NEEDS_MANUAL_REVIEW


def _minutes(delta_seconds: float) -> int:
    return int(delta_seconds // 60)


def _time_in_status(late_minutes: int, grace: int, rules: StatusRules) -> AttendanceStatus:
    if late_minutes <= grace:
        return S.ON_TIME
    if late_minutes <= rules.half_day_threshold_minutes:
        return S.TARDY
    return S.HALF_DAY_ABSENCE


def _review_reason(ctx: ShiftContext, resolved: ResolvedTimes, rules: StatusRules) -> str | None:
    """Return why the scan shape is too odd to classify automatically, if it is."""
    scans = [s for s in (resolved.time_in, resolved.time_out) if s is not None]
    if 0 < resolved.scan_count <= 2 and scans:
        far = all(
            min(
                abs((s.timestamp - ctx.scheduled_in).total_seconds()),
                abs((s.timestamp - ctx.scheduled_out).total_seconds()),
            )
            > SCAN_DISTANCE_REVIEW_MINUTES * 60
            for s in scans
        )
        if far:
            return "Scans are more than 2 hours from both scheduled time-in and time-out"

    if resolved.actual_in is not None:
        early = _minutes((ctx.scheduled_in - resolved.actual_in).total_seconds())
        if early > rules.early_time_in_review_minutes:
            return f"Time-in {early} minutes before schedule"

    if resolved.actual_out is not None:
        late = _minutes((resolved.actual_out - ctx.scheduled_out).total_seconds())
        if late > rules.late_time_out_review_minutes:
            return f"Time-out {late} minutes after schedule"
    return None


def _worked_minutes(ctx: ShiftContext, resolved: ResolvedTimes, rules: StatusRules) -> int | None:
    if resolved.actual_in is None or resolved.actual_out is None:
        return None
    start = max(resolved.actual_in, ctx.scheduled_in)
    end = resolved.actual_out if ctx.overtime_approved else min(resolved.actual_out, ctx.scheduled_out)
    worked = max(0, _minutes((end - start).total_seconds()))
    if worked > rules.lunch_deduction_after_minutes:
        worked -= rules.lunch_deduction_minutes
    return worked


def determine_status(
    ctx: ShiftContext,
    resolved: ResolvedTimes,
    rules: StatusRules | None = None,
) -> StatusOutcome:
    rules = rules or StatusRules()
    warnings = tuple(resolved.warnings)

    if not ctx.works_on_day:
        return StatusOutcome(S.NON_WORK_DAY, warnings=warnings)

    if ctx.on_approved_leave:
        if resolved.scan_count >= 2:
            return StatusOutcome(
                S.NEEDS_MANUAL_REVIEW,
                warnings=warnings,
                remarks="Leave conflict: biometric activity on an approved leave day",
            )
        return StatusOutcome(S.ON_LEAVE, warnings=warnings)

    if resolved.time_in is None and resolved.time_out is None:
        if resolved.scan_count:
            return StatusOutcome(
                S.NEEDS_MANUAL_REVIEW,
                warnings=warnings,
                remarks="Scans present but neither time-in nor time-out could be resolved",
            )
        return StatusOutcome(S.ADVISED_ABSENCE if ctx.is_advised else S.NCNS, warnings=warnings)

    primary: AttendanceStatus
    secondary: AttendanceStatus | None = None
    tardy = undertime = overtime = None

    if resolved.actual_in is not None:
        late = _minutes((resolved.actual_in - ctx.scheduled_in).total_seconds())
        primary = _time_in_status(late, ctx.grace_period_minutes, rules)
        if primary is not S.ON_TIME:
            tardy = late
    else:
        primary = S.FAILED_BIO_IN

    if resolved.actual_out is not None:
        early = _minutes((ctx.scheduled_out - resolved.actual_out).total_seconds())
        over = _minutes((resolved.actual_out - ctx.scheduled_out).total_seconds())
        if early >= 1:
            undertime = early
            if not ctx.is_set_home and primary is not S.FAILED_BIO_IN:
                ut_status = (
                    S.UNDERTIME
                    if early <= rules.undertime_hour_threshold_minutes
                    else S.UNDERTIME_MORE_THAN_HOUR
                )
                if primary is S.ON_TIME:
                    primary = ut_status
                else:
                    secondary = ut_status
        if over > rules.overtime_threshold_minutes:
            overtime = over
    elif primary is S.ON_TIME:
        primary = S.FAILED_BIO_OUT
    else:
        secondary = S.FAILED_BIO_OUT

    sites = {s.site for s in (resolved.time_in, resolved.time_out) if s is not None and s.site}
    cross_site = bool(ctx.home_site) and any(site != ctx.home_site for site in sites)

    remarks = _review_reason(ctx, resolved, rules)
    if remarks is not None:
        primary, secondary = S.NEEDS_MANUAL_REVIEW, None
    elif cross_site and rules.cross_site_policy == "review":
        primary, secondary = S.NEEDS_MANUAL_REVIEW, None
        remarks = "Biometric scans recorded away from the home site"
    elif cross_site and rules.cross_site_policy == "present_no_bio":
        primary, secondary = S.PRESENT_NO_BIO, None

    return StatusOutcome(
        status=primary,
        secondary_status=secondary,
        tardy_minutes=tardy,
        undertime_minutes=undertime,
        overtime_minutes=overtime,
        total_minutes_worked=_worked_minutes(ctx, resolved, rules),
        is_cross_site_bio=cross_site,
        warnings=warnings,
        remarks=remarks,
    )
