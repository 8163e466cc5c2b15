"""
Reconciliation pipeline: raw scans → grouped buckets → resolved times →
status → persisted Attendance → accrued point.

Each employee is reconciled inside one transaction; a failure rolls back
everything written for that employee and is reported without stopping the
batch. Employees run concurrently up to ``RECONCILE_WORKERS``; a single
employee's date range is never split across workers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import Settings, settings
from attendance_engine.core.exceptions import (EmployeeNotFound,
                                               InvalidDateRange)
from attendance_engine.db.session import SessionFactory
from attendance_engine.domain.dates import iter_days
from attendance_engine.domain.enums import (AttendanceStatus, LeaveStatus,
                                            LeaveType)
from attendance_engine.domain.grouping import RecordGrouper, Scan, ShiftBucket
from attendance_engine.domain.resolver import TimeInOutResolver
from attendance_engine.domain.shift_pattern import ShiftPattern
from attendance_engine.domain.status import (ShiftContext, StatusOutcome,
                                             StatusRules, determine_status)
from attendance_engine.models.attendance import Attendance
from attendance_engine.models.biometric_scan import BiometricScan
from attendance_engine.models.employee import Employee, ShiftSchedule
from attendance_engine.models.leave import LeaveRequest
from attendance_engine.services.accrual import PointAccrualService
from attendance_engine.services.leave_credits import LeaveCreditService

logger = logging.getLogger(__name__)

CREDITED_LEAVE_TYPES = frozenset(t.value for t in LeaveType if t.requires_credits)
LEAVE_DAY = Decimal("1.00")


@dataclass
class SkippedShift:
    employee_id: int
    shift_date: date
    reason: str


@dataclass
class FailedEmployee:
    employee_id: int
    error: str


@dataclass
class EmployeeResult:
    employee_id: int
    attendances: list[Attendance] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    points_created: int = 0
    verified_skipped: int = 0
    unassigned_scans: int = 0
    skipped: list[SkippedShift] = field(default_factory=list)


@dataclass
class ReconcileReport:
    start_date: date
    end_date: date
    employees_processed: int = 0
    attendance_created: int = 0
    attendance_updated: int = 0
    points_created: int = 0
    verified_skipped: int = 0
    unassigned_scans: int = 0
    skipped: list[SkippedShift] = field(default_factory=list)
    failed: list[FailedEmployee] = field(default_factory=list)
    not_started: list[int] = field(default_factory=list)
    cancelled: bool = False

    def add(self, result: EmployeeResult) -> None:
        self.employees_processed += 1
        self.attendance_created += result.created
        self.attendance_updated += result.updated
        self.points_created += result.points_created
        self.verified_skipped += result.verified_skipped
        self.unassigned_scans += result.unassigned_scans
        self.skipped.extend(result.skipped)


class _ScheduleBook:
    """An employee's schedules, answering "which one applies on this date"."""

    def __init__(self, schedules: list[ShiftSchedule]) -> None:
        # Latest effective date wins when windows overlap.
        self._schedules = sorted(schedules, key=lambda s: (s.effective_date, s.id), reverse=True)
        self._patterns: dict[int, ShiftPattern] = {}

    def schedule_for(self, day: date) -> ShiftSchedule | None:
        for schedule in self._schedules:
            if schedule.covers(day):
                return schedule
        return None

    def pattern_for(self, day: date) -> ShiftPattern | None:
        schedule = self.schedule_for(day)
        if schedule is None:
            return None
        return self.pattern_of(schedule)

    def pattern_of(self, schedule: ShiftSchedule) -> ShiftPattern:
        if schedule.id not in self._patterns:
            self._patterns[schedule.id] = schedule.pattern()
        return self._patterns[schedule.id]


class ReconciliationService:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        cfg: Settings = settings,
        workers: int | None = None,
    ) -> None:
        if session_factory is None:
            from attendance_engine.db.session import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self.cfg = cfg
        self.workers = workers or cfg.RECONCILE_WORKERS
        self.rules = StatusRules.from_settings(cfg)
        self.resolver = TimeInOutResolver(
            double_punch_minutes=cfg.DOUBLE_PUNCH_MINUTES,
            max_shift_minutes=cfg.MAX_SHIFT_MINUTES,
        )

    # ── Public entry points ────────────────────────────────────────
    async def reconcile(self, employee_id: int, start: date, end: date) -> list[Attendance]:
        """Reconcile one employee's shift dates; safe to call repeatedly."""
        _check_range(start, end)
        result = await self._reconcile_employee(employee_id, start, end)
        return result.attendances

    async def reconcile_many(
        self,
        employee_ids: list[int] | None,
        start: date,
        end: date,
        cancel_event: asyncio.Event | None = None,
    ) -> ReconcileReport:
        """Reconcile several employees (all active ones when ``employee_ids`` is None).

        Employees not yet started when ``cancel_event`` is set are listed in
        ``not_started``; employees already running finish their transaction.
        """
        _check_range(start, end)
        if employee_ids is None:
            employee_ids = await self._active_employee_ids()

        report = ReconcileReport(start_date=start, end_date=end)
        semaphore = asyncio.Semaphore(self.workers)

        async def run(employee_id: int) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    report.not_started.append(employee_id)
                    return
                try:
                    result = await self._reconcile_employee(employee_id, start, end)
                except Exception as exc:
                    logger.exception("Reconciliation failed for employee %s", employee_id)
                    report.failed.append(FailedEmployee(employee_id, str(exc)))
                    return
                report.add(result)

        await asyncio.gather(*(run(eid) for eid in employee_ids))
        logger.info(
            "Reconciled %d employee(s) %s..%s: %d created, %d updated, %d point(s), %d failed",
            report.employees_processed,
            start,
            end,
            report.attendance_created,
            report.attendance_updated,
            report.points_created,
            len(report.failed),
        )
        return report

    # ── One employee, one transaction ──────────────────────────────
    async def _active_employee_ids(self) -> list[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.id)
            )
            return list(result.scalars())

    async def _reconcile_employee(self, employee_id: int, start: date, end: date) -> EmployeeResult:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._reconcile_in_session(session, employee_id, start, end)

    async def _reconcile_in_session(
        self,
        session: AsyncSession,
        employee_id: int,
        start: date,
        end: date,
    ) -> EmployeeResult:
        employee = await session.get(Employee, employee_id)
        if employee is None:
            raise EmployeeNotFound(employee_id)

        book = _ScheduleBook(await self._load_schedules(session, employee_id, start, end))
        scans = await self._load_scans(session, employee_id, start, end)
        leaves = await self._load_leaves(session, employee_id, start, end)
        existing = await self._load_attendance(session, employee_id, start, end)

        grouping = RecordGrouper(
            book.pattern_for,
            early_tolerance_minutes=self.cfg.EARLY_ARRIVAL_TOLERANCE_MINUTES,
        ).group(scans)

        result = EmployeeResult(employee_id=employee_id, unassigned_scans=len(grouping.unassigned))
        accrual = PointAccrualService(session, self.cfg)
        credits = LeaveCreditService(session, self.cfg)

        for day in iter_days(start, end):
            schedule = book.schedule_for(day)
            if schedule is None:
                logger.info("Employee %s has no active schedule on %s; skipped", employee_id, day)
                result.skipped.append(SkippedShift(employee_id, day, "no active schedule"))
                continue

            row = existing.get(day)
            if row is not None and row.admin_verified:
                result.verified_skipped += 1
                result.attendances.append(row)
                continue

            pattern = book.pattern_of(schedule)
            bucket = grouping.bucket(day) or ShiftBucket(day, pattern)
            works = schedule.works_on(day)
            if not works and not bucket.scans:
                continue

            leave = next((lv for lv in leaves if lv.covers(day)), None)
            grace = (
                schedule.grace_period_minutes
                if schedule.grace_period_minutes is not None
                else self.cfg.DEFAULT_GRACE_PERIOD_MINUTES
            )
            ctx = ShiftContext(
                shift_date=day,
                pattern=pattern,
                grace_period_minutes=grace,
                works_on_day=works,
                home_site=schedule.site or employee.site,
                is_advised=bool(row.is_advised) if row is not None else False,
                is_set_home=bool(row.is_set_home) if row is not None else False,
                overtime_approved=bool(row.overtime_approved) if row is not None else False,
                on_approved_leave=leave is not None,
            )
            resolved = self.resolver.resolve(bucket)
            outcome = determine_status(ctx, resolved, self.rules)

            if row is None:
                row = Attendance(user_id=employee_id, shift_date=day)
                session.add(row)
                result.created += 1
            else:
                result.updated += 1
            _apply(row, schedule, ctx, resolved.time_in, resolved.time_out, outcome)

            if leave is not None:
                row.leave_request_id = leave.id
                if outcome.status is AttendanceStatus.ON_LEAVE:
                    row.admin_verified = True
                    await self._charge_leave(credits, row, leave)

            await session.flush()
            if await accrual.accrue(row, grace) is not None:
                result.points_created += 1
            result.attendances.append(row)

        return result

    async def _charge_leave(self, credits: LeaveCreditService, row: Attendance, leave: LeaveRequest) -> None:
        if leave.leave_type not in CREDITED_LEAVE_TYPES or row.leave_credit_deducted is not None:
            return
        deduction = await credits.deduct(row.user_id, LEAVE_DAY, row.shift_date.year)
        row.leave_credit_deducted = deduction.deducted
        leave.credits_deducted = Decimal(leave.credits_deducted or 0) + deduction.deducted
        if not deduction.ok:
            row.unpaid_leave_days = deduction.shortfall
            row.remarks = (
                f"Insufficient leave credits: deducted {deduction.deducted} of {LEAVE_DAY} day; "
                f"{deduction.shortfall} recorded as unpaid leave"
            )

    # ── Loading ────────────────────────────────────────────────────
    @staticmethod
    async def _load_schedules(session: AsyncSession, employee_id: int, start: date, end: date) -> list[ShiftSchedule]:
        # One day of margin either side: next-day shifts reach across dates.
        result = await session.execute(
            select(ShiftSchedule).where(
                ShiftSchedule.employee_id == employee_id,
                ShiftSchedule.is_active.is_(True),
                ShiftSchedule.effective_date <= end + timedelta(days=1),
                or_(
                    ShiftSchedule.end_date.is_(None),
                    ShiftSchedule.end_date >= start - timedelta(days=1),
                ),
            )
        )
        return list(result.scalars())

    @staticmethod
    async def _load_scans(session: AsyncSession, employee_id: int, start: date, end: date) -> list[Scan]:
        result = await session.execute(
            select(BiometricScan)
            .where(
                BiometricScan.employee_id == employee_id,
                BiometricScan.scanned_at >= datetime.combine(start, time.min),
                BiometricScan.scanned_at < datetime.combine(end + timedelta(days=2), time.min),
            )
            .order_by(BiometricScan.scanned_at)
        )
        return [Scan(timestamp=s.scanned_at, site=s.site, scan_id=s.id) for s in result.scalars()]

    @staticmethod
    async def _load_leaves(session: AsyncSession, employee_id: int, start: date, end: date) -> list[LeaveRequest]:
        result = await session.execute(
            select(LeaveRequest).where(
                LeaveRequest.user_id == employee_id,
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
        )
        return list(result.scalars())

    @staticmethod
    async def _load_attendance(session: AsyncSession, employee_id: int, start: date, end: date) -> dict[date, Attendance]:
        result = await session.execute(
            select(Attendance).where(
                Attendance.user_id == employee_id,
                Attendance.shift_date >= start,
                Attendance.shift_date <= end,
            )
        )
        return {row.shift_date: row for row in result.scalars()}


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise InvalidDateRange(f"end date {end} is before start date {start}")


def _apply(
    row: Attendance,
    schedule: ShiftSchedule,
    ctx: ShiftContext,
    time_in: Scan | None,
    time_out: Scan | None,
    outcome: StatusOutcome,
) -> None:
    row.schedule_id = schedule.id
    row.scheduled_time_in = ctx.scheduled_in
    row.scheduled_time_out = ctx.scheduled_out
    row.actual_time_in = time_in.timestamp if time_in else None
    row.actual_time_out = time_out.timestamp if time_out else None
    row.bio_in_site = time_in.site if time_in else None
    row.bio_out_site = time_out.site if time_out else None
    row.status = outcome.status.value
    row.secondary_status = outcome.secondary_status.value if outcome.secondary_status else None
    row.tardy_minutes = outcome.tardy_minutes
    row.undertime_minutes = outcome.undertime_minutes
    row.overtime_minutes = outcome.overtime_minutes
    row.total_minutes_worked = outcome.total_minutes_worked
    row.is_cross_site_bio = outcome.is_cross_site_bio
    row.warnings = list(outcome.warnings) or None
    if outcome.remarks:
        row.remarks = outcome.remarks
