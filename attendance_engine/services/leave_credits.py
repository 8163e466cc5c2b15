"""
Leave-credit ledger.

Credits accrue monthly into one row per (user, year, month) and are
consumed oldest month first. Balances never carry over between years.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import Settings, settings
from attendance_engine.domain.dates import (add_months, completed_months,
                                            end_of_month)
from attendance_engine.models.employee import Employee
from attendance_engine.models.leave import LeaveCredit

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class DeductionResult:
    requested: Decimal
    deducted: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted

    @property
    def status(self) -> str:
        return "ok" if self.shortfall <= ZERO else "partial"

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class LeaveCreditService:
    def __init__(self, session: AsyncSession, cfg: Settings = settings) -> None:
        self.session = session
        self.cfg = cfg

    def monthly_rate(self, employee: Employee) -> Decimal:
        if (employee.role or "").lower() in self.cfg.LEAVE_MANAGER_ROLES:
            return Decimal(str(self.cfg.LEAVE_MANAGER_MONTHLY_RATE))
        return Decimal(str(self.cfg.LEAVE_MONTHLY_RATE))

    def eligibility_date(self, employee: Employee) -> date | None:
        if employee.hired_date is None:
            return None
        return add_months(employee.hired_date, self.cfg.LEAVE_ELIGIBILITY_MONTHS)

    def is_eligible(self, employee: Employee, today: date) -> bool:
        eligible_on = self.eligibility_date(employee)
        return eligible_on is not None and today >= eligible_on

    async def credits_available(self, user_id: int, year: int) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(LeaveCredit.credits_balance), 0)).where(
                LeaveCredit.user_id == user_id,
                LeaveCredit.year == year,
            )
        )
        return Decimal(str(result.scalar() or 0))

    async def deduct(self, user_id: int, days: Decimal, year: int) -> DeductionResult:
        """Consume up to ``days`` credits, oldest month first.

        Runs inside the caller's transaction. A short balance is not an
        error: whatever is available is deducted and the result says
        ``partial``.
        """
        result = await self.session.execute(
            select(LeaveCredit)
            .where(LeaveCredit.user_id == user_id, LeaveCredit.year == year)
            .order_by(LeaveCredit.month)
        )
        remaining = days
        for credit in result.scalars():
            if remaining <= ZERO:
                break
            take = min(remaining, Decimal(credit.credits_balance))
            if take <= ZERO:
                continue
            credit.credits_used = Decimal(credit.credits_used) + take
            credit.credits_balance = Decimal(credit.credits_balance) - take
            remaining -= take

        outcome = DeductionResult(requested=days, deducted=days - remaining)
        if not outcome.ok:
            logger.warning(
                "Insufficient leave credits for user %s: requested %s, deducted %s",
                user_id,
                days,
                outcome.deducted,
            )
        return outcome

    async def accrue_monthly(self, employee: Employee, year: int, month: int, today: date) -> LeaveCredit | None:
        """Create the month's credit row once the month is over; idempotent."""
        if employee.hired_date is None:
            return None
        month_end = end_of_month(date(year, month, 1))
        if today < month_end or month_end < employee.hired_date:
            return None

        existing = await self.session.execute(
            select(LeaveCredit).where(
                LeaveCredit.user_id == employee.id,
                LeaveCredit.year == year,
                LeaveCredit.month == month,
            )
        )
        credit = existing.scalar_one_or_none()
        if credit is not None:
            return credit

        rate = self.monthly_rate(employee)
        credit = LeaveCredit(
            user_id=employee.id,
            year=year,
            month=month,
            credits_earned=rate,
            credits_used=ZERO,
            credits_balance=rate,
            accrued_at=month_end,
        )
        self.session.add(credit)
        await self.session.flush()
        return credit

    async def backfill(self, employee: Employee, today: date) -> int:
        """Accrue every completed month of ``today``'s year that is missing.

        Starts at January, or at the hire month when hired this year.
        Returns the number of rows created.
        """
        if employee.hired_date is None:
            return 0
        start = date(today.year, 1, 1)
        if employee.hired_date.year == today.year:
            start = employee.hired_date
        if start > today:
            return 0

        created = 0
        for month_start in completed_months(start, today):
            existing = await self.session.execute(
                select(func.count(LeaveCredit.id)).where(
                    LeaveCredit.user_id == employee.id,
                    LeaveCredit.year == month_start.year,
                    LeaveCredit.month == month_start.month,
                )
            )
            if existing.scalar():
                continue
            if await self.accrue_monthly(employee, month_start.year, month_start.month, today):
                created += 1
        logger.info("Backfilled %d leave-credit month(s) for employee %s", created, employee.id)
        return created
