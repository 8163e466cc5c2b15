"""
LeaveRequest & LeaveCredit models — the approved-leave calendar and the
monthly leave-credit ledger.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer,
                        Numeric, String, UniqueConstraint)

from attendance_engine.db.base import Base


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_user_dates", "user_id", "start_date", "end_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    leave_type: str = Column(String(10), nullable=False)  # type: ignore[assignment]
    # VL | SL | BL | ML | BRL | UPTO
    start_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default="pending")  # type: ignore[assignment]
    days_requested: Decimal = Column(Numeric(5, 2), nullable=False, default=Decimal("1.00"))  # type: ignore[assignment]
    credits_deducted: Decimal = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class LeaveCredit(Base):
    __tablename__ = "leave_credits"
    __table_args__ = (UniqueConstraint("user_id", "year", "month", name="uq_leave_credit_month"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)  # type: ignore[assignment]
    year: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    month: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    credits_earned: Decimal = Column(Numeric(5, 2), nullable=False)  # type: ignore[assignment]
    credits_used: Decimal = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))  # type: ignore[assignment]
    credits_balance: Decimal = Column(Numeric(5, 2), nullable=False)  # type: ignore[assignment]
    accrued_at: date = Column(Date, nullable=False)  # type: ignore[assignment]
