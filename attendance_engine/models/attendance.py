"""
Attendance model — the reconciled record of one employee's shift date.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (JSON, Boolean, Column, Date, DateTime, ForeignKey,
                        Integer, Numeric, String, Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from attendance_engine.db.base import Base


class Attendance(Base):
    __tablename__ = "attendances"
    __table_args__ = (UniqueConstraint("user_id", "shift_date", name="uq_attendance_user_shift_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)  # type: ignore[assignment]
    schedule_id: int | None = Column(Integer, ForeignKey("shift_schedules.id"), nullable=True)  # type: ignore[assignment]
    leave_request_id: int | None = Column(Integer, ForeignKey("leave_requests.id"), nullable=True)  # type: ignore[assignment]
    shift_date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]

    scheduled_time_in: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    scheduled_time_out: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    actual_time_in: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    actual_time_out: datetime | None = Column(DateTime, nullable=True)  # type: ignore[assignment]
    bio_in_site: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    bio_out_site: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]

    status: str = Column(String(32), nullable=False, index=True)  # type: ignore[assignment]
    secondary_status: str | None = Column(String(32), nullable=True)  # type: ignore[assignment]
    tardy_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    undertime_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    overtime_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    total_minutes_worked: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    warnings: list | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    remarks: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    # Owned by external workflows; reconciliation preserves them.
    is_advised: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    is_set_home: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    overtime_approved: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    admin_verified: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]

    is_cross_site_bio: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    leave_credit_deducted: Decimal | None = Column(Numeric(5, 2), nullable=True)  # type: ignore[assignment]
    unpaid_leave_days: Decimal | None = Column(Numeric(5, 2), nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    points = relationship("AttendancePoint", back_populates="attendance")
