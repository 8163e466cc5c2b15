"""
Employee & ShiftSchedule models — who works, and when.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Index,
                        Integer, String, Time)
from sqlalchemy.orm import relationship

from attendance_engine.db.base import Base
from attendance_engine.domain.shift_pattern import ShiftPattern, classify

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    biometric_name: str | None = Column(String(200), nullable=True, index=True)  # type: ignore[assignment]
    # Name as printed by the biometric device export, when it differs.
    role: str = Column(  # type: ignore[assignment]
        String(30),
        nullable=False,
        default="agent",
        server_default="agent",
    )
    site: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    hired_date: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    schedules = relationship(
        "ShiftSchedule",
        back_populates="employee",
        cascade="all, delete-orphan",
    )


class ShiftSchedule(Base):
    __tablename__ = "shift_schedules"
    __table_args__ = (Index("ix_schedule_employee_effective", "employee_id", "effective_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    scheduled_time_in: time = Column(Time, nullable=False)  # type: ignore[assignment]
    scheduled_time_out: time = Column(Time, nullable=False)  # type: ignore[assignment]
    work_days: str = Column(  # type: ignore[assignment]
        String(100),
        nullable=False,
        default="monday,tuesday,wednesday,thursday,friday",
    )  # comma separated lowercase weekday names
    grace_period_minutes: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    site: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    effective_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]

    employee = relationship("Employee", back_populates="schedules")

    @property
    def work_day_set(self) -> frozenset[str]:
        return frozenset(d.strip().lower() for d in (self.work_days or "").split(",") if d.strip())

    def works_on(self, day: date) -> bool:
        return WEEKDAYS[day.weekday()] in self.work_day_set

    def covers(self, day: date) -> bool:
        """Active and within its effective window on ``day``."""
        if not self.is_active or self.effective_date > day:
            return False
        return self.end_date is None or self.end_date >= day

    def pattern(self) -> ShiftPattern:
        return classify(self.scheduled_time_in, self.scheduled_time_out)
