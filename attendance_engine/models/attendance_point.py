"""
AttendancePoint model — one disciplinary violation charge.

Uniqueness on (user_id, shift_date, point_type) is enforced by the accrual
service, which locks the attendance row before it looks for an existing
point. There is no database constraint, so legacy duplicates can still be
loaded and cleaned up.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Index,
                        Integer, Numeric, String, Text)
from sqlalchemy.orm import relationship

from attendance_engine.db.base import Base


class AttendancePoint(Base):
    __tablename__ = "attendance_points"
    __table_args__ = (
        Index("ix_point_user_shift_type", "user_id", "shift_date", "point_type"),
        Index("ix_point_active", "is_expired", "is_excused", "expires_at"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)  # type: ignore[assignment]
    attendance_id: int = Column(Integer, ForeignKey("attendances.id"), nullable=False)  # type: ignore[assignment]
    shift_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    point_type: str = Column(String(40), nullable=False)  # type: ignore[assignment]
    points: Decimal = Column(Numeric(4, 2), nullable=False)  # type: ignore[assignment]
    status: str | None = Column(String(32), nullable=True)  # type: ignore[assignment]
    # attendance status the point was charged for
    is_advised: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    violation_details: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    expiration_type: str = Column(String(10), nullable=False, default="sro")  # type: ignore[assignment]
    # sro | gbro | none
    expires_at: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    gbro_expires_at: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    eligible_for_gbro: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    is_expired: bool = Column(Boolean, nullable=False, default=False, index=True)  # type: ignore[assignment]
    expired_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    gbro_applied_at: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    gbro_batch_id: str | None = Column(String(36), nullable=True, index=True)  # type: ignore[assignment]

    is_excused: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    excused_by: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    excused_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    excuse_reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    attendance = relationship("Attendance", back_populates="points")

    @property
    def is_active(self) -> bool:
        return not self.is_expired and not self.is_excused
