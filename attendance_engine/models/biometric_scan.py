"""
BiometricScan model — one immutable clock event from a device export.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer,
                        String, UniqueConstraint)

from attendance_engine.db.base import Base


class BiometricScan(Base):
    __tablename__ = "biometric_scans"
    __table_args__ = (
        UniqueConstraint("employee_id", "scanned_at", name="uq_scan_employee_time"),
        Index("ix_scan_employee_date", "employee_id", "scan_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)  # type: ignore[assignment]
    site: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    scanned_at: datetime = Column(DateTime, nullable=False, index=True)  # type: ignore[assignment]
    # Wall-clock time at the site; shifts are defined in local time.
    scan_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    imported_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
