"""Pydantic schemas for scans, reconciliation and attendance rows."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_RECONCILE_DAYS = 93


# ── Scan import ─────────────────────────────────────────────────────
class ScanImportRow(BaseModel):
    name: str
    timestamp: datetime
    site: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v


class ScanImportRequest(BaseModel):
    rows: list[ScanImportRow] = Field(min_length=1)


class ScanImportResponse(BaseModel):
    imported: int
    duplicates: int
    unmatched: list[str]


# ── Reconciliation ──────────────────────────────────────────────────
class ReconcileRequest(BaseModel):
    start_date: date
    end_date: date
    employee_ids: list[int] | None = None

    @model_validator(mode="after")
    def _range(self) -> "ReconcileRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.end_date - self.start_date).days >= MAX_RECONCILE_DAYS:
            raise ValueError(f"date range must not exceed {MAX_RECONCILE_DAYS} days")
        return self


class SkippedShiftRead(BaseModel):
    employee_id: int
    shift_date: date
    reason: str

    model_config = {"from_attributes": True}


class FailedEmployeeRead(BaseModel):
    employee_id: int
    error: str

    model_config = {"from_attributes": True}


class ReconcileResponse(BaseModel):
    start_date: date
    end_date: date
    employees_processed: int
    attendance_created: int
    attendance_updated: int
    points_created: int
    verified_skipped: int
    unassigned_scans: int
    skipped: list[SkippedShiftRead]
    failed: list[FailedEmployeeRead]
    not_started: list[int]
    cancelled: bool

    model_config = {"from_attributes": True}


class AttendanceRead(BaseModel):
    id: int
    user_id: int
    shift_date: date
    scheduled_time_in: datetime | None = None
    scheduled_time_out: datetime | None = None
    actual_time_in: datetime | None = None
    actual_time_out: datetime | None = None
    status: str
    secondary_status: str | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    overtime_minutes: int | None = None
    total_minutes_worked: int | None = None
    is_advised: bool = False
    is_set_home: bool = False
    is_cross_site_bio: bool = False
    admin_verified: bool = False
    warnings: list[str] | None = None
    remarks: str | None = None

    model_config = {"from_attributes": True}
