"""
Scan import, reconciliation and attendance lookup endpoints.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.api.v1.deps import get_db, get_reconciliation_service
from attendance_engine.core.exceptions import InvalidDateRange
from attendance_engine.models.attendance import Attendance
from attendance_engine.schemas.attendance import (AttendanceRead,
                                                  ReconcileRequest,
                                                  ReconcileResponse,
                                                  ScanImportRequest,
                                                  ScanImportResponse)
from attendance_engine.services.reconciliation import ReconciliationService
from attendance_engine.services.scan_import import RawScan, import_scans

logger = logging.getLogger(__name__)

router = APIRouter(tags=["attendance"])


@router.post("/scans/import", response_model=ScanImportResponse)
async def import_scan_rows(
    body: ScanImportRequest,
    db: AsyncSession = Depends(get_db),
) -> ScanImportResponse:
    """Store scans matched to an employee; report names that matched nobody."""
    report = await import_scans(
        db,
        [RawScan(name=r.name, timestamp=r.timestamp, site=r.site) for r in body.rows],
    )
    return ScanImportResponse(
        imported=report.imported,
        duplicates=report.duplicates,
        unmatched=report.unmatched,
    )


@router.post("/attendance/reconcile", response_model=ReconcileResponse)
async def reconcile(
    body: ReconcileRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ReconcileResponse:
    """Reconcile scans into attendance rows; idempotent for the same input."""
    report = await service.reconcile_many(body.employee_ids, body.start_date, body.end_date)
    return ReconcileResponse.model_validate(report)


@router.get("/attendance", response_model=list[AttendanceRead])
async def list_attendance(
    employee_id: int = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceRead]:
    if end_date < start_date:
        raise InvalidDateRange("end_date must not be before start_date")
    result = await db.execute(
        select(Attendance)
        .where(
            Attendance.user_id == employee_id,
            Attendance.shift_date >= start_date,
            Attendance.shift_date <= end_date,
        )
        .order_by(Attendance.shift_date)
    )
    return [AttendanceRead.model_validate(row) for row in result.scalars()]
