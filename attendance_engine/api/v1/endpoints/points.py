"""
Point endpoints — listing, expiration runs and maintenance operations.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.api.v1.deps import (get_db, get_expiration_service,
                                           get_maintenance_service)
from attendance_engine.models.attendance_point import AttendancePoint
from attendance_engine.schemas.points import (CountResponse,
                                              DuplicateCleanupRequest,
                                              ExpirationRequest,
                                              ExpirationResponse, PointRead,
                                              PointStatsResponse, ResetRequest)
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.maintenance import PointMaintenanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("", response_model=list[PointRead])
async def list_points(
    user_id: int = Query(...),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> list[PointRead]:
    query = select(AttendancePoint).where(AttendancePoint.user_id == user_id)
    if active_only:
        query = query.where(
            AttendancePoint.is_expired.is_(False),
            AttendancePoint.is_excused.is_(False),
        )
    result = await db.execute(query.order_by(AttendancePoint.shift_date.desc()))
    return [PointRead.model_validate(p) for p in result.scalars()]


@router.post("/expirations", response_model=ExpirationResponse)
async def process_expirations(
    body: ExpirationRequest,
    service: ExpirationService = Depends(get_expiration_service),
) -> ExpirationResponse:
    """Run SRO and GBRO now. ``dry_run`` selects without writing."""
    report = await service.process_expirations(
        dry_run=body.dry_run,
        notify=body.notify,
        today=body.today,
    )
    return ExpirationResponse.model_validate(report)


@router.post("/reset", response_model=CountResponse)
async def reset_expired(
    body: ResetRequest,
    service: PointMaintenanceService = Depends(get_maintenance_service),
) -> CountResponse:
    return CountResponse(count=await service.reset_expired(body.user_ids))


@router.post("/duplicates/cleanup", response_model=CountResponse)
async def cleanup_duplicates(
    body: DuplicateCleanupRequest,
    service: PointMaintenanceService = Depends(get_maintenance_service),
) -> CountResponse:
    removed = await service.remove_duplicates(dry_run=body.dry_run)
    return CountResponse(count=removed, dry_run=body.dry_run)


@router.post("/generate-missing", response_model=CountResponse)
async def generate_missing(
    service: PointMaintenanceService = Depends(get_maintenance_service),
) -> CountResponse:
    return CountResponse(count=await service.generate_missing_points())


@router.get("/stats", response_model=PointStatsResponse)
async def point_stats(
    service: PointMaintenanceService = Depends(get_maintenance_service),
) -> PointStatsResponse:
    return PointStatsResponse.model_validate(await service.statistics())
