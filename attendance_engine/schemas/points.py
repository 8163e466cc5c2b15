"""Pydantic schemas for points, expiration runs and maintenance."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class PointRead(BaseModel):
    id: int
    user_id: int
    attendance_id: int
    shift_date: date
    point_type: str
    points: Decimal
    violation_details: str | None = None
    expiration_type: str
    expires_at: date | None = None
    gbro_expires_at: date | None = None
    eligible_for_gbro: bool
    is_expired: bool
    expired_at: datetime | None = None
    gbro_applied_at: date | None = None
    gbro_batch_id: str | None = None
    is_excused: bool
    excuse_reason: str | None = None

    model_config = {"from_attributes": True}


class ExpirationRequest(BaseModel):
    dry_run: bool = False
    notify: bool = True
    today: date | None = None


class ExpiredPointRead(BaseModel):
    point_id: int
    user_id: int
    shift_date: date
    point_type: str
    rule: str
    batch_id: str | None = None

    model_config = {"from_attributes": True}


class ExpirationResponse(BaseModel):
    run_date: date
    dry_run: bool
    notify: bool
    sro_expired: int
    gbro_expired: int
    gbro_batches: int
    gbro_projections_updated: int
    details: list[ExpiredPointRead]
    failed: list[str]

    model_config = {"from_attributes": True}


class ResetRequest(BaseModel):
    user_ids: list[int] | None = None


class DuplicateCleanupRequest(BaseModel):
    dry_run: bool = False


class CountResponse(BaseModel):
    count: int
    dry_run: bool = False


class PointStatsResponse(BaseModel):
    total: int
    active: int
    expired: int
    excused: int
    pending_sro: int
    duplicate_groups: int
    duplicate_points: int
    missing_points: int
    by_type: dict[str, int] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    db: bool
    redis: bool
