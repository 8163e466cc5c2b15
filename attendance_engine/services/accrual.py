"""
Point accrual: turn a persisted attendance row into at most one point.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.core.config import Settings, settings
from attendance_engine.domain.enums import AttendanceStatus, PointType
from attendance_engine.domain.points import PointFacts, point_for
from attendance_engine.models.attendance import Attendance
from attendance_engine.models.attendance_point import AttendancePoint

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
SUPERSEDED_REASON = "superseded by reprocessing"


def attendance_lock(attendance_id: int) -> Select:
    """Row lock that serializes accrual for one attendance row across runs."""
    return select(Attendance.id).where(Attendance.id == attendance_id).with_for_update()


def facts_from(attendance: Attendance, grace_period_minutes: int) -> PointFacts:
    return PointFacts(
        shift_date=attendance.shift_date,
        status=AttendanceStatus(attendance.status),
        secondary_status=(
            AttendanceStatus(attendance.secondary_status) if attendance.secondary_status else None
        ),
        is_advised=bool(attendance.is_advised),
        is_set_home=bool(attendance.is_set_home),
        remarks=attendance.remarks,
        tardy_minutes=attendance.tardy_minutes,
        undertime_minutes=attendance.undertime_minutes,
        grace_period_minutes=grace_period_minutes,
        scheduled_in=attendance.scheduled_time_in,
        scheduled_out=attendance.scheduled_time_out,
        actual_in=attendance.actual_time_in,
        actual_out=attendance.actual_time_out,
    )


class PointAccrualService:
    def __init__(self, session: AsyncSession, cfg: Settings = settings) -> None:
        self.session = session
        self.cfg = cfg

    async def accrue(
        self,
        attendance: Attendance,
        grace_period_minutes: int | None = None,
    ) -> AttendancePoint | None:
        """Create the point this attendance earns unless one already exists.

        Active points on the same row that the current outcome no longer
        earns are excused first. Returns the new point, or ``None`` when
        nothing was created.
        """
        grace = grace_period_minutes if grace_period_minutes is not None else self.cfg.DEFAULT_GRACE_PERIOD_MINUTES
        spec = point_for(
            facts_from(attendance, grace),
            sro_months=self.cfg.SRO_MONTHS,
            ncns_months=self.cfg.SRO_NCNS_MONTHS,
        )
        if attendance.id is not None:
            # Concurrent runs wait here, then see each other's committed points.
            await self.session.execute(attendance_lock(attendance.id))
        await self.excuse_superseded(attendance, spec.point_type if spec else None)
        if spec is None:
            return None

        existing = await self.session.execute(
            select(AttendancePoint.id)
            .where(
                AttendancePoint.user_id == attendance.user_id,
                AttendancePoint.shift_date == attendance.shift_date,
                AttendancePoint.point_type == spec.point_type.value,
            )
            .limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            logger.debug(
                "Point %s already exists for user %s on %s",
                spec.point_type.value,
                attendance.user_id,
                attendance.shift_date,
            )
            return None

        point = AttendancePoint(
            user_id=attendance.user_id,
            attendance_id=attendance.id,
            shift_date=attendance.shift_date,
            point_type=spec.point_type.value,
            points=spec.points,
            status=spec.status.value,
            is_advised=bool(attendance.is_advised),
            violation_details=spec.violation_details,
            expiration_type=spec.expiration_type.value,
            expires_at=spec.expires_at,
            eligible_for_gbro=spec.eligible_for_gbro,
            is_expired=False,
            is_excused=False,
        )
        self.session.add(point)
        await self.session.flush()
        logger.info(
            "Point %s (%s) created for user %s on %s",
            spec.point_type.value,
            spec.points,
            attendance.user_id,
            attendance.shift_date,
        )
        return point

    async def excuse_superseded(self, attendance: Attendance, keep: PointType | None) -> int:
        """Excuse the row's active points of any type other than ``keep``.

        The rows stay in the store; excused points take no part in SRO or
        GBRO expiration.
        """
        if attendance.id is None:
            return 0
        stmt = (
            update(AttendancePoint)
            .where(
                AttendancePoint.attendance_id == attendance.id,
                AttendancePoint.is_expired.is_(False),
                AttendancePoint.is_excused.is_(False),
            )
            .values(
                is_excused=True,
                excused_by=SYSTEM_ACTOR,
                excused_at=datetime.now(timezone.utc),
                excuse_reason=SUPERSEDED_REASON,
            )
            .execution_options(synchronize_session=False)
        )
        if keep is not None:
            stmt = stmt.where(AttendancePoint.point_type != keep.value)
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(
                "Excused %d point(s) no longer earned by user %s on %s",
                result.rowcount,
                attendance.user_id,
                attendance.shift_date,
            )
        return result.rowcount or 0
