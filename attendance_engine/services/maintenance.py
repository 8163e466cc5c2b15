"""
Point maintenance: reset expired points, remove duplicates, backfill
missing points and report store statistics.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import delete, func, select

from attendance_engine.core.config import Settings, settings
from attendance_engine.db.session import SessionFactory
from attendance_engine.domain.enums import PointType
from attendance_engine.domain.points import STATUS_POINT_TYPES, expiration_for
from attendance_engine.models.attendance import Attendance
from attendance_engine.models.attendance_point import AttendancePoint
from attendance_engine.models.employee import ShiftSchedule
from attendance_engine.services.accrual import PointAccrualService

logger = logging.getLogger(__name__)

POINT_STATUSES = tuple(s.value for s in STATUS_POINT_TYPES)


@dataclass
class PointStatistics:
    total: int = 0
    active: int = 0
    expired: int = 0
    excused: int = 0
    pending_sro: int = 0
    duplicate_groups: int = 0
    duplicate_points: int = 0
    missing_points: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


class PointMaintenanceService:
    def __init__(self, session_factory: SessionFactory | None = None, cfg: Settings = settings) -> None:
        if session_factory is None:
            from attendance_engine.db.session import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self.cfg = cfg

    async def reset_expired(self, user_ids: list[int] | None = None) -> int:
        """Un-expire points and restore their original time-based deadline.

        ``expires_at`` is recomputed from the point's ``shift_date``; a reset
        never grants a fresh window counted from today.
        """
        query = select(AttendancePoint).where(
            AttendancePoint.is_expired.is_(True),
            AttendancePoint.is_excused.is_(False),
        )
        if user_ids:
            query = query.where(AttendancePoint.user_id.in_(user_ids))

        async with self.session_factory() as session:
            async with session.begin():
                points = list((await session.execute(query)).scalars())
                for point in points:
                    expiration_type, expires_at, eligible = expiration_for(
                        PointType(point.point_type),
                        point.shift_date,
                        bool(point.is_advised),
                        self.cfg.SRO_MONTHS,
                        self.cfg.SRO_NCNS_MONTHS,
                    )
                    point.is_expired = False
                    point.expired_at = None
                    point.gbro_applied_at = None
                    point.gbro_batch_id = None
                    point.gbro_expires_at = None
                    point.expiration_type = expiration_type.value
                    point.expires_at = expires_at
                    point.eligible_for_gbro = eligible

        logger.info("Reset %d expired point(s)", len(points))
        return len(points)

    async def remove_duplicates(self, dry_run: bool = False) -> int:
        """Keep the oldest point per (user, shift_date, point_type); delete the rest."""
        async with self.session_factory() as session:
            async with session.begin():
                rows = await session.execute(
                    select(
                        AttendancePoint.id,
                        AttendancePoint.user_id,
                        AttendancePoint.shift_date,
                        AttendancePoint.point_type,
                    ).order_by(AttendancePoint.id)
                )
                groups: dict[tuple, list[int]] = defaultdict(list)
                for point_id, user_id, shift_date, point_type in rows.all():
                    groups[(user_id, shift_date, point_type)].append(point_id)

                doomed = [pid for ids in groups.values() if len(ids) > 1 for pid in ids[1:]]
                if doomed and not dry_run:
                    await session.execute(delete(AttendancePoint).where(AttendancePoint.id.in_(doomed)))

        logger.info(
            "%s%d duplicate point(s) %s",
            "[dry-run] " if dry_run else "",
            len(doomed),
            "found" if dry_run else "removed",
        )
        return len(doomed)

    async def generate_missing_points(self) -> int:
        """Accrue points for reconciled rows that earn one but have none."""
        created = 0
        async with self.session_factory() as session:
            user_ids = (
                await session.execute(
                    select(Attendance.user_id)
                    .where(
                        (Attendance.status.in_(POINT_STATUSES))
                        | (Attendance.secondary_status.in_(POINT_STATUSES))
                    )
                    .distinct()
                )
            ).scalars().all()

        for user_id in user_ids:
            try:
                created += await self._generate_for_user(user_id)
            except Exception:
                logger.exception("Generating missing points failed for user %s", user_id)
        logger.info("Generated %d missing point(s)", created)
        return created

    async def _generate_for_user(self, user_id: int) -> int:
        created = 0
        async with self.session_factory() as session:
            async with session.begin():
                accrual = PointAccrualService(session, self.cfg)
                rows = await session.execute(
                    select(Attendance, ShiftSchedule.grace_period_minutes)
                    .outerjoin(ShiftSchedule, ShiftSchedule.id == Attendance.schedule_id)
                    .where(Attendance.user_id == user_id)
                    .order_by(Attendance.shift_date)
                )
                for attendance, grace in rows.all():
                    if await accrual.accrue(attendance, grace) is not None:
                        created += 1
        return created

    async def statistics(self, today: date | None = None) -> PointStatistics:
        today = today or date.today()
        stats = PointStatistics()
        async with self.session_factory() as session:
            points = (await session.execute(select(AttendancePoint))).scalars().all()
            attendance_rows = (
                await session.execute(
                    select(Attendance.user_id, Attendance.shift_date).where(
                        Attendance.status.in_(POINT_STATUSES)
                    )
                )
            ).all()
            by_type = await session.execute(
                select(AttendancePoint.point_type, func.count(AttendancePoint.id)).group_by(
                    AttendancePoint.point_type
                )
            )
            stats.by_type = {point_type: count for point_type, count in by_type.all()}

        groups: dict[tuple, int] = defaultdict(int)
        charged: set[tuple] = set()
        for p in points:
            stats.total += 1
            if p.is_excused:
                stats.excused += 1
            elif p.is_expired:
                stats.expired += 1
            else:
                stats.active += 1
                if p.expires_at is not None and p.expires_at <= today:
                    stats.pending_sro += 1
            groups[(p.user_id, p.shift_date, p.point_type)] += 1
            charged.add((p.user_id, p.shift_date))

        for count in groups.values():
            if count > 1:
                stats.duplicate_groups += 1
                stats.duplicate_points += count - 1

        for user_id, shift_date in attendance_rows:
            if (user_id, shift_date) not in charged:
                stats.missing_points += 1
        return stats
