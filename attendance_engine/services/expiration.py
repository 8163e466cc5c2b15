"""
Daily expiration run: SRO then GBRO.

Candidate queries exclude points that are already expired or excused, so a
rerun never reprocesses them. Every SRO point and every GBRO batch is
written in its own transaction; the update statements re-check
``is_expired`` so a concurrent run cannot apply the same expiration twice.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update

from attendance_engine.core.config import Settings, settings
from attendance_engine.db.session import SessionFactory
from attendance_engine.domain.enums import ExpirationType
from attendance_engine.domain.expiration import GbroPlan, plan_gbro
from attendance_engine.models.attendance_point import AttendancePoint
from attendance_engine.services.notifications import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)


class _StaleBatch(Exception):
    """A point of the batch was expired by someone else meanwhile."""


@dataclass
class ExpiredPoint:
    point_id: int
    user_id: int
    shift_date: date
    point_type: str
    rule: str
    batch_id: str | None = None


@dataclass
class ExpirationReport:
    run_date: date
    dry_run: bool
    notify: bool
    sro_expired: int = 0
    gbro_expired: int = 0
    gbro_batches: int = 0
    gbro_projections_updated: int = 0
    details: list[ExpiredPoint] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _active_points():
    return select(AttendancePoint).where(
        AttendancePoint.is_expired.is_(False),
        AttendancePoint.is_excused.is_(False),
    )


class ExpirationService:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        cfg: Settings = settings,
        notifier: Notifier | None = None,
    ) -> None:
        if session_factory is None:
            from attendance_engine.db.session import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self.cfg = cfg
        self.notifier = notifier or LoggingNotifier()

    async def process_expirations(
        self,
        dry_run: bool = False,
        notify: bool = True,
        today: date | None = None,
    ) -> ExpirationReport:
        today = today or date.today()
        report = ExpirationReport(run_date=today, dry_run=dry_run, notify=notify)

        sro_ids = await self._run_sro(report, today)
        await self._run_gbro(report, today, exclude=sro_ids)

        logger.info(
            "%sExpiration run for %s: %d SRO, %d GBRO in %d batch(es), %d failure(s)",
            "[dry-run] " if dry_run else "",
            today,
            report.sro_expired,
            report.gbro_expired,
            report.gbro_batches,
            len(report.failed),
        )
        return report

    # ── SRO ─────────────────────────────────────────────────────────
    async def _run_sro(self, report: ExpirationReport, today: date) -> set[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                _active_points()
                .where(
                    AttendancePoint.expires_at.is_not(None),
                    AttendancePoint.expires_at <= today,
                )
                .order_by(AttendancePoint.user_id, AttendancePoint.shift_date)
            )
            candidates = list(result.scalars())

        selected: set[int] = set()
        by_user: dict[int, list[AttendancePoint]] = defaultdict(list)
        for point in candidates:
            if not report.dry_run:
                try:
                    applied = await self._expire_sro(point.id)
                except Exception as exc:
                    logger.exception("SRO expiration failed for point %s", point.id)
                    report.failed.append(f"sro:{point.id}: {exc}")
                    continue
                if not applied:
                    continue
            selected.add(point.id)
            by_user[point.user_id].append(point)
            report.sro_expired += 1
            report.details.append(
                ExpiredPoint(point.id, point.user_id, point.shift_date, point.point_type, ExpirationType.SRO.value)
            )
            logger.info(
                "%sSRO expired point %s (user %s, %s, expires_at %s)",
                "[dry-run] " if report.dry_run else "",
                point.id,
                point.user_id,
                point.shift_date,
                point.expires_at,
            )

        await self._notify(report, ExpirationType.SRO.value, by_user)
        return selected

    async def _expire_sro(self, point_id: int) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(AttendancePoint)
                    .where(
                        AttendancePoint.id == point_id,
                        AttendancePoint.is_expired.is_(False),
                        AttendancePoint.is_excused.is_(False),
                    )
                    .values(
                        is_expired=True,
                        expired_at=datetime.now(timezone.utc),
                        expiration_type=ExpirationType.SRO.value,
                        gbro_expires_at=None,
                    )
                )
                return result.rowcount == 1

    # ── GBRO ────────────────────────────────────────────────────────
    async def _run_gbro(self, report: ExpirationReport, today: date, exclude: set[int]) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                _active_points().where(
                    AttendancePoint.eligible_for_gbro.is_(True),
                    AttendancePoint.gbro_applied_at.is_(None),
                )
            )
            points = [p for p in result.scalars() if p.id not in exclude]
            last_applied_rows = await session.execute(
                select(AttendancePoint.user_id, func.max(AttendancePoint.gbro_applied_at))
                .where(AttendancePoint.gbro_applied_at.is_not(None))
                .group_by(AttendancePoint.user_id)
            )
            last_applied = {user_id: applied for user_id, applied in last_applied_rows.all()}

        by_user: dict[int, list[AttendancePoint]] = defaultdict(list)
        for point in points:
            by_user[point.user_id].append(point)

        expired_by_user: dict[int, list[AttendancePoint]] = {}
        for user_id in sorted(by_user):
            plan = plan_gbro(
                user_id,
                by_user[user_id],
                today,
                last_applied=last_applied.get(user_id),
                clean_days=self.cfg.GBRO_CLEAN_DAYS,
                batch_size=self.cfg.GBRO_BATCH_SIZE,
            )
            batch_id = str(uuid.uuid4()) if plan.applies else None
            if not report.dry_run:
                try:
                    await self._apply_gbro(plan, batch_id, today)
                except Exception as exc:
                    logger.exception("GBRO batch failed for user %s", user_id)
                    report.failed.append(f"gbro:user {user_id}: {exc}")
                    continue

            report.gbro_projections_updated += len(plan.projected)
            if not plan.applies:
                continue
            report.gbro_batches += 1
            report.gbro_expired += len(plan.expire)
            expired_by_user[user_id] = plan.expire
            for point in plan.expire:
                report.details.append(
                    ExpiredPoint(
                        point.id,
                        user_id,
                        point.shift_date,
                        point.point_type,
                        ExpirationType.GBRO.value,
                        batch_id,
                    )
                )
            logger.info(
                "%sGBRO batch %s for user %s: %d point(s), clean since %s",
                "[dry-run] " if report.dry_run else "",
                batch_id,
                user_id,
                len(plan.expire),
                plan.reference_date,
            )

        await self._notify(report, ExpirationType.GBRO.value, expired_by_user)

    async def _apply_gbro(self, plan: GbroPlan, batch_id: str | None, today: date) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                for point in plan.expire:
                    result = await session.execute(
                        update(AttendancePoint)
                        .where(
                            AttendancePoint.id == point.id,
                            AttendancePoint.is_expired.is_(False),
                            AttendancePoint.is_excused.is_(False),
                        )
                        .values(
                            is_expired=True,
                            expired_at=datetime.now(timezone.utc),
                            expiration_type=ExpirationType.GBRO.value,
                            gbro_applied_at=today,
                            gbro_batch_id=batch_id,
                            gbro_expires_at=None,
                        )
                    )
                    if result.rowcount != 1:
                        raise _StaleBatch(f"point {point.id} changed during the run")

                if plan.projected:
                    await session.execute(
                        update(AttendancePoint)
                        .where(AttendancePoint.id.in_([p.id for p in plan.projected]))
                        .values(gbro_expires_at=plan.projected_date)
                    )
                if plan.cleared:
                    await session.execute(
                        update(AttendancePoint)
                        .where(AttendancePoint.id.in_([p.id for p in plan.cleared]))
                        .values(gbro_expires_at=None)
                    )

    # ── Notifications ───────────────────────────────────────────────
    async def _notify(self, report: ExpirationReport, rule: str, by_user: dict[int, list[AttendancePoint]]) -> None:
        if report.dry_run or not report.notify:
            return
        for user_id, points in by_user.items():
            await self.notifier.points_expired(user_id, rule, points)
