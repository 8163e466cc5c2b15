"""Tests for the SRO/GBRO expiration run."""

from datetime import date

import pytest
from sqlalchemy import select

from attendance_engine.models.registry import AttendancePoint
from attendance_engine.services.expiration import ExpirationService
from attendance_engine.services.notifications import RecordingNotifier
from factories import add_employee, add_point


async def _point(session_factory, point_id: int) -> AttendancePoint:
    async with session_factory() as session:
        return await session.get(AttendancePoint, point_id)


async def _all_points(session_factory) -> list[AttendancePoint]:
    async with session_factory() as session:
        result = await session.execute(select(AttendancePoint).order_by(AttendancePoint.id))
        return list(result.scalars())


async def _five_tardies(db_session, user_id: int) -> list[AttendancePoint]:
    return [
        await add_point(db_session, user_id, date(2026, 1, day), expires_at=date(2026, 7, day))
        for day in range(1, 6)
    ]


# ── SRO ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_sro_expires_points_due_today_or_earlier(db_session, session_factory):
    emp = await add_employee(db_session)
    overdue = await add_point(db_session, emp.id, date(2026, 3, 1), expires_at=date(2026, 9, 1), eligible_for_gbro=False)
    due = await add_point(db_session, emp.id, date(2026, 3, 10), expires_at=date(2026, 9, 10), eligible_for_gbro=False)
    later = await add_point(db_session, emp.id, date(2026, 3, 11), expires_at=date(2026, 9, 11), eligible_for_gbro=False)

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 9, 10))

    assert report.sro_expired == 2
    assert {d.point_id for d in report.details} == {overdue.id, due.id}
    expired = await _point(session_factory, due.id)
    assert expired.is_expired is True
    assert expired.expiration_type == "sro"
    assert expired.expired_at is not None
    assert (await _point(session_factory, later.id)).is_expired is False


@pytest.mark.asyncio
async def test_ncns_expires_only_after_a_year(db_session, session_factory):
    emp = await add_employee(db_session)
    ncns = await add_point(
        db_session,
        emp.id,
        date(2026, 3, 4),
        point_type="whole_day_absence",
        points="1.00",
        expires_at=date(2027, 3, 4),
        eligible_for_gbro=False,
        expiration_type="none",
    )
    service = ExpirationService(session_factory)

    early = await service.process_expirations(today=date(2026, 12, 31))
    assert early.sro_expired == 0 and early.gbro_expired == 0
    assert (await _point(session_factory, ncns.id)).is_expired is False

    await service.process_expirations(today=date(2027, 3, 4))
    expired = await _point(session_factory, ncns.id)
    assert expired.is_expired is True
    assert expired.expiration_type == "sro"


@pytest.mark.asyncio
async def test_excused_points_are_never_expired(db_session, session_factory):
    emp = await add_employee(db_session)
    excused = await add_point(db_session, emp.id, date(2026, 1, 5), expires_at=date(2026, 7, 5), is_excused=True)

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 8, 1))

    assert report.sro_expired == 0
    assert report.gbro_expired == 0
    assert (await _point(session_factory, excused.id)).is_expired is False


# ── GBRO ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_gbro_expires_two_most_recent_as_one_batch(db_session, session_factory):
    """Sixty clean days after the last violation roll off the two newest points."""
    emp = await add_employee(db_session)
    points = await _five_tardies(db_session, emp.id)

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 3, 6))

    assert report.sro_expired == 0
    assert report.gbro_expired == 2
    assert report.gbro_batches == 1
    assert report.gbro_projections_updated == 2

    stored = {p.id: p for p in await _all_points(session_factory)}
    newest, second = stored[points[4].id], stored[points[3].id]
    for p in (newest, second):
        assert p.is_expired is True
        assert p.expiration_type == "gbro"
        assert p.gbro_applied_at == date(2026, 3, 6)
    assert newest.gbro_batch_id is not None
    assert newest.gbro_batch_id == second.gbro_batch_id

    assert stored[points[2].id].gbro_expires_at == date(2026, 5, 5)
    assert stored[points[1].id].gbro_expires_at == date(2026, 5, 5)
    assert stored[points[0].id].gbro_expires_at is None
    assert not any(stored[points[i].id].is_expired for i in range(3))


@pytest.mark.asyncio
async def test_gbro_rerun_same_day_changes_nothing(db_session, session_factory):
    emp = await add_employee(db_session)
    await _five_tardies(db_session, emp.id)
    service = ExpirationService(session_factory)

    await service.process_expirations(today=date(2026, 3, 6))
    rerun = await service.process_expirations(today=date(2026, 3, 6))

    assert rerun.sro_expired == 0
    assert rerun.gbro_expired == 0
    assert sum(p.is_expired for p in await _all_points(session_factory)) == 2


@pytest.mark.asyncio
async def test_next_gbro_batch_waits_sixty_days_after_the_last(db_session, session_factory):
    emp = await add_employee(db_session)
    points = await _five_tardies(db_session, emp.id)
    service = ExpirationService(session_factory)
    await service.process_expirations(today=date(2026, 3, 6))

    waiting = await service.process_expirations(today=date(2026, 5, 4))
    assert waiting.gbro_expired == 0

    report = await service.process_expirations(today=date(2026, 5, 5))
    assert report.gbro_expired == 2
    assert {d.point_id for d in report.details} == {points[2].id, points[1].id}


@pytest.mark.asyncio
async def test_gbro_not_yet_due(db_session, session_factory):
    emp = await add_employee(db_session)
    await _five_tardies(db_session, emp.id)

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 3, 5))

    assert report.gbro_expired == 0
    assert report.gbro_projections_updated == 2
    stored = await _all_points(session_factory)
    assert [p.gbro_expires_at for p in stored] == [None, None, None, date(2026, 3, 6), date(2026, 3, 6)]


@pytest.mark.asyncio
async def test_ncns_is_never_rolled_off_by_gbro(db_session, session_factory):
    emp = await add_employee(db_session)
    ncns = await add_point(
        db_session,
        emp.id,
        date(2026, 1, 2),
        point_type="whole_day_absence",
        points="1.00",
        expires_at=date(2027, 1, 2),
        eligible_for_gbro=False,
        expiration_type="none",
    )

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 6, 1))

    assert report.gbro_expired == 0
    assert (await _point(session_factory, ncns.id)).is_expired is False


@pytest.mark.asyncio
async def test_each_user_gets_its_own_batch(db_session, session_factory):
    ana = await add_employee(db_session, name="Santos, Ana")
    ben = await add_employee(db_session, name="Reyes, Ben")
    await add_point(db_session, ana.id, date(2026, 1, 1), expires_at=date(2026, 7, 1))
    await add_point(db_session, ben.id, date(2026, 1, 1), expires_at=date(2026, 7, 1))

    report = await ExpirationService(session_factory).process_expirations(today=date(2026, 3, 2))

    assert report.gbro_batches == 2
    batch_ids = {d.batch_id for d in report.details}
    assert len(batch_ids) == 2


# ── Dry run & notifications ─────────────────────────────────────────
@pytest.mark.asyncio
async def test_dry_run_reports_without_writing(db_session, session_factory):
    emp = await add_employee(db_session)
    await _five_tardies(db_session, emp.id)
    await add_point(db_session, emp.id, date(2025, 12, 1), expires_at=date(2026, 3, 1), eligible_for_gbro=False)
    notifier = RecordingNotifier()

    report = await ExpirationService(session_factory, notifier=notifier).process_expirations(
        dry_run=True, today=date(2026, 3, 6)
    )

    assert report.dry_run is True
    assert report.sro_expired == 1
    assert report.gbro_expired == 2
    stored = await _all_points(session_factory)
    assert not any(p.is_expired for p in stored)
    assert all(p.gbro_expires_at is None for p in stored)
    assert notifier.calls == []


@pytest.mark.asyncio
async def test_notifier_called_per_user_and_rule(db_session, session_factory):
    emp = await add_employee(db_session)
    points = await _five_tardies(db_session, emp.id)
    old = await add_point(db_session, emp.id, date(2025, 12, 1), expires_at=date(2026, 3, 1), eligible_for_gbro=False)
    notifier = RecordingNotifier()

    await ExpirationService(session_factory, notifier=notifier).process_expirations(today=date(2026, 3, 6))

    assert notifier.calls == [
        (emp.id, "sro", [old.id]),
        (emp.id, "gbro", [points[4].id, points[3].id]),
    ]


@pytest.mark.asyncio
async def test_notify_can_be_switched_off(db_session, session_factory):
    emp = await add_employee(db_session)
    await _five_tardies(db_session, emp.id)
    notifier = RecordingNotifier()

    report = await ExpirationService(session_factory, notifier=notifier).process_expirations(
        notify=False, today=date(2026, 3, 6)
    )

    assert report.gbro_expired == 2
    assert notifier.calls == []
