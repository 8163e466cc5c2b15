"""Tests for attendance status determination."""

from datetime import date, datetime, time, timedelta

import pytest

from attendance_engine.core.exceptions import InvalidStatusCombination
from attendance_engine.domain.enums import AttendanceStatus as S
from attendance_engine.domain.grouping import Scan
from attendance_engine.domain.resolver import ResolvedTimes
from attendance_engine.domain.shift_pattern import classify
from attendance_engine.domain.status import (ShiftContext, StatusOutcome,
                                             StatusRules, determine_status)

D = date(2026, 3, 10)
DAY_SHIFT = classify(time(8), time(17))


def _scan(hour: int, minute: int = 0, day: date = D, site: str | None = None) -> Scan:
    return Scan(datetime.combine(day, time(hour, minute)), site=site)


def _resolved(time_in: Scan | None = None, time_out: Scan | None = None, count: int | None = None) -> ResolvedTimes:
    if count is None:
        count = sum(1 for s in (time_in, time_out) if s is not None)
    return ResolvedTimes(time_in=time_in, time_out=time_out, scan_count=count)


def _status(time_in=None, time_out=None, rules=None, **ctx_fields) -> StatusOutcome:
    ctx_fields.setdefault("pattern", DAY_SHIFT)
    ctx = ShiftContext(shift_date=D, **ctx_fields)
    return determine_status(ctx, _resolved(time_in, time_out), rules)


# ── Time-in ─────────────────────────────────────────────────────────
def test_on_time_within_grace():
    outcome = _status(_scan(8, 15), _scan(17))
    assert outcome.status is S.ON_TIME
    assert outcome.secondary_status is None
    assert outcome.tardy_minutes is None
    assert outcome.total_minutes_worked == 465


def test_tardy_after_grace():
    outcome = _status(_scan(8, 20), _scan(17))
    assert outcome.status is S.TARDY
    assert outcome.tardy_minutes == 20


def test_custom_grace_period():
    assert _status(_scan(8, 20), _scan(17), grace_period_minutes=30).status is S.ON_TIME


def test_tardy_up_to_half_day_threshold():
    assert _status(_scan(12, 0), _scan(17)).status is S.TARDY


def test_half_day_absence_past_threshold():
    outcome = _status(_scan(12, 5), _scan(17))
    assert outcome.status is S.HALF_DAY_ABSENCE
    assert outcome.tardy_minutes == 245


def test_half_day_threshold_is_configurable():
    rules = StatusRules(half_day_threshold_minutes=120)
    assert _status(_scan(10, 30), _scan(17), rules=rules).status is S.HALF_DAY_ABSENCE


# ── Time-out ────────────────────────────────────────────────────────
def test_undertime_replaces_on_time():
    outcome = _status(_scan(8), _scan(16, 30))
    assert outcome.status is S.UNDERTIME
    assert outcome.undertime_minutes == 30


def test_undertime_more_than_hour():
    outcome = _status(_scan(8), _scan(15, 30))
    assert outcome.status is S.UNDERTIME_MORE_THAN_HOUR
    assert outcome.undertime_minutes == 90


def test_tardy_with_undertime_secondary():
    outcome = _status(_scan(8, 30), _scan(16, 30))
    assert outcome.status is S.TARDY
    assert outcome.secondary_status is S.UNDERTIME


def test_set_home_keeps_on_time():
    outcome = _status(_scan(8), _scan(12), is_set_home=True)
    assert outcome.status is S.ON_TIME
    assert outcome.secondary_status is None
    assert outcome.undertime_minutes == 300


def test_overtime_only_past_threshold():
    assert _status(_scan(8), _scan(17, 20)).overtime_minutes is None
    assert _status(_scan(8), _scan(17, 45)).overtime_minutes == 45


def test_worked_minutes_capped_at_schedule_without_approval():
    assert _status(_scan(8), _scan(18)).total_minutes_worked == 480
    assert _status(_scan(8), _scan(18), overtime_approved=True).total_minutes_worked == 540


# ── Missing scans ───────────────────────────────────────────────────
def test_failed_bio_out():
    outcome = _status(_scan(8))
    assert outcome.status is S.FAILED_BIO_OUT
    assert outcome.total_minutes_worked is None


def test_tardy_with_failed_bio_out_secondary():
    outcome = _status(_scan(9))
    assert outcome.status is S.TARDY
    assert outcome.secondary_status is S.FAILED_BIO_OUT


def test_failed_bio_in_ignores_undertime():
    outcome = _status(None, _scan(16, 30))
    assert outcome.status is S.FAILED_BIO_IN
    assert outcome.secondary_status is None
    assert outcome.undertime_minutes == 30


def test_ncns_without_scans():
    assert _status().status is S.NCNS


def test_advised_absence_without_scans():
    assert _status(is_advised=True).status is S.ADVISED_ABSENCE


def test_unresolvable_scans_need_review():
    ctx = ShiftContext(shift_date=D, pattern=DAY_SHIFT)
    outcome = determine_status(ctx, _resolved(count=1))
    assert outcome.status is S.NEEDS_MANUAL_REVIEW
    assert outcome.remarks


# ── Day-level overrides ─────────────────────────────────────────────
def test_non_work_day():
    assert _status(_scan(8), _scan(17), works_on_day=False).status is S.NON_WORK_DAY


def test_on_leave_without_scans():
    assert _status(on_approved_leave=True).status is S.ON_LEAVE


def test_leave_conflict_needs_review():
    outcome = _status(_scan(8), _scan(17), on_approved_leave=True)
    assert outcome.status is S.NEEDS_MANUAL_REVIEW
    assert "Leave conflict" in outcome.remarks


# ── Review routing ──────────────────────────────────────────────────
def test_scans_far_from_both_edges_need_review():
    outcome = _status(_scan(11), _scan(13))
    assert outcome.status is S.NEEDS_MANUAL_REVIEW
    assert "2 hours" in outcome.remarks


def test_very_early_time_in_needs_review():
    outcome = _status(_scan(4, 30), _scan(17))
    assert outcome.status is S.NEEDS_MANUAL_REVIEW
    assert "before schedule" in outcome.remarks


def test_very_late_time_out_needs_review():
    outcome = _status(_scan(8), _scan(21, 30))
    assert outcome.status is S.NEEDS_MANUAL_REVIEW
    assert "after schedule" in outcome.remarks


# ── Cross-site ──────────────────────────────────────────────────────
def test_cross_site_is_flagged_by_default():
    outcome = _status(_scan(8, site="Cebu"), _scan(17, site="Cebu"), home_site="Manila")
    assert outcome.status is S.ON_TIME
    assert outcome.is_cross_site_bio is True


def test_home_site_scans_are_not_cross_site():
    outcome = _status(_scan(8, site="Manila"), _scan(17), home_site="Manila")
    assert outcome.is_cross_site_bio is False


@pytest.mark.parametrize(
    "policy,expected",
    [("review", S.NEEDS_MANUAL_REVIEW), ("present_no_bio", S.PRESENT_NO_BIO)],
)
def test_cross_site_policies(policy, expected):
    rules = StatusRules(cross_site_policy=policy)
    outcome = _status(_scan(8, site="Cebu"), _scan(17), home_site="Manila", rules=rules)
    assert outcome.status is expected


# ── Next-day shifts ─────────────────────────────────────────────────
def test_graveyard_early_arrival_leaving_two_minutes_early():
    pattern = classify(time(0), time(9))
    outcome = _status(
        Scan(datetime(2026, 3, 10, 22, 28)),
        Scan(datetime(2026, 3, 11, 8, 58)),
        pattern=pattern,
    )
    assert outcome.status is S.UNDERTIME
    assert outcome.undertime_minutes == 2
    assert outcome.tardy_minutes is None


def test_night_shift_tardy_across_midnight():
    pattern = classify(time(22), time(7))
    outcome = _status(_scan(22, 40), _scan(7, day=D + timedelta(days=1)), pattern=pattern)
    assert outcome.status is S.TARDY
    assert outcome.tardy_minutes == 40


# ── Combination validation ──────────────────────────────────────────
@pytest.mark.parametrize(
    "primary,secondary",
    [
        (S.ON_TIME, S.UNDERTIME),
        (S.NCNS, S.FAILED_BIO_OUT),
        (S.TARDY, S.TARDY),
        (S.HALF_DAY_ABSENCE, S.ON_LEAVE),
    ],
)
def test_invalid_combinations_raise(primary, secondary):
    with pytest.raises(InvalidStatusCombination):
        StatusOutcome(primary, secondary_status=secondary)


def test_invalid_combination_is_a_value_error():
    with pytest.raises(ValueError):
        StatusOutcome(S.FAILED_BIO_IN, secondary_status=S.FAILED_BIO_OUT)


def test_valid_combination():
    outcome = StatusOutcome(S.HALF_DAY_ABSENCE, secondary_status=S.UNDERTIME_MORE_THAN_HOUR)
    assert outcome.secondary_status is S.UNDERTIME_MORE_THAN_HOUR
