"""Tests for scan grouping and time-in/time-out resolution."""

from datetime import date, datetime, time, timedelta

import pytest

from attendance_engine.domain.grouping import (RecordGrouper, Scan,
                                               handover_time)
from attendance_engine.domain.resolver import (DOUBLE_PUNCH_WARNING,
                                               MAX_SHIFT_WARNING,
                                               TimeInOutResolver,
                                               resolve_same_day)
from attendance_engine.domain.shift_pattern import classify

D = date(2026, 3, 10)
NEXT = D + timedelta(days=1)

ALL_PATTERNS = [(time(h, m), time((h + 9) % 24, m)) for h in range(24) for m in (0, 30)]


def _grouper(time_in: time, time_out: time, tolerance: int = 60) -> RecordGrouper:
    pattern = classify(time_in, time_out)
    return RecordGrouper(lambda _d: pattern, early_tolerance_minutes=tolerance)


def _changing(switch: date, before: tuple[time, time], after: tuple[time, time]) -> RecordGrouper:
    first, second = classify(*before), classify(*after)
    return RecordGrouper(lambda d: first if d < switch else second, early_tolerance_minutes=60)


def _at(day: date, hour: int, minute: int = 0) -> Scan:
    return Scan(datetime.combine(day, time(hour, minute)))


def _resolve(grouper: RecordGrouper, scans: list[Scan], shift_date: date = D):
    result = grouper.group(scans)
    bucket = result.bucket(shift_date)
    assert bucket is not None
    return bucket, TimeInOutResolver().resolve(bucket)


@pytest.mark.parametrize("time_in,time_out", ALL_PATTERNS, ids=lambda t: t.strftime("%H%M"))
def test_round_trip_every_pattern(time_in, time_out):
    pattern = classify(time_in, time_out)
    scan_in = Scan(pattern.scheduled_in(D))
    scan_out = Scan(pattern.scheduled_out(D))

    bucket, resolved = _resolve(_grouper(time_in, time_out), [scan_out, scan_in])

    assert bucket.shift_date == D
    assert resolved.time_in == scan_in
    assert resolved.time_out == scan_out


@pytest.mark.parametrize("hour", [0, 1, 2, 3, 4])
def test_round_trip_graveyard_evening_arrival(hour):
    grouper = _grouper(time(hour), time(hour + 9))
    scan_in = _at(D, 22, 30)
    scan_out = _at(NEXT, hour + 9)

    bucket, resolved = _resolve(grouper, [scan_in, scan_out])

    assert resolved.time_in == scan_in
    assert resolved.time_out == scan_out


def test_graveyard_example_from_the_floor():
    grouper = _grouper(time(0), time(9))
    scans = [_at(D, 22, 28), _at(NEXT, 8, 58)]

    result = grouper.group(scans)

    assert list(result.buckets) == [D]
    bucket, resolved = _resolve(grouper, scans)
    assert resolved.actual_in == datetime(2026, 3, 10, 22, 28)
    assert resolved.actual_out == datetime(2026, 3, 11, 8, 58)


def test_next_day_scans_split_between_consecutive_shifts():
    grouper = _grouper(time(22), time(7))
    scans = [_at(D, 21, 50), _at(NEXT, 7, 5), _at(NEXT, 21, 55), _at(NEXT + timedelta(days=1), 7, 1)]

    result = grouper.group(scans)

    assert [s.timestamp for s in result.buckets[D].scans] == [scans[0].timestamp, scans[1].timestamp]
    assert [s.timestamp for s in result.buckets[NEXT].scans] == [scans[2].timestamp, scans[3].timestamp]


def test_graveyard_then_day_shift_keeps_each_dates_scans():
    """The schedule moves from 00:00-09:00 to 13:00-22:00 on the next date."""
    grouper = _changing(NEXT, (time(0), time(9)), (time(13), time(22)))
    scans = [_at(D, 22), _at(NEXT, 9), _at(NEXT, 13), _at(NEXT, 22)]

    result = grouper.group(scans)

    assert [s.timestamp for s in result.buckets[D].scans] == [datetime(2026, 3, 10, 22), datetime(2026, 3, 11, 9)]
    assert [s.timestamp for s in result.buckets[NEXT].scans] == [datetime(2026, 3, 11, 13), datetime(2026, 3, 11, 22)]
    assert result.buckets[D].pattern.is_graveyard
    assert not result.buckets[NEXT].pattern.is_next_day
    resolver = TimeInOutResolver()
    night = resolver.resolve(result.buckets[D])
    day = resolver.resolve(result.buckets[NEXT])
    assert night.actual_out == datetime(2026, 3, 11, 9)
    assert day.actual_in == datetime(2026, 3, 11, 13)
    assert day.actual_out == datetime(2026, 3, 11, 22)


def test_night_overtime_before_a_day_shift_splits_at_handover():
    grouper = _changing(NEXT, (time(0), time(9)), (time(13), time(22)))

    result = grouper.group([_at(D, 22), _at(NEXT, 10, 30), _at(NEXT, 11, 30)])

    assert [s.timestamp.time() for s in result.buckets[D].scans] == [time(22), time(10, 30)]
    assert [s.timestamp.time() for s in result.buckets[NEXT].scans] == [time(11, 30)]


def test_consecutive_graveyard_nights_keep_overtime_with_the_first():
    grouper = _grouper(time(0), time(9))
    result = grouper.group([_at(D, 22), _at(NEXT, 10, 30)])
    assert list(result.buckets) == [D]


def test_handover_time():
    assert handover_time(classify(time(0), time(9)), classify(time(13), time(22))) == time(11)
    assert handover_time(classify(time(22), time(7)), classify(time(8), time(17))) == time(7, 30)
    # overlapping schedules hand over at the scheduled time-out
    assert handover_time(classify(time(0), time(9)), classify(time(8), time(17))) == time(9)


def test_same_day_bucket_owns_every_scan_of_the_date():
    grouper = _grouper(time(8), time(17))
    scans = [_at(D, 0, 5), _at(D, 8), _at(D, 23, 50)]

    result = grouper.group(scans)

    assert len(result.buckets[D].scans) == 3


def test_late_clock_in_single_scan_is_time_in():
    resolved = resolve_same_day([Scan(datetime(2026, 3, 10, 9, 0))])
    assert resolved.actual_in == datetime(2026, 3, 10, 9, 0)
    assert resolved.time_out is None


def test_late_clock_in_through_the_grouper():
    grouper = _grouper(time(8), time(17))
    _, resolved = _resolve(grouper, [_at(D, 16, 30)])
    assert resolved.actual_in == datetime(2026, 3, 10, 16, 30)
    assert resolved.time_out is None


def test_graveyard_after_midnight_arrival_alone_is_time_out():
    # A lone scan past the shift midpoint on the next date is a time-out.
    grouper = _grouper(time(1), time(10))
    _, resolved = _resolve(grouper, [_at(NEXT, 9, 55)])
    assert resolved.time_in is None
    assert resolved.actual_out == datetime(2026, 3, 11, 9, 55)


def test_night_shift_leaving_before_midnight():
    grouper = _grouper(time(22), time(7))
    _, resolved = _resolve(grouper, [_at(D, 22), _at(D, 23, 30)])
    assert resolved.actual_in == datetime(2026, 3, 10, 22)
    assert resolved.actual_out == datetime(2026, 3, 10, 23, 30)


def test_double_punch_drops_time_out():
    grouper = _grouper(time(8), time(17))
    _, resolved = _resolve(grouper, [_at(D, 8), _at(D, 8, 4)])
    assert resolved.time_out is None
    assert DOUBLE_PUNCH_WARNING in resolved.warnings


def test_overlong_shift_drops_time_out():
    grouper = _grouper(time(22), time(7))
    # 22:00 to 19:30 next day is longer than 20 hours
    _, resolved = _resolve(grouper, [_at(D, 22), _at(NEXT, 19, 30)])
    assert resolved.time_out is None
    assert MAX_SHIFT_WARNING in resolved.warnings


def test_scans_without_schedule_are_unassigned():
    grouper = RecordGrouper(lambda _d: None)
    result = grouper.group([_at(D, 8), _at(D, 17)])
    assert result.buckets == {}
    assert len(result.unassigned) == 2


def test_scans_are_ordered_before_selection():
    grouper = _grouper(time(8), time(17))
    scans = [_at(D, 17, 2), _at(D, 12), _at(D, 7, 58)]
    _, resolved = _resolve(grouper, scans)
    assert resolved.actual_in == datetime(2026, 3, 10, 7, 58)
    assert resolved.actual_out == datetime(2026, 3, 10, 17, 2)
    assert resolved.scan_count == 3
