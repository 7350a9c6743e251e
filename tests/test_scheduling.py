# tests/test_scheduling.py
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.scheduling import (
    MAX_OCCURRENCES,
    as_utc,
    horizon,
    occurrences,
    overlaps_window,
    schedules_overlap,
    windows,
)

T0 = datetime(2030, 1, 31, 9, 0, tzinfo=timezone.utc)


def one_time(at=T0, minutes=60):
    return {"type": "oneTime", "date_time": at.isoformat(), "duration_minutes": minutes}


def recurring(at=T0, minutes=60, frequency="daily", interval=1, end_date=None):
    rule = {"frequency": frequency, "interval": interval}
    if end_date:
        rule["end_date"] = end_date.isoformat()
    return {"type": "recurring", "date_time": at.isoformat(), "duration_minutes": minutes, "recurrence": rule}


def test_as_utc():
    naive = datetime(2030, 1, 1, 10, 0)
    assert as_utc(naive) == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
    plus_two = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two) == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_one_time_schedule_has_one_window():
    assert windows(one_time(minutes=45)) == [(T0, T0 + timedelta(minutes=45))]
    assert horizon(one_time(minutes=45)) == T0 + timedelta(minutes=45)


def test_weekly_occurrences_stop_at_end_date():
    sched = recurring(frequency="weekly", interval=2, end_date=T0 + timedelta(days=35))
    assert list(occurrences(sched)) == [T0, T0 + timedelta(days=14), T0 + timedelta(days=28)]


def test_monthly_occurrences_clamp_to_month_end():
    sched = recurring(frequency="monthly", end_date=datetime(2030, 5, 1, tzinfo=timezone.utc))
    days = [(m.month, m.day) for m in occurrences(sched)]
    assert days == [(1, 31), (2, 28), (3, 31), (4, 30)]


def test_open_ended_recurrence_is_capped():
    assert len(list(occurrences(recurring()))) == MAX_OCCURRENCES
    assert horizon(recurring()) is None


def test_back_to_back_windows_do_not_overlap():
    assert not schedules_overlap(one_time(T0, 60), one_time(T0 + timedelta(minutes=60), 30))
    assert schedules_overlap(one_time(T0, 60), one_time(T0 + timedelta(minutes=59), 30))


def test_overlap_uses_duration_not_exact_time():
    assert schedules_overlap(one_time(T0, 120), one_time(T0 + timedelta(minutes=90), 10))
    assert not schedules_overlap(one_time(T0, 10), one_time(T0 + timedelta(minutes=90), 10))


def test_recurring_schedule_overlaps_later_one_time_booking():
    daily = recurring(T0, 60)
    assert schedules_overlap(daily, one_time(T0 + timedelta(days=10, minutes=30)))
    assert not schedules_overlap(daily, one_time(T0 + timedelta(days=10, hours=3)))


def test_recurrence_ending_before_booking_does_not_overlap():
    daily = recurring(T0, 60, end_date=T0 + timedelta(days=3))
    assert not schedules_overlap(daily, one_time(T0 + timedelta(days=4)))


def test_two_open_ended_recurrences():
    assert schedules_overlap(recurring(T0, 60), recurring(T0 + timedelta(days=7, minutes=30), 60, frequency="weekly"))
    assert not schedules_overlap(recurring(T0, 60), recurring(T0 + timedelta(hours=5), 60))


@pytest.mark.parametrize("start, end, expected", [
    (T0 + timedelta(minutes=30), None, True),
    (T0 + timedelta(minutes=60), None, False),
    (T0 - timedelta(hours=1), T0 + timedelta(minutes=1), True),
    (T0 - timedelta(hours=1), T0, False),
    (T0 + timedelta(days=1), T0 + timedelta(days=2), False),
])
def test_overlaps_window(start, end, expected):
    assert overlaps_window(one_time(T0, 60), start, end) is expected
