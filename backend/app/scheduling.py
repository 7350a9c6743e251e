# ===============================================================
# backend/app/scheduling.py
# ===============================================================
"""
Schedule arithmetic: occurrence expansion and drone time-window overlap.

Every mission books its drone for ``[date_time, date_time + duration_minutes)``.
Recurring schedules book one such window per occurrence. Open-ended
recurrences are expanded up to the other schedule's horizon (or a fixed
number of occurrences when both are open-ended).
"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, List, Optional, Tuple

from .models import RecurrenceFrequency, Schedule, ScheduleType

MAX_OCCURRENCES = 366        # expansion cap when no horizon is known
HARD_OCCURRENCE_CAP = 10000  # absolute cap, even with a horizon

Window = Tuple[datetime, datetime]


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_schedule(schedule: Any) -> Schedule:
    if isinstance(schedule, Schedule):
        return schedule
    return Schedule.model_validate(schedule)


def _add_months(value: datetime, months: int) -> datetime:
    index = value.month - 1 + months
    year, month = value.year + index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _nth_occurrence(start: datetime, frequency: RecurrenceFrequency, interval: int, n: int) -> datetime:
    if frequency == RecurrenceFrequency.DAILY:
        return start + timedelta(days=interval * n)
    if frequency == RecurrenceFrequency.WEEKLY:
        return start + timedelta(weeks=interval * n)
    return _add_months(start, interval * n)


def occurrences(schedule: Any, until: Optional[datetime] = None) -> Iterator[datetime]:
    """Yield the start time of every occurrence (UTC), in order."""
    sched = coerce_schedule(schedule)
    start = as_utc(sched.date_time)
    if sched.type != ScheduleType.RECURRING or sched.recurrence is None:
        yield start
        return

    rule = sched.recurrence
    end = as_utc(rule.end_date) if rule.end_date else None
    limit = HARD_OCCURRENCE_CAP if (end or until) else MAX_OCCURRENCES
    for n in range(limit):
        moment = _nth_occurrence(start, rule.frequency, rule.interval, n)
        if end and moment > end:
            break
        if until and moment > until:
            break
        yield moment


def windows(schedule: Any, until: Optional[datetime] = None) -> List[Window]:
    sched = coerce_schedule(schedule)
    duration = timedelta(minutes=sched.duration_minutes)
    return [(moment, moment + duration) for moment in occurrences(sched, until)]


def horizon(schedule: Any) -> Optional[datetime]:
    """End of the last booked window, or None for open-ended recurrences."""
    sched = coerce_schedule(schedule)
    duration = timedelta(minutes=sched.duration_minutes)
    if sched.type != ScheduleType.RECURRING or sched.recurrence is None:
        return as_utc(sched.date_time) + duration
    if sched.recurrence.end_date:
        return as_utc(sched.recurrence.end_date) + duration
    return None


def schedules_overlap(first: Any, second: Any) -> bool:
    """True when any booked window of ``first`` intersects one of ``second``."""
    ends = [h for h in (horizon(first), horizon(second)) if h is not None]
    until = min(ends) if ends else None
    a, b = windows(first, until), windows(second, until)
    i = j = 0
    while i < len(a) and j < len(b):
        (s1, e1), (s2, e2) = a[i], b[j]
        if s1 < e2 and s2 < e1:
            return True
        if e1 <= e2:
            i += 1
        else:
            j += 1
    return False


def overlaps_window(schedule: Any, start: datetime, end: Optional[datetime] = None) -> bool:
    """True when ``schedule`` books any time in ``[start, end)`` (or the instant ``start``)."""
    start = as_utc(start)
    end = as_utc(end) if end else start
    for s, e in windows(schedule, until=end):
        if end <= start:
            if s <= start < e:
                return True
        elif s < end and start < e:
            return True
    return False
