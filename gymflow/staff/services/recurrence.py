"""
Recurrence expansion: turns a RecurrenceSpec into the ordered list of class
start times. Pure and deterministic, so it backs both the preview and the
actual generation.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional

from gymflow.core.config import RECURRENCE_MAX_INSTANCES
from gymflow.core.exceptions import ValidationError
from gymflow.staff.schemas.recurrence import RecurrencePattern, RecurrenceSpec

BIWEEKLY_STEP = timedelta(days=14)


def weekday_number(day: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def _stepped(start: date, end: date, step: timedelta) -> Iterator[date]:
    # Stop before stepping past end so ranges ending at date.max never overflow.
    current = start
    while True:
        yield current
        if end - current < step:
            return
        current += step


def _daily(start: date, end: date) -> Iterator[date]:
    return _stepped(start, end, timedelta(days=1))


def _weekly(start: date, end: date, days_of_week: List[int]) -> Iterator[date]:
    for current in _daily(start, end):
        if weekday_number(current) in days_of_week:
            yield current


def _biweekly(start: date, end: date, days_of_week: List[int]) -> Iterator[date]:
    # Only the stepped date itself is considered: every 14 days from start,
    # kept when its weekday is selected. Stepping keeps the weekday.
    if weekday_number(start) not in days_of_week:
        return
    for current in _stepped(start, end, BIWEEKLY_STEP):
        if weekday_number(current) in days_of_week:
            yield current


def _monthly(start: date, end: date) -> Iterator[date]:
    # Same day-of-month as start; months without that day are skipped.
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        if start.day <= calendar.monthrange(year, month)[1]:
            candidate = date(year, month, start.day)
            if candidate > end:
                break
            yield candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1


def _candidate_dates(spec: RecurrenceSpec) -> Iterator[date]:
    if spec.pattern == RecurrencePattern.daily:
        return _daily(spec.start_date, spec.end_date)
    if spec.pattern == RecurrencePattern.weekly:
        return _weekly(spec.start_date, spec.end_date, spec.days_of_week)
    if spec.pattern == RecurrencePattern.biweekly:
        return _biweekly(spec.start_date, spec.end_date, spec.days_of_week)
    if spec.pattern == RecurrencePattern.monthly:
        return _monthly(spec.start_date, spec.end_date)
    raise ValidationError(f"Unsupported recurrence pattern: {spec.pattern}")


def expand(spec: RecurrenceSpec, max_instances: Optional[int] = None) -> List[datetime]:
    """
    Expand a recurrence spec into ordered start datetimes.

    Raises ValidationError as soon as the spec yields more than
    ``max_instances`` classes; the result is never truncated.
    """
    if max_instances is None:
        max_instances = RECURRENCE_MAX_INSTANCES

    excluded = set(spec.exclude_dates)
    start_times: List[datetime] = []

    for day in _candidate_dates(spec):
        if day in excluded:
            continue
        if len(start_times) == max_instances:
            raise ValidationError(
                f"Too many classes to generate (more than {max_instances}). "
                f"Maximum: {max_instances}",
                {"limit": max_instances, "count": max_instances + 1},
            )
        start_times.append(datetime.combine(day, spec.time_of_day))

    return start_times
