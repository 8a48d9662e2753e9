"""Academic schedule expansion for orgcal_lite.

Class schedules are stored as compact rules and expanded into concrete
occurrences for the requested window on every read. Expansion walks local
calendar dates (``datetime.date``) and only turns a date into an instant at the
very end, so DST transitions and server timezone never shift which day a class
lands on.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterator

from ..core.timezone_utils import combine_local
from .models import AcademicScheduleRule, OccurrenceType, SourceType, UnifiedEvent
from .window import QueryWindow

logger = logging.getLogger(__name__)

_ONE_DAY = datetime.timedelta(days=1)


def sunday_weekday(day: datetime.date) -> int:
    """Return the weekday index of ``day`` with 0 = Sunday .. 6 = Saturday."""
    return day.isoweekday() % 7


def effective_range(
    rule: AcademicScheduleRule, window_start: datetime.date, window_end: datetime.date
) -> tuple[datetime.date, datetime.date]:
    """Intersect the rule's active dates with the window's local dates.

    The returned range is empty (first > last) when they do not intersect.
    """
    first = max(rule.start_date, window_start)
    last = window_end if rule.end_date is None else min(rule.end_date, window_end)
    return first, last


def _matches(rule: AcademicScheduleRule, day: datetime.date) -> bool:
    occurrence_type = rule.occurrence_type
    if occurrence_type == OccurrenceType.DAILY.value:
        return True
    if occurrence_type == OccurrenceType.WEEKLY.value:
        return bool(rule.day_of_week) and sunday_weekday(day) in rule.day_of_week
    if occurrence_type == OccurrenceType.MONTHLY.value:
        return day.day == rule.day_of_month
    return False


def occurrence_dates(
    rule: AcademicScheduleRule, window_start: datetime.date, window_end: datetime.date
) -> Iterator[datetime.date]:
    """Yield the local dates on which ``rule`` occurs inside the window, in order."""
    if rule.occurrence_type == OccurrenceType.SINGLE.value:
        if window_start <= rule.start_date <= window_end:
            yield rule.start_date
        return

    first, last = effective_range(rule, window_start, window_end)
    day = first
    while day <= last:
        if _matches(rule, day):
            yield day
        day += _ONE_DAY


def build_occurrence(
    rule: AcademicScheduleRule, day: datetime.date, local_tz: datetime.tzinfo
) -> UnifiedEvent:
    """Project one occurrence date of ``rule`` into a unified timeline item."""
    start_at = combine_local(day, rule.start_time, local_tz)
    end_day = day + _ONE_DAY if rule.end_time < rule.start_time else day
    end_at = combine_local(end_day, rule.end_time, local_tz)

    return UnifiedEvent(
        id=f"class:{rule.id}:{day.isoformat()}",
        title=rule.title,
        start_at=start_at,
        end_at=end_at,
        all_day=False,
        location=None,
        source_type=SourceType.CLASS,
        source_name=rule.title,
        badges=(),
    )


def expand_rule(rule: AcademicScheduleRule, window: QueryWindow) -> Iterator[UnifiedEvent]:
    """Expand a class schedule rule into the occurrences inside ``window``.

    Args:
        rule: Validated schedule rule
        window: Validated query window (its local dates bound the expansion)

    Yields:
        UnifiedEvent occurrences in date order
    """
    window_start = window.start_date
    window_end = window.end_date
    for day in occurrence_dates(rule, window_start, window_end):
        yield build_occurrence(rule, day, window.local_tz)
