"""Materialize recurring event series as individual event rows.

Unlike class schedules, which stay compact and are expanded on every read,
recurring organization events are written out as one row per instance at
creation time. Instances share a ``recurrence_group_id`` and carry a sequential
``recurrence_index``; only the parent (index 0) stores the rule.
"""

from __future__ import annotations

import calendar
import datetime
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ..core.timezone_utils import ensure_aware
from .exceptions import InvalidRequestError, ResolverFailure, StorageError
from .models import EventRow
from .recurrence import sunday_weekday

if TYPE_CHECKING:
    from ..storage.protocols import CalendarStore

logger = logging.getLogger(__name__)

DEFAULT_SERIES_MONTHS = 6
MAX_INSTANCES = {"daily": 180, "weekly": 52, "monthly": 12}


class SeriesRule(BaseModel):
    """Recurrence rule attached to a newly created event.

    ``occurrence_type`` is left as a plain string: an unrecognized type yields an
    empty series rather than a validation error.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    occurrence_type: str
    day_of_week: Optional[list[int]] = None
    day_of_month: Optional[int] = None
    recurrence_end_date: Optional[datetime.date] = None

    @field_validator("day_of_week")
    @classmethod
    def _check_weekdays(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError("day_of_week values must be in 0..6 (0 = Sunday)")
        return value

    @field_validator("day_of_month")
    @classmethod
    def _check_day_of_month(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 1 <= value <= 31:
            raise ValueError("day_of_month must be in 1..31")
        return value


@dataclass(frozen=True)
class SeriesInstance:
    """One materialized occurrence of a recurring event."""

    start_date: datetime.datetime
    end_date: Optional[datetime.datetime]
    recurrence_index: int


def _series_end(start_day: datetime.date, rule: SeriesRule) -> datetime.date:
    if rule.recurrence_end_date is not None:
        return rule.recurrence_end_date
    return start_day + relativedelta(months=DEFAULT_SERIES_MONTHS)


def _daily_dates(start_day: datetime.date, last_day: datetime.date, cap: int) -> list[datetime.date]:
    dates = []
    day = start_day
    while day <= last_day and len(dates) < cap:
        dates.append(day)
        day += datetime.timedelta(days=1)
    return dates


def _weekly_dates(
    start_day: datetime.date, last_day: datetime.date, weekdays: set[int], cap: int
) -> list[datetime.date]:
    dates = []
    day = start_day
    while day <= last_day and len(dates) < cap:
        if sunday_weekday(day) in weekdays:
            dates.append(day)
        day += datetime.timedelta(days=1)
    return dates


def _monthly_dates(
    start_day: datetime.date, last_day: datetime.date, day_of_month: int, cap: int
) -> list[datetime.date]:
    dates: list[datetime.date] = []
    month_start = start_day.replace(day=1)
    while month_start <= last_day and len(dates) < cap:
        # Short months clamp to their last day instead of skipping
        month_length = calendar.monthrange(month_start.year, month_start.month)[1]
        day = month_start.replace(day=min(day_of_month, month_length))
        if start_day <= day <= last_day:
            dates.append(day)
        month_start += relativedelta(months=1)
    return dates


def build_series_instances(
    start: datetime.datetime,
    end: Optional[datetime.datetime],
    rule: SeriesRule,
    tz: datetime.tzinfo = datetime.UTC,
) -> list[SeriesInstance]:
    """Expand a creation-time rule into concrete instances.

    Dates are walked in ``tz`` so every instance keeps the first one's wall-clock
    time; each instance keeps the original duration.

    Args:
        start: Start of the first instance
        end: End of the first instance, or None for open-ended events
        rule: Recurrence rule
        tz: Timezone whose calendar the series follows

    Returns:
        Instances with sequential ``recurrence_index`` starting at 0; empty for an
        unrecognized ``occurrence_type``
    """
    cap = MAX_INSTANCES.get(rule.occurrence_type)
    if cap is None:
        logger.warning("Unknown occurrence_type %r; no instances created", rule.occurrence_type)
        return []

    local_start = ensure_aware(start).astimezone(tz)
    duration = ensure_aware(end) - ensure_aware(start) if end is not None else None
    start_day = local_start.date()
    last_day = _series_end(start_day, rule)

    if rule.occurrence_type == "daily":
        dates = _daily_dates(start_day, last_day, cap)
    elif rule.occurrence_type == "weekly":
        weekdays = set(rule.day_of_week) if rule.day_of_week else {sunday_weekday(start_day)}
        dates = _weekly_dates(start_day, last_day, weekdays, cap)
    else:
        day_of_month = rule.day_of_month or start_day.day
        dates = _monthly_dates(start_day, last_day, day_of_month, cap)

    instances = []
    for index, day in enumerate(dates):
        instance_start = datetime.datetime.combine(day, local_start.time(), tzinfo=tz)
        instance_end = instance_start + duration if duration is not None else None
        instances.append(SeriesInstance(instance_start, instance_end, index))
    return instances


def _base_fields(base: dict[str, Any]) -> dict[str, Any]:
    fields = {
        key: base.get(key)
        for key in (
            "organization_id",
            "title",
            "description",
            "location",
            "event_type",
            "created_by_user_id",
        )
    }
    fields["is_philanthropy"] = bool(base.get("is_philanthropy", False))
    return fields


def _require_start(base: dict[str, Any]) -> datetime.datetime:
    start = base.get("start_date")
    if not isinstance(start, datetime.datetime):
        raise InvalidRequestError("start_date is required.")
    return start


async def create_recurring_events(
    store: CalendarStore,
    base: dict[str, Any],
    rule: SeriesRule,
    tz: datetime.tzinfo = datetime.UTC,
) -> list[EventRow]:
    """Create every instance of a recurring event in one atomic insert.

    Args:
        store: Storage collaborator
        base: Event fields (``organization_id``, ``title``, ``start_date``, ...)
        rule: Recurrence rule
        tz: Timezone whose calendar the series follows

    Returns:
        The inserted rows in index order

    Raises:
        InvalidRequestError: If the rule produces no instances
        ResolverFailure: ``create_failed`` if the store rejected the insert
    """
    start = _require_start(base)
    instances = build_series_instances(start, base.get("end_date"), rule, tz)
    if not instances:
        raise InvalidRequestError("Recurrence rule produced no events.")

    group_id = str(uuid.uuid4())
    fields = _base_fields(base)
    rule_payload = rule.model_dump(mode="json", exclude_none=True)
    rows = [
        EventRow(
            id=str(uuid.uuid4()),
            start_date=instance.start_date,
            end_date=instance.end_date,
            recurrence_group_id=group_id,
            recurrence_index=instance.recurrence_index,
            recurrence_rule=rule_payload if instance.recurrence_index == 0 else None,
            **fields,
        )
        for instance in instances
    ]

    await _insert(store, rows)
    logger.info(
        "Created recurring series %s with %d instances in org %s",
        group_id,
        len(rows),
        fields["organization_id"],
    )
    return rows


async def create_single_event(store: CalendarStore, base: dict[str, Any]) -> EventRow:
    """Create a one-off event (a singleton series)."""
    row = EventRow(
        id=str(uuid.uuid4()),
        start_date=_require_start(base),
        end_date=base.get("end_date"),
        **_base_fields(base),
    )
    await _insert(store, [row])
    logger.info("Created event %s in org %s", row.id, row.organization_id)
    return row


async def _insert(store: CalendarStore, rows: list[EventRow]) -> None:
    try:
        await store.insert_events(rows)
    except StorageError as e:
        logger.error("Insert of %d events failed: %s", len(rows), e)
        raise ResolverFailure("Failed to create events.", code="create_failed") from e
