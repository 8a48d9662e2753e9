"""Source adapters that project each calendar source into ``UnifiedEvent`` items.

Every adapter follows the same shape: coarse storage read, in-process overlap
filter, normalization. Failures never escape ``fetch``; they come back as a
failed ``AdapterResult`` so the aggregator can keep the other sources.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Optional

from ..core.timezone_utils import ensure_aware
from .models import (
    AcademicScheduleRule,
    EventRow,
    FeedEventRow,
    FeedScope,
    ScheduleEventRow,
    SchemaCapabilities,
    SourceType,
    UnifiedEvent,
)
from .overlap import filter_overlapping
from .recurrence import expand_rule
from .window import QueryWindow

if TYPE_CHECKING:
    from ..storage.protocols import CalendarStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterError:
    """Why a source contributed nothing to a timeline read."""

    source: str
    message: str
    kind: str = "exception"  # "exception" or "timeout"


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one adapter fetch: either events or an error, never both."""

    source: str
    events: tuple[UnifiedEvent, ...] = ()
    error: Optional[AdapterError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, source: str, events: Iterable[UnifiedEvent]) -> AdapterResult:
        return cls(source=source, events=tuple(events))

    @classmethod
    def failure(cls, source: str, message: str, kind: str = "exception") -> AdapterResult:
        return cls(source=source, error=AdapterError(source=source, message=message, kind=kind))


class SourceAdapter:
    """Base class for timeline sources.

    Subclasses implement ``_collect`` and set ``source_key``.
    """

    source_key: ClassVar[str] = ""

    def __init__(self, store: CalendarStore, capabilities: Optional[SchemaCapabilities] = None):
        self.store = store
        self.capabilities = capabilities or SchemaCapabilities()

    async def fetch(self, org_id: str, user_id: str, window: QueryWindow) -> AdapterResult:
        """Return this source's items for the window, or a failed result.

        Args:
            org_id: Organization whose timeline is being read
            user_id: Authenticated caller
            window: Validated query window

        Returns:
            AdapterResult with events, or with an AdapterError on any failure
        """
        try:
            events = await self._collect(org_id, user_id, window)
        except Exception as e:
            logger.warning(
                "Source %s failed for org %s: %s: %s",
                self.source_key,
                org_id,
                type(e).__name__,
                e,
            )
            return AdapterResult.failure(self.source_key, f"{type(e).__name__}: {e}")

        logger.debug("Source %s returned %d items", self.source_key, len(events))
        return AdapterResult.success(self.source_key, events)

    async def _collect(self, org_id: str, user_id: str, window: QueryWindow) -> list[UnifiedEvent]:
        raise NotImplementedError


class EventAdapter(SourceAdapter):
    """Direct organization events."""

    source_key = "events"
    source_name = "Team Event"

    async def _collect(self, org_id: str, user_id: str, window: QueryWindow) -> list[UnifiedEvent]:
        rows = await self.store.fetch_events(org_id, window.start, window.end)
        live = [row for row in rows if not row.is_deleted]
        visible = filter_overlapping(
            live, window.start, window.end, lambda row: (row.start_date, row.end_date)
        )
        return [self.normalize(row) for row in visible]

    def badges_for(self, row: EventRow) -> tuple[str, ...]:
        badges: list[str] = []
        if row.event_type:
            badges.append(row.event_type)
        if row.is_philanthropy:
            badges.append("philanthropy")
        if self.capabilities.events_recurrence_column and row.recurrence_group_id:
            badges.append("recurring")
        return tuple(badges)

    def normalize(self, row: EventRow) -> UnifiedEvent:
        return UnifiedEvent(
            id=f"event:{row.id}",
            title=row.title,
            start_at=ensure_aware(row.start_date),
            end_at=ensure_aware(row.end_date) if row.end_date else None,
            all_day=False,
            location=row.location,
            source_type=SourceType.EVENT,
            source_name=self.source_name,
            badges=self.badges_for(row),
            event_id=row.id,
        )


class ScheduleAdapter(SourceAdapter):
    """Imported external schedule events."""

    source_key = "schedules"
    default_source_name = "Imported Schedule"

    async def _collect(self, org_id: str, user_id: str, window: QueryWindow) -> list[UnifiedEvent]:
        rows = await self.store.fetch_schedule_events(org_id, window.start, window.end)
        active = [row for row in rows if row.status != "cancelled"]
        visible = filter_overlapping(
            active, window.start, window.end, lambda row: (row.start_at, row.end_at)
        )
        return [self.normalize(row) for row in visible]

    def normalize(self, row: ScheduleEventRow) -> UnifiedEvent:
        return UnifiedEvent(
            id=f"schedule:{row.id}",
            title=row.title,
            start_at=ensure_aware(row.start_at),
            end_at=ensure_aware(row.end_at),
            all_day=False,
            location=row.location,
            source_type=SourceType.SCHEDULE,
            source_name=row.source_title or self.default_source_name,
        )


class FeedAdapter(SourceAdapter):
    """Events mirrored from connected calendar feeds."""

    source_key = "feeds"

    async def _collect(self, org_id: str, user_id: str, window: QueryWindow) -> list[UnifiedEvent]:
        rows = await self.store.fetch_feed_events(org_id, user_id, window.start, window.end)
        # Personal feeds of other members are never shown
        accessible = [
            row for row in rows if row.scope == FeedScope.ORG.value or row.user_id == user_id
        ]
        visible = filter_overlapping(
            accessible, window.start, window.end, lambda row: (row.start_at, row.end_at)
        )
        return [self.normalize(row) for row in visible]

    def normalize(self, row: FeedEventRow) -> UnifiedEvent:
        source_name = "Google Calendar" if row.provider == "google" else "Calendar Feed"
        return UnifiedEvent(
            id=f"feed:{row.id}",
            title=row.title or "Untitled Event",
            start_at=ensure_aware(row.start_at),
            end_at=ensure_aware(row.end_at) if row.end_at else None,
            all_day=row.all_day,
            location=row.location,
            source_type=SourceType.FEED,
            source_name=source_name,
        )


class ClassScheduleAdapter(SourceAdapter):
    """The caller's academic schedules, expanded into occurrences."""

    source_key = "classes"

    async def _collect(self, org_id: str, user_id: str, window: QueryWindow) -> list[UnifiedEvent]:
        rules = await self.store.fetch_class_rules(org_id, user_id)
        events: list[UnifiedEvent] = []
        for rule in rules:
            if rule.deleted_at is not None:
                continue
            events.extend(self.expand(rule, window))
        return events

    @staticmethod
    def expand(rule: AcademicScheduleRule, window: QueryWindow) -> list[UnifiedEvent]:
        return list(expand_rule(rule, window))


def build_default_adapters(
    store: CalendarStore, capabilities: Optional[SchemaCapabilities] = None
) -> list[SourceAdapter]:
    """Return the four adapters in registration order."""
    return [
        EventAdapter(store, capabilities),
        ScheduleAdapter(store, capabilities),
        FeedAdapter(store, capabilities),
        ClassScheduleAdapter(store, capabilities),
    ]
