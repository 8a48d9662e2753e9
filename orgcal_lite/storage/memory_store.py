"""JSON-backed in-memory CalendarStore for orgcal_lite.

The on-disk format is a single JSON object with one list per table::

    {
      "events": [...],
      "schedule_events": [...],
      "feed_events": [...],
      "academic_schedules": [...],
      "memberships": [...]
    }

Rows are validated with the domain models on load. Every mutation is applied to
a copy of the affected table, persisted atomically (temp file + ``os.replace``)
and only then swapped into memory, so a failed write leaves nothing applied.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Optional, Union

from ..core.timezone_utils import ensure_aware
from ..domain.exceptions import StorageError
from ..domain.models import (
    AcademicScheduleRule,
    EventRow,
    FeedEventRow,
    Membership,
    ScheduleEventRow,
    SchemaCapabilities,
)

logger = logging.getLogger(__name__)


class JsonCalendarStore:
    """Thread-safe CalendarStore kept in memory, optionally mirrored to a JSON file."""

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        capabilities: Optional[SchemaCapabilities] = None,
    ) -> None:
        """Create a store.

        Args:
            path: Optional JSON file to load from and persist to. Without a path
                the store is purely in-memory.
            capabilities: Schema features this store reports at startup
        """
        self._path = Path(path) if path else None
        self._capabilities = capabilities or SchemaCapabilities()
        self._lock = threading.Lock()
        self._events: dict[str, EventRow] = {}
        self._schedule_events: list[ScheduleEventRow] = []
        self._feed_events: list[FeedEventRow] = []
        self._class_rules: list[AcademicScheduleRule] = []
        self._memberships: dict[tuple[str, str], Membership] = {}

        if self._path is not None:
            self.load()

    def describe_capabilities(self) -> SchemaCapabilities:
        return self._capabilities

    # -- loading / persistence -------------------------------------------------

    def load(self) -> None:
        """Load the JSON file into memory (missing file means an empty store).

        Raises:
            StorageError: If the file exists but cannot be read or validated
        """
        if self._path is None:
            return
        with self._lock:
            if not self._path.exists():
                logger.debug("Calendar data file not found; starting empty: %s", self._path)
                return
            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("calendar data JSON root must be an object")  # noqa: TRY004
                self._replace_all(data)
            except (OSError, ValueError) as exc:
                raise StorageError(f"Failed to load calendar data {self._path}: {exc}") from exc

        logger.info(
            "Loaded calendar data %s (%d events, %d schedule events, %d feed events, %d class rules)",
            self._path,
            len(self._events),
            len(self._schedule_events),
            len(self._feed_events),
            len(self._class_rules),
        )

    def _replace_all(self, data: dict[str, Any]) -> None:
        events = [EventRow.model_validate(row) for row in data.get("events", [])]
        memberships = [Membership.model_validate(row) for row in data.get("memberships", [])]
        self._events = {row.id: row for row in events}
        self._schedule_events = [
            ScheduleEventRow.model_validate(row) for row in data.get("schedule_events", [])
        ]
        self._feed_events = [FeedEventRow.model_validate(row) for row in data.get("feed_events", [])]
        self._class_rules = [
            AcademicScheduleRule.model_validate(row) for row in data.get("academic_schedules", [])
        ]
        self._memberships = {(m.user_id, m.organization_id): m for m in memberships}

    def _snapshot(self, events: dict[str, EventRow]) -> dict[str, Any]:
        return {
            "events": [row.model_dump(mode="json") for row in events.values()],
            "schedule_events": [row.model_dump(mode="json") for row in self._schedule_events],
            "feed_events": [row.model_dump(mode="json") for row in self._feed_events],
            "academic_schedules": [row.model_dump(mode="json") for row in self._class_rules],
            "memberships": [row.model_dump(mode="json") for row in self._memberships.values()],
        }

    def _persist(self, events: dict[str, EventRow]) -> None:
        """Write a snapshot atomically; called with the lock held.

        Raises:
            StorageError: If the file could not be written
        """
        if self._path is None:
            return

        data = self._snapshot(events)
        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise StorageError(f"Failed to persist calendar data to {self._path}: {exc}") from exc

    def _commit(self, events: dict[str, EventRow]) -> None:
        self._persist(events)
        self._events = events

    # -- seeding (synchronous, used by the CLI and tests) ---------------------

    def add_membership(self, membership: Membership) -> None:
        with self._lock:
            self._memberships[(membership.user_id, membership.organization_id)] = membership

    def add_events(self, rows: Iterable[EventRow]) -> None:
        with self._lock:
            events = dict(self._events)
            events.update((row.id, row) for row in rows)
            self._commit(events)

    def add_schedule_events(self, rows: Iterable[ScheduleEventRow]) -> None:
        with self._lock:
            self._schedule_events.extend(rows)

    def add_feed_events(self, rows: Iterable[FeedEventRow]) -> None:
        with self._lock:
            self._feed_events.extend(rows)

    def add_class_rules(self, rules: Iterable[AcademicScheduleRule]) -> None:
        with self._lock:
            self._class_rules.extend(rules)

    def get_event_sync(self, event_id: str) -> Optional[EventRow]:
        with self._lock:
            return self._events.get(event_id)

    # -- CalendarStore protocol ------------------------------------------------

    async def get_membership(self, user_id: str, org_id: str) -> Optional[Membership]:
        with self._lock:
            return self._memberships.get((user_id, org_id))

    async def fetch_events(
        self, org_id: str, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> list[EventRow]:
        with self._lock:
            rows = [
                row
                for row in self._events.values()
                if row.organization_id == org_id and not row.is_deleted
            ]
        # Coarse upper-bound filter only; adapters apply the exact overlap test
        return [row for row in rows if ensure_aware(row.start_date) <= window_end]

    async def fetch_schedule_events(
        self, org_id: str, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> list[ScheduleEventRow]:
        with self._lock:
            rows = [row for row in self._schedule_events if row.org_id == org_id]
        return [
            row
            for row in rows
            if ensure_aware(row.start_at) <= window_end and ensure_aware(row.end_at) >= window_start
        ]

    async def fetch_feed_events(
        self,
        org_id: str,
        user_id: str,
        window_start: datetime.datetime,
        window_end: datetime.datetime,
    ) -> list[FeedEventRow]:
        with self._lock:
            rows = [row for row in self._feed_events if row.organization_id == org_id]
        return [row for row in rows if ensure_aware(row.start_at) <= window_end]

    async def fetch_class_rules(self, org_id: str, user_id: str) -> list[AcademicScheduleRule]:
        with self._lock:
            return [
                rule
                for rule in self._class_rules
                if rule.organization_id == org_id
                and rule.user_id == user_id
                and rule.deleted_at is None
            ]

    async def get_event(self, event_id: str, org_id: str) -> Optional[EventRow]:
        with self._lock:
            row = self._events.get(event_id)
        if row is None or row.organization_id != org_id:
            return None
        return row

    async def list_series(self, group_id: str, org_id: str) -> list[EventRow]:
        with self._lock:
            return [
                row
                for row in self._events.values()
                if row.recurrence_group_id == group_id
                and row.organization_id == org_id
                and not row.is_deleted
            ]

    async def soft_delete_events(
        self, event_ids: Sequence[str], org_id: str, deleted_at: datetime.datetime
    ) -> int:
        # Yield once so concurrent requests interleave like a real backend call
        await asyncio.sleep(0)
        with self._lock:
            events = dict(self._events)
            changed = 0
            for event_id in event_ids:
                row = events.get(event_id)
                if row is None or row.organization_id != org_id or row.is_deleted:
                    continue
                events[event_id] = row.model_copy(update={"deleted_at": deleted_at})
                changed += 1
            if changed:
                self._commit(events)
            return changed

    async def insert_events(self, rows: Sequence[EventRow]) -> None:
        await asyncio.sleep(0)
        with self._lock:
            events = dict(self._events)
            for row in rows:
                if row.id in events:
                    raise StorageError(f"Duplicate event id {row.id}")
                events[row.id] = row
            self._commit(events)

    async def update_events(
        self, event_ids: Sequence[str], org_id: str, changes: dict[str, Any]
    ) -> list[EventRow]:
        await asyncio.sleep(0)
        with self._lock:
            events = dict(self._events)
            updated = []
            for event_id in event_ids:
                row = events.get(event_id)
                if row is None or row.organization_id != org_id or row.is_deleted:
                    continue
                # Revalidate so a bad value cannot slip into the table
                merged = row.model_dump()
                merged.update(changes)
                try:
                    new_row = EventRow.model_validate(merged)
                except ValueError as exc:
                    raise StorageError(f"Invalid update for event {event_id}: {exc}") from exc
                events[event_id] = new_row
                updated.append(new_row)
            self._commit(events)
            return updated
