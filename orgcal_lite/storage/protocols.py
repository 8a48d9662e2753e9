"""Protocol definitions for the storage and sync collaborators.

The timeline engine only depends on these interfaces; ``JsonCalendarStore`` and
the sync clients in this package are the bundled implementations.
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional, Protocol

if TYPE_CHECKING:
    from orgcal_lite.domain.models import (
        AcademicScheduleRule,
        EventRow,
        FeedEventRow,
        Membership,
        ScheduleEventRow,
        SchemaCapabilities,
    )


class CalendarStore(Protocol):
    """Protocol for the calendar storage collaborator.

    Range reads may return a superset of the rows overlapping the window; the
    adapters re-apply the overlap predicate.
    """

    def describe_capabilities(self) -> SchemaCapabilities:
        """Report optional schema features (called once at startup)."""
        ...

    async def get_membership(self, user_id: str, org_id: str) -> Optional[Membership]:
        """Return the user's membership in the organization, or None."""
        ...

    async def fetch_events(
        self, org_id: str, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> list[EventRow]:
        """Return non-deleted organization events that may overlap the window."""
        ...

    async def fetch_schedule_events(
        self, org_id: str, window_start: datetime.datetime, window_end: datetime.datetime
    ) -> list[ScheduleEventRow]:
        """Return imported schedule events that may overlap the window."""
        ...

    async def fetch_feed_events(
        self,
        org_id: str,
        user_id: str,
        window_start: datetime.datetime,
        window_end: datetime.datetime,
    ) -> list[FeedEventRow]:
        """Return feed events visible to the user that may overlap the window."""
        ...

    async def fetch_class_rules(self, org_id: str, user_id: str) -> list[AcademicScheduleRule]:
        """Return the user's non-deleted academic schedule rules."""
        ...

    async def get_event(self, event_id: str, org_id: str) -> Optional[EventRow]:
        """Return an event row of the organization (deleted rows included), or None."""
        ...

    async def list_series(self, group_id: str, org_id: str) -> list[EventRow]:
        """Return the non-deleted rows sharing ``group_id`` in the organization."""
        ...

    async def soft_delete_events(
        self, event_ids: Sequence[str], org_id: str, deleted_at: datetime.datetime
    ) -> int:
        """Atomically soft-delete the given rows; already-deleted rows are left as-is.

        Returns:
            Number of rows newly marked deleted

        Raises:
            StorageError: If the write fails (nothing is applied)
        """
        ...

    async def insert_events(self, rows: Sequence[EventRow]) -> None:
        """Atomically insert new event rows.

        Raises:
            StorageError: If the write fails (nothing is applied)
        """
        ...

    async def update_events(
        self, event_ids: Sequence[str], org_id: str, changes: dict[str, Any]
    ) -> list[EventRow]:
        """Atomically apply field changes to the given live rows and return the updated rows.

        Missing, foreign and soft-deleted rows are skipped.

        Raises:
            StorageError: If the write fails (nothing is applied)
        """
        ...


class CalendarSyncClient(Protocol):
    """Protocol for the downstream calendar sync collaborator."""

    async def sync_event(self, payload: dict[str, Any]) -> None:
        """Notify downstream consumers that an event changed.

        Args:
            payload: ``{"id", "organizationId", "operation"}``
        """
        ...

    async def close(self) -> None:
        """Release any underlying connections."""
        ...
