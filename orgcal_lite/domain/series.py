"""Recurrence-scoped resolution, deletion and update of event series.

A series is the set of event rows sharing a ``recurrence_group_id``. Rows without
a group id form a singleton series, so every scope collapses to the target row.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from ..core.timezone_utils import ensure_aware, now_utc
from .exceptions import InvalidRequestError, ResolverFailure, StorageError
from .models import DeleteScope, EventChanges, EventRow, SeriesDeleteResult

if TYPE_CHECKING:
    from ..storage.protocols import CalendarStore

logger = logging.getLogger(__name__)

# Fields a series update may change; dates and series bookkeeping are excluded
UPDATABLE_FIELDS = frozenset(EventChanges.model_fields)


def parse_scope(raw: Optional[str], default: DeleteScope = DeleteScope.THIS_ONLY) -> DeleteScope:
    """Parse a scope query parameter.

    Raises:
        InvalidRequestError: If the value is not a known scope
    """
    if raw is None or raw == "":
        return default
    try:
        return DeleteScope(raw)
    except ValueError:
        allowed = ", ".join(scope.value for scope in DeleteScope)
        raise InvalidRequestError(f"scope must be one of: {allowed}.") from None


def series_sort_key(row: EventRow) -> tuple[Any, int]:
    """Order series rows by start instant, then by recurrence index."""
    index = row.recurrence_index if row.recurrence_index is not None else 0
    return (ensure_aware(row.start_date), index)


def select_scope(target: EventRow, series: Sequence[EventRow], scope: DeleteScope) -> list[str]:
    """Return the ids ``scope`` covers, given the target and its (non-deleted) series rows."""
    if scope == DeleteScope.THIS_ONLY or not target.recurrence_group_id:
        return [target.id]

    ordered = sorted(series, key=series_sort_key)
    if scope == DeleteScope.ALL_IN_SERIES:
        ids = [row.id for row in ordered]
    else:
        target_key = series_sort_key(target)
        ids = [row.id for row in ordered if series_sort_key(row) >= target_key]

    # The target is always covered, even when it was already deleted
    if target.id not in ids:
        ids.insert(0, target.id)
    return ids


class SeriesResolver:
    """Resolves and applies recurrence-scoped mutations against a CalendarStore."""

    def __init__(self, store: CalendarStore):
        self.store = store

    async def _load_target(self, event_id: str, org_id: str) -> EventRow:
        try:
            target = await self.store.get_event(event_id, org_id)
        except StorageError as e:
            raise ResolverFailure(
                f"Failed to load event {event_id}.", code="lookup_failed", http_status=500
            ) from e
        if target is None:
            raise ResolverFailure("Event not found.", code="event_not_found", http_status=404)
        return target

    async def _load_live_target(self, event_id: str, org_id: str) -> EventRow:
        """Like ``_load_target``, but a soft-deleted row counts as missing."""
        target = await self._load_target(event_id, org_id)
        if target.is_deleted:
            raise ResolverFailure("Event not found.", code="event_not_found", http_status=404)
        return target

    async def _load_series(self, target: EventRow, org_id: str) -> list[EventRow]:
        if not target.recurrence_group_id:
            return [target]
        try:
            return await self.store.list_series(target.recurrence_group_id, org_id)
        except StorageError as e:
            raise ResolverFailure(
                f"Failed to load series {target.recurrence_group_id}.",
                code="lookup_failed",
                http_status=500,
            ) from e

    async def resolve(self, event_id: str, org_id: str, scope: DeleteScope) -> list[str]:
        """Compute the set of event ids ``scope`` covers for ``event_id``.

        Raises:
            ResolverFailure: ``event_not_found`` if the event is not in the organization
        """
        target = await self._load_target(event_id, org_id)
        series = await self._load_series(target, org_id)
        return select_scope(target, series, scope)

    async def delete(self, event_id: str, org_id: str, scope: DeleteScope) -> list[str]:
        """Soft-delete the scoped rows in one atomic store call.

        Already-deleted rows are left untouched, so repeating a delete is a no-op
        that reports the same ids.

        Returns:
            The ids covered by the deletion

        Raises:
            ResolverFailure: ``event_not_found`` or ``delete_failed`` (nothing applied)
        """
        ids = await self.resolve(event_id, org_id, scope)
        try:
            changed = await self.store.soft_delete_events(ids, org_id, now_utc())
        except StorageError as e:
            logger.error("Soft-delete of %d events in org %s failed: %s", len(ids), org_id, e)
            raise ResolverFailure("Failed to delete events.", code="delete_failed") from e

        logger.info(
            "Deleted %s scope=%s in org %s: %d ids (%d newly deleted)",
            event_id,
            scope.value,
            org_id,
            len(ids),
            changed,
        )
        return ids

    async def update(
        self, event_id: str, org_id: str, changes: dict[str, Any], scope: DeleteScope
    ) -> list[str]:
        """Apply field changes to the target alone or to the target and later rows.

        Raises:
            InvalidRequestError: If ``changes`` is empty or names a non-updatable field,
                or ``scope`` is ``all_in_series``
            ResolverFailure: ``event_not_found``, ``not_recurring`` or ``update_failed``
        """
        if scope == DeleteScope.ALL_IN_SERIES:
            raise InvalidRequestError("Updates support this_only or this_and_future scope.")
        if scope == DeleteScope.THIS_AND_FUTURE:
            return await self.update_future(event_id, org_id, changes)

        changes = self._check_changes(changes)
        target = await self._load_live_target(event_id, org_id)
        return await self._apply_update([target.id], org_id, changes)

    async def update_future(self, event_id: str, org_id: str, changes: dict[str, Any]) -> list[str]:
        """Apply field changes to ``event_id`` and every later row of its series.

        Raises:
            ResolverFailure: ``not_recurring`` if the target has no series
        """
        changes = self._check_changes(changes)
        target = await self._load_live_target(event_id, org_id)
        if not target.recurrence_group_id:
            raise ResolverFailure(
                "Event is not part of a recurring series.", code="not_recurring", http_status=409
            )

        series = await self._load_series(target, org_id)
        ids = select_scope(target, series, DeleteScope.THIS_AND_FUTURE)
        return await self._apply_update(ids, org_id, changes)

    async def _apply_update(self, ids: list[str], org_id: str, changes: dict[str, Any]) -> list[str]:
        try:
            await self.store.update_events(ids, org_id, changes)
        except StorageError as e:
            logger.error("Update of %d events in org %s failed: %s", len(ids), org_id, e)
            raise ResolverFailure("Failed to update events.", code="update_failed") from e
        logger.info("Updated %d events in org %s (%s)", len(ids), org_id, ", ".join(sorted(changes)))
        return ids

    @staticmethod
    def _check_changes(changes: dict[str, Any]) -> dict[str, Any]:
        """Return ``changes`` type-checked against ``EventChanges``.

        Raises:
            InvalidRequestError: If empty, naming a non-updatable field or holding a
                value of the wrong type
        """
        if not changes:
            raise InvalidRequestError("No changes supplied.")
        unknown = set(changes).difference(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidRequestError(f"Fields cannot be updated: {', '.join(sorted(unknown))}.")
        try:
            validated = EventChanges.model_validate(changes)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ()))
            raise InvalidRequestError(f"{field}: {error.get('msg')}") from None
        return validated.model_dump(exclude_unset=True)


async def delete_events_in_series(
    store: CalendarStore, event_id: str, org_id: str, scope: DeleteScope
) -> SeriesDeleteResult:
    """Delete a scoped series and report the outcome as a value instead of raising."""
    try:
        deleted_ids = await SeriesResolver(store).delete(event_id, org_id, scope)
    except ResolverFailure as e:
        return SeriesDeleteResult(deleted_ids=[], error=e.code)
    return SeriesDeleteResult(deleted_ids=deleted_ids)
