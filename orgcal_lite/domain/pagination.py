"""Merge, sort and paginate aggregated timeline items."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.timezone_utils import ensure_aware
from .models import TimelineMeta, TimelinePage, UnifiedEvent
from .window import QueryWindow

logger = logging.getLogger(__name__)


def sort_events(events: Iterable[UnifiedEvent]) -> list[UnifiedEvent]:
    """Stable ascending sort by start instant (ties keep source order)."""
    return sorted(events, key=lambda event: ensure_aware(event.start_at))


def paginate(events: Iterable[UnifiedEvent], window: QueryWindow) -> TimelinePage:
    """Sort the merged items and cut out the window's page.

    Args:
        events: Concatenated adapter output
        window: Validated window carrying page, limit, offset and max_events

    Returns:
        TimelinePage with ``truncated`` set when the merged total exceeds max_events
    """
    ordered = sort_events(events)
    total = len(ordered)
    page_items = ordered[window.offset : window.offset + window.limit]
    truncated = total > window.max_events
    if truncated:
        logger.info("Timeline total %d exceeds cap of %d", total, window.max_events)

    meta = TimelineMeta(
        count=len(page_items),
        total=total,
        page=window.page,
        limit=window.limit,
        has_more=window.offset + len(page_items) < total,
        truncated=truncated,
    )
    return TimelinePage(events=tuple(page_items), meta=meta)
