"""Interval-intersection predicate shared by the instant-based source adapters.

Storage queries may return a coarser superset (for example filtered only by an
upper bound); this predicate is re-applied in-process and is authoritative.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Iterable
from typing import Optional, TypeVar

from ..core.timezone_utils import ensure_aware

T = TypeVar("T")


def overlaps(
    item_start: datetime.datetime,
    item_end: Optional[datetime.datetime],
    window_start: datetime.datetime,
    window_end: datetime.datetime,
) -> bool:
    """Return True if the item intersects ``[window_start, window_end]``.

    An item without an end is a point event: it must itself fall inside the
    window, otherwise an old open-ended item would cover every later window.
    """
    item_start = ensure_aware(item_start)
    if item_start > window_end:
        return False
    if item_end is None:
        return item_start >= window_start
    return ensure_aware(item_end) >= window_start


def filter_overlapping(
    items: Iterable[T],
    window_start: datetime.datetime,
    window_end: datetime.datetime,
    span: Callable[[T], tuple[datetime.datetime, Optional[datetime.datetime]]],
) -> list[T]:
    """Keep the items whose ``span(item)`` overlaps the window, preserving order."""
    kept = []
    for item in items:
        item_start, item_end = span(item)
        if overlaps(item_start, item_end, window_start, window_end):
            kept.append(item)
    return kept
