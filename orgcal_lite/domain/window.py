"""Query window validation for timeline reads."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..core.config_manager import (
    MAX_DATE_RANGE_DAYS,
    MAX_EVENTS,
    MEMBER_EVENTS_DEFAULT_LIMIT,
    MEMBER_EVENTS_MAX_RANGE_DAYS,
)
from ..core.timezone_utils import parse_instant, to_local_date
from .exceptions import InvalidWindowError, WindowTooLargeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowPolicy:
    """Bounds applied by the validator for one read endpoint."""

    max_span_days: int = MAX_DATE_RANGE_DAYS
    max_events: int = MAX_EVENTS
    default_limit: int = MAX_EVENTS

    @classmethod
    def unified(cls, max_span_days: int = MAX_DATE_RANGE_DAYS, max_events: int = MAX_EVENTS) -> WindowPolicy:
        """Policy for the full four-source timeline."""
        return cls(max_span_days=max_span_days, max_events=max_events, default_limit=max_events)

    @classmethod
    def member_events(cls, max_events: int = MAX_EVENTS) -> WindowPolicy:
        """Policy for the narrower feeds + schedules variant."""
        return cls(
            max_span_days=MEMBER_EVENTS_MAX_RANGE_DAYS,
            max_events=max_events,
            default_limit=min(MEMBER_EVENTS_DEFAULT_LIMIT, max_events),
        )


@dataclass(frozen=True)
class QueryWindow:
    """A validated, request-scoped time window with its pagination slice."""

    start: datetime.datetime
    end: datetime.datetime
    page: int
    limit: int
    offset: int
    local_tz: datetime.tzinfo
    max_events: int = MAX_EVENTS

    @property
    def start_date(self) -> datetime.date:
        """Local calendar date of the window start."""
        return to_local_date(self.start, self.local_tz)

    @property
    def end_date(self) -> datetime.date:
        """Local calendar date of the window end."""
        return to_local_date(self.end, self.local_tz)


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_page(value: Any) -> int:
    """Return a page number >= 1; unparseable or out-of-range values become 1."""
    page = _coerce_int(value)
    if page is None or page < 1:
        return 1
    return page


def normalize_limit(value: Any, policy: WindowPolicy) -> int:
    """Clamp a requested page size into ``[1, policy.max_events]``.

    Missing or unparseable values fall back to the policy default.
    """
    limit = _coerce_int(value)
    if limit is None:
        return policy.default_limit
    return max(1, min(limit, policy.max_events))


def validate_window(
    start: Optional[str],
    end: Optional[str],
    local_tz: datetime.tzinfo,
    page: Any = None,
    limit: Any = None,
    policy: Optional[WindowPolicy] = None,
) -> QueryWindow:
    """Parse and bounds-check a query window.

    Args:
        start: ISO-8601 window start (naive values are local to ``local_tz``)
        end: ISO-8601 window end
        local_tz: Timezone used for naive inputs and local-date conversion
        page: Requested page (clamped, never rejected)
        limit: Requested page size (clamped, never rejected)
        policy: Span and size bounds (defaults to the unified timeline policy)

    Returns:
        Validated QueryWindow

    Raises:
        InvalidWindowError: If start/end is missing or unparseable, or start > end
        WindowTooLargeError: If the span exceeds ``policy.max_span_days``
    """
    policy = policy or WindowPolicy.unified()

    if not start or not end:
        raise InvalidWindowError("start and end are required.")

    try:
        start_at = parse_instant(start, local_tz)
        end_at = parse_instant(end, local_tz)
    except (ValueError, OverflowError) as exc:
        logger.debug("Rejecting unparseable window start=%r end=%r: %s", start, end, exc)
        raise InvalidWindowError("start and end must be valid ISO dates.") from exc

    if start_at > end_at:
        raise InvalidWindowError("start must be before end.")

    if end_at - start_at > datetime.timedelta(days=policy.max_span_days):
        raise WindowTooLargeError(f"Date range cannot exceed {policy.max_span_days} days.")

    normalized_page = normalize_page(page)
    normalized_limit = normalize_limit(limit, policy)

    return QueryWindow(
        start=start_at,
        end=end_at,
        page=normalized_page,
        limit=normalized_limit,
        offset=(normalized_page - 1) * normalized_limit,
        local_tz=local_tz,
        max_events=policy.max_events,
    )
