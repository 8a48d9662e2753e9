"""Timeline read routes for orgcal_lite."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...core.timezone_utils import get_zone, normalize_timezone_name
from ...domain.aggregator import parse_sources_param
from ...domain.exceptions import InvalidRequestError
from ...domain.pagination import paginate
from ...domain.window import WindowPolicy, validate_window
from ..middleware.identity import require_active_membership, require_user_id

logger = logging.getLogger(__name__)


def resolve_request_timezone(tz_param: Optional[str], default_timezone: str) -> Any:
    """Return the tzinfo for the optional ``tz`` query parameter.

    Raises:
        InvalidRequestError: If ``tz`` is given but not a known IANA zone
    """
    if tz_param is None or not tz_param.strip():
        return get_zone(default_timezone)
    normalized = normalize_timezone_name(tz_param)
    if normalized is None:
        raise InvalidRequestError(f"Unknown timezone: {tz_param}")
    return get_zone(normalized)


def register_timeline_routes(app: Any, deps: Any) -> None:
    """Register the unified timeline and member events routes.

    Args:
        app: aiohttp web application
        deps: AppDependencies container
    """
    from aiohttp import web

    unified_policy = WindowPolicy.unified(
        max_span_days=deps.max_range_days, max_events=deps.max_events
    )
    member_policy = WindowPolicy.member_events(max_events=deps.max_events)

    async def _read_timeline(
        request: Any,
        org_param_names: tuple[str, ...],
        aggregator: Any,
        policy: WindowPolicy,
        sources: Any,
    ) -> Any:
        user_id = require_user_id(request, deps.identity_header)
        query = request.query

        org_id = next((query[name] for name in org_param_names if query.get(name)), None)
        start = query.get("start")
        end = query.get("end")
        if not org_id or not start or not end:
            raise InvalidRequestError(f"{org_param_names[0]}, start, and end are required.")

        await require_active_membership(deps.store, user_id, org_id)

        local_tz = resolve_request_timezone(query.get("tz"), deps.default_timezone)
        window = validate_window(
            start,
            end,
            local_tz,
            page=query.get("page"),
            limit=query.get("limit"),
            policy=policy,
        )

        events = await aggregator.collect(org_id, user_id, window, sources)
        timeline_page = paginate(events, window)
        deps.health_tracker.record_timeline_request()

        logger.debug(
            "Timeline org=%s page=%d limit=%d -> %d of %d",
            org_id,
            window.page,
            window.limit,
            timeline_page.meta.count,
            timeline_page.meta.total,
        )
        return web.json_response(timeline_page.to_api_dict())

    async def unified_events(request: Any) -> Any:
        """Merged timeline of events, schedules, feeds and classes for one organization."""
        sources = parse_sources_param(request.query.get("sources"))
        return await _read_timeline(request, ("orgId",), deps.aggregator, unified_policy, sources)

    async def member_events(request: Any) -> Any:
        """Feed and schedule events visible to a member, with a narrower window."""
        return await _read_timeline(
            request, ("organizationId", "orgId"), deps.member_aggregator, member_policy, None
        )

    app.router.add_get("/api/calendar/unified-events", unified_events)
    app.router.add_get("/api/calendar/events", member_events)
