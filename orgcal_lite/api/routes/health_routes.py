"""Health route for orgcal_lite."""

from __future__ import annotations

import logging
from typing import Any

from ...core.timezone_utils import serialize_iso_utc
from ...lite_logging import get_logging_status

logger = logging.getLogger(__name__)


def register_health_routes(app: Any, deps: Any) -> None:
    """Register the health check route.

    Args:
        app: aiohttp web application
        deps: AppDependencies container
    """
    from aiohttp import web

    async def health_check(_request: Any) -> Any:
        """Health check endpoint for monitoring system status."""
        now_iso = serialize_iso_utc(deps.time_provider())
        health_status = deps.health_tracker.get_health_status(now_iso)
        diag = deps.get_system_diagnostics()

        health_data = {
            "status": health_status.status,
            "server_time_iso": health_status.server_time_iso,
            "server_status": {
                "uptime_s": health_status.uptime_seconds,
                "pid": health_status.pid,
            },
            "timeline_status": {
                "requests": health_status.timeline_requests,
                "deleted_events": health_status.deleted_event_count,
                "default_timezone": deps.default_timezone,
                "events_recurrence_column": deps.capabilities.events_recurrence_column,
            },
            "sources": health_status.sources,
            "adapter_calls": deps.aggregator.orchestrator.get_health_stats(),
            "sync": {
                "endpoint_configured": bool(deps.get_config_value(deps.config, "sync_url")),
            },
            "logging": get_logging_status(),
            "system_diagnostics": {
                "platform": diag.platform,
                "python_version": diag.python_version,
                "event_loop_running": diag.event_loop_running,
            },
        }

        # Degraded still answers; monitors key off the status code
        http_status = 200 if health_status.status == "ok" else 503
        return web.json_response(health_data, status=http_status)

    app.router.add_get("/api/health", health_check)
