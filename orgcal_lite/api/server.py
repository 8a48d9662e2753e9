"""orgcal_lite HTTP server: app assembly, serving loop and startup."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from typing import Any

from ..core.config_manager import ConfigManager, get_config_value

logger = logging.getLogger(__name__)


def _build_default_config_from_env() -> dict[str, Any]:
    """Config dict for start_server, from the ``.env`` file and ``ORGCAL_*`` variables."""
    return ConfigManager().load_full_config()


def _create_store(config: Any) -> Any:
    """Create the JSON-backed store named by ``data_file`` (in-memory when unset)."""
    from orgcal_lite.storage.memory_store import JsonCalendarStore

    data_file = get_config_value(config, "data_file")
    store = JsonCalendarStore(data_file)
    if data_file:
        logger.info("Using calendar data file %s", data_file)
    else:
        logger.warning("No data file configured; calendar data will not survive restarts")
    return store


def _make_app(config: Any, store: Any, sync_client: Any) -> Any:
    """Create the aiohttp web application with all routes and middleware.

    Args:
        config: Application configuration (dict or attribute object)
        store: CalendarStore implementation
        sync_client: CalendarSyncClient implementation

    Returns:
        Configured ``aiohttp.web.Application``
    """
    from aiohttp import web

    from orgcal_lite.api.middleware import correlation_id_middleware, error_middleware
    from orgcal_lite.api.routes import (
        register_event_routes,
        register_health_routes,
        register_timeline_routes,
    )
    from orgcal_lite.core.dependencies import DependencyContainer

    deps = DependencyContainer.build_dependencies(config, store, sync_client)

    # Correlation ID runs first so error logs carry the request id
    app = web.Application(middlewares=[correlation_id_middleware, error_middleware])

    register_timeline_routes(app, deps)
    register_event_routes(app, deps)
    register_health_routes(app, deps)

    async def _close_sync_client(_app: Any) -> None:
        try:
            await sync_client.close()
        except Exception as e:
            logger.warning("Error closing sync client: %s", e)

    app.on_cleanup.append(_close_sync_client)
    logger.debug(
        "Web application created (timezone=%s, max_events=%d, max_range_days=%d)",
        deps.default_timezone,
        deps.max_events,
        deps.max_range_days,
    )
    return app


async def _serve(config: Any, external_stop_event: asyncio.Event | None = None) -> None:
    """Serve the timeline API until a stop is requested.

    Passing ``external_stop_event`` hands shutdown control to the caller and skips
    SIGINT/SIGTERM handler installation.
    """
    from aiohttp import web

    from orgcal_lite.storage.sync_client import build_sync_client

    stop_event = external_stop_event or asyncio.Event()

    store = _create_store(config)
    sync_client = build_sync_client(get_config_value(config, "sync_url"))
    app = _make_app(config, store, sync_client)

    runner = web.AppRunner(app)
    await runner.setup()

    host = get_config_value(config, "server_bind", "0.0.0.0")  # nosec: B104 - default bind for dev; allow override via config/env
    port = int(get_config_value(config, "server_port", 8080))
    site = web.TCPSite(runner, host=host, port=port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", host, port)
        await runner.cleanup()
        raise

    logger.info("Server started successfully on %s:%d (pid %d)", host, port, os.getpid())

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)
    else:
        logger.debug("Using external stop event - skipping signal handler registration")

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: Any) -> None:
    """Configure logging and run the timeline API server in a fresh event loop.

    Args:
        config: dict or attribute object with keys:
            - server_bind: host to bind (str)
            - server_port: port (int)
            - data_file: JSON calendar data file (str, optional)
            - default_timezone: IANA zone for naive inputs and class schedules
            - adapter_timeout_seconds: per-source timeout (float, default 10)
            - max_events: page size cap and truncation threshold (int, default 2000)
            - max_range_days: unified timeline window cap (int, default 400)
            - sync_url: downstream sync endpoint (str, optional)
            - identity_header: header carrying the authenticated user id
            - debug_logging: enable debug logging for orgcal_lite (bool)

    Blocks until SIGINT or SIGTERM.
    """
    from orgcal_lite.lite_logging import configure_lite_logging

    debug_mode = bool(get_config_value(config, "debug_logging", False))
    configure_lite_logging(debug_mode=debug_mode)
    logger.info("Logging configuration applied: debug_mode=%s", debug_mode)

    try:
        logger.debug("Running asyncio event loop for server")
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception:
        logger.exception("Server terminated unexpectedly")
        raise
