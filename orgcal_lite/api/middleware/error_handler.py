"""Error middleware mapping engine exceptions to JSON responses."""

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from orgcal_lite.domain.exceptions import InternalError, OrgCalError

logger = logging.getLogger(__name__)


@web.middleware
async def error_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Translate raised errors into ``{"error", "message"}`` JSON bodies.

    ``OrgCalError`` subclasses carry their own status code. aiohttp HTTP
    exceptions (404 for unknown routes, 405, ...) pass through untouched; any
    other exception is logged and reported as a 500.
    """
    try:
        return await handler(request)
    except OrgCalError as e:
        if e.http_status >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.path, e.message, e.code)
        else:
            logger.debug("%s %s rejected: %s (%s)", request.method, request.path, e.message, e.code)
        return web.json_response(e.to_dict(), status=e.http_status)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error serving %s %s", request.method, request.path)
        error = InternalError("Internal server error.")
        return web.json_response(error.to_dict(), status=error.http_status)
