"""Per-request correlation IDs.

One ID ties together the log lines of a timeline request, its adapter tasks
and any sync notifications sent to the push-sync endpoint on its behalf.
"""

import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

from aiohttp import web

NO_REQUEST_ID = "no-request-id"

# Checked in order; the first one the client sent wins
INBOUND_HEADERS = ("X-Request-ID", "X-Correlation-ID")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

CORRELATION_ID_KEY = web.RequestKey("correlation_id", str)


@web.middleware
async def correlation_id_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Adopt the client's request ID (or mint a UUID) and echo it as ``X-Request-ID``."""
    correlation_id = next(
        (request.headers[name] for name in INBOUND_HEADERS if request.headers.get(name)),
        None,
    ) or str(uuid.uuid4())

    token = request_id_var.set(correlation_id)
    request[CORRELATION_ID_KEY] = correlation_id
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = correlation_id
    return response


def get_request_id() -> str:
    """Return the current request's correlation ID, or ``NO_REQUEST_ID`` outside one."""
    return request_id_var.get() or NO_REQUEST_ID
