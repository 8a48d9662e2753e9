"""Downstream calendar sync clients.

After a successful deletion the API notifies the sync collaborator once per
affected event. Sync is best-effort: failures are logged and never retried.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Optional

import httpx

from ..api.middleware.correlation_id import NO_REQUEST_ID, get_request_id

logger = logging.getLogger(__name__)

_SYNC_LIMITS = httpx.Limits(max_connections=8, max_keepalive_connections=4)

_SYNC_TIMEOUT = httpx.Timeout(connect=5.0, read=10.0, write=5.0, pool=10.0)

RECENT_SYNC_HISTORY = 100

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "orgcal-lite/1.0",
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def _get_headers_with_correlation_id() -> dict[str, str]:
    """Get default headers with the current request correlation ID, when there is one."""
    headers = DEFAULT_HEADERS.copy()
    request_id = get_request_id()
    if request_id != NO_REQUEST_ID:
        headers["X-Request-ID"] = request_id
    return headers


class HttpCalendarSyncClient:
    """Posts sync notifications to an HTTP endpoint using a shared httpx client."""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(limits=_SYNC_LIMITS, timeout=_SYNC_TIMEOUT)
            self._owns_client = True
        return self._client

    async def sync_event(self, payload: dict[str, Any]) -> None:
        """POST one sync notification.

        Raises:
            httpx.HTTPError: On transport errors or a non-2xx response
        """
        client = self._get_client()
        response = await client.post(
            self.url, json=payload, headers=_get_headers_with_correlation_id()
        )
        response.raise_for_status()
        logger.debug(
            "Synced %s (%s) -> %d", payload.get("id"), payload.get("operation"), response.status_code
        )

    async def close(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


class LoggingSyncClient:
    """Sync client used when no sync endpoint is configured; it only logs.

    The last ``history_size`` payloads stay inspectable in ``sent``; older ones are dropped.
    """

    def __init__(self, history_size: int = RECENT_SYNC_HISTORY) -> None:
        self.sent: deque[dict[str, Any]] = deque(maxlen=history_size)
        self.sent_count = 0

    async def sync_event(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)
        self.sent_count += 1
        logger.info(
            "Sync (no endpoint configured): %s %s in org %s",
            payload.get("operation"),
            payload.get("id"),
            payload.get("organizationId"),
        )

    async def close(self) -> None:
        return None


async def notify_changes(
    sync_client: Any, event_ids: list[str], org_id: str, operation: str
) -> int:
    """Send one sync notification per event id; return how many failed.

    Each failure is logged and skipped so one bad call never blocks the rest.
    """
    failures = 0
    for event_id in event_ids:
        payload = {"id": event_id, "organizationId": org_id, "operation": operation}
        try:
            await sync_client.sync_event(payload)
        except Exception as e:
            failures += 1
            logger.warning("Calendar sync (%s) failed for event %s: %s", operation, event_id, e)
    return failures


def build_sync_client(sync_url: Optional[str]) -> Any:
    """Return an HTTP sync client for ``sync_url``, or a logging-only client when unset."""
    if sync_url:
        logger.info("Calendar sync endpoint: %s", sync_url)
        return HttpCalendarSyncClient(sync_url)
    return LoggingSyncClient()
