"""Health tracking and monitoring for the orgcal_lite server."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

# An adapter that failed within this many seconds marks the service as degraded
DEGRADED_WINDOW_SECONDS = 900


@dataclass
class SourceHealth:
    """Rolling health counters for a single timeline source."""

    successes: int = 0
    failures: int = 0
    last_failure_at: Optional[float] = None
    last_failure_message: Optional[str] = None
    last_success_at: Optional[float] = None


@dataclass
class HealthStatus:
    """Health status information for the server."""

    status: str  # "ok" or "degraded"
    server_time_iso: str
    uptime_seconds: int
    pid: int
    timeline_requests: int
    deleted_event_count: int
    sources: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class SystemDiagnostics:
    """System diagnostics information."""

    platform: str
    python_version: str
    event_loop_running: bool


class HealthTracker:
    """Thread-safe health tracking for server monitoring."""

    def __init__(self) -> None:
        """Initialize health tracker with default values."""
        self._lock = threading.Lock()
        self._start_time: float = time.time()
        self._timeline_requests = 0
        self._deleted_event_count = 0
        self._sources: dict[str, SourceHealth] = {}

    def record_timeline_request(self) -> None:
        """Record that a timeline read was served."""
        with self._lock:
            self._timeline_requests += 1

    def record_adapter_success(self, source: str) -> None:
        """Record a successful adapter fetch.

        Args:
            source: Source key (events, schedules, feeds, classes)
        """
        with self._lock:
            health = self._sources.setdefault(source, SourceHealth())
            health.successes += 1
            health.last_success_at = time.time()

    def record_adapter_failure(self, source: str, message: str) -> None:
        """Record a recovered adapter failure.

        Args:
            source: Source key (events, schedules, feeds, classes)
            message: Short description of the failure
        """
        with self._lock:
            health = self._sources.setdefault(source, SourceHealth())
            health.failures += 1
            health.last_failure_at = time.time()
            health.last_failure_message = message

    def record_deletion(self, deleted_count: int) -> None:
        """Record rows soft-deleted by a series deletion."""
        with self._lock:
            self._deleted_event_count += deleted_count

    def get_uptime_seconds(self) -> int:
        """Get server uptime in seconds since tracker initialization."""
        return int(time.time() - self._start_time)

    def determine_overall_status(self) -> str:
        """Determine overall health status.

        Returns:
            "degraded" if any source's latest result is a recent failure, else "ok"
        """
        now = time.time()
        with self._lock:
            for health in self._sources.values():
                if health.last_failure_at is None:
                    continue
                recent = now - health.last_failure_at <= DEGRADED_WINDOW_SECONDS
                recovered = (
                    health.last_success_at is not None
                    and health.last_success_at > health.last_failure_at
                )
                if recent and not recovered:
                    return "degraded"
        return "ok"

    def get_source_snapshot(self) -> dict[str, dict[str, Any]]:
        """Return a JSON-friendly copy of the per-source counters."""
        now = time.time()
        with self._lock:
            return {
                source: {
                    "successes": health.successes,
                    "failures": health.failures,
                    "last_failure_age_s": (
                        None
                        if health.last_failure_at is None
                        else int(now - health.last_failure_at)
                    ),
                    "last_failure_message": health.last_failure_message,
                }
                for source, health in self._sources.items()
            }

    def get_health_status(self, current_time_iso: str) -> HealthStatus:
        """Get comprehensive health status.

        Args:
            current_time_iso: Current time in ISO format
        """
        with self._lock:
            timeline_requests = self._timeline_requests
            deleted_event_count = self._deleted_event_count

        return HealthStatus(
            status=self.determine_overall_status(),
            server_time_iso=current_time_iso,
            uptime_seconds=self.get_uptime_seconds(),
            pid=os.getpid(),
            timeline_requests=timeline_requests,
            deleted_event_count=deleted_event_count,
            sources=self.get_source_snapshot(),
        )


def get_system_diagnostics() -> SystemDiagnostics:
    """Get system diagnostics information."""
    import asyncio
    import platform
    import sys

    event_loop_running = False
    try:
        asyncio.get_running_loop()
        event_loop_running = True
    except RuntimeError:
        pass

    return SystemDiagnostics(
        platform=platform.platform(),
        python_version=sys.version.split()[0],
        event_loop_running=event_loop_running,
    )
