"""Concurrent fan-out over the timeline source adapters."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional

from ..core.async_utils import AsyncOrchestrator, AsyncTimeoutError
from ..core.config_manager import DEFAULT_ADAPTER_TIMEOUT_SECONDS
from .adapters import AdapterResult, SourceAdapter
from .models import UnifiedEvent
from .window import QueryWindow

if TYPE_CHECKING:
    from ..core.health_tracker import HealthTracker

logger = logging.getLogger(__name__)

ALL_SOURCES: tuple[str, ...] = ("events", "schedules", "feeds", "classes")


def parse_sources_param(
    raw: Optional[str], known: Sequence[str] = ALL_SOURCES
) -> frozenset[str]:
    """Parse the comma-separated ``sources`` query parameter.

    Unknown names are ignored. A missing or blank parameter selects every source;
    a parameter naming only unknown sources selects none.
    """
    if raw is None or not raw.strip():
        return frozenset(known)
    requested = {part.strip().lower() for part in raw.split(",") if part.strip()}
    ignored = requested.difference(known)
    if ignored:
        logger.debug("Ignoring unknown sources: %s", ", ".join(sorted(ignored)))
    return frozenset(requested.intersection(known))


def _adapter_outcome(result: Any) -> str:
    """Adapters report failures as values, so classify by the returned result."""
    return "ok" if isinstance(result, AdapterResult) and result.ok else "error"


class TimelineAggregator:
    """Runs the selected adapters concurrently and joins their results."""

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        timeout: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS,
        health_tracker: Optional[HealthTracker] = None,
        orchestrator: Optional[AsyncOrchestrator] = None,
    ):
        """Initialize the aggregator.

        Args:
            adapters: Adapters in registration order (events, schedules, feeds, classes)
            timeout: Per-adapter timeout in seconds
            health_tracker: Optional tracker notified of per-source outcomes
            orchestrator: Optional AsyncOrchestrator (one is created if omitted)
        """
        self.adapters = list(adapters)
        self.timeout = timeout
        self.health_tracker = health_tracker
        self.orchestrator = orchestrator or AsyncOrchestrator(default_timeout=timeout)

    async def fetch_results(
        self,
        org_id: str,
        user_id: str,
        window: QueryWindow,
        sources: Optional[frozenset[str]] = None,
    ) -> list[AdapterResult]:
        """Run every selected adapter and return one result per adapter, in order.

        A slow or failing adapter never affects the others: timeouts and unexpected
        exceptions become failed results.
        """
        selected = [
            adapter
            for adapter in self.adapters
            if sources is None or adapter.source_key in sources
        ]
        if not selected:
            return []

        raw_results = await self.orchestrator.gather_each_with_timeout(
            [adapter.fetch(org_id, user_id, window) for adapter in selected],
            timeout=self.timeout,
            labels=[adapter.source_key for adapter in selected],
            outcome_of=_adapter_outcome,
        )

        results = [
            self._coerce_result(adapter, raw) for adapter, raw in zip(selected, raw_results)
        ]
        self._record_health(results)
        return results

    async def collect(
        self,
        org_id: str,
        user_id: str,
        window: QueryWindow,
        sources: Optional[frozenset[str]] = None,
    ) -> list[UnifiedEvent]:
        """Return the concatenated events of all successful adapters, unsorted."""
        results = await self.fetch_results(org_id, user_id, window, sources)
        events: list[UnifiedEvent] = []
        for result in results:
            events.extend(result.events)
        logger.debug(
            "Aggregated %d items from %d sources (%d failed)",
            len(events),
            len(results),
            sum(1 for result in results if not result.ok),
        )
        return events

    def _coerce_result(self, adapter: SourceAdapter, raw: Any) -> AdapterResult:
        if isinstance(raw, AdapterResult):
            return raw
        if isinstance(raw, AsyncTimeoutError):
            logger.warning("Source %s timed out after %.1fs", adapter.source_key, self.timeout)
            return AdapterResult.failure(adapter.source_key, str(raw), kind="timeout")
        if isinstance(raw, BaseException):
            logger.error(
                "Source %s raised outside its own error handling: %s",
                adapter.source_key,
                raw,
                exc_info=raw,
            )
            return AdapterResult.failure(adapter.source_key, f"{type(raw).__name__}: {raw}")
        logger.error("Source %s returned unexpected %s", adapter.source_key, type(raw).__name__)
        return AdapterResult.failure(adapter.source_key, "unexpected adapter result")

    def _record_health(self, results: Sequence[AdapterResult]) -> None:
        if self.health_tracker is None:
            return
        for result in results:
            if result.error is None:
                self.health_tracker.record_adapter_success(result.source)
            else:
                self.health_tracker.record_adapter_failure(result.source, result.error.message)
