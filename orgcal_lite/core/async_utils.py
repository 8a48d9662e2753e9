"""Timeout-bounded concurrent execution for the timeline source fan-out.

Each adapter call runs as its own task with its own deadline, so one stuck source
cannot hold up or cancel the rest:

    orchestrator = AsyncOrchestrator(default_timeout=10.0)
    results = await orchestrator.gather_each_with_timeout(
        [events.fetch(...), feeds.fetch(...)], timeout=5.0, labels=["events", "feeds"]
    )
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNLABELLED = "unlabelled"


class AsyncOrchestratorError(Exception):
    """Base exception for AsyncOrchestrator errors."""


class AsyncTimeoutError(AsyncOrchestratorError):
    """An awaited operation ran past its deadline."""


class AsyncOrchestrator:
    """Runs awaitables under deadlines and keeps call/failure counters per label."""

    def __init__(
        self,
        default_timeout: float = 30.0,
        enable_health_tracking: bool = True,
    ):
        self.default_timeout = default_timeout
        self.enable_health_tracking = enable_health_tracking

        self._operation_count = 0
        self._error_count = 0
        self._timeout_count = 0
        self._last_error_time: Optional[float] = None
        self._by_label: dict[str, dict[str, int]] = {}

        logger.debug(
            "AsyncOrchestrator ready: default_timeout=%.1fs, health_tracking=%s",
            default_timeout,
            enable_health_tracking,
        )

    def _record(self, label: str, outcome: str) -> None:
        """Count one finished operation; ``outcome`` is ok, error or timeout."""
        if not self.enable_health_tracking:
            return

        self._operation_count += 1
        counters = self._by_label.setdefault(label, {"ok": 0, "error": 0, "timeout": 0})
        counters[outcome] += 1

        if outcome != "ok":
            self._error_count += 1
            self._last_error_time = time.time()
        if outcome == "timeout":
            self._timeout_count += 1

    async def run_with_timeout(
        self,
        coro: Awaitable[T],
        timeout: Optional[float] = None,
        raise_on_timeout: bool = True,
        label: str = UNLABELLED,
        outcome_of: Optional[Callable[[T], str]] = None,
    ) -> Optional[T]:
        """Await ``coro`` for at most ``timeout`` seconds (``default_timeout`` if None).

        ``outcome_of`` classifies a returned value as ``"ok"`` or ``"error"`` for the
        per-label counters; without it any return counts as ok.

        Raises:
            AsyncTimeoutError: on timeout, unless ``raise_on_timeout`` is False in
                which case None is returned
        """
        effective_timeout = timeout if timeout is not None else self.default_timeout
        try:
            result = await asyncio.wait_for(coro, timeout=effective_timeout)
        except TimeoutError as e:
            self._record(label, "timeout")
            logger.warning("%s exceeded its %.1fs deadline", label, effective_timeout)
            if raise_on_timeout:
                raise AsyncTimeoutError(f"{label} exceeded timeout of {effective_timeout}s") from e
            return None
        except Exception:
            self._record(label, "error")
            raise

        self._record(label, outcome_of(result) if outcome_of is not None else "ok")
        return result

    async def gather_each_with_timeout(
        self,
        coroutines: Iterable[Awaitable[Any]],
        timeout: Optional[float] = None,
        labels: Optional[Sequence[str]] = None,
        outcome_of: Optional[Callable[[Any], str]] = None,
    ) -> list[Any]:
        """Run coroutines concurrently, each under its own deadline.

        Results come back in input order. A failed slot holds the exception instance
        instead of a value (``AsyncTimeoutError`` for a missed deadline); siblings
        are never cancelled.

        Args:
            coroutines: Coroutines to run
            timeout: Per-coroutine timeout in seconds (uses default if None)
            labels: Optional name per coroutine, used for logs and per-label stats
            outcome_of: Optional classifier for returned values, see ``run_with_timeout``
        """
        coros = list(coroutines)
        names = list(labels) if labels is not None else [UNLABELLED] * len(coros)
        if len(names) != len(coros):
            raise ValueError("labels must match coroutines one to one")

        tasks = [
            asyncio.create_task(
                self.run_with_timeout(coro, timeout=timeout, label=name, outcome_of=outcome_of)
            )
            for coro, name in zip(coros, names)
        ]
        return list(await asyncio.gather(*tasks, return_exceptions=True))

    def get_health_stats(self) -> dict[str, Any]:
        if not self.enable_health_tracking:
            return {"health_tracking": "disabled"}

        total = self._operation_count
        return {
            "operation_count": total,
            "error_count": self._error_count,
            "timeout_count": self._timeout_count,
            "error_rate": self._error_count / total if total else 0.0,
            "timeout_rate": self._timeout_count / total if total else 0.0,
            "last_error_time": self._last_error_time,
            "by_label": {label: dict(counters) for label, counters in self._by_label.items()},
        }
