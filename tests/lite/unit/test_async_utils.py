"""Tests for orgcal_lite.core.async_utils.AsyncOrchestrator."""

import asyncio

import pytest

from orgcal_lite.core.async_utils import AsyncOrchestrator, AsyncTimeoutError

pytestmark = pytest.mark.unit


async def _value(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _boom():
    raise ValueError("boom")


@pytest.mark.asyncio
async def test_run_with_timeout_when_fast_then_result() -> None:
    orchestrator = AsyncOrchestrator(default_timeout=1.0)

    assert await orchestrator.run_with_timeout(_value(42)) == 42


@pytest.mark.asyncio
async def test_run_with_timeout_when_slow_then_async_timeout_error() -> None:
    orchestrator = AsyncOrchestrator()

    with pytest.raises(AsyncTimeoutError):
        await orchestrator.run_with_timeout(_value(1, delay=1.0), timeout=0.01)


@pytest.mark.asyncio
async def test_run_with_timeout_when_not_raising_then_none() -> None:
    orchestrator = AsyncOrchestrator()

    assert await orchestrator.run_with_timeout(_value(1, delay=1.0), timeout=0.01, raise_on_timeout=False) is None


@pytest.mark.asyncio
async def test_gather_each_with_timeout_when_mixed_then_results_in_order() -> None:
    orchestrator = AsyncOrchestrator()

    results = await orchestrator.gather_each_with_timeout(
        [_value("a"), _boom(), _value("c", delay=1.0), _value("d")], timeout=0.05
    )

    assert results[0] == "a"
    assert isinstance(results[1], ValueError)
    assert isinstance(results[2], AsyncTimeoutError)
    assert results[3] == "d"

    stats = orchestrator.get_health_stats()
    assert stats["timeout_count"] == 1
    assert stats["error_count"] == 2
    assert stats["operation_count"] == 4


def test_get_health_stats_when_tracking_disabled_then_marker() -> None:
    orchestrator = AsyncOrchestrator(enable_health_tracking=False)

    assert orchestrator.get_health_stats() == {"health_tracking": "disabled"}


@pytest.mark.asyncio
async def test_gather_each_with_timeout_when_labelled_then_stats_per_label() -> None:
    orchestrator = AsyncOrchestrator()

    await orchestrator.gather_each_with_timeout(
        [_value(1), _value(2, delay=1.0)], timeout=0.05, labels=["events", "feeds"]
    )

    by_label = orchestrator.get_health_stats()["by_label"]
    assert by_label["events"] == {"ok": 1, "error": 0, "timeout": 0}
    assert by_label["feeds"] == {"ok": 0, "error": 0, "timeout": 1}


@pytest.mark.asyncio
async def test_gather_each_with_timeout_when_labels_mismatch_then_value_error() -> None:
    orchestrator = AsyncOrchestrator()
    coro = _value(1)

    with pytest.raises(ValueError):
        await orchestrator.gather_each_with_timeout([coro], labels=["a", "b"])
    coro.close()


@pytest.mark.asyncio
async def test_run_with_timeout_when_outcome_classifier_given_then_result_counted_as_error() -> None:
    orchestrator = AsyncOrchestrator()

    result = await orchestrator.run_with_timeout(
        _value({"ok": False}), timeout=1.0, label="feeds", outcome_of=lambda r: "ok" if r["ok"] else "error"
    )

    assert result == {"ok": False}
    assert orchestrator.get_health_stats()["by_label"]["feeds"] == {"ok": 0, "error": 1, "timeout": 0}
