"""Tests for orgcal_lite.core.health_tracker."""

import pytest

from orgcal_lite.core import health_tracker as health_module
from orgcal_lite.core.health_tracker import HealthTracker, get_system_diagnostics

pytestmark = pytest.mark.unit


def test_health_status_when_fresh_tracker_then_ok() -> None:
    tracker = HealthTracker()

    status = tracker.get_health_status("2026-03-02T00:00:00.000Z")

    assert status.status == "ok"
    assert status.timeline_requests == 0
    assert status.deleted_event_count == 0
    assert status.sources == {}


def test_health_status_when_recent_adapter_failure_then_degraded() -> None:
    tracker = HealthTracker()
    tracker.record_adapter_success("events")
    tracker.record_adapter_failure("feeds", "TimeoutError")

    assert tracker.determine_overall_status() == "degraded"
    snapshot = tracker.get_source_snapshot()
    assert snapshot["feeds"]["failures"] == 1
    assert snapshot["feeds"]["last_failure_message"] == "TimeoutError"
    assert snapshot["events"]["last_failure_age_s"] is None


def test_health_status_when_source_recovers_then_ok() -> None:
    tracker = HealthTracker()
    tracker.record_adapter_failure("feeds", "boom")
    tracker.record_adapter_success("feeds")
    feeds = tracker._sources["feeds"]
    feeds.last_success_at = feeds.last_failure_at + 1

    assert tracker.determine_overall_status() == "ok"


def test_health_status_when_failure_is_old_then_ok() -> None:
    tracker = HealthTracker()
    tracker.record_adapter_failure("classes", "boom")
    tracker._sources["classes"].last_failure_at -= health_module.DEGRADED_WINDOW_SECONDS + 1

    assert tracker.determine_overall_status() == "ok"


def test_counters_when_recorded_then_reported() -> None:
    tracker = HealthTracker()
    tracker.record_timeline_request()
    tracker.record_timeline_request()
    tracker.record_deletion(5)

    status = tracker.get_health_status("now")

    assert status.timeline_requests == 2
    assert status.deleted_event_count == 5


def test_get_system_diagnostics_when_no_loop_then_reports_platform() -> None:
    diag = get_system_diagnostics()

    assert diag.python_version
    assert diag.event_loop_running is False
