"""Shared test configuration for the orgcal_lite test suite."""

from collections.abc import Generator
from typing import Any

import pytest

_ORGCAL_ENV_VARS = (
    "ORGCAL_TEST_TIME",
    "ORGCAL_DEFAULT_TIMEZONE",
    "ORGCAL_WEB_HOST",
    "ORGCAL_WEB_PORT",
    "ORGCAL_DATA_FILE",
    "ORGCAL_ADAPTER_TIMEOUT",
    "ORGCAL_MAX_EVENTS",
    "ORGCAL_MAX_RANGE_DAYS",
    "ORGCAL_SYNC_URL",
    "ORGCAL_IDENTITY_HEADER",
    "ORGCAL_LOG_LEVEL",
    "ORGCAL_DEBUG",
    "ORGCAL_EVENTS_RECURRENCE",
)


@pytest.fixture(autouse=True)
def clean_orgcal_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure ORGCAL_* environment variables never leak between tests."""
    for name in _ORGCAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
