import datetime
import zoneinfo
from typing import Any, Callable

import pytest

from orgcal_lite.domain.models import Membership
from orgcal_lite.domain.window import QueryWindow, WindowPolicy, validate_window
from orgcal_lite.storage.memory_store import JsonCalendarStore

ORG_ID = "org-1"
USER_ID = "user-1"


@pytest.fixture
def test_timezone() -> str:
    """Return a deterministic timezone identifier for tests.

    Using a fixed timezone string avoids host-local timezone differences
    which can make datetime-sensitive tests flaky.
    """
    return "America/Los_Angeles"


@pytest.fixture
def local_tz(test_timezone: str) -> datetime.tzinfo:
    return zoneinfo.ZoneInfo(test_timezone)


@pytest.fixture
def store() -> JsonCalendarStore:
    """In-memory store with user-1 as an active member of org-1."""
    calendar_store = JsonCalendarStore()
    calendar_store.add_membership(Membership(user_id=USER_ID, organization_id=ORG_ID))
    return calendar_store


@pytest.fixture
def make_window(local_tz: datetime.tzinfo) -> Callable[..., QueryWindow]:
    """Factory building validated windows from ISO strings."""

    def _make(
        start: str,
        end: str,
        page: Any = None,
        limit: Any = None,
        policy: WindowPolicy | None = None,
        tz: datetime.tzinfo | None = None,
    ) -> QueryWindow:
        return validate_window(start, end, tz or local_tz, page=page, limit=limit, policy=policy)

    return _make


@pytest.fixture
def utc_window() -> Callable[..., QueryWindow]:
    """Factory for windows interpreted in UTC."""

    def _make(start: str, end: str, page: Any = None, limit: Any = None) -> QueryWindow:
        return validate_window(start, end, datetime.UTC, page=page, limit=limit)

    return _make
