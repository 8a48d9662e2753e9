"""Timezone resolution and instant/local-date conversion utilities for orgcal_lite.

Two distinct temporal types flow through the engine:

- instants: timezone-aware ``datetime.datetime`` values (``start_at``/``end_at``)
- local calendar dates: ``datetime.date`` values used by recurrence expansion

The helpers here are the only place the two are converted into each other.
"""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache
from typing import ClassVar

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

# Default local timezone used when neither the request nor the environment supplies one
DEFAULT_LOCAL_TIMEZONE = "America/Los_Angeles"


class TimezoneResolver:
    """Resolves configured and requested timezone names to IANA identifiers."""

    # Timezone aliases mapping (obsolete/deprecated IANA names to current names)
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Zulu": "UTC",
        "PST8PDT": "America/Los_Angeles",
        "MST7MDT": "America/Denver",
        "CST6CDT": "America/Chicago",
        "EST5EDT": "America/New_York",
    }

    def resolve_alias(self, tz_name: str) -> str:
        """Resolve an alias to its canonical IANA identifier (unchanged if not an alias)."""
        return self.TZ_ALIAS_MAP.get(tz_name, tz_name)

    def normalize(self, tz_name: str | None) -> str | None:
        """Return the canonical IANA identifier for ``tz_name`` or None if it is not valid."""
        if not tz_name:
            return None

        resolved = self.resolve_alias(tz_name.strip())
        try:
            zoneinfo.ZoneInfo(resolved)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r", tz_name)
            return None
        return resolved


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the ORGCAL_TEST_TIME environment variable
        (ISO 8601, e.g. "2026-03-02T08:00:00-08:00").
        """
        test_time = os.environ.get("ORGCAL_TEST_TIME")
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                return dt.replace(tzinfo=datetime.UTC)
            except ValueError as e:
                logger.warning("Failed to parse ORGCAL_TEST_TIME=%r: %s", test_time, e)

        return datetime.datetime.now(datetime.UTC)


_resolver = TimezoneResolver()
_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def normalize_timezone_name(tz_name: str | None) -> str | None:
    """Normalize a timezone string to a canonical IANA identifier, or None if invalid."""
    return _resolver.normalize(tz_name)


def get_default_timezone(fallback: str = DEFAULT_LOCAL_TIMEZONE) -> str:
    """Get the configured local timezone from the environment with validation.

    Reads ORGCAL_DEFAULT_TIMEZONE and falls back to ``fallback`` when it is unset
    or not a valid IANA identifier.
    """
    configured = os.environ.get("ORGCAL_DEFAULT_TIMEZONE", fallback)
    normalized = normalize_timezone_name(configured)
    if normalized is None:
        logger.warning("Invalid timezone %r, falling back to %r", configured, fallback)
        return fallback
    return normalized


@lru_cache(maxsize=32)
def get_zone(tz_name: str) -> datetime.tzinfo:
    """Return a tzinfo for an IANA name (``UTC`` maps to ``datetime.UTC``).

    Raises:
        zoneinfo.ZoneInfoNotFoundError: If the identifier is unknown
    """
    if tz_name == "UTC":
        return datetime.UTC
    return zoneinfo.ZoneInfo(tz_name)


def parse_instant(value: str, local_tz: datetime.tzinfo) -> datetime.datetime:
    """Parse an ISO-8601 string into an aware instant.

    Naive values, including bare ``YYYY-MM-DD`` dates, are interpreted as wall-clock
    time in ``local_tz``, never as UTC midnight.

    Raises:
        ValueError: If the string is not a valid ISO-8601 date/datetime
    """
    dt = date_parser.isoparse(value.strip())
    if dt.tzinfo is None:
        return dt.replace(tzinfo=local_tz)
    return dt


def ensure_aware(dt: datetime.datetime) -> datetime.datetime:
    """Treat naive storage datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.UTC)
    return dt


def to_local_date(dt: datetime.datetime, local_tz: datetime.tzinfo) -> datetime.date:
    """Return the calendar date of instant ``dt`` as observed in ``local_tz``."""
    return ensure_aware(dt).astimezone(local_tz).date()


def combine_local(
    day: datetime.date, wall_time: datetime.time, local_tz: datetime.tzinfo
) -> datetime.datetime:
    """Combine a local date and wall-clock time into an aware instant in ``local_tz``."""
    return datetime.datetime.combine(day, wall_time.replace(tzinfo=None), tzinfo=local_tz)


def serialize_iso_utc(dt: datetime.datetime | None) -> str | None:
    """Serialize an instant as ISO-8601 UTC with a ``Z`` suffix (millisecond precision)."""
    if dt is None:
        return None
    utc = ensure_aware(dt).astimezone(datetime.UTC)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
