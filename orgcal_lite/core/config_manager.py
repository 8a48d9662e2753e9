"""Configuration for the orgcal_lite server: a ``.env`` file plus ``ORGCAL_*`` variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from a .env file.

    Blank lines, ``#`` comments and lines without ``=`` are skipped; surrounding
    quotes are stripped from values. A missing or unreadable file yields ``{}``.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    result: dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = (part.strip() for part in line.split("=", 1))
        if key:
            result[key] = val.strip('"').strip("'")
    return result


# Hard ceiling on events returned by the unified timeline (also the default page size)
MAX_EVENTS = 2000
# Maximum window span accepted by the unified timeline
MAX_DATE_RANGE_DAYS = 400
# Narrower member-events variant (feeds + schedules only)
MEMBER_EVENTS_MAX_RANGE_DAYS = 365
MEMBER_EVENTS_DEFAULT_LIMIT = 200
# Per-adapter timeout budget
DEFAULT_ADAPTER_TIMEOUT_SECONDS = 10.0
# Header carrying the caller identity set by the upstream auth proxy
DEFAULT_IDENTITY_HEADER = "X-User-Id"

_TRUTHY = ("1", "true", "yes", "on")


def _positive(cast: Callable[[str], Any]) -> Callable[[str], Any]:
    def parse(raw: str) -> Any:
        value = cast(raw)
        if value <= 0:
            raise ValueError("must be positive")
        return value

    return parse


def _flag(raw: str) -> bool:
    return raw.lower() in _TRUTHY


# env var -> (config key, parser); a parser raising ValueError drops the entry
ENV_MAPPING: dict[str, tuple[str, Callable[[str], Any]]] = {
    "ORGCAL_WEB_HOST": ("server_bind", str),
    "ORGCAL_WEB_PORT": ("server_port", int),
    "ORGCAL_DATA_FILE": ("data_file", str),
    "ORGCAL_DEFAULT_TIMEZONE": ("default_timezone", str),
    "ORGCAL_ADAPTER_TIMEOUT": ("adapter_timeout_seconds", _positive(float)),
    "ORGCAL_MAX_EVENTS": ("max_events", _positive(int)),
    "ORGCAL_MAX_RANGE_DAYS": ("max_range_days", _positive(int)),
    "ORGCAL_SYNC_URL": ("sync_url", str),
    "ORGCAL_IDENTITY_HEADER": ("identity_header", str),
    "ORGCAL_LOG_LEVEL": ("log_level", str.upper),
    "ORGCAL_EVENTS_RECURRENCE": ("events_recurrence_column", _flag),
}


class ConfigManager:
    """Loads orgcal_lite settings; real environment variables beat ``.env`` defaults."""

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Copy .env entries into ``os.environ`` where not already set; return the keys copied."""
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build the start_server config dict from the ``ENV_MAPPING`` variables.

        ``ORGCAL_DEBUG`` only ever switches ``debug_logging`` on.
        """
        cfg: dict[str, Any] = {}

        for env_name, (key, parse) in ENV_MAPPING.items():
            raw = os.environ.get(env_name)
            if not raw:
                continue
            try:
                cfg[key] = parse(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        if _flag(os.environ.get("ORGCAL_DEBUG", "")):
            cfg["debug_logging"] = True

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load the .env file, then build configuration from the environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Look up ``key`` on a config dict or attribute-style config object."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
