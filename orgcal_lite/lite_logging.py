"""
Logging levels for orgcal_lite and the libraries it drives.

The timeline engine keeps its own diagnostics while aiohttp and httpx stay quiet,
and every record carries the request correlation ID as ``request_id``.
"""

import logging
import os
from typing import Optional

from .api.middleware.correlation_id import get_request_id

# Libraries whose chatter is capped regardless of debug mode
LIBRARY_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

PACKAGE_LOGGERS = ("orgcal_lite", "orgcal_lite.api", "orgcal_lite.domain", "orgcal_lite.storage")

_TRUTHY = ("1", "true", "yes")


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.request_id`` so formatters can include it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def _attach_correlation_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
        handler.addFilter(CorrelationIdFilter())


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Apply orgcal_lite logger levels.

    Args:
        debug_mode: Whether to enable debug logging for orgcal_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ORGCAL_DEBUG: '1', 'true' or 'yes' turns debug on unless force_debug is given
        ORGCAL_LOG_LEVEL: Override the root level (DEBUG, INFO, WARNING, ERROR)
    """
    if force_debug is not None:
        debug = force_debug
    else:
        debug = debug_mode or os.getenv("ORGCAL_DEBUG", "").lower() in _TRUTHY

    package_level = logging.DEBUG if debug else logging.INFO
    root_level = package_level
    env_log_level = os.getenv("ORGCAL_LOG_LEVEL", "").upper()
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Keep a colorized handler from run_server if one is already installed
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)
    for handler in root_logger.handlers:
        _attach_correlation_filter(handler)

    for logger_name, level in LIBRARY_LEVELS.items():
        logging.getLogger(logger_name).setLevel(level)
    for logger_name in PACKAGE_LOGGERS:
        logging.getLogger(logger_name).setLevel(package_level)

    root_logger.info(
        "orgcal_lite logging configured (package=%s, root=%s)",
        logging.getLevelName(package_level),
        logging.getLevelName(root_level),
    )


def get_logging_status() -> dict[str, str]:
    """Map the root, package and capped library loggers to their current level names."""
    names = ("orgcal_lite", *LIBRARY_LEVELS)
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    status.update({name: logging.getLevelName(logging.getLogger(name).level) for name in names})
    return status
