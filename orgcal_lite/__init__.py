"""orgcal_lite - unified organization calendar timeline service.

Merges organization events, imported schedules, connected calendar feeds and
recurring class schedules into one paginated timeline, and handles
recurrence-scoped edits of event series. Imports are kept light so the package
can be inspected without pulling in the server stack.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the ORGCAL_DEBUG environment variable (truthy values: "1", "true",
    "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    debug_env = os.environ.get("ORGCAL_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure basic handler if no handlers are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        from colorlog import ColoredFormatter

        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        formatter = ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors)

        handler.setFormatter(formatter)
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the orgcal_lite server.

    Args:
        args: Optional command line arguments namespace containing --port and --data-file

    Behavior:
    - Initialize console logging early using ORGCAL_LOG_LEVEL (env) if present.
    - Build configuration from the ``.env`` file and ``ORGCAL_*`` variables.
    - Apply command line argument overrides to configuration.
    - Delegate to the server's start_server(cfg), which blocks until shutdown.
    """
    import importlib
    import logging
    import os

    _init_logging(os.environ.get("ORGCAL_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    server = importlib.import_module("orgcal_lite.api.server")
    cfg = server._build_default_config_from_env()  # noqa: SLF001

    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            cfg["server_port"] = int(port)
            logger.debug("Applied command line port override: %d", cfg["server_port"])
        data_file = getattr(args, "data_file", None)
        if data_file:
            cfg["data_file"] = data_file
            logger.debug("Applied command line data file override: %s", data_file)

    cfg_level = cfg.get("log_level")
    if isinstance(cfg_level, str):
        logger.info("Applying configured log_level=%s", cfg_level)
        logging.getLogger().setLevel(getattr(logging, cfg_level.upper(), logging.INFO))

    # Only surface a small set of config keys to avoid leaking secrets into logs.
    diagnostic_cfg = {
        k: cfg.get(k) for k in ("server_bind", "server_port", "data_file", "default_timezone")
    }
    logger.debug("Resolved configuration (diagnostic): %s", diagnostic_cfg)

    logger.info("Starting orgcal_lite server")
    server.start_server(cfg)
