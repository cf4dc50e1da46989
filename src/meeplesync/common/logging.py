"""Shared logging helpers for meeplesync."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "MEEPLESYNC_LOG_LEVEL"

# one INFO line per BGG batch request is too chatty next to progress output
_QUIET_LOGGERS = ("httpx", "httpcore", "hishel")


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger for CLI and server output.

    Without an explicit ``level`` the ``MEEPLESYNC_LOG_LEVEL`` environment
    variable is honoured (a level name such as ``DEBUG``), falling back to INFO.
    HTTP client libraries are held at WARNING unless DEBUG is requested.
    """

    if level is None:
        name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
        resolved = logging.getLevelName(name) if name else logging.INFO
        level = resolved if isinstance(resolved, int) else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    quiet_level = level if level <= logging.DEBUG else logging.WARNING
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
