"""
Logging configuration for processes embedding the search core.

Components only call ``logging.getLogger(__name__)``; the host process
decides whether to call :func:`setup_logging`.
"""

from __future__ import annotations

import logging
import logging.config
import os


def _debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "info").lower() == "debug"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure console logging. ``level`` overrides ``LOG_LEVEL``."""
    debug_mode = _debug_mode() if level is None else level.lower() == "debug"
    if level is not None and not debug_mode:
        loglevel = logging.getLevelName(level.upper())
        if not isinstance(loglevel, int):
            loglevel = logging.INFO
    else:
        loglevel = logging.DEBUG if debug_mode else logging.INFO

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "semsearch": {
                "handlers": ["console"],
                "level": loglevel,
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(logging_config)

    # Suppress httpx request logs unless in debug mode
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return logging.getLogger("semsearch")
