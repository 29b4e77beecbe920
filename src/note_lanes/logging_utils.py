from __future__ import annotations

import logging
import os
import sys

LOGGER_NAME = "note_lanes"
LOG_LEVEL_ENV_VAR = "NOTE_LANES_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def resolve_log_level(explicit: str | None = None) -> int:
    name = (explicit or os.environ.get(LOG_LEVEL_ENV_VAR) or "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {name!r}.")
    return level


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""

    logger = logging.getLogger(LOGGER_NAME)
    resolved = level if isinstance(level, int) else resolve_log_level(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(resolved)
    return logger
