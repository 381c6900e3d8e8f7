"""Logging setup for the recordsync entry points."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError

LOG_LEVEL_ENV = "RECORDSYNC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def resolve_log_level(default: int = logging.INFO) -> int:
    """Return the level named by ``RECORDSYNC_LOG_LEVEL`` or ``default``."""

    raw = os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise ConfigurationError(
            f"{LOG_LEVEL_ENV} must name a logging level, got {raw!r}", variable=LOG_LEVEL_ENV
        )
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger with the terse CLI format.

    Without an explicit ``level`` the environment decides, INFO otherwise.
    SQL statement logging stays at WARNING unless the root level is DEBUG.
    """

    resolved = level if level is not None else resolve_log_level()
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    if resolved > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
