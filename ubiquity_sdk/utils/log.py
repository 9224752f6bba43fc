"""
Logging helpers.

Components log through the stdlib `logging` module and accept any
Logger/LoggerAdapter compatible object. Kernel-provided loggers may expose an
extra `ok` level for success messages; plain loggers do not.
"""

from __future__ import annotations

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """
    Configure root logging for scripts and local runs.

    Args:
        level: Level name or number; defaults to `SdkSettings.log_level`
            (UBIQUITY_LOG_LEVEL). Unknown names fall back to INFO.
    """
    if level is None:
        from ubiquity_sdk.settings import get_settings

        level = get_settings().log_level

    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)


def log_ok(logger: Any, message: str, *args: Any, **kwargs: Any) -> None:
    """Log a success message, falling back to `info` when `ok` is absent."""
    ok = getattr(logger, "ok", None)
    if callable(ok):
        ok(message, *args, **kwargs)
    else:
        logger.info(message, *args, **kwargs)
