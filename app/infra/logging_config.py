"""Process-wide logging setup."""

from __future__ import annotations

import logging

from app.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    """Configure the root logger from settings. Safe to instantiate more than once."""

    _configured = False

    def __init__(self, level: str | None = None) -> None:
        level_name = (level or get_settings().log_level or "INFO").upper()
        if not LoggingConfig._configured:
            logging.basicConfig(level=level_name, format=LOG_FORMAT)
            LoggingConfig._configured = True
        else:
            logging.getLogger().setLevel(level_name)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"modmail.{name}")
