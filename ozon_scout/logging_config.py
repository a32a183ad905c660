"""Logging configuration helpers for ozon-scout."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_FALSE_VALUES = {"0", "false", "no", "off"}
_CONFIGURED: dict[str, logging.Logger] = {}


def _level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def _log_file() -> str | None:
    if (os.getenv("OZON_LOG_TO_FILE") or "1").strip().lower() in _FALSE_VALUES:
        return None
    log_dir = os.getenv("OZON_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, "ozon_scout.log")


def _attach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = _log_file()
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Return a logger writing to the console and, unless disabled, a rotating file."""

    logger = logging.getLogger(name)
    if name in _CONFIGURED:
        return logger

    logger.setLevel(_level())
    logger.propagate = False
    if not logger.handlers:
        _attach_handlers(logger)

    _CONFIGURED[name] = logger
    return logger


def configure_from_env() -> None:
    """Re-read ``LOG_LEVEL``, ``OZON_LOG_DIR`` and ``OZON_LOG_TO_FILE`` for every logger.

    Loggers are created at import time, so environment loaded later (for
    example from ``.env``) only takes effect through this call.
    """

    for logger in _CONFIGURED.values():
        logger.setLevel(_level())
        _attach_handlers(logger)


def set_level(level: str | int) -> None:
    """Apply *level* to every logger handed out by :func:`get_logger`."""

    for logger in _CONFIGURED.values():
        logger.setLevel(level)
