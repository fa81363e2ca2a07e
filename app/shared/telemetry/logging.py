"""Logging configuration shared by the API process and the event worker."""

import logging
import sys

from app.core.config import get_settings

# Client libraries that log every request at INFO.
_QUIET_LOGGERS = ("elastic_transport.transport", "elasticsearch", "httpx")


def setup_logging() -> None:
    """Configure application-wide logging on stdout.

    Level is settings.log_level when set, else DEBUG when settings.debug is
    True, otherwise INFO. Engine and HTTP client loggers are held at WARNING
    unless running in debug.
    """
    settings = get_settings()
    if settings.log_level:
        log_level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    else:
        log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if not settings.debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name."""
    return logging.getLogger(name)
