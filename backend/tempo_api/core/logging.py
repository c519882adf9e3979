"""Centralized logging configuration."""
from __future__ import annotations

import logging
from logging.config import dictConfig

from tempo_api.core.context import get_request_api_key, get_request_id

# Client libraries that log every HTTP exchange with the generation service.
QUIET_LOGGERS = ("openai", "httpx", "httpcore", "opik")


class RequestContextFilter(logging.Filter):
    """Stamp each record with the request id and where its generation key came from."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.key_source = "caller" if get_request_api_key() else "server"
        return True


def configure_logging(*, log_level: str = "INFO", debug: bool = False) -> None:
    """
    Configure application logging once at startup.

    With ``debug`` the scheduler's own loggers drop to DEBUG, which includes
    raw generator output and every stage transition.
    """
    if getattr(configure_logging, "_configured", False):
        return

    loggers = {name: {"level": "WARNING"} for name in QUIET_LOGGERS}
    if debug:
        loggers["tempo_api"] = {"level": "DEBUG"}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | key=%(key_source)s | %(message)s",
                }
            },
            "filters": {
                "request_context": {
                    "()": "tempo_api.core.logging.RequestContextFilter",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": "DEBUG" if debug else log_level,
                    "filters": ["request_context"],
                }
            },
            "loggers": loggers,
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s (debug=%s)", log_level, debug)
    setattr(configure_logging, "_configured", True)
