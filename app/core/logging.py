"""
Logging configuration.

Console logging through dictConfig; every record carries the request id set
by the correlation-id middleware (X-Request-Id).
"""

import logging
import logging.config
import time
from typing import Any

from app.core.config import settings

REQUEST_ID_HEADER = "X-Request-Id"

# Structured keys passed via `extra=` that are rendered after the message.
CONTEXT_KEYS = ("user_id", "email", "token_id", "exception", "status_code", "path", "client_ip", "limit")


class UTCFormatter(logging.Formatter):
    converter = time.gmtime


class ContextFilter(logging.Filter):
    """Collect known `extra` keys into record.context as "key=value" pairs."""

    def filter(self, record: logging.LogRecord) -> bool:
        pairs = [
            f"{key}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None) is not None
        ]
        record.context = f" [{' '.join(pairs)}]" if pairs else ""
        return True


def get_logging_config(level: str | None = None) -> dict[str, Any]:
    """Return the dictConfig mapping for the application."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation_id": {
                "()": "asgi_correlation_id.CorrelationIdFilter",
                "uuid_length": 32,
                "default_value": "-",
            },
            "context": {"()": "app.core.logging.ContextFilter"},
        },
        "formatters": {
            "standard": {
                "class": "app.core.logging.UTCFormatter",
                "format": "%(asctime)s [%(correlation_id)s] [%(name)s] %(levelname)s: %(message)s%(context)s",
                "datefmt": "%Y-%m-%dT%H:%M:%SZ",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "filters": ["correlation_id", "context"],
                "formatter": "standard",
            },
        },
        "loggers": {
            "app": {"level": level or settings.LOG_LEVEL, "propagate": True},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
        "root": {
            "level": level or settings.LOG_LEVEL,
            "handlers": ["console"],
        },
    }


def setup_logging(level: str | None = None) -> None:
    """Apply the logging configuration. Call once at process start."""
    logging.config.dictConfig(get_logging_config(level))


def user_context(user: Any = None, email: str | None = None) -> dict[str, Any]:
    """Structured context attached to workflow log records (never secrets)."""
    return {
        "user_id": getattr(user, "id", None),
        "email": getattr(user, "email", None) or email,
    }
