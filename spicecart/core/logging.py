from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from spicecart.core.config import settings

_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Promoted to top-level keys so log queries can filter on them directly.
_CART_KEYS = ("channel", "cart_id", "item_id")

SECURITY_LOGGER = "spicecart.security"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; cart identifiers lifted out of ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        for key in _CART_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> None:
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {
                "stdout": {"class": "logging.StreamHandler", "formatter": "json"},
            },
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": {
                SECURITY_LOGGER: {"level": logging.WARNING},
                "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
                "sqlalchemy.engine": {"level": logging.WARNING},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def channel_alert(message: str, **context: Any) -> None:
    """Warn about a cart line that leaked across channels and was dropped on read."""
    get_logger(SECURITY_LOGGER).warning(message, extra={"alert": "channel_isolation", **context})
