"""FunnelDash — Structured JSON Logging.

Every module logs through a child of the ``funneldash`` logger. A single
stdout handler on that package logger writes one JSON object per line;
import and fetch context passed via ``extra=`` becomes top-level keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from funneldash.config import settings

PACKAGE_LOGGER = "funneldash"

# Keys lifted from ``extra=`` into the JSON line
CONTEXT_FIELDS = ("report_date", "campaign", "manager", "status_code", "records")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own UTC time."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        # Dates and Decimals fall back to str()
        return json.dumps(entry, ensure_ascii=False, default=str)


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


def get_logger(area: str) -> logging.Logger:
    """Return ``funneldash.<area>``; output goes through the package handler."""
    _package_logger()
    return logging.getLogger(f"{PACKAGE_LOGGER}.{area}")
