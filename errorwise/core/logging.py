"""Logging for the errorwise logger tree.

Modules only create ``logging.getLogger(__name__)`` loggers. ``setup_logging``
attaches a single handler to the ``errorwise`` parent logger, either as
human-readable lines or as one JSON object per record. Records may carry
``requester_id``, ``tier`` and ``provider`` via ``extra=``; the JSON formatter
emits them as top-level fields.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from errorwise.core.config import Settings
from errorwise.core.config import settings as default_settings

LOGGER_NAME = "errorwise"
CONTEXT_FIELDS = ("requester_id", "tier", "provider")

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the analysis context fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value:
                log_data[attr] = value
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


class _ErrorwiseHandler(logging.StreamHandler):
    """Marker type so repeated setup replaces our handler and leaves the host's alone."""


def setup_logging(current: Settings | None = None) -> logging.Logger:
    """Attach (or replace) the errorwise handler according to ``log_level`` / ``log_json``."""
    current = current or default_settings
    level = getattr(logging, current.log_level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in [h for h in logger.handlers if isinstance(h, _ErrorwiseHandler)]:
        logger.removeHandler(handler)

    handler = _ErrorwiseHandler(sys.stdout)
    handler.setLevel(level)
    if current.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False

    # Provider and URL fetches log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logger
