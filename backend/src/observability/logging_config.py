"""Logging setup for the sourcing backend.

Every record goes to stdout through one handler. In JSON mode each line is
an object carrying the request id, the emitting logger and any auto-match
context passed via ``extra`` (customer PO, item, quote, RFQ, Celery task).
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .request_id import get_request_id

SERVICE_NAME = "winetrade-sourcing"

# Extra attributes copied from log records into the JSON payload
CONTEXT_FIELDS = ("customer_po_id", "line_id", "quote_id", "rfq_id", "task_id", "duration_ms", "status_code")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"

# Libraries whose INFO output drowns the auto-match logs
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "celery", "kombu")


class RequestIDFilter(logging.Filter):
    """Stamp each record with the current request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "no-request-id"),
            "message": record.getMessage(),
        }

        # UUIDs and Decimals are logged as text
        payload.update(
            (name, str(getattr(record, name)))
            for name in CONTEXT_FIELDS
            if hasattr(record, name)
        )

        if record.exc_info:
            payload["error"] = str(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install the stdout handler on the root logger.

    Replaces any handlers already attached, so calling it twice is safe.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSONFormatter when True, TEXT_FORMAT otherwise
    """
    numeric_level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers[:] = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; use as ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
