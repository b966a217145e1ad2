"""Observability module.

Provides structured logging, request correlation and Prometheus metrics.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    reconciliation_runs_total,
    reconciliation_duration_seconds,
    lines_matched_total,
    losing_items_total,
    notification_failures_total,
)
from .request_id import request_id_var, get_request_id, set_request_id, generate_request_id
from .middleware import RequestIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "reconciliation_runs_total",
    "reconciliation_duration_seconds",
    "lines_matched_total",
    "losing_items_total",
    "notification_failures_total",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    # Middleware
    "RequestIDMiddleware",
]
