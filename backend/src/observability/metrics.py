"""Prometheus metrics for customer PO auto-matching.

Defines and exposes operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Histogram

# Reconciliation run metrics
reconciliation_runs_total = Counter(
    "winetrade_reconciliation_runs_total",
    "Total customer PO auto-match runs",
    ["outcome"]  # outcome: success|not_found|invalid_state|transient|conflict|fatal
)

reconciliation_duration_seconds = Histogram(
    "winetrade_reconciliation_duration_seconds",
    "Time spent on a customer PO auto-match run in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Matching metrics
lines_matched_total = Counter(
    "winetrade_lines_matched_total",
    "Customer PO items processed by auto-match, by match source",
    ["source"]  # source: IDENTIFIER|NAME_VINTAGE|FUZZY|NONE
)

losing_items_total = Counter(
    "winetrade_losing_items_total",
    "Customer PO items whose buy price exceeds the sell price after matching"
)

# Notification metrics
notification_failures_total = Counter(
    "winetrade_notification_failures_total",
    "Post-match notifications that could not be dispatched"
)
