"""Customer PO auto-match: reconcile distributor POs against RFQ quotes."""

from .errors import (
    ReconciliationError,
    NotFoundError,
    InvalidStateError,
    BatchTooLargeError,
    TransientError,
    ConcurrentReconciliationError,
    FatalError,
)
from .profit import round2, calculate_line_profit, recalculate_order_totals, LineProfit, OrderTotals
from .service import ReconciliationService
from .status import CustomerPoStatus, CustomerPoItemStatus

__all__ = [
    "ReconciliationError",
    "NotFoundError",
    "InvalidStateError",
    "BatchTooLargeError",
    "TransientError",
    "ConcurrentReconciliationError",
    "FatalError",
    "round2",
    "calculate_line_profit",
    "recalculate_order_totals",
    "LineProfit",
    "OrderTotals",
    "ReconciliationService",
    "CustomerPoStatus",
    "CustomerPoItemStatus",
]
