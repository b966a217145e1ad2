"""Customer PO auto-match service - matches PO items to RFQ quotes.

Run flow (reconcile):
    load PO + items → load RFQ items + priced quotes → build quote index
    → match every item (strategy chain) → profit per item → persist items
    → recompute and persist PO totals (status MATCHED) → commit
    → notify downstream (best effort)

Every run overwrites all match and profit columns of every item, so
re-running with unchanged quotes yields identical results.
"""

import time
from dataclasses import replace
from typing import Any, Dict, List, Optional
from uuid import UUID

from matching import MatchingConfig, MatchResult, StrategyChainMatcher, build_quote_index
from matching.ports import QuoteRef
from models.base import utcnow
from observability.logging_config import get_logger
from observability.metrics import (
    reconciliation_runs_total,
    reconciliation_duration_seconds,
    lines_matched_total,
    losing_items_total,
    notification_failures_total,
)
from .errors import (
    ReconciliationError,
    NotFoundError,
    InvalidStateError,
    BatchTooLargeError,
    TransientError,
    ConcurrentReconciliationError,
    FatalError,
)
from .ports import (
    CustomerPoRepositoryPort,
    QuoteSourcePort,
    NotificationDispatcherPort,
    CustomerPoRef,
    CustomerPoLine,
)
from .profit import LineProfit, OrderTotals, calculate_line_profit, recalculate_order_totals
from .schemas import LineMatchReport, ReconciliationReport, ReconciliationSummary
from .status import CustomerPoStatus, CustomerPoItemStatus, validate_transition, StateTransitionError

logger = get_logger(__name__)


def _outcome_label(error: ReconciliationError) -> str:
    if isinstance(error, ConcurrentReconciliationError):
        return "conflict"
    if isinstance(error, TransientError):
        return "transient"
    if isinstance(error, NotFoundError):
        return "not_found"
    if isinstance(error, InvalidStateError):
        return "invalid_state"
    return "fatal"


def _profit_fields(profit: LineProfit) -> Dict[str, Any]:
    return {
        "sell_line_total_usd": profit.sell_line_total_usd,
        "buy_line_total_usd": profit.buy_line_total_usd,
        "profit_usd": profit.profit_usd,
        "line_profit_usd": profit.line_profit_usd,
        "profit_margin_percent": profit.profit_margin_percent,
        "is_losing_item": profit.is_losing_item,
    }


def _totals_fields(totals: OrderTotals) -> Dict[str, Any]:
    return {
        "total_sell_price_usd": totals.total_sell_usd,
        "total_buy_price_usd": totals.total_buy_usd,
        "total_profit_usd": totals.total_profit_usd,
        "profit_margin_percent": totals.profit_margin_percent,
        "item_count": totals.item_count,
        "losing_item_count": totals.losing_item_count,
    }


class ReconciliationService:
    """Service for customer PO auto-matching and item edits."""

    def __init__(
        self,
        repository: CustomerPoRepositoryPort,
        quote_source: QuoteSourcePort,
        notifier: NotificationDispatcherPort,
        config: Optional[MatchingConfig] = None,
        max_scan_cost: Optional[int] = None
    ):
        """Initialize service.

        Args:
            repository: Customer PO repository
            quote_source: RFQ item/quote reader
            notifier: Downstream notification dispatcher
            config: Matching thresholds
            max_scan_cost: Reject runs where items x RFQ items exceeds this
        """
        self.repository = repository
        self.quote_source = quote_source
        self.notifier = notifier
        self.config = config or MatchingConfig()
        self.max_scan_cost = max_scan_cost

    # ------------------------------------------------------------------
    # Auto-match
    # ------------------------------------------------------------------

    def reconcile(self, customer_po_id: UUID) -> ReconciliationReport:
        """Auto-match all items of a customer PO and recompute its totals.

        Args:
            customer_po_id: Customer PO UUID

        Returns:
            ReconciliationReport with per-item results and PO totals

        Raises:
            NotFoundError: PO does not exist
            InvalidStateError: PO not linked to an RFQ, has no items, or is too large
            TransientError: Database failure or concurrent run; safe to retry
            FatalError: Any other failure
        """
        start = time.time()
        try:
            report = self._reconcile(customer_po_id)
        except ReconciliationError as e:
            self.repository.rollback()
            reconciliation_runs_total.labels(outcome=_outcome_label(e)).inc()
            logger.warning(
                f"Auto-match rejected for customer PO {customer_po_id}: {str(e)}",
                extra={"customer_po_id": customer_po_id}
            )
            raise
        except Exception as e:
            self.repository.rollback()
            reconciliation_runs_total.labels(outcome="fatal").inc()
            logger.error(
                f"Auto-match failed for customer PO {customer_po_id}",
                extra={"customer_po_id": customer_po_id},
                exc_info=True
            )
            raise FatalError(f"Failed to auto-match customer PO {customer_po_id}") from e
        finally:
            reconciliation_duration_seconds.observe(time.time() - start)

        reconciliation_runs_total.labels(outcome="success").inc()
        self._notify(customer_po_id)
        return report

    def _reconcile(self, customer_po_id: UUID) -> ReconciliationReport:
        order = self.repository.get_order(customer_po_id)
        if order is None:
            raise NotFoundError(f"Customer PO {customer_po_id} not found")

        if order.rfq_id is None:
            raise InvalidStateError("Customer PO must be linked to an RFQ for auto-matching")

        lines = self.repository.get_lines(customer_po_id)
        if not lines:
            raise InvalidStateError("No items found in customer PO")

        try:
            validate_transition(CustomerPoStatus(order.status), CustomerPoStatus.MATCHED)
        except StateTransitionError as e:
            raise InvalidStateError(str(e)) from e

        request_items = self.quote_source.get_request_items(order.rfq_id)
        self._check_scan_budget(customer_po_id, len(lines), len(request_items))

        quotes = self.quote_source.get_quotes(item.id for item in request_items)
        index = build_quote_index(
            request_items,
            quotes,
            prefix_length=self.config.identifier_prefix_length
        )

        # All items are matched before anything is written
        matcher = StrategyChainMatcher(index, self.config)
        results = matcher.match_batch([line.as_demand_line() for line in lines])

        supplier_names = self.quote_source.get_supplier_names(
            result.quote.partner_id for result in results if result.matched
        )

        updated_lines: List[CustomerPoLine] = []
        per_line: List[LineMatchReport] = []
        for line, result in zip(lines, results):
            updated = self._apply_match(line, result)
            updated_lines.append(updated)
            per_line.append(self._line_report(updated, result, supplier_names))

        totals = recalculate_order_totals(updated_lines)
        fields = _totals_fields(totals)
        fields["status"] = CustomerPoStatus.MATCHED.value
        fields["matched_at"] = utcnow()
        self.repository.update_order(customer_po_id, fields, expected_version=order.version)
        self.repository.commit()

        matched_count = sum(1 for result in results if result.matched)
        for result in results:
            lines_matched_total.labels(source=result.source.value).inc()
        losing_items_total.inc(totals.losing_item_count)
        logger.info(
            f"Auto-matched customer PO {customer_po_id}: "
            f"{matched_count}/{len(lines)} items matched, "
            f"{totals.losing_item_count} losing, margin {totals.profit_margin_percent}%",
            extra={"customer_po_id": customer_po_id, "rfq_id": order.rfq_id}
        )

        return ReconciliationReport(
            customer_po_id=customer_po_id,
            per_line=per_line,
            summary=ReconciliationSummary(
                total_items=len(lines),
                matched_items=matched_count,
                unmatched_items=len(lines) - matched_count,
                losing_items=totals.losing_item_count,
                total_sell_usd=totals.total_sell_usd,
                total_buy_usd=totals.total_buy_usd,
                total_profit_usd=totals.total_profit_usd,
                profit_margin_percent=totals.profit_margin_percent,
            ),
        )

    def _check_scan_budget(self, customer_po_id: UUID, line_count: int, item_count: int) -> None:
        if self.max_scan_cost is None:
            return
        scan_cost = line_count * item_count
        if scan_cost > self.max_scan_cost:
            raise BatchTooLargeError(
                f"Customer PO {customer_po_id} is too large to auto-match: "
                f"{line_count} items x {item_count} RFQ items exceeds {self.max_scan_cost}"
            )

    def _apply_match(self, line: CustomerPoLine, result: MatchResult) -> CustomerPoLine:
        """Overwrite the match and profit fields of one item."""
        buy_price = result.quote.cost_price_per_case_usd if result.matched else None
        profit = calculate_line_profit(line.sell_price_per_case_usd, buy_price, line.quantity)

        fields = {
            "matched_quote_id": result.quote.id if result.matched else None,
            "matched_rfq_item_id": result.rfq_item_id,
            "match_source": result.source.to_column(),
            "buy_price_per_case_usd": buy_price,
            "status": (
                CustomerPoItemStatus.MATCHED.value if result.matched
                else CustomerPoItemStatus.UNMATCHED.value
            ),
        }
        fields.update(_profit_fields(profit))
        self.repository.update_line(line.id, fields)

        return replace(
            line,
            buy_price_per_case_usd=buy_price,
            matched_quote_id=fields["matched_quote_id"],
            matched_rfq_item_id=fields["matched_rfq_item_id"],
            match_source=fields["match_source"],
            profit_usd=profit.profit_usd,
            profit_margin_percent=profit.profit_margin_percent,
            is_losing_item=profit.is_losing_item,
            status=fields["status"],
        )

    @staticmethod
    def _line_report(
        line: CustomerPoLine,
        result: MatchResult,
        supplier_names: Dict[UUID, str]
    ) -> LineMatchReport:
        return LineMatchReport(
            line_id=line.id,
            product_name=line.product_name,
            matched_quote_id=line.matched_quote_id,
            matched_rfq_item_id=line.matched_rfq_item_id,
            match_source=line.match_source,
            buy_price_per_case_usd=line.buy_price_per_case_usd,
            sell_price_per_case_usd=line.sell_price_per_case_usd,
            profit_usd=line.profit_usd,
            profit_margin_percent=line.profit_margin_percent,
            is_losing_item=line.is_losing_item,
            supplier_name=supplier_names.get(result.quote.partner_id) if result.matched else None,
        )

    def _notify(self, customer_po_id: UUID) -> None:
        """Fire the downstream notification; failures are logged only."""
        try:
            self.notifier.notify_customer_po_reconciled(customer_po_id)
        except Exception:
            notification_failures_total.inc()
            logger.warning(
                f"Failed to notify downstream for customer PO {customer_po_id}",
                extra={"customer_po_id": customer_po_id},
                exc_info=True
            )

    # ------------------------------------------------------------------
    # Manual item edits
    # ------------------------------------------------------------------

    def update_item(self, item_id: UUID, changes: Dict[str, Any]) -> CustomerPoLine:
        """Apply an admin edit to one item and recompute PO totals.

        Only keys present in changes are applied. Assigning matched_quote_id
        binds the item to that quote (buy price defaults to the quote's cost);
        assigning None clears the match. PO status is left untouched.

        Args:
            item_id: Customer PO item UUID
            changes: Subset of sell_price_per_case_usd, buy_price_per_case_usd,
                quantity, matched_quote_id

        Returns:
            Updated item state

        Raises:
            NotFoundError: Item does not exist
            InvalidStateError: Quote is unknown, unpriced or outside the PO's RFQ
        """
        try:
            return self._update_item(item_id, changes)
        except ReconciliationError:
            self.repository.rollback()
            raise
        except Exception as e:
            self.repository.rollback()
            logger.error(f"Failed to update customer PO item {item_id}", exc_info=True)
            raise FatalError(f"Failed to update customer PO item {item_id}") from e

    def _update_item(self, item_id: UUID, changes: Dict[str, Any]) -> CustomerPoLine:
        located = self.repository.get_line(item_id)
        if located is None:
            raise NotFoundError(f"Customer PO item {item_id} not found")

        order = self.repository.get_order(located.customer_po_id)
        if order is None:
            raise NotFoundError(f"Customer PO {located.customer_po_id} not found")

        # Item state read before the PO lock may predate a run that just committed
        line = self.repository.get_line(item_id)
        if line is None:
            raise NotFoundError(f"Customer PO item {item_id} not found")

        sell_price = changes.get("sell_price_per_case_usd", line.sell_price_per_case_usd)
        buy_price = changes.get("buy_price_per_case_usd", line.buy_price_per_case_usd)
        quantity = changes.get("quantity") or line.quantity

        fields: Dict[str, Any] = {}
        if "matched_quote_id" in changes:
            quote_id = changes["matched_quote_id"]
            if quote_id is None:
                fields.update(
                    matched_quote_id=None,
                    matched_rfq_item_id=None,
                    match_source=None,
                    status=CustomerPoItemStatus.UNMATCHED.value,
                )
                if "buy_price_per_case_usd" not in changes:
                    buy_price = None
            else:
                quote = self._quote_in_rfq(order, quote_id)
                fields.update(
                    matched_quote_id=quote.id,
                    matched_rfq_item_id=quote.item_id,
                    match_source=None,
                    status=CustomerPoItemStatus.MATCHED.value,
                )
                if "buy_price_per_case_usd" not in changes:
                    buy_price = quote.cost_price_per_case_usd

        profit = calculate_line_profit(sell_price, buy_price, quantity)
        fields.update(
            sell_price_per_case_usd=sell_price,
            buy_price_per_case_usd=buy_price,
            quantity=quantity,
        )
        fields.update(_profit_fields(profit))
        self.repository.update_line(item_id, fields)

        totals = recalculate_order_totals(self.repository.get_lines(order.id))
        self.repository.update_order(order.id, _totals_fields(totals), expected_version=order.version)
        self.repository.commit()

        logger.info(
            f"Updated customer PO item {item_id}",
            extra={"customer_po_id": order.id, "line_id": item_id}
        )
        return self.repository.get_line(item_id)

    def _quote_in_rfq(self, order: CustomerPoRef, quote_id: UUID) -> QuoteRef:
        quote = self.quote_source.get_quote(quote_id)
        if quote is None:
            raise InvalidStateError(f"Quote {quote_id} not found or has no cost price")

        rfq_item_ids = set()
        if order.rfq_id is not None:
            rfq_item_ids = {item.id for item in self.quote_source.get_request_items(order.rfq_id)}
        if quote.item_id not in rfq_item_ids:
            raise InvalidStateError(
                f"Quote {quote_id} does not belong to the RFQ linked to customer PO {order.id}"
            )
        return quote
