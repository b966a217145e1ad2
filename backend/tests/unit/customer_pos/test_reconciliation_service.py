"""Unit tests for ReconciliationService

Runs the auto-match engine against in-memory ports:
- End-to-end totals for a partially matched PO
- Re-running is idempotent and overwrites earlier results
- Errors are raised before any write and roll the run back
- Notification failures never fail the run
- Manual item edits recompute profit and PO totals
"""

import pytest
from copy import deepcopy
from decimal import Decimal
from uuid import uuid4

from prometheus_client import REGISTRY

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from customer_pos.errors import (
    BatchTooLargeError,
    ConcurrentReconciliationError,
    FatalError,
    InvalidStateError,
    NotFoundError,
    TransientError,
)
from customer_pos.service import ReconciliationService
from fixtures.fakes import (
    FailingNotificationDispatcher,
    InMemoryCustomerPoRepository,
    InMemoryQuoteSource,
)


def _lines_matched(source):
    return REGISTRY.get_sample_value("winetrade_lines_matched_total", {"source": source}) or 0.0


@pytest.fixture
def repo():
    return InMemoryCustomerPoRepository()


@pytest.fixture
def quote_source():
    return InMemoryQuoteSource()


@pytest.fixture
def service(repo, quote_source, notifier):
    return ReconciliationService(repository=repo, quote_source=quote_source, notifier=notifier)


@pytest.fixture
def opus_po(repo, quote_source):
    """PO with one LWIN-matchable item (sell 100, quote 60) and two unmatched items (sell 50)."""
    rfq_id = quote_source.add_rfq()
    item = quote_source.add_item(rfq_id, "Opus One", vintage="2018", lwin="1011111201812")
    partner_id = quote_source.add_partner("Napa Direct")
    quote = quote_source.add_quote(item, "60.00", partner_id=partner_id)

    po_id = repo.add_order(rfq_id=rfq_id)
    lines = [
        repo.add_line(po_id, "Opus One", sell="100.00", lwin="1011111201812"),
        repo.add_line(po_id, "Sassicaia", sell="50.00"),
        repo.add_line(po_id, "Tignanello", sell="50.00"),
    ]
    return {"po_id": po_id, "rfq_id": rfq_id, "item": item, "quote": quote, "lines": lines}


class TestReconcile:
    """Test cases for ReconciliationService.reconcile"""

    def test_partially_matched_po_totals(self, service, repo, opus_po):
        """Given 1 matched and 2 unmatched items, then totals 200/60/140 at 70%"""
        report = service.reconcile(opus_po["po_id"])

        summary = report.summary
        assert summary.total_items == 3
        assert summary.matched_items == 1
        assert summary.unmatched_items == 2
        assert summary.losing_items == 0
        assert summary.total_sell_usd == Decimal("200.00")
        assert summary.total_buy_usd == Decimal("60.00")
        assert summary.total_profit_usd == Decimal("140.00")
        assert summary.profit_margin_percent == Decimal("70.00")

        order = repo.orders[opus_po["po_id"]]
        assert order["status"] == "MATCHED"
        assert order["matched_at"] is not None
        assert order["total_profit_usd"] == Decimal("140.00")
        assert order["item_count"] == 3
        assert order["version"] == 2
        assert repo.commits == 1

    def test_matched_line_fields(self, service, repo, opus_po):
        report = service.reconcile(opus_po["po_id"])

        matched = report.per_line[0]
        assert matched.line_id == opus_po["lines"][0]
        assert matched.matched_quote_id == opus_po["quote"].id
        assert matched.matched_rfq_item_id == opus_po["item"].id
        assert matched.match_source == "IDENTIFIER"
        assert matched.buy_price_per_case_usd == Decimal("60.00")
        assert matched.profit_usd == Decimal("40.00")
        assert matched.profit_margin_percent == Decimal("40.00")
        assert matched.supplier_name == "Napa Direct"

        line = repo.lines[opus_po["lines"][0]]
        assert line["status"] == "MATCHED"
        assert line["match_source"] == "IDENTIFIER"
        assert line["sell_line_total_usd"] == Decimal("100.00")
        assert line["line_profit_usd"] == Decimal("40.00")

    def test_unmatched_line_fields(self, service, repo, opus_po):
        report = service.reconcile(opus_po["po_id"])

        unmatched = report.per_line[1]
        assert unmatched.matched_quote_id is None
        assert unmatched.match_source is None
        assert unmatched.buy_price_per_case_usd is None
        assert unmatched.profit_usd is None
        assert unmatched.supplier_name is None
        assert repo.lines[opus_po["lines"][1]]["status"] == "UNMATCHED"

    def test_report_follows_po_item_order(self, service, opus_po):
        report = service.reconcile(opus_po["po_id"])

        assert [line.line_id for line in report.per_line] == opus_po["lines"]

    def test_rerun_is_idempotent(self, service, repo, opus_po):
        first = service.reconcile(opus_po["po_id"])
        lines_after_first = deepcopy(repo.lines)

        second = service.reconcile(opus_po["po_id"])

        assert second == first
        assert repo.lines == lines_after_first
        assert repo.orders[opus_po["po_id"]]["status"] == "MATCHED"

    def test_rerun_overwrites_stale_matches(self, service, repo, quote_source, opus_po):
        """Given a matched item whose quote is withdrawn, then a re-run unmatches it"""
        service.reconcile(opus_po["po_id"])
        quote_source.quotes.clear()

        report = service.reconcile(opus_po["po_id"])

        line = repo.lines[opus_po["lines"][0]]
        assert line["status"] == "UNMATCHED"
        assert line["matched_quote_id"] is None
        assert line["matched_rfq_item_id"] is None
        assert line["buy_price_per_case_usd"] is None
        assert line["profit_usd"] is None
        assert report.summary.total_buy_usd == Decimal("0.00")

    def test_losing_item_is_flagged(self, service, repo, quote_source):
        """Given sell 100 and quote 120, then profit -20.00 and the item is losing"""
        rfq_id = quote_source.add_rfq()
        item = quote_source.add_item(rfq_id, "Château Margaux", vintage="2015")
        quote_source.add_quote(item, "120.00")
        po_id = repo.add_order(rfq_id=rfq_id)
        line_id = repo.add_line(po_id, "Chateau Margaux", sell="100.00", vintage="2015")

        report = service.reconcile(po_id)

        assert report.per_line[0].match_source == "NAME_VINTAGE"
        assert report.per_line[0].profit_usd == Decimal("-20.00")
        assert report.per_line[0].profit_margin_percent == Decimal("-20.00")
        assert report.per_line[0].is_losing_item is True
        assert report.summary.losing_items == 1
        assert repo.lines[line_id]["is_losing_item"] is True
        assert repo.orders[po_id]["losing_item_count"] == 1

    def test_po_is_matched_even_when_nothing_matches(self, service, repo, quote_source):
        rfq_id = quote_source.add_rfq()
        quote_source.add_quote(quote_source.add_item(rfq_id, "Opus One"), "300.00")
        po_id = repo.add_order(rfq_id=rfq_id)
        repo.add_line(po_id, "Sassicaia", sell="180.00")

        report = service.reconcile(po_id)

        assert report.summary.matched_items == 0
        assert report.summary.profit_margin_percent == Decimal("100.00")
        assert repo.orders[po_id]["status"] == "MATCHED"

    def test_unpriced_quotes_are_ignored(self, service, repo, quote_source):
        rfq_id = quote_source.add_rfq()
        item = quote_source.add_item(rfq_id, "Opus One", lwin="1011111")
        quote_source.add_quote(item, None)
        priced = quote_source.add_quote(item, "310.00")
        po_id = repo.add_order(rfq_id=rfq_id)
        repo.add_line(po_id, "Opus One", sell="350.00", lwin="1011111")

        report = service.reconcile(po_id)

        assert report.per_line[0].matched_quote_id == priced.id

    def test_notifies_once_after_commit(self, service, notifier, opus_po):
        service.reconcile(opus_po["po_id"])

        assert notifier.notified == [opus_po["po_id"]]


class TestReconcileErrors:
    """Test cases for rejected and failed runs"""

    def test_missing_po(self, service, repo, notifier):
        with pytest.raises(NotFoundError):
            service.reconcile(uuid4())

        assert repo.line_writes == 0
        assert repo.commits == 0
        assert notifier.notified == []

    def test_po_without_rfq(self, service, repo):
        po_id = repo.add_order(rfq_id=None)
        repo.add_line(po_id, "Opus One", sell="100.00")

        with pytest.raises(InvalidStateError, match="linked to an RFQ"):
            service.reconcile(po_id)

        assert repo.line_writes == 0
        assert repo.orders[po_id]["status"] == "PENDING"

    def test_po_without_items(self, service, repo, quote_source):
        po_id = repo.add_order(rfq_id=quote_source.add_rfq())

        with pytest.raises(InvalidStateError, match="No items"):
            service.reconcile(po_id)

        assert repo.order_writes == 0

    def test_scan_budget_exceeded(self, repo, quote_source, notifier, opus_po):
        """Given 3 items x 1 RFQ item over a budget of 2, then the run is rejected"""
        service = ReconciliationService(repo, quote_source, notifier, max_scan_cost=2)

        with pytest.raises(BatchTooLargeError) as exc_info:
            service.reconcile(opus_po["po_id"])

        assert isinstance(exc_info.value, InvalidStateError)
        assert repo.line_writes == 0
        assert repo.commits == 0

    def test_scan_budget_boundary_is_allowed(self, repo, quote_source, notifier, opus_po):
        service = ReconciliationService(repo, quote_source, notifier, max_scan_cost=3)

        report = service.reconcile(opus_po["po_id"])

        assert report.summary.total_items == 3

    def test_concurrent_run_is_rolled_back(self, quote_source, notifier, opus_po, repo):
        """Given the PO version moves on mid-run, then the run fails and nothing sticks"""
        class RacingRepository(InMemoryCustomerPoRepository):
            def get_order(self, customer_po_id):
                ref = super().get_order(customer_po_id)
                if ref is not None:
                    self.orders[customer_po_id]["version"] += 1
                return ref

        racing = RacingRepository()
        racing.orders, racing.lines = deepcopy(repo.orders), deepcopy(repo.lines)
        racing._snapshot()
        service = ReconciliationService(racing, quote_source, notifier)

        with pytest.raises(ConcurrentReconciliationError) as exc_info:
            service.reconcile(opus_po["po_id"])

        assert isinstance(exc_info.value, TransientError)
        assert racing.rollbacks == 1
        assert racing.commits == 0
        assert all(line["status"] == "UNMATCHED" for line in racing.lines.values())
        assert all(line["buy_price_per_case_usd"] is None for line in racing.lines.values())
        assert notifier.notified == []

    def test_rolled_back_run_is_not_counted_as_matched(self, quote_source, notifier, opus_po, repo):
        class ConflictingRepository(InMemoryCustomerPoRepository):
            def update_order(self, customer_po_id, fields, expected_version):
                raise ConcurrentReconciliationError(f"Customer PO {customer_po_id} was modified concurrently")

        conflicting = ConflictingRepository()
        conflicting.orders, conflicting.lines = deepcopy(repo.orders), deepcopy(repo.lines)
        conflicting._snapshot()
        service = ReconciliationService(conflicting, quote_source, notifier)
        before = {source: _lines_matched(source) for source in ("IDENTIFIER", "NONE")}

        with pytest.raises(ConcurrentReconciliationError):
            service.reconcile(opus_po["po_id"])

        assert {source: _lines_matched(source) for source in ("IDENTIFIER", "NONE")} == before

    def test_committed_run_counts_matched_lines(self, service, opus_po):
        before = _lines_matched("IDENTIFIER"), _lines_matched("NONE")

        service.reconcile(opus_po["po_id"])

        assert _lines_matched("IDENTIFIER") == before[0] + 1
        assert _lines_matched("NONE") == before[1] + 2

    def test_transient_source_failure_propagates(self, service, repo, quote_source, opus_po):
        quote_source.fail_with = TransientError("Loading RFQ items failed: connection reset")

        with pytest.raises(TransientError):
            service.reconcile(opus_po["po_id"])

        assert repo.rollbacks == 1

    def test_unexpected_failure_is_fatal(self, service, repo, quote_source, notifier, opus_po):
        quote_source.fail_with = ValueError("corrupt row")

        with pytest.raises(FatalError) as exc_info:
            service.reconcile(opus_po["po_id"])

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert repo.rollbacks == 1
        assert repo.commits == 0
        assert notifier.notified == []

    def test_notification_failure_does_not_fail_the_run(self, repo, quote_source, opus_po):
        failing = FailingNotificationDispatcher()
        service = ReconciliationService(repo, quote_source, failing)

        report = service.reconcile(opus_po["po_id"])

        assert failing.attempts == 1
        assert report.summary.matched_items == 1
        assert repo.commits == 1
        assert repo.orders[opus_po["po_id"]]["status"] == "MATCHED"


class TestUpdateItem:
    """Test cases for ReconciliationService.update_item"""

    def test_sell_price_edit_recomputes_profit_and_totals(self, service, repo, opus_po):
        service.reconcile(opus_po["po_id"])
        line_id = opus_po["lines"][0]

        line = service.update_item(line_id, {"sell_price_per_case_usd": Decimal("110.00")})

        assert line.profit_usd == Decimal("50.00")
        assert line.status == "MATCHED"
        order = repo.orders[opus_po["po_id"]]
        assert order["total_sell_price_usd"] == Decimal("210.00")
        assert order["total_profit_usd"] == Decimal("150.00")
        assert order["status"] == "MATCHED"

    def test_quantity_edit_scales_line_totals(self, service, repo, opus_po):
        service.reconcile(opus_po["po_id"])
        line_id = opus_po["lines"][0]

        service.update_item(line_id, {"quantity": 3})

        assert repo.lines[line_id]["quantity"] == 3
        assert repo.lines[line_id]["line_profit_usd"] == Decimal("120.00")
        assert repo.orders[opus_po["po_id"]]["total_buy_price_usd"] == Decimal("180.00")

    def test_assign_quote_binds_item(self, service, repo, quote_source, opus_po):
        """Given an unmatched item, when a quote of the RFQ is assigned, then it is matched at that cost"""
        line_id = opus_po["lines"][1]

        line = service.update_item(line_id, {"matched_quote_id": opus_po["quote"].id})

        assert line.status == "MATCHED"
        assert line.matched_quote_id == opus_po["quote"].id
        assert line.matched_rfq_item_id == opus_po["item"].id
        assert line.match_source is None
        assert line.buy_price_per_case_usd == Decimal("60.00")
        assert line.profit_usd == Decimal("-10.00")
        assert line.is_losing_item is True
        assert repo.orders[opus_po["po_id"]]["losing_item_count"] == 1
        assert repo.orders[opus_po["po_id"]]["status"] == "PENDING"

    def test_assign_quote_with_explicit_buy_price(self, service, opus_po):
        line = service.update_item(
            opus_po["lines"][1],
            {"matched_quote_id": opus_po["quote"].id, "buy_price_per_case_usd": Decimal("45.00")},
        )

        assert line.buy_price_per_case_usd == Decimal("45.00")
        assert line.profit_usd == Decimal("5.00")

    def test_clear_match(self, service, repo, opus_po):
        service.reconcile(opus_po["po_id"])
        line_id = opus_po["lines"][0]

        line = service.update_item(line_id, {"matched_quote_id": None})

        assert line.status == "UNMATCHED"
        assert line.matched_quote_id is None
        assert line.buy_price_per_case_usd is None
        assert line.profit_usd is None
        assert repo.orders[opus_po["po_id"]]["total_buy_price_usd"] == Decimal("0.00")

    def test_quote_from_another_rfq_is_rejected(self, service, repo, quote_source, opus_po):
        other_rfq = quote_source.add_rfq()
        foreign = quote_source.add_quote(quote_source.add_item(other_rfq, "Opus One"), "10.00")
        line_id = opus_po["lines"][1]

        with pytest.raises(InvalidStateError, match="does not belong"):
            service.update_item(line_id, {"matched_quote_id": foreign.id})

        assert repo.rollbacks == 1
        assert repo.lines[line_id]["matched_quote_id"] is None

    def test_unpriced_quote_is_rejected(self, service, quote_source, opus_po):
        unpriced = quote_source.add_quote(opus_po["item"], None)

        with pytest.raises(InvalidStateError, match="no cost price"):
            service.update_item(opus_po["lines"][1], {"matched_quote_id": unpriced.id})

    def test_missing_item(self, service):
        with pytest.raises(NotFoundError):
            service.update_item(uuid4(), {"quantity": 2})

    def test_edit_reads_item_under_po_lock(self, quote_source, notifier, repo, opus_po):
        """Given a run commits while the edit waits for the PO lock, then the edit builds on the run's match"""
        class LockWaitRepository(InMemoryCustomerPoRepository):
            competing_run = None

            def get_order(self, customer_po_id):
                run, self.competing_run = self.competing_run, None
                if run is not None:
                    run()
                return super().get_order(customer_po_id)

        racing = LockWaitRepository()
        racing.orders, racing.lines = deepcopy(repo.orders), deepcopy(repo.lines)
        racing._snapshot()
        service = ReconciliationService(racing, quote_source, notifier)
        racing.competing_run = lambda: ReconciliationService(
            racing, quote_source, notifier
        ).reconcile(opus_po["po_id"])
        line_id = opus_po["lines"][0]

        line = service.update_item(line_id, {"sell_price_per_case_usd": Decimal("110.00")})

        assert line.status == "MATCHED"
        assert line.matched_quote_id == opus_po["quote"].id
        assert line.buy_price_per_case_usd == Decimal("60.00")
        assert line.profit_usd == Decimal("50.00")
        order = racing.orders[opus_po["po_id"]]
        assert order["total_sell_price_usd"] == Decimal("210.00")
        assert order["total_profit_usd"] == Decimal("150.00")
        assert order["version"] == 3
        assert racing.commits == 2
