"""Ports for the customer PO auto-match engine.

Following hexagonal architecture, ReconciliationService depends only on
these interfaces. SQLAlchemy and Celery adapters live in
customer_pos.repository, sourcing.quote_source and notifications.dispatcher.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from matching.ports import RequestItemRef, QuoteRef, DemandLineRef


@dataclass(frozen=True)
class CustomerPoRef:
    """Customer PO header fields needed to run auto-match.

    Attributes:
        id: Customer PO UUID
        rfq_id: Linked RFQ (None if the PO was never linked)
        status: Current status value (PENDING/MATCHED)
        version: Optimistic-lock version read at load time
    """
    id: UUID
    rfq_id: Optional[UUID]
    status: str
    version: int


@dataclass(frozen=True)
class CustomerPoLine:
    """Persisted state of one customer PO item."""
    id: UUID
    customer_po_id: UUID
    product_name: str
    quantity: int
    vintage: Optional[str] = None
    lwin: Optional[str] = None
    sell_price_per_case_usd: Optional[Decimal] = None
    buy_price_per_case_usd: Optional[Decimal] = None
    matched_quote_id: Optional[UUID] = None
    matched_rfq_item_id: Optional[UUID] = None
    match_source: Optional[str] = None
    profit_usd: Optional[Decimal] = None
    profit_margin_percent: Optional[Decimal] = None
    is_losing_item: bool = False
    status: str = "UNMATCHED"

    def as_demand_line(self) -> DemandLineRef:
        return DemandLineRef(
            id=self.id,
            product_name=self.product_name,
            quantity=self.quantity,
            vintage=self.vintage,
            lwin=self.lwin,
            sell_price_per_case_usd=self.sell_price_per_case_usd,
        )


class QuoteSourcePort(ABC):
    """Read access to RFQ items, priced quotes and supplier names."""

    @abstractmethod
    def get_request_items(self, rfq_id: UUID) -> List[RequestItemRef]:
        """RFQ items of a batch in RFQ order."""
        pass

    @abstractmethod
    def get_quotes(self, item_ids: Iterable[UUID]) -> List[QuoteRef]:
        """Quotes with a non-null cost price referencing the given items."""
        pass

    @abstractmethod
    def get_quote(self, quote_id: UUID) -> Optional[QuoteRef]:
        """Single priced quote, None if missing or unpriced."""
        pass

    @abstractmethod
    def get_supplier_names(self, partner_ids: Iterable[UUID]) -> Dict[UUID, str]:
        """Business names keyed by partner id (unknown ids are omitted)."""
        pass


class CustomerPoRepositoryPort(ABC):
    """Read/write access to customer POs and their items.

    Writes are staged until commit(); rollback() discards them.
    """

    @abstractmethod
    def get_order(self, customer_po_id: UUID) -> Optional[CustomerPoRef]:
        pass

    @abstractmethod
    def get_lines(self, customer_po_id: UUID) -> List[CustomerPoLine]:
        """All items of the PO in PO order."""
        pass

    @abstractmethod
    def get_line(self, item_id: UUID) -> Optional[CustomerPoLine]:
        pass

    @abstractmethod
    def update_line(self, item_id: UUID, fields: Dict[str, Any]) -> None:
        """Overwrite the given item columns."""
        pass

    @abstractmethod
    def update_order(
        self,
        customer_po_id: UUID,
        fields: Dict[str, Any],
        expected_version: int
    ) -> None:
        """Overwrite header columns if the PO is still at expected_version.

        Raises:
            ConcurrentReconciliationError: If the version moved on
        """
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass


class NotificationDispatcherPort(ABC):
    """Downstream notification once a PO has been matched (fire-and-forget)."""

    @abstractmethod
    def notify_customer_po_reconciled(self, customer_po_id: UUID) -> None:
        pass
