"""Customer PO models

A customer PO is a purchase order received from a distributor. Its items
are reconciled against the supplier quotes of the linked RFQ by the
auto-match engine, which overwrites the match and profit columns in place
on every run.

State machine: PENDING → MATCHED (re-runs keep MATCHED)
"""

from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Column, Text, String, Integer, Numeric, Boolean, DateTime,
    ForeignKey, Index, Enum as SQLEnum, Uuid
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class CustomerPo(Base):
    """Customer PO header with order-level profitability totals.

    Totals are recomputed from the full set of items after each auto-match
    run or manual item edit. version is bumped on every header update and
    checked on write to serialize concurrent runs against the same PO.
    """

    __tablename__ = "source_customer_po"

    id = Column(Uuid, primary_key=True, default=uuid4)
    rfq_id = Column(
        Uuid,
        ForeignKey("source_rfq.id", ondelete="SET NULL"),
        nullable=True,
        comment="RFQ whose quotes this PO is matched against"
    )
    po_number = Column(Text, nullable=True, comment="Customer's PO number/reference")
    customer_name = Column(Text, nullable=True)

    status = Column(
        SQLEnum('PENDING', 'MATCHED', name='customer_po_status'),
        nullable=False,
        default='PENDING',
        comment="State machine: PENDING → MATCHED"
    )

    total_sell_price_usd = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_buy_price_usd = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_profit_usd = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    profit_margin_percent = Column(Numeric(8, 2), nullable=False, default=Decimal("0.00"))
    item_count = Column(Integer, nullable=False, default=0)
    losing_item_count = Column(Integer, nullable=False, default=0)

    matched_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "CustomerPoItem",
        back_populates="customer_po",
        cascade="all, delete-orphan",
        order_by="CustomerPoItem.sort_order"
    )


class CustomerPoItem(Base):
    """Customer PO line describing a wine the distributor wants to buy.

    Each item contains:
    - Ordered data: product_name, vintage, lwin, quantity, sell price
    - Matching result: matched_quote_id, matched_rfq_item_id, match_source, status
    - Profitability: buy price, per-case and per-line profit, loss flag
    """

    __tablename__ = "source_customer_po_item"
    __table_args__ = (
        Index("ix_source_customer_po_item_po_id", "customer_po_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    customer_po_id = Column(
        Uuid,
        ForeignKey("source_customer_po.id", ondelete="CASCADE"),
        nullable=False
    )
    sort_order = Column(Integer, nullable=False, default=0)

    product_name = Column(Text, nullable=False)
    producer = Column(Text, nullable=True)
    vintage = Column(String(16), nullable=True)
    lwin = Column(String(32), nullable=True)
    quantity = Column(Integer, nullable=False, default=1, comment="Quantity in cases")

    sell_price_per_case_usd = Column(Numeric(12, 2), nullable=True)
    buy_price_per_case_usd = Column(Numeric(12, 2), nullable=True)
    sell_line_total_usd = Column(Numeric(14, 2), nullable=True)
    buy_line_total_usd = Column(Numeric(14, 2), nullable=True)

    profit_usd = Column(Numeric(12, 2), nullable=True, comment="Profit per case")
    line_profit_usd = Column(Numeric(14, 2), nullable=True, comment="Profit per case x quantity")
    profit_margin_percent = Column(Numeric(8, 2), nullable=True)
    is_losing_item = Column(Boolean, nullable=False, default=False)

    matched_quote_id = Column(
        Uuid,
        ForeignKey("source_rfq_quote.id", ondelete="SET NULL"),
        nullable=True
    )
    matched_rfq_item_id = Column(
        Uuid,
        ForeignKey("source_rfq_item.id", ondelete="SET NULL"),
        nullable=True
    )
    match_source = Column(
        SQLEnum('IDENTIFIER', 'NAME_VINTAGE', 'FUZZY', name='customer_po_item_match_source'),
        nullable=True
    )
    status = Column(
        SQLEnum('UNMATCHED', 'MATCHED', name='customer_po_item_status'),
        nullable=False,
        default='UNMATCHED'
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer_po = relationship("CustomerPo", back_populates="items")
