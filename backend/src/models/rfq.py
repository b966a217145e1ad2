"""RFQ models for supplier sourcing

An RFQ (request for quote) is the request batch a customer PO is reconciled
against. Each RFQ carries the wanted wines as RfqItem rows; suppliers
(Partner rows) answer with RfqQuote rows. These tables are written by the
upstream RFQ process and only read by the auto-match engine.
"""

from uuid import uuid4

from sqlalchemy import Column, Text, String, Integer, Numeric, ForeignKey, DateTime, Index, Uuid
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Partner(Base):
    """Supplier (wine partner) that submits quotes against RFQ items."""

    __tablename__ = "partner"

    id = Column(Uuid, primary_key=True, default=uuid4)
    business_name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    quotes = relationship("RfqQuote", back_populates="partner")


class Rfq(Base):
    """Request batch grouping the items sent out to suppliers for pricing."""

    __tablename__ = "source_rfq"

    id = Column(Uuid, primary_key=True, default=uuid4)
    rfq_number = Column(String(32), nullable=True)
    name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship(
        "RfqItem",
        back_populates="rfq",
        cascade="all, delete-orphan",
        order_by="RfqItem.sort_order"
    )


class RfqItem(Base):
    """Wanted product within an RFQ.

    lwin is the canonical wine code (LWIN). Its first seven characters
    (LWIN7) identify producer and wine independent of vintage and pack size.
    """

    __tablename__ = "source_rfq_item"
    __table_args__ = (
        Index("ix_source_rfq_item_rfq_id", "rfq_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    rfq_id = Column(Uuid, ForeignKey("source_rfq.id", ondelete="CASCADE"), nullable=False)
    product_name = Column(Text, nullable=False)
    producer = Column(Text, nullable=True)
    vintage = Column(String(16), nullable=True)
    lwin = Column(String(32), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    rfq = relationship("Rfq", back_populates="items")
    quotes = relationship("RfqQuote", back_populates="item", cascade="all, delete-orphan")


class RfqQuote(Base):
    """Supplier price for a single RFQ item.

    Quotes without a cost price (declined or not yet priced) are never
    eligible for auto-matching.
    """

    __tablename__ = "source_rfq_quote"
    __table_args__ = (
        Index("ix_source_rfq_quote_item_id", "item_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    item_id = Column(Uuid, ForeignKey("source_rfq_item.id", ondelete="CASCADE"), nullable=False)
    partner_id = Column(Uuid, ForeignKey("partner.id", ondelete="RESTRICT"), nullable=False)
    cost_price_per_case_usd = Column(Numeric(12, 2), nullable=True)
    quoted_vintage = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    item = relationship("RfqItem", back_populates="quotes")
    partner = relationship("Partner", back_populates="quotes")
