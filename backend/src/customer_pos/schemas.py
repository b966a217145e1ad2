"""Pydantic schemas for the customer PO auto-match API.

ReconciliationReport is both the return value of
ReconciliationService.reconcile() and the response body of
POST /customer-pos/{id}/auto-match.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict


# ============================================================================
# Auto-match report
# ============================================================================

class LineMatchReport(BaseModel):
    """Auto-match outcome for one customer PO item"""
    line_id: UUID
    product_name: str
    matched_quote_id: Optional[UUID] = None
    matched_rfq_item_id: Optional[UUID] = None
    match_source: Optional[str] = None  # IDENTIFIER, NAME_VINTAGE, FUZZY
    buy_price_per_case_usd: Optional[Decimal] = None
    sell_price_per_case_usd: Optional[Decimal] = None
    profit_usd: Optional[Decimal] = None
    profit_margin_percent: Optional[Decimal] = None
    is_losing_item: bool = False
    supplier_name: Optional[str] = None


class ReconciliationSummary(BaseModel):
    """Order-level outcome of an auto-match run"""
    total_items: int
    matched_items: int
    unmatched_items: int
    losing_items: int
    total_sell_usd: Decimal
    total_buy_usd: Decimal
    total_profit_usd: Decimal
    profit_margin_percent: Decimal


class ReconciliationReport(BaseModel):
    """Response of POST /customer-pos/{id}/auto-match"""
    customer_po_id: UUID
    per_line: List[LineMatchReport]
    summary: ReconciliationSummary


# ============================================================================
# Customer PO read/update
# ============================================================================

class CustomerPoItemUpdate(BaseModel):
    """Schema for PATCH /customer-pos/items/{item_id}

    Only fields present in the request are applied. Sending
    matched_quote_id=null clears the match.
    """
    sell_price_per_case_usd: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Price must be >= 0 with at most 2 decimals")
    buy_price_per_case_usd: Optional[Decimal] = Field(None, ge=0, decimal_places=2, description="Price must be >= 0 with at most 2 decimals")
    quantity: Optional[int] = Field(None, gt=0, description="Quantity must be > 0")
    matched_quote_id: Optional[UUID] = Field(None, description="Quote to bind the item to")

    model_config = ConfigDict(extra='forbid')


class CustomerPoItemResponse(BaseModel):
    """Response schema for a customer PO item"""
    id: UUID
    customer_po_id: UUID
    sort_order: int
    product_name: str
    producer: Optional[str] = None
    vintage: Optional[str] = None
    lwin: Optional[str] = None
    quantity: int
    sell_price_per_case_usd: Optional[Decimal] = None
    buy_price_per_case_usd: Optional[Decimal] = None
    sell_line_total_usd: Optional[Decimal] = None
    buy_line_total_usd: Optional[Decimal] = None
    profit_usd: Optional[Decimal] = None
    line_profit_usd: Optional[Decimal] = None
    profit_margin_percent: Optional[Decimal] = None
    is_losing_item: bool
    matched_quote_id: Optional[UUID] = None
    matched_rfq_item_id: Optional[UUID] = None
    match_source: Optional[str] = None
    status: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerPoDetailResponse(BaseModel):
    """Response schema for GET /customer-pos/{id}"""
    id: UUID
    rfq_id: Optional[UUID] = None
    po_number: Optional[str] = None
    customer_name: Optional[str] = None
    status: str
    total_sell_price_usd: Decimal
    total_buy_price_usd: Decimal
    total_profit_usd: Decimal
    profit_margin_percent: Decimal
    item_count: int
    losing_item_count: int
    matched_at: Optional[datetime] = None
    version: int
    items: List[CustomerPoItemResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
