"""SQLAlchemy adapter for the quote source port.

Only quotes with a cost price are returned; unpriced quotes never take
part in auto-matching.
"""

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from customer_pos.errors import db_errors_as_transient
from customer_pos.ports import QuoteSourcePort
from matching.ports import RequestItemRef, QuoteRef
from models.rfq import Partner, RfqItem, RfqQuote


def _to_quote(quote: RfqQuote) -> QuoteRef:
    return QuoteRef(
        id=quote.id,
        item_id=quote.item_id,
        partner_id=quote.partner_id,
        cost_price_per_case_usd=quote.cost_price_per_case_usd,
        quoted_vintage=quote.quoted_vintage,
    )


class SqlAlchemyQuoteSource(QuoteSourcePort):
    """Quote source reading the RFQ tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_request_items(self, rfq_id: UUID) -> List[RequestItemRef]:
        with db_errors_as_transient("Loading RFQ items"):
            items = (
                self.db.query(RfqItem)
                .filter(RfqItem.rfq_id == rfq_id)
                .order_by(RfqItem.sort_order, RfqItem.created_at, RfqItem.id)
                .all()
            )
        return [
            RequestItemRef(
                id=item.id,
                product_name=item.product_name,
                producer=item.producer,
                vintage=item.vintage,
                lwin=item.lwin,
            )
            for item in items
        ]

    def get_quotes(self, item_ids: Iterable[UUID]) -> List[QuoteRef]:
        item_ids = list(item_ids)
        if not item_ids:
            return []

        with db_errors_as_transient("Loading RFQ quotes"):
            quotes = (
                self.db.query(RfqQuote)
                .filter(
                    RfqQuote.item_id.in_(item_ids),
                    RfqQuote.cost_price_per_case_usd.isnot(None)
                )
                .order_by(RfqQuote.created_at, RfqQuote.id)
                .all()
            )
        return [_to_quote(quote) for quote in quotes]

    def get_quote(self, quote_id: UUID) -> Optional[QuoteRef]:
        with db_errors_as_transient("Loading RFQ quote"):
            quote = self.db.get(RfqQuote, quote_id)
        if quote is None or quote.cost_price_per_case_usd is None:
            return None
        return _to_quote(quote)

    def get_supplier_names(self, partner_ids: Iterable[UUID]) -> Dict[UUID, str]:
        partner_ids = list(set(partner_ids))
        if not partner_ids:
            return {}

        with db_errors_as_transient("Loading partners"):
            rows = (
                self.db.query(Partner.id, Partner.business_name)
                .filter(Partner.id.in_(partner_ids))
                .all()
            )
        return {partner_id: name for partner_id, name in rows}
