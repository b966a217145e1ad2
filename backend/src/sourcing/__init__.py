"""Read side of the RFQ process (items, priced quotes, suppliers)."""

from .quote_source import SqlAlchemyQuoteSource

__all__ = ["SqlAlchemyQuoteSource"]
