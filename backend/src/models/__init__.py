"""SQLAlchemy models for wine-trade sourcing"""

from .base import Base
from .rfq import Partner, Rfq, RfqItem, RfqQuote
from .customer_po import CustomerPo, CustomerPoItem

__all__ = [
    "Base",
    "Partner",
    "Rfq",
    "RfqItem",
    "RfqQuote",
    "CustomerPo",
    "CustomerPoItem",
]
