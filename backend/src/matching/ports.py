"""Matching ports and value types for the customer PO auto-match engine.

The matcher works on plain, immutable snapshots of RFQ items, quotes and
customer PO items so it can run without a database session.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, List
from uuid import UUID


class MatchSource(str, Enum):
    """Which strategy bound a customer PO item to a quote."""
    IDENTIFIER = "IDENTIFIER"
    NAME_VINTAGE = "NAME_VINTAGE"
    FUZZY = "FUZZY"
    NONE = "NONE"

    def to_column(self) -> Optional[str]:
        """Value stored on the item row (NULL when nothing matched)."""
        return None if self is MatchSource.NONE else self.value


@dataclass(frozen=True)
class RequestItemRef:
    """RFQ item as seen by the matcher.

    Attributes:
        id: RFQ item UUID
        product_name: Wine name as requested
        producer: Producer name (informational)
        vintage: Vintage year as text, None when non-vintage/unknown
        lwin: Canonical wine code, None when not identified
    """
    id: UUID
    product_name: str
    producer: Optional[str] = None
    vintage: Optional[str] = None
    lwin: Optional[str] = None


@dataclass(frozen=True)
class QuoteRef:
    """Priced supplier quote for one RFQ item."""
    id: UUID
    item_id: UUID
    partner_id: UUID
    cost_price_per_case_usd: Decimal
    quoted_vintage: Optional[str] = None


@dataclass(frozen=True)
class DemandLineRef:
    """Customer PO item fields the matcher and profit calculator need."""
    id: UUID
    product_name: str
    quantity: int
    vintage: Optional[str] = None
    lwin: Optional[str] = None
    sell_price_per_case_usd: Optional[Decimal] = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome of running the strategy chain for one customer PO item.

    Attributes:
        line_id: Customer PO item UUID
        quote: Winning quote (None if no strategy succeeded)
        source: Strategy that produced the match (NONE if unmatched)
        similarity: Name similarity behind a NAME_VINTAGE/FUZZY match
    """
    line_id: UUID
    quote: Optional[QuoteRef]
    source: MatchSource
    similarity: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.quote is not None

    @property
    def rfq_item_id(self) -> Optional[UUID]:
        return self.quote.item_id if self.quote else None

    @classmethod
    def unmatched(cls, line_id: UUID) -> "MatchResult":
        return cls(line_id=line_id, quote=None, source=MatchSource.NONE)


@dataclass(frozen=True)
class MatchingConfig:
    """Tunable thresholds for the strategy chain."""
    identifier_prefix_length: int = 7
    name_vintage_threshold: float = 0.7
    fuzzy_threshold: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> "MatchingConfig":
        return cls(
            identifier_prefix_length=settings.MATCH_IDENTIFIER_PREFIX_LENGTH,
            name_vintage_threshold=settings.MATCH_NAME_VINTAGE_THRESHOLD,
            fuzzy_threshold=settings.MATCH_FUZZY_THRESHOLD,
        )


class MatchStrategyPort(ABC):
    """Port interface for a single matching strategy.

    Implementations:
    - IdentifierStrategy: LWIN7 prefix lookup, cheapest quote wins
    - NameVintageStrategy: name similarity + compatible vintage, cheapest quote wins
    - FuzzyStrategy: best name similarity, then cheapest quote of that item
    """

    source: MatchSource

    @abstractmethod
    def match(self, line: DemandLineRef) -> Optional[MatchResult]:
        """Try to bind a customer PO item to a quote.

        Args:
            line: Customer PO item snapshot

        Returns:
            MatchResult if this strategy found a quote, else None
        """
        pass


class MatcherError(Exception):
    """Exception raised for matching errors."""
    pass
