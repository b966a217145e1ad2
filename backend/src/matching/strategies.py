"""Matching strategies for customer PO items.

Strategies are tried in priority order by StrategyChainMatcher:

1. IdentifierStrategy   LWIN7 lookup, cheapest quote across the prefix
2. NameVintageStrategy  similarity > 0.7 with compatible vintage,
                        cheapest quote across ALL qualifying RFQ items
3. FuzzyStrategy        highest similarity > 0.5 (first wins on ties),
                        cheapest quote of that single RFQ item

Strategy 2 optimizes on price, strategy 3 on similarity first. Both are
kept that way on purpose; see tests/unit/matching/test_strategies.py.
"""

from functools import reduce
from itertools import chain
from typing import Iterable, Optional, Tuple

from .index import QuoteIndex
from .normalizer import string_similarity
from .ports import (
    MatchStrategyPort, MatchSource, MatchResult, MatchingConfig,
    DemandLineRef, RequestItemRef, QuoteRef
)


def cheapest_quote(quotes: Iterable[QuoteRef]) -> Optional[QuoteRef]:
    """Lowest cost quote, ties broken by lowest quote id.

    Args:
        quotes: Candidate quotes

    Returns:
        Cheapest quote, or None for an empty input
    """
    return min(
        quotes,
        key=lambda quote: (quote.cost_price_per_case_usd, str(quote.id)),
        default=None
    )


def vintages_compatible(line_vintage: Optional[str], item_vintage: Optional[str]) -> bool:
    """A missing vintage on either side matches any vintage."""
    line_vintage = (line_vintage or "").strip()
    item_vintage = (item_vintage or "").strip()
    if not line_vintage or not item_vintage:
        return True
    return line_vintage == item_vintage


class IdentifierStrategy(MatchStrategyPort):
    """Match on the coarse LWIN prefix."""

    source = MatchSource.IDENTIFIER

    def __init__(self, index: QuoteIndex):
        self.index = index

    def match(self, line: DemandLineRef) -> Optional[MatchResult]:
        quote = cheapest_quote(self.index.quotes_for_identifier(line.lwin))
        if quote is None:
            return None
        return MatchResult(line_id=line.id, quote=quote, source=self.source)


class NameVintageStrategy(MatchStrategyPort):
    """Match on product name similarity with a compatible vintage."""

    source = MatchSource.NAME_VINTAGE

    def __init__(self, index: QuoteIndex, threshold: float = 0.7):
        self.index = index
        self.threshold = threshold

    def candidates(self, line: DemandLineRef) -> Tuple[Tuple[RequestItemRef, float], ...]:
        """RFQ items passing the name and vintage test, with their similarity."""
        scored = (
            (item, string_similarity(line.product_name, item.product_name))
            for item in self.index.request_items
        )
        return tuple(
            (item, score)
            for item, score in scored
            if score > self.threshold and vintages_compatible(line.vintage, item.vintage)
        )

    def match(self, line: DemandLineRef) -> Optional[MatchResult]:
        candidates = self.candidates(line)
        quote = cheapest_quote(chain.from_iterable(
            self.index.quotes_for_item(item.id) for item, _ in candidates
        ))
        if quote is None:
            return None

        similarity = next(score for item, score in candidates if item.id == quote.item_id)
        return MatchResult(
            line_id=line.id,
            quote=quote,
            source=self.source,
            similarity=similarity
        )


class FuzzyStrategy(MatchStrategyPort):
    """Match on the most similar RFQ item, ignoring vintage."""

    source = MatchSource.FUZZY

    def __init__(self, index: QuoteIndex, threshold: float = 0.5):
        self.index = index
        self.threshold = threshold

    def best_item(self, line: DemandLineRef) -> Optional[Tuple[RequestItemRef, float]]:
        """RFQ item with the strictly highest similarity above threshold.

        Items without quotes never win. On equal similarity the item seen
        first (RFQ order) is kept.
        """
        def keep_better(best, item):
            score = string_similarity(line.product_name, item.product_name)
            best_score = best[1] if best else self.threshold
            if score > best_score:
                return item, score
            return best

        quoted_items = (
            item for item in self.index.request_items
            if self.index.quotes_for_item(item.id)
        )
        return reduce(keep_better, quoted_items, None)

    def match(self, line: DemandLineRef) -> Optional[MatchResult]:
        best = self.best_item(line)
        if best is None:
            return None

        item, similarity = best
        quote = cheapest_quote(self.index.quotes_for_item(item.id))
        return MatchResult(
            line_id=line.id,
            quote=quote,
            source=self.source,
            similarity=similarity
        )


def default_strategies(index: QuoteIndex, config: MatchingConfig):
    """Strategies in priority order."""
    return [
        IdentifierStrategy(index),
        NameVintageStrategy(index, threshold=config.name_vintage_threshold),
        FuzzyStrategy(index, threshold=config.fuzzy_threshold),
    ]
