"""Matching module for customer PO auto-match.

Binds customer PO items to supplier quotes using, in order:
- LWIN7 identifier lookup
- Product name + vintage similarity
- Fuzzy product name similarity
"""

from .ports import (
    MatchSource,
    MatchResult,
    MatchingConfig,
    MatchStrategyPort,
    MatcherError,
    RequestItemRef,
    QuoteRef,
    DemandLineRef,
)
from .normalizer import normalize_wine_name, string_similarity
from .index import QuoteIndex, build_quote_index, identifier_prefix
from .strategies import IdentifierStrategy, NameVintageStrategy, FuzzyStrategy, cheapest_quote
from .chain_matcher import StrategyChainMatcher

__all__ = [
    "MatchSource",
    "MatchResult",
    "MatchingConfig",
    "MatchStrategyPort",
    "MatcherError",
    "RequestItemRef",
    "QuoteRef",
    "DemandLineRef",
    "normalize_wine_name",
    "string_similarity",
    "QuoteIndex",
    "build_quote_index",
    "identifier_prefix",
    "IdentifierStrategy",
    "NameVintageStrategy",
    "FuzzyStrategy",
    "cheapest_quote",
    "StrategyChainMatcher",
]
