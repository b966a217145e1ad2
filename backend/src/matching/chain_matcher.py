"""Strategy chain matcher binding customer PO items to RFQ quotes.

Pipeline per item:
1. Identifier (LWIN7) match
2. Name + vintage match
3. Fuzzy name match
First strategy that returns a quote wins; otherwise the item is unmatched.
"""

from typing import List, Optional, Sequence

from observability.logging_config import get_logger

from .index import QuoteIndex
from .ports import MatchStrategyPort, MatchResult, MatchingConfig, DemandLineRef, MatcherError
from .strategies import default_strategies

logger = get_logger(__name__)


class StrategyChainMatcher:
    """Run the matching strategies for each customer PO item in priority order.

    Matching is pure: it reads the QuoteIndex and never touches the
    database, so results only depend on the item and the index.
    """

    def __init__(
        self,
        index: QuoteIndex,
        config: Optional[MatchingConfig] = None,
        strategies: Optional[Sequence[MatchStrategyPort]] = None
    ):
        """Initialize chain matcher.

        Args:
            index: Quote index for the PO's RFQ
            config: Matching thresholds (defaults when omitted)
            strategies: Override of the strategy order (tests)
        """
        self.index = index
        self.config = config or MatchingConfig()
        self.strategies = list(strategies) if strategies is not None else default_strategies(index, self.config)

    def match(self, line: DemandLineRef) -> MatchResult:
        """Match a single customer PO item.

        Args:
            line: Customer PO item snapshot

        Returns:
            MatchResult (unmatched when no strategy succeeds)

        Raises:
            MatcherError: If a strategy fails unexpectedly
        """
        try:
            for strategy in self.strategies:
                result = strategy.match(line)
                if result is not None:
                    logger.debug(
                        f"Item {line.id} matched via {result.source.value}",
                        extra={"line_id": str(line.id), "quote_id": str(result.quote.id)}
                    )
                    return result
        except Exception as e:
            raise MatcherError(f"Matching failed for item {line.id}: {str(e)}") from e

        return MatchResult.unmatched(line.id)

    def match_batch(self, lines: Sequence[DemandLineRef]) -> List[MatchResult]:
        """Match multiple items.

        Args:
            lines: Customer PO item snapshots

        Returns:
            List of match results (same order as lines)
        """
        return [self.match(line) for line in lines]
