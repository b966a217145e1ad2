"""Quote lookup index for a single RFQ.

Built once per auto-match run from the RFQ items and their priced quotes.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from .ports import RequestItemRef, QuoteRef


def identifier_prefix(lwin: Optional[str], length: int = 7) -> Optional[str]:
    """Coarse LWIN key (LWIN7 by default).

    Args:
        lwin: Canonical wine code, possibly carrying vintage/pack suffixes
        length: Number of leading characters that identify producer + wine

    Returns:
        Prefix string, or None when the code is missing/blank
    """
    if lwin is None:
        return None
    lwin = lwin.strip()
    if not lwin:
        return None
    return lwin[:length]


@dataclass
class QuoteIndex:
    """Lookup structures over the quotes of one RFQ.

    Attributes:
        request_items: RFQ items in RFQ order (fuzzy tie-breaks depend on it)
        quotes_by_identifier_prefix: LWIN7 → quotes whose RFQ item shares it
        quotes_by_request_item: RFQ item id → its quotes
        prefix_length: Prefix length used for the identifier keys
    """
    request_items: List[RequestItemRef]
    quotes_by_identifier_prefix: Dict[str, List[QuoteRef]] = field(default_factory=dict)
    quotes_by_request_item: Dict[UUID, List[QuoteRef]] = field(default_factory=dict)
    prefix_length: int = 7

    def quotes_for_identifier(self, lwin: Optional[str]) -> List[QuoteRef]:
        key = identifier_prefix(lwin, self.prefix_length)
        if key is None:
            return []
        return self.quotes_by_identifier_prefix.get(key, [])

    def quotes_for_item(self, item_id: UUID) -> List[QuoteRef]:
        return self.quotes_by_request_item.get(item_id, [])

    @property
    def quote_count(self) -> int:
        return sum(len(quotes) for quotes in self.quotes_by_request_item.values())


def build_quote_index(
    request_items: Sequence[RequestItemRef],
    quotes: Sequence[QuoteRef],
    prefix_length: int = 7
) -> QuoteIndex:
    """Group quotes by coarse identifier and by owning RFQ item.

    Quotes are expected to be pre-filtered to priced quotes. Quotes that
    reference an item outside request_items are ignored.

    Args:
        request_items: RFQ items of the batch
        quotes: Priced quotes referencing those items
        prefix_length: Identifier prefix length

    Returns:
        QuoteIndex for the batch
    """
    items_by_id = {item.id: item for item in request_items}
    by_prefix: Dict[str, List[QuoteRef]] = defaultdict(list)
    by_item: Dict[UUID, List[QuoteRef]] = defaultdict(list)

    for quote in quotes:
        item = items_by_id.get(quote.item_id)
        if item is None:
            continue

        key = identifier_prefix(item.lwin, prefix_length)
        if key is not None:
            by_prefix[key].append(quote)

        by_item[quote.item_id].append(quote)

    return QuoteIndex(
        request_items=list(request_items),
        quotes_by_identifier_prefix=dict(by_prefix),
        quotes_by_request_item=dict(by_item),
        prefix_length=prefix_length,
    )
