"""Profit calculation for customer PO items and whole POs.

All money is Decimal and every rounding goes through round2()
(two places, half away from zero) so totals are reproducible.

Examples:
    calculate_line_profit(Decimal("100"), Decimal("70"), 2)
    # profit_usd=30.00, profit_margin_percent=30.00, is_losing_item=False,
    # sell_line_total_usd=200.00, buy_line_total_usd=140.00, line_profit_usd=60.00
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Coerce a numeric value to Decimal (floats go through str)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round to cents, halves away from zero.

    Args:
        value: Amount to round

    Returns:
        Decimal with exactly two decimal places
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineProfit:
    """Profit fields of one customer PO item.

    profit_usd and profit_margin_percent are per case; the *_line_total
    fields and line_profit_usd are multiplied by quantity.
    """
    profit_usd: Optional[Decimal]
    profit_margin_percent: Optional[Decimal]
    is_losing_item: bool
    sell_line_total_usd: Optional[Decimal]
    buy_line_total_usd: Optional[Decimal]
    line_profit_usd: Optional[Decimal]


def calculate_line_profit(
    sell_price: Optional[Number],
    buy_price: Optional[Number],
    quantity: int = 1
) -> LineProfit:
    """Calculate profit for a single item.

    Args:
        sell_price: Sell price per case (None if not priced)
        buy_price: Buy price per case from the matched quote (None if unmatched)
        quantity: Quantity in cases

    Returns:
        LineProfit; profit fields are None unless both prices are known
    """
    sell = to_decimal(sell_price)
    buy = to_decimal(buy_price)

    sell_line_total = round2(sell * quantity) if sell is not None else None
    buy_line_total = round2(buy * quantity) if buy is not None else None

    if sell is None or buy is None:
        return LineProfit(
            profit_usd=None,
            profit_margin_percent=None,
            is_losing_item=False,
            sell_line_total_usd=sell_line_total,
            buy_line_total_usd=buy_line_total,
            line_profit_usd=None,
        )

    profit = round2(sell - buy)
    margin = round2(profit / sell * HUNDRED) if sell > 0 else ZERO

    return LineProfit(
        profit_usd=profit,
        profit_margin_percent=margin,
        is_losing_item=profit < 0,
        sell_line_total_usd=sell_line_total,
        buy_line_total_usd=buy_line_total,
        line_profit_usd=round2(profit * quantity),
    )


class PricedLine(Protocol):
    """Anything carrying the item fields the totals need (ORM row or snapshot)."""
    quantity: int
    sell_price_per_case_usd: Optional[Decimal]
    buy_price_per_case_usd: Optional[Decimal]
    is_losing_item: bool


@dataclass(frozen=True)
class OrderTotals:
    """Order-level profitability for a customer PO."""
    total_sell_usd: Decimal
    total_buy_usd: Decimal
    total_profit_usd: Decimal
    profit_margin_percent: Decimal
    item_count: int
    losing_item_count: int


def recalculate_order_totals(lines: Iterable[PricedLine]) -> OrderTotals:
    """Recompute order totals from the complete set of items.

    Unpriced sell prices and unmatched buy prices count as zero, so
    unmatched items add revenue without cost and inflate the margin.

    Args:
        lines: Every item of the PO, matched and unmatched

    Returns:
        OrderTotals
    """
    total_sell = ZERO
    total_buy = ZERO
    item_count = 0
    losing_count = 0

    for line in lines:
        total_sell += (to_decimal(line.sell_price_per_case_usd) or ZERO) * line.quantity
        total_buy += (to_decimal(line.buy_price_per_case_usd) or ZERO) * line.quantity
        item_count += 1
        if line.is_losing_item:
            losing_count += 1

    total_profit = round2(total_sell - total_buy)
    margin = round2(total_profit / total_sell * HUNDRED) if total_sell > 0 else ZERO

    return OrderTotals(
        total_sell_usd=round2(total_sell),
        total_buy_usd=round2(total_buy),
        total_profit_usd=total_profit,
        profit_margin_percent=margin,
        item_count=item_count,
        losing_item_count=losing_count,
    )
