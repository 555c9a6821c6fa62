"""
Sales Margin Engine.

Pure functions. No I/O.

margin = revenue - cost, where revenue is quantity * unit price less the
line discount and cost is quantity * unit cost (a raw material's unit
cost, or a manufactured item's rolled-up BOM cost including labour).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from erp_engines.invoicing import compute_line_net
from erp_kernel.db.types import HUNDRED, ZERO, round_money


@dataclass(frozen=True)
class MarginLine:
    quantity: Decimal
    unit_price: Decimal
    unit_cost: Decimal
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO


@dataclass(frozen=True)
class MarginResult:
    total_revenue: Decimal
    total_cost: Decimal
    total_margin: Decimal
    margin_percent: Decimal
    line_count: int


def calculate_margin(lines: Iterable[MarginLine]) -> MarginResult:
    """
    Aggregate revenue, cost and margin over lines.

    Amounts are rounded to cents; margin_percent to two decimals and is
    zero when there is no revenue.
    """
    revenue = ZERO
    cost = ZERO
    count = 0
    for line in lines:
        revenue += compute_line_net(
            line.quantity, line.unit_price, line.discount_percent, line.discount_amount,
        )
        cost += line.quantity * line.unit_cost
        count += 1

    margin = revenue - cost
    percent = margin / revenue * HUNDRED if revenue > 0 else ZERO
    return MarginResult(
        total_revenue=round_money(revenue),
        total_cost=round_money(cost),
        total_margin=round_money(margin),
        margin_percent=round_money(percent),
        line_count=count,
    )
