"""
Replenishment Alert Engine.

Pure functions with deterministic behavior. No I/O.

For every stock position at or below its reorder point, proposes an order
quantity of ``max(reorder_quantity, reorder_point - quantity_on_hand)``
and scores how urgent the replenishment is:

    stock / reorder point == 0     -> 100  (out of stock)
    stock / reorder point <= 0.25  ->  90
    stock / reorder point <= 0.5   ->  70
    otherwise                      ->  50
    + min(2 * lead_time_days, 20), capped at 100

An item with a zero reorder point keeps the base score of 50 before the
lead-time bonus.  Alerts are returned most urgent first, ties by SKU.
"""

from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from decimal import Decimal

from erp_engines.tracer import traced_engine

_BASE_URGENCY = 50
_MAX_URGENCY = 100
_MAX_LEAD_TIME_BONUS = 20


@dataclass(frozen=True)
class StockPosition:
    """Stock data of one raw material as needed for replenishment."""

    item_id: Hashable
    sku: str
    name: str
    quantity_on_hand: Decimal
    reorder_point: Decimal
    reorder_quantity: Decimal
    lead_time_days: int = 0


@dataclass(frozen=True)
class ReplenishmentAlert:
    """A recommendation to reorder one item."""

    item_id: Hashable
    sku: str
    name: str
    quantity_on_hand: Decimal
    reorder_point: Decimal
    suggested_order_quantity: Decimal
    lead_time_days: int
    urgency_score: int


def suggested_order_quantity(position: StockPosition) -> Decimal:
    """max(reorder_quantity, reorder_point - quantity_on_hand)."""
    return max(
        position.reorder_quantity,
        position.reorder_point - position.quantity_on_hand,
    )


def urgency_score(position: StockPosition) -> int:
    """Urgency from 0 to 100; higher means reorder sooner."""
    score = _BASE_URGENCY
    if position.reorder_point > 0:
        ratio = position.quantity_on_hand / position.reorder_point
        if ratio <= 0:
            score = 100
        elif ratio <= Decimal("0.25"):
            score = 90
        elif ratio <= Decimal("0.5"):
            score = 70

    if position.lead_time_days > 0:
        score += min(position.lead_time_days * 2, _MAX_LEAD_TIME_BONUS)

    return min(score, _MAX_URGENCY)


def needs_replenishment(position: StockPosition) -> bool:
    return position.quantity_on_hand <= position.reorder_point


@traced_engine("replenishment", "1.0")
def compute_alerts(positions: Iterable[StockPosition]) -> list[ReplenishmentAlert]:
    """Alerts for all positions at or below their reorder point, most urgent first."""
    alerts = [
        ReplenishmentAlert(
            item_id=position.item_id,
            sku=position.sku,
            name=position.name,
            quantity_on_hand=position.quantity_on_hand,
            reorder_point=position.reorder_point,
            suggested_order_quantity=suggested_order_quantity(position),
            lead_time_days=position.lead_time_days,
            urgency_score=urgency_score(position),
        )
        for position in positions
        if needs_replenishment(position)
    ]
    alerts.sort(key=lambda alert: (-alert.urgency_score, alert.sku))
    return alerts
