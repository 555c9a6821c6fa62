"""
Tests for replenishment alerts.

Covers:
- Threshold (at or below reorder point)
- Suggested quantity = max(reorder_quantity, reorder_point - on hand)
- Urgency scoring and ordering
"""

from decimal import Decimal

import pytest

from erp_engines.replenishment import (
    StockPosition,
    compute_alerts,
    needs_replenishment,
    suggested_order_quantity,
    urgency_score,
)


def position(sku: str, qoh: str, rop: str, roq: str = "0", lead: int = 0) -> StockPosition:
    return StockPosition(
        item_id=sku,
        sku=sku,
        name=sku.title(),
        quantity_on_hand=Decimal(qoh),
        reorder_point=Decimal(rop),
        reorder_quantity=Decimal(roq),
        lead_time_days=lead,
    )


class TestThreshold:

    def test_at_reorder_point(self):
        assert needs_replenishment(position("A", "10", "10"))

    def test_above_reorder_point(self):
        assert not needs_replenishment(position("A", "10.01", "10"))


class TestSuggestedQuantity:

    def test_reorder_quantity_wins(self):
        assert suggested_order_quantity(position("A", "8", "10", "50")) == Decimal("50")

    def test_gap_wins(self):
        assert suggested_order_quantity(position("A", "0", "100", "20")) == Decimal("100")


class TestUrgency:

    @pytest.mark.parametrize(
        "qoh, expected",
        [("0", 100), ("2.5", 90), ("5", 70), ("8", 50)],
    )
    def test_ratio_bands(self, qoh, expected):
        assert urgency_score(position("A", qoh, "10")) == expected

    def test_lead_time_bonus_capped(self):
        assert urgency_score(position("A", "8", "10", lead=3)) == 56
        assert urgency_score(position("A", "8", "10", lead=30)) == 70

    def test_score_capped_at_100(self):
        assert urgency_score(position("A", "0", "10", lead=10)) == 100

    def test_zero_reorder_point(self):
        assert urgency_score(position("A", "0", "0")) == 50


def test_compute_alerts_sorted_by_urgency_then_sku():
    alerts = compute_alerts([
        position("B", "8", "10"),
        position("OK", "50", "10"),
        position("A", "8", "10"),
        position("Z", "0", "10", "25"),
    ])
    assert [a.sku for a in alerts] == ["Z", "A", "B"]
    assert alerts[0].suggested_order_quantity == Decimal("25")
    assert alerts[0].urgency_score == 100
