"""
Tests for the sales margin engine.
"""

from decimal import Decimal

from erp_engines.margin import MarginLine, calculate_margin


def test_margin_over_lines():
    result = calculate_margin([
        MarginLine(Decimal("3"), Decimal("100"), Decimal("55.60")),
        MarginLine(Decimal("10"), Decimal("2"), Decimal("0.5")),
    ])
    assert result.total_revenue == Decimal("320.00")
    assert result.total_cost == Decimal("171.80")
    assert result.total_margin == Decimal("148.20")
    assert result.margin_percent == Decimal("46.31")
    assert result.line_count == 2


def test_negative_margin():
    result = calculate_margin([MarginLine(Decimal("1"), Decimal("10"), Decimal("15"))])
    assert result.total_margin == Decimal("-5.00")
    assert result.margin_percent == Decimal("-50.00")


def test_no_revenue():
    result = calculate_margin([])
    assert result.total_revenue == Decimal("0")
    assert result.margin_percent == Decimal("0")
    assert result.line_count == 0


def test_discounted_revenue():
    result = calculate_margin([
        MarginLine(Decimal("3"), Decimal("100"), Decimal("20"), discount_percent=Decimal("10")),
        MarginLine(Decimal("1"), Decimal("50"), Decimal("10"), discount_amount=Decimal("5")),
    ])
    assert result.total_revenue == Decimal("315.00")
    assert result.total_cost == Decimal("70.00")
    assert result.total_margin == Decimal("245.00")
    assert result.margin_percent == Decimal("77.78")
