"""
Tests for the invoice and credit-note calculation engine.

Covers:
- Line VAT and totals (unrounded lines, totals rounded once)
- Line discounts applied before VAT
- Input validation
- Credit validation: partial, cumulative, per-component caps
- Full-credit detection with and without tolerance
"""

from decimal import Decimal

import pytest

from erp_engines.invoicing import (
    CreditableLine,
    CreditRequest,
    InvoiceLineInput,
    apply_credit,
    compute_line_net,
    compute_line_vat,
    compute_totals,
    is_fully_credited,
    price_line,
    validate_credit_request,
)
from erp_kernel.exceptions import OverCreditError


def line(qty: str, price: str, vat: str = "24") -> InvoiceLineInput:
    return InvoiceLineInput("Item", Decimal(qty), Decimal(price), Decimal(vat))


class TestLinePricing:

    def test_two_times_hundred_at_24_percent(self):
        priced = price_line(line("2", "100"))
        assert priced.line_total == Decimal("200")
        assert priced.line_vat == Decimal("48")
        assert priced.gross == Decimal("248")

    def test_vat_kept_unrounded(self):
        assert compute_line_vat(Decimal("33.33"), Decimal("24")) == Decimal("7.9992")

    def test_zero_rate(self):
        assert price_line(line("3", "10", "0")).line_vat == Decimal("0")

    @pytest.mark.parametrize(
        "qty, price, vat",
        [("0", "10", "24"), ("-1", "10", "24"), ("1", "-0.01", "24"), ("1", "10", "101"), ("1", "10", "-1")],
    )
    def test_invalid_input(self, qty, price, vat):
        with pytest.raises(ValueError):
            line(qty, price, vat)


class TestLineDiscounts:

    def test_percent_discount_before_vat(self):
        priced = price_line(
            InvoiceLineInput("Item", Decimal("2"), Decimal("100"), Decimal("24"), discount_percent=Decimal("10"))
        )
        assert priced.line_total == Decimal("180")
        assert priced.line_vat == Decimal("43.2")
        assert priced.discount_percent == Decimal("10")

    def test_amount_discount_before_vat(self):
        priced = price_line(
            InvoiceLineInput("Item", Decimal("2"), Decimal("100"), Decimal("24"), discount_amount=Decimal("50"))
        )
        assert priced.line_total == Decimal("150")
        assert priced.line_vat == Decimal("36")

    def test_amount_beyond_line_floors_at_zero(self):
        assert compute_line_net(Decimal("1"), Decimal("10"), discount_amount=Decimal("25")) == Decimal("0")

    def test_no_discount_is_quantity_times_price(self):
        assert compute_line_net(Decimal("3"), Decimal("33.33")) == Decimal("99.99")

    @pytest.mark.parametrize(
        "percent, amount",
        [("-1", "0"), ("100.01", "0"), ("0", "-0.01"), ("5", "5")],
    )
    def test_invalid_discount(self, percent, amount):
        with pytest.raises(ValueError):
            InvoiceLineInput(
                "Item", Decimal("1"), Decimal("10"), Decimal("24"),
                discount_percent=Decimal(percent), discount_amount=Decimal(amount),
            )


class TestTotals:

    def test_rounded_after_summing(self):
        # Each line's VAT is 0.0024; rounding per line would give 0.00 each.
        lines = [price_line(line("1", "0.01")) for _ in range(3)]
        totals = compute_totals(lines)
        assert totals.total_amount == Decimal("0.03")
        assert totals.total_vat == Decimal("0.01")

    def test_half_up(self):
        totals = compute_totals([price_line(line("1", "0.125", "0"))])
        assert totals.total_amount == Decimal("0.13")

    def test_empty(self):
        totals = compute_totals([])
        assert totals.total_amount == Decimal("0")
        assert totals.total_gross == Decimal("0")

    def test_mixed_rates(self):
        totals = compute_totals([price_line(line("2", "100", "24")), price_line(line("1", "50", "10"))])
        assert totals.total_amount == Decimal("250.00")
        assert totals.total_vat == Decimal("53.00")
        assert totals.total_gross == Decimal("303.00")


@pytest.fixture
def originals():
    return {
        "L1": CreditableLine("L1", Decimal("200"), Decimal("48")),
        "L2": CreditableLine("L2", Decimal("50"), Decimal("12")),
    }


class TestCreditValidation:

    def test_partial_credit_ok(self, originals):
        validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("100"), Decimal("24"))])

    def test_full_credit_ok(self, originals):
        validate_credit_request(
            "INV", originals,
            [CreditRequest("L1", Decimal("200"), Decimal("48")), CreditRequest("L2", Decimal("50"), Decimal("12"))],
        )

    def test_amount_over_remaining(self, originals):
        with pytest.raises(OverCreditError) as exc_info:
            validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("200.01"), Decimal("0"))])
        assert exc_info.value.component == "amount"
        assert exc_info.value.invoice_item_id == "L1"
        assert exc_info.value.remaining == Decimal("200")

    def test_vat_capped_separately(self, originals):
        with pytest.raises(OverCreditError) as exc_info:
            validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("1"), Decimal("48.01"))])
        assert exc_info.value.component == "vat"

    def test_prior_credits_reduce_remaining(self):
        originals = {"L1": CreditableLine("L1", Decimal("200"), Decimal("48"), Decimal("150"), Decimal("36"))}
        validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("50"), Decimal("12"))])
        with pytest.raises(OverCreditError):
            validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("51"), Decimal("0"))])

    def test_requests_for_same_line_are_summed(self, originals):
        with pytest.raises(OverCreditError):
            validate_credit_request(
                "INV", originals,
                [CreditRequest("L2", Decimal("30"), Decimal("0")), CreditRequest("L2", Decimal("30"), Decimal("0"))],
            )

    def test_unknown_line(self, originals):
        with pytest.raises(ValueError):
            validate_credit_request("INV", originals, [CreditRequest("NOPE", Decimal("1"), Decimal("0"))])

    def test_all_zero_rejected(self, originals):
        with pytest.raises(ValueError):
            validate_credit_request("INV", originals, [CreditRequest("L1", Decimal("0"), Decimal("0"))])

    def test_empty_rejected(self, originals):
        with pytest.raises(ValueError):
            validate_credit_request("INV", originals, [])

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            CreditRequest("L1", Decimal("-1"), Decimal("0"))


class TestFullyCredited:

    def test_after_full_credit(self, originals):
        credited = apply_credit(
            originals,
            [CreditRequest("L1", Decimal("200"), Decimal("48")), CreditRequest("L2", Decimal("50"), Decimal("12"))],
        )
        assert is_fully_credited(credited.values())

    def test_partial_is_not_full(self, originals):
        credited = apply_credit(originals, [CreditRequest("L1", Decimal("200"), Decimal("48"))])
        assert not is_fully_credited(credited.values())
        assert credited["L2"].remaining_amount == Decimal("50")

    def test_vat_remaining_keeps_line_open(self):
        lines = [CreditableLine("L1", Decimal("200"), Decimal("48"), Decimal("200"), Decimal("47.99"))]
        assert not is_fully_credited(lines)
        assert is_fully_credited(lines, tolerance=Decimal("0.01"))
