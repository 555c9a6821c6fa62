"""
Invoice and Credit-Note Calculation Engine.

Pure functions with deterministic behavior. No I/O.

Computes invoice line amounts and VAT, aggregates invoice totals, and
validates credit note requests against what remains creditable on each
original invoice line.

Line discounts:
    A line carries at most one discount, either a percentage of
    quantity * unit_price or a fixed amount.  The discount is applied
    before VAT; a fixed amount larger than the line floors the net at
    zero.  Without a discount, line_total = quantity * unit_price.

Rounding rules:
    - Line values are kept unrounded (full Decimal precision).
    - Totals are the sum of unrounded line values, rounded once
      (ROUND_HALF_UP, 2 places by default).
    - Credit caps are checked against unrounded remaining amounts, with
      net and VAT bounded separately.  A request that exceeds the cap by
      any amount, however small, is rejected; nothing is clamped.

Usage:
    from erp_engines.invoicing import InvoiceLineInput, price_line

    line = price_line(InvoiceLineInput("Widget", Decimal("2"), Decimal("100"), Decimal("24")))
    line.line_total  # Decimal("200")
    line.line_vat    # Decimal("48")
"""

from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from erp_engines.tracer import traced_engine
from erp_kernel.db.types import HUNDRED, ZERO, round_money
from erp_kernel.exceptions import OverCreditError


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class InvoiceLineInput:
    """A line to be invoiced."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate_percent: Decimal
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price cannot be negative, got {self.unit_price}")
        if not ZERO <= self.vat_rate_percent <= HUNDRED:
            raise ValueError(
                f"vat_rate_percent must be between 0 and 100, got {self.vat_rate_percent}"
            )
        validate_discount(self.discount_percent, self.discount_amount)


@dataclass(frozen=True)
class PricedLine:
    """An invoice line with unrounded net and VAT amounts."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate_percent: Decimal
    line_total: Decimal
    line_vat: Decimal
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return self.line_total + self.line_vat


@dataclass(frozen=True)
class InvoiceTotals:
    """Rounded aggregate amounts of an invoice (or credit note)."""

    total_amount: Decimal
    total_vat: Decimal

    @property
    def total_gross(self) -> Decimal:
        return self.total_amount + self.total_vat


@dataclass(frozen=True)
class CreditableLine:
    """
    An original invoice line together with what has already been credited.

    ``credited_amount`` / ``credited_vat`` are the sums over all previous
    credit notes for this line.
    """

    line_id: Hashable
    line_total: Decimal
    line_vat: Decimal
    credited_amount: Decimal = ZERO
    credited_vat: Decimal = ZERO

    @property
    def remaining_amount(self) -> Decimal:
        return self.line_total - self.credited_amount

    @property
    def remaining_vat(self) -> Decimal:
        return self.line_vat - self.credited_vat


@dataclass(frozen=True)
class CreditRequest:
    """Amounts requested to be credited against one original invoice line."""

    line_id: Hashable
    credit_amount: Decimal
    credit_vat_amount: Decimal

    def __post_init__(self) -> None:
        if self.credit_amount < 0:
            raise ValueError(f"credit_amount cannot be negative, got {self.credit_amount}")
        if self.credit_vat_amount < 0:
            raise ValueError(
                f"credit_vat_amount cannot be negative, got {self.credit_vat_amount}"
            )

    @property
    def is_empty(self) -> bool:
        return self.credit_amount == 0 and self.credit_vat_amount == 0


# ============================================================================
# Line pricing and totals
# ============================================================================


def validate_discount(discount_percent: Decimal, discount_amount: Decimal) -> None:
    """
    Check the discount of one line.

    Raises:
        ValueError: a discount is out of range, or both kinds are given.
    """
    if not ZERO <= discount_percent <= HUNDRED:
        raise ValueError(
            f"discount_percent must be between 0 and 100, got {discount_percent}"
        )
    if discount_amount < 0:
        raise ValueError(f"discount_amount cannot be negative, got {discount_amount}")
    if discount_percent > 0 and discount_amount > 0:
        raise ValueError("A line takes either a discount percent or a discount amount, not both")


def compute_line_net(
    quantity: Decimal,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    discount_amount: Decimal = ZERO,
) -> Decimal:
    """quantity * unit_price less the line discount, never below zero. Unrounded."""
    gross = quantity * unit_price
    if discount_percent > 0:
        return gross - gross * discount_percent / HUNDRED
    if discount_amount > 0:
        return max(gross - discount_amount, ZERO)
    return gross


def compute_line_vat(line_total: Decimal, vat_rate_percent: Decimal) -> Decimal:
    """VAT of a line: line_total * rate / 100, unrounded."""
    return line_total * vat_rate_percent / HUNDRED


def price_line(line: InvoiceLineInput) -> PricedLine:
    """Compute the unrounded net total (after discount) and VAT of a single line."""
    line_total = compute_line_net(
        line.quantity, line.unit_price, line.discount_percent, line.discount_amount,
    )
    return PricedLine(
        description=line.description,
        quantity=line.quantity,
        unit_price=line.unit_price,
        vat_rate_percent=line.vat_rate_percent,
        line_total=line_total,
        line_vat=compute_line_vat(line_total, line.vat_rate_percent),
        discount_percent=line.discount_percent,
        discount_amount=line.discount_amount,
    )


@traced_engine("invoice_totals", "1.0")
def compute_totals(
    lines: Iterable[PricedLine],
    decimal_places: int = 2,
    rounding: str = ROUND_HALF_UP,
) -> InvoiceTotals:
    """
    Sum unrounded line values, then round each total once.

    An invoice with no lines has zero totals.
    """
    net = ZERO
    vat = ZERO
    for line in lines:
        net += line.line_total
        vat += line.line_vat
    return InvoiceTotals(
        total_amount=round_money(net, decimal_places, rounding),
        total_vat=round_money(vat, decimal_places, rounding),
    )


# ============================================================================
# Credit notes
# ============================================================================


@traced_engine("credit_validation", "1.0")
def validate_credit_request(
    invoice_id: Hashable,
    originals: Mapping[Hashable, CreditableLine],
    requests: Sequence[CreditRequest],
) -> None:
    """
    Check every requested credit line against its remaining creditable amount.

    Requests for the same original line are summed before checking.

    Raises:
        ValueError: no request carries a positive amount, or a request
            references a line that is not on the invoice.
        OverCreditError: a net or VAT amount exceeds what remains.  The
            first offending line (in request order) is reported.
    """
    if not requests or all(request.is_empty for request in requests):
        raise ValueError("A credit note needs at least one line with a positive amount")

    requested_amount: dict[Hashable, Decimal] = {}
    requested_vat: dict[Hashable, Decimal] = {}
    for request in requests:
        if request.line_id not in originals:
            raise ValueError(
                f"Invoice line {request.line_id} does not belong to invoice {invoice_id}"
            )
        requested_amount[request.line_id] = (
            requested_amount.get(request.line_id, ZERO) + request.credit_amount
        )
        requested_vat[request.line_id] = (
            requested_vat.get(request.line_id, ZERO) + request.credit_vat_amount
        )

    for line_id in requested_amount:
        original = originals[line_id]
        if requested_amount[line_id] > original.remaining_amount:
            raise OverCreditError(
                invoice_id=str(invoice_id),
                invoice_item_id=str(line_id),
                component="amount",
                requested=requested_amount[line_id],
                remaining=original.remaining_amount,
            )
        if requested_vat[line_id] > original.remaining_vat:
            raise OverCreditError(
                invoice_id=str(invoice_id),
                invoice_item_id=str(line_id),
                component="vat",
                requested=requested_vat[line_id],
                remaining=original.remaining_vat,
            )


def is_fully_credited(
    lines: Iterable[CreditableLine],
    tolerance: Decimal = ZERO,
) -> bool:
    """
    True when nothing (beyond ``tolerance`` per component) remains creditable.

    With the default zero tolerance, cumulative credits must equal the
    original line amounts exactly.
    """
    for line in lines:
        if line.remaining_amount > tolerance or line.remaining_vat > tolerance:
            return False
    return True


def apply_credit(
    originals: Mapping[Hashable, CreditableLine],
    requests: Sequence[CreditRequest],
) -> dict[Hashable, CreditableLine]:
    """Return the creditable-line state after applying (validated) requests."""
    updated = dict(originals)
    for request in requests:
        current = updated[request.line_id]
        updated[request.line_id] = CreditableLine(
            line_id=current.line_id,
            line_total=current.line_total,
            line_vat=current.line_vat,
            credited_amount=current.credited_amount + request.credit_amount,
            credited_vat=current.credited_vat + request.credit_vat_amount,
        )
    return updated
