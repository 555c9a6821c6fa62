"""
Engine configuration schema.

Frozen dataclasses parsed from YAML by ``erp_config.loader``.  Every
section validates itself in ``__post_init__`` so an invalid file fails at
load time rather than halfway through an invoice.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP, Decimal

_VALID_ROUNDING = {ROUND_HALF_UP, ROUND_HALF_EVEN, ROUND_DOWN, ROUND_UP}


@dataclass(frozen=True)
class MoneyConfig:
    """Display/aggregation precision for monetary totals."""

    decimal_places: int = 2
    rounding: str = ROUND_HALF_UP

    def __post_init__(self):
        if not 0 <= self.decimal_places <= 9:
            raise ValueError(
                f"decimal_places must be between 0 and 9, got {self.decimal_places}"
            )
        if self.rounding not in _VALID_ROUNDING:
            raise ValueError(
                f"rounding must be one of {sorted(_VALID_ROUNDING)}, got '{self.rounding}'"
            )


@dataclass(frozen=True)
class InvoicingConfig:
    """Invoice and credit note defaults."""

    payment_terms_days: int = 14
    default_vat_rate_percent: Decimal = Decimal("24")
    # Residual creditable amounts at or below this are treated as fully
    # credited when deciding whether the invoice becomes "credited".
    # It never raises the per-line credit cap.
    credit_rounding_tolerance: Decimal = Decimal("0.00")

    def __post_init__(self):
        if self.payment_terms_days < 0:
            raise ValueError("payment_terms_days cannot be negative")
        if not Decimal("0") <= self.default_vat_rate_percent <= Decimal("100"):
            raise ValueError("default_vat_rate_percent must be between 0 and 100")
        if self.credit_rounding_tolerance < 0:
            raise ValueError("credit_rounding_tolerance cannot be negative")


@dataclass(frozen=True)
class NumberingConfig:
    """Document number prefixes (PREFIX-YY-NNNNN)."""

    order_prefix: str = "ORD"
    invoice_prefix: str = "INV"
    credit_note_prefix: str = "CN"
    sequence_width: int = 5

    def __post_init__(self):
        prefixes = (self.order_prefix, self.invoice_prefix, self.credit_note_prefix)
        for prefix in prefixes:
            if not prefix or not prefix.strip():
                raise ValueError("document number prefixes cannot be empty")
            if "-" in prefix:
                raise ValueError(f"prefix may not contain '-': {prefix!r}")
        if len(set(prefixes)) != len(prefixes):
            raise ValueError("document number prefixes must be distinct")
        if not 1 <= self.sequence_width <= 10:
            raise ValueError("sequence_width must be between 1 and 10")


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration object handed to services."""

    money: MoneyConfig = field(default_factory=MoneyConfig)
    invoicing: InvoicingConfig = field(default_factory=InvoicingConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    checksum: str = ""
