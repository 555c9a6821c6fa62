"""
Invoicing Domain Models (``erp_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects for invoices, credit notes, their lines,
and the credit summary read model.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Line values (``line_total``, ``line_vat``) are unrounded; header totals
  are rounded once.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    CREDITED = "credited"


@dataclass(frozen=True)
class InvoiceItemInput:
    """
    A manual invoice line.

    ``vat_rate_percent`` defaults to the configured default rate.
    At most one of ``discount_percent`` and ``discount_amount`` may be set.
    """
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate_percent: Decimal | None = None
    item_id: UUID | None = None
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class InvoiceItem:
    """An issued, immutable invoice line."""
    id: UUID
    invoice_id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate_percent: Decimal
    line_total: Decimal
    line_vat: Decimal
    item_id: UUID | None = None
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class Invoice:
    """A customer invoice."""
    id: UUID
    invoice_number: str
    reference_number: str
    customer_id: UUID
    status: InvoiceStatus
    invoice_date: date
    due_date: date
    total_amount: Decimal
    total_vat: Decimal
    items: tuple[InvoiceItem, ...] = field(default_factory=tuple)
    order_id: UUID | None = None
    notes: str | None = None
    paid_at: datetime | None = None

    @property
    def total_gross(self) -> Decimal:
        return self.total_amount + self.total_vat


@dataclass(frozen=True)
class CreditLineInput:
    """Amounts to credit against one original invoice line."""
    invoice_item_id: UUID
    credit_amount: Decimal
    credit_vat_amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class CreditNoteItem:
    id: UUID
    credit_note_id: UUID
    invoice_item_id: UUID
    description: str
    credit_amount: Decimal
    credit_vat_amount: Decimal


@dataclass(frozen=True)
class CreditNote:
    """An immutable credit note against one invoice."""
    id: UUID
    credit_note_number: str
    invoice_id: UUID
    credit_date: date
    total_amount: Decimal
    total_vat: Decimal
    items: tuple[CreditNoteItem, ...] = field(default_factory=tuple)
    notes: str | None = None

    @property
    def total_gross(self) -> Decimal:
        return self.total_amount + self.total_vat


@dataclass(frozen=True)
class CreditLineSummary:
    """What has been and can still be credited on one invoice line."""
    invoice_item_id: UUID
    line_total: Decimal
    line_vat: Decimal
    credited_amount: Decimal
    credited_vat: Decimal
    remaining_amount: Decimal
    remaining_vat: Decimal


@dataclass(frozen=True)
class CreditSummary:
    invoice_id: UUID
    status: InvoiceStatus
    lines: tuple[CreditLineSummary, ...]
    total_credited_amount: Decimal
    total_credited_vat: Decimal
    is_fully_credited: bool
