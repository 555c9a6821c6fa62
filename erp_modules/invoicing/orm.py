"""
Invoicing ORM Models (``erp_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices, invoice lines, credit notes
and credit note lines.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``erp_kernel.db.base``
and sibling ``models.py``.  Update/delete rules for these tables live in
``erp_kernel.db.immutability``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - total_amount / total_vat are rounded sums of unrounded line values.
        - After insert only status and paid_at change.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        CheckConstraint("due_date >= invoice_date", name="ck_invoices_due_after_issue"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_order_id", "order_id"),
        Index("idx_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    order_id: Mapped[UUID | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_vat: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceItemModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.invoicing.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            reference_number=self.reference_number,
            customer_id=self.customer_id,
            status=InvoiceStatus(self.status),
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            total_amount=self.total_amount,
            total_vat=self.total_vat,
            items=tuple(item.to_dto() for item in self.items),
            order_id=self.order_id,
            notes=self.notes,
            paid_at=self.paid_at,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TrackedBase):
    """
    ORM model for invoice lines.

    Guarantees:
        - line_total = quantity * unit_price less the line discount and
          line_vat = line_total * vat_rate_percent / 100, both unrounded.
        - At most one of discount_percent and discount_amount is non-zero.
        - Immutable after insert.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_items_line"),
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_invoice_items_discount_percent_range",
        ),
        CheckConstraint(
            "discount_amount >= 0", name="ck_invoice_items_discount_amount_non_negative"
        ),
        CheckConstraint(
            "discount_percent = 0 OR discount_amount = 0",
            name="ck_invoice_items_single_discount",
        ),
        Index("idx_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    vat_rate_percent: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(nullable=False)
    line_vat: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.invoicing.models import InvoiceItem

        return InvoiceItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            vat_rate_percent=self.vat_rate_percent,
            line_total=self.line_total,
            line_vat=self.line_vat,
            item_id=self.item_id,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
        )

    def __repr__(self) -> str:
        return f"<InvoiceItemModel #{self.line_number} total={self.line_total}>"


# ---------------------------------------------------------------------------
# 3. CreditNoteModel
# ---------------------------------------------------------------------------


class CreditNoteModel(TrackedBase):
    """
    ORM model for credit notes.

    Guarantees:
        - credit_note_number is unique (uq_credit_notes_number).
        - Immutable after insert.
    """

    __tablename__ = "credit_notes"

    __table_args__ = (
        UniqueConstraint("credit_note_number", name="uq_credit_notes_number"),
        Index("idx_credit_notes_invoice_id", "invoice_id"),
    )

    credit_note_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    credit_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_vat: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["CreditNoteItemModel"]] = relationship(
        back_populates="credit_note",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.invoicing.models import CreditNote

        return CreditNote(
            id=self.id,
            credit_note_number=self.credit_note_number,
            invoice_id=self.invoice_id,
            credit_date=self.credit_date,
            total_amount=self.total_amount,
            total_vat=self.total_vat,
            items=tuple(item.to_dto() for item in self.items),
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<CreditNoteModel {self.credit_note_number} invoice={self.invoice_id}>"


# ---------------------------------------------------------------------------
# 4. CreditNoteItemModel
# ---------------------------------------------------------------------------


class CreditNoteItemModel(TrackedBase):
    """
    ORM model for credit note lines.

    Guarantees:
        - credit_amount and credit_vat_amount are non-negative.
        - Cumulative credits per invoice line never exceed the line's
          original values (checked by InvoicingService under the invoice
          row lock).
    """

    __tablename__ = "credit_note_items"

    __table_args__ = (
        CheckConstraint("credit_amount >= 0", name="ck_credit_note_items_amount"),
        CheckConstraint("credit_vat_amount >= 0", name="ck_credit_note_items_vat"),
        Index("idx_credit_note_items_credit_note_id", "credit_note_id"),
        Index("idx_credit_note_items_invoice_item_id", "invoice_item_id"),
    )

    credit_note_id: Mapped[UUID] = mapped_column(
        ForeignKey("credit_notes.id"), nullable=False
    )
    invoice_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice_items.id"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_vat_amount: Mapped[Decimal] = mapped_column(nullable=False)

    credit_note: Mapped["CreditNoteModel"] = relationship(back_populates="items")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.invoicing.models import CreditNoteItem

        return CreditNoteItem(
            id=self.id,
            credit_note_id=self.credit_note_id,
            invoice_item_id=self.invoice_item_id,
            description=self.description,
            credit_amount=self.credit_amount,
            credit_vat_amount=self.credit_vat_amount,
        )

    def __repr__(self) -> str:
        return (
            f"<CreditNoteItemModel line={self.invoice_item_id} "
            f"amount={self.credit_amount} vat={self.credit_vat_amount}>"
        )
