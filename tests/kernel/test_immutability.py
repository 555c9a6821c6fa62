"""
Tests for ORM immutability listeners.

Validates:
- Stock movements cannot be updated or deleted
- Issued invoice lines and credit notes cannot be changed
- Invoices allow status/paid_at changes only
- Only draft orders can be deleted
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_modules.inventory.orm import StockMovementModel
from erp_modules.invoicing.models import CreditLineInput, InvoiceItemInput
from erp_modules.invoicing.orm import CreditNoteModel, InvoiceItemModel, InvoiceModel
from erp_modules.orders.models import OrderItemInput
from erp_modules.orders.orm import OrderModel


@pytest.fixture
def manual_invoice(invoicing_service, customer_id):
    return invoicing_service.create_manual_invoice(
        customer_id,
        [InvoiceItemInput("Consulting", Decimal("2"), Decimal("100"), Decimal("24"))],
    )


class TestStockMovementImmutability:

    def test_update_blocked(self, session, make_raw):
        item = make_raw("IMM-1", Decimal("5"))
        movement = session.scalars(
            select(StockMovementModel).where(StockMovementModel.item_id == item.id)
        ).one()
        movement.delta = Decimal("500")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_blocked(self, session, make_raw):
        item = make_raw("IMM-2", Decimal("5"))
        movement = session.scalars(
            select(StockMovementModel).where(StockMovementModel.item_id == item.id)
        ).one()
        session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestInvoiceImmutability:

    def test_status_change_allowed(self, session, manual_invoice):
        invoice = session.get(InvoiceModel, manual_invoice.id)
        invoice.status = "sent"
        session.flush()

    def test_total_change_blocked(self, session, manual_invoice):
        invoice = session.get(InvoiceModel, manual_invoice.id)
        invoice.total_amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert "total_amount" in str(exc_info.value)
        session.rollback()

    def test_invoice_delete_blocked(self, session, manual_invoice):
        session.delete(session.get(InvoiceModel, manual_invoice.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_line_change_blocked(self, session, manual_invoice):
        line = session.get(InvoiceItemModel, manual_invoice.items[0].id)
        line.unit_price = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_credit_note_change_blocked(self, session, invoicing_service, manual_invoice):
        credit_note = invoicing_service.create_credit_note(
            manual_invoice.id,
            [CreditLineInput(manual_invoice.items[0].id, Decimal("10"), Decimal("2.4"))],
        )
        model = session.get(CreditNoteModel, credit_note.id)
        model.total_amount = Decimal("0")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestOrderDeletion:

    def test_non_draft_delete_blocked(self, session, order_service, make_raw, customer_id):
        raw = make_raw("IMM-R", Decimal("10"))
        order = order_service.create_order(customer_id, [OrderItemInput(raw.id, Decimal("1"))])
        order_service.confirm_order(order.id)

        session.delete(session.get(OrderModel, order.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
