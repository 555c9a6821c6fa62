"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Issued financial documents and the stock ledger are append-only.  An invoice
is corrected by a credit note, never by editing its lines; a stock count is
corrected by a new movement, never by rewriting an old one.  Services never
attempt such edits, and these listeners make sure nothing else does either.

SQLAlchemy fires events before UPDATE/DELETE statements are emitted:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable          | What may still change
-------------------|-------------------------|------------------------------
StockMovement      | ALWAYS                  | nothing
InvoiceItem        | ALWAYS                  | nothing
Invoice            | ALWAYS                  | status, paid_at, audit fields
CreditNote         | ALWAYS                  | nothing
CreditNoteItem     | ALWAYS                  | nothing
Order              | delete once not draft   | everything (service-guarded)

updated_at / updated_by_id are audit metadata and always allowed to change.

===============================================================================
USAGE
===============================================================================

Registered by create_tables(), or explicitly at startup:

    from erp_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_INVOICE_MUTABLE_FIELDS = _AUDIT_FIELDS | {"status", "paid_at"}


def _changed_fields(target) -> set[str]:
    """Names of column attributes with pending changes on target."""
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _append_only_update_check(entity_type: str, reason: str):
    def check(mapper, connection, target):
        if _changed_fields(target) - _AUDIT_FIELDS:
            _block(entity_type, target, "UPDATE", reason)

    check.__name__ = f"_check_{entity_type.lower()}_update"
    return check


def _append_only_delete_check(entity_type: str, reason: str):
    def check(mapper, connection, target):
        _block(entity_type, target, "DELETE", reason)

    check.__name__ = f"_check_{entity_type.lower()}_delete"
    return check


_check_stock_movement_update = _append_only_update_check(
    "StockMovement", "Stock movements are append-only; post a new adjustment"
)
_check_stock_movement_delete = _append_only_delete_check(
    "StockMovement", "Stock movements cannot be deleted"
)
_check_invoice_item_update = _append_only_update_check(
    "InvoiceItem", "Issued invoice lines are immutable; issue a credit note"
)
_check_invoice_item_delete = _append_only_delete_check(
    "InvoiceItem", "Issued invoice lines cannot be deleted"
)
_check_credit_note_update = _append_only_update_check(
    "CreditNote", "Credit notes are immutable once created"
)
_check_credit_note_delete = _append_only_delete_check(
    "CreditNote", "Credit notes cannot be deleted"
)
_check_credit_note_item_update = _append_only_update_check(
    "CreditNoteItem", "Credit note lines are immutable once created"
)
_check_credit_note_item_delete = _append_only_delete_check(
    "CreditNoteItem", "Credit note lines cannot be deleted"
)
_check_invoice_delete = _append_only_delete_check(
    "Invoice", "Invoices cannot be deleted; cancel or credit them"
)


def _check_invoice_update(mapper, connection, target):
    """Only the invoice status (and payment timestamp) may change after issue."""
    frozen = _changed_fields(target) - _INVOICE_MUTABLE_FIELDS
    if frozen:
        _block(
            "Invoice",
            target,
            "UPDATE",
            f"Issued invoice fields are immutable: {', '.join(sorted(frozen))}",
        )


def _check_order_delete(mapper, connection, target):
    """Orders can be physically deleted only while still in draft."""
    from erp_modules.orders.models import OrderStatus

    if target.status != OrderStatus.DRAFT.value:
        _block(
            "Order",
            target,
            "DELETE",
            f"Order is {target.status}; only draft orders can be deleted",
        )


def _listeners():
    from erp_modules.inventory.orm import StockMovementModel
    from erp_modules.invoicing.orm import (
        CreditNoteItemModel,
        CreditNoteModel,
        InvoiceItemModel,
        InvoiceModel,
    )
    from erp_modules.orders.orm import OrderModel

    return [
        (StockMovementModel, "before_update", _check_stock_movement_update),
        (StockMovementModel, "before_delete", _check_stock_movement_delete),
        (InvoiceModel, "before_update", _check_invoice_update),
        (InvoiceModel, "before_delete", _check_invoice_delete),
        (InvoiceItemModel, "before_update", _check_invoice_item_update),
        (InvoiceItemModel, "before_delete", _check_invoice_item_delete),
        (CreditNoteModel, "before_update", _check_credit_note_update),
        (CreditNoteModel, "before_delete", _check_credit_note_delete),
        (CreditNoteItemModel, "before_update", _check_credit_note_item_update),
        (CreditNoteItemModel, "before_delete", _check_credit_note_item_delete),
        (OrderModel, "before_delete", _check_order_delete),
    ]


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after all ORM models are importable and before any database
    operations begin.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
