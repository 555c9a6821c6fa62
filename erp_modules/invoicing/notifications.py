"""
Invoice notifications.

Notifiers are told about invoices and credit notes after the financial
transaction has committed.  Delivery is best effort: a failing notifier is
logged and never undoes the committed document.
"""

from typing import Protocol, runtime_checkable

from erp_kernel.logging_config import get_logger
from erp_modules.invoicing.models import CreditNote, Invoice

logger = get_logger("modules.invoicing.notifications")


@runtime_checkable
class InvoiceNotifier(Protocol):
    """Receives committed invoicing documents."""

    def invoice_created(self, invoice: Invoice) -> None: ...

    def credit_note_created(self, credit_note: CreditNote, invoice: Invoice) -> None: ...


class LoggingInvoiceNotifier:
    """Default notifier: records each document as a log event."""

    def invoice_created(self, invoice: Invoice) -> None:
        logger.info(
            "invoice_notification",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "customer_id": str(invoice.customer_id),
                "total_gross": invoice.total_gross,
            },
        )

    def credit_note_created(self, credit_note: CreditNote, invoice: Invoice) -> None:
        logger.info(
            "credit_note_notification",
            extra={
                "credit_note_id": str(credit_note.id),
                "credit_note_number": credit_note.credit_note_number,
                "invoice_id": str(invoice.id),
                "total_gross": credit_note.total_gross,
            },
        )


def notify_safely(notifier: InvoiceNotifier, event: str, *args) -> bool:
    """
    Call ``notifier.<event>(*args)``; log and swallow any failure.

    Returns:
        True if the notifier returned normally.
    """
    try:
        getattr(notifier, event)(*args)
        return True
    except Exception:
        logger.exception(
            "invoice_notification_failed",
            extra={"event": event, "notifier": type(notifier).__name__},
        )
        return False
