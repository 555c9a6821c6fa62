"""
Invoicing module: invoices from delivered orders or manual lines, partial
credit notes and the invoice status workflow.
"""

from erp_modules.invoicing.models import (
    CreditLineInput,
    CreditLineSummary,
    CreditNote,
    CreditNoteItem,
    CreditSummary,
    Invoice,
    InvoiceItem,
    InvoiceItemInput,
    InvoiceStatus,
)
from erp_modules.invoicing.notifications import (
    InvoiceNotifier,
    LoggingInvoiceNotifier,
)
from erp_modules.invoicing.service import InvoicingService
from erp_modules.invoicing.workflows import INVOICE_WORKFLOW

__all__ = [
    "INVOICE_WORKFLOW",
    "CreditLineInput",
    "CreditLineSummary",
    "CreditNote",
    "CreditNoteItem",
    "CreditSummary",
    "Invoice",
    "InvoiceItem",
    "InvoiceItemInput",
    "InvoiceNotifier",
    "InvoiceStatus",
    "InvoicingService",
    "LoggingInvoiceNotifier",
]
