"""
Module: erp_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.  This is
    the canonical import surface for ``erp_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ``erp_kernel`` exceptions, types and logging only.
    MUST NOT import ``erp_modules`` or ``erp_config``.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from erp_engines.bom import BomGraph, BomLineSpec, BomNode
from erp_engines.invoicing import (
    CreditableLine,
    CreditRequest,
    InvoiceLineInput,
    InvoiceTotals,
    PricedLine,
    apply_credit,
    compute_line_net,
    compute_line_vat,
    compute_totals,
    is_fully_credited,
    price_line,
    validate_credit_request,
)
from erp_engines.margin import MarginLine, MarginResult, calculate_margin
from erp_engines.reference_number import (
    format_reference,
    generate_reference,
    is_valid_reference,
    reference_from_document_number,
)
from erp_engines.replenishment import (
    ReplenishmentAlert,
    StockPosition,
    compute_alerts,
)
from erp_engines.tracer import traced_engine

__all__ = [
    "BomGraph",
    "BomLineSpec",
    "BomNode",
    "CreditRequest",
    "CreditableLine",
    "InvoiceLineInput",
    "InvoiceTotals",
    "MarginLine",
    "MarginResult",
    "PricedLine",
    "ReplenishmentAlert",
    "StockPosition",
    "apply_credit",
    "calculate_margin",
    "compute_alerts",
    "compute_line_net",
    "compute_line_vat",
    "compute_totals",
    "format_reference",
    "generate_reference",
    "is_fully_credited",
    "is_valid_reference",
    "price_line",
    "reference_from_document_number",
    "traced_engine",
    "validate_credit_request",
]
