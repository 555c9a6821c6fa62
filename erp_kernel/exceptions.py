"""
Typed Exception Hierarchy for the ERP Order-to-Cash engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the web/API layer, batch jobs, tests) must be able to react to a
failure without parsing message strings.  Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (item ids, states, amounts)

Example - WRONG way to handle errors:
    try:
        orders.start_production(order_id)
    except Exception as e:
        if "stock" in str(e):
            ...

Example - RIGHT way:
    try:
        orders.start_production(order_id)
    except InsufficientStockError as e:
        api_response(code=e.code, item=e.item_id, missing=e.shortfall)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ERPEngineError (base)
    |
    +-- EntityNotFoundError
    |
    +-- LedgerError
    |   +-- InsufficientStockError
    |
    +-- BOMError
    |   +-- CyclicBOMError
    |   +-- IncompleteBOMError
    |   +-- InvalidBOMError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- OrderNotEditableError
    |   +-- QuotationConversionError
    |
    +-- CreditError
    |   +-- OverCreditError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|--------------------------------------------
Lookup       | ENTITY_NOT_FOUND        | Item / order / invoice id doesn't exist
Ledger       | INSUFFICIENT_STOCK      | Adjustment would drive on-hand below zero
BOM          | CYCLIC_BOM              | Component graph references itself
             | INCOMPLETE_BOM          | Manufactured component has no active BOM
             | INVALID_BOM             | BOM definition rejected (owner, lines)
Workflow     | INVALID_TRANSITION      | Transition not in the transition table
             | ORDER_NOT_EDITABLE      | Line edit / delete outside DRAFT
             | QUOTATION_NOT_CONVERTIBLE | Wrong type, state or no lines to convert
Credit       | OVER_CREDIT             | Credit exceeds remaining line amount
Concurrency  | CONCURRENCY_CONFLICT    | Lock timeout / deadlock / serialization
Immutability | IMMUTABILITY_VIOLATION  | Issued document or movement modified

===============================================================================
TRANSACTION SEMANTICS
===============================================================================

Every error raised by a service aborts the enclosing transaction.  Nothing
is clamped, nothing is retried inside the engine.  ConcurrencyConflictError
is the only error flagged ``retryable``; callers may re-run the whole
operation in a fresh transaction.

===============================================================================
"""

from decimal import Decimal


class ERPEngineError(Exception):
    """
    Base exception for all ERP engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_ENGINE_ERROR"
    retryable: bool = False


# Lookup exceptions


class EntityNotFoundError(ERPEngineError):
    """Entity with the given id does not exist."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


# Inventory ledger exceptions


class LedgerError(ERPEngineError):
    """Base exception for inventory ledger errors."""

    code: str = "LEDGER_ERROR"


class InsufficientStockError(LedgerError):
    """An adjustment would drive on-hand quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.item_id = str(item_id)
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


# BOM exceptions


class BOMError(ERPEngineError):
    """Base exception for bill-of-material errors."""

    code: str = "BOM_ERROR"


class CyclicBOMError(BOMError):
    """
    The component graph contains a cycle.

    A cycle means an item is (directly or transitively) a component of
    itself, which would make explosion non-terminating.
    """

    code: str = "CYCLIC_BOM"

    def __init__(self, path: list[str]):
        self.path = [str(p) for p in path]
        super().__init__(f"Cycle detected in BOM graph: {' -> '.join(self.path)}")


class IncompleteBOMError(BOMError):
    """A manufactured item was reached that has no active BOM."""

    code: str = "INCOMPLETE_BOM"

    def __init__(self, item_id: str, parent_item_id: str | None = None):
        self.item_id = str(item_id)
        self.parent_item_id = str(parent_item_id) if parent_item_id else None
        if parent_item_id:
            msg = (
                f"Manufactured item {item_id} (component of {parent_item_id}) "
                "has no active bill of material"
            )
        else:
            msg = f"Manufactured item {item_id} has no active bill of material"
        super().__init__(msg)


class InvalidBOMError(BOMError):
    """The submitted BOM definition is structurally invalid."""

    code: str = "INVALID_BOM"

    def __init__(self, item_id: str, reason: str):
        self.item_id = str(item_id)
        self.reason = reason
        super().__init__(f"Invalid BOM for item {item_id}: {reason}")


# Workflow exceptions


class WorkflowError(ERPEngineError):
    """Base exception for document lifecycle errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The requested transition is not present in the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        from_state: str,
        to_state: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition for {entity_type} {entity_id}: "
            f"{from_state} -> {to_state}"
        )


class OrderNotEditableError(WorkflowError):
    """Order lines may only be changed (or the order deleted) in draft."""

    code: str = "ORDER_NOT_EDITABLE"

    def __init__(self, order_id: str, status: str):
        self.order_id = str(order_id)
        self.status = status
        super().__init__(
            f"Order {order_id} is {status}; only draft orders can be modified"
        )


class QuotationConversionError(WorkflowError):
    """Only a draft or confirmed quotation with lines converts to a work order."""

    code: str = "QUOTATION_NOT_CONVERTIBLE"

    def __init__(self, order_id: str, reason: str):
        self.order_id = str(order_id)
        self.reason = reason
        super().__init__(f"Order {order_id} cannot be converted: {reason}")


# Credit note exceptions


class CreditError(ERPEngineError):
    """Base exception for credit note errors."""

    code: str = "CREDIT_ERROR"


class OverCreditError(CreditError):
    """
    A credit note line exceeds what remains creditable on the invoice line.

    Net and VAT components are bounded separately.
    """

    code: str = "OVER_CREDIT"

    def __init__(
        self,
        invoice_id: str,
        invoice_item_id: str,
        component: str,
        requested: Decimal,
        remaining: Decimal,
    ):
        self.invoice_id = str(invoice_id)
        self.invoice_item_id = str(invoice_item_id)
        self.component = component
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Over-credit on invoice {invoice_id} line {invoice_item_id}: "
            f"{component} requested {requested}, remaining {remaining}"
        )


# Concurrency exceptions


class ConcurrencyError(ERPEngineError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Lock acquisition failed (timeout, deadlock or serialization failure)."""

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Concurrency conflict during {operation}: {detail}"
        )


# Immutability exceptions


class ImmutabilityError(ERPEngineError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stock movements, issued invoice lines and credit notes are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
