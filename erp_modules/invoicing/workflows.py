"""
Invoice Workflow.

State machine for issued invoices.  ``credited`` is a system transition
taken by ``InvoicingService.create_credit_note`` once nothing remains
creditable.
"""

from dataclasses import dataclass

from erp_kernel.logging_config import get_logger
from erp_modules.invoicing.models import InvoiceStatus

logger = get_logger("modules.invoicing.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    user_initiated: bool = True


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PAST_DUE = Guard(
    name="past_due",
    description="Invoice due date has passed",
)

FULLY_CREDITED = Guard(
    name="fully_credited",
    description="Credit notes cover every invoice line in full",
)

logger.info(
    "invoice_workflow_guards_defined",
    extra={"guards": [PAST_DUE.name, FULLY_CREDITED.name]},
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

_DRAFT = InvoiceStatus.DRAFT.value
_SENT = InvoiceStatus.SENT.value
_PAID = InvoiceStatus.PAID.value
_OVERDUE = InvoiceStatus.OVERDUE.value
_CANCELLED = InvoiceStatus.CANCELLED.value
_CREDITED = InvoiceStatus.CREDITED.value

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state=_DRAFT,
    states=tuple(status.value for status in InvoiceStatus),
    transitions=(
        Transition(_DRAFT, _SENT, action="send"),
        Transition(_DRAFT, _CANCELLED, action="cancel"),
        Transition(_SENT, _PAID, action="pay"),
        Transition(_SENT, _OVERDUE, action="mark_overdue", guard=PAST_DUE),
        Transition(_OVERDUE, _PAID, action="pay"),
        Transition(_DRAFT, _CREDITED, action="credit", guard=FULLY_CREDITED, user_initiated=False),
        Transition(_SENT, _CREDITED, action="credit", guard=FULLY_CREDITED, user_initiated=False),
        Transition(_PAID, _CREDITED, action="credit", guard=FULLY_CREDITED, user_initiated=False),
        Transition(_OVERDUE, _CREDITED, action="credit", guard=FULLY_CREDITED, user_initiated=False),
    ),
)

TRANSITION_TABLE: dict[tuple[str, str], Transition] = {
    (t.from_state, t.action): t for t in INVOICE_WORKFLOW.transitions
}

ACTION_TARGETS: dict[str, str] = {t.action: t.to_state for t in INVOICE_WORKFLOW.transitions}


def resolve_transition(current_state: str, action: str) -> Transition | None:
    """The transition for ``action`` from ``current_state``, or None."""
    return TRANSITION_TABLE.get((current_state, action))


logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)
