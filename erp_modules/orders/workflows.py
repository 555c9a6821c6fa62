"""
Sales Order Workflow.

The order lifecycle as an explicit transition table.  A transition is
looked up by ``(current_state, action)``; anything not in the table is an
invalid transition.  Side effects are declared on the transition and
executed by ``OrderService``.
"""

from dataclasses import dataclass
from enum import Enum

from erp_kernel.logging_config import get_logger
from erp_modules.orders.models import OrderStatus

logger = get_logger("modules.orders.workflows")


class SideEffect(Enum):
    """Ledger work attached to a transition."""
    CONSUME_COMPONENTS = "consume_components"
    RESTORE_COMPONENTS = "restore_components"


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
    side_effects: tuple[SideEffect, ...] = ()
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

HAS_ITEMS = Guard(
    name="has_items",
    description="Order has at least one line",
)

IS_WORK_ORDER = Guard(
    name="is_work_order",
    description="Order is a work order, not a quotation",
)

INVOICE_CREATED = Guard(
    name="invoice_created",
    description="An invoice for the order is being created in the same transaction",
)


# -----------------------------------------------------------------------------
# Order Workflow
# -----------------------------------------------------------------------------

_DRAFT = OrderStatus.DRAFT.value
_CONFIRMED = OrderStatus.CONFIRMED.value
_IN_PRODUCTION = OrderStatus.IN_PRODUCTION.value
_SHIPPED = OrderStatus.SHIPPED.value
_DELIVERED = OrderStatus.DELIVERED.value
_INVOICED = OrderStatus.INVOICED.value
_CANCELLED = OrderStatus.CANCELLED.value

ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state=_DRAFT,
    states=tuple(status.value for status in OrderStatus),
    transitions=(
        Transition(_DRAFT, _CONFIRMED, action="confirm", guard=HAS_ITEMS),
        Transition(_DRAFT, _CANCELLED, action="cancel"),
        Transition(
            _CONFIRMED, _IN_PRODUCTION, action="start_production",
            guard=IS_WORK_ORDER,
            side_effects=(SideEffect.CONSUME_COMPONENTS,),
        ),
        Transition(_CONFIRMED, _CANCELLED, action="cancel"),
        Transition(_IN_PRODUCTION, _SHIPPED, action="ship"),
        Transition(
            _IN_PRODUCTION, _CANCELLED, action="cancel",
            side_effects=(SideEffect.RESTORE_COMPONENTS,),
        ),
        Transition(_SHIPPED, _DELIVERED, action="deliver"),
        Transition(
            _DELIVERED, _INVOICED, action="invoice",
            guard=INVOICE_CREATED, user_initiated=False,
        ),
    ),
)

TRANSITION_TABLE: dict[tuple[str, str], Transition] = {
    (t.from_state, t.action): t for t in ORDER_WORKFLOW.transitions
}

# The state each action leads to, wherever it is allowed from.
ACTION_TARGETS: dict[str, str] = {t.action: t.to_state for t in ORDER_WORKFLOW.transitions}

TERMINAL_STATES: frozenset[str] = frozenset({_INVOICED, _CANCELLED})


def resolve_transition(current_state: str, action: str) -> Transition | None:
    """The transition for ``action`` from ``current_state``, or None."""
    return TRANSITION_TABLE.get((current_state, action))


logger.info(
    "order_workflow_registered",
    extra={
        "workflow_name": ORDER_WORKFLOW.name,
        "state_count": len(ORDER_WORKFLOW.states),
        "transition_count": len(ORDER_WORKFLOW.transitions),
        "initial_state": ORDER_WORKFLOW.initial_state,
    },
)
