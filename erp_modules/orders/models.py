"""
Sales Order Domain Models (``erp_modules.orders.models``).

Responsibility
--------------
Frozen dataclass value objects for sales orders, their lines, and the
read models derived from them (totals, stock shortages).

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Quantities, prices and VAT rates are ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_engines.invoicing import compute_line_net


class OrderType(Enum):
    """
    A quotation is an offer; only work orders go into production.
    Converting a quotation creates a confirmed work order.
    """
    QUOTATION = "quotation"
    WORK_ORDER = "work_order"


class OrderStatus(Enum):
    """Sales order lifecycle states."""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrderItemInput:
    """
    A line as submitted by a caller.

    ``unit_price`` defaults to the item's sales price and
    ``vat_rate_percent`` to the configured default rate.
    At most one of ``discount_percent`` and ``discount_amount`` may be set.
    """
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal | None = None
    vat_rate_percent: Decimal | None = None
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class OrderItem:
    """A stored order line."""
    id: UUID
    order_id: UUID
    line_number: int
    item_id: UUID
    quantity: Decimal
    unit_price: Decimal
    vat_rate_percent: Decimal
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")

    @property
    def line_total(self) -> Decimal:
        return compute_line_net(
            self.quantity, self.unit_price, self.discount_percent, self.discount_amount,
        )


@dataclass(frozen=True)
class Order:
    """A customer sales order."""
    id: UUID
    order_number: str
    customer_id: UUID
    status: OrderStatus
    order_date: date
    items: tuple[OrderItem, ...] = field(default_factory=tuple)
    notes: str | None = None
    order_type: OrderType = OrderType.WORK_ORDER
    original_quotation_id: UUID | None = None

    @property
    def net_total(self) -> Decimal:
        """Unrounded sum of discounted line totals."""
        return sum((item.line_total for item in self.items), Decimal("0"))


@dataclass(frozen=True)
class OrderTotals:
    """Rounded order totals."""
    net_amount: Decimal
    vat_amount: Decimal
    gross_amount: Decimal


@dataclass(frozen=True)
class StockShortage:
    """A raw material the order needs more of than is on hand."""
    item_id: UUID
    sku: str
    name: str
    required: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.required - self.available
