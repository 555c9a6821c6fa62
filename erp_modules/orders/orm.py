"""
Sales Order ORM Models (``erp_modules.orders.orm``).

Responsibility
--------------
SQLAlchemy persistence models for sales orders and their lines.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``erp_kernel.db.base``
and sibling ``models.py``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase
from erp_modules.inventory.orm import InventoryItemModel


# ---------------------------------------------------------------------------
# 1. OrderModel
# ---------------------------------------------------------------------------


class OrderModel(TrackedBase):
    """
    ORM model for sales orders.

    Guarantees:
        - order_number is unique (uq_orders_order_number).
        - status stored as string enum value; only OrderService writes it.
        - Only draft orders may be deleted (erp_kernel.db.immutability).
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        Index("idx_orders_customer_id", "customer_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_original_quotation_id", "original_quotation_id"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="work_order"
    )
    original_quotation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("orders.id"), nullable=True
    )

    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.orders.models import Order, OrderStatus, OrderType

        return Order(
            id=self.id,
            order_number=self.order_number,
            customer_id=self.customer_id,
            status=OrderStatus(self.status),
            order_date=self.order_date,
            items=tuple(item.to_dto() for item in self.items),
            notes=self.notes,
            order_type=OrderType(self.order_type),
            original_quotation_id=self.original_quotation_id,
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.order_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. OrderItemModel
# ---------------------------------------------------------------------------


class OrderItemModel(TrackedBase):
    """
    ORM model for sales order lines.

    Guarantees:
        - quantity > 0 and unit_price >= 0 (check constraints).
        - vat_rate_percent between 0 and 100.
        - discount_percent between 0 and 100, discount_amount >= 0,
          and at most one of them non-zero.
        - line_number is unique within the order.
    """

    __tablename__ = "order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_order_items_line"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_price_non_negative"),
        CheckConstraint(
            "vat_rate_percent >= 0 AND vat_rate_percent <= 100",
            name="ck_order_items_vat_range",
        ),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_order_items_discount_percent_range",
        ),
        CheckConstraint(
            "discount_amount >= 0", name="ck_order_items_discount_amount_non_negative"
        ),
        CheckConstraint(
            "discount_percent = 0 OR discount_amount = 0",
            name="ck_order_items_single_discount",
        ),
        Index("idx_order_items_order_id", "order_id"),
        Index("idx_order_items_item_id", "item_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    vat_rate_percent: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), nullable=False, default=Decimal("0")
    )
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    order: Mapped["OrderModel"] = relationship(back_populates="items")
    item: Mapped[InventoryItemModel] = relationship()

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.orders.models import OrderItem

        return OrderItem(
            id=self.id,
            order_id=self.order_id,
            line_number=self.line_number,
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            vat_rate_percent=self.vat_rate_percent,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
        )

    def __repr__(self) -> str:
        return f"<OrderItemModel #{self.line_number} item={self.item_id} qty={self.quantity}>"
