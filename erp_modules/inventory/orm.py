"""
Inventory ORM Models (``erp_modules.inventory.orm``).

Responsibility
--------------
SQLAlchemy persistence models for stock-keeping items and their movement
ledger.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``erp_kernel.db.base``
and sibling ``models.py``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase


class InventoryItemModel(TrackedBase):
    """
    ORM model for stock-keeping items.

    Guarantees:
        - sku is unique (uq_inventory_items_sku).
        - quantity_on_hand is never negative (ck_inventory_items_qoh_non_negative);
          the ledger checks first, the constraint is the backstop.
        - quantity_on_hand is only written by InventoryLedger.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_inventory_items_sku"),
        CheckConstraint(
            "quantity_on_hand >= 0", name="ck_inventory_items_qoh_non_negative"
        ),
        Index("idx_inventory_items_item_type", "item_type"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity_on_hand: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reorder_point: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reorder_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    lead_time_days: Mapped[int] = mapped_column(nullable=False, default=0)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sales_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import InventoryItem, ItemType

        return InventoryItem(
            id=self.id,
            sku=self.sku,
            name=self.name,
            item_type=ItemType(self.item_type),
            quantity_on_hand=self.quantity_on_hand,
            reorder_point=self.reorder_point,
            reorder_quantity=self.reorder_quantity,
            lead_time_days=self.lead_time_days,
            unit_cost=self.unit_cost,
            sales_price=self.sales_price,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryItemModel {self.sku} type={self.item_type} "
            f"qoh={self.quantity_on_hand}>"
        )


class StockMovementModel(TrackedBase):
    """
    ORM model for the append-only stock movement ledger.

    Guarantees:
        - One row per applied adjustment; never updated or deleted
          (see erp_kernel.db.immutability).
        - quantity_after records on-hand immediately after the movement.
        - (reference_type, reference_id) ties movements to the document
          that caused them, e.g. ("order", <order id>).
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_stock_movements_item_id", "item_id"),
        Index("idx_stock_movements_reference", "reference_type", "reference_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    delta: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    item: Mapped["InventoryItemModel"] = relationship()

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import StockMovement

        return StockMovement(
            id=self.id,
            item_id=self.item_id,
            delta=self.delta,
            reason=self.reason,
            quantity_after=self.quantity_after,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<StockMovementModel item={self.item_id} delta={self.delta}>"
