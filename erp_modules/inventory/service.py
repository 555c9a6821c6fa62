"""
Inventory Module Service (``erp_modules.inventory.service``).

Responsibility
--------------
Transactional facade over ``InventoryLedger`` for callers that work on
stock directly (item maintenance, purchases, stock counts, replenishment
screens).  Order transitions do not go through this class; they use the
flush-only ledger inside their own transaction.

Invariants
----------
- Each public mutating method owns its transaction boundary: commit on
  success, rollback and re-raise on failure.
- quantity_on_hand is never assigned directly; an initial quantity is
  booked as an ``initial_stock`` movement.

Failure Modes
-------------
- ``ValueError`` for invalid item attributes.
- ``InsufficientStockError`` / ``EntityNotFoundError`` from the ledger.
- ``sqlalchemy.exc.IntegrityError`` for a duplicate SKU.

Usage::

    service = InventoryService(session)
    bolt = service.create_item("BOLT-M6", "Bolt M6", ItemType.RAW_MATERIAL,
                               quantity_on_hand=Decimal("100"))
    service.adjust_stock(bolt.id, Decimal("-3"), MovementReason.MANUAL_ADJUSTMENT)
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_engines.replenishment import ReplenishmentAlert
from erp_kernel.db.types import ZERO, to_decimal
from erp_kernel.logging_config import get_logger
from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import (
    InventoryItem,
    ItemType,
    MovementReason,
    StockMovement,
)
from erp_modules.inventory.orm import InventoryItemModel

logger = get_logger("modules.inventory.service")


class InventoryService:
    """
    Orchestrates stock maintenance operations.

    Contract:
        Each public mutating method commits on success and rolls back on
        failure.  Read methods do not touch the transaction.
    """

    def __init__(self, session: Session):
        self._session = session
        self._ledger = InventoryLedger(session)

    @property
    def ledger(self) -> InventoryLedger:
        return self._ledger

    # =========================================================================
    # Items
    # =========================================================================

    def create_item(
        self,
        sku: str,
        name: str,
        item_type: ItemType,
        *,
        quantity_on_hand: Decimal = ZERO,
        reorder_point: Decimal = ZERO,
        reorder_quantity: Decimal = ZERO,
        lead_time_days: int = 0,
        unit_cost: Decimal = ZERO,
        sales_price: Decimal = ZERO,
        actor_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Create a stock-keeping item.

        Raises:
            ValueError: empty sku/name or a negative numeric attribute.
        """
        if not sku or not sku.strip():
            raise ValueError("sku cannot be empty")
        if not name or not name.strip():
            raise ValueError("name cannot be empty")
        numeric = {
            "quantity_on_hand": to_decimal(quantity_on_hand),
            "reorder_point": to_decimal(reorder_point),
            "reorder_quantity": to_decimal(reorder_quantity),
            "unit_cost": to_decimal(unit_cost),
            "sales_price": to_decimal(sales_price),
        }
        for field_name, value in numeric.items():
            if value < 0:
                raise ValueError(f"{field_name} cannot be negative")
        if lead_time_days < 0:
            raise ValueError("lead_time_days cannot be negative")

        try:
            item = InventoryItemModel(
                sku=sku.strip(),
                name=name.strip(),
                item_type=ItemType(item_type).value,
                quantity_on_hand=ZERO,
                reorder_point=numeric["reorder_point"],
                reorder_quantity=numeric["reorder_quantity"],
                lead_time_days=lead_time_days,
                unit_cost=numeric["unit_cost"],
                sales_price=numeric["sales_price"],
                created_by_id=actor_id,
            )
            self._session.add(item)
            self._session.flush()

            if numeric["quantity_on_hand"] > 0:
                self._ledger.adjust_stock(
                    item.id,
                    numeric["quantity_on_hand"],
                    MovementReason.INITIAL_STOCK,
                    reference_type="inventory_item",
                    reference_id=item.id,
                    actor_id=actor_id,
                )

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "inventory_item_created",
            extra={"item_id": str(item.id), "sku": item.sku, "item_type": item.item_type},
        )
        return item.to_dto()

    def update_item(
        self,
        item_id: UUID,
        *,
        name: str | None = None,
        reorder_point: Decimal | None = None,
        reorder_quantity: Decimal | None = None,
        lead_time_days: int | None = None,
        unit_cost: Decimal | None = None,
        sales_price: Decimal | None = None,
        is_active: bool | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryItem:
        """
        Change descriptive and planning attributes of an item.

        Quantity is deliberately not accepted here; use ``adjust_stock``.
        """
        try:
            item = self._ledger.get_item_model(item_id)
            if name is not None:
                if not name.strip():
                    raise ValueError("name cannot be empty")
                item.name = name.strip()
            for field_name, value in (
                ("reorder_point", reorder_point),
                ("reorder_quantity", reorder_quantity),
                ("unit_cost", unit_cost),
                ("sales_price", sales_price),
            ):
                if value is not None:
                    value = to_decimal(value)
                    if value < 0:
                        raise ValueError(f"{field_name} cannot be negative")
                    setattr(item, field_name, value)
            if lead_time_days is not None:
                if lead_time_days < 0:
                    raise ValueError("lead_time_days cannot be negative")
                item.lead_time_days = lead_time_days
            if is_active is not None:
                item.is_active = is_active
            if actor_id is not None:
                item.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return item.to_dto()

    def get_item(self, item_id: UUID) -> InventoryItem:
        return self._ledger.get_item_model(item_id).to_dto()

    def get_item_by_sku(self, sku: str) -> InventoryItem | None:
        row = self._session.scalars(
            select(InventoryItemModel).where(InventoryItemModel.sku == sku)
        ).one_or_none()
        return row.to_dto() if row is not None else None

    def list_items(self, item_type: ItemType | None = None) -> list[InventoryItem]:
        stmt = select(InventoryItemModel).order_by(InventoryItemModel.sku)
        if item_type is not None:
            stmt = stmt.where(InventoryItemModel.item_type == ItemType(item_type).value)
        return [row.to_dto() for row in self._session.scalars(stmt)]

    # =========================================================================
    # Stock
    # =========================================================================

    def adjust_stock(
        self,
        item_id: UUID,
        delta: Decimal,
        reason: str,
        *,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> Decimal:
        """Apply one adjustment in its own transaction; returns new on-hand."""
        try:
            new_quantity = self._ledger.adjust_stock(
                item_id,
                delta,
                reason,
                reference_type=reference_type,
                reference_id=reference_id,
                actor_id=actor_id,
            )
            self._session.commit()
            return new_quantity
        except Exception:
            self._session.rollback()
            raise

    def get_quantity(self, item_id: UUID) -> Decimal:
        return self._ledger.get_quantity(item_id)

    def movements_for(self, item_id: UUID) -> list[StockMovement]:
        return self._ledger.movements_for(item_id=item_id)

    def compute_replenishment_alerts(self) -> list[ReplenishmentAlert]:
        return self._ledger.compute_replenishment_alerts()
