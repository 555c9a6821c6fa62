"""
InventoryLedger -- the single mutating entry point for on-hand quantities.

Responsibility:
    Applies stock adjustments under row locks and records one append-only
    StockMovement per applied adjustment.  Every other component (order
    production, cancellation, manual counts) changes stock through here.

Architecture position:
    Modules > Inventory -- flush-only service (``BaseService``).  Runs in
    the caller's transaction and never commits or rolls back.

Invariants enforced:
    - Non-negativity: quantity_on_hand + delta >= 0 is checked under a
      ``SELECT ... FOR UPDATE`` lock before anything is written.
    - Conservation: quantity_on_hand always equals the sum of the item's
      movement deltas.
    - Lock ordering: batches lock item rows in ascending id order.
    - All-or-nothing batches: every adjustment of a batch is validated
      before the first one is written.

Failure modes:
    - EntityNotFoundError: unknown item id.
    - InsufficientStockError: adjustment would go negative (nothing written).
    - ValueError: zero delta.
    - ConcurrencyConflictError: lock contention reported by the driver.

Audit relevance:
    Each movement carries reason, reference and quantity_after; movements
    are immutable (erp_kernel.db.immutability).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_engines.replenishment import ReplenishmentAlert, StockPosition, compute_alerts
from erp_kernel.db.locking import lock_row, lock_rows, translate_concurrency_errors
from erp_kernel.db.types import ZERO, to_decimal
from erp_kernel.exceptions import EntityNotFoundError, InsufficientStockError
from erp_kernel.logging_config import get_logger
from erp_kernel.services.base import BaseService
from erp_modules.inventory.models import (
    ItemType,
    StockAdjustment,
    StockMovement,
)
from erp_modules.inventory.orm import InventoryItemModel, StockMovementModel

logger = get_logger("modules.inventory.ledger")


class InventoryLedger(BaseService[InventoryItemModel]):
    """
    Flush-only stock ledger.

    Usage:
        ledger = InventoryLedger(session)
        ledger.adjust_stock(item_id, Decimal("-2"), "production_consumption",
                            reference_type="order", reference_id=order_id)
        session.commit()  # caller owns the transaction
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_item_model(self, item_id: UUID) -> InventoryItemModel:
        item = self.session.get(InventoryItemModel, item_id)
        if item is None:
            raise EntityNotFoundError("InventoryItem", str(item_id))
        return item

    def get_quantity(self, item_id: UUID) -> Decimal:
        """Current on-hand quantity of an item."""
        return self.get_item_model(item_id).quantity_on_hand

    def movements_for(
        self,
        item_id: UUID | None = None,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
    ) -> list[StockMovement]:
        """Movements filtered by item and/or reference, oldest first."""
        stmt = select(StockMovementModel)
        if item_id is not None:
            stmt = stmt.where(StockMovementModel.item_id == item_id)
        if reference_type is not None:
            stmt = stmt.where(StockMovementModel.reference_type == reference_type)
        if reference_id is not None:
            stmt = stmt.where(StockMovementModel.reference_id == reference_id)
        stmt = stmt.order_by(StockMovementModel.created_at, StockMovementModel.id)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    # =========================================================================
    # Adjustments
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
        """
        Apply one signed adjustment and return the new on-hand quantity.

        Raises:
            ValueError: delta is zero.
            EntityNotFoundError: unknown item.
            InsufficientStockError: on-hand would drop below zero.
        """
        delta = to_decimal(delta)
        if delta == 0:
            raise ValueError("Stock adjustment delta cannot be zero")

        with translate_concurrency_errors("adjust_stock"):
            item = lock_row(self.session, InventoryItemModel, item_id)
            if item is None:
                raise EntityNotFoundError("InventoryItem", str(item_id))
            self._check_available(item, delta)
            new_quantity = self._apply(
                item, delta, reason, reference_type, reference_id, actor_id,
            )
            self.session.flush()
        return new_quantity

    def adjust_many(
        self,
        adjustments: Iterable[StockAdjustment],
        *,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> dict[UUID, Decimal]:
        """
        Apply a batch of adjustments atomically.

        Adjustments for the same item and reason are merged.  All item rows
        are locked in ascending id order, every resulting quantity is
        checked, and only then are movements written.  Per item, increases
        are written before decreases so no movement's quantity_after is
        negative.

        Returns:
            Mapping of item id to new on-hand quantity.

        Raises:
            EntityNotFoundError: an item does not exist (nothing written).
            InsufficientStockError: the first item (in id order) that would
                go negative (nothing written).
        """
        merged: dict[tuple[UUID, str], Decimal] = {}
        for adjustment in adjustments:
            delta = to_decimal(adjustment.delta)
            if delta == 0:
                continue
            key = (adjustment.item_id, adjustment.reason)
            merged[key] = merged.get(key, ZERO) + delta
        merged = {key: delta for key, delta in merged.items() if delta != 0}
        if not merged:
            return {}

        with translate_concurrency_errors("adjust_many"):
            item_ids = {item_id for item_id, _ in merged}
            locked = lock_rows(self.session, InventoryItemModel, item_ids)

            for item_id in sorted(item_ids, key=str):
                if item_id not in locked:
                    raise EntityNotFoundError("InventoryItem", str(item_id))
                net = sum(
                    (delta for (iid, _), delta in merged.items() if iid == item_id),
                    ZERO,
                )
                if net < 0:
                    self._check_available(locked[item_id], net)

            results: dict[UUID, Decimal] = {}
            for (item_id, reason), delta in sorted(
                merged.items(), key=lambda kv: (str(kv[0][0]), kv[1] < 0, kv[0][1])
            ):
                results[item_id] = self._apply(
                    locked[item_id], delta, reason,
                    reference_type, reference_id, actor_id,
                )
            self.session.flush()

        logger.info(
            "stock_batch_adjusted",
            extra={
                "item_count": len(results),
                "reference_type": reference_type,
                "reference_id": str(reference_id) if reference_id else None,
            },
        )
        return results

    def _check_available(self, item: InventoryItemModel, delta: Decimal) -> None:
        if delta < 0 and item.quantity_on_hand + delta < 0:
            logger.warning(
                "stock_adjustment_rejected",
                extra={
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "requested": -delta,
                    "available": item.quantity_on_hand,
                },
            )
            raise InsufficientStockError(
                item_id=str(item.id),
                requested=-delta,
                available=item.quantity_on_hand,
            )

    def _apply(
        self,
        item: InventoryItemModel,
        delta: Decimal,
        reason: str,
        reference_type: str | None,
        reference_id: UUID | None,
        actor_id: UUID | None,
    ) -> Decimal:
        new_quantity = item.quantity_on_hand + delta
        item.quantity_on_hand = new_quantity
        if actor_id is not None:
            item.updated_by_id = actor_id
        self.session.add(
            StockMovementModel(
                item_id=item.id,
                delta=delta,
                reason=reason,
                quantity_after=new_quantity,
                reference_type=reference_type,
                reference_id=reference_id,
                created_by_id=actor_id,
            )
        )
        logger.info(
            "stock_adjusted",
            extra={
                "item_id": str(item.id),
                "sku": item.sku,
                "delta": delta,
                "quantity_after": new_quantity,
                "reason": reason,
            },
        )
        return new_quantity

    # =========================================================================
    # Replenishment
    # =========================================================================

    def compute_replenishment_alerts(self) -> list[ReplenishmentAlert]:
        """
        Alerts for raw materials at or below their reorder point.

        Inactive items are included: existing BOMs and orders can still
        consume them.

        Read-only, takes no locks; a concurrent adjustment may make the
        result slightly stale, which is acceptable for a recommendation.
        """
        rows = self.session.scalars(
            select(InventoryItemModel)
            .where(InventoryItemModel.item_type == ItemType.RAW_MATERIAL.value)
            .where(InventoryItemModel.quantity_on_hand <= InventoryItemModel.reorder_point)
        )
        positions: Sequence[StockPosition] = [
            StockPosition(
                item_id=row.id,
                sku=row.sku,
                name=row.name,
                quantity_on_hand=row.quantity_on_hand,
                reorder_point=row.reorder_point,
                reorder_quantity=row.reorder_quantity,
                lead_time_days=row.lead_time_days,
            )
            for row in rows
        ]
        return compute_alerts(positions)
