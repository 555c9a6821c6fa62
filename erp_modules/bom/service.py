"""
Bill-of-Material Module Service (``erp_modules.bom.service``).

Responsibility
--------------
Creates and maintains BOM definitions and exposes explosion / cost
roll-up to callers outside an order transaction.

Invariants
----------
- A BOM belongs to exactly one manufactured item, and an item has at most
  one BOM (saving again replaces the lines).
- Every component exists, quantities are positive, labour cost is not
  negative, a component appears once per BOM.
- The graph that would result from saving is proven acyclic before
  anything is written.
- Saves serialize on the item rows of the owner and of every item
  reachable from it, locked before the graph is checked.  Two saves
  that together would close a cycle therefore cannot both pass the check.
- Each public mutating method owns its transaction boundary.

Failure Modes
-------------
- ``EntityNotFoundError`` -- owner or component item missing.
- ``InvalidBOMError`` -- structural problems listed above.
- ``CyclicBOMError`` -- the BOM would make an item its own component.
- ``IncompleteBOMError`` -- a manufactured component has no active BOM.
- ``ConcurrencyConflictError`` -- lock timeout or deadlock on item rows.

Usage::

    service = BomService(session)
    bom = service.save_bom(table_id, "Table v1", [
        BomLineInput(leg_id, Decimal("4")),
        BomLineInput(top_id, Decimal("1")),
    ], manual_labor_cost=Decimal("15"))
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_engines.bom import BomGraph, BomLineSpec
from erp_kernel.db.locking import lock_rows, translate_concurrency_errors
from erp_kernel.db.types import ZERO, to_decimal
from erp_kernel.exceptions import EntityNotFoundError, InvalidBOMError
from erp_kernel.logging_config import get_logger
from erp_modules.bom.explosion import BomExplosionService, BomOverride
from erp_modules.bom.models import BillOfMaterial, BomLineInput
from erp_modules.bom.orm import BillOfMaterialModel, BomLineModel
from erp_modules.inventory.models import ItemType
from erp_modules.inventory.orm import InventoryItemModel

logger = get_logger("modules.bom.service")


class BomService:
    """Orchestrates BOM maintenance, explosion and costing."""

    def __init__(self, session: Session):
        self._session = session
        self._explosion = BomExplosionService(session)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def save_bom(
        self,
        item_id: UUID,
        name: str,
        lines: Sequence[BomLineInput],
        *,
        manual_labor_cost: Decimal = ZERO,
        actor_id: UUID | None = None,
    ) -> BillOfMaterial:
        """
        Create the BOM of a manufactured item, or replace its content.

        Postconditions:
            The BOM is active and ``total_calculated_cost`` holds the
            rolled-up unit cost at save time.
        """
        try:
            with translate_concurrency_errors("save_bom"):
                bom = self._save_bom(item_id, name, lines, manual_labor_cost, actor_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "bom_saved",
            extra={
                "bom_id": str(bom.id),
                "item_id": str(item_id),
                "line_count": len(bom.lines),
                "total_calculated_cost": bom.total_calculated_cost,
            },
        )
        return bom.to_dto()

    def _save_bom(
        self,
        item_id: UUID,
        name: str,
        lines: Sequence[BomLineInput],
        manual_labor_cost: Decimal,
        actor_id: UUID | None,
    ) -> BillOfMaterialModel:
        locked = lock_rows(
            self._session,
            InventoryItemModel,
            [item_id, *(line.component_item_id for line in lines)],
        )
        owner = locked.get(item_id)
        if owner is None:
            raise EntityNotFoundError("InventoryItem", str(item_id))
        if owner.item_type != ItemType.MANUFACTURED.value:
            raise InvalidBOMError(item_id, f"item {owner.sku} is not a manufactured item")
        if not name or not name.strip():
            raise InvalidBOMError(item_id, "name cannot be empty")
        if not lines:
            raise InvalidBOMError(item_id, "a BOM needs at least one component line")

        manual_labor_cost = to_decimal(manual_labor_cost)
        if manual_labor_cost < 0:
            raise InvalidBOMError(item_id, "manual labor cost cannot be negative")

        specs: list[BomLineSpec] = []
        seen: set[UUID] = set()
        for line in lines:
            quantity = to_decimal(line.quantity_per_unit)
            if quantity <= 0:
                raise InvalidBOMError(
                    item_id,
                    f"quantity for component {line.component_item_id} must be positive",
                )
            if line.component_item_id in seen:
                raise InvalidBOMError(
                    item_id, f"component {line.component_item_id} is listed twice"
                )
            if line.component_item_id not in locked:
                raise EntityNotFoundError("InventoryItem", str(line.component_item_id))
            seen.add(line.component_item_id)
            specs.append(BomLineSpec(line.component_item_id, quantity))

        name_clash = self._session.scalars(
            select(BillOfMaterialModel)
            .where(BillOfMaterialModel.name == name.strip())
            .where(BillOfMaterialModel.item_id != item_id)
        ).first()
        if name_clash is not None:
            raise InvalidBOMError(item_id, f"BOM name '{name.strip()}' is already in use")

        graph = self._locked_graph(
            item_id, BomOverride(specs, manual_labor_cost), set(locked)
        )
        graph.assert_acyclic(item_id)
        total_cost = graph.roll_up_cost(item_id)

        bom = self._session.scalars(
            select(BillOfMaterialModel).where(BillOfMaterialModel.item_id == item_id)
        ).one_or_none()
        if bom is None:
            bom = BillOfMaterialModel(item_id=item_id, created_by_id=actor_id)
            self._session.add(bom)
        else:
            bom.lines.clear()
            self._session.flush()
            if actor_id is not None:
                bom.updated_by_id = actor_id

        bom.name = name.strip()
        bom.manual_labor_cost = manual_labor_cost
        bom.total_calculated_cost = total_cost
        bom.is_active = True
        bom.lines = [
            BomLineModel(
                line_number=number,
                component_item_id=spec.component_item_id,
                quantity_per_unit=spec.quantity_per_unit,
                created_by_id=actor_id,
            )
            for number, spec in enumerate(specs, start=1)
        ]
        self._session.flush()
        return bom

    def _locked_graph(
        self,
        item_id: UUID,
        override: BomOverride,
        locked: set[UUID],
    ) -> BomGraph:
        """
        The graph as it would look after saving, with every item in it locked.

        Locking a newly reached item can reveal BOM lines committed while
        waiting, so the graph is reloaded until no unlocked item remains.
        """
        while True:
            graph = self._explosion.build_graph(item_id, overrides={item_id: override})
            unlocked = graph.item_ids - locked
            if not unlocked:
                return graph
            lock_rows(self._session, InventoryItemModel, unlocked)
            locked |= unlocked

    def deactivate_bom(self, item_id: UUID, actor_id: UUID | None = None) -> BillOfMaterial:
        """Mark an item's BOM inactive; explosion then reports it as incomplete."""
        try:
            bom = self._bom_model_for(item_id)
            bom.is_active = False
            if actor_id is not None:
                bom.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("bom_deactivated", extra={"bom_id": str(bom.id), "item_id": str(item_id)})
        return bom.to_dto()

    def get_bom(self, item_id: UUID) -> BillOfMaterial:
        return self._bom_model_for(item_id).to_dto()

    def _bom_model_for(self, item_id: UUID) -> BillOfMaterialModel:
        bom = self._session.scalars(
            select(BillOfMaterialModel).where(BillOfMaterialModel.item_id == item_id)
        ).one_or_none()
        if bom is None:
            raise EntityNotFoundError("BillOfMaterial", str(item_id))
        return bom

    # =========================================================================
    # Explosion and costing
    # =========================================================================

    def explode(self, item_id: UUID, units_required: Decimal) -> dict[UUID, Decimal]:
        """Flat raw-material requirements; never touches stock."""
        return self._explosion.explode(item_id, to_decimal(units_required))

    def roll_up_cost(self, item_id: UUID) -> Decimal:
        """Current unit cost from current component costs (unrounded)."""
        return self._explosion.roll_up_cost(item_id)
