"""
BomExplosionService -- builds BOM graphs from the database and explodes them.

Responsibility:
    Loads every item and active BOM reachable from a root item (one query
    round per BOM level), hands the resulting ``BomGraph`` to the pure
    engine, and returns flat raw-material requirements or rolled-up cost.

Architecture position:
    Modules > BOM -- read-only service usable inside any caller's
    transaction (order production, BOM maintenance).  Never writes.

Failure modes:
    - EntityNotFoundError: the root or a component item does not exist.
    - CyclicBOMError / IncompleteBOMError: from the engine.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_engines.bom import BomGraph, BomLineSpec, BomNode
from erp_kernel.exceptions import EntityNotFoundError
from erp_kernel.logging_config import get_logger
from erp_kernel.services.base import BaseService
from erp_modules.bom.orm import BillOfMaterialModel
from erp_modules.inventory.models import ItemType
from erp_modules.inventory.orm import InventoryItemModel

logger = get_logger("modules.bom.explosion")


class BomOverride:
    """Proposed (not yet stored) BOM content for one item, used for validation."""

    def __init__(
        self,
        lines: Sequence[BomLineSpec],
        manual_labor_cost: Decimal = Decimal("0"),
    ):
        self.lines = tuple(lines)
        self.manual_labor_cost = manual_labor_cost


class BomExplosionService(BaseService[BillOfMaterialModel]):
    """Read-only bridge between stored BOMs and the explosion engine."""

    def __init__(self, session: Session):
        super().__init__(session)

    def build_graph(
        self,
        root_ids: Sequence[UUID] | UUID,
        overrides: Mapping[UUID, BomOverride] | None = None,
    ) -> BomGraph:
        """
        Load the subgraph reachable from ``root_ids``.

        ``overrides`` replaces the stored BOM of an item with proposed
        content (used to validate a BOM before it is saved).

        Raises:
            EntityNotFoundError: a referenced item does not exist.
        """
        if isinstance(root_ids, UUID):
            root_ids = [root_ids]
        overrides = overrides or {}

        nodes: dict[UUID, BomNode] = {}
        frontier: set[UUID] = set(root_ids)
        while frontier:
            items = {
                row.id: row
                for row in self.session.scalars(
                    select(InventoryItemModel).where(InventoryItemModel.id.in_(frontier))
                )
            }
            missing = frontier - set(items)
            if missing:
                raise EntityNotFoundError("InventoryItem", str(sorted(missing, key=str)[0]))

            manufactured = [
                item_id for item_id, row in items.items()
                if row.item_type == ItemType.MANUFACTURED.value and item_id not in overrides
            ]
            boms: dict[UUID, BillOfMaterialModel] = {}
            if manufactured:
                boms = {
                    bom.item_id: bom
                    for bom in self.session.scalars(
                        select(BillOfMaterialModel)
                        .where(BillOfMaterialModel.item_id.in_(manufactured))
                        .where(BillOfMaterialModel.is_active.is_(True))
                        .execution_options(populate_existing=True)
                    )
                }

            next_frontier: set[UUID] = set()
            for item_id, row in items.items():
                is_manufactured = row.item_type == ItemType.MANUFACTURED.value
                lines: tuple[BomLineSpec, ...] | None = None
                labor = Decimal("0")
                if is_manufactured and item_id in overrides:
                    lines = overrides[item_id].lines
                    labor = overrides[item_id].manual_labor_cost
                elif is_manufactured and item_id in boms:
                    bom = boms[item_id]
                    lines = tuple(
                        BomLineSpec(line.component_item_id, line.quantity_per_unit)
                        for line in bom.lines
                    )
                    labor = bom.manual_labor_cost

                nodes[item_id] = BomNode(
                    item_id=item_id,
                    is_manufactured=is_manufactured,
                    unit_cost=row.unit_cost,
                    lines=lines,
                    manual_labor_cost=labor,
                )
                for line in lines or ():
                    if line.component_item_id not in nodes:
                        next_frontier.add(line.component_item_id)

            frontier = next_frontier - set(nodes)

        return BomGraph(nodes)

    def explode(self, item_id: UUID, units_required: Decimal) -> dict[UUID, Decimal]:
        """Raw-material requirements for ``units_required`` units of an item."""
        graph = self.build_graph(item_id)
        requirements = graph.explode(item_id, units_required)
        logger.debug(
            "bom_exploded",
            extra={
                "item_id": str(item_id),
                "units_required": units_required,
                "component_count": len(requirements),
            },
        )
        return requirements

    def roll_up_cost(self, item_id: UUID) -> Decimal:
        """Unrounded unit cost of an item including all BOM levels and labour."""
        return self.build_graph(item_id).roll_up_cost(item_id)
