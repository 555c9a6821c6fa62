"""
Bill-of-Material Domain Models (``erp_modules.bom.models``).

Frozen dataclass value objects for BOM definitions.  ZERO I/O.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class BomLineInput:
    """A component line as submitted by a caller."""
    component_item_id: UUID
    quantity_per_unit: Decimal


@dataclass(frozen=True)
class BomLine:
    """A stored component line."""
    id: UUID
    bom_id: UUID
    line_number: int
    component_item_id: UUID
    quantity_per_unit: Decimal


@dataclass(frozen=True)
class BillOfMaterial:
    """The recipe for one unit of a manufactured item."""
    id: UUID
    item_id: UUID
    name: str
    manual_labor_cost: Decimal
    total_calculated_cost: Decimal
    is_active: bool = True
    lines: tuple[BomLine, ...] = field(default_factory=tuple)
