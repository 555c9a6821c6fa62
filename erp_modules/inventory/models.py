"""
Inventory Domain Models (``erp_modules.inventory.models``).

Responsibility
--------------
Frozen dataclass value objects for stock-keeping items, ledger movements
and adjustment requests.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Quantities and money use ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ItemType(Enum):
    """What kind of stock-keeping item this is."""
    RAW_MATERIAL = "raw_material"
    MANUFACTURED = "manufactured"


class MovementReason:
    """Well-known reasons recorded on stock movements (free text is allowed)."""
    INITIAL_STOCK = "initial_stock"
    PURCHASE = "purchase"
    MANUAL_ADJUSTMENT = "adjustment"
    PRODUCTION_CONSUMPTION = "production_consumption"
    PRODUCTION_REVERSAL = "production_reversal"


@dataclass(frozen=True)
class InventoryItem:
    """A stock-keeping item."""
    id: UUID
    sku: str
    name: str
    item_type: ItemType
    quantity_on_hand: Decimal
    reorder_point: Decimal = Decimal("0")
    reorder_quantity: Decimal = Decimal("0")
    lead_time_days: int = 0
    unit_cost: Decimal = Decimal("0")
    sales_price: Decimal = Decimal("0")
    is_active: bool = True

    @property
    def is_manufactured(self) -> bool:
        return self.item_type is ItemType.MANUFACTURED


@dataclass(frozen=True)
class StockMovement:
    """One applied ledger adjustment."""
    id: UUID
    item_id: UUID
    delta: Decimal
    reason: str
    quantity_after: Decimal
    reference_type: str | None = None
    reference_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class StockAdjustment:
    """A requested adjustment, used for batch application."""
    item_id: UUID
    delta: Decimal
    reason: str
