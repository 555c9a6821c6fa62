"""
Inventory module: stock-keeping items, the movement ledger and
replenishment alerts.
"""

from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import (
    InventoryItem,
    ItemType,
    MovementReason,
    StockAdjustment,
    StockMovement,
)
from erp_modules.inventory.service import InventoryService

__all__ = [
    "InventoryItem",
    "InventoryLedger",
    "InventoryService",
    "ItemType",
    "MovementReason",
    "StockAdjustment",
    "StockMovement",
]
