"""
Orders module: draft order editing and the sales order lifecycle.
"""

from erp_modules.orders.models import (
    Order,
    OrderItem,
    OrderItemInput,
    OrderStatus,
    OrderTotals,
    OrderType,
    StockShortage,
)
from erp_modules.orders.service import OrderService
from erp_modules.orders.workflows import ORDER_WORKFLOW

__all__ = [
    "ORDER_WORKFLOW",
    "Order",
    "OrderItem",
    "OrderItemInput",
    "OrderService",
    "OrderStatus",
    "OrderTotals",
    "OrderType",
    "StockShortage",
]
