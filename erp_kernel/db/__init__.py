"""Database layer - engine, base classes, types, locking."""

from erp_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from erp_kernel.db.engine import create_tables, get_engine, get_session
from erp_kernel.db.types import Money, Percent, Quantity, round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "Percent",
    "round_money",
]
