"""Database layer - engine, base classes, types, and immutability."""

from inventory_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from inventory_kernel.db.engine import create_tables, get_engine, get_session
from inventory_kernel.db.types import DocumentNumber, Quantity, RackLabel, Sequence

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Quantity",
    "RackLabel",
    "Sequence",
    "DocumentNumber",
]
