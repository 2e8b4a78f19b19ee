"""ORM models for the inventory kernel."""

from inventory_kernel.models.catalog import Product, Warehouse
from inventory_kernel.models.document import (
    Document,
    DocumentKind,
    DocumentLine,
    DocumentStatus,
)
from inventory_kernel.models.movement import MovementKind, StockMovement
from inventory_kernel.models.sequence import SequenceCounter
from inventory_kernel.models.stock import StockLocation

__all__ = [
    "Product",
    "Warehouse",
    "StockLocation",
    "StockMovement",
    "MovementKind",
    "Document",
    "DocumentKind",
    "DocumentStatus",
    "DocumentLine",
    "SequenceCounter",
]
