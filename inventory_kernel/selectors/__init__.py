"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.catalog_selector import CatalogSelector
from inventory_kernel.selectors.dashboard_selector import DashboardSelector
from inventory_kernel.selectors.document_selector import DocumentSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.reconciliation_selector import ReconciliationSelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "CatalogSelector",
    "DashboardSelector",
    "DocumentSelector",
    "MovementSelector",
    "ReconciliationSelector",
    "StockSelector",
]
