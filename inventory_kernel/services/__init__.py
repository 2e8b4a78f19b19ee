"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.document_service import DocumentService, check_document_input
from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator
from inventory_kernel.services.movement_ledger import MovementLedger, MovementStream
from inventory_kernel.services.retry_service import RetryPolicy
from inventory_kernel.services.sequence_service import DocumentNumberGenerator, SequenceService
from inventory_kernel.services.stock_location_store import StockLocationStore

__all__ = [
    "CatalogService",
    "DocumentNumberGenerator",
    "DocumentService",
    "InventoryOrchestrator",
    "MovementLedger",
    "MovementStream",
    "RetryPolicy",
    "SequenceService",
    "StockLocationStore",
    "check_document_input",
]
