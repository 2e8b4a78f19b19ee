"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- ValidationInputError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- InvalidTransitionError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- NegativeQuantityError
    |
    +-- ConcurrencyError
    |   +-- ContentionError
    |
    +-- LedgerError
    |   +-- LedgerChainBrokenError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- CatalogError
        +-- ProductNotFoundError
        +-- WarehouseNotFoundError
        +-- InactiveProductError
        +-- InactiveWarehouseError
        +-- DuplicateSkuError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | VALIDATION_INPUT            | Missing field, empty lines, bad quantity
----------------|-----------------------------|-----------------------------------------
Document        | DOCUMENT_NOT_FOUND          | Document ID doesn't exist
                | INVALID_TRANSITION          | Edit/validate/cancel from wrong status
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Delivery/transfer demand > availability
                | NEGATIVE_QUANTITY           | Mutation would drive a location below 0
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONTENTION                  | Lock timeout / deadlock (retryable)
----------------|-----------------------------|-----------------------------------------
Ledger          | LEDGER_CHAIN_BROKEN         | before/after chain does not line up
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Editing a movement, SKU or closed doc
----------------|-----------------------------|-----------------------------------------
Catalog         | PRODUCT_NOT_FOUND           | Product ID doesn't exist
                | WAREHOUSE_NOT_FOUND         | Warehouse ID doesn't exist
                | PRODUCT_INACTIVE            | Product is deactivated
                | WAREHOUSE_INACTIVE          | Warehouse is deactivated
                | DUPLICATE_SKU               | SKU already assigned

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        orchestrator.validate_document(document_id, actor_id)
    except InsufficientStockError as e:
        return {"error": e.code, "product": e.product_id, "available": e.available}
    except ContentionError:
        # Retries already exhausted inside the orchestrator
        return {"error": "busy", "retry_after_ms": 500}

Categories let middleware treat errors uniformly:
   - ValidationInputError / InvalidTransitionError -> user-facing, never retried
   - ConcurrencyError -> retry with backoff
   - LedgerError / ImmutabilityError -> alert, investigate
"""

from uuid import UUID


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


class ValidationInputError(InventoryKernelError):
    """Caller supplied a structurally invalid request."""

    code: str = "VALIDATION_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid input for '{field}': {reason}")


# Document-related exceptions


class DocumentError(InventoryKernelError):
    """Base exception for document lifecycle errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document does not exist."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: UUID | str):
        self.document_id = str(document_id)
        super().__init__(f"Document not found: {document_id}")


class InvalidTransitionError(DocumentError):
    """The requested action is not allowed from the document's status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, document_id: UUID | str, status: str, action: str):
        self.document_id = str(document_id)
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} document {document_id} in status '{status}'"
        )


# Stock-related exceptions


class StockError(InventoryKernelError):
    """Base exception for stock quantity errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Outbound demand exceeds the aggregate quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: UUID | str,
        warehouse_id: UUID | str,
        requested: int,
        available: int,
        document_number: str | None = None,
    ):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        self.requested = requested
        self.available = available
        self.document_number = document_number
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse "
            f"{warehouse_id}: requested {requested}, available {available}"
        )


class NegativeQuantityError(StockError):
    """A stock mutation would leave a location below zero."""

    code: str = "NEGATIVE_QUANTITY"

    def __init__(
        self,
        product_id: UUID | str,
        warehouse_id: UUID | str,
        rack_location: str,
        current: int,
        requested: int,
    ):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        self.rack_location = rack_location
        self.current = current
        self.requested = requested
        super().__init__(
            f"Quantity at {product_id}/{warehouse_id}/{rack_location} would "
            f"become negative (current {current}, requested {requested})"
        )


# Concurrency-related exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ContentionError(ConcurrencyError):
    """
    Lock wait timed out or a deadlock / serialization conflict was detected.

    Transient: the operation left no effects and is safe to retry.
    """

    code: str = "CONTENTION"
    retryable: bool = True

    def __init__(self, operation: str, attempts: int = 1, detail: str | None = None):
        self.operation = operation
        self.attempts = attempts
        self.detail = detail
        super().__init__(
            f"Contention during {operation} after {attempts} attempt(s)"
            + (f": {detail}" if detail else "")
        )


# Ledger-related exceptions


class LedgerError(InventoryKernelError):
    """Base exception for movement ledger errors."""

    code: str = "LEDGER_ERROR"


class LedgerChainBrokenError(LedgerError):
    """
    A movement does not chain onto the previous movement for its key.

    Either quantity_after != quantity_before + quantity_change, or
    quantity_before differs from the preceding entry's quantity_after.
    """

    code: str = "LEDGER_CHAIN_BROKEN"

    def __init__(
        self,
        product_id: UUID | str,
        warehouse_id: UUID | str,
        rack_location: str,
        expected_before: int,
        actual_before: int,
    ):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        self.rack_location = rack_location
        self.expected_before = expected_before
        self.actual_before = actual_before
        super().__init__(
            f"Ledger chain broken at {product_id}/{warehouse_id}/{rack_location}: "
            f"expected quantity_before {expected_before}, got {actual_before}"
        )


# Immutability-related exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Catalog-related exceptions


class CatalogError(InventoryKernelError):
    """Base exception for product / warehouse catalog errors."""

    code: str = "CATALOG_ERROR"


class ProductNotFoundError(CatalogError):
    """Product does not exist."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: UUID | str):
        self.product_id = str(product_id)
        super().__init__(f"Product not found: {product_id}")


class WarehouseNotFoundError(CatalogError):
    """Warehouse does not exist."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: UUID | str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse not found: {warehouse_id}")


class InactiveProductError(CatalogError):
    """Product is deactivated and cannot appear on new documents."""

    code: str = "PRODUCT_INACTIVE"

    def __init__(self, product_id: UUID | str, sku: str | None = None):
        self.product_id = str(product_id)
        self.sku = sku
        super().__init__(f"Product {sku or product_id} is inactive")


class InactiveWarehouseError(CatalogError):
    """Warehouse is deactivated and cannot appear on new documents."""

    code: str = "WAREHOUSE_INACTIVE"

    def __init__(self, warehouse_id: UUID | str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse {warehouse_id} is inactive")


class DuplicateSkuError(CatalogError):
    """SKU is already assigned to another product."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}")
