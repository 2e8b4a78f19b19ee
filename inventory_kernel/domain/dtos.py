"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    document input (DocumentHeader, LineInput), validation output
    (QuantityChange, ValidationResult), and the read models returned by
    selectors and the orchestrator.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers (never from domain logic).

Invariants enforced:
    - Callers never receive ORM entities; every read returns a frozen DTO.
    - LineInput quantities are whole numbers (checked at construction).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from inventory_kernel.models.catalog import Product as ProductModel
    from inventory_kernel.models.catalog import Warehouse as WarehouseModel
    from inventory_kernel.models.document import Document as DocumentModel
    from inventory_kernel.models.document import DocumentLine as DocumentLineModel
    from inventory_kernel.models.movement import StockMovement as StockMovementModel
    from inventory_kernel.models.stock import StockLocation as StockLocationModel


# =============================================================================
# Input
# =============================================================================


@dataclass(frozen=True)
class DocumentHeader:
    """Header fields supplied by the caller when creating / editing a document.

    ``warehouse_id`` is the receiving, delivering, source or counted
    warehouse depending on the document kind.
    """
    warehouse_id: UUID | None
    destination_warehouse_id: UUID | None = None
    counterparty_name: str | None = None
    scheduled_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class LineInput:
    """One requested line.  For adjustments ``quantity`` is the counted amount."""
    product_id: UUID
    quantity: int
    rack_location: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise TypeError(
                f"quantity must be a whole number, got {type(self.quantity).__name__}"
            )


# =============================================================================
# Stock mutations
# =============================================================================


@dataclass(frozen=True)
class QuantityChange:
    """Before/after of one stock location mutation."""
    before: int
    after: int

    @property
    def change(self) -> int:
        return self.after - self.before


# =============================================================================
# Read models
# =============================================================================


@dataclass(frozen=True)
class StockLocationDTO:
    product_id: UUID
    warehouse_id: UUID
    rack_location: str
    quantity: int
    sku: str | None = None
    product_name: str | None = None
    warehouse_code: str | None = None

    @classmethod
    def from_model(cls, row: StockLocationModel) -> StockLocationDTO:
        return cls(
            product_id=row.product_id,
            warehouse_id=row.warehouse_id,
            rack_location=row.rack_location,
            quantity=row.quantity,
            sku=row.product.sku if row.product is not None else None,
            product_name=row.product.name if row.product is not None else None,
            warehouse_code=row.warehouse.code if row.warehouse is not None else None,
        )


@dataclass(frozen=True)
class MovementDTO:
    id: UUID
    seq: int
    product_id: UUID
    warehouse_id: UUID
    rack_location: str
    movement_kind: str
    reference_type: str
    reference_id: UUID
    reference_number: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    actor_id: UUID
    occurred_at: datetime

    @classmethod
    def from_model(cls, m: StockMovementModel) -> MovementDTO:
        return cls(
            id=m.id,
            seq=m.seq,
            product_id=m.product_id,
            warehouse_id=m.warehouse_id,
            rack_location=m.rack_location,
            movement_kind=m.movement_kind.value,
            reference_type=m.reference_type,
            reference_id=m.reference_id,
            reference_number=m.reference_number,
            quantity_change=m.quantity_change,
            quantity_before=m.quantity_before,
            quantity_after=m.quantity_after,
            actor_id=m.actor_id,
            occurred_at=m.occurred_at,
        )


@dataclass(frozen=True)
class DocumentLineDTO:
    line_no: int
    product_id: UUID
    quantity: int
    fulfilled_quantity: int
    rack_location: str | None
    system_quantity: int | None

    @property
    def difference(self) -> int | None:
        """Adjustments only: counted minus system quantity."""
        if self.system_quantity is None:
            return None
        return self.quantity - self.system_quantity

    @classmethod
    def from_model(cls, line: DocumentLineModel) -> DocumentLineDTO:
        return cls(
            line_no=line.line_no,
            product_id=line.product_id,
            quantity=line.quantity,
            fulfilled_quantity=line.fulfilled_quantity,
            rack_location=line.rack_location,
            system_quantity=line.system_quantity,
        )


@dataclass(frozen=True)
class DocumentDTO:
    id: UUID
    kind: str
    document_number: str
    status: str
    warehouse_id: UUID
    destination_warehouse_id: UUID | None
    counterparty_name: str | None
    scheduled_date: date | None
    notes: str | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime | None
    created_by_id: UUID
    lines: tuple[DocumentLineDTO, ...] = ()

    @classmethod
    def from_model(cls, doc: DocumentModel) -> DocumentDTO:
        return cls(
            id=doc.id,
            kind=doc.kind.value,
            document_number=doc.document_number,
            status=doc.status.value,
            warehouse_id=doc.warehouse_id,
            destination_warehouse_id=doc.destination_warehouse_id,
            counterparty_name=doc.counterparty_name,
            scheduled_date=doc.scheduled_date,
            notes=doc.notes,
            completed_at=doc.completed_at,
            cancelled_at=doc.cancelled_at,
            created_at=doc.created_at,
            created_by_id=doc.created_by_id,
            lines=tuple(DocumentLineDTO.from_model(line) for line in doc.lines),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a successful validation: the done document and its movements."""
    document: DocumentDTO
    movements: tuple[MovementDTO, ...]

    @property
    def movement_count(self) -> int:
        return len(self.movements)


@dataclass(frozen=True)
class ProductDTO:
    id: UUID
    sku: str
    name: str
    description: str | None
    category: str | None
    unit_of_measure: str
    reorder_level: int
    reorder_quantity: int
    is_active: bool

    @classmethod
    def from_model(cls, p: ProductModel) -> ProductDTO:
        return cls(
            id=p.id,
            sku=p.sku,
            name=p.name,
            description=p.description,
            category=p.category,
            unit_of_measure=p.unit_of_measure,
            reorder_level=p.reorder_level,
            reorder_quantity=p.reorder_quantity,
            is_active=p.is_active,
        )


@dataclass(frozen=True)
class WarehouseDTO:
    id: UUID
    code: str
    name: str
    address: str | None
    is_active: bool

    @classmethod
    def from_model(cls, w: WarehouseModel) -> WarehouseDTO:
        return cls(
            id=w.id,
            code=w.code,
            name=w.name,
            address=w.address,
            is_active=w.is_active,
        )


# =============================================================================
# Reports
# =============================================================================


@dataclass(frozen=True)
class KeyDiscrepancy:
    """A (product, warehouse, rack) whose ledger does not explain its stock."""
    product_id: UUID
    warehouse_id: UUID
    rack_location: str
    stock_quantity: int
    ledger_total: int
    chain_breaks: int = 0

    @property
    def difference(self) -> int:
        return self.stock_quantity - self.ledger_total


@dataclass(frozen=True)
class ReconciliationReport:
    keys_checked: int
    movements_checked: int
    discrepancies: tuple[KeyDiscrepancy, ...] = ()

    @property
    def is_reconciled(self) -> bool:
        return not self.discrepancies


@dataclass(frozen=True)
class LowStockItem:
    product_id: UUID
    sku: str
    name: str
    on_hand: int
    reorder_level: int
    reorder_quantity: int


@dataclass(frozen=True)
class DashboardSummary:
    """Counts and alerts for a landing page."""
    active_products: int
    active_warehouses: int
    total_units_on_hand: int
    pending_by_kind: dict[str, int] = field(default_factory=dict)
    low_stock: tuple[LowStockItem, ...] = ()
    recent_documents: tuple[DocumentDTO, ...] = ()

    @property
    def pending_total(self) -> int:
        return sum(self.pending_by_kind.values())
