"""
Module: inventory_kernel.models.document
Responsibility: ORM persistence for stock documents (receipts, deliveries,
    internal transfers, stock adjustments) and their lines.
Architecture position: Kernel > Models.  May import from db/ only.

Documents are a tagged variant: one ``documents`` table with a ``kind``
column, and one validator per kind in services/document_service.py.

Invariants enforced:
    - document_number uniqueness (UNIQUE constraint).
    - Terminal documents (done, cancelled) are frozen; lines are frozen once
      the document leaves draft, except the fields validation writes
      (ORM listeners in db/immutability.py).
    - A document exclusively owns its lines (cascade delete-orphan).

Audit relevance:
    completed_at is the received / delivered / moved / counted date.
    Movements point back here through reference_id and reference_number.
"""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import DocumentNumber, Quantity, RackLabel, enum_values

if TYPE_CHECKING:
    from inventory_kernel.models.catalog import Product, Warehouse


class DocumentKind(str, Enum):
    """Document variants.  Each has its own number prefix and validator."""

    RECEIPT = "receipt"
    DELIVERY = "delivery"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"

    @property
    def reference_type(self) -> str:
        """Value written to StockMovement.reference_type."""
        return _REFERENCE_TYPES[self]

    @property
    def sequence_name(self) -> str:
        """Name of the counter that numbers this kind."""
        return f"document.{self.value}"


_REFERENCE_TYPES = {
    DocumentKind.RECEIPT: "receipt",
    DocumentKind.DELIVERY: "delivery_order",
    DocumentKind.TRANSFER: "internal_transfer",
    DocumentKind.ADJUSTMENT: "stock_adjustment",
}


class DocumentStatus(str, Enum):
    """
    Lifecycle status of a document.

    Contract: draft -> ready -> done, draft|ready -> cancelled, draft -> done.
    Guarantees: done and cancelled are terminal.
    """

    DRAFT = "draft"
    READY = "ready"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.DONE, DocumentStatus.CANCELLED)


TERMINAL_STATUSES = (DocumentStatus.DONE, DocumentStatus.CANCELLED)


class Document(TrackedBase):
    """
    Header of a stock document.

    Contract:
        warehouse_id is the receiving warehouse (receipt), the shipping
        warehouse (delivery), the source warehouse (transfer) or the counted
        warehouse (adjustment).  destination_warehouse_id is set only for
        transfers.

    Guarantees:
        - status changes only through DocumentService and the workflow in
          domain/workflow.py.
        - completed_at is set exactly when status becomes done.

    Non-goals:
        - No reversal link: a done document is final.
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("document_number", name="uq_document_number"),
        Index("idx_document_kind_status", "kind", "status"),
        Index("idx_document_warehouse", "warehouse_id"),
        Index("idx_document_created_at", "created_at"),
    )

    kind: Mapped[DocumentKind] = mapped_column(
        SAEnum(DocumentKind, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
    )

    document_number: Mapped[DocumentNumber] = mapped_column(nullable=False)

    status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=DocumentStatus.DRAFT,
    )

    # Supplier (receipt) or customer (delivery)
    counterparty_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    destination_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=True,
    )

    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Free text; the reason for adjustments
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["DocumentLine"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.line_no",
        lazy="selectin",
    )

    warehouse: Mapped["Warehouse"] = relationship(foreign_keys=[warehouse_id])

    destination_warehouse: Mapped["Warehouse | None"] = relationship(
        foreign_keys=[destination_warehouse_id],
    )

    def __repr__(self) -> str:
        return f"<Document {self.document_number} {self.kind.value} status={self.status.value}>"

    @property
    def is_draft(self) -> bool:
        return self.status == DocumentStatus.DRAFT

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class DocumentLine(Base):
    """
    One product line of a document.

    Contract:
        quantity is the requested quantity, or the counted actual quantity
        for adjustments.  fulfilled_quantity and system_quantity are written
        by validation only.
    """

    __tablename__ = "document_lines"

    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_document_line_no"),
        CheckConstraint("quantity >= 0", name="ck_document_line_quantity"),
        Index("idx_document_line_product", "product_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    fulfilled_quantity: Mapped[Quantity] = mapped_column(nullable=False, default=0)

    # Destination rack (receipt/transfer) or counted rack (adjustment)
    rack_location: Mapped[RackLabel | None] = mapped_column(nullable=True)

    # Adjustments: what the system held when the count was applied
    system_quantity: Mapped[Quantity | None] = mapped_column(nullable=True)

    document: Mapped["Document"] = relationship(back_populates="lines")

    product: Mapped["Product"] = relationship(foreign_keys=[product_id])

    def __repr__(self) -> str:
        return f"<DocumentLine #{self.line_no} {self.product_id} qty={self.quantity}>"
