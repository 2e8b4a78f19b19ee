"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the append-only stock movement ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Arithmetic: quantity_after = quantity_before + quantity_change
      (CHECK constraint, also verified by MovementLedger before insert).
    - Chaining: quantity_before equals the quantity_after of the previous
      movement for the same key (verified by MovementLedger).
    - Ordering: seq is a unique global ordinal drawn from the
      ``stock_movement`` sequence.
    - Immutability: rows are never updated or deleted (ORM listeners in
      db/immutability.py).

Failure modes:
    - ImmutabilityViolationError on any UPDATE or DELETE.
    - IntegrityError on duplicate seq (impossible through SequenceService).

Audit relevance:
    The ledger is the evidence trail for every stock quantity.  Replaying
    quantity_change per key from seq order reproduces stock_locations.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import (
    DocumentNumber,
    Quantity,
    RackLabel,
    Sequence,
    enum_values,
)


class MovementKind(str, Enum):
    """What caused a movement."""

    RECEIPT = "receipt"
    DELIVERY = "delivery"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"


class StockMovement(Base):
    """
    One immutable ledger entry for one (product, warehouse, rack).

    Contract:
        Written exactly once by MovementLedger.append inside the same
        transaction as the stock mutation it records.

    Guarantees:
        - quantity_change is signed; before/after are never negative.
        - reference_type/reference_id/reference_number identify the document
          that caused the movement.

    Non-goals:
        - No foreign key to documents: the ledger outlives any document
          housekeeping and is keyed by reference only.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_stock_movement_seq"),
        CheckConstraint(
            "quantity_after = quantity_before + quantity_change",
            name="ck_stock_movement_arithmetic",
        ),
        CheckConstraint("quantity_before >= 0", name="ck_stock_movement_before"),
        CheckConstraint("quantity_after >= 0", name="ck_stock_movement_after"),
        Index(
            "idx_movement_key_seq",
            "product_id",
            "warehouse_id",
            "rack_location",
            "seq",
        ),
        Index("idx_movement_reference", "reference_type", "reference_id"),
        Index("idx_movement_kind", "movement_kind"),
    )

    seq: Mapped[Sequence] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    rack_location: Mapped[RackLabel] = mapped_column(nullable=False)

    movement_kind: Mapped[MovementKind] = mapped_column(
        SAEnum(MovementKind, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
    )

    # Which document caused this movement
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)

    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    reference_number: Mapped[DocumentNumber] = mapped_column(nullable=False)

    quantity_change: Mapped[Quantity] = mapped_column(nullable=False)

    quantity_before: Mapped[Quantity] = mapped_column(nullable=False)

    quantity_after: Mapped[Quantity] = mapped_column(nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    @property
    def key(self) -> tuple[UUID, UUID, str]:
        return (self.product_id, self.warehouse_id, self.rack_location)

    def __repr__(self) -> str:
        return (
            f"<StockMovement #{self.seq} {self.movement_kind.value} "
            f"{self.quantity_before}{self.quantity_change:+d}={self.quantity_after}>"
        )
