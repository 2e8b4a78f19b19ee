"""
Module: inventory_kernel.models.stock
Responsibility: ORM persistence for current stock quantities, one row per
    (product, warehouse, rack location).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Key uniqueness (UNIQUE constraint on product, warehouse, rack).
    - Non-negative quantity (CHECK constraint; NegativeQuantityError is
      raised by StockLocationStore before the database would reject it).
    - Rows at zero are retained; they are never deleted.

Audit relevance:
    quantity must always equal the sum of quantity_change over the movement
    ledger for the same key.  Only the document validators mutate it, and
    always together with the matching ledger append.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString
from inventory_kernel.db.types import Quantity, RackLabel

if TYPE_CHECKING:
    from inventory_kernel.models.catalog import Product, Warehouse


class StockLocation(TrackedBase):
    """Current quantity of one product at one rack of one warehouse."""

    __tablename__ = "stock_locations"

    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "warehouse_id",
            "rack_location",
            name="uq_stock_location_key",
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_location_non_negative"),
        Index("idx_stock_product_warehouse", "product_id", "warehouse_id"),
        Index("idx_stock_warehouse", "warehouse_id"),
    )

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

    quantity: Mapped[Quantity] = mapped_column(nullable=False, default=0)

    product: Mapped["Product"] = relationship(foreign_keys=[product_id])

    warehouse: Mapped["Warehouse"] = relationship(foreign_keys=[warehouse_id])

    @property
    def key(self) -> tuple[UUID, UUID, str]:
        return (self.product_id, self.warehouse_id, self.rack_location)

    def __repr__(self) -> str:
        return (
            f"<StockLocation {self.product_id}/{self.warehouse_id}/"
            f"{self.rack_location} qty={self.quantity}>"
        )
