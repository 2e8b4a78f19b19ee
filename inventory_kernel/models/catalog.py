"""
Module: inventory_kernel.models.catalog
Responsibility: ORM persistence for the product and warehouse catalog.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - SKU uniqueness (UNIQUE constraint) and SKU immutability once assigned
      (ORM listener in db/immutability.py).
    - A product referenced by any movement or stock row is never deleted;
      deactivation is a soft flag.
    - Warehouse code uniqueness.

Failure modes:
    - IntegrityError on duplicate sku / code (mapped to DuplicateSkuError by
      CatalogService before flush).
    - ImmutabilityViolationError on SKU change or deletion of a referenced
      product.
"""

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """
    A stockable item.

    Contract:
        One unit of measure per product; every quantity for this product in
        the ledger is expressed in whole units of it.

    Guarantees:
        - sku is unique and never changes after it is assigned.
        - reorder_level / reorder_quantity are non-negative.

    Non-goals:
        - Pricing and costing are not tracked.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        CheckConstraint("reorder_level >= 0", name="ck_product_reorder_level"),
        CheckConstraint("reorder_quantity >= 0", name="ck_product_reorder_quantity"),
        Index("idx_product_category", "category"),
        Index("idx_product_active", "is_active"),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit_of_measure: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="unit",
    )

    # Low-stock threshold; 0 disables the alert
    reorder_level: Mapped[int] = mapped_column(nullable=False, default=0)

    reorder_quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.sku}>"


class Warehouse(TrackedBase):
    """
    A physical site; the partition key for stock.

    Rack locations are free-form labels within a warehouse and are not
    modelled as rows of their own.
    """

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("code", name="uq_warehouse_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Warehouse {self.code}>"
