"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read-only queries over current stock: per-location listing,
    on-hand totals and the low-stock report.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Results are ordered by SKU, warehouse code, rack label so repeated calls
      over unchanged data return identical lists.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, contains_eager

from inventory_kernel.domain.dtos import LowStockItem, StockLocationDTO
from inventory_kernel.models.catalog import Product, Warehouse
from inventory_kernel.models.stock import StockLocation
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockLocation]):
    """Current quantities per (product, warehouse, rack)."""

    def __init__(self, session: Session):
        super().__init__(session)

    def query_stock(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        include_empty: bool = True,
    ) -> list[StockLocationDTO]:
        """
        Stock locations, optionally filtered by product and / or warehouse.

        Rows at zero are kept by the store; ``include_empty=False`` hides them.
        """
        stmt = (
            select(StockLocation)
            .join(StockLocation.product)
            .join(StockLocation.warehouse)
            .options(
                contains_eager(StockLocation.product),
                contains_eager(StockLocation.warehouse),
            )
            .order_by(Product.sku, Warehouse.code, StockLocation.rack_location)
        )
        if product_id is not None:
            stmt = stmt.where(StockLocation.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockLocation.warehouse_id == warehouse_id)
        if not include_empty:
            stmt = stmt.where(StockLocation.quantity > 0)

        return [StockLocationDTO.from_model(row) for row in self.session.execute(stmt).scalars()]

    def on_hand(self, product_id: UUID, warehouse_id: UUID | None = None) -> int:
        """Total quantity of one product, in one warehouse or everywhere."""
        stmt = select(func.coalesce(func.sum(StockLocation.quantity), 0)).where(
            StockLocation.product_id == product_id
        )
        if warehouse_id is not None:
            stmt = stmt.where(StockLocation.warehouse_id == warehouse_id)
        return int(self.session.execute(stmt).scalar_one())

    def total_units(self) -> int:
        return int(
            self.session.execute(
                select(func.coalesce(func.sum(StockLocation.quantity), 0))
            ).scalar_one()
        )

    def low_stock(self) -> list[LowStockItem]:
        """
        Active products whose total on-hand quantity is at or below their
        reorder level.  Products with a reorder level of 0 are never listed.
        """
        on_hand = func.coalesce(func.sum(StockLocation.quantity), 0)
        stmt = (
            select(Product, on_hand.label("on_hand"))
            .outerjoin(StockLocation, StockLocation.product_id == Product.id)
            .where(Product.is_active.is_(True), Product.reorder_level > 0)
            .group_by(Product.id)
            .having(on_hand <= Product.reorder_level)
            .order_by(Product.sku)
        )
        return [
            LowStockItem(
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                on_hand=int(total),
                reorder_level=product.reorder_level,
                reorder_quantity=product.reorder_quantity,
            )
            for product, total in self.session.execute(stmt).all()
        ]
