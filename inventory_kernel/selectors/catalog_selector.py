"""
Module: inventory_kernel.selectors.catalog_selector
Responsibility: Read-only catalog lookups: single products and warehouses,
    product listings with name / SKU search, and the warehouse pick list.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Products are ordered by SKU and warehouses by code, so repeated calls
      over unchanged data return identical lists.
    - Search is a case-insensitive substring match on name or SKU; ``%`` and
      ``_`` in the search term match themselves.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import ProductDTO, WarehouseDTO
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.models.catalog import Product, Warehouse
from inventory_kernel.selectors.base import BaseSelector

_LIKE_ESCAPE = "\\"


def _contains_pattern(term: str) -> str:
    escaped = (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class CatalogSelector(BaseSelector[Product]):
    """Product and warehouse queries."""

    def __init__(self, session: Session, settings: KernelSettings | None = None):
        super().__init__(session)
        self._settings = settings or KernelSettings()

    def get_product(self, product_id: UUID) -> ProductDTO | None:
        product = self.session.get(Product, product_id)
        return ProductDTO.from_model(product) if product is not None else None

    def get_product_by_sku(self, sku: str) -> ProductDTO | None:
        product = self.session.execute(
            select(Product).where(Product.sku == sku)
        ).scalar_one_or_none()
        return ProductDTO.from_model(product) if product is not None else None

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseDTO | None:
        warehouse = self.session.get(Warehouse, warehouse_id)
        return WarehouseDTO.from_model(warehouse) if warehouse is not None else None

    def list_products(
        self,
        search: str | None = None,
        active_only: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ProductDTO]:
        """
        Products by SKU.  A blank ``search`` is the same as none.
        """
        stmt = select(Product).order_by(Product.sku)
        if active_only:
            stmt = stmt.where(Product.is_active.is_(True))
        term = (search or "").strip()
        if term:
            pattern = _contains_pattern(term)
            stmt = stmt.where(
                or_(
                    Product.name.ilike(pattern, escape=_LIKE_ESCAPE),
                    Product.sku.ilike(pattern, escape=_LIKE_ESCAPE),
                )
            )
        stmt = stmt.limit(self._settings.clamp_limit(limit)).offset(max(0, offset))
        return [ProductDTO.from_model(p) for p in self.session.execute(stmt).scalars()]

    def list_warehouses(self, active_only: bool = True) -> list[WarehouseDTO]:
        """Warehouses by code; the catalog is small enough to return whole."""
        stmt = select(Warehouse).order_by(Warehouse.code)
        if active_only:
            stmt = stmt.where(Warehouse.is_active.is_(True))
        return [WarehouseDTO.from_model(w) for w in self.session.execute(stmt).scalars()]
