"""
Module: inventory_kernel.services.catalog_service
Responsibility: Register, edit and deactivate products and warehouses, and
    resolve catalog references for the document lifecycle.
Architecture position: Kernel > Services -- imperative shell, owns products
    and warehouses table writes.

Invariants enforced:
    - SKU uniqueness (checked before insert; DuplicateSkuError).
    - SKU immutability (update_product never touches sku; the ORM listener
      blocks any other path).
    - Soft deletion only: products and warehouses are deactivated, never
      removed.

Failure modes:
    - ValidationInputError for blank sku / code / name, negative reorder
      levels, unknown update fields.
    - DuplicateSkuError, ProductNotFoundError, WarehouseNotFoundError,
      InactiveProductError, InactiveWarehouseError.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import (
    DuplicateSkuError,
    InactiveProductError,
    InactiveWarehouseError,
    ProductNotFoundError,
    ValidationInputError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import Product, Warehouse
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")

_EDITABLE_PRODUCT_FIELDS = frozenset({
    "name",
    "description",
    "category",
    "unit_of_measure",
    "reorder_level",
    "reorder_quantity",
})


def _required_text(field: str, value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationInputError(field, "must be non-empty")
    return text


def _non_negative(field: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationInputError(field, "must be a whole number >= 0")
    return value


class CatalogService(BaseService[Product]):
    """Products and warehouses."""

    def __init__(self, session: Session):
        super().__init__(session)

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    def register_product(
        self,
        *,
        sku: str,
        name: str,
        actor_id: UUID,
        description: str | None = None,
        category: str | None = None,
        unit_of_measure: str = "unit",
        reorder_level: int = 0,
        reorder_quantity: int = 0,
    ) -> Product:
        sku = _required_text("sku", sku)
        name = _required_text("name", name)
        unit_of_measure = _required_text("unit_of_measure", unit_of_measure)
        _non_negative("reorder_level", reorder_level)
        _non_negative("reorder_quantity", reorder_quantity)

        existing = self.session.execute(
            select(Product.id).where(Product.sku == sku)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateSkuError(sku)

        product = Product(
            sku=sku,
            name=name,
            description=description,
            category=category,
            unit_of_measure=unit_of_measure,
            reorder_level=reorder_level,
            reorder_quantity=reorder_quantity,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_registered",
            extra={"product_id": str(product.id), "sku": sku},
        )
        return product

    def update_product(self, product_id: UUID, actor_id: UUID, **changes) -> Product:
        """Edit descriptive fields and reorder thresholds.  SKU is not editable."""
        unknown = set(changes) - _EDITABLE_PRODUCT_FIELDS
        if unknown:
            raise ValidationInputError(
                ", ".join(sorted(unknown)), "not an editable product field"
            )

        product = self.get_product(product_id)
        for field, value in changes.items():
            if field in ("name", "unit_of_measure"):
                value = _required_text(field, value)
            elif field in ("reorder_level", "reorder_quantity"):
                _non_negative(field, value)
            setattr(product, field, value)
        product.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "product_updated",
            extra={"product_id": str(product.id), "fields": sorted(changes)},
        )
        return product

    def deactivate_product(self, product_id: UUID, actor_id: UUID) -> Product:
        product = self.get_product(product_id)
        if product.is_active:
            product.is_active = False
            product.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "product_deactivated",
                extra={"product_id": str(product.id), "sku": product.sku},
            )
        return product

    def get_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def require_active_product(self, product_id: UUID) -> Product:
        product = self.get_product(product_id)
        if not product.is_active:
            raise InactiveProductError(product_id, sku=product.sku)
        return product

    # -------------------------------------------------------------------------
    # Warehouses
    # -------------------------------------------------------------------------

    def register_warehouse(
        self,
        *,
        code: str,
        name: str,
        actor_id: UUID,
        address: str | None = None,
    ) -> Warehouse:
        code = _required_text("code", code)
        name = _required_text("name", name)

        existing = self.session.execute(
            select(Warehouse.id).where(Warehouse.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationInputError("code", f"warehouse code {code!r} already exists")

        warehouse = Warehouse(
            code=code,
            name=name,
            address=address,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(warehouse)
        self.session.flush()

        logger.info(
            "warehouse_registered",
            extra={"warehouse_id": str(warehouse.id), "warehouse_code": code},
        )
        return warehouse

    def deactivate_warehouse(self, warehouse_id: UUID, actor_id: UUID) -> Warehouse:
        warehouse = self.get_warehouse(warehouse_id)
        if warehouse.is_active:
            warehouse.is_active = False
            warehouse.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "warehouse_deactivated",
                extra={"warehouse_id": str(warehouse.id), "warehouse_code": warehouse.code},
            )
        return warehouse

    def get_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(warehouse_id)
        return warehouse

    def require_active_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.get_warehouse(warehouse_id)
        if not warehouse.is_active:
            raise InactiveWarehouseError(warehouse_id)
        return warehouse
