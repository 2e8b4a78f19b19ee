"""
Module: inventory_kernel.services.stock_location_store
Responsibility: Read and mutate current stock quantities per
    (product, warehouse, rack location).
Architecture position: Kernel > Services -- imperative shell, owns
    stock_locations table writes.

Invariants enforced:
    - Non-negative quantity: every mutation is checked before it is flushed;
      NegativeQuantityError is raised and nothing is written.
    - Row locks: every mutating path reads the row FOR UPDATE, so the
      before-value it reports is the value it overwrites.
    - Deadlock avoidance: lock_keys() locks rows for several
      (product, warehouse) pairs in one canonical order.

Failure modes:
    - NegativeQuantityError when a delta or absolute value would leave the
      location below zero.
    - ValueError on an over-long rack label.

Audit relevance:
    The store is only mutated by the document validators, and every mutation
    is immediately paired with a MovementLedger.append carrying the
    QuantityChange this store returns.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.db.types import normalize_rack_label
from inventory_kernel.domain.dtos import QuantityChange
from inventory_kernel.domain.settings import DEFAULT_RACK_LOCATION
from inventory_kernel.exceptions import NegativeQuantityError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock import StockLocation
from inventory_kernel.services.base import BaseService

logger = get_logger("services.stock_store")


class StockLocationStore(BaseService[StockLocation]):
    """
    Current quantity per (product, warehouse, rack).

    Contract:
        An absent row reads as 0.  Rows are created on first positive
        mutation and retained at zero afterwards.

    Guarantees:
        - upsert_add / set_absolute return the exact before/after pair that
          was written, under a row lock held until the transaction ends.
    """

    def __init__(self, session, actor_id: UUID, default_rack: str = DEFAULT_RACK_LOCATION):
        super().__init__(session)
        self._actor_id = actor_id
        self._default_rack = default_rack

    def _rack(self, rack_location: str | None) -> str:
        return normalize_rack_label(rack_location, self._default_rack)

    def _select_row(self, product_id: UUID, warehouse_id: UUID, rack: str, lock: bool):
        stmt = select(StockLocation).where(
            StockLocation.product_id == product_id,
            StockLocation.warehouse_id == warehouse_id,
            StockLocation.rack_location == rack,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def _locked_or_new_row(self, product_id: UUID, warehouse_id: UUID, rack: str) -> StockLocation:
        row = self._select_row(product_id, warehouse_id, rack, lock=True)
        if row is not None:
            return row

        savepoint = self.session.begin_nested()
        try:
            row = StockLocation(
                product_id=product_id,
                warehouse_id=warehouse_id,
                rack_location=rack,
                quantity=0,
                created_by_id=self._actor_id,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
            return row
        except IntegrityError:
            # Concurrent creator won; lock theirs.
            savepoint.rollback()
            row = self._select_row(product_id, warehouse_id, rack, lock=True)
            if row is None:
                raise
            return row

    def get(self, product_id: UUID, warehouse_id: UUID, rack_location: str | None) -> int:
        """Current quantity at one key; an absent row is 0."""
        row = self._select_row(product_id, warehouse_id, self._rack(rack_location), lock=False)
        return row.quantity if row is not None else 0

    def get_for_update(
        self, product_id: UUID, warehouse_id: UUID, rack_location: str | None
    ) -> int:
        """Like get(), but locks the row (when it exists) until the transaction ends."""
        row = self._select_row(product_id, warehouse_id, self._rack(rack_location), lock=True)
        return row.quantity if row is not None else 0

    def upsert_add(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str | None,
        delta: int,
    ) -> QuantityChange:
        """
        Add ``delta`` (may be negative) to one key, creating the row if needed.

        Raises:
            NegativeQuantityError: The result would be below zero.
        """
        rack = self._rack(rack_location)
        if delta < 0:
            # Never create a row just to reject it
            row = self._select_row(product_id, warehouse_id, rack, lock=True)
            current = row.quantity if row is not None else 0
            if row is None or current + delta < 0:
                raise NegativeQuantityError(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    rack_location=rack,
                    current=current,
                    requested=delta,
                )
        else:
            row = self._locked_or_new_row(product_id, warehouse_id, rack)

        before = row.quantity
        row.quantity = before + delta
        row.updated_by_id = self._actor_id
        self.session.flush()

        logger.debug(
            "stock_quantity_changed",
            extra={
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
                "rack_location": rack,
                "quantity_before": before,
                "quantity_after": row.quantity,
            },
        )
        return QuantityChange(before=before, after=row.quantity)

    def set_absolute(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str | None,
        value: int,
    ) -> QuantityChange:
        """
        Overwrite one key's quantity (stock counts).

        Raises:
            NegativeQuantityError: ``value`` is below zero.
        """
        rack = self._rack(rack_location)
        if value < 0:
            raise NegativeQuantityError(
                product_id=product_id,
                warehouse_id=warehouse_id,
                rack_location=rack,
                current=self.get(product_id, warehouse_id, rack),
                requested=value,
            )

        row = self._locked_or_new_row(product_id, warehouse_id, rack)
        before = row.quantity
        row.quantity = value
        row.updated_by_id = self._actor_id
        self.session.flush()

        logger.debug(
            "stock_quantity_set",
            extra={
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
                "rack_location": rack,
                "quantity_before": before,
                "quantity_after": value,
            },
        )
        return QuantityChange(before=before, after=value)

    def list_by_product_warehouse(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        *,
        lock: bool = False,
    ) -> list[StockLocation]:
        """
        Rows with quantity > 0 for one product in one warehouse, largest
        first, ties by rack label.
        """
        stmt = (
            select(StockLocation)
            .where(
                StockLocation.product_id == product_id,
                StockLocation.warehouse_id == warehouse_id,
                StockLocation.quantity > 0,
            )
            .order_by(StockLocation.quantity.desc(), StockLocation.rack_location)
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self.session.execute(stmt).scalars())

    def lock_keys(self, pairs: Iterable[tuple[UUID, UUID]]) -> dict[tuple[UUID, UUID], dict[str, int]]:
        """
        Lock every stock row of the given (product, warehouse) pairs.

        Rows are locked in canonical (product, warehouse, rack) order so
        that two validations touching overlapping pairs cannot deadlock.

        Returns:
            (product_id, warehouse_id) -> {rack_location: quantity}, zero
            rows included.  Pairs with no rows map to {}.
        """
        ordered = sorted({(p, w) for p, w in pairs}, key=lambda k: (str(k[0]), str(k[1])))
        snapshot: dict[tuple[UUID, UUID], dict[str, int]] = {pair: {} for pair in ordered}
        if not ordered:
            return snapshot

        stmt = (
            select(StockLocation)
            .where(
                or_(
                    *(
                        and_(
                            StockLocation.product_id == product_id,
                            StockLocation.warehouse_id == warehouse_id,
                        )
                        for product_id, warehouse_id in ordered
                    )
                )
            )
            .order_by(
                StockLocation.product_id,
                StockLocation.warehouse_id,
                StockLocation.rack_location,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        for row in self.session.execute(stmt).scalars():
            snapshot[(row.product_id, row.warehouse_id)][row.rack_location] = row.quantity

        logger.debug(
            "stock_rows_locked",
            extra={"pair_count": len(ordered)},
        )
        return snapshot
