"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read-only access to the stock movement ledger.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Newest-first listings are ordered by seq descending.  seq is unique, so
      pages are stable: the same (kind, limit, offset) over an unchanged
      ledger always returns the same entries, and offset paging never skips
      or repeats one.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import MovementDTO
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.models.movement import MovementKind, StockMovement
from inventory_kernel.selectors.base import BaseSelector


class MovementSelector(BaseSelector[StockMovement]):
    """Movement history queries."""

    def __init__(self, session: Session, settings: KernelSettings | None = None):
        super().__init__(session)
        self._settings = settings or KernelSettings()

    def query_movements(
        self,
        kind: MovementKind | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[MovementDTO]:
        """Newest first.  ``limit`` is clamped to the configured maximum."""
        stmt = select(StockMovement).order_by(StockMovement.seq.desc())
        if kind is not None:
            stmt = stmt.where(StockMovement.movement_kind == MovementKind(kind))
        stmt = stmt.limit(self._settings.clamp_limit(limit)).offset(max(0, offset))
        return [MovementDTO.from_model(m) for m in self.session.execute(stmt).scalars()]

    def by_reference(self, reference_type: str, reference_id: UUID) -> list[MovementDTO]:
        """Movements written by one document, in the order they were written."""
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.reference_type == reference_type,
                StockMovement.reference_id == reference_id,
            )
            .order_by(StockMovement.seq)
        )
        return [MovementDTO.from_model(m) for m in self.session.execute(stmt).scalars()]

    def for_key(
        self, product_id: UUID, warehouse_id: UUID, rack_location: str
    ) -> list[MovementDTO]:
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.product_id == product_id,
                StockMovement.warehouse_id == warehouse_id,
                StockMovement.rack_location == rack_location,
            )
            .order_by(StockMovement.seq)
        )
        return [MovementDTO.from_model(m) for m in self.session.execute(stmt).scalars()]

    def count(self, kind: MovementKind | str | None = None) -> int:
        stmt = select(func.count()).select_from(StockMovement)
        if kind is not None:
            stmt = stmt.where(StockMovement.movement_kind == MovementKind(kind))
        return int(self.session.execute(stmt).scalar_one())
