"""
Module: inventory_kernel.services.movement_ledger
Responsibility: Append-only writer and key-scoped reader for the stock
    movement ledger.
Architecture position: Kernel > Services -- imperative shell, sole writer of
    the stock_movements table.

Invariants enforced:
    - Arithmetic: quantity_change is derived from the before/after pair, so
      quantity_after == quantity_before + quantity_change by construction
      (and by CHECK constraint).
    - Chaining: quantity_before equals the quantity_after of the previous
      movement for the same (product, warehouse, rack), or 0 for the first.
    - Ordering: every entry draws its seq from the ``stock_movement``
      sequence inside the caller's transaction.  The counter row stays
      locked until that transaction ends, so validations that write
      movements run one at a time across the whole store.
    - Append-only: there is no update or delete path; ORM listeners in
      db/immutability.py block any attempt.

Failure modes:
    - LedgerChainBrokenError on a chaining violation.  The
      caller's transaction must roll back: the stock mutation it was
      recording is not explained by the ledger.
    - Deadlock (PostgreSQL 40P01) between two validations that both create
      the same new stock row after their first append: one holds the
      counter and waits on the row's unique index, the other the reverse.
      The driver aborts one of them; the orchestrator classifies it as
      contention and retries.

Audit relevance:
    For every key, the sum of quantity_change equals the current stock
    quantity.  selectors/reconciliation_selector.py verifies this.
"""

from datetime import datetime
from typing import Iterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import QuantityChange
from inventory_kernel.exceptions import LedgerChainBrokenError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import MovementKind, StockMovement
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.movement_ledger")


class MovementStream:
    """
    Lazy, restartable chronological view of one key's movements.

    Each iteration re-runs the query, so iterating twice yields the same
    entries (plus anything appended in between).  ``after(seq)`` resumes
    past a known entry.
    """

    def __init__(
        self,
        session: Session,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str,
        after_seq: int | None = None,
        batch_size: int = 500,
    ):
        self._session = session
        self._product_id = product_id
        self._warehouse_id = warehouse_id
        self._rack_location = rack_location
        self._after_seq = after_seq
        self._batch_size = batch_size

    def after(self, seq: int) -> "MovementStream":
        return MovementStream(
            self._session,
            self._product_id,
            self._warehouse_id,
            self._rack_location,
            after_seq=seq,
            batch_size=self._batch_size,
        )

    def __iter__(self) -> Iterator[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.product_id == self._product_id,
                StockMovement.warehouse_id == self._warehouse_id,
                StockMovement.rack_location == self._rack_location,
            )
            .order_by(StockMovement.seq)
        )
        if self._after_seq is not None:
            stmt = stmt.where(StockMovement.seq > self._after_seq)
        result = self._session.execute(
            stmt.execution_options(yield_per=self._batch_size)
        )
        yield from result.scalars()


class MovementLedger(BaseService[StockMovement]):
    """
    Append-only stock movement ledger.

    Contract:
        append() is called once per stock mutation, with the QuantityChange
        returned by StockLocationStore, inside the same transaction.

    Guarantees:
        - Every appended entry chains onto the previous entry for its key.
        - seq values are unique and increase in append order.

    Non-goals:
        - No update, delete or compensation API.
    """

    def __init__(self, session: Session, sequence_service: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)

    def last_for_key(
        self, product_id: UUID, warehouse_id: UUID, rack_location: str
    ) -> StockMovement | None:
        return self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.product_id == product_id,
                StockMovement.warehouse_id == warehouse_id,
                StockMovement.rack_location == rack_location,
            )
            .order_by(StockMovement.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        *,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str,
        movement_kind: MovementKind,
        change: QuantityChange,
        reference_type: str,
        reference_id: UUID,
        reference_number: str,
        actor_id: UUID,
        occurred_at: datetime,
    ) -> StockMovement:
        """
        Record one stock mutation.

        Raises:
            LedgerChainBrokenError: before/after do not chain.
        """
        previous = self.last_for_key(product_id, warehouse_id, rack_location)
        expected_before = previous.quantity_after if previous is not None else 0
        if change.before != expected_before:
            logger.critical(
                "ledger_chain_broken",
                extra={
                    "product_id": str(product_id),
                    "warehouse_id": str(warehouse_id),
                    "rack_location": rack_location,
                    "expected_before": expected_before,
                    "actual_before": change.before,
                },
            )
            raise LedgerChainBrokenError(
                product_id, warehouse_id, rack_location,
                expected_before=expected_before,
                actual_before=change.before,
            )

        seq = self._sequences.next_value(SequenceService.STOCK_MOVEMENT)
        movement = StockMovement(
            seq=seq,
            product_id=product_id,
            warehouse_id=warehouse_id,
            rack_location=rack_location,
            movement_kind=movement_kind,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_number=reference_number,
            quantity_change=change.change,
            quantity_before=change.before,
            quantity_after=change.after,
            actor_id=actor_id,
            occurred_at=occurred_at,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "movement_appended",
            extra={
                "seq": seq,
                "movement_kind": movement_kind.value,
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
                "rack_location": rack_location,
                "quantity_change": change.change,
                "quantity_after": change.after,
                "reference_number": reference_number,
            },
        )
        return movement

    def list_for_key(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str,
        after_seq: int | None = None,
    ) -> MovementStream:
        """Chronological movements for one key (lazy, restartable)."""
        return MovementStream(
            self.session, product_id, warehouse_id, rack_location, after_seq=after_seq
        )

    def list_by_reference(self, reference_type: str, reference_id: UUID) -> list[StockMovement]:
        """Everything one document did, in seq order."""
        return list(
            self.session.execute(
                select(StockMovement)
                .where(
                    StockMovement.reference_type == reference_type,
                    StockMovement.reference_id == reference_id,
                )
                .order_by(StockMovement.seq)
            ).scalars()
        )
