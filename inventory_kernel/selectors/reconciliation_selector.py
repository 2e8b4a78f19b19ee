"""
Module: inventory_kernel.selectors.reconciliation_selector
Responsibility: Audit that the movement ledger explains current stock.
Architecture position: Kernel > Selectors.

Checks, per (product, warehouse, rack):
    1. Sum of quantity_change over all movements == stock_locations.quantity
       (a key with movements but no stock row counts as stock 0, and vice
       versa).
    2. Each movement's quantity_before equals the previous movement's
       quantity_after (0 for the first), in seq order.

Audit relevance:
    A clean report is the evidence that every stock mutation went through a
    validated document.  Any discrepancy means a write bypassed the kernel or
    a transaction committed half its work.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import KeyDiscrepancy, ReconciliationReport
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.models.stock import StockLocation
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.reconciliation")

_Key = tuple[UUID, UUID, str]


class ReconciliationSelector(BaseSelector[StockMovement]):
    """Ledger-vs-stock reconciliation."""

    def __init__(self, session: Session, batch_size: int = 1000):
        super().__init__(session)
        self._batch_size = batch_size

    def _stock_quantities(self, product_id, warehouse_id) -> dict[_Key, int]:
        stmt = select(
            StockLocation.product_id,
            StockLocation.warehouse_id,
            StockLocation.rack_location,
            StockLocation.quantity,
        )
        if product_id is not None:
            stmt = stmt.where(StockLocation.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockLocation.warehouse_id == warehouse_id)
        return {(p, w, r): q for p, w, r, q in self.session.execute(stmt).all()}

    def _chain_breaks(self, product_id, warehouse_id) -> dict[_Key, int]:
        stmt = select(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.rack_location,
            StockMovement.quantity_before,
            StockMovement.quantity_after,
        ).order_by(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.rack_location,
            StockMovement.seq,
        )
        if product_id is not None:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockMovement.warehouse_id == warehouse_id)

        breaks: dict[_Key, int] = {}
        current_key: _Key | None = None
        last_after = 0
        result = self.session.execute(stmt.execution_options(yield_per=self._batch_size))
        for p, w, r, before, after in result:
            key = (p, w, r)
            if key != current_key:
                current_key, last_after = key, 0
            if before != last_after:
                breaks[key] = breaks.get(key, 0) + 1
            last_after = after
        return breaks

    def reconcile(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> ReconciliationReport:
        stock = self._stock_quantities(product_id, warehouse_id)

        totals_stmt = select(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.rack_location,
            func.sum(StockMovement.quantity_change),
            func.count(),
        ).group_by(
            StockMovement.product_id,
            StockMovement.warehouse_id,
            StockMovement.rack_location,
        )
        if product_id is not None:
            totals_stmt = totals_stmt.where(StockMovement.product_id == product_id)
        if warehouse_id is not None:
            totals_stmt = totals_stmt.where(StockMovement.warehouse_id == warehouse_id)

        ledger_totals: dict[_Key, int] = {}
        movements_checked = 0
        for p, w, r, total, count in self.session.execute(totals_stmt).all():
            ledger_totals[(p, w, r)] = int(total or 0)
            movements_checked += int(count)

        breaks = self._chain_breaks(product_id, warehouse_id)

        keys = sorted(set(stock) | set(ledger_totals), key=lambda k: (str(k[0]), str(k[1]), k[2]))
        discrepancies = []
        for key in keys:
            on_hand = stock.get(key, 0)
            total = ledger_totals.get(key, 0)
            key_breaks = breaks.get(key, 0)
            if on_hand != total or key_breaks:
                discrepancies.append(
                    KeyDiscrepancy(
                        product_id=key[0],
                        warehouse_id=key[1],
                        rack_location=key[2],
                        stock_quantity=on_hand,
                        ledger_total=total,
                        chain_breaks=key_breaks,
                    )
                )

        report = ReconciliationReport(
            keys_checked=len(keys),
            movements_checked=movements_checked,
            discrepancies=tuple(discrepancies),
        )
        if report.is_reconciled:
            logger.info(
                "reconciliation_passed",
                extra={"keys_checked": report.keys_checked,
                       "movements_checked": report.movements_checked},
            )
        else:
            logger.error(
                "reconciliation_failed",
                extra={"keys_checked": report.keys_checked,
                       "discrepancy_count": len(report.discrepancies)},
            )
        return report
