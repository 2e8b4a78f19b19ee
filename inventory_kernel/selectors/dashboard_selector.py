"""
Module: inventory_kernel.selectors.dashboard_selector
Responsibility: Landing-page summary: catalog counts, units on hand, pending
    documents per kind, low-stock alerts and recent documents.
Architecture position: Kernel > Selectors.  Composes the other selectors.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import DashboardSummary
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.models.catalog import Product, Warehouse
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.document_selector import DocumentSelector
from inventory_kernel.selectors.stock_selector import StockSelector


class DashboardSelector(BaseSelector[Product]):

    def __init__(self, session: Session, settings: KernelSettings | None = None):
        super().__init__(session)
        self._settings = settings or KernelSettings()
        self._stock = StockSelector(session)
        self._documents = DocumentSelector(session, self._settings)

    def _count_active(self, model) -> int:
        return int(
            self.session.execute(
                select(func.count()).select_from(model).where(model.is_active.is_(True))
            ).scalar_one()
        )

    def summary(self) -> DashboardSummary:
        return DashboardSummary(
            active_products=self._count_active(Product),
            active_warehouses=self._count_active(Warehouse),
            total_units_on_hand=self._stock.total_units(),
            pending_by_kind=self._documents.pending_by_kind(),
            low_stock=tuple(self._stock.low_stock()),
            recent_documents=tuple(
                self._documents.list_documents(limit=self._settings.recent_activity_limit)
            ),
        )
