"""
inventory_kernel.services.inventory_orchestrator -- Operation API of the kernel.

Responsibility:
    Creates every kernel service exactly once, wires them together and
    exposes the operations a caller (UI, API layer, batch job) invokes.
    Owns transaction boundaries: each operation runs in one transaction,
    its body inside a savepoint, and lock contention is retried with
    bounded exponential backoff.

Architecture position:
    Kernel > Services -- top of the kernel.  Nothing inside the kernel
    imports this module.

Invariants enforced:
    - Transaction boundaries: commit on success, rollback on failure (when
      auto_commit=True).  With auto_commit=False the savepoint still
      guarantees that a failed operation leaves the caller's transaction
      exactly as it was.
    - Structural input errors are raised before any transaction opens.
    - Callers never receive ORM entities; every result is a frozen DTO.
    - ContentionError reaches the caller only after retries are exhausted.
      Business errors are never retried.

Failure modes:
    - Everything in inventory_kernel.exceptions, unchanged, except driver
      contention errors which surface as ContentionError.

Usage:
    from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator

    orchestrator = InventoryOrchestrator(session, settings=settings)
    doc_id = orchestrator.create_document(
        DocumentKind.RECEIPT,
        DocumentHeader(warehouse_id=wh_id, counterparty_name="Acme"),
        [LineInput(product_id, 30, rack_location="A-01")],
        actor_id,
    )
    result = orchestrator.validate_document(doc_id, actor_id)
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from inventory_kernel.db.contention import is_contention_error, to_contention_error
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    DashboardSummary,
    DocumentDTO,
    DocumentHeader,
    LineInput,
    MovementDTO,
    ProductDTO,
    ReconciliationReport,
    StockLocationDTO,
    ValidationResult,
    WarehouseDTO,
)
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.exceptions import (
    DocumentNotFoundError,
    InventoryKernelError,
    ProductNotFoundError,
    ValidationInputError,
    WarehouseNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.document import DocumentKind, DocumentStatus
from inventory_kernel.models.movement import MovementKind
from inventory_kernel.selectors.catalog_selector import CatalogSelector
from inventory_kernel.selectors.dashboard_selector import DashboardSelector
from inventory_kernel.selectors.document_selector import DocumentSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.reconciliation_selector import ReconciliationSelector
from inventory_kernel.selectors.stock_selector import StockSelector
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.document_service import (
    DocumentService,
    check_document_input,
)
from inventory_kernel.services.retry_service import RetryPolicy

logger = get_logger("services.orchestrator")

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

INITIAL_STOCK_NOTE = "Initial stock"


def _coerce_enum(enum_cls: type[E], value: E | str | None, field: str) -> E | None:
    """Accept an enum member or its value string; anything else is caller error."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationInputError(field, f"must be one of: {allowed}") from e


class InventoryOrchestrator:
    """
    Central entry point for inventory operations.

    Contract:
        One orchestrator per session; sessions are not shared across
        threads.  Every public method is one unit of work.

    Guarantees:
        - validate_document() either returns a done document with its
          movements committed, or raises with document, stock and ledger
          unchanged.
        - Read operations are idempotent.

    Non-goals:
        - No per-user state; drafts under edit belong to the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
        auto_commit: bool = True,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()
        self._auto_commit = auto_commit
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self._settings)
        self._sleep = sleep

        self._catalog = CatalogService(session)
        self._documents = DocumentService(session, self._clock, self._settings)

        self._catalog_selector = CatalogSelector(session, self._settings)
        self._stock_selector = StockSelector(session)
        self._movement_selector = MovementSelector(session, self._settings)
        self._document_selector = DocumentSelector(session, self._settings)
        self._reconciliation = ReconciliationSelector(session)
        self._dashboard = DashboardSelector(session, self._settings)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def settings(self) -> KernelSettings:
        return self._settings

    @property
    def document_service(self) -> DocumentService:
        return self._documents

    @property
    def catalog_service(self) -> CatalogService:
        return self._catalog

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _run(self, operation: str, actor_id: UUID | None, body: Callable[[], T]) -> T:
        """
        Run ``body`` as one unit of work.

        The body runs inside a savepoint.  On success the transaction is
        committed (auto_commit); on failure it is rolled back.  Contention
        is retried only when this orchestrator owns the transaction.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id) if actor_id is not None else None,
            operation=operation,
        ):
            logger.debug("operation_started")
            t0 = time.monotonic()
            attempts = 0

            while True:
                attempts += 1
                try:
                    with self._session.begin_nested():
                        result = body()
                    if self._auto_commit:
                        self._session.commit()
                except Exception as exc:
                    duration_ms = round((time.monotonic() - t0) * 1000, 2)
                    if self._auto_commit:
                        self._session.rollback()
                    logger.info(
                        "transaction_rolled_back",
                        extra={
                            "attempt": attempts,
                            "error_type": type(exc).__name__,
                            "error_code": getattr(exc, "code", None),
                            "duration_ms": duration_ms,
                        },
                    )

                    if not is_contention_error(exc):
                        if not isinstance(exc, InventoryKernelError):
                            logger.error("operation_failed", exc_info=True)
                        raise

                    if not self._auto_commit or not self._retry_policy.should_retry(attempts):
                        logger.warning(
                            "contention_retries_exhausted",
                            extra={"attempts": attempts},
                        )
                        raise to_contention_error(exc, operation, attempts) from exc

                    delay = self._retry_policy.delay_seconds(attempts)
                    logger.warning(
                        "contention_retry",
                        extra={"attempt": attempts, "delay_ms": round(delay * 1000, 2)},
                    )
                    self._sleep(delay)
                    continue

                logger.debug(
                    "operation_completed",
                    extra={
                        "attempts": attempts,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return result

    def _check_page(self, limit: int | None, offset: int) -> None:
        self._settings.clamp_limit(limit)
        if offset < 0:
            raise ValidationInputError("offset", "must be >= 0")

    # =========================================================================
    # Documents
    # =========================================================================

    def create_document(
        self,
        kind: DocumentKind | str,
        header: DocumentHeader,
        lines: Sequence[LineInput],
        actor_id: UUID,
    ) -> UUID:
        """Create a draft document; returns its id."""
        kind = _coerce_enum(DocumentKind, kind, "kind")
        if kind is None:
            raise ValidationInputError("kind", "is required")
        check_document_input(kind, header, lines)

        def body() -> UUID:
            return self._documents.create(kind, header, lines, actor_id).id

        return self._run("create_document", actor_id, body)

    def update_document(
        self,
        document_id: UUID,
        header: DocumentHeader,
        lines: Sequence[LineInput],
        actor_id: UUID,
    ) -> None:
        """Replace a draft document's header and lines."""

        def body() -> None:
            self._documents.update(document_id, header, lines, actor_id)

        self._run("update_document", actor_id, body)

    def mark_ready(self, document_id: UUID, actor_id: UUID) -> DocumentDTO:
        def body() -> DocumentDTO:
            return DocumentDTO.from_model(self._documents.mark_ready(document_id, actor_id))

        return self._run("mark_ready", actor_id, body)

    def validate_document(self, document_id: UUID, actor_id: UUID) -> ValidationResult:
        """
        Apply a document to stock and mark it done.

        Raises:
            InsufficientStockError: Outbound demand exceeds availability.
            NegativeQuantityError: A mutation would drive a location below zero.
            InvalidTransitionError: Document is not draft or ready.
            ContentionError: Lock contention persisted through every retry.
        """

        def body() -> ValidationResult:
            doc, movements = self._documents.validate(document_id, actor_id)
            return ValidationResult(
                document=DocumentDTO.from_model(doc),
                movements=tuple(MovementDTO.from_model(m) for m in movements),
            )

        return self._run("validate_document", actor_id, body)

    def cancel_document(self, document_id: UUID, actor_id: UUID) -> DocumentDTO:
        def body() -> DocumentDTO:
            return DocumentDTO.from_model(self._documents.cancel(document_id, actor_id))

        return self._run("cancel_document", actor_id, body)

    def get_document(self, document_id: UUID) -> DocumentDTO:
        def body() -> DocumentDTO:
            dto = self._document_selector.get(document_id)
            if dto is None:
                raise DocumentNotFoundError(document_id)
            return dto

        return self._run("get_document", None, body)

    def list_documents(
        self,
        kind: DocumentKind | str | None = None,
        status: DocumentStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DocumentDTO]:
        kind = _coerce_enum(DocumentKind, kind, "kind")
        status = _coerce_enum(DocumentStatus, status, "status")
        self._check_page(limit, offset)
        return self._run(
            "list_documents",
            None,
            lambda: self._document_selector.list_documents(kind, status, limit, offset),
        )

    def document_movements(self, document_id: UUID) -> list[MovementDTO]:
        """Movements a document wrote, in seq order (empty unless done)."""

        def body() -> list[MovementDTO]:
            doc = self._documents.get(document_id)
            return self._movement_selector.by_reference(doc.kind.reference_type, doc.id)

        return self._run("document_movements", None, body)

    # =========================================================================
    # Stock and ledger queries
    # =========================================================================

    def query_stock(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        include_empty: bool = True,
    ) -> list[StockLocationDTO]:
        return self._run(
            "query_stock",
            None,
            lambda: self._stock_selector.query_stock(product_id, warehouse_id, include_empty),
        )

    def query_movements(
        self,
        kind: MovementKind | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[MovementDTO]:
        """Newest first; the same arguments over an unchanged ledger return the same page."""
        kind = _coerce_enum(MovementKind, kind, "kind")
        self._check_page(limit, offset)
        return self._run(
            "query_movements",
            None,
            lambda: self._movement_selector.query_movements(kind, limit, offset),
        )

    def reconcile(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> ReconciliationReport:
        return self._run(
            "reconcile",
            None,
            lambda: self._reconciliation.reconcile(product_id, warehouse_id),
        )

    def dashboard(self) -> DashboardSummary:
        return self._run("dashboard", None, self._dashboard.summary)

    # =========================================================================
    # Catalog
    # =========================================================================

    def get_product(self, product_id: UUID) -> ProductDTO:
        def body() -> ProductDTO:
            dto = self._catalog_selector.get_product(product_id)
            if dto is None:
                raise ProductNotFoundError(product_id)
            return dto

        return self._run("get_product", None, body)

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseDTO:
        def body() -> WarehouseDTO:
            dto = self._catalog_selector.get_warehouse(warehouse_id)
            if dto is None:
                raise WarehouseNotFoundError(warehouse_id)
            return dto

        return self._run("get_warehouse", None, body)

    def list_products(
        self,
        search: str | None = None,
        active_only: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ProductDTO]:
        """Products by SKU, optionally filtered by a name or SKU fragment."""
        self._check_page(limit, offset)
        return self._run(
            "list_products",
            None,
            lambda: self._catalog_selector.list_products(search, active_only, limit, offset),
        )

    def list_warehouses(self, active_only: bool = True) -> list[WarehouseDTO]:
        return self._run(
            "list_warehouses",
            None,
            lambda: self._catalog_selector.list_warehouses(active_only),
        )

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
        initial_stock: int = 0,
        warehouse_id: UUID | None = None,
        rack_location: str | None = None,
    ) -> ProductDTO:
        """
        Register a product, optionally with opening stock.

        Opening stock is booked through a receipt that is validated in the
        same transaction, so the ledger explains it like any other stock.
        """
        if not isinstance(initial_stock, int) or isinstance(initial_stock, bool) or initial_stock < 0:
            raise ValidationInputError("initial_stock", "must be a whole number >= 0")
        if initial_stock > 0 and warehouse_id is None:
            raise ValidationInputError("warehouse_id", "is required when initial_stock > 0")

        def body() -> ProductDTO:
            product = self._catalog.register_product(
                sku=sku,
                name=name,
                actor_id=actor_id,
                description=description,
                category=category,
                unit_of_measure=unit_of_measure,
                reorder_level=reorder_level,
                reorder_quantity=reorder_quantity,
            )
            if initial_stock > 0:
                doc = self._documents.create(
                    DocumentKind.RECEIPT,
                    DocumentHeader(warehouse_id=warehouse_id, notes=INITIAL_STOCK_NOTE),
                    [LineInput(product.id, initial_stock, rack_location)],
                    actor_id,
                )
                self._documents.validate(doc.id, actor_id)
                logger.info(
                    "initial_stock_booked",
                    extra={
                        "product_id": str(product.id),
                        "document_number": doc.document_number,
                        "quantity": initial_stock,
                    },
                )
            return ProductDTO.from_model(product)

        return self._run("register_product", actor_id, body)

    def update_product(self, product_id: UUID, actor_id: UUID, **changes) -> ProductDTO:
        return self._run(
            "update_product",
            actor_id,
            lambda: ProductDTO.from_model(
                self._catalog.update_product(product_id, actor_id, **changes)
            ),
        )

    def deactivate_product(self, product_id: UUID, actor_id: UUID) -> ProductDTO:
        return self._run(
            "deactivate_product",
            actor_id,
            lambda: ProductDTO.from_model(self._catalog.deactivate_product(product_id, actor_id)),
        )

    def register_warehouse(
        self,
        *,
        code: str,
        name: str,
        actor_id: UUID,
        address: str | None = None,
    ) -> WarehouseDTO:
        return self._run(
            "register_warehouse",
            actor_id,
            lambda: WarehouseDTO.from_model(
                self._catalog.register_warehouse(
                    code=code, name=name, actor_id=actor_id, address=address
                )
            ),
        )

    def deactivate_warehouse(self, warehouse_id: UUID, actor_id: UUID) -> WarehouseDTO:
        return self._run(
            "deactivate_warehouse",
            actor_id,
            lambda: WarehouseDTO.from_model(
                self._catalog.deactivate_warehouse(warehouse_id, actor_id)
            ),
        )
