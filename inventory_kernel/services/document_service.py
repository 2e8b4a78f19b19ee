"""
Module: inventory_kernel.services.document_service
Responsibility: Document lifecycle engine -- create, edit, mark ready,
    validate and cancel receipts, deliveries, internal transfers and stock
    adjustments.
Architecture position: Kernel > Services -- imperative shell.  Owns
    documents / document_lines writes and drives StockLocationStore and
    MovementLedger during validation.

Documents are a tagged variant.  Validation shares one skeleton:

    lock document FOR UPDATE
      -> check the transition against DOCUMENT_WORKFLOW
      -> run the validator registered for the document's kind
      -> status = done, completed_at = now

and the per-kind work lives in the _VALIDATORS table.

Invariants enforced:
    - Atomic validation: every stock mutation is paired with its ledger
      append, and the document reaches done in the same flush sequence.
      Any exception leaves the caller to roll back the whole unit.
    - No partial outbound: deliveries and transfers are planned for the
      whole document against one locked availability snapshot before the
      first mutation (domain/allocation.py).
    - Lock order: document row, then existing stock rows in canonical
      (product, warehouse, rack) order, then the ``stock_movement``
      counter.  A stock row first created after the first append is
      inserted while the counter is held; see movement_ledger.py.
    - Lifecycle: transitions only as declared in domain/workflow.py; edits
      only while draft.

Failure modes:
    - ValidationInputError (structural input problems).
    - DocumentNotFoundError, InvalidTransitionError.
    - ProductNotFoundError / InactiveProductError / WarehouseNotFoundError /
      InactiveWarehouseError (referential problems at create / edit).
    - InsufficientStockError (delivery / transfer demand > availability).
    - NegativeQuantityError (logged CRITICAL outside delivery / transfer:
      it means the store and the validators disagree).
    - LedgerChainBrokenError (store and ledger disagree).

Audit relevance:
    Every movement carries the document's reference_type, id and number, and
    the actor who validated it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import normalize_rack_label
from inventory_kernel.domain.allocation import OutboundRequest, plan_outbound
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import DocumentHeader, LineInput, QuantityChange
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.domain.workflow import (
    ACTION_CANCEL,
    ACTION_MARK_READY,
    ACTION_UPDATE,
    ACTION_VALIDATE,
    DOCUMENT_WORKFLOW,
    Transition,
)
from inventory_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidTransitionError,
    NegativeQuantityError,
    ValidationInputError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.document import (
    Document,
    DocumentKind,
    DocumentLine,
    DocumentStatus,
)
from inventory_kernel.models.movement import MovementKind, StockMovement
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.movement_ledger import MovementLedger
from inventory_kernel.services.sequence_service import (
    DocumentNumberGenerator,
    SequenceService,
)
from inventory_kernel.services.stock_location_store import StockLocationStore

logger = get_logger("services.document")


# =============================================================================
# Input checks
# =============================================================================


def check_document_input(
    kind: DocumentKind,
    header: DocumentHeader,
    lines: Sequence[LineInput],
) -> None:
    """
    Structural checks that need no database access.

    Raises:
        ValidationInputError: On the first problem found.
    """
    kind = DocumentKind(kind)
    if header.warehouse_id is None:
        raise ValidationInputError("warehouse_id", "is required")
    if not lines:
        raise ValidationInputError("lines", "at least one line is required")

    if kind == DocumentKind.TRANSFER:
        if header.destination_warehouse_id is None:
            raise ValidationInputError(
                "destination_warehouse_id", "is required for internal transfers"
            )
    elif header.destination_warehouse_id is not None:
        raise ValidationInputError(
            "destination_warehouse_id", "only internal transfers have a destination"
        )

    if kind == DocumentKind.ADJUSTMENT and not (header.notes or "").strip():
        raise ValidationInputError("notes", "an adjustment reason is required")

    for index, line in enumerate(lines, start=1):
        if line.product_id is None:
            raise ValidationInputError(f"lines[{index}].product_id", "is required")
        if kind == DocumentKind.ADJUSTMENT:
            if line.quantity < 0:
                raise ValidationInputError(
                    f"lines[{index}].quantity", "counted quantity must be >= 0"
                )
        elif line.quantity <= 0:
            raise ValidationInputError(f"lines[{index}].quantity", "must be > 0")
        try:
            normalize_rack_label(line.rack_location, "-")
        except ValueError as exc:
            raise ValidationInputError(f"lines[{index}].rack_location", str(exc)) from exc

    if (
        kind == DocumentKind.TRANSFER
        and header.destination_warehouse_id == header.warehouse_id
        and any(not (line.rack_location or "").strip() for line in lines)
    ):
        raise ValidationInputError(
            "destination_warehouse_id",
            "a transfer within one warehouse needs a destination rack on every line",
        )


# =============================================================================
# Validators
# =============================================================================


@dataclass
class _ValidationContext:
    """Everything a kind validator needs, plus the movements it wrote."""

    document: Document
    store: StockLocationStore
    ledger: MovementLedger
    actor_id: UUID
    occurred_at: datetime
    default_rack: str
    movements: list[StockMovement] = field(default_factory=list)

    def rack(self, label: str | None) -> str:
        return normalize_rack_label(label, self.default_rack)

    def record(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        rack_location: str,
        movement_kind: MovementKind,
        change: QuantityChange,
    ) -> StockMovement:
        doc = self.document
        movement = self.ledger.append(
            product_id=product_id,
            warehouse_id=warehouse_id,
            rack_location=rack_location,
            movement_kind=movement_kind,
            change=change,
            reference_type=doc.kind.reference_type,
            reference_id=doc.id,
            reference_number=doc.document_number,
            actor_id=self.actor_id,
            occurred_at=self.occurred_at,
        )
        self.movements.append(movement)
        return movement


def _validate_receipt(ctx: _ValidationContext) -> None:
    doc = ctx.document
    ctx.store.lock_keys((line.product_id, doc.warehouse_id) for line in doc.lines)

    for line in doc.lines:
        rack = ctx.rack(line.rack_location)
        change = ctx.store.upsert_add(line.product_id, doc.warehouse_id, rack, line.quantity)
        ctx.record(line.product_id, doc.warehouse_id, rack, MovementKind.RECEIPT, change)
        line.fulfilled_quantity = line.quantity


def _plan_from_source(
    ctx: _ValidationContext,
    snapshot: dict[tuple[UUID, UUID], dict[str, int]],
    excluded_racks: dict[UUID, set[str]] | None = None,
):
    doc = ctx.document
    per_product: dict[UUID, dict[str, int]] = {}
    for (product_id, warehouse_id), racks in snapshot.items():
        if warehouse_id != doc.warehouse_id:
            continue
        skip = (excluded_racks or {}).get(product_id, set())
        per_product[product_id] = {r: q for r, q in racks.items() if r not in skip}

    return plan_outbound(
        [OutboundRequest(line.line_no, line.product_id, line.quantity) for line in doc.lines],
        per_product,
        warehouse_id=doc.warehouse_id,
        document_number=doc.document_number,
    )


def _validate_delivery(ctx: _ValidationContext) -> None:
    doc = ctx.document
    snapshot = ctx.store.lock_keys((line.product_id, doc.warehouse_id) for line in doc.lines)
    plan = _plan_from_source(ctx, snapshot)

    for line in doc.lines:
        for take in plan[line.line_no]:
            change = ctx.store.upsert_add(
                line.product_id, doc.warehouse_id, take.rack_location, -take.quantity
            )
            ctx.record(
                line.product_id, doc.warehouse_id, take.rack_location,
                MovementKind.DELIVERY, change,
            )
        line.fulfilled_quantity = line.quantity


def _validate_transfer(ctx: _ValidationContext) -> None:
    doc = ctx.document
    source = doc.warehouse_id
    destination = doc.destination_warehouse_id

    pairs = [(line.product_id, source) for line in doc.lines]
    pairs += [(line.product_id, destination) for line in doc.lines]
    snapshot = ctx.store.lock_keys(pairs)

    # Within one warehouse a line's destination rack is never also a source.
    excluded: dict[UUID, set[str]] = {}
    if source == destination:
        for line in doc.lines:
            excluded.setdefault(line.product_id, set()).add(ctx.rack(line.rack_location))
    plan = _plan_from_source(ctx, snapshot, excluded)

    for line in doc.lines:
        for take in plan[line.line_no]:
            change = ctx.store.upsert_add(
                line.product_id, source, take.rack_location, -take.quantity
            )
            ctx.record(
                line.product_id, source, take.rack_location,
                MovementKind.TRANSFER_OUT, change,
            )
        dest_rack = ctx.rack(line.rack_location)
        change = ctx.store.upsert_add(line.product_id, destination, dest_rack, line.quantity)
        ctx.record(line.product_id, destination, dest_rack, MovementKind.TRANSFER_IN, change)
        line.fulfilled_quantity = line.quantity


def _validate_adjustment(ctx: _ValidationContext) -> None:
    doc = ctx.document
    ctx.store.lock_keys((line.product_id, doc.warehouse_id) for line in doc.lines)

    for line in doc.lines:
        rack = ctx.rack(line.rack_location)
        change = ctx.store.set_absolute(line.product_id, doc.warehouse_id, rack, line.quantity)
        # A count that matches still leaves an entry: it proves the count happened.
        ctx.record(line.product_id, doc.warehouse_id, rack, MovementKind.ADJUSTMENT, change)
        line.system_quantity = change.before
        line.fulfilled_quantity = line.quantity


_VALIDATORS: dict[DocumentKind, Callable[[_ValidationContext], None]] = {
    DocumentKind.RECEIPT: _validate_receipt,
    DocumentKind.DELIVERY: _validate_delivery,
    DocumentKind.TRANSFER: _validate_transfer,
    DocumentKind.ADJUSTMENT: _validate_adjustment,
}

_OUTBOUND_KINDS = (DocumentKind.DELIVERY, DocumentKind.TRANSFER)


# =============================================================================
# Service
# =============================================================================


class DocumentService(BaseService[Document]):
    """
    Document lifecycle engine.

    Contract:
        Every method runs inside the caller's transaction and flushes; the
        caller commits or rolls back.

    Guarantees:
        - validate() either leaves the document done with every stock
          mutation and movement flushed, or raises before returning.  The
          caller's rollback then restores document, stock and ledger.
        - create() consumes exactly one document number, inside the caller's
          transaction.

    Non-goals:
        - No reversal of done documents.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()
        self._catalog = CatalogService(session)
        self._sequences = SequenceService(session)
        self._numbers = DocumentNumberGenerator(session, self._settings)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, document_id: UUID) -> Document:
        doc = self.session.get(Document, document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    def get_locked(self, document_id: UUID) -> Document:
        """Load the document FOR UPDATE; serializes lifecycle actions on it."""
        doc = self.session.execute(
            select(Document)
            .where(Document.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    def _require_transition(self, doc: Document, action: str) -> Transition:
        transition = DOCUMENT_WORKFLOW.find_transition(doc.status.value, action)
        if transition is None:
            logger.warning(
                "invalid_transition_rejected",
                extra={
                    "document_id": str(doc.id),
                    "document_number": doc.document_number,
                    "status": doc.status.value,
                    "action": action,
                },
            )
            raise InvalidTransitionError(doc.id, doc.status.value, action)
        return transition

    def _check_references(self, kind: DocumentKind, header: DocumentHeader, lines: Sequence[LineInput]) -> None:
        self._catalog.require_active_warehouse(header.warehouse_id)
        if kind == DocumentKind.TRANSFER:
            self._catalog.require_active_warehouse(header.destination_warehouse_id)
        for product_id in dict.fromkeys(line.product_id for line in lines):
            self._catalog.require_active_product(product_id)

    @staticmethod
    def _build_lines(lines: Sequence[LineInput]) -> list[DocumentLine]:
        return [
            DocumentLine(
                line_no=index,
                product_id=line.product_id,
                quantity=line.quantity,
                fulfilled_quantity=0,
                rack_location=(line.rack_location or "").strip() or None,
            )
            for index, line in enumerate(lines, start=1)
        ]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(
        self,
        kind: DocumentKind,
        header: DocumentHeader,
        lines: Sequence[LineInput],
        actor_id: UUID,
    ) -> Document:
        """Create a draft document with its lines and a freshly allocated number."""
        kind = DocumentKind(kind)
        check_document_input(kind, header, lines)
        self._check_references(kind, header, lines)

        number = self._numbers.next(kind)
        doc = Document(
            kind=kind,
            document_number=number,
            status=DocumentStatus.DRAFT,
            counterparty_name=header.counterparty_name,
            warehouse_id=header.warehouse_id,
            destination_warehouse_id=header.destination_warehouse_id,
            scheduled_date=header.scheduled_date,
            notes=header.notes,
            created_by_id=actor_id,
            lines=self._build_lines(lines),
        )
        self.session.add(doc)
        self.session.flush()

        logger.info(
            "document_created",
            extra={
                "document_id": str(doc.id),
                "document_number": number,
                "document_kind": kind.value,
                "line_count": len(doc.lines),
                "warehouse_id": str(doc.warehouse_id),
            },
        )
        return doc

    def update(
        self,
        document_id: UUID,
        header: DocumentHeader,
        lines: Sequence[LineInput],
        actor_id: UUID,
    ) -> Document:
        """Replace header fields and lines of a draft document."""
        doc = self.get_locked(document_id)
        self._require_transition(doc, ACTION_UPDATE)
        check_document_input(doc.kind, header, lines)
        self._check_references(doc.kind, header, lines)

        doc.counterparty_name = header.counterparty_name
        doc.warehouse_id = header.warehouse_id
        doc.destination_warehouse_id = header.destination_warehouse_id
        doc.scheduled_date = header.scheduled_date
        doc.notes = header.notes
        doc.updated_by_id = actor_id

        # Old lines must be gone before new ones reuse their line numbers.
        doc.lines.clear()
        self.session.flush()
        doc.lines.extend(self._build_lines(lines))
        self.session.flush()

        logger.info(
            "document_updated",
            extra={
                "document_id": str(doc.id),
                "document_number": doc.document_number,
                "line_count": len(doc.lines),
            },
        )
        return doc

    def mark_ready(self, document_id: UUID, actor_id: UUID) -> Document:
        doc = self.get_locked(document_id)
        transition = self._require_transition(doc, ACTION_MARK_READY)
        doc.status = DocumentStatus(transition.to_state)
        doc.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "document_marked_ready",
            extra={"document_id": str(doc.id), "document_number": doc.document_number},
        )
        return doc

    def cancel(self, document_id: UUID, actor_id: UUID) -> Document:
        """Cancel a draft or ready document.  No stock or ledger effect."""
        doc = self.get_locked(document_id)
        transition = self._require_transition(doc, ACTION_CANCEL)
        doc.status = DocumentStatus(transition.to_state)
        doc.cancelled_at = self._clock.now()
        doc.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "document_cancelled",
            extra={"document_id": str(doc.id), "document_number": doc.document_number},
        )
        return doc

    def validate(self, document_id: UUID, actor_id: UUID) -> tuple[Document, list[StockMovement]]:
        """
        Apply a document to stock and the ledger and mark it done.

        Returns:
            The done document and the movements written, in seq order.
        """
        doc = self.get_locked(document_id)
        transition = self._require_transition(doc, ACTION_VALIDATE)
        now = self._clock.now()
        ctx = _ValidationContext(
            document=doc,
            store=StockLocationStore(self.session, actor_id, self._settings.default_rack_location),
            ledger=MovementLedger(self.session, self._sequences),
            actor_id=actor_id,
            occurred_at=now,
            default_rack=self._settings.default_rack_location,
        )

        try:
            _VALIDATORS[doc.kind](ctx)
        except NegativeQuantityError as exc:
            if doc.kind not in _OUTBOUND_KINDS:
                logger.critical(
                    "negative_quantity_invariant_violation",
                    extra={
                        "document_kind": doc.kind.value,
                        "product_id": exc.product_id,
                        "warehouse_id": exc.warehouse_id,
                        "rack_location": exc.rack_location,
                    },
                )
            raise

        doc.status = DocumentStatus(transition.to_state)
        doc.completed_at = now
        doc.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "document_validated",
            extra={
                "document_id": str(doc.id),
                "document_number": doc.document_number,
                "document_kind": doc.kind.value,
                "movement_count": len(ctx.movements),
                "units_moved": sum(abs(m.quantity_change) for m in ctx.movements),
            },
        )
        return doc, ctx.movements
