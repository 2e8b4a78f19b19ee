"""
InventoryOrchestrator: units of work, DTO results, contention retry.

Tests that make an operation fail commit the catalog fixtures first: a
failed operation rolls the session back to its last commit.
"""

from dataclasses import FrozenInstanceError
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from inventory_kernel.domain.dtos import (
    DocumentDTO,
    DocumentHeader,
    LineInput,
    MovementDTO,
    ProductDTO,
    ValidationResult,
)
from inventory_kernel.exceptions import (
    ContentionError,
    DocumentNotFoundError,
    InsufficientStockError,
    ValidationInputError,
)
from inventory_kernel.models.document import DocumentKind
from inventory_kernel.services.inventory_orchestrator import (
    INITIAL_STOCK_NOTE,
    InventoryOrchestrator,
)
from inventory_kernel.services.retry_service import RetryPolicy


def _locked() -> OperationalError:
    return OperationalError("UPDATE stock_locations", {}, Exception("database is locked"))


@pytest.fixture
def committed_catalog(session, warehouse, second_warehouse, product, other_product):
    session.commit()
    return warehouse, product


@pytest.fixture
def receipt_id(orchestrator, committed_catalog, test_actor_id):
    warehouse, product = committed_catalog
    return orchestrator.create_document(
        DocumentKind.RECEIPT,
        DocumentHeader(warehouse_id=warehouse.id, counterparty_name="Acme Supply"),
        [LineInput(product.id, 30, "A")],
        test_actor_id,
    )


class TestDocumentOperations:

    def test_validate_returns_dtos(self, orchestrator, receipt_id, test_actor_id):
        result = orchestrator.validate_document(receipt_id, test_actor_id)

        assert isinstance(result, ValidationResult)
        assert isinstance(result.document, DocumentDTO)
        assert result.document.status == "done"
        assert result.document.kind == "receipt"
        assert all(isinstance(m, MovementDTO) for m in result.movements)
        assert [(m.movement_kind, m.quantity_change) for m in result.movements] == [("receipt", 30)]
        with pytest.raises(FrozenInstanceError):
            result.document.status = "draft"

    def test_document_movements(self, orchestrator, receipt_id, test_actor_id):
        assert orchestrator.document_movements(receipt_id) == []
        orchestrator.validate_document(receipt_id, test_actor_id)
        movements = orchestrator.document_movements(receipt_id)
        assert [m.reference_id for m in movements] == [receipt_id]

    def test_get_document(self, orchestrator, receipt_id):
        dto = orchestrator.get_document(receipt_id)
        assert dto.document_number == "REC-00001"
        assert dto.lines[0].quantity == 30

    def test_get_unknown_document(self, orchestrator):
        with pytest.raises(DocumentNotFoundError):
            orchestrator.get_document(uuid4())

    def test_structural_error_raised_before_any_work(
        self, orchestrator, committed_catalog, test_actor_id, captured_logs
    ):
        warehouse, product = committed_catalog
        with pytest.raises(ValidationInputError):
            orchestrator.create_document(
                DocumentKind.DELIVERY,
                DocumentHeader(warehouse_id=warehouse.id),
                [LineInput(product.id, -3)],
                test_actor_id,
            )
        assert not any(r["message"] == "operation_started" for r in captured_logs())

    def test_failed_validation_leaves_document_draft(
        self, orchestrator, committed_catalog, test_actor_id
    ):
        warehouse, product = committed_catalog
        doc_id = orchestrator.create_document(
            DocumentKind.DELIVERY,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 1)],
            test_actor_id,
        )
        with pytest.raises(InsufficientStockError):
            orchestrator.validate_document(doc_id, test_actor_id)
        assert orchestrator.get_document(doc_id).status == "draft"
        assert orchestrator.query_movements() == []

    def test_cancel_and_mark_ready(self, orchestrator, receipt_id, test_actor_id):
        assert orchestrator.mark_ready(receipt_id, test_actor_id).status == "ready"
        cancelled = orchestrator.cancel_document(receipt_id, test_actor_id)
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None

    def test_update_document(self, orchestrator, receipt_id, committed_catalog, test_actor_id):
        warehouse, product = committed_catalog
        orchestrator.update_document(
            receipt_id,
            DocumentHeader(warehouse_id=warehouse.id, counterparty_name="Globex"),
            [LineInput(product.id, 8, "B")],
            test_actor_id,
        )
        dto = orchestrator.get_document(receipt_id)
        assert dto.counterparty_name == "Globex"
        assert [(line.quantity, line.rack_location) for line in dto.lines] == [(8, "B")]

    def test_negative_offset_rejected(self, orchestrator):
        with pytest.raises(ValidationInputError):
            orchestrator.query_movements(offset=-1)
        with pytest.raises(ValidationInputError):
            orchestrator.list_documents(offset=-1)


class TestInputRejection:
    """Unknown enum values and page sizes are caller errors, raised before any work."""

    def test_unknown_document_kind_on_create(
        self, orchestrator, committed_catalog, test_actor_id, captured_logs
    ):
        warehouse, product = committed_catalog
        with pytest.raises(ValidationInputError) as exc_info:
            orchestrator.create_document(
                "bogus",
                DocumentHeader(warehouse_id=warehouse.id),
                [LineInput(product.id, 1)],
                test_actor_id,
            )
        assert exc_info.value.field == "kind"
        assert "receipt" in exc_info.value.reason
        assert not any(r["message"] == "operation_started" for r in captured_logs())

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"kind": "bogus"}, "kind"),
            ({"status": "archived"}, "status"),
            ({"limit": 0}, "limit"),
        ],
    )
    def test_list_documents_rejects(self, orchestrator, kwargs, field):
        with pytest.raises(ValidationInputError) as exc_info:
            orchestrator.list_documents(**kwargs)
        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        "kwargs, field",
        [({"kind": "bogus"}, "kind"), ({"limit": -5}, "limit")],
    )
    def test_query_movements_rejects(self, orchestrator, kwargs, field, captured_logs):
        with pytest.raises(ValidationInputError) as exc_info:
            orchestrator.query_movements(**kwargs)
        assert exc_info.value.field == field
        messages = {r["message"] for r in captured_logs()}
        assert "operation_failed" not in messages
        assert "operation_started" not in messages

    def test_value_strings_are_accepted(self, orchestrator, receipt_id, test_actor_id):
        orchestrator.validate_document(receipt_id, test_actor_id)
        assert len(orchestrator.query_movements(kind="receipt")) == 1
        assert len(orchestrator.list_documents(kind="receipt", status="done")) == 1


class TestCatalogOperations:

    def test_register_product_with_initial_stock(
        self, orchestrator, committed_catalog, test_actor_id
    ):
        warehouse, _ = committed_catalog
        dto = orchestrator.register_product(
            sku="SPROCKET-9",
            name="Sprocket",
            actor_id=test_actor_id,
            initial_stock=12,
            warehouse_id=warehouse.id,
            rack_location="R-1",
        )
        assert isinstance(dto, ProductDTO)

        stock = orchestrator.query_stock(product_id=dto.id)
        assert [(s.rack_location, s.quantity) for s in stock] == [("R-1", 12)]

        receipts = orchestrator.list_documents(kind="receipt", status="done")
        assert [d.notes for d in receipts] == [INITIAL_STOCK_NOTE]
        assert orchestrator.reconcile(product_id=dto.id).is_reconciled

    def test_initial_stock_needs_warehouse(self, orchestrator, test_actor_id):
        with pytest.raises(ValidationInputError) as exc_info:
            orchestrator.register_product(
                sku="SPROCKET-9", name="Sprocket", actor_id=test_actor_id, initial_stock=5
            )
        assert exc_info.value.field == "warehouse_id"

    def test_negative_initial_stock_rejected(self, orchestrator, test_actor_id):
        with pytest.raises(ValidationInputError):
            orchestrator.register_product(
                sku="SPROCKET-9", name="Sprocket", actor_id=test_actor_id, initial_stock=-1
            )

    def test_product_and_warehouse_round_trip_as_dtos(self, orchestrator, test_actor_id):
        wh = orchestrator.register_warehouse(code="WH-WEST", name="West", actor_id=test_actor_id)
        product = orchestrator.register_product(sku="NUT-4", name="Nut", actor_id=test_actor_id)
        assert orchestrator.update_product(product.id, test_actor_id, reorder_level=3).reorder_level == 3
        assert orchestrator.deactivate_product(product.id, test_actor_id).is_active is False
        assert orchestrator.deactivate_warehouse(wh.id, test_actor_id).is_active is False


class TestUnitOfWork:

    def test_operation_logs_carry_context(
        self, orchestrator, receipt_id, test_actor_id, captured_logs
    ):
        orchestrator.validate_document(receipt_id, test_actor_id)
        records = [r for r in captured_logs() if r.get("operation") == "validate_document"]
        messages = [r["message"] for r in records]

        assert messages[0] == "operation_started"
        assert "document_validated" in messages
        assert messages[-1] == "operation_completed"
        assert {r["actor_id"] for r in records} == {str(test_actor_id)}
        assert len({r["correlation_id"] for r in records}) == 1

    def test_business_error_is_not_retried(
        self, session, committed_catalog, deterministic_clock, test_actor_id, captured_logs
    ):
        delays = []
        orch = InventoryOrchestrator(session, clock=deterministic_clock, sleep=delays.append)
        warehouse, product = committed_catalog
        doc_id = orch.create_document(
            DocumentKind.DELIVERY,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 5)],
            test_actor_id,
        )
        with pytest.raises(InsufficientStockError):
            orch.validate_document(doc_id, test_actor_id)
        assert delays == []
        rolled_back = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rolled_back[0]["error_code"] == "INSUFFICIENT_STOCK"

    def test_contention_is_retried_then_succeeds(
        self, session, committed_catalog, deterministic_clock, test_actor_id, monkeypatch
    ):
        delays = []
        orch = InventoryOrchestrator(
            session,
            clock=deterministic_clock,
            retry_policy=RetryPolicy(max_retries=3, backoff_base_ms=50, jitter=False),
            sleep=delays.append,
        )
        warehouse, product = committed_catalog
        doc_id = orch.create_document(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 7)],
            test_actor_id,
        )

        real_validate = orch.document_service.validate
        calls = []

        def flaky_validate(document_id, actor_id):
            calls.append(document_id)
            if len(calls) <= 2:
                raise _locked()
            return real_validate(document_id, actor_id)

        monkeypatch.setattr(orch.document_service, "validate", flaky_validate)

        result = orch.validate_document(doc_id, test_actor_id)

        assert result.document.status == "done"
        assert len(calls) == 3
        assert delays == [0.05, 0.1]

    def test_contention_exhausted_raises_contention_error(
        self, session, committed_catalog, deterministic_clock, test_actor_id, monkeypatch,
        captured_logs,
    ):
        delays = []
        orch = InventoryOrchestrator(
            session,
            clock=deterministic_clock,
            retry_policy=RetryPolicy(max_retries=2, jitter=False),
            sleep=delays.append,
        )
        warehouse, product = committed_catalog
        doc_id = orch.create_document(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 7)],
            test_actor_id,
        )

        def always_locked(document_id, actor_id):
            raise _locked()

        monkeypatch.setattr(orch.document_service, "validate", always_locked)

        with pytest.raises(ContentionError) as exc_info:
            orch.validate_document(doc_id, test_actor_id)

        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "validate_document"
        assert exc_info.value.detail == "database is locked"
        assert len(delays) == 2
        assert any(r["message"] == "contention_retries_exhausted" for r in captured_logs())
        assert orch.get_document(doc_id).status == "draft"

    def test_caller_owned_transaction_is_not_retried(
        self, session, warehouse, product, deterministic_clock, test_actor_id, monkeypatch
    ):
        delays = []
        orch = InventoryOrchestrator(
            session, clock=deterministic_clock, auto_commit=False, sleep=delays.append
        )
        doc_id = orch.create_document(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 7)],
            test_actor_id,
        )

        def always_locked(document_id, actor_id):
            raise _locked()

        monkeypatch.setattr(orch.document_service, "validate", always_locked)

        with pytest.raises(ContentionError) as exc_info:
            orch.validate_document(doc_id, test_actor_id)
        assert exc_info.value.attempts == 1
        assert delays == []

    def test_caller_owned_transaction_survives_failed_operation(
        self, session, warehouse, product, deterministic_clock, test_actor_id
    ):
        orch = InventoryOrchestrator(session, clock=deterministic_clock, auto_commit=False)
        doc_id = orch.create_document(
            DocumentKind.DELIVERY,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(product.id, 1)],
            test_actor_id,
        )
        with pytest.raises(InsufficientStockError):
            orch.validate_document(doc_id, test_actor_id)

        # Nothing was committed, yet the earlier work is still there.
        assert orch.get_document(doc_id).status == "draft"
        assert session.in_transaction()
