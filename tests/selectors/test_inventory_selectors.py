"""Read-side selectors: stock, movements, documents, dashboard."""

import pytest

from inventory_kernel.domain.dtos import DocumentHeader, LineInput
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.exceptions import ValidationInputError
from inventory_kernel.models.document import DocumentKind
from inventory_kernel.selectors.dashboard_selector import DashboardSelector
from inventory_kernel.selectors.document_selector import DocumentSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.stock_selector import StockSelector


@pytest.fixture
def deliver(document_service, test_actor_id):
    def _deliver(warehouse_id, product_id, quantity):
        doc = document_service.create(
            DocumentKind.DELIVERY,
            DocumentHeader(warehouse_id=warehouse_id),
            [LineInput(product_id, quantity)],
            test_actor_id,
        )
        document_service.validate(doc.id, test_actor_id)
        return doc

    return _deliver


class TestStockSelector:

    def test_rows_carry_catalog_labels(self, session, stocked_racks, product, warehouse):
        rows = StockSelector(session).query_stock(product_id=product.id)
        assert [(r.sku, r.warehouse_code, r.rack_location) for r in rows] == [
            ("WIDGET-001", "WH-MAIN", "A"),
            ("WIDGET-001", "WH-MAIN", "B"),
            ("WIDGET-001", "WH-MAIN", "C"),
        ]
        assert rows[0].product_name == "Widget"

    def test_empty_rows_can_be_hidden(self, session, stocked_racks, product, warehouse, deliver):
        deliver(warehouse.id, product.id, 30)
        selector = StockSelector(session)
        assert {r.rack_location for r in selector.query_stock(product.id)} == {"A", "B", "C"}
        assert {
            r.rack_location for r in selector.query_stock(product.id, include_empty=False)
        } == {"B", "C"}

    def test_on_hand(self, session, stocked_racks, receive, product, warehouse, second_warehouse):
        receive(second_warehouse.id, product.id, 7)
        selector = StockSelector(session)
        assert selector.on_hand(product.id, warehouse.id) == 45
        assert selector.on_hand(product.id) == 52
        assert selector.total_units() == 52

    def test_low_stock(
        self, session, catalog, receive, product, other_product, warehouse, test_actor_id
    ):
        receive(warehouse.id, product.id, 10)
        catalog.update_product(other_product.id, test_actor_id, reorder_level=5)

        items = StockSelector(session).low_stock()

        # WIDGET is at its reorder level; GADGET has none on hand
        assert [(i.sku, i.on_hand, i.reorder_level) for i in items] == [
            ("GADGET-002", 0, 5),
            ("WIDGET-001", 10, 10),
        ]

    def test_restocked_product_leaves_low_stock(self, session, receive, product, warehouse):
        receive(warehouse.id, product.id, 11)
        assert StockSelector(session).low_stock() == []


class TestMovementSelector:

    def test_newest_first_and_stable(self, session, stocked_racks, product, warehouse, deliver):
        deliver(warehouse.id, product.id, 3)
        selector = MovementSelector(session)

        first = selector.query_movements()
        second = selector.query_movements()

        assert first == second
        assert [m.seq for m in first] == sorted((m.seq for m in first), reverse=True)
        assert first[0].movement_kind == "delivery"

    def test_filter_by_kind(self, session, stocked_racks, product, warehouse, deliver):
        deliver(warehouse.id, product.id, 3)
        selector = MovementSelector(session)
        assert [m.movement_kind for m in selector.query_movements(kind="receipt")] == ["receipt"] * 3
        assert selector.count() == 4
        assert selector.count(kind="delivery") == 1

    def test_offset_pages_do_not_overlap(self, session, receive, product, warehouse):
        for _ in range(5):
            receive(warehouse.id, product.id, 1)
        selector = MovementSelector(session)

        page_one = selector.query_movements(limit=2, offset=0)
        page_two = selector.query_movements(limit=2, offset=2)
        page_three = selector.query_movements(limit=2, offset=4)

        seqs = [m.seq for m in page_one + page_two + page_three]
        assert len(seqs) == 5
        assert seqs == sorted(seqs, reverse=True)

    def test_limit_is_clamped(self, session, receive, product, warehouse):
        for _ in range(3):
            receive(warehouse.id, product.id, 1)
        settings = KernelSettings(default_query_limit=1, max_query_limit=2)
        selector = MovementSelector(session, settings)
        assert len(selector.query_movements()) == 1
        assert len(selector.query_movements(limit=50)) == 2
        with pytest.raises(ValidationInputError):
            selector.query_movements(limit=0)

    def test_for_key_is_chronological(self, session, stocked_racks, product, warehouse, deliver):
        deliver(warehouse.id, product.id, 31)
        history = MovementSelector(session).for_key(product.id, warehouse.id, "B")
        assert [(m.quantity_before, m.quantity_after) for m in history] == [(0, 10), (10, 9)]


class TestDocumentSelector:

    def test_list_filters_and_orders(self, session, document_service, receive, product, warehouse):
        first = receive(warehouse.id, product.id, 1)
        second = receive(warehouse.id, product.id, 2)
        selector = DocumentSelector(session)

        done = selector.list_documents(kind="receipt", status="done")
        assert [d.document_number for d in done] == [second.document_number, first.document_number]
        assert selector.list_documents(kind=DocumentKind.DELIVERY) == []

    def test_get_by_number(self, session, receive, product, warehouse):
        doc = receive(warehouse.id, product.id, 1)
        selector = DocumentSelector(session)
        assert selector.get_by_number(doc.document_number).id == doc.id
        assert selector.get_by_number("REC-99999") is None

    def test_pending_counts_every_kind(
        self, session, document_service, product, warehouse, test_actor_id
    ):
        for _ in range(2):
            document_service.create(
                DocumentKind.DELIVERY,
                DocumentHeader(warehouse_id=warehouse.id),
                [LineInput(product.id, 1)],
                test_actor_id,
            )
        assert DocumentSelector(session).pending_by_kind() == {
            "receipt": 0,
            "delivery": 2,
            "transfer": 0,
            "adjustment": 0,
        }


class TestDashboard:

    def test_summary(
        self, session, document_service, catalog, stocked_racks, product, other_product,
        warehouse, second_warehouse, test_actor_id,
    ):
        document_service.create(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=warehouse.id),
            [LineInput(other_product.id, 5)],
            test_actor_id,
        )
        catalog.deactivate_warehouse(second_warehouse.id, test_actor_id)

        summary = DashboardSelector(session, KernelSettings(recent_activity_limit=2)).summary()

        assert summary.active_products == 2
        assert summary.active_warehouses == 1
        assert summary.total_units_on_hand == 45
        assert summary.pending_by_kind["receipt"] == 1
        assert summary.pending_total == 1
        assert summary.low_stock == ()
        assert len(summary.recent_documents) == 2
