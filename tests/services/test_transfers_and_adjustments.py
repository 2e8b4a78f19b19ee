"""Internal transfer and stock adjustment validation through DocumentService."""

import pytest

from inventory_kernel.domain.dtos import DocumentHeader, LineInput
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.document import DocumentKind, DocumentStatus
from inventory_kernel.models.movement import MovementKind
from inventory_kernel.selectors.stock_selector import StockSelector


def _racks(session, product_id, warehouse_id) -> dict[str, int]:
    return {
        row.rack_location: row.quantity
        for row in StockSelector(session).query_stock(product_id, warehouse_id)
    }


class TestTransfer:

    def test_transfer_between_warehouses(
        self, session, document_service, warehouse, second_warehouse, product,
        stocked_racks, test_actor_id,
    ):
        doc = document_service.create(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=warehouse.id, destination_warehouse_id=second_warehouse.id),
            [LineInput(product.id, 35, "E-01")],
            test_actor_id,
        )
        assert doc.document_number.startswith("INT-")

        _, movements = document_service.validate(doc.id, test_actor_id)

        assert [(m.movement_kind, m.rack_location, m.quantity_change) for m in movements] == [
            (MovementKind.TRANSFER_OUT, "A", -30),
            (MovementKind.TRANSFER_OUT, "B", -5),
            (MovementKind.TRANSFER_IN, "E-01", 35),
        ]
        assert all(m.reference_type == "internal_transfer" for m in movements)
        assert _racks(session, product.id, warehouse.id) == {"A": 0, "B": 5, "C": 5}
        assert _racks(session, product.id, second_warehouse.id) == {"E-01": 35}

    def test_transfer_conserves_total_units(
        self, session, document_service, warehouse, second_warehouse, product,
        stocked_racks, test_actor_id,
    ):
        doc = document_service.create(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=warehouse.id, destination_warehouse_id=second_warehouse.id),
            [LineInput(product.id, 12)],
            test_actor_id,
        )
        _, movements = document_service.validate(doc.id, test_actor_id)
        assert sum(m.quantity_change for m in movements) == 0
        assert StockSelector(session).on_hand(product.id) == 45

    def test_rack_move_within_one_warehouse_skips_destination_rack(
        self, session, document_service, warehouse, product, stocked_racks, test_actor_id,
    ):
        doc = document_service.create(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=warehouse.id, destination_warehouse_id=warehouse.id),
            [LineInput(product.id, 12, "A")],
            test_actor_id,
        )
        _, movements = document_service.validate(doc.id, test_actor_id)

        # A is the destination, so the 12 units come from B then C
        assert [(m.movement_kind, m.rack_location, m.quantity_change) for m in movements] == [
            (MovementKind.TRANSFER_OUT, "B", -10),
            (MovementKind.TRANSFER_OUT, "C", -2),
            (MovementKind.TRANSFER_IN, "A", 12),
        ]
        assert _racks(session, product.id, warehouse.id) == {"A": 42, "B": 0, "C": 3}

    def test_rack_move_cannot_count_destination_stock(
        self, document_service, warehouse, product, stocked_racks, test_actor_id,
    ):
        doc = document_service.create(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=warehouse.id, destination_warehouse_id=warehouse.id),
            [LineInput(product.id, 20, "A")],
            test_actor_id,
        )
        with pytest.raises(InsufficientStockError) as exc_info:
            document_service.validate(doc.id, test_actor_id)
        assert exc_info.value.available == 15

    def test_insufficient_transfer_changes_nothing(
        self, session, document_service, warehouse, second_warehouse, product,
        stocked_racks, test_actor_id,
    ):
        doc = document_service.create(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=warehouse.id, destination_warehouse_id=second_warehouse.id),
            [LineInput(product.id, 46)],
            test_actor_id,
        )
        with pytest.raises(InsufficientStockError):
            document_service.validate(doc.id, test_actor_id)
        assert _racks(session, product.id, warehouse.id) == {"A": 30, "B": 10, "C": 5}
        assert _racks(session, product.id, second_warehouse.id) == {}


class TestAdjustment:

    def _adjust(self, document_service, warehouse, lines, actor_id):
        doc = document_service.create(
            DocumentKind.ADJUSTMENT,
            DocumentHeader(warehouse_id=warehouse.id, notes="Quarterly cycle count"),
            lines,
            actor_id,
        )
        return document_service.validate(doc.id, actor_id)

    def test_count_sets_absolute_quantity(
        self, session, document_service, warehouse, product, stocked_racks, test_actor_id,
    ):
        done, movements = self._adjust(
            document_service, warehouse, [LineInput(product.id, 27, "A")], test_actor_id
        )
        assert [(m.quantity_before, m.quantity_after, m.quantity_change) for m in movements] == [
            (30, 27, -3)
        ]
        assert movements[0].movement_kind == MovementKind.ADJUSTMENT
        assert movements[0].reference_type == "stock_adjustment"
        assert done.lines[0].system_quantity == 30
        assert _racks(session, product.id, warehouse.id)["A"] == 27

    def test_matching_count_still_writes_one_entry(
        self, document_service, warehouse, product, stocked_racks, test_actor_id,
    ):
        done, movements = self._adjust(
            document_service, warehouse, [LineInput(product.id, 10, "B")], test_actor_id
        )
        assert len(movements) == 1
        assert movements[0].quantity_change == 0
        assert (movements[0].quantity_before, movements[0].quantity_after) == (10, 10)
        assert done.status == DocumentStatus.DONE

    def test_count_of_unknown_location_creates_it(
        self, session, document_service, warehouse, product, test_actor_id,
    ):
        _, movements = self._adjust(
            document_service, warehouse, [LineInput(product.id, 6, "FOUND")], test_actor_id
        )
        assert (movements[0].quantity_before, movements[0].quantity_after) == (0, 6)
        assert _racks(session, product.id, warehouse.id) == {"FOUND": 6}

    def test_rack_defaults_when_omitted(
        self, session, document_service, warehouse, product, test_actor_id,
    ):
        _, movements = self._adjust(
            document_service, warehouse, [LineInput(product.id, 2)], test_actor_id
        )
        assert movements[0].rack_location == "DEFAULT"

    def test_count_to_zero(
        self, session, document_service, warehouse, product, stocked_racks, test_actor_id,
    ):
        self._adjust(document_service, warehouse, [LineInput(product.id, 0, "C")], test_actor_id)
        assert _racks(session, product.id, warehouse.id)["C"] == 0
