"""
Structural document input checks (check_document_input, LineInput).

These run before any transaction opens, so no database is needed.
"""

from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import DocumentHeader, LineInput
from inventory_kernel.exceptions import ValidationInputError
from inventory_kernel.models.document import DocumentKind
from inventory_kernel.services.document_service import check_document_input

WAREHOUSE = uuid4()
OTHER_WAREHOUSE = uuid4()
PRODUCT = uuid4()


def _field_of(kind, header, lines) -> str:
    with pytest.raises(ValidationInputError) as exc_info:
        check_document_input(kind, header, lines)
    return exc_info.value.field


class TestLineInput:

    def test_fractional_quantity_rejected(self):
        with pytest.raises(TypeError):
            LineInput(PRODUCT, 1.5)

    def test_bool_quantity_rejected(self):
        with pytest.raises(TypeError):
            LineInput(PRODUCT, True)


class TestCheckDocumentInput:

    def test_valid_receipt_passes(self):
        check_document_input(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=WAREHOUSE),
            [LineInput(PRODUCT, 5, "A")],
        )

    def test_missing_warehouse(self):
        assert _field_of(
            DocumentKind.RECEIPT, DocumentHeader(warehouse_id=None), [LineInput(PRODUCT, 5)]
        ) == "warehouse_id"

    def test_empty_lines(self):
        assert _field_of(DocumentKind.DELIVERY, DocumentHeader(warehouse_id=WAREHOUSE), []) == "lines"

    @pytest.mark.parametrize("kind", [DocumentKind.RECEIPT, DocumentKind.DELIVERY, DocumentKind.TRANSFER])
    def test_non_positive_quantity(self, kind):
        header = DocumentHeader(
            warehouse_id=WAREHOUSE,
            destination_warehouse_id=OTHER_WAREHOUSE if kind == DocumentKind.TRANSFER else None,
        )
        assert _field_of(kind, header, [LineInput(PRODUCT, 0)]) == "lines[1].quantity"

    def test_adjustment_accepts_zero_count(self):
        check_document_input(
            DocumentKind.ADJUSTMENT,
            DocumentHeader(warehouse_id=WAREHOUSE, notes="cycle count"),
            [LineInput(PRODUCT, 0)],
        )

    def test_adjustment_rejects_negative_count(self):
        assert _field_of(
            DocumentKind.ADJUSTMENT,
            DocumentHeader(warehouse_id=WAREHOUSE, notes="cycle count"),
            [LineInput(PRODUCT, -1)],
        ) == "lines[1].quantity"

    def test_adjustment_requires_reason(self):
        assert _field_of(
            DocumentKind.ADJUSTMENT,
            DocumentHeader(warehouse_id=WAREHOUSE, notes="  "),
            [LineInput(PRODUCT, 3)],
        ) == "notes"

    def test_transfer_requires_destination(self):
        assert _field_of(
            DocumentKind.TRANSFER, DocumentHeader(warehouse_id=WAREHOUSE), [LineInput(PRODUCT, 3)]
        ) == "destination_warehouse_id"

    def test_destination_only_on_transfers(self):
        assert _field_of(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=WAREHOUSE, destination_warehouse_id=OTHER_WAREHOUSE),
            [LineInput(PRODUCT, 3)],
        ) == "destination_warehouse_id"

    def test_same_warehouse_transfer_needs_racks(self):
        assert _field_of(
            DocumentKind.TRANSFER,
            DocumentHeader(warehouse_id=WAREHOUSE, destination_warehouse_id=WAREHOUSE),
            [LineInput(PRODUCT, 3, "B"), LineInput(PRODUCT, 2)],
        ) == "destination_warehouse_id"

    def test_overlong_rack_label(self):
        assert _field_of(
            DocumentKind.RECEIPT,
            DocumentHeader(warehouse_id=WAREHOUSE),
            [LineInput(PRODUCT, 3, "R" * 65)],
        ) == "lines[1].rack_location"

    def test_kind_given_as_string(self):
        check_document_input("receipt", DocumentHeader(warehouse_id=WAREHOUSE), [LineInput(PRODUCT, 1)])
