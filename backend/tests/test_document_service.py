import pytest

from shopcore.services import document_service
from shopcore.services.document_service import format_document_number, to_base36


class TestDocumentNumbers:

    @pytest.mark.parametrize("value,expected", [
        (0, "0"),
        (35, "Z"),
        (36, "10"),
        (1700000000000, "LOYW3V28"),
    ])
    def test_to_base36(self, value, expected):
        assert to_base36(value) == expected

    def test_format_uses_timestamp_and_suffix(self):
        number = format_document_number("ORD", 5, millis=1700000000000)

        prefix, stamp, suffix = number.split("-")
        assert prefix == "ORD"
        assert stamp == "LOYW3V28"
        assert len(suffix) == 5
        assert number == number.upper()

    def test_generated_ids_are_unique(self, db_session):
        ids = {document_service.generate_order_id() for _ in range(50)}
        assert len(ids) == 50

    def test_po_number_shape(self, db_session):
        number = document_service.generate_po_number()
        assert number.startswith("PO-")
        assert len(number.rsplit("-", 1)[1]) == 3
