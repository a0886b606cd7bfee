from datetime import date
from decimal import Decimal

from ingest.parsing.enrichment import clean_description, enrich
from ingest.parsing.models import ExtractedTransaction, TransactionType


def _transaction() -> ExtractedTransaction:
    return ExtractedTransaction(
        id="0001-abc",
        transaction_date=date(2024, 3, 10),
        amount=Decimal("10.00"),
        description="",
        transaction_type=TransactionType.EXPENSE,
    )


class TestEnrich:
    def test_card_payment(self) -> None:
        result = enrich(_transaction(), "KARTENZAHLUNG EDEKA CENTER 09.03 18:02 Hamburg")

        assert result.merchant_name == "EDEKA CENTER"
        assert result.payment_method == "Kartenzahlung"
        assert result.location == "Hamburg"

    def test_direct_debit_with_mandate(self) -> None:
        result = enrich(
            _transaction(), "LASTSCHRIFT Vodafone GmbH MANDATSREF: VF12345 Mobilfunk"
        )

        assert result.merchant_name == "Vodafone GmbH"
        assert result.reference_number == "VF12345"
        assert result.payment_method == "Lastschrift"

    def test_end_to_end_reference(self) -> None:
        result = enrich(_transaction(), "Miete END-TO-END-REF: E2E998877")

        assert result.reference_number == "E2E998877"

    def test_transfer(self) -> None:
        result = enrich(_transaction(), "ÜBERWEISUNG Max Mustermann VERWENDUNGSZWECK Geschenk")

        assert result.merchant_name == "Max Mustermann"
        assert result.payment_method == "Überweisung"

    def test_standing_order(self) -> None:
        result = enrich(_transaction(), "DAUERAUFTRAG Sparplan")

        assert result.payment_method == "Dauerauftrag"
        assert result.merchant_name is None

    def test_plain_text_leaves_fields_empty(self) -> None:
        result = enrich(_transaction(), "Bargeldauszahlung Automat")

        assert result.merchant_name is None
        assert result.reference_number is None
        assert result.payment_method is None
        assert result.location is None


class TestCleanDescription:
    def test_drops_booking_keywords(self) -> None:
        assert clean_description("LASTSCHRIFT  Stadtwerke   Strom") == "Stadtwerke Strom"

    def test_keeps_words_containing_keywords(self) -> None:
        assert clean_description("ELVIRA Buchladen") == "ELVIRA Buchladen"
