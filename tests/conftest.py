from datetime import date
from decimal import Decimal

import pytest

from backend.gst_etl.errors import ExtractionError
from backend.gst_etl.models import CanonicalTransaction
from backend.supabase_client import MemoryStore


class StubExtractor:
    """Text-extraction collaborator returning canned text."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    def extract_text(self, file_bytes):
        self.calls += 1
        if self.error:
            raise ExtractionError(self.error)
        return self.text


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def stub_extractor():
    return StubExtractor


def make_tx(**overrides) -> CanonicalTransaction:
    values = dict(
        order_reference="ORD-1",
        occurred_at=date(2024, 1, 15),
        description="Cotton T-Shirt",
        product_name="Cotton T-Shirt",
        gross_amount=Decimal("118.00"),
        taxable_value=Decimal("100.00"),
        gst_rate_percent=Decimal("18"),
        cgst=Decimal("9.00"),
        sgst=Decimal("9.00"),
        hsn_code="6109",
        jurisdiction_code="27",
        platform="Amazon",
    )
    values.update(overrides)
    return CanonicalTransaction(**values)


@pytest.fixture
def tx_factory():
    return make_tx


@pytest.fixture
def sample_transactions():
    return [
        make_tx(),
        make_tx(order_reference="ORD-2", occurred_at=date(2024, 2, 3), description="Bluetooth Speaker",
                product_name="Speaker, Portable", gross_amount=Decimal("1180.00"),
                taxable_value=Decimal("1000.00"), cgst=Decimal("0.00"), sgst=Decimal("0.00"),
                igst=Decimal("180.00"), hsn_code="8518", jurisdiction_code="29", platform="Flipkart"),
        make_tx(order_reference="ORD-3", occurred_at=date(2024, 1, 20), description="Tea",
                product_name="Assam Tea", gross_amount=Decimal("105.00"),
                taxable_value=Decimal("100.00"), gst_rate_percent=Decimal("5"),
                cgst=Decimal("2.50"), sgst=Decimal("2.50"), hsn_code="0902", jurisdiction_code="27",
                platform="Meesho"),
    ]
