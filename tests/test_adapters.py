from datetime import date
from decimal import Decimal

import pytest

from backend.gst_etl.adapters import ADAPTER_TYPES, Platform, adapt, adapt_with_flags, parse_date


def test_every_platform_has_an_adapter():
    assert set(ADAPTER_TYPES) == set(Platform)


@pytest.mark.parametrize("label, expected", [
    ("Amazon", Platform.AMAZON),
    ("flipkart", Platform.FLIPKART),
    (" Bank  Statement ", Platform.BANK_STATEMENT),
    ("Jio Mart", Platform.GENERIC),
    ("Snapdeal", Platform.GENERIC),
    (None, Platform.GENERIC),
])
def test_platform_from_label(label, expected):
    assert Platform.from_label(label) == expected


@pytest.mark.parametrize("platform", [p.value for p in Platform])
def test_one_transaction_per_row_even_when_empty(platform):
    rows = [{}, {"unrelated": None}, {}]
    txns = adapt(platform, rows)
    assert len(txns) == 3
    assert len({t.order_reference for t in txns}) == 3
    assert all(t.gross_amount == Decimal("0.00") for t in txns)
    assert all(t.quantity == 1 for t in txns)


def test_empty_row_records_defaulted_fields():
    [row] = adapt_with_flags("Amazon", [{}])
    assert {"order_reference", "occurred_at", "gross_amount", "description"} <= row.defaulted
    assert row.transaction.description == "Amazon Sale"
    assert row.transaction.occurred_at == date.today()
    assert not row.is_clean


def test_amazon_interstate_order():
    rows = [{
        "order-id": "402-1234567", "purchase-date": "2024-01-15", "product-name": "Cotton T-Shirt",
        "quantity-purchased": "2", "item-price": "1180.00", "hsn": "6109", "ship-state": "Karnataka",
    }]
    [tx] = adapt("Amazon", rows, seller_state_code="27")
    assert tx.order_reference == "402-1234567"
    assert tx.occurred_at == date(2024, 1, 15)
    assert tx.quantity == 2
    assert tx.gst_rate_percent == Decimal("18")
    assert tx.taxable_value == Decimal("1000.00")
    assert tx.igst == Decimal("180.00")
    assert tx.cgst == tx.sgst == Decimal("0.00")
    assert tx.jurisdiction_code == "29"
    assert tx.platform == "Amazon"


def test_amazon_intrastate_and_missing_state():
    rows = [
        {"order-id": "A1", "item-price": "118", "hsn": "6109", "ship-state": "Maharashtra"},
        {"order-id": "A2", "item-price": "118", "hsn": "6109"},
    ]
    same_state, no_state = adapt("Amazon", rows, seller_state_code="27")
    assert same_state.cgst == same_state.sgst == Decimal("9.00")
    assert same_state.jurisdiction_code == "27"
    assert no_state.cgst == no_state.sgst == Decimal("9.00")
    assert no_state.jurisdiction_code == ""


def test_seller_state_override():
    rows = [{"order-id": "A1", "item-price": "118", "ship-state": "Karnataka"}]
    [tx] = adapt("Amazon", rows, seller_state_code="29")
    assert tx.igst == Decimal("0.00")
    assert tx.cgst == Decimal("9.00")


def test_flipkart_explicit_rate_column():
    rows = [{"Order ID": "OD1", "Selling Price": "105", "GST Rate": "5", "Shipping State": "Delhi"}]
    [tx] = adapt("Flipkart", rows)
    assert tx.gst_rate_percent == Decimal("5")
    assert tx.taxable_value == Decimal("100.00")
    assert tx.igst == Decimal("5.00")


def test_meesho_default_rate_is_five_percent():
    rows = [{"Sub Order No": "M1", "Product Price": "105", "State": "Maharashtra"}]
    [row] = adapt_with_flags("Meesho", rows)
    assert row.transaction.order_reference == "M1"
    assert row.transaction.gst_rate_percent == Decimal("5")
    assert row.transaction.cgst == row.transaction.sgst == Decimal("2.50")
    assert "gst_rate_percent" in row.defaulted


def test_paytm_is_always_interstate():
    rows = [{"Transaction ID": "P1", "Amount": "118", "State": "Maharashtra"}]
    [tx] = adapt("Paytm", rows, seller_state_code="27")
    assert tx.igst == Decimal("18.00")
    assert tx.cgst == Decimal("0.00")


def test_unknown_label_uses_generic_columns_and_keeps_label():
    rows = [{"Order No": "S1", "Sale Price": "", "Amount": "236", "Product": "Mug", "Qty": "3"}]
    [tx] = adapt("Snapdeal", rows)
    assert tx.platform == "Snapdeal"
    assert tx.order_reference == "S1"
    assert tx.gross_amount == Decimal("236.00")
    assert tx.quantity == 3
    assert tx.description == "Mug"


def test_column_names_are_matched_loosely():
    [tx] = adapt("Generic", [{" order id ": "X1", "AMOUNT": "₹1,180.00"}])
    assert tx.order_reference == "X1"
    assert tx.gross_amount == Decimal("1180.00")


def test_invalid_quantity_and_amount_default():
    [row] = adapt_with_flags("Generic", [{"Order ID": "G1", "Quantity": "0", "Amount": "n/a"}])
    assert row.transaction.quantity == 1
    assert row.transaction.gross_amount == Decimal("0.00")
    assert {"quantity", "gross_amount"} <= row.defaulted


@pytest.mark.parametrize("amount", ["1e30", "9" * 29])
def test_oversized_amount_defaults_instead_of_raising(amount):
    rows = adapt_with_flags("Generic", [{"Order ID": "A1", "Amount": amount}, {"Order ID": "A2", "Amount": "118"}])
    assert len(rows) == 2
    assert rows[0].transaction.gross_amount == Decimal("0.00")
    assert "gross_amount" in rows[0].defaulted
    assert rows[1].transaction.gross_amount == Decimal("118.00")


def test_optional_buyer_fields():
    rows = [{"Order ID": "B1", "Amount": "118", "Customer GSTIN": "29ABCDE1234F1Z5",
             "Customer Name": "Acme Traders", "Invoice Number": "INV-7"}]
    [tx] = adapt("Generic", rows)
    assert tx.customer_tax_id == "29ABCDE1234F1Z5"
    assert tx.customer_name == "Acme Traders"
    assert tx.invoice_number == "INV-7"


def test_bank_statement_spreadsheet_rows_are_untaxed():
    rows = [{"Date": "15/01/2024", "Narration": "NEFT FROM ACME", "Credit": "5,000.00", "Ref No": "N123"}]
    [row] = adapt_with_flags("Bank Statement", rows)
    tx = row.transaction
    assert tx.gross_amount == tx.taxable_value == Decimal("5000.00")
    assert tx.total_tax == 0
    assert tx.product_name == "Bank Transaction"
    assert tx.occurred_at == date(2024, 1, 15)
    assert row.is_clean


@pytest.mark.parametrize("raw, expected", [
    ("2024-01-15", date(2024, 1, 15)),
    ("15/01/2024", date(2024, 1, 15)),
    ("15-01-24", date(2024, 1, 15)),
    ("15 Jan 2024", date(2024, 1, 15)),
    ("2024-01-15 10:30:00", date(2024, 1, 15)),
    ("not a date", None),
    ("", None),
])
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected
