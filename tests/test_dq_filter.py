from decimal import Decimal

import pytest

from backend.gst_etl.dq import DataQualityEngine
from backend.gst_etl.filter import TransactionFilter
from backend.gst_etl.models import ZERO, AdaptedRow, BankStatement, RawBankLine


@pytest.fixture
def rows(tx_factory):
    return [
        AdaptedRow(tx_factory()),
        AdaptedRow(tx_factory(order_reference="ORD-2"), frozenset({"hsn_code", "quantity"})),
        AdaptedRow(tx_factory(order_reference="ORD-3", gross_amount=ZERO, taxable_value=ZERO,
                              cgst=ZERO, sgst=ZERO), frozenset({"gross_amount"})),
        AdaptedRow(tx_factory()),
    ]


def test_assess_classifies_rows(rows):
    report = DataQualityEngine().assess(rows)

    assert report["stats"] == {"total": 4, "CLEAN": 2, "DEFAULTED": 1, "SUSPECT": 1, "LOW_CONFIDENCE": 0}
    assert report["field_defaults"] == {"hsn_code": 1, "quantity": 1, "gross_amount": 1}
    assert report["reconciliation"] == {}

    flags = {(f["row"], f["flag_type"]) for f in report["flagged_rows"]}
    assert flags == {(2, "DEFAULTED"), (3, "ZERO_AMOUNT"), (4, "DUPLICATE")}

    defaulted = next(f for f in report["flagged_rows"] if f["flag_type"] == "DEFAULTED")
    assert defaulted["reason"] == "Defaulted: hsn_code, quantity"

    summary = report["summary"]
    assert summary["total_flags"] == 3
    assert summary["has_duplicates"] is True
    assert summary["has_imbalance"] is False


def test_generated_references_are_not_duplicates(tx_factory):
    synthetic = frozenset({"order_reference"})
    rows = [AdaptedRow(tx_factory(order_reference="same"), synthetic) for _ in range(2)]
    report = DataQualityEngine().assess(rows)
    assert report["summary"]["has_duplicates"] is False


def test_engine_resets_between_runs(rows):
    engine = DataQualityEngine()
    engine.assess(rows)
    report = engine.assess(rows[:1])
    assert report["stats"]["total"] == 1
    assert report["flagged_rows"] == []


def test_statement_reconciliation_and_confidence():
    statement = BankStatement(
        opening_balance=Decimal("1000.00"),
        closing_balance=Decimal("900.00"),
        lines=(
            RawBankLine("01/01/2024", "2024-01-01", "ATM", debit=Decimal("50.00"), confidence="low"),
        ),
    )
    report = DataQualityEngine().assess([], statement)

    assert report["stats"]["LOW_CONFIDENCE"] == 1
    assert report["reconciliation"]["expected_closing"] == 950.0
    assert report["reconciliation"]["is_balanced"] is False
    assert report["reconciliation"]["failure_reason"].startswith("Small mismatch")
    assert report["summary"]["has_imbalance"] is True
    assert report["mode_stats"] == {"Other": 1}


def test_filter_rejects_with_reasons(tx_factory):
    rows = [
        AdaptedRow(tx_factory()),
        AdaptedRow(tx_factory(order_reference="Z", gross_amount=ZERO)),
        AdaptedRow(tx_factory(order_reference="D"), frozenset({"occurred_at"})),
        AdaptedRow(tx_factory(order_reference="T", description="Grand Total")),
        AdaptedRow(tx_factory(order_reference="H"), frozenset({"hsn_code"})),
    ]
    eligible, rejected = TransactionFilter().filter(rows)

    assert [t.order_reference for t in eligible] == ["ORD-1", "H"]
    assert [(r["row"], r["reasons"]) for r in rejected] == [
        (2, ["zero amount"]),
        (3, ["missing occurred_at"]),
        (4, ["summary row"]),
    ]


def test_filter_custom_strict_fields(tx_factory):
    rows = [AdaptedRow(tx_factory(), frozenset({"hsn_code"}))]
    eligible, rejected = TransactionFilter().filter(rows, strict_fields=("hsn_code",))
    assert eligible == []
    assert rejected[0]["reasons"] == ["missing hsn_code"]


def test_filter_exposes_summary_keywords():
    keywords = TransactionFilter().get_summary_keywords()
    assert "closing balance" in keywords
    assert "grand total" in keywords
