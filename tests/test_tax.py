from datetime import date
from decimal import Decimal

import pytest

from backend.gst_etl.tax import TaxEngine, financial_year, filing_period, round2, to_decimal

GROSS_VALUES = ["0", "0.01", "1", "99.99", "118", "1234.56", "100000.05"]
RATES = ["0", "0.25", "3", "5", "12", "18", "28", "999"]


@pytest.fixture
def engine():
    return TaxEngine(seller_state_code="27")


def test_decompose_intrastate(engine):
    result = engine.decompose(Decimal("118"), Decimal("18"), is_inter_state=False)
    assert result.taxable_value == Decimal("100.00")
    assert result.cgst == Decimal("9.00")
    assert result.sgst == Decimal("9.00")
    assert result.igst == Decimal("0.00")


def test_decompose_interstate(engine):
    result = engine.decompose(Decimal("1180"), Decimal("18"), is_inter_state=True)
    assert result.taxable_value == Decimal("1000.00")
    assert result.igst == Decimal("180.00")
    assert result.cgst == result.sgst == Decimal("0.00")


@pytest.mark.parametrize("gross", GROSS_VALUES)
@pytest.mark.parametrize("rate", RATES)
@pytest.mark.parametrize("inter_state", [True, False])
def test_decompose_reconstructs_gross(engine, gross, rate, inter_state):
    result = engine.decompose(Decimal(gross), Decimal(rate), inter_state)
    assert result.taxable_value >= 0
    assert result.cgst == result.sgst
    total = result.taxable_value + result.igst + result.cgst + result.sgst
    assert abs(round2(total) - round2(gross)) <= Decimal("0.01")


@pytest.mark.parametrize("gross", GROSS_VALUES)
@pytest.mark.parametrize("rate", RATES)
@pytest.mark.parametrize("inter_state", [True, False])
def test_interstate_exclusivity(engine, gross, rate, inter_state):
    result = engine.decompose(Decimal(gross), Decimal(rate), inter_state)
    if result.total_tax > 0:
        assert (result.igst > 0) != (result.cgst > 0 or result.sgst > 0)
    if Decimal(rate) == 0:
        assert result.total_tax == 0


def test_decompose_clamps_negative_inputs(engine):
    result = engine.decompose(Decimal("-50"), Decimal("18"), False)
    assert result.taxable_value == Decimal("0.00")
    assert result.total_tax == Decimal("0.00")

    result = engine.decompose(Decimal("100"), None, False)
    assert result.taxable_value == Decimal("100.00")
    assert result.total_tax == 0


@pytest.mark.parametrize("hsn, expected", [
    ("9999", Decimal("18")),
    ("6109", Decimal("18")),
    ("61091000", Decimal("18")),
    ("3304", Decimal("12")),
    ("0901", Decimal("5")),
    ("0401", Decimal("0")),
    ("8703", Decimal("28")),
    ("", Decimal("18")),
    (None, Decimal("18")),
])
def test_resolve_rate(engine, hsn, expected):
    assert engine.resolve_rate(hsn) == expected


def test_round2_half_away_from_zero():
    assert round2(Decimal("2.675")) == Decimal("2.68")
    assert round2(Decimal("-2.675")) == Decimal("-2.68")
    assert round2("1.005") == Decimal("1.01")
    assert round2("garbage") == Decimal("0.00")


def test_round2_out_of_range_is_zero():
    assert round2("9" * 29) == Decimal("0.00")
    assert round2(Decimal("1e30")) == Decimal("0.00")
    assert round2("999999999999999.99") == Decimal("999999999999999.99")


@pytest.mark.parametrize("raw, expected", [
    ("₹1,234.50", Decimal("1234.50")),
    ("Rs. 99", Decimal("99")),
    ("INR 1,00,000", Decimal("100000")),
    ("18%", Decimal("18")),
    ("(250.00)", Decimal("-250.00")),
    (12.5, Decimal("12.5")),
    (7, Decimal("7")),
])
def test_to_decimal_parses_loose_numbers(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", float("nan"), True, "1e30", "9" * 29, Decimal("1e16")])
def test_to_decimal_rejects_blanks(raw):
    assert to_decimal(raw) is None


def test_inter_state_comparison():
    assert TaxEngine.is_inter_state("27", "29") is True
    assert TaxEngine.is_inter_state("27", "27") is False


def test_tcs_split():
    inter = TaxEngine.tcs_split(Decimal("1000"), is_inter_state=True)
    assert inter.igst == Decimal("10.00")
    assert inter.cgst == Decimal("0.00")

    intra = TaxEngine.tcs_split(Decimal("1000"), is_inter_state=False)
    assert intra.cgst == intra.sgst == Decimal("5.00")


def test_calculate_tax_and_standard_rates():
    assert TaxEngine.calculate_tax(Decimal("100"), Decimal("18")) == Decimal("18.00")
    assert TaxEngine.is_standard_rate("12") is True
    assert TaxEngine.is_standard_rate("7") is False


def test_place_of_supply_unresolved_is_empty(engine):
    assert engine.place_of_supply("Karnataka") == "29"
    assert engine.place_of_supply("Atlantis") == ""


def test_financial_year_and_period():
    assert financial_year(date(2024, 3, 31)) == "2023-24"
    assert financial_year(date(2024, 4, 1)) == "2024-25"
    assert filing_period(date(2024, 1, 15)) == "012024"
