import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from backend.gst_etl.config import Config
from backend.gst_etl.gstr1 import TaxReturnJsonRenderer
from backend.gst_etl.load import REPORT_TYPES, ReportLoader
from backend.gst_etl.models import ZERO
from backend.gst_etl.summary import CSV_HEADERS, SummaryRenderer
from backend.gst_etl.voucher_xml import VoucherXmlRenderer, voucher_prefix


def parse_xml(text):
    return ET.fromstring(text.encode("utf-8"))


def ledger_amounts(voucher):
    return {
        entry.findtext("LEDGERNAME"): entry.findtext("AMOUNT")
        for entry in voucher.findall("ALLLEDGERENTRIES.LIST")
    }


# ─────────────────────────────────────────────────────────────
# Voucher XML
# ─────────────────────────────────────────────────────────────

def test_vouchers(sample_transactions):
    root = parse_xml(VoucherXmlRenderer(company_name="Acme Retail").render(sample_transactions))

    assert root.findtext("BODY/IMPORTDATA/REQUESTDESC/STATICVARIABLES/SVCURRENTCOMPANY") == "Acme Retail"
    vouchers = root.findall(".//VOUCHER")
    assert len(vouchers) == 3

    first, second, _ = vouchers
    assert first.get("VCHTYPE") == "Sales"
    assert first.findtext("DATE") == "20240115"
    assert first.findtext("VOUCHERNUMBER") == "AMAZON/2024/00001"
    assert first.findtext("PARTYLEDGERNAME") == "Amazon Sales"
    assert ledger_amounts(first) == {
        "Amazon Sales": "-118.00",
        "Sales - E-commerce": "100.00",
        "Output CGST": "9.00",
        "Output SGST": "9.00",
    }
    assert first.findtext("ALLINVENTORYENTRIES.LIST/RATE") == "118.00/Nos"
    assert first.findtext("GSTREGISTRATIONTYPE") == "Consumer"

    assert second.findtext("VOUCHERNUMBER") == "FLIPKART/2024/00002"
    assert ledger_amounts(second) == {
        "Flipkart Sales": "-1180.00",
        "Sales - E-commerce": "1000.00",
        "Output IGST": "180.00",
    }
    assert second.findtext("PLACEOFSUPPLY") == "29"


def test_vouchers_escape_text_and_mark_registered_buyers(tx_factory):
    tx = tx_factory(description="Mugs & <Cups>", customer_tax_id="29ABCDE1234F1Z5")
    voucher = parse_xml(VoucherXmlRenderer().render([tx])).find(".//VOUCHER")
    assert "Mugs & <Cups>" in voucher.findtext("NARRATION")
    assert voucher.findtext("GSTREGISTRATIONTYPE") == "Regular"


def test_empty_voucher_document():
    text = VoucherXmlRenderer().render([])
    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert parse_xml(text).findall(".//TALLYMESSAGE") == []


def test_ledger_masters_are_deduplicated():
    root = parse_xml(VoucherXmlRenderer().render_ledger_masters(["Amazon", "Flipkart", "Amazon", ""]))
    names = [ledger.get("NAME") for ledger in root.findall(".//LEDGER")]
    assert names == ["Amazon Sales", "Flipkart Sales"]
    assert root.findtext(".//LEDGER/PARENT") == "Sundry Debtors"


@pytest.mark.parametrize("platform, expected", [
    ("Amazon", "AMAZON"),
    ("Jio Mart", "JIOMART"),
    ("", Config.VOUCHER_PREFIX),
])
def test_voucher_prefix(platform, expected):
    assert voucher_prefix(platform) == expected


# ─────────────────────────────────────────────────────────────
# Tax return JSON
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def tax_return():
    return TaxReturnJsonRenderer(gstin="27ABCDE1234F1Z5", seller_state_code="27")


def test_tax_return_sections(tax_return, sample_transactions):
    doc = tax_return.build(sample_transactions, period=date(2024, 1, 1))

    assert doc["gstin"] == "27ABCDE1234F1Z5"
    assert doc["fp"] == "012024"
    assert doc["gt"] == doc["cur_gt"] == 1403.0
    assert doc["b2b"] == []

    b2cs = {(row["pos"], row["rt"]): row for row in doc["b2cs"]}
    assert set(b2cs) == {("27", 18), ("29", 18), ("27", 5)}
    assert b2cs[("29", 18)]["sply_ty"] == "INTER"
    assert b2cs[("29", 18)]["iamt"] == 180.0
    assert b2cs[("27", 5)]["camt"] == 2.5
    assert b2cs[("27", 18)]["typ"] == "OE"

    hsn = {row["hsn_sc"]: row for row in doc["hsn"]["data"]}
    assert set(hsn) == {"6109", "8518", "0902"}
    assert hsn["8518"]["desc"] == "Speaker, Portable"
    assert hsn["6109"]["uqc"] == "NOS-NUMBERS"

    [series] = doc["docs"]["doc_det"][0]["docs"]
    assert series["from"] == f"{Config.VOUCHER_PREFIX}/2024/00001"
    assert series["to"] == f"{Config.VOUCHER_PREFIX}/2024/00003"
    assert series["totnum"] == series["net_issue"] == 3


def test_tax_return_groups_same_bucket(tax_return, tx_factory):
    txns = [tx_factory(order_reference=f"ORD-{i}") for i in range(3)]
    [bucket] = tax_return.build(txns, period=date(2024, 1, 1))["b2cs"]
    assert bucket["txval"] == 300.0
    assert bucket["camt"] == bucket["samt"] == 27.0


def test_unresolved_place_of_supply_uses_seller_state(tax_return, tx_factory):
    [bucket] = tax_return.build([tx_factory(jurisdiction_code="")])["b2cs"]
    assert bucket["pos"] == "27"


def test_interstate_rows_with_seller_pos_get_their_own_bucket(tax_return, tx_factory):
    paytm = tx_factory(order_reference="P-1", jurisdiction_code="", platform="Paytm",
                       cgst=ZERO, sgst=ZERO, igst=Decimal("18.00"))
    for txns in ([paytm, tx_factory()], [tx_factory(), paytm]):
        buckets = {row["sply_ty"]: row for row in tax_return.build(txns)["b2cs"]}
        assert set(buckets) == {"INTER", "INTRA"}
        assert buckets["INTER"]["pos"] == buckets["INTRA"]["pos"] == "27"
        assert buckets["INTER"]["iamt"] == 18.0
        assert buckets["INTRA"]["camt"] == 9.0


def test_registered_buyers_go_to_b2b(tax_return, tx_factory):
    txns = [
        tx_factory(customer_tax_id="29abcde1234f1z5", invoice_number="INV-9"),
        tx_factory(order_reference="ORD-2"),
    ]
    doc = tax_return.build(txns, period=date(2024, 1, 1))

    [buyer] = doc["b2b"]
    assert buyer["ctin"] == "29ABCDE1234F1Z5"
    [invoice] = buyer["inv"]
    assert invoice["inum"] == "INV-9"
    assert invoice["idt"] == "15-01-2024"
    assert invoice["itms"][0]["itm_det"]["rt"] == 18
    assert len(doc["b2cs"]) == 1
    assert doc["b2cs"][0]["txval"] == 100.0


def test_empty_tax_return(tax_return):
    doc = json.loads(tax_return.render([], period=date(2024, 3, 1)))
    assert doc["fp"] == "032024"
    assert doc["gt"] == 0.0
    assert doc["b2b"] == [] and doc["b2cs"] == []
    assert doc["hsn"] == {"data": []}
    assert doc["docs"] == {"doc_det": []}


def test_ecommerce_tables(tax_return, sample_transactions):
    rows = tax_return.ecommerce_tables(sample_transactions[:2], "27AAACF1234E1ZQ")["ecom"]
    intra, inter = rows
    assert intra["etin"] == "27AAACF1234E1ZQ"
    assert intra["tcs"] == {"iamt": 0.0, "camt": 0.5, "samt": 0.5}
    assert inter["tcs"] == {"iamt": 10.0, "camt": 0.0, "samt": 0.0}
    assert inter["inv"]["inum"] == "ORD-2"


# ─────────────────────────────────────────────────────────────
# CSV, summary and workbook
# ─────────────────────────────────────────────────────────────

def test_csv_listing(sample_transactions):
    text = SummaryRenderer().render_csv(sample_transactions)
    lines = text.splitlines()

    assert lines[0] == ",".join(CSV_HEADERS)
    assert len(lines) == len(sample_transactions) + 1

    rows = list(csv.reader(io.StringIO(text)))
    assert all(len(row) == len(CSV_HEADERS) for row in rows)
    assert rows[1] == ["ORD-1", "15/01/2024", "Amazon", "Cotton T-Shirt", "6109", "1", "118.00", "100.00",
                       "18%", "0.00", "9.00", "9.00", "18.00", "27"]
    assert rows[2][3] == "Speaker, Portable"
    assert rows[3][4] == "0902"


def test_summary_aggregations(sample_transactions):
    summary = SummaryRenderer().build(sample_transactions)

    assert summary["total_transactions"] == 3
    assert summary["totals"] == {
        "sale_price": 1403.0, "taxable_value": 1200.0, "igst": 180.0,
        "cgst": 11.5, "sgst": 11.5, "total_tax": 203.0,
    }
    assert [r["rate"] for r in summary["gst_rate_summary"]] == ["5%", "18%"]
    assert [r["hsn_code"] for r in summary["hsn_summary"]][0] == "8518"
    assert [(r["state_code"], r["state_name"]) for r in summary["state_summary"]] == [
        ("29", "Karnataka"), ("27", "Maharashtra"),
    ]
    assert [r["platform"] for r in summary["platform_summary"]] == ["Flipkart", "Amazon", "Meesho"]
    assert [(r["month"], r["transaction_count"]) for r in summary["monthly_summary"]] == [
        ("2024-01", 2), ("2024-02", 1),
    ]
    assert summary["transactions"][0]["gst_rate"] == 18


def test_empty_summary():
    summary = json.loads(SummaryRenderer().render_json([]))
    assert summary["total_transactions"] == 0
    assert summary["totals"]["sale_price"] == 0.0
    assert summary["hsn_summary"] == [] and summary["monthly_summary"] == []


def test_workbook_sheets(sample_transactions):
    wb = load_workbook(SummaryRenderer().render_workbook(sample_transactions))
    assert wb.sheetnames == [
        "Transactions", "GST Rate Summary", "HSN Summary", "State Summary",
        "Platform Summary", "Monthly Summary",
    ]
    ws = wb["Transactions"]
    assert ws["A1"].value == "Order ID"
    assert ws.max_row == 4
    assert ws["G2"].value == 118.0


def test_empty_workbook():
    wb = load_workbook(SummaryRenderer().render_workbook([]))
    assert wb["Transactions"].max_row == 1
    assert wb["HSN Summary"]["A1"].value == "No transactions"


# ─────────────────────────────────────────────────────────────
# Report loader
# ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("report_type", sorted(REPORT_TYPES))
def test_report_loader_generates_every_type(report_type, sample_transactions):
    report = ReportLoader(gstin="27ABCDE1234F1Z5").generate(
        sample_transactions, report_type, period=date(2024, 1, 1), name="upload-1")

    ext, content_type = REPORT_TYPES[report_type]
    assert report.file_name.startswith(f"upload-1_{report_type}_")
    assert report.file_name.endswith(f".{ext}")
    assert report.content_type == content_type
    assert report.content


def test_report_loader_contents(sample_transactions):
    loader = ReportLoader()
    assert loader.generate(sample_transactions, "tally_xml").content.startswith(b"<?xml")
    assert loader.generate(sample_transactions, "xlsx").content[:2] == b"PK"
    assert json.loads(loader.generate(sample_transactions, "summary").content)["total_transactions"] == 3


def test_report_loader_rejects_unknown_type(sample_transactions):
    with pytest.raises(ValueError):
        ReportLoader().generate(sample_transactions, "pdf")
