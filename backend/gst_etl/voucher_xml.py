"""
Voucher XML renderer - accounting-software (Tally) import envelope.

One Sales voucher per transaction:
- party ledger debited with the gross amount
- sales ledger credited with the taxable value
- one output-tax ledger per non-zero IGST/CGST/SGST component
plus a single inventory line and an HSN summary block.
"""
import re
import xml.etree.ElementTree as ET
from decimal import Decimal
from typing import Iterable, List, Sequence

from .config import Config
from .models import CanonicalTransaction, ZERO
from .tax import round2

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

SALES_LEDGER = "Sales - E-commerce"
TAX_LEDGERS = (("igst", "Output IGST"), ("cgst", "Output CGST"), ("sgst", "Output SGST"))


def _amount(value: Decimal) -> str:
    value = round2(value)
    return f"{value if value else ZERO:.2f}"


def _sub(parent: ET.Element, tag: str, text=None, **attrib) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = str(text)
    return element


def voucher_prefix(platform: str) -> str:
    """Platform label as an uppercase voucher series ("Jio Mart" → "JIOMART")."""
    slug = re.sub(r'[^A-Za-z0-9]', '', platform or "").upper()
    return slug or Config.VOUCHER_PREFIX


def party_ledger(platform: str) -> str:
    return f"{platform} Sales" if platform else "E-commerce Sales"


def _envelope(report_name: str, company: str = None):
    root = ET.Element("ENVELOPE")
    header = _sub(root, "HEADER")
    _sub(header, "TALLYREQUEST", "Import Data")
    import_data = _sub(_sub(root, "BODY"), "IMPORTDATA")
    request_desc = _sub(import_data, "REQUESTDESC")
    _sub(request_desc, "REPORTNAME", report_name)
    if company:
        _sub(_sub(request_desc, "STATICVARIABLES"), "SVCURRENTCOMPANY", company)
    request_data = _sub(import_data, "REQUESTDATA")
    return root, request_data


def _serialize(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


class VoucherXmlRenderer:
    """
    Usage:
        xml_text = VoucherXmlRenderer().render(transactions)
    """

    def __init__(self, company_name: str = None):
        self.company_name = company_name or Config.COMPANY_NAME

    def render(self, transactions: Iterable[CanonicalTransaction]) -> str:
        root, request_data = _envelope("Vouchers", self.company_name)
        for index, tx in enumerate(transactions):
            message = _sub(request_data, "TALLYMESSAGE")
            self._voucher(message, tx, index + 1)
        return _serialize(root)

    def render_ledger_masters(self, platforms: Sequence[str]) -> str:
        """Party ledgers (under Sundry Debtors) for each platform, deduplicated in order."""
        root, request_data = _envelope("All Masters")
        for platform in dict.fromkeys(p for p in platforms if p):
            message = _sub(request_data, "TALLYMESSAGE")
            ledger = _sub(message, "LEDGER", NAME=party_ledger(platform), ACTION="Create")
            _sub(ledger, "PARENT", "Sundry Debtors")
            _sub(ledger, "ISBILLWISEON", "Yes")
            _sub(ledger, "AFFECTSSTOCK", "No")
            _sub(ledger, "OPENINGBALANCE", "0")
            _sub(ledger, "COUNTRYNAME", "India")
            _sub(ledger, "GSTREGISTRATIONTYPE", "Consumer")
        return _serialize(root)

    def voucher_number(self, tx: CanonicalTransaction, sequence: int) -> str:
        return f"{voucher_prefix(tx.platform)}/{tx.occurred_at.year}/{sequence:05d}"

    def _voucher(self, parent: ET.Element, tx: CanonicalTransaction, sequence: int) -> None:
        party = party_ledger(tx.platform)
        voucher = _sub(parent, "VOUCHER", VCHTYPE="Sales", ACTION="Create")
        _sub(voucher, "DATE", tx.occurred_at.strftime("%Y%m%d"))
        _sub(voucher, "VOUCHERTYPENAME", "Sales")
        _sub(voucher, "VOUCHERNUMBER", self.voucher_number(tx, sequence))
        _sub(voucher, "REFERENCE", tx.order_reference)
        _sub(voucher, "PARTYLEDGERNAME", party)
        _sub(voucher, "NARRATION", f"{tx.platform or 'E-commerce'} Sale - Order: {tx.order_reference} - {tx.description}")

        for name, positive, amount in self._ledger_entries(tx, party):
            entry = _sub(voucher, "ALLLEDGERENTRIES.LIST")
            _sub(entry, "LEDGERNAME", name)
            _sub(entry, "ISDEEMEDPOSITIVE", positive)
            _sub(entry, "AMOUNT", _amount(amount))

        quantity = tx.quantity if tx.quantity > 0 else 1
        unit = Config.UNIT_OF_MEASURE.capitalize()
        inventory = _sub(voucher, "ALLINVENTORYENTRIES.LIST")
        _sub(inventory, "STOCKITEMNAME", tx.product_name or tx.description)
        _sub(inventory, "ISDEEMEDPOSITIVE", "No")
        _sub(inventory, "RATE", f"{_amount(tx.gross_amount / quantity)}/{unit}")
        _sub(inventory, "AMOUNT", _amount(tx.taxable_value))
        _sub(inventory, "ACTUALQTY", f"{quantity} {unit}")
        _sub(inventory, "BILLEDQTY", f"{quantity} {unit}")

        _sub(voucher, "GSTREGISTRATIONTYPE", "Regular" if tx.customer_tax_id else "Consumer")
        _sub(voucher, "PLACEOFSUPPLY", tx.jurisdiction_code)

        hsn = _sub(voucher, "HSNSUMMARIES.LIST")
        _sub(hsn, "HSNCODE", tx.hsn_code)
        _sub(hsn, "TAXABLEAMOUNT", _amount(tx.taxable_value))
        _sub(hsn, "IGSTAMOUNT", _amount(tx.igst))
        _sub(hsn, "CGSTAMOUNT", _amount(tx.cgst))
        _sub(hsn, "SGSTAMOUNT", _amount(tx.sgst))

    def _ledger_entries(self, tx: CanonicalTransaction, party: str) -> List[tuple]:
        entries = [
            (party, "Yes", -tx.gross_amount),
            (SALES_LEDGER, "No", tx.taxable_value),
        ]
        for field, ledger in TAX_LEDGERS:
            value = getattr(tx, field)
            if value > 0:
                entries.append((ledger, "No", value))
        return entries
