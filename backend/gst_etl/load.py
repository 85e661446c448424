"""
Load Layer - report generation for downstream tools.

Report types:
- tally_xml:  accounting import vouchers (XML)
- gstr1_json: tax return (JSON)
- csv:        flat transaction listing
- summary:    nested JSON summary
- xlsx:       multi-sheet workbook
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from .gstr1 import TaxReturnJsonRenderer
from .models import CanonicalTransaction
from .summary import SummaryRenderer
from .voucher_xml import VoucherXmlRenderer

REPORT_TYPES = {
    "tally_xml": ("xml", "application/xml"),
    "gstr1_json": ("json", "application/json"),
    "csv": ("csv", "text/csv"),
    "summary": ("json", "application/json"),
    "xlsx": ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
}


@dataclass(frozen=True)
class RenderedReport:
    content: bytes
    file_name: str
    content_type: str


class ReportLoader:
    """
    Universal exporter for the supported report types.

    Usage:
        report = ReportLoader().generate(transactions, "gstr1_json")
        open(report.file_name, "wb").write(report.content)
    """

    def __init__(self, gstin: Optional[str] = None, company_name: Optional[str] = None):
        self.vouchers = VoucherXmlRenderer(company_name)
        self.tax_return = TaxReturnJsonRenderer(gstin)
        self.summary = SummaryRenderer()

    def generate(self, transactions: Iterable[CanonicalTransaction], report_type: str,
                 period: Optional[date] = None, name: str = "report") -> RenderedReport:
        if report_type not in REPORT_TYPES:
            raise ValueError(f"Unsupported report type: {report_type}")
        txns = list(transactions)

        if report_type == "tally_xml":
            content = self.vouchers.render(txns).encode("utf-8")
        elif report_type == "gstr1_json":
            content = self.tax_return.render(txns, period).encode("utf-8")
        elif report_type == "csv":
            content = self.summary.render_csv(txns).encode("utf-8")
        elif report_type == "summary":
            content = self.summary.render_json(txns).encode("utf-8")
        else:
            content = self.summary.render_workbook(txns).getvalue()

        ext, content_type = REPORT_TYPES[report_type]
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_name = f"{name}_{report_type}_{timestamp}.{ext}"
        logging.info(f"Generated {report_type} report for {len(txns)} transactions ({len(content)} bytes)")
        return RenderedReport(content=content, file_name=file_name, content_type=content_type)
