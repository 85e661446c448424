"""
Summary renderers - flat CSV, nested JSON summary and a multi-sheet workbook.

JSON summary aggregations:
1. Totals
2. Rate-wise (ascending rate)
3. HSN-wise (descending taxable value)
4. State-wise with state names (descending taxable value)
5. Platform-wise (descending sales)
6. Month-wise, keyed YYYY-MM (ascending)
"""
import json
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .gstr1 import money, rate_number
from .models import CanonicalTransaction, ZERO
from .state_codes import StateCodeRegistry, registry as default_registry

CSV_HEADERS = [
    "Order ID", "Date", "Platform", "Product", "HSN Code", "Quantity", "Sale Price",
    "Taxable Value", "GST Rate", "IGST", "CGST", "SGST", "Total Tax", "State Code",
]


def display_date(tx: CanonicalTransaction) -> str:
    return tx.occurred_at.strftime("%d/%m/%Y")


def _group(txns: Iterable[CanonicalTransaction], key: Callable) -> Dict[Any, List[CanonicalTransaction]]:
    groups: Dict[Any, List[CanonicalTransaction]] = {}
    for tx in txns:
        groups.setdefault(key(tx), []).append(tx)
    return groups


def _total(txns: Iterable[CanonicalTransaction], attr: str) -> Decimal:
    return sum((getattr(t, attr) for t in txns), ZERO)


def _total_tax(txns: Iterable[CanonicalTransaction]) -> Decimal:
    return sum((t.igst + t.cgst + t.sgst for t in txns), ZERO)


class SummaryRenderer:
    """
    Usage:
        renderer = SummaryRenderer()
        csv_text = renderer.render_csv(transactions)
        summary = renderer.build(transactions)
        workbook = renderer.render_workbook(transactions)   # BytesIO
    """

    def __init__(self, state_registry: Optional[StateCodeRegistry] = None):
        self.registry = state_registry or default_registry
        self.currency_format = '₹#,##0.00'
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="2D5016", end_color="2D5016", fill_type="solid")
        self.border = Border(bottom=Side(style='thin', color='DDDDDD'))

    # ─────────────────────────────────────────────────────────────
    # CSV
    # ─────────────────────────────────────────────────────────────

    def csv_rows(self, transactions: Iterable[CanonicalTransaction]) -> List[List[Any]]:
        return [[
            tx.order_reference,
            display_date(tx),
            tx.platform or "",
            tx.product_name or tx.description,
            tx.hsn_code,
            tx.quantity,
            f"{tx.gross_amount:.2f}",
            f"{tx.taxable_value:.2f}",
            f"{rate_number(tx.gst_rate_percent)}%",
            f"{tx.igst:.2f}",
            f"{tx.cgst:.2f}",
            f"{tx.sgst:.2f}",
            f"{tx.igst + tx.cgst + tx.sgst:.2f}",
            tx.jurisdiction_code,
        ] for tx in transactions]

    def render_csv(self, transactions: Iterable[CanonicalTransaction]) -> str:
        df = pd.DataFrame(self.csv_rows(transactions), columns=CSV_HEADERS)
        return df.to_csv(index=False, lineterminator="\n")

    # ─────────────────────────────────────────────────────────────
    # JSON summary
    # ─────────────────────────────────────────────────────────────

    def build(self, transactions: Iterable[CanonicalTransaction]) -> Dict[str, Any]:
        txns = list(transactions)
        return {
            "generated_at": datetime.now().isoformat(),
            "total_transactions": len(txns),
            "totals": {
                "sale_price": money(_total(txns, "gross_amount")),
                "taxable_value": money(_total(txns, "taxable_value")),
                "igst": money(_total(txns, "igst")),
                "cgst": money(_total(txns, "cgst")),
                "sgst": money(_total(txns, "sgst")),
                "total_tax": money(_total_tax(txns)),
            },
            "gst_rate_summary": self.rate_summary(txns),
            "hsn_summary": self.hsn_summary(txns),
            "state_summary": self.state_summary(txns),
            "platform_summary": self.platform_summary(txns),
            "monthly_summary": self.monthly_summary(txns),
            "transactions": [self._transaction(t) for t in txns],
        }

    def render_json(self, transactions: Iterable[CanonicalTransaction]) -> str:
        return json.dumps(self.build(transactions), indent=2, ensure_ascii=False)

    def rate_summary(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        groups = _group(txns, lambda t: t.gst_rate_percent)
        return [{
            "rate": f"{rate_number(rate)}%",
            "transaction_count": len(group),
            "taxable_value": money(_total(group, "taxable_value")),
            "total_tax": money(_total_tax(group)),
        } for rate, group in sorted(groups.items(), key=lambda item: item[0])]

    def hsn_summary(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        groups = _group(txns, lambda t: t.hsn_code or "UNKNOWN")
        rows = [{
            "hsn_code": hsn,
            "transaction_count": len(group),
            "total_quantity": sum(t.quantity for t in group),
            "taxable_value": money(_total(group, "taxable_value")),
            "total_tax": money(_total_tax(group)),
        } for hsn, group in groups.items()]
        return sorted(rows, key=lambda r: r["taxable_value"], reverse=True)

    def state_summary(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        groups = _group(txns, lambda t: t.jurisdiction_code or "UNKNOWN")
        rows = [{
            "state_code": code,
            "state_name": self.registry.name_for(code),
            "transaction_count": len(group),
            "taxable_value": money(_total(group, "taxable_value")),
            "igst": money(_total(group, "igst")),
            "cgst": money(_total(group, "cgst")),
            "sgst": money(_total(group, "sgst")),
        } for code, group in groups.items()]
        return sorted(rows, key=lambda r: r["taxable_value"], reverse=True)

    def platform_summary(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        groups = _group(txns, lambda t: t.platform or "Unknown")
        rows = [{
            "platform": platform,
            "transaction_count": len(group),
            "total_sales": money(_total(group, "gross_amount")),
            "total_tax": money(_total_tax(group)),
        } for platform, group in groups.items()]
        return sorted(rows, key=lambda r: r["total_sales"], reverse=True)

    def monthly_summary(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        groups = _group(txns, lambda t: t.occurred_at.strftime("%Y-%m"))
        return [{
            "month": month,
            "transaction_count": len(group),
            "total_sales": money(_total(group, "gross_amount")),
            "total_tax": money(_total_tax(group)),
        } for month, group in sorted(groups.items())]

    def _transaction(self, tx: CanonicalTransaction) -> Dict[str, Any]:
        return {
            "order_id": tx.order_reference,
            "date": display_date(tx),
            "description": tx.description,
            "hsn_code": tx.hsn_code,
            "quantity": tx.quantity,
            "sale_price": money(tx.gross_amount),
            "taxable_value": money(tx.taxable_value),
            "gst_rate": rate_number(tx.gst_rate_percent),
            "igst": money(tx.igst),
            "cgst": money(tx.cgst),
            "sgst": money(tx.sgst),
            "state_code": tx.jurisdiction_code,
            "platform": tx.platform,
        }

    # ─────────────────────────────────────────────────────────────
    # Workbook
    # ─────────────────────────────────────────────────────────────

    def render_workbook(self, transactions: Iterable[CanonicalTransaction]) -> BytesIO:
        """
        Excel report with sheets:
        1. Transactions - the CSV columns with numeric cells
        2. Rate / HSN / State / Platform / Monthly summaries
        """
        txns = list(transactions)
        summary = self.build(txns)
        output = BytesIO()
        wb = Workbook()

        # ════════════════════════════════════════════════════════════════
        # SHEET 1: TRANSACTIONS
        # ════════════════════════════════════════════════════════════════
        ws = wb.active
        ws.title = "Transactions"
        self._header(ws, CSV_HEADERS)
        money_columns = {7, 8, 10, 11, 12, 13}
        for row_idx, tx in enumerate(txns, 2):
            values = [
                tx.order_reference, display_date(tx), tx.platform, tx.product_name or tx.description,
                tx.hsn_code, tx.quantity, float(tx.gross_amount), float(tx.taxable_value),
                f"{rate_number(tx.gst_rate_percent)}%", float(tx.igst), float(tx.cgst), float(tx.sgst),
                float(tx.igst + tx.cgst + tx.sgst), tx.jurisdiction_code,
            ]
            for col_idx, val in enumerate(values, 1):
                cell = ws.cell(row=row_idx, column=col_idx, value=val)
                if col_idx in money_columns:
                    cell.number_format = self.currency_format
                cell.border = self.border
        self._auto_width(ws)
        ws.freeze_panes = "A2"

        # ════════════════════════════════════════════════════════════════
        # SUMMARY SHEETS
        # ════════════════════════════════════════════════════════════════
        sheets = [
            ("GST Rate Summary", summary["gst_rate_summary"]),
            ("HSN Summary", summary["hsn_summary"]),
            ("State Summary", summary["state_summary"]),
            ("Platform Summary", summary["platform_summary"]),
            ("Monthly Summary", summary["monthly_summary"]),
        ]
        for title, rows in sheets:
            ws = wb.create_sheet(title)
            if not rows:
                ws.cell(row=1, column=1, value="No transactions")
                continue
            headers = list(rows[0].keys())
            self._header(ws, [h.replace('_', ' ').title() for h in headers])
            for row_idx, row in enumerate(rows, 2):
                for col_idx, key in enumerate(headers, 1):
                    cell = ws.cell(row=row_idx, column=col_idx, value=row[key])
                    if isinstance(row[key], float):
                        cell.number_format = self.currency_format
            self._auto_width(ws)

        wb.save(output)
        output.seek(0)
        return output

    def _header(self, ws, headers: List[str]) -> None:
        for col_idx, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')

    def _auto_width(self, ws) -> None:
        for col_idx, column in enumerate(ws.columns, 1):
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 4, 60)
