"""
Tax-return JSON renderer (GSTR-1 offline-tool layout).

Sections:
- b2b:  invoices to registered buyers (rows carrying a customer GSTIN)
- b2cs: unregistered supplies grouped by (place of supply, rate)
- hsn:  HSN-wise quantity / value / tax
- docs: invoice-series count for the period

Sums are accumulated as Decimal and rounded once per bucket.
"""
import json
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .config import Config
from .models import CanonicalTransaction, ZERO
from .tax import TaxEngine, filing_period, round2

UQC = "NOS-NUMBERS"
DOC_TYPE = "Invoices for outward supply"
HSN_DESC_LIMIT = 30


def money(value: Decimal) -> float:
    return float(round2(value))


def rate_number(rate: Decimal):
    """18 for Decimal('18.00'), 2.5 for Decimal('2.5')."""
    rate = Decimal(rate)
    return int(rate) if rate == rate.to_integral_value() else float(rate)


def invoice_date(day: date) -> str:
    return day.strftime("%d-%m-%Y")


class TaxReturnJsonRenderer:
    """
    Usage:
        renderer = TaxReturnJsonRenderer(gstin="27ABCDE1234F1Z5")
        document = renderer.build(transactions, period=date(2024, 1, 1))
        text = renderer.render(transactions)
    """

    def __init__(self, gstin: Optional[str] = None, seller_state_code: Optional[str] = None):
        self.gstin = gstin or Config.GSTIN
        self.seller_state_code = seller_state_code or Config.SELLER_STATE_CODE

    def build(self, transactions: Iterable[CanonicalTransaction], period: Optional[date] = None,
              gstin: Optional[str] = None) -> Dict[str, Any]:
        txns = list(transactions)
        period = period or date.today()
        grand_total = money(sum((t.gross_amount for t in txns), ZERO))

        registered = [t for t in txns if t.customer_tax_id]
        unregistered = [t for t in txns if not t.customer_tax_id]

        return {
            "gstin": gstin or self.gstin,
            "fp": filing_period(period),
            "gt": grand_total,
            "cur_gt": grand_total,
            "b2b": self._b2b(registered),
            "b2cs": self._b2cs(unregistered),
            "hsn": {"data": self._hsn(txns)},
            "docs": {"doc_det": self._docs(txns, period)},
        }

    def render(self, transactions: Iterable[CanonicalTransaction], period: Optional[date] = None,
               gstin: Optional[str] = None) -> str:
        return json.dumps(self.build(transactions, period, gstin), indent=2, ensure_ascii=False)

    def ecommerce_tables(self, transactions: Iterable[CanonicalTransaction], operator_gstin: str) -> Dict[str, Any]:
        """Per-invoice supplies made through an e-commerce operator, with the TCS it collects."""
        rows = []
        for tx in transactions:
            tcs = TaxEngine.tcs_split(tx.taxable_value, tx.is_inter_state)
            rows.append({
                "etin": operator_gstin,
                "inv": {
                    "inum": tx.invoice_number or tx.order_reference,
                    "idt": invoice_date(tx.occurred_at),
                    "val": money(tx.gross_amount),
                    "txval": money(tx.taxable_value),
                    "iamt": money(tx.igst),
                    "camt": money(tx.cgst),
                    "samt": money(tx.sgst),
                },
                "tcs": {
                    "iamt": money(tcs.igst),
                    "camt": money(tcs.cgst),
                    "samt": money(tcs.sgst),
                },
            })
        return {"ecom": rows}

    # ─────────────────────────────────────────────────────────────
    # Sections
    # ─────────────────────────────────────────────────────────────

    def _place_of_supply(self, tx: CanonicalTransaction) -> str:
        # Unresolved buyer state falls back to the seller state, even on IGST rows
        return tx.jurisdiction_code or self.seller_state_code

    def _b2b(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        by_buyer: Dict[str, List[Dict[str, Any]]] = {}
        for tx in txns:
            invoices = by_buyer.setdefault(tx.customer_tax_id.strip().upper(), [])
            invoices.append({
                "inum": tx.invoice_number or tx.order_reference,
                "idt": invoice_date(tx.occurred_at),
                "val": money(tx.gross_amount),
                "pos": self._place_of_supply(tx),
                "rchrg": "N",
                "inv_typ": "R",
                "itms": [{
                    "num": 1,
                    "itm_det": {
                        "rt": rate_number(tx.gst_rate_percent),
                        "txval": money(tx.taxable_value),
                        "iamt": money(tx.igst),
                        "camt": money(tx.cgst),
                        "samt": money(tx.sgst),
                        "csamt": money(tx.cess),
                    },
                }],
            })
        return [{"ctin": ctin, "inv": invoices} for ctin, invoices in by_buyer.items()]

    def _b2cs(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        grouped: Dict[tuple, Dict[str, Any]] = {}
        for tx in txns:
            pos = self._place_of_supply(tx)
            key = (pos, tx.gst_rate_percent, tx.is_inter_state)
            if key not in grouped:
                grouped[key] = {
                    "pos": pos,
                    "sply_ty": "INTER" if tx.is_inter_state else "INTRA",
                    "rt": rate_number(tx.gst_rate_percent),
                    "typ": "OE",
                    "txval": ZERO, "iamt": ZERO, "camt": ZERO, "samt": ZERO, "csamt": ZERO,
                }
            bucket = grouped[key]
            bucket["txval"] += tx.taxable_value
            bucket["iamt"] += tx.igst
            bucket["camt"] += tx.cgst
            bucket["samt"] += tx.sgst
            bucket["csamt"] += tx.cess

        return [self._rounded(bucket, ("txval", "iamt", "camt", "samt", "csamt")) for bucket in grouped.values()]

    def _hsn(self, txns: List[CanonicalTransaction]) -> List[Dict[str, Any]]:
        grouped: Dict[str, Dict[str, Any]] = {}
        for tx in txns:
            hsn = tx.hsn_code or "UNKNOWN"
            if hsn not in grouped:
                grouped[hsn] = {
                    "num": len(grouped) + 1,
                    "hsn_sc": hsn,
                    "desc": (tx.product_name or tx.description or "")[:HSN_DESC_LIMIT],
                    "uqc": UQC,
                    "qty": 0,
                    "val": ZERO, "txval": ZERO, "iamt": ZERO, "camt": ZERO, "samt": ZERO, "csamt": ZERO,
                }
            item = grouped[hsn]
            item["qty"] += tx.quantity
            item["val"] += tx.gross_amount
            item["txval"] += tx.taxable_value
            item["iamt"] += tx.igst
            item["camt"] += tx.cgst
            item["samt"] += tx.sgst
            item["csamt"] += tx.cess

        return [self._rounded(item, ("val", "txval", "iamt", "camt", "samt", "csamt")) for item in grouped.values()]

    def _docs(self, txns: List[CanonicalTransaction], period: date) -> List[Dict[str, Any]]:
        if not txns:
            return []
        series = f"{Config.VOUCHER_PREFIX}/{period.year}"
        count = len(txns)
        return [{
            "doc_num": 1,
            "doc_typ": DOC_TYPE,
            "docs": [{
                "num": 1,
                "from": f"{series}/{1:05d}",
                "to": f"{series}/{count:05d}",
                "totnum": count,
                "cancel": 0,
                "net_issue": count,
            }],
        }]

    @staticmethod
    def _rounded(bucket: Dict[str, Any], keys) -> Dict[str, Any]:
        out = dict(bucket)
        for key in keys:
            out[key] = money(bucket[key])
        return out
