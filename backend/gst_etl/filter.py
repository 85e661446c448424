"""
Transaction Eligibility Filter - opt-in validation after adaptation.

Ingestion keeps every row. Callers that need strict data (e.g. before a
filing) run this filter to drop rows that only exist because of defaults.

Eligibility Rules:
- Sale value > 0
- None of the strict fields was defaulted
- Description does NOT match summary keywords ("Grand Total", ...)
"""
import re
from typing import Any, Dict, Iterable, List, Tuple

from .bank_statement import SUMMARY_KEYWORDS
from .models import AdaptedRow, CanonicalTransaction

DEFAULT_STRICT_FIELDS = ("gross_amount", "occurred_at")


class TransactionFilter:
    """
    Splits adapted rows into eligible transactions and rejected rows.

    Usage:
        eligible, rejected = TransactionFilter().filter(rows, strict_fields=("gross_amount",))
    """

    def __init__(self):
        self._summary = re.compile(r'\b(' + '|'.join(re.escape(k) for k in SUMMARY_KEYWORDS) + r')\b', re.I)

    def filter(self, adapted_rows: Iterable[AdaptedRow],
               strict_fields: Iterable[str] = DEFAULT_STRICT_FIELDS
               ) -> Tuple[List[CanonicalTransaction], List[Dict[str, Any]]]:
        strict = set(strict_fields)
        eligible = []
        rejected = []

        for idx, row in enumerate(adapted_rows):
            reasons = self._rejection_reasons(row, strict)
            if reasons:
                rejected.append({"row": idx + 1, "transaction": row.transaction, "reasons": reasons})
            else:
                eligible.append(row.transaction)

        return eligible, rejected

    def _rejection_reasons(self, row: AdaptedRow, strict: set) -> List[str]:
        tx = row.transaction
        reasons = []
        if tx.gross_amount <= 0:
            reasons.append("zero amount")
        for field in sorted(strict & row.defaulted):
            reasons.append(f"missing {field}")
        if self._summary.search(tx.description or ""):
            reasons.append("summary row")
        return reasons

    def get_summary_keywords(self) -> List[str]:
        return list(SUMMARY_KEYWORDS)
