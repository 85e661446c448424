"""
Data Quality Engine - Deterministic DQ scoring, flagging, and reconciliation.

Adapters never reject a row; they fill defaults instead. This engine makes
that visible after the fact.

DQ Classification:
- CLEAN: No field was defaulted
- DEFAULTED: At least one field was filled with a default
- SUSPECT: Zero sale value (nothing taxable was recovered)

Bank statements additionally report low-confidence debit/credit guesses,
payment-mode counts and an opening + credits - debits = closing reconciliation.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .bank_statement import reconcile
from .categorize import ModeClassifier
from .models import AdaptedRow, BankStatement


DQ_FLAGS = ["CLEAN", "DEFAULTED", "SUSPECT"]


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    return value


class DataQualityEngine:
    """
    Rule-based quality report over adapted rows.

    Usage:
        engine = DataQualityEngine()
        report = engine.assess(adapted_rows, statement=None)
        report["summary"]["defaulted_count"]
    """

    def __init__(self, mode_classifier: Optional[ModeClassifier] = None):
        self.modes = mode_classifier or ModeClassifier()
        self._reset()

    def _reset(self) -> None:
        self.stats = {"total": 0, **{flag: 0 for flag in DQ_FLAGS}, "LOW_CONFIDENCE": 0}
        self.field_defaults: Dict[str, int] = {}
        self.flagged_rows: List[Dict[str, Any]] = []
        self.reconciliation: Dict[str, Any] = {}
        self.mode_stats: Dict[str, int] = {}

    def assess(self, adapted_rows: List[AdaptedRow], statement: Optional[BankStatement] = None) -> Dict[str, Any]:
        self._reset()
        seen_refs: Dict[str, int] = {}

        for idx, row in enumerate(adapted_rows):
            row_num = idx + 1
            tx = row.transaction
            self.stats["total"] += 1

            ref = tx.order_reference
            if "order_reference" not in row.defaulted:
                if ref in seen_refs:
                    self._add_flag(row_num, row, "DUPLICATE", f"Duplicate order reference of row {seen_refs[ref]}")
                else:
                    seen_refs[ref] = row_num

            for field in row.defaulted:
                self.field_defaults[field] = self.field_defaults.get(field, 0) + 1

            dq_flag = self._calculate_dq(row)
            self.stats[dq_flag] += 1
            if dq_flag == "SUSPECT":
                self._add_flag(row_num, row, "ZERO_AMOUNT", "No usable sale amount")
            elif dq_flag == "DEFAULTED":
                self._add_flag(row_num, row, "DEFAULTED", "Defaulted: " + ", ".join(sorted(row.defaulted)))

        if statement is not None:
            self.stats["LOW_CONFIDENCE"] = sum(1 for line in statement.lines if line.confidence == "low")
            self.reconciliation = _json_safe(reconcile(statement))
            self.mode_stats = self.modes.get_mode_stats(statement.lines)

        return self.get_full_report()

    def _calculate_dq(self, row: AdaptedRow) -> str:
        if row.transaction.gross_amount <= 0:
            return "SUSPECT"
        if row.defaulted:
            return "DEFAULTED"
        return "CLEAN"

    def _add_flag(self, row_num: int, row: AdaptedRow, flag_type: str, reason: str) -> None:
        tx = row.transaction
        self.flagged_rows.append({
            "row": row_num,
            "order_reference": tx.order_reference,
            "date": tx.occurred_at.isoformat(),
            "description": tx.description[:50],
            "amount": float(tx.gross_amount),
            "flag_type": flag_type,
            "reason": reason,
        })

    def get_full_report(self) -> Dict[str, Any]:
        return {
            "stats": dict(self.stats),
            "field_defaults": dict(self.field_defaults),
            "reconciliation": dict(self.reconciliation),
            "mode_stats": dict(self.mode_stats),
            "flagged_rows": list(self.flagged_rows),
            "summary": {
                "clean_count": self.stats["CLEAN"],
                "defaulted_count": self.stats["DEFAULTED"],
                "suspect_count": self.stats["SUSPECT"],
                "low_confidence_count": self.stats["LOW_CONFIDENCE"],
                "total_flags": len(self.flagged_rows),
                "has_duplicates": any(f["flag_type"] == "DUPLICATE" for f in self.flagged_rows),
                "has_imbalance": self.reconciliation.get("is_balanced") is False,
            },
        }
