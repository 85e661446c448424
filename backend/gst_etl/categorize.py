"""
ModeClassifier - Rule-based payment mode detection for bank lines.

Keyword rules are applied in order; first match wins. No match means the
mode is unknown (None), which is a normal outcome for cash-less narrations.
"""
import re
from typing import Dict, List, Optional


# ─────────────────────────────────────────────────────────────
# Mode Rules Configuration
# ─────────────────────────────────────────────────────────────
# Order matters: "UPI AUTO DEBIT" is a UPI transfer, not a mandate.

MODE_RULES = {
    "UPI/IMPS/NEFT": ["UPI", "IMPS", "NEFT", "RTGS"],
    "ATM/Cash": ["ATM", "CASH", "CDM"],
    "Cheque": ["CHEQUE", "CHQ"],
    "Card": ["POS", "SWIPE", "CARD"],
    "Net Banking": ["NET BANKING", "NETBANKING", "INTERNET"],
    "Auto Debit": ["AUTO DEBIT", "SI", "MANDATE", "NACH", "ECS"],
    "EMI": ["EMI"],
}


class ModeClassifier:
    """
    Deterministic payment mode classifier.

    Usage:
        classifier = ModeClassifier()
        classifier.classify("UPI/123456/JOHN DOE")
        # Returns: "UPI/IMPS/NEFT"
    """

    def __init__(self, custom_rules: Optional[Dict[str, List[str]]] = None):
        self.rules = custom_rules if custom_rules else MODE_RULES
        # Whole-word match so "SI" does not fire inside "SIGNATURE"
        self._patterns = [
            (mode, re.compile(r'\b(' + '|'.join(re.escape(k) for k in keywords) + r')\b', re.I))
            for mode, keywords in self.rules.items()
        ]

    def classify(self, description: str) -> Optional[str]:
        if not description:
            return None
        for mode, pattern in self._patterns:
            if pattern.search(description):
                return mode
        return None

    def get_rules(self) -> dict:
        return dict(self.rules)

    def get_mode_stats(self, lines: list) -> Dict[str, int]:
        """Count bank lines per mode; unclassified lines are counted as 'Other'."""
        stats: Dict[str, int] = {}
        for line in lines:
            mode = getattr(line, "mode", None) or "Other"
            stats[mode] = stats.get(mode, 0) + 1
        return stats
