"""
TaxEngine - GST rate resolution and tax decomposition.

All amounts are Decimals rounded half-away-from-zero to 2 places after every
derived quantity, not only at the end, so outputs line up with the
accounting exports downstream.

The HSN table is a working approximation of the common slabs, not the
statutory schedule. Treat resolved rates as defaults, not legal advice.
"""
import logging
import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from types import MappingProxyType
from typing import Any, Optional

from .config import Config
from .models import TaxBreakdown, ZERO
from .state_codes import StateCodeRegistry, registry as default_registry

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Largest exponent accepted as money; above it the cell is treated as unreadable
MAX_EXPONENT = 15

STANDARD_RATES = (Decimal("0"), Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28"))

# E-commerce operator TCS: 1% IGST, or 0.5% CGST + 0.5% SGST
TCS_RATE = Decimal("0.01")
TCS_HALF_RATE = Decimal("0.005")


# ─────────────────────────────────────────────────────────────
# HSN (first 4 digits) → GST rate
# ─────────────────────────────────────────────────────────────
_RATE_GROUPS = {
    "0": ["0101", "0102", "0201", "0401", "0701", "0702", "0713", "1001", "1006", "1101", "1901"],
    "5": ["0402", "0403", "0901", "0902", "1702", "1905", "2201", "2501", "4901", "4902"],
    "12": ["1704", "1806", "2009", "2101", "2104", "3304", "3305", "3401", "4016", "4819",
           "8443", "8471"],
    "18": ["2106", "3808", "3917", "3923", "3926", "6109", "6110", "6204", "6205", "6206",
           "6403", "6404", "8414", "8415", "8418", "8450", "8508", "8509", "8516", "8517",
           "8518", "8519", "8523", "8528", "9403", "9404", "9503", "9504", "9505"],
    "28": ["2402", "2403", "3303", "8703", "8711", "9401"],
}

HSN_RATES = MappingProxyType({
    hsn: Decimal(rate) for rate, codes in _RATE_GROUPS.items() for hsn in codes
})

FALLBACK_RATE = Decimal("18")

_NUMBER_NOISE = re.compile(r'(?i)(₹|rs\.?|inr|,|\s)')


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a loosely formatted number ("₹1,234.50", "Rs. 99", 12.5).
    Returns None for blanks, NaN, magnitudes of 1e16 and above, and anything
    unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() and value.adjusted() <= MAX_EXPONENT else None
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        value = str(value)
    text = _NUMBER_NOISE.sub('', str(value)).rstrip('%')
    if not text:
        return None
    negative = text.startswith('(') and text.endswith(')')
    text = text.strip('()')
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite() or number.adjusted() > MAX_EXPONENT:
        return None
    return -number if negative else number


def round2(value: Any) -> Decimal:
    """Round half away from zero to 2 decimal places."""
    number = value if isinstance(value, Decimal) else to_decimal(value)
    if number is None:
        return ZERO
    try:
        return number.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        logging.warning(f"Amount out of range, booked as 0: {number}")
        return ZERO


def financial_year(day: date) -> str:
    """Indian financial year label, April to March: 2024-04-01 → '2024-25'."""
    start = day.year if day.month >= 4 else day.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def filing_period(day: date) -> str:
    """Return period in MMYYYY form."""
    return f"{day.month:02d}{day.year}"


class TaxEngine:
    """
    Rate lookup and tax split for tax-inclusive sale values.

    Usage:
        engine = TaxEngine()
        engine.decompose(Decimal("118"), Decimal("18"), is_inter_state=False)
        # TaxBreakdown(taxable_value=100.00, cgst=9.00, sgst=9.00, ...)
    """

    def __init__(self, seller_state_code: Optional[str] = None,
                 state_registry: Optional[StateCodeRegistry] = None):
        self.seller_state_code = seller_state_code or Config.SELLER_STATE_CODE
        self.registry = state_registry or default_registry

    def resolve_rate(self, hsn_code: Any) -> Decimal:
        hsn = re.sub(r'\D', '', str(hsn_code or ''))[:4]
        return HSN_RATES.get(hsn, FALLBACK_RATE)

    @staticmethod
    def is_standard_rate(rate: Any) -> bool:
        return to_decimal(rate) in STANDARD_RATES

    @staticmethod
    def is_inter_state(seller_code: str, buyer_code: str) -> bool:
        return seller_code != buyer_code

    def place_of_supply(self, state_text: Any) -> str:
        """Buyer jurisdiction code for a state column value, '' if unresolved."""
        return self.registry.code_for_name(state_text, default="")

    def decompose(self, gross_amount: Any, rate_percent: Any, is_inter_state: bool) -> TaxBreakdown:
        gross = round2(gross_amount)
        if gross < 0:
            gross = ZERO
        rate = to_decimal(rate_percent)
        if rate is None or rate < 0:
            rate = ZERO

        taxable_value = round2(gross / (1 + rate / HUNDRED))
        total_tax = round2(gross - taxable_value)

        if is_inter_state:
            return TaxBreakdown(taxable_value=taxable_value, igst=total_tax)
        half_tax = round2(total_tax / 2)
        return TaxBreakdown(taxable_value=taxable_value, cgst=half_tax, sgst=half_tax)

    @staticmethod
    def calculate_tax(taxable_value: Any, rate_percent: Any) -> Decimal:
        """Tax on a tax-exclusive value."""
        rate = to_decimal(rate_percent) or ZERO
        return round2(round2(taxable_value) * rate / HUNDRED)

    @staticmethod
    def tcs_split(net_value: Any, is_inter_state: bool) -> TaxBreakdown:
        net = round2(net_value)
        if is_inter_state:
            return TaxBreakdown(taxable_value=net, igst=round2(net * TCS_RATE))
        half = round2(net * TCS_HALF_RATE)
        return TaxBreakdown(taxable_value=net, cgst=half, sgst=half)
