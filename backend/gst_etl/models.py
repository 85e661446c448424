from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, FrozenSet, Tuple, Dict, Any

ZERO = Decimal("0.00")

MONEY_FIELDS = ("gross_amount", "taxable_value", "gst_rate_percent", "igst", "cgst", "sgst", "cess")


class UploadStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JurisdictionEntry:
    code: str
    name: str
    short_name: str
    kind: str  # 'state' | 'union_territory'


@dataclass(frozen=True)
class TaxBreakdown:
    taxable_value: Decimal = ZERO
    igst: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    cess: Decimal = ZERO

    @property
    def total_tax(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess


@dataclass(frozen=True)
class CanonicalTransaction:
    order_reference: str
    occurred_at: date
    description: str
    gross_amount: Decimal
    taxable_value: Decimal
    gst_rate_percent: Decimal
    platform: str
    quantity: int = 1
    igst: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    cess: Decimal = ZERO
    hsn_code: str = ""
    jurisdiction_code: str = ""
    product_name: Optional[str] = None
    sku: Optional[str] = None
    customer_name: Optional[str] = None
    customer_tax_id: Optional[str] = None
    invoice_number: Optional[str] = None

    @property
    def total_tax(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess

    @property
    def is_inter_state(self) -> bool:
        return self.igst > 0

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-safe dict (dates as ISO strings, money as floats)."""
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        for key in MONEY_FIELDS:
            data[key] = float(data[key])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanonicalTransaction":
        occurred_at = data.get("occurred_at")
        if isinstance(occurred_at, str):
            occurred_at = date.fromisoformat(occurred_at[:10])
        values = {
            "order_reference": str(data.get("order_reference") or ""),
            "occurred_at": occurred_at or date.today(),
            "description": data.get("description") or "",
            "platform": data.get("platform") or "",
            "quantity": int(data.get("quantity") or 1),
            "hsn_code": data.get("hsn_code") or "",
            "jurisdiction_code": data.get("jurisdiction_code") or "",
        }
        for key in MONEY_FIELDS:
            values[key] = Decimal(str(data.get(key) or 0)).quantize(ZERO)
        for key in ("product_name", "sku", "customer_name", "customer_tax_id", "invoice_number"):
            values[key] = data.get(key)
        return cls(**values)


@dataclass(frozen=True)
class AdaptedRow:
    """A transaction plus the names of fields that were filled with defaults."""
    transaction: CanonicalTransaction
    defaulted: FrozenSet[str] = frozenset()

    @property
    def is_clean(self) -> bool:
        return not self.defaulted


@dataclass(frozen=True)
class RawBankLine:
    date_text: str
    date: str  # Normalized YYYY-MM-DD
    description: str
    reference: Optional[str] = None
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    mode: Optional[str] = None
    confidence: str = "high"  # 'high' | 'medium' | 'low'

    @property
    def amount(self) -> Decimal:
        """
        The booked figure. A low-confidence column guess can fill both
        columns; the credit wins and the bank booking flags the row.
        """
        return self.credit or self.debit or ZERO

    @property
    def is_credit(self) -> bool:
        return bool(self.credit) and not self.debit


@dataclass(frozen=True)
class BankStatement:
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder: Optional[str] = None
    opening_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None
    period_from: Optional[str] = None
    period_to: Optional[str] = None
    lines: Tuple[RawBankLine, ...] = field(default_factory=tuple)
