"""
Platform Adapters - marketplace rows → CanonicalTransaction.

Each marketplace exports the same facts under different, inconsistent column
names. An adapter lists the aliases it knows per field (first non-blank alias
wins), computes the tax split through the TaxEngine and never raises on a bad
row: missing or invalid values are replaced with defaults and the field name
is recorded in AdaptedRow.defaulted.

One input row always yields exactly one transaction, even when the row is
empty. Callers that need validation filter afterwards (see filter.py).
"""
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .config import Config
from .models import AdaptedRow, CanonicalTransaction, ZERO
from .tax import TaxEngine, round2, to_decimal

DATE_FORMATS = (
    "%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%d-%m-%y",
    "%d %b %Y", "%d-%b-%Y", "%d %b %y", "%d-%b-%y", "%d %B %Y",
    "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%d/%m/%Y %H:%M:%S", "%d-%m-%Y %H:%M:%S",
    "%d/%m/%Y %H:%M", "%d-%m-%Y %H:%M",
)


class Platform(str, Enum):
    AMAZON = "Amazon"
    FLIPKART = "Flipkart"
    MEESHO = "Meesho"
    MYNTRA = "Myntra"
    PAYTM = "Paytm"
    BANK_STATEMENT = "Bank Statement"
    GENERIC = "Generic"

    @classmethod
    def from_label(cls, label: Union[str, "Platform", None]) -> "Platform":
        """Resolve an upload's platform label; unknown labels are GENERIC."""
        if isinstance(label, Platform):
            return label
        key = " ".join(str(label or "").split()).lower()
        for platform in cls:
            if platform.value.lower() == key:
                return platform
        return cls.GENERIC


# ─────────────────────────────────────────────────────────────
# Cell helpers
# ─────────────────────────────────────────────────────────────

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_date(value: Any) -> Optional[date]:
    """Parse the date formats marketplaces export; None when unparseable."""
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = _as_text(value)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    parsed = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        return None
    return parsed.date()


class _RowReader:
    """Looks up aliased columns in one row and remembers what was defaulted."""

    def __init__(self, row: Dict[str, Any]):
        self.cells = {}
        for key, value in (row or {}).items():
            norm = " ".join(str(key).split()).lower()
            if norm not in self.cells or _is_blank(self.cells[norm]):
                self.cells[norm] = value
        self.defaulted = set()

    def first(self, columns: Sequence[str]) -> Any:
        for column in columns:
            value = self.cells.get(" ".join(column.split()).lower())
            if not _is_blank(value):
                return value
        return None

    def text(self, field: str, columns: Sequence[str], default: Optional[str] = "") -> Optional[str]:
        value = self.first(columns)
        if value is None:
            if field:
                self.defaulted.add(field)
            return default
        return _as_text(value)

    def number(self, field: str, columns: Sequence[str]) -> Optional[Decimal]:
        value = self.first(columns)
        number = to_decimal(value)
        if number is None and field:
            self.defaulted.add(field)
        return number


# ─────────────────────────────────────────────────────────────
# Adapters
# ─────────────────────────────────────────────────────────────

class PlatformAdapter:
    """
    Generic e-commerce adapter; marketplace adapters override the alias lists.

    Rate policy: an explicit rate column wins, then `default_rate` when the
    platform has one, then the HSN lookup.
    """
    placeholder = "Sale"
    id_columns: Tuple[str, ...] = ("Order ID", "OrderID", "Order No")
    date_columns: Tuple[str, ...] = ("Date", "Order Date", "Created Date")
    description_columns: Tuple[str, ...] = ("Product", "Product Name", "Item", "Description")
    product_columns: Tuple[str, ...] = ("Product", "Product Name", "Item")
    sku_columns: Tuple[str, ...] = ("SKU", "Seller SKU")
    quantity_columns: Tuple[str, ...] = ("Quantity", "Qty")
    amount_columns: Tuple[str, ...] = ("Sale Price", "Selling Price", "Amount", "Order Value", "Item Price")
    rate_columns: Tuple[str, ...] = ("GST Rate", "Tax Rate", "GST%")
    hsn_columns: Tuple[str, ...] = ("HSN", "HSN Code")
    state_columns: Tuple[str, ...] = ("State", "Ship State")
    customer_columns: Tuple[str, ...] = ("Customer Name", "Buyer Name")
    tax_id_columns: Tuple[str, ...] = ("Customer GSTIN", "Buyer GSTIN")
    invoice_columns: Tuple[str, ...] = ("Invoice Number", "Invoice No")

    default_rate: Optional[str] = Config.DEFAULT_GST_RATE
    seller_state_code: Optional[str] = None
    always_inter_state = False
    product_placeholder: Optional[str] = None

    def __init__(self, tax_engine: Optional[TaxEngine] = None):
        self.tax = tax_engine or TaxEngine()

    def adapt_row(self, row: Dict[str, Any], platform_label: str,
                  seller_state_code: Optional[str] = None) -> AdaptedRow:
        reader = _RowReader(row)

        order_reference = reader.text("order_reference", self.id_columns, default=None)
        if order_reference is None:
            order_reference = str(uuid.uuid4())

        occurred_at = parse_date(reader.first(self.date_columns))
        if occurred_at is None:
            reader.defaulted.add("occurred_at")
            occurred_at = date.today()

        description = reader.text("description", self.description_columns, default=self.placeholder)
        product_name = reader.text(None, self.product_columns, default=self.product_placeholder)
        hsn_code = reader.text("hsn_code", self.hsn_columns)

        quantity_value = reader.number("quantity", self.quantity_columns)
        if quantity_value is None or quantity_value < 1:
            reader.defaulted.add("quantity")
            quantity = 1
        else:
            quantity = int(quantity_value)

        gross = reader.number("gross_amount", self.amount_columns)
        if gross is None or gross < 0:
            reader.defaulted.add("gross_amount")
            gross = ZERO

        rate = self._resolve_rate(reader, hsn_code)

        state_text = reader.first(self.state_columns) if self.state_columns else None
        jurisdiction_code = self.tax.place_of_supply(state_text) if state_text is not None else ""
        if not jurisdiction_code:
            reader.defaulted.add("jurisdiction_code")

        seller = seller_state_code or self.seller_state_code or self.tax.seller_state_code
        if self.always_inter_state:
            inter_state = True
        else:
            inter_state = self.tax.is_inter_state(seller, jurisdiction_code or seller)

        breakdown = self.tax.decompose(gross, rate, inter_state)

        transaction = CanonicalTransaction(
            order_reference=order_reference,
            occurred_at=occurred_at,
            description=description,
            product_name=product_name,
            sku=reader.text(None, self.sku_columns, default=None),
            quantity=quantity,
            gross_amount=round2(gross),
            taxable_value=breakdown.taxable_value,
            gst_rate_percent=rate,
            igst=breakdown.igst,
            cgst=breakdown.cgst,
            sgst=breakdown.sgst,
            hsn_code=hsn_code,
            jurisdiction_code=jurisdiction_code,
            platform=platform_label,
            customer_name=reader.text(None, self.customer_columns, default=None),
            customer_tax_id=reader.text(None, self.tax_id_columns, default=None),
            invoice_number=reader.text(None, self.invoice_columns, default=None),
        )
        return AdaptedRow(transaction=transaction, defaulted=frozenset(reader.defaulted))

    def _resolve_rate(self, reader: _RowReader, hsn_code: str) -> Decimal:
        rate = to_decimal(reader.first(self.rate_columns)) if self.rate_columns else None
        if rate is not None and rate >= 0:
            return rate
        reader.defaulted.add("gst_rate_percent")
        if self.default_rate is not None:
            return Decimal(self.default_rate)
        return self.tax.resolve_rate(hsn_code)


class AmazonAdapter(PlatformAdapter):
    placeholder = "Amazon Sale"
    id_columns = ("order-id", "Order ID")
    date_columns = ("purchase-date", "Order Date")
    description_columns = ("product-name", "Product Name")
    product_columns = ("product-name", "Product Name")
    sku_columns = ("sku", "SKU")
    quantity_columns = ("quantity-purchased", "Qty")
    amount_columns = ("item-price", "Sale Price")
    rate_columns = ()
    hsn_columns = ("hsn", "HSN Code")
    state_columns = ("ship-state", "State")
    default_rate = None


class FlipkartAdapter(PlatformAdapter):
    placeholder = "Flipkart Sale"
    id_columns = ("Order ID", "Order Item ID")
    date_columns = ("Order Date", "Order Creation Date")
    description_columns = ("Product Name", "SKU")
    product_columns = ("Product Name",)
    sku_columns = ("SKU",)
    quantity_columns = ("Quantity",)
    amount_columns = ("Selling Price", "Order Item Value")
    rate_columns = ("GST Rate",)
    hsn_columns = ("HSN",)
    state_columns = ("Shipping State",)
    default_rate = None


class MeeshoAdapter(PlatformAdapter):
    placeholder = "Meesho Sale"
    id_columns = ("Order ID", "Sub Order No")
    date_columns = ("Order Date", "Created At")
    description_columns = ("SKU Name", "Product")
    product_columns = ("SKU Name", "Product")
    quantity_columns = ("Quantity",)
    amount_columns = ("Selling Price", "Product Price")
    rate_columns = ("GST%", "Tax Rate")
    hsn_columns = ("HSN", "HSN Code")
    state_columns = ("State",)
    default_rate = "5"


class MyntraAdapter(PlatformAdapter):
    placeholder = "Myntra Sale"


class PaytmAdapter(PlatformAdapter):
    """Paytm Mall settlements are booked as interstate supplies."""
    placeholder = "Paytm Sale"
    id_columns = ("Order ID", "Transaction ID")
    date_columns = ("Date", "Order Date")
    description_columns = ("Product", "Description")
    product_columns = ("Product",)
    quantity_columns = ("Qty",)
    amount_columns = ("Amount", "Order Value")
    rate_columns = ("GST Rate",)
    hsn_columns = ("HSN",)
    state_columns = ("State",)
    default_rate = "18"
    always_inter_state = True


class BankStatementAdapter(PlatformAdapter):
    """Bank exports in spreadsheet form: untaxed, no place of supply."""
    placeholder = ""
    id_columns = ("Reference", "Ref No")
    date_columns = ("date", "Date", "Transaction Date")
    description_columns = ("description", "Narration", "Description")
    product_columns = ()
    quantity_columns = ()
    amount_columns = ("amount", "Credit", "Deposit", "Debit", "Withdrawal")
    rate_columns = ()
    hsn_columns = ()
    state_columns = ()
    default_rate = "0"
    product_placeholder = "Bank Transaction"

    def adapt_row(self, row, platform_label, seller_state_code=None):
        adapted = super().adapt_row(row, platform_label, seller_state_code)
        # Quantity, HSN, rate and state are never present on bank rows
        expected = {"quantity", "hsn_code", "gst_rate_percent", "jurisdiction_code"}
        return AdaptedRow(adapted.transaction, adapted.defaulted - expected)


ADAPTER_TYPES = MappingProxyType({
    Platform.AMAZON: AmazonAdapter,
    Platform.FLIPKART: FlipkartAdapter,
    Platform.MEESHO: MeeshoAdapter,
    Platform.MYNTRA: MyntraAdapter,
    Platform.PAYTM: PaytmAdapter,
    Platform.BANK_STATEMENT: BankStatementAdapter,
    Platform.GENERIC: PlatformAdapter,
})

_missing = set(Platform) - set(ADAPTER_TYPES)
if _missing:
    raise RuntimeError(f"No adapter registered for: {sorted(p.value for p in _missing)}")


def get_adapter(platform: Union[str, Platform], tax_engine: Optional[TaxEngine] = None) -> PlatformAdapter:
    return ADAPTER_TYPES[Platform.from_label(platform)](tax_engine)


def adapt_with_flags(platform_id: Union[str, Platform], rows: Iterable[Dict[str, Any]],
                     seller_state_code: Optional[str] = None,
                     tax_engine: Optional[TaxEngine] = None) -> List[AdaptedRow]:
    """Adapt every row, keeping the per-row list of defaulted fields."""
    adapter = get_adapter(platform_id, tax_engine)
    label = platform_id.value if isinstance(platform_id, Platform) else (str(platform_id or "").strip() or Platform.GENERIC.value)
    results = [adapter.adapt_row(row, label, seller_state_code) for row in rows]
    defaulted = sum(1 for r in results if r.defaulted)
    logging.info(f"Adapted {len(results)} {label} rows with {type(adapter).__name__} ({defaulted} with defaulted fields)")
    return results


def adapt(platform_id: Union[str, Platform], rows: Iterable[Dict[str, Any]],
          seller_state_code: Optional[str] = None,
          tax_engine: Optional[TaxEngine] = None) -> List[CanonicalTransaction]:
    return [r.transaction for r in adapt_with_flags(platform_id, rows, seller_state_code, tax_engine)]
