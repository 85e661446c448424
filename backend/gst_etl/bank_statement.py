"""
BankStatementParser - OCR text → structured bank lines.

Works on plain text only (the text extractor lives in extract.py), so it can
be fed anything from pdfplumber output to a third-party OCR dump.

Stages:
1. Normalize line endings and whitespace, drop blank lines
2. Drop column-header noise
3. Rebuild logical rows: a row starts with a date, wrapped lines are appended
4. Statement metadata (bank, account, holder, balances, period)
5. Per-row date / reference / amounts / mode / debit-credit extraction

The parser never raises. Unreadable rows are skipped, so the worst case is an
empty statement with whatever metadata could be found.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from .categorize import ModeClassifier
from .models import BankStatement, RawBankLine, ZERO
from .tax import round2, to_decimal


# ─────────────────────────────────────────────────────────────
# Patterns
# ─────────────────────────────────────────────────────────────

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_ALT = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
_DATE_BODY = rf'(?:\d{{1,2}}[/-]\d{{1,2}}[/-]\d{{2,4}}|\d{{1,2}}[ -](?:{_MONTH_ALT})[a-z]*[ ,-]+\d{{2,4}})'

DATE_START = re.compile(rf'^({_DATE_BODY})(?=\s|$)', re.I)
ANY_DATE = re.compile(rf'({_DATE_BODY}|\d{{4}}-\d{{2}}-\d{{2}})', re.I)

NUMERIC_DATE = re.compile(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$')
ALPHA_DATE = re.compile(rf'^(\d{{1,2}})[ -]({_MONTH_ALT})[a-z]*[ ,-]+(\d{{2,4}})$', re.I)
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

BANK_PATTERNS = [
    (re.compile(r'\bHDFC\b', re.I), "HDFC Bank"),
    (re.compile(r'\bICICI\b', re.I), "ICICI Bank"),
    (re.compile(r'\bSBI\b|STATE BANK', re.I), "State Bank of India"),
    (re.compile(r'\bAXIS\b', re.I), "Axis Bank"),
    (re.compile(r'\bKOTAK\b', re.I), "Kotak Mahindra Bank"),
    (re.compile(r'\bYES BANK\b', re.I), "Yes Bank"),
    (re.compile(r'\bPNB\b|PUNJAB NATIONAL', re.I), "Punjab National Bank"),
    (re.compile(r'\bBOB\b|BANK OF BARODA', re.I), "Bank of Baroda"),
    (re.compile(r'\bCANARA\b', re.I), "Canara Bank"),
    (re.compile(r'\bUNION BANK\b', re.I), "Union Bank of India"),
    (re.compile(r'\bINDUSIND\b', re.I), "IndusInd Bank"),
    (re.compile(r'\bIDBI\b', re.I), "IDBI Bank"),
]

ACCOUNT_PATTERNS = [
    re.compile(r'(?:A/C|Account|Acct)\.?\s*(?:No|Number|#)?\.?\s*[:\-]?\s*([0-9Xx*]{6,20})\b', re.I),
    re.compile(r'\b(\d{9,18})\s*(?:Savings|Current)\b', re.I),
]

HOLDER_PATTERNS = [
    re.compile(r'^(?:Account\s+Holder(?:\s+Name)?|Customer\s+Name|Name)\s*[:\-]\s*([A-Za-z][A-Za-z .]{2,60})', re.I),
    re.compile(r'\b((?:MR|MRS|MS|M/S)\.?\s+[A-Za-z][A-Za-z .]{2,60})', re.I),
]
HOLDER_REJECT = re.compile(r'\b(BANK|STATEMENT|BRANCH|ACCOUNT|IFSC)\b', re.I)

OPENING_PATTERN = re.compile(r'(?:Opening|Beginning)\s+Balance\s*[:\-]?\s*(?:Rs\.?|INR|₹)?\s*([\d,]+(?:\.\d+)?)', re.I)
CLOSING_PATTERN = re.compile(r'(?:Closing|Ending)\s+Balance\s*[:\-]?\s*(?:Rs\.?|INR|₹)?\s*([\d,]+(?:\.\d+)?)', re.I)
PERIOD_PATTERN = re.compile(rf'(?:Period|From)\s*[:\-]?\s*({_DATE_BODY})\s*(?:to|-)\s*({_DATE_BODY})', re.I)

# Reference markers glued to the value ("REF123456789") or separated ("UTR: 1234...")
REF_GLUED = re.compile(r'\b((?:UTR|REF|RRN|CHQ|TXN)[A-Z0-9]*\d[A-Z0-9]*)\b', re.I)
REF_SEPARATED = re.compile(r'\b(?:UTR|REF|RRN|CHQ|CHEQUE|TXN)(?:\s*(?:NO|NUMBER|ID))?\.?\s*[:#\-]?\s*([A-Z0-9]*\d[A-Z0-9]*)\b', re.I)
LONG_TOKEN = re.compile(r'^[A-Za-z0-9]{10,}$')

AMOUNT_TOKEN = re.compile(
    r'(?<![\w.,/-])(\d{1,3}(?:,\d{2,3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)'
    r'(?:\s?(CR|DR)\b\.?)?(?![\w,/]|\.\d)',
    re.I,
)

DEBIT_WORDS = re.compile(r'\b(DR|DEBIT|PAID|WITHDRAWN|WITHDRAWAL|TRANSFER TO)\b', re.I)
CREDIT_WORDS = re.compile(r'\b(CR|CREDIT|RECEIVED|DEPOSITED|DEPOSIT|TRANSFER FROM)\b', re.I)

HEADER_KEYWORDS = [
    "date", "narration", "description", "particulars", "withdrawal", "deposit",
    "debit", "credit", "balance", "chq", "ref", "value", "amount", "txn",
]

# Rows that close a transaction block instead of continuing it
SUMMARY_KEYWORDS = [
    "opening balance", "closing balance", "ending balance", "beginning balance",
    "balance forward", "brought forward", "carried forward", "statement summary",
    "statement period", "total", "subtotal", "grand total",
]
PAGE_FOOTER = re.compile(r'\bpage\s+\d+\s*(?:of|/)\s*\d+\b', re.I)

DESCRIPTION_LIMIT = 100


def normalize_date(text: str) -> str:
    """
    Convert a statement date to YYYY-MM-DD.

    Two-digit years expand to 20YY. Already-normalized dates pass through
    unchanged; anything unrecognized is returned stripped.
    """
    value = " ".join(str(text or "").split())
    if ISO_DATE.match(value):
        return value

    match = NUMERIC_DATE.match(value)
    if match:
        day, month, year = match.groups()
        month_num = int(month)
    else:
        match = ALPHA_DATE.match(value)
        if not match:
            return value
        day, month, year = match.groups()
        month_num = MONTHS[month[:3].lower()]

    year_num = int(year)
    if len(year) == 2:
        year_num += 2000
    try:
        return date(year_num, month_num, int(day)).isoformat()
    except ValueError:
        return value


def reconcile(statement: BankStatement) -> dict:
    """Check opening + credits - debits against the printed closing balance."""
    total_credits = round2(sum((line.credit or ZERO for line in statement.lines), ZERO))
    total_debits = round2(sum((line.debit or ZERO for line in statement.lines), ZERO))

    if statement.opening_balance is None or statement.closing_balance is None:
        return {
            "opening_balance": statement.opening_balance,
            "total_credits": total_credits,
            "total_debits": total_debits,
            "expected_closing": None,
            "actual_closing": statement.closing_balance,
            "delta": None,
            "is_balanced": None,
            "failure_reason": "Missing balance information in statement",
        }

    expected = round2(statement.opening_balance + total_credits - total_debits)
    delta = abs(expected - statement.closing_balance)
    is_balanced = delta < Decimal("0.02")
    if is_balanced:
        reason = None
    elif delta > 1000:
        reason = "Large discrepancy - possible missing transactions"
    else:
        reason = f"Small mismatch (₹{delta:.2f}) - rounding or fees"

    return {
        "opening_balance": statement.opening_balance,
        "total_credits": total_credits,
        "total_debits": total_debits,
        "expected_closing": expected,
        "actual_closing": statement.closing_balance,
        "delta": round2(delta),
        "is_balanced": is_balanced,
        "failure_reason": reason,
    }


class BankStatementParser:
    """
    Deterministic statement parser using regex patterns.

    Usage:
        parser = BankStatementParser()
        statement = parser.parse(ocr_text)
        for line in statement.lines:
            print(line.date, line.description, line.debit, line.credit)
    """

    def __init__(self, mode_classifier: Optional[ModeClassifier] = None):
        self.modes = mode_classifier or ModeClassifier()

    def parse(self, text: str) -> BankStatement:
        lines = self._normalize(text)
        rows = self._reconstruct(lines)

        parsed = []
        for row in rows:
            line = self._parse_row(row)
            if line:
                parsed.append(line)

        bank_name, account_number, holder, opening, closing, period = self._extract_metadata(lines)
        logging.info(f"Bank statement parsed: {len(parsed)} lines from {len(rows)} rows "
                     f"(bank={bank_name or 'unknown'})")

        return BankStatement(
            bank_name=bank_name,
            account_number=account_number,
            account_holder=holder,
            opening_balance=opening,
            closing_balance=closing,
            period_from=period[0],
            period_to=period[1],
            lines=tuple(parsed),
        )

    # ─────────────────────────────────────────────────────────────
    # Line Reconstruction
    # ─────────────────────────────────────────────────────────────

    def _normalize(self, text: str) -> List[str]:
        raw = str(text or "").replace('\r\n', '\n').replace('\r', '\n')
        return [" ".join(line.split()) for line in raw.split('\n') if line.strip()]

    def _is_header_row(self, line: str) -> bool:
        if any(ch.isdigit() for ch in line):
            return False
        lower = line.lower()
        return sum(1 for kw in HEADER_KEYWORDS if re.search(rf'\b{kw}', lower)) >= 2

    def _is_summary_row(self, line: str) -> bool:
        lower = line.lower()
        if PAGE_FOOTER.search(lower):
            return True
        return any(re.search(rf'\b{re.escape(kw)}\b', lower) for kw in SUMMARY_KEYWORDS)

    def _reconstruct(self, lines: List[str]) -> List[str]:
        rows: List[str] = []
        current: Optional[str] = None

        for line in lines:
            if self._is_header_row(line):
                continue
            if DATE_START.match(line):
                if current:
                    rows.append(current)
                current = line
            elif self._is_summary_row(line):
                if current:
                    rows.append(current)
                current = None
            elif current:
                current = f"{current} {line}"

        if current:
            rows.append(current)
        return rows

    # ─────────────────────────────────────────────────────────────
    # Row Parsing
    # ─────────────────────────────────────────────────────────────

    def _parse_row(self, row: str) -> Optional[RawBankLine]:
        date_match = DATE_START.match(row)
        if not date_match:
            return None
        date_text = date_match.group(1)
        rest = row[date_match.end():].strip()

        # Value-date column
        value_date = DATE_START.match(rest)
        if value_date:
            rest = rest[value_date.end():].strip()

        if self._is_summary_row(rest):
            return None

        reference = self._extract_reference(rest)
        body = rest.replace(reference, ' ', 1) if reference else rest

        tokens = self._extract_amounts(body)
        if not tokens:
            return None

        description = AMOUNT_TOKEN.sub(' ', body)
        description = ' '.join(description.split()).strip(' -/:|,.')

        values = [value for value, _ in tokens]
        balance = values[-1] if len(values) >= 2 else None
        candidates = tokens[:-1] if len(tokens) >= 2 else tokens
        if all(value == 0 for value, _ in candidates):
            return None

        markers = {marker for _, marker in candidates if marker}
        is_debit = bool(DEBIT_WORDS.search(description)) or "DR" in markers
        is_credit = bool(CREDIT_WORDS.search(description)) or "CR" in markers

        debit = credit = None
        confidence = "high"
        amount = next(value for value, _ in candidates if value > 0)

        if is_debit and is_credit:
            debit, confidence = amount, "low"
        elif is_debit:
            debit = amount
        elif is_credit:
            credit = amount
        elif len(values) >= 3:
            # Withdrawal / deposit columns followed by balance
            debit = values[0] if values[0] > 0 else None
            credit = values[1] if values[1] > 0 else None
            confidence = "low"
        else:
            debit, confidence = amount, "medium"

        description = re.sub(r'\b(CR|DR)\b\.?', ' ', description, flags=re.I)
        description = ' '.join(description.split()).strip(' -/:|,.')

        return RawBankLine(
            date_text=date_text,
            date=normalize_date(date_text),
            description=description[:DESCRIPTION_LIMIT],
            reference=reference,
            debit=debit,
            credit=credit,
            balance=balance,
            mode=self.modes.classify(rest),
            confidence=confidence,
        )

    def _extract_reference(self, text: str) -> Optional[str]:
        match = REF_GLUED.search(text)
        if match:
            return match.group(1)
        match = REF_SEPARATED.search(text)
        if match and len(match.group(1)) >= 6:
            return match.group(1)
        for token in re.split(r'[\s/]+', text):
            if LONG_TOKEN.match(token) and any(ch.isdigit() for ch in token):
                return token
        return None

    def _extract_amounts(self, text: str) -> List[Tuple[Decimal, Optional[str]]]:
        matches = [(m.group(1), (m.group(2) or "").upper() or None) for m in AMOUNT_TOKEN.finditer(text)]
        decimals = [(raw, marker) for raw, marker in matches if '.' in raw or ',' in raw]
        # Plain integers only count when the row has no formatted amounts at all
        chosen = decimals or matches
        amounts = []
        for raw, marker in chosen:
            value = to_decimal(raw)
            if value is not None:
                amounts.append((round2(value), marker))
        return amounts

    # ─────────────────────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────────────────────

    def _extract_metadata(self, lines: List[str]):
        bank_name = account_number = holder = None
        opening = closing = None
        period = (None, None)

        for line in lines:
            if bank_name is None:
                bank_name = next((name for pattern, name in BANK_PATTERNS if pattern.search(line)), None)
            if account_number is None:
                for pattern in ACCOUNT_PATTERNS:
                    match = pattern.search(line)
                    if match:
                        account_number = match.group(1)
                        break
            if holder is None:
                holder = self._extract_holder(line)
            if opening is None:
                match = OPENING_PATTERN.search(line)
                if match:
                    opening = round2(to_decimal(match.group(1)))
            if closing is None:
                match = CLOSING_PATTERN.search(line)
                if match:
                    closing = round2(to_decimal(match.group(1)))
            if period[0] is None:
                match = PERIOD_PATTERN.search(line)
                if match:
                    period = (normalize_date(match.group(1)), normalize_date(match.group(2)))

        return bank_name, account_number, holder, opening, closing, period

    def _extract_holder(self, line: str) -> Optional[str]:
        for pattern in HOLDER_PATTERNS:
            match = pattern.search(line)
            if match:
                name = match.group(1).strip(' .')
                if name and not HOLDER_REJECT.search(name):
                    return name
        return None
