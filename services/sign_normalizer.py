from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

import pandas as pd

from schemas.expense import CandidateExpense, RawExtractedExpense


REFUND_LIKE_RE = re.compile(
    r"(refund|refunded|credit|\bcr\b|reversal|chargeback|payment received|cashback|return|"
    r"deposit credit|adjustment credit|credit interest|rebate|reimbursement)",
    re.IGNORECASE,
)
INVESTMENT_RE = re.compile(
    r"(\binvest(?:ment|ments|ing)?\b|\bsavings?\b|\bsave\b|transfer.*deposit|special deposit|"
    r"\brrsp\b|\btfsa\b|\b401\(?k\)?|\bira\b|mutual fund|\bstocks?\b|\bbonds?\b|\betfs?\b)",
    re.IGNORECASE,
)

CURRENCY_SYMBOLS = {
    "$": "USD",
    "US$": "USD",
    "C$": "CAD",
    "CA$": "CAD",
    "A$": "AUD",
    "AU$": "AUD",
    "€": "EUR",
    "£": "GBP",
    "₹": "INR",
    "RS": "INR",
    "RS.": "INR",
    "¥": "JPY",
}
_ISO_CODE_RE = re.compile(r"^[A-Z]{3}$")
_ISO_DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_NOTE_BOILERPLATE_RE = re.compile(
    r"\b(?:transaction|trans\.?|posting|posted|post|value)\s+date\s*:?\s*[^;,|]*[;,|]?",
    re.IGNORECASE,
)
_NOTE_DATE_RE = re.compile(
    r"\b(?:\d{4}-\d{1,2}-\d{1,2}|\d{1,2}/\d{1,2}/\d{2,4}|"
    r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:,?\s+\d{4})?)\b",
    re.IGNORECASE,
)


def _text_of(merchant: Optional[str], note: Optional[str]) -> str:
    return f"{note or ''} {merchant or ''}"


def is_refund_like(merchant: Optional[str] = None, note: Optional[str] = None) -> bool:
    """Refund/credit wording, unless the line reads as an investment or savings movement."""
    text = _text_of(merchant, note)
    return bool(REFUND_LIKE_RE.search(text)) and not INVESTMENT_RE.search(text)


def resolve_signed_amount(
    amount: Union[Decimal, int, float, str],
    direction: Optional[str] = None,
    merchant: Optional[str] = None,
    note: Optional[str] = None,
) -> Decimal:
    """
    Final sign for a candidate: positive is money out, negative is money back.

    An explicit direction wins; otherwise refund-like wording forces a
    negative amount; otherwise the model's sign is kept.
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if direction == "credit":
        return -abs(value)
    if direction == "debit":
        return abs(value)
    if is_refund_like(merchant, note):
        return -abs(value)
    return value


def normalize_currency(raw: Optional[str], default: str = "USD") -> str:
    s = (raw or "").strip().upper()
    if _ISO_CODE_RE.match(s):
        return s
    if s in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[s]
    return default


def parse_occurred_on(raw: Union[str, date, None]) -> Optional[date]:
    """Plain calendar date from an ISO string, datetime string or loose date text."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    m = _ISO_DATE_PREFIX_RE.match(s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    parsed = pd.to_datetime(s, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = re.sub(r"\s+", " ", str(value)).strip()
    return s or None


def clean_note(note: Optional[str]) -> Optional[str]:
    s = clean_optional(note)
    if not s:
        return None
    s = _NOTE_BOILERPLATE_RE.sub(" ", s)
    s = _NOTE_DATE_RE.sub(" ", s)
    return clean_optional(s.strip(" ;,-|:"))


def normalize_candidate(
    raw: RawExtractedExpense,
    source_chunk: Optional[int] = None,
    default_currency: str = "USD",
) -> Optional[CandidateExpense]:
    """Turn one validated provider item into a CandidateExpense; None when it has no usable date."""
    occurred_on = parse_occurred_on(raw.occurred_on)
    if occurred_on is None:
        return None
    merchant = clean_optional(raw.merchant)
    note = clean_note(raw.note)
    return CandidateExpense(
        amount=resolve_signed_amount(raw.amount, raw.direction, merchant, note),
        currency=normalize_currency(raw.currency, default_currency),
        occurred_on=occurred_on,
        merchant=merchant,
        payment_method=clean_optional(raw.payment_method),
        note=note,
        category=clean_optional(raw.category),
        line_index=raw.line_index,
        source_chunk=source_chunk,
        direction=raw.direction,
    )
