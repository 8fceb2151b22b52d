from __future__ import annotations

import io
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from schemas.expense import CandidateExpense, parse_amount_value
from services.errors import UnreadableDocument, UnsupportedFileType
from services.json_logger import get_json_logger
from services.sign_normalizer import clean_optional, normalize_currency, parse_occurred_on


logger = get_json_logger("statement_ingest.spreadsheet")

SPREADSHEET_EXTENSIONS = (".csv", ".xlsx", ".xlsm", ".xls")
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")
HEADER_SCAN_ROWS = 10
MAX_CSV_COLUMNS = 64

HEADER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "date": (
        "date", "transaction date", "txn date", "trans date", "posted date", "post date",
        "posting date", "date posted", "value date", "occurred on",
    ),
    "amount": (
        "amount", "transaction amount", "expense amount", "purchase amount", "amt",
        "amount cad", "amount usd", "amount inr",
    ),
    "debit": ("debit", "withdrawal", "charge", "spent", "dr", "debit amount"),
    "credit": ("credit", "deposit", "refund", "cr", "payment", "credit amount"),
    "currency": ("currency", "curr", "ccy", "currency code", "iso currency"),
    "description": (
        "description", "merchant", "details", "memo", "narration", "payee", "reference",
        "notes", "particulars", "statement description", "desc", "statement text",
    ),
    "category": ("category", "type", "expense category"),
    "payment_method": ("payment method", "method", "card", "channel", "account"),
}

PAYMENT_RECEIPT_RE = re.compile(
    r"(payment received|credit card payment|card payment|payment thank you|bill payment|autopay|"
    r"auto pay|payment processed|thank you for your payment)",
    re.IGNORECASE,
)
_CELL_CURRENCY_CHECKS: Tuple[Tuple[str, str], ...] = (
    ("CAD", r"\bCAD\b|C\$"),
    ("AUD", r"\bAUD\b|A\$"),
    ("USD", r"\bUSD\b|US\$|\$"),
    ("EUR", r"\bEUR\b|€"),
    ("GBP", r"\bGBP\b|£"),
    ("INR", r"\bINR\b|₹"),
    ("JPY", r"\bJPY\b|¥"),
)
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})$")
_EXCEL_EPOCH = pd.Timestamp("1899-12-30")

Row = List[Any]


def normalize_header(cell: Any) -> str:
    raw = "" if cell is None else str(cell)
    raw = re.sub(r"([a-z])([A-Z])", r"\1 \2", raw)
    return re.sub(r"\s+", " ", re.sub(r"[^a-z0-9]+", " ", raw.lower())).strip()


def match_header(cell: Any) -> Optional[str]:
    """
    Field a header cell names, if any. An exact alias match wins; otherwise
    the longest alias found as whole words (plural allowed) in the header.
    """
    n = normalize_header(cell)
    if not n:
        return None
    best: Optional[Tuple[int, str]] = None
    for key, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            if n == alias:
                return key
            if re.search(rf"\b{re.escape(alias)}s?\b", n):
                if best is None or len(alias) > best[0]:
                    best = (len(alias), key)
    return best[1] if best else None


def find_header_row(rows: Sequence[Row]) -> int:
    best_idx, best_score = 0, 0
    for i, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        score = sum(1 for cell in row if match_header(cell))
        if score > best_score:
            best_idx, best_score = i, score
    return best_idx


def map_columns(header_row: Row) -> Dict[str, int]:
    columns: Dict[str, int] = {}
    for idx, cell in enumerate(header_row):
        key = match_header(cell)
        if key and key not in columns:
            columns[key] = idx
    return columns


def to_amount(value: Any) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return parse_amount_value(value)
    except ValueError:
        return None


def cell_to_date(value: Any) -> Optional[date]:
    """Date from a datetime cell, an Excel serial number or date text."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return parse_occurred_on(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 1 <= value <= 100000:
            return (_EXCEL_EPOCH + pd.to_timedelta(float(value), unit="D")).date()
        return None
    s = str(value).strip()
    if not s:
        return None
    m = _SLASH_DATE_RE.match(s)
    if m:
        a, b, y = int(m.group(1)), int(m.group(2)), m.group(3)
        year = int(y) if len(y) == 4 else 2000 + int(y)
        day, month = (b, a) if b > 12 and a <= 12 else (a, b)
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return parse_occurred_on(s)


def detect_cell_currency(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    for code, pattern in _CELL_CURRENCY_CHECKS:
        if re.search(pattern, value, re.IGNORECASE):
            return code
    return None


def is_payment_receipt(expense: CandidateExpense) -> bool:
    """A negative card-payment row: money moved to pay the card, not a refund."""
    text = f"{expense.merchant or ''} {expense.note or ''}"
    return expense.amount < 0 and bool(PAYMENT_RECEIPT_RE.search(text))


def drop_payment_receipts(expenses: Sequence[CandidateExpense]) -> List[CandidateExpense]:
    return [e for e in expenses if not is_payment_receipt(e)]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


class SpreadsheetParser:
    """Reads CSV and Excel statement exports into rows and local candidates."""

    def __init__(self, default_currency: str = "USD") -> None:
        self.default_currency = default_currency

    # -------------------------- reading --------------------------
    def load(self, content: bytes, filename: str) -> List[Row]:
        """Non-blank rows of the first sheet, with empty cells as None."""
        name = (filename or "").lower()
        if not name.endswith(SPREADSHEET_EXTENSIONS):
            raise UnsupportedFileType("Unsupported spreadsheet type. Upload a CSV or XLSX file.")
        try:
            if name.endswith(".csv"):
                df = self._read_csv(content)
            else:
                df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
        except UnreadableDocument:
            raise
        except Exception as exc:
            logger.warning("spreadsheet read failed", extra={"extra": {"file_name": filename, "error": str(exc)}})
            raise UnreadableDocument("Could not read the uploaded spreadsheet.") from exc

        rows: List[Row] = []
        for record in df.itertuples(index=False, name=None):
            row = [None if self._is_blank(v) else self._plain(v) for v in record]
            if any(v is not None for v in row):
                rows.append(row)
        if not rows:
            raise UnreadableDocument("No rows in the spreadsheet.")
        return rows

    @staticmethod
    def _read_csv(content: bytes) -> pd.DataFrame:
        last_err: Optional[Exception] = None
        for enc in CSV_ENCODINGS:
            try:
                # Bank exports often carry a short preamble above a wider table, so
                # read into a wide frame and drop the columns no row reaches.
                df = pd.read_csv(
                    io.BytesIO(content),
                    encoding=enc,
                    header=None,
                    names=list(range(MAX_CSV_COLUMNS)),
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                    engine="python",
                    on_bad_lines="skip",
                )
            except UnicodeDecodeError as exc:
                last_err = exc
                continue
            return df.dropna(axis=1, how="all")
        raise UnreadableDocument("Could not decode the CSV file.") from last_err

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        try:
            return bool(pd.isna(value))
        except (TypeError, ValueError):
            return False

    @staticmethod
    def _plain(value: Any) -> Any:
        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()
        return value

    # -------------------------- parsing --------------------------
    def parse_rows(self, rows: Sequence[Row]) -> List[CandidateExpense]:
        if not rows:
            return []
        header_idx = find_header_row(rows)
        columns = map_columns(rows[header_idx])
        logger.info(
            "spreadsheet header detected",
            extra={"extra": {"header_row": header_idx, "columns": sorted(columns)}},
        )

        expenses: List[CandidateExpense] = []
        for row in rows[header_idx + 1 :]:
            candidate = self._row_to_candidate(row, columns)
            if candidate is not None:
                expenses.append(candidate)
        return drop_payment_receipts(expenses)

    def _row_to_candidate(self, row: Row, columns: Dict[str, int]) -> Optional[CandidateExpense]:
        def cell(key: str) -> Any:
            idx = columns.get(key)
            return row[idx] if idx is not None and idx < len(row) else None

        occurred_on = cell_to_date(cell("date"))
        if occurred_on is None:
            return None

        amount: Optional[Decimal] = None
        amount_cell = None
        if "amount" in columns:
            amount_cell = cell("amount")
            amount = to_amount(amount_cell)
        elif "debit" in columns or "credit" in columns:
            debit, credit = to_amount(cell("debit")), to_amount(cell("credit"))
            if debit is not None or credit is not None:
                amount = abs(debit or Decimal(0)) - abs(credit or Decimal(0))
            amount_cell = cell("debit") if debit is not None else cell("credit")
        if amount is None:
            return None

        currency = normalize_currency(_cell_text(cell("currency")), default="")
        if not currency:
            currency = detect_cell_currency(amount_cell) or self.default_currency

        return CandidateExpense(
            amount=amount,
            currency=currency,
            occurred_on=occurred_on,
            merchant=clean_optional(_cell_text(cell("description"))),
            category=clean_optional(_cell_text(cell("category"))),
            payment_method=clean_optional(_cell_text(cell("payment_method"))),
        )

    def table_text(self, rows: Sequence[Row]) -> str:
        """Rows rendered as `" | "`-joined text, the input the extraction model sees."""
        lines = [" | ".join(_cell_text(c) for c in row) for row in rows]
        return "\n".join(line for line in lines if line.strip(" |"))
