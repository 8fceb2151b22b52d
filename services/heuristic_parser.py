from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Sequence, Tuple

from schemas.expense import CandidateExpense
from services.json_logger import get_json_logger
from services.line_preparer import NumberedLine
from services.sign_normalizer import is_refund_like


logger = get_json_logger("statement_ingest.heuristic")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
SCORED_CURRENCIES = ("USD", "CAD", "EUR", "GBP", "INR", "AUD")

_NUMBERED_RE = re.compile(r"^\s*(\d+)\.\s+(.*)$")
_ISO_DATE_RE = re.compile(r"\b(20\d{2})[-/](\d{1,2})[-/](\d{1,2})\b")
_DAY_MON_RE = re.compile(r"\b(\d{1,2})\s+([A-Za-z]{3,9})\.?(?:[,\s]+(20\d{2}))?\b")
_MON_DAY_RE = re.compile(r"\b([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:[,\s]+(20\d{2}))?\b")
_SLASH_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(20\d{2})\b")
AMOUNT_RE = re.compile(
    r"(?<![\w.])(?P<minus>[-−]\s?)?(?P<open>\()?(?P<code>(?:USD|CAD|EUR|GBP|INR|AUD)(?=[$€£₹\d]))?(?P<sym>[$€£₹])?"
    r"(?P<num>\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})(?P<close>\))?(?!\.?\d)"
)
_EXCHANGE_RATE_RE = re.compile(r"exchange\s+rate", re.IGNORECASE)
_EXCHANGE_RATE_WINDOW = 24

_BOILERPLATE_RE = re.compile(
    r"\b(TRANSACTION DATE|POSTING DATE|ACTIVITY DESCRIPTION|WITHDRAWALS?|DEPOSITS?|BALANCE|"
    r"FOREIGN CURRENCY|EXCHANGE RATE|VISA DEBIT PURCHASE|INTERAC|CONTACTLESS|ATM WITHDRAWAL|"
    r"AUTOMATIC PAYMENT|MISC PAYMENT)\b",
    re.IGNORECASE,
)
_LONG_CODE_RE = re.compile(r"\b\d{7,}\b")
_CURRENCY_WORD_RE = re.compile(r"(?:\b(?:CAD|USD|EUR|GBP|INR|AUD)\b|C\$|US\$|A\$)", re.IGNORECASE)
MAX_MERCHANT_LEN = 64


@dataclass(frozen=True)
class AmountToken:
    value: Decimal
    negative: bool
    symbol: Optional[str]
    span: Tuple[int, int]
    code: Optional[str] = None


def detect_global_currency(text: str) -> str:
    """Score symbol, code and place-name cues across the whole document; USD wins ties."""
    lc = text.lower()
    score = {k: 0 for k in SCORED_CURRENCIES}
    if "$" in text:
        for k in ("USD", "CAD", "AUD"):
            score[k] += 1
    if "€" in text:
        score["EUR"] += 3
    if "£" in text:
        score["GBP"] += 3
    if "₹" in text:
        score["INR"] += 5

    def add_count(pattern: str, key: str, weight: int) -> None:
        score[key] += len(re.findall(pattern, lc)) * weight

    for code in SCORED_CURRENCIES:
        add_count(rf"\b{code.lower()}\b", code, 4)
    add_count(r"\bcanadian\b", "CAD", 2)
    add_count(r"\bamerican\b|\bus\b", "USD", 1)
    add_count(r"toronto|ontario|canada|cad\$", "CAD", 2)
    add_count(r"usa|united states|usd\$", "USD", 2)

    best = "USD"
    for k in SCORED_CURRENCIES:
        if score[k] > score[best]:
            best = k
    return best


def detect_line_currency(text: str, fallback: str) -> str:
    u = text.upper()
    checks = (
        ("CAD", r"(^|\s)CAD(\s|$)|C\$"),
        ("USD", r"(^|\s)USD(\s|$)|US\$"),
        ("EUR", r"(^|\s)EUR(\s|$)|€"),
        ("GBP", r"(^|\s)GBP(\s|$)|£"),
        ("INR", r"(^|\s)INR(\s|$)|₹"),
        ("AUD", r"(^|\s)AUD(\s|$)|A\$"),
    )
    for code, pattern in checks:
        if re.search(pattern, u):
            return code
    return fallback


def _safe_date(y: int, m: int, d: int) -> Optional[date]:
    try:
        return date(y, m, d)
    except ValueError:
        return None


class LocalStatementParser:
    """
    Regex-only reader for numbered statement lines; it never calls out.

    A line becomes a candidate only when both a date and an amount are found
    on it. Everything else is skipped silently.
    """

    def __init__(self, today: Optional[date] = None) -> None:
        self.today = today

    @property
    def default_year(self) -> int:
        return (self.today or date.today()).year

    def parse(self, lines: Sequence[NumberedLine]) -> List[CandidateExpense]:
        global_currency = detect_global_currency("\n".join(line.text for line in lines))
        results: List[CandidateExpense] = []
        for line in lines:
            candidate = self.parse_line(line.text, line.index, global_currency)
            if candidate is not None:
                results.append(candidate)
        logger.info(
            "local parse finished",
            extra={"extra": {"lines": len(lines), "expenses": len(results), "currency": global_currency}},
        )
        return results

    def parse_text(self, corpus: str) -> List[CandidateExpense]:
        """Parse raw text; lines carrying a `"<n>. "` prefix keep `n` as their line index."""
        global_currency = detect_global_currency(corpus or "")
        results: List[CandidateExpense] = []
        for raw in (corpus or "").splitlines():
            m = _NUMBERED_RE.match(raw)
            body, line_index = (m.group(2), int(m.group(1))) if m else (raw, None)
            candidate = self.parse_line(body, line_index, global_currency)
            if candidate is not None:
                results.append(candidate)
        return results

    def parse_line(
        self, body: str, line_index: Optional[int], global_currency: str = "USD"
    ) -> Optional[CandidateExpense]:
        dates = self.find_dates(body)
        amount = self.find_amount(body)
        if not dates or amount is None:
            return None
        occurred_on = dates[0][0]

        value = amount.value
        if amount.negative or is_refund_like(note=body):
            value = -abs(value)

        return CandidateExpense(
            amount=value,
            currency=self._currency_for(body, amount, global_currency),
            occurred_on=occurred_on,
            merchant=self.derive_merchant(body, [span for _, span in dates] + [amount.span]),
            line_index=line_index,
        )

    # -------------------------- dates --------------------------
    def find_date(self, text: str) -> Optional[date]:
        """Earliest valid date-shaped token on the line."""
        dates = self.find_dates(text)
        return dates[0][0] if dates else None

    def find_dates(self, text: str) -> List[Tuple[date, Tuple[int, int]]]:
        """Every valid date token on the line with its span, in reading order."""
        found: List[Tuple[int, date, Tuple[int, int]]] = []
        for m in _ISO_DATE_RE.finditer(text):
            d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            if d:
                found.append((m.start(), d, m.span()))
        for m in _DAY_MON_RE.finditer(text):
            month = MONTHS.get(m.group(2)[:3].lower())
            if month and self._is_month_word(m.group(2)):
                d = _safe_date(int(m.group(3) or self.default_year), month, int(m.group(1)))
                if d:
                    found.append((m.start(), d, m.span()))
        for m in _MON_DAY_RE.finditer(text):
            month = MONTHS.get(m.group(1)[:3].lower())
            if month and self._is_month_word(m.group(1)):
                d = _safe_date(int(m.group(3) or self.default_year), month, int(m.group(2)))
                if d:
                    found.append((m.start(), d, m.span()))
        for m in _SLASH_DATE_RE.finditer(text):
            a, b, y = int(m.group(1)), int(m.group(2)), int(m.group(3))
            day, month = (b, a) if b > 12 and a <= 12 else (a, b)
            d = _safe_date(y, month, day)
            if d:
                found.append((m.start(), d, m.span()))
        found.sort(key=lambda f: f[0])
        out: List[Tuple[date, Tuple[int, int]]] = []
        last_end = -1
        for start, d, span in found:
            if start < last_end:
                continue
            out.append((d, span))
            last_end = span[1]
        return out

    @staticmethod
    def _is_month_word(word: str) -> bool:
        w = word.lower()
        prefix = w[:3]
        full = {
            "jan": "january", "feb": "february", "mar": "march", "apr": "april", "may": "may",
            "jun": "june", "jul": "july", "aug": "august", "sep": "september",
            "oct": "october", "nov": "november", "dec": "december",
        }[prefix]
        return w == "sept" or full.startswith(w)

    # -------------------------- amounts --------------------------
    def find_amount(self, text: str) -> Optional[AmountToken]:
        """
        Pick the transaction amount among the line's money tokens. Tokens that
        follow "exchange rate" are ignored. With several left, a token closing
        the line is taken to be the running balance and dropped; the one
        nearest the middle of the line wins among the rest.
        """
        tokens: List[AmountToken] = []
        for m in AMOUNT_RE.finditer(text):
            if _EXCHANGE_RATE_RE.search(text[max(0, m.start() - _EXCHANGE_RATE_WINDOW) : m.start()]):
                continue
            try:
                value = Decimal(m.group("num").replace(",", ""))
            except InvalidOperation:
                continue
            parenthesized = bool(m.group("open") and m.group("close"))
            tokens.append(
                AmountToken(
                    value=value,
                    negative=parenthesized or bool(m.group("minus")),
                    symbol=m.group("sym"),
                    span=m.span(),
                    code=m.group("code"),
                )
            )
        if not tokens:
            return None
        if len(tokens) == 1:
            return tokens[0]
        if not text[tokens[-1].span[1] :].strip(" |"):
            tokens = tokens[:-1]
            if len(tokens) == 1:
                return tokens[0]
        middle = len(text) / 2
        return min(tokens, key=lambda t: abs(t.span[0] - middle))

    # -------------------------- fields --------------------------
    @staticmethod
    def _currency_for(body: str, amount: AmountToken, global_currency: str) -> str:
        by_symbol = {"€": "EUR", "£": "GBP", "₹": "INR"}
        if amount.code:
            return amount.code
        line_currency = detect_line_currency(body, "")
        if line_currency:
            return line_currency
        if amount.symbol in by_symbol:
            return by_symbol[amount.symbol]
        return global_currency

    @staticmethod
    def derive_merchant(body: str, spans: Iterable[Tuple[int, int]]) -> Optional[str]:
        out = body
        for start, end in sorted(spans, reverse=True):
            out = out[:start] + " " + out[end:]
        out = AMOUNT_RE.sub(" ", out)
        out = _LONG_CODE_RE.sub(" ", out)
        out = _BOILERPLATE_RE.sub(" ", out)
        out = _CURRENCY_WORD_RE.sub(" ", out)
        out = out.replace("|", " ")
        out = re.sub(r"\s+", " ", out).strip(" -:;,")
        if len(out) > MAX_MERCHANT_LEN:
            out = out[:MAX_MERCHANT_LEN].rstrip()
        return out or None
