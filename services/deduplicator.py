from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Sequence, Tuple

from schemas.expense import CandidateExpense
from services.sign_normalizer import is_refund_like


DedupeKey = Tuple[str, str, str, int, str]


def normalize_identifier(value: str) -> str:
    s = re.sub(r"\d+", "", value.upper())
    s = re.sub(r"[^A-Z]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()[:24]


def dedupe_key(expense: CandidateExpense) -> DedupeKey:
    """
    (line_index or "N", date, currency, |amount| in cents, merchant-or-note identifier).
    The line index comes first so two real transactions that look identical
    but sit on different statement lines never share a key.
    """
    cents = int((abs(expense.amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    merchant_norm = normalize_identifier(expense.merchant) if expense.merchant else ""
    note_norm = normalize_identifier(expense.note) if expense.note else ""
    line = str(expense.line_index) if expense.line_index is not None else "N"
    return (line, expense.occurred_on.isoformat(), expense.currency.upper(), cents, merchant_norm or note_norm)


def _as_refund(expense: CandidateExpense) -> CandidateExpense:
    if expense.amount < 0:
        return expense
    return expense.model_copy(update={"amount": -abs(expense.amount)})


def pick_preferred(a: CandidateExpense, b: CandidateExpense) -> CandidateExpense:
    """Choose between two extractions of the same line; `a` is the one seen first."""
    a_neg, b_neg = a.amount < 0, b.amount < 0
    a_refund = is_refund_like(a.merchant, a.note)
    b_refund = is_refund_like(b.merchant, b.note)

    if a_refund != b_refund:
        return _as_refund(a if a_refund else b)
    if bool(a.direction) != bool(b.direction):
        return a if a.direction else b
    if a_neg != b_neg:
        if a_refund or b_refund:
            return a if a_neg else b
        return b if a_neg else a
    if bool(a.merchant) != bool(b.merchant):
        return a if a.merchant else b
    if bool(a.note) != bool(b.note):
        return a if a.note else b
    if bool(a.category) != bool(b.category):
        return a if a.category else b
    a_chunk, b_chunk = a.source_chunk or 0, b.source_chunk or 0
    if a_chunk != b_chunk:
        return a if a_chunk > b_chunk else b
    return a


def dedupe_expenses(expenses: Sequence[CandidateExpense]) -> List[CandidateExpense]:
    """Collapse repeated extractions of one source line, keeping first-seen order."""
    groups: Dict[DedupeKey, CandidateExpense] = {}
    for expense in expenses:
        key = dedupe_key(expense)
        existing = groups.get(key)
        groups[key] = expense if existing is None else pick_preferred(existing, expense)
    return list(groups.values())
