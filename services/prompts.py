from __future__ import annotations

import hashlib
from typing import Any, Dict


SYSTEM_PROMPT = (
    "You are a finance assistant. Extract all expense transactions from provided bank/credit card "
    "statement text. Return structured JSON only. Do not include any personally identifiable "
    "information (PII) and do not extract account summaries."
)

_RULES = """Rules:
- Output an "expenses" array that follows the order of the numbered lines. Do not sort or group.
- Use ISO date YYYY-MM-DD. If two dates appear (e.g., transaction date and posting date), use the LATER/POSTED date for occurred_on. Do NOT put any dates in the note.
- Currency codes must be ISO 4217 (e.g., CAD, USD, INR).
- If merchant is missing, omit the field.
- If payment method is missing, omit the field.
- Category is optional; guess only if obvious, else omit.
- Note content: Make it a short, human-friendly purpose (e.g., "Car rental", "Dinner at hotel"). Do NOT include any dates or phrases like "Transaction date ...; Posting date ..." in the note.
- Signs: Purchases/charges must be positive; refunds/credits/reversals/cashbacks must be negative. There can be MANY negative transactions - do not drop them. Preserve minus signs and parentheses exactly.
- Set "direction" to "debit" for purchases/charges and "credit" for refunds/credits/reversals/cashbacks when it is clear from the line.
- Include very small amounts.
- Only extract transactions explicitly present in the lines. Do not infer, summarize, or aggregate.
- IMPORTANT: If the same date/merchant/amount appears as separate numbered lines multiple times, output SEPARATE objects for each occurrence with its line_index. Do NOT deduplicate or merge counts.
- Include "line_index" for each transaction: the NUMBER (1-based) of the line that contains the amount/transaction.
- Output must conform to the provided JSON schema."""

_SOURCE_LABELS = {
    "pdf": "a bank/credit card statement (PDF)",
    "spreadsheet": "a bank/credit card statement (from an Excel/CSV export)",
    "text": "a bank/credit card statement",
}


def build_user_prompt(numbered_text: str, source: str = "pdf") -> str:
    label = _SOURCE_LABELS.get(source, _SOURCE_LABELS["text"])
    return (
        f"The input below is a list of NUMBERED LINES from {label}. "
        "Extract transactions strictly from these lines.\n\n"
        f"{numbered_text}\n\n{_RULES}"
    )


EXPENSES_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "expenses": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "amount": {"type": "number"},
                    "currency": {"type": "string"},
                    "direction": {"type": "string", "enum": ["debit", "credit"]},
                    "merchant": {"type": "string"},
                    "payment_method": {"type": "string"},
                    "note": {"type": "string"},
                    "occurred_on": {"type": "string"},
                    "category": {"type": "string"},
                    "line_index": {"type": "integer"},
                },
                "required": ["amount", "currency", "occurred_on", "line_index"],
            },
        }
    },
    "required": ["expenses"],
}


def response_format() -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": "expenses_schema", "schema": EXPENSES_JSON_SCHEMA},
    }


def prompt_hash(text: str) -> str:
    """Short fingerprint of a payload; logged in place of the text itself."""
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()[:12]
