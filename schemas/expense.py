from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


_MINUS_VARIANTS = re.compile("[−‒–—]")


def parse_amount_value(v: Any) -> Decimal:
    """
    Coerce a model-supplied amount into a Decimal, preserving its sign.
    Accepts numbers and numeric strings such as "-12.50", "(12.50)", "$1,204.00".
    """
    if isinstance(v, bool):
        raise ValueError("amount must be numeric")
    if isinstance(v, Decimal):
        return v
    if isinstance(v, (int, float)):
        return Decimal(str(v))
    if not isinstance(v, str):
        raise ValueError("amount must be numeric")
    raw = v.strip()
    negative = raw.startswith("(") and raw.endswith(")")
    cleaned = re.sub(r"[^0-9.\-]", "", _MINUS_VARIANTS.sub("-", raw))
    if cleaned in ("", "-", ".", "-."):
        raise ValueError(f"amount is not numeric: {v!r}")
    try:
        value = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"amount is not numeric: {v!r}") from exc
    if negative and value > 0:
        value = -value
    return value


class RawExtractedExpense(BaseModel):
    """One item of the provider's `expenses` array, validated at the boundary."""

    model_config = ConfigDict(extra="ignore")

    amount: Decimal
    currency: str = Field(min_length=1, max_length=8)
    occurred_on: str = Field(min_length=8)
    line_index: int = Field(ge=1)
    direction: Optional[Literal["debit", "credit"]] = None
    merchant: Optional[str] = None
    payment_method: Optional[str] = None
    note: Optional[str] = None
    category: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v: Any) -> Decimal:
        return parse_amount_value(v)

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip().lower()
        return s or None


class ExtractionEnvelope(BaseModel):
    expenses: List[RawExtractedExpense]


class CandidateExpense(BaseModel):
    """
    A tentative transaction awaiting human review.

    `line_index`, `source_chunk` and `direction` only exist for deduplication
    and are never serialized to the caller.
    """

    amount: Decimal
    currency: str = Field(min_length=3, max_length=3)
    occurred_on: date
    merchant: Optional[str] = None
    payment_method: Optional[str] = None
    note: Optional[str] = None
    category: Optional[str] = None

    line_index: Optional[int] = Field(default=None, exclude=True)
    source_chunk: Optional[int] = Field(default=None, exclude=True)
    direction: Optional[Literal["debit", "credit"]] = Field(default=None, exclude=True)

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: str) -> str:
        return v.upper()

    @field_serializer("amount")
    def _amount_as_number(self, v: Decimal) -> float:
        return float(v)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PreviewSummary(BaseModel):
    prompt_hash: str
    length: int
    pages: int
    lines: int
    head: str
    tail: Optional[str] = None


class ParseStatementSuccess(BaseModel):
    success: Literal[True] = True
    expenses: List[Dict[str, Any]] = Field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None


class ParseStatementFailure(BaseModel):
    success: Literal[False] = False
    error: str
