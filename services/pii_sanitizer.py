from __future__ import annotations

import re
from typing import Iterable, List, Optional, Pattern, Sequence

from services.line_preparer import NumberedLine


EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
CARD_RE = re.compile(r"\b(?:\d{4}[ \-]?){3}\d{4}\b")
LONG_DIGITS_RE = re.compile(r"\b\d(?:[ \-]?\d){7,}\b")
PHONE_RE = re.compile(r"\+?\d[\d \-()]{7,}\d")
DOTTED_PHONE_RE = re.compile(r"\b\d{1,4}(?:\.\d{1,4}){2,}\b")
LABEL_RE = re.compile(r"\b(Name|Customer|Holder|Owner)\s*:\s*[^\n]+", re.IGNORECASE)

# Calendar dates carry 8 digits but are needed downstream; they are shielded
# from the digit-run and phone rules when they name a real day and are not
# part of a longer separated digit run.
_DATE_TOKEN_RE = re.compile(
    r"(?<!\d[-/.])\b(?:(?P<y1>(?:19|20)\d{2})[-/.](?P<m1>\d{1,2})[-/.](?P<d1>\d{1,2})"
    r"|(?P<a2>\d{1,2})[-/.](?P<b2>\d{1,2})[-/.](?P<y2>(?:19|20)?\d{2}))\b(?![-/.]?\d)"
)
_SHIELD = "\x00"
_SHIELD_RE = re.compile(r"\x00(\d+)\x00")
_MIN_PHONE_DIGITS = 7
# Dotted groups also shape European thousands ("1.234.567")
_MIN_DOTTED_DIGITS = 8


def _is_calendar_date(m: re.Match) -> bool:
    if m.group("y1"):
        month, day = int(m.group("m1")), int(m.group("d1"))
        return 1 <= month <= 12 and 1 <= day <= 31
    a, b = int(m.group("a2")), int(m.group("b2"))
    return (1 <= a <= 31 and 1 <= b <= 12) or (1 <= a <= 12 and 1 <= b <= 31)


class PiiSanitizer:
    """
    Masks personal data in statement text before it leaves the process.

    Rules run in a fixed order: emails, card numbers, other long digit runs,
    phone numbers, labelled name fields, then caller-supplied terms. Card
    numbers are handled before the generic digit-run rule so a card is
    reported as [CARD] rather than [NUM].
    """

    def __init__(
        self,
        extra_terms: Optional[Sequence[str]] = None,
        extra_patterns: Optional[Sequence[str]] = None,
    ) -> None:
        self.extra_terms = [t for t in (extra_terms or []) if t and t.strip()]
        self._extra_res: List[Pattern[str]] = [
            re.compile(re.escape(t.strip()), re.IGNORECASE) for t in self.extra_terms
        ]
        for p in extra_patterns or []:
            self._extra_res.append(re.compile(p, re.IGNORECASE))

    @classmethod
    def from_settings(cls, settings=None) -> "PiiSanitizer":  # type: ignore[no-untyped-def]
        if settings is None:
            from settings.config import settings as app_settings
            settings = app_settings
        return cls(extra_terms=settings.extra_redact_terms)

    def sanitize(self, text: str) -> str:
        """Mask one block of text; rules are applied line by line."""
        return "\n".join(self._sanitize_line(line) for line in (text or "").split("\n"))

    def sanitize_lines(self, lines: Iterable[NumberedLine]) -> List[NumberedLine]:
        return [NumberedLine(index=line.index, text=self._sanitize_line(line.text)) for line in lines]

    # -------------------------- helpers --------------------------
    def _sanitize_line(self, line: str) -> str:
        # NUL never carries meaning in statement text and marks shielded dates below
        out = EMAIL_RE.sub("[EMAIL]", line.replace(_SHIELD, ""))

        shielded: List[str] = []

        def _shield(m: re.Match) -> str:
            if not _is_calendar_date(m):
                return m.group(0)
            shielded.append(m.group(0))
            return f"{_SHIELD}{len(shielded) - 1}{_SHIELD}"

        out = _DATE_TOKEN_RE.sub(_shield, out)
        out = CARD_RE.sub("[CARD]", out)
        out = LONG_DIGITS_RE.sub("[NUM]", out)

        def _sub_phone(m: re.Match) -> str:
            if sum(ch.isdigit() for ch in m.group(0)) < _MIN_PHONE_DIGITS:
                return m.group(0)
            return "[PHONE]"

        out = PHONE_RE.sub(_sub_phone, out)
        out = DOTTED_PHONE_RE.sub(
            lambda m: "[PHONE]" if sum(ch.isdigit() for ch in m.group(0)) >= _MIN_DOTTED_DIGITS else m.group(0),
            out,
        )

        out = _SHIELD_RE.sub(lambda m: shielded[int(m.group(1))], out)

        out = LABEL_RE.sub(lambda m: f"{m.group(1)}: [REDACTED]", out)
        for pattern in self._extra_res:
            out = pattern.sub("[REDACTED]", out)
        return out
