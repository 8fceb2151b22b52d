from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from pdf.layout import TableRow


_WS_RE = re.compile(r"\s+")
_CTRL_RE = re.compile(r"[\x00-\x08\x0e-\x1f\x7f]")
_NUMBERED_RE = re.compile(r"^\s*(\d+)\.\s?(.*)$")


@dataclass(frozen=True)
class NumberedLine:
    index: int
    text: str

    def render(self) -> str:
        return f"{self.index}. {self.text}"


@dataclass
class PreparedPage:
    """One page's share of the globally numbered corpus."""

    page: int
    lines: List[NumberedLine] = field(default_factory=list)

    @property
    def corpus(self) -> str:
        return render_corpus(self.lines)


def normalize_line(raw: str) -> str:
    return _WS_RE.sub(" ", _CTRL_RE.sub(" ", raw)).strip()


def prepare_lines(text: str, start: int = 1) -> List[NumberedLine]:
    """
    Collapse whitespace on each line, drop blank lines and number the rest
    consecutively from `start`.
    """
    lines: List[NumberedLine] = []
    index = start
    for raw in re.split(r"\r?\n", text or ""):
        line = normalize_line(raw)
        if not line:
            continue
        lines.append(NumberedLine(index=index, text=line))
        index += 1
    return lines


def prepare_pages(page_texts: Sequence[str]) -> List[PreparedPage]:
    """Number every page's lines with one running index that is never reset per page."""
    pages: List[PreparedPage] = []
    next_index = 1
    for page_number, text in enumerate(page_texts, start=1):
        lines = prepare_lines(text, start=next_index)
        next_index += len(lines)
        pages.append(PreparedPage(page=page_number, lines=lines))
    return pages


def render_corpus(lines: Iterable[NumberedLine]) -> str:
    return "\n".join(line.render() for line in lines)


def grid_to_text(rows: Iterable[TableRow]) -> str:
    return "\n".join(" | ".join(str(c or "").strip() for c in row) for row in rows)


def parse_numbered_corpus(corpus: str) -> List[NumberedLine]:
    """Read `"<index>. <text>"` lines back; lines without a prefix are skipped."""
    lines: List[NumberedLine] = []
    for raw in (corpus or "").splitlines():
        m = _NUMBERED_RE.match(raw)
        if not m:
            continue
        lines.append(NumberedLine(index=int(m.group(1)), text=m.group(2).strip()))
    return lines
