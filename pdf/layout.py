from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from services import config


@dataclass(frozen=True)
class PositionedTextFragment:
    """One run of text from a page's text layer. `y` is measured from the top of the page."""

    text: str
    x: float
    y: float
    width: float
    height: float
    page: int

    @property
    def right(self) -> float:
        return self.x + self.width


TableRow = List[str]


def group_rows(
    fragments: Iterable[PositionedTextFragment],
    y_tolerance: float = config.ROW_Y_TOLERANCE,
) -> List[List[PositionedTextFragment]]:
    """
    Group fragments into printed lines by baseline proximity.
    A fragment joins the current row when its y is within `y_tolerance` of the
    row's first fragment; each row is returned sorted left to right.
    """
    ordered = sorted((f for f in fragments if f.text), key=lambda f: (f.y, f.x))
    rows: List[List[PositionedTextFragment]] = []
    for frag in ordered:
        if rows and abs(frag.y - rows[-1][0].y) <= y_tolerance:
            rows[-1].append(frag)
        else:
            rows.append([frag])
    for row in rows:
        row.sort(key=lambda f: f.x)
    return rows


def split_columns(
    row: List[PositionedTextFragment],
    column_gap: float = config.COLUMN_GAP,
    wide_gap: float = config.WIDE_GAP,
    narrow_gap: float = config.NARROW_GAP,
) -> TableRow:
    """
    Merge a row's fragments into cells. The horizontal gap is measured from the
    previous fragment's right edge:

    - gap > column_gap -> new cell
    - gap > wide_gap   -> joined with two spaces
    - gap > narrow_gap -> joined with one space
    - otherwise        -> concatenated
    """
    cells: TableRow = []
    current = ""
    last_right = 0.0
    for i, frag in enumerate(row):
        if i == 0:
            current = frag.text
            last_right = frag.right
            continue
        gap = frag.x - last_right
        if gap > column_gap:
            cells.append(current.strip())
            current = frag.text
        elif gap > wide_gap:
            current += "  " + frag.text
        elif gap > narrow_gap:
            current += " " + frag.text
        else:
            current += frag.text
        last_right = frag.right
    if current.strip():
        cells.append(current.strip())
    return cells


def fragments_to_rows(
    fragments: Iterable[PositionedTextFragment],
    y_tolerance: float = config.ROW_Y_TOLERANCE,
    column_gap: float = config.COLUMN_GAP,
) -> List[TableRow]:
    """Build one page's row/column grid; rows without any non-empty cell are dropped."""
    grid: List[TableRow] = []
    for row in group_rows(fragments, y_tolerance=y_tolerance):
        cells = split_columns(row, column_gap=column_gap)
        if any(c.strip() for c in cells):
            grid.append(cells)
    return grid
