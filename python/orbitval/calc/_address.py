"""Address resolver: A1 references, ranges and cross-sheet syntax."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from orbitval._utils import column_index, column_letter

if TYPE_CHECKING:
    from orbitval._snapshot import Snapshot

# Optional sheet prefix: 'Quoted Name'! or Bare_Name!
_SHEET_PREFIX = r"(?:'(?P<qsheet>[^']+)'!|(?P<sheet>[A-Za-z0-9_.]+)!)"
_CELL_REF_RE = re.compile(
    rf"^(?:{_SHEET_PREFIX})?(?P<cabs>\$?)(?P<col>[A-Za-z]{{1,3}})(?P<rabs>\$?)(?P<row>\d+)$"
)


@dataclass(frozen=True)
class CellAddress:
    """A parsed cell reference. ``sheet`` is None for same-sheet refs."""

    sheet: str | None
    column: int
    row: int
    column_absolute: bool = False
    row_absolute: bool = False

    @property
    def a1(self) -> str:
        """Plain A1 form without sheet or dollar markers."""
        return cell_ref_from_col_row(self.column, self.row)

    def key(self, current_sheet: str) -> str:
        """Canonical ``"Sheet!A1"`` cache/graph key."""
        return f"{self.sheet or current_sheet}!{self.a1}"

    def __str__(self) -> str:
        ref = (
            f"{'$' if self.column_absolute else ''}{column_letter(self.column)}"
            f"{'$' if self.row_absolute else ''}{self.row}"
        )
        return f"{self.sheet}!{ref}" if self.sheet else ref


@dataclass(frozen=True)
class CellRange:
    """Inclusive rectangle between two addresses."""

    start: CellAddress
    end: CellAddress

    def normalized(self) -> CellRange:
        """Return a range whose start is the top-left corner."""
        c_min, c_max = sorted((self.start.column, self.end.column))
        r_min, r_max = sorted((self.start.row, self.end.row))
        sheet = self.start.sheet
        return CellRange(CellAddress(sheet, c_min, r_min), CellAddress(sheet, c_max, r_max))

    def addresses(self) -> list[CellAddress]:
        """Every address in the rectangle, row by row."""
        norm = self.normalized()
        sheet = norm.start.sheet
        return [
            CellAddress(sheet, col, row)
            for row in range(norm.start.row, norm.end.row + 1)
            for col in range(norm.start.column, norm.end.column + 1)
        ]

    def __str__(self) -> str:
        end = CellAddress(None, self.end.column, self.end.row,
                          self.end.column_absolute, self.end.row_absolute)
        return f"{self.start}:{end}"


def split_sheet_ref(ref: str) -> tuple[str | None, str]:
    """``"Earth!O153"`` -> ``("Earth", "O153")``; no prefix -> ``(None, ref)``."""
    if "!" not in ref:
        return None, ref
    sheet, cell = ref.rsplit("!", 1)
    return sheet.strip().strip("'"), cell


def parse_cell_ref(ref: str) -> CellAddress | None:
    """Parse ``A1``, ``$A$1``, ``A$1``, ``$A1`` with an optional sheet prefix.

    Returns None for anything malformed instead of raising.
    """
    if not isinstance(ref, str):
        return None
    m = _CELL_REF_RE.match(ref.strip())
    if not m:
        return None
    row = int(m.group("row"))
    if row < 1:
        return None
    return CellAddress(
        sheet=m.group("qsheet") or m.group("sheet"),
        column=column_index(m.group("col")),
        row=row,
        column_absolute=m.group("cabs") == "$",
        row_absolute=m.group("rabs") == "$",
    )


def cell_ref_from_col_row(col: int, row: int) -> str:
    """Inverse of :func:`parse_cell_ref` for the plain A1 form."""
    if row < 1:
        raise ValueError(f"Row must be >= 1, got {row}")
    return f"{column_letter(col)}{row}"


def parse_cell_range(range_ref: str) -> CellRange | None:
    """Parse ``A1:B5`` (sheet prefix allowed on the start) into a range."""
    if not isinstance(range_ref, str) or range_ref.count(":") != 1:
        return None
    left, right = range_ref.split(":")
    start = parse_cell_ref(left)
    end = parse_cell_ref(right)
    if start is None or end is None:
        return None
    if end.sheet is not None and end.sheet != start.sheet:
        return None
    end = CellAddress(start.sheet, end.column, end.row, end.column_absolute, end.row_absolute)
    return CellRange(start, end)


def parse_range(range_ref: str) -> list[CellAddress] | None:
    """Enumerate every address in ``start:end`` inclusive (reversed ends are fine)."""
    rng = parse_cell_range(range_ref)
    if rng is None:
        return None
    return rng.addresses()


def resolve_cross_sheet(ref: str, snapshot: Snapshot) -> CellAddress | None:
    """Resolve ``Sheet!A1`` against a snapshot. Unknown sheet -> None."""
    addr = parse_cell_ref(ref)
    if addr is None or addr.sheet is None or addr.sheet not in snapshot:
        return None
    return addr
