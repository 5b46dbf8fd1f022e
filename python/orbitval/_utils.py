"""A1 coordinate helpers shared by the snapshot and the calc engine."""

from __future__ import annotations

import re

_A1_RE = re.compile(r"^([A-Za-z]{1,3})(\d+)$")


def column_letter(index: int) -> str:
    """1-based column index -> letters (1 -> "A", 27 -> "AA")."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Column letters -> 1-based index ("A" -> 1, "AA" -> 27)."""
    if not letters or not letters.isalpha():
        raise ValueError(f"Invalid column letters: {letters!r}")
    num = 0
    for ch in letters.upper():
        num = num * 26 + (ord(ch) - 64)
    return num


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """``"B3"`` -> ``(3, 2)``. Dollar markers must already be stripped."""
    m = _A1_RE.match(ref)
    if not m or int(m.group(2)) < 1:
        raise ValueError(f"Invalid A1 reference: {ref!r}")
    return int(m.group(2)), column_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """``(3, 2)`` -> ``"B3"``."""
    if row < 1:
        raise ValueError(f"Row must be >= 1, got {row}")
    return f"{column_letter(col)}{row}"
