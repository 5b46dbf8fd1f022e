"""Snapshot - immutable in-memory copy of a workbook's values and formulas.

The snapshot is produced by an external import step as JSON shaped like::

    {
        "Earth": {"cells": {"O119": {"value": 148130000000, "formula": "=SUM(O116:O118)"}}},
        "Mars": {"cells": {"K54": {"value": 745000000}}},
    }

It is loaded once and shared read-only by any number of evaluators.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from orbitval._errors import MalformedSnapshot

CellValue = float | int | str | bool | None

_SCALAR_TYPES = (int, float, str, bool)


def normalize_ref(ref: str) -> str:
    """Canonical in-sheet key: no dollar markers, upper case."""
    return ref.replace("$", "").strip().upper()


@dataclass(frozen=True)
class Cell:
    """A single snapshot cell. ``value`` is the stored (last computed) value."""

    address: str
    value: CellValue = None
    formula: str | None = None

    @property
    def has_formula(self) -> bool:
        return bool(self.formula)


class Sheet:
    """Read-only mapping of A1 ref -> :class:`Cell` for one sheet."""

    __slots__ = ("_name", "_cells")

    def __init__(self, name: str, cells: Mapping[str, Cell]) -> None:
        self._name = name
        self._cells: Mapping[str, Cell] = MappingProxyType(dict(cells))

    @property
    def name(self) -> str:
        return self._name

    @property
    def cells(self) -> Mapping[str, Cell]:
        return self._cells

    def get(self, ref: str) -> Cell | None:
        return self._cells.get(normalize_ref(ref))

    def formula_cells(self) -> Iterator[Cell]:
        """Cells carrying a formula, in insertion order."""
        return (c for c in self._cells.values() if c.has_formula)

    def __getitem__(self, ref: str) -> Cell:
        cell = self.get(ref)
        if cell is None:
            raise KeyError(f"Cell '{ref}' does not exist in sheet '{self._name}'")
        return cell

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, str) and normalize_ref(ref) in self._cells

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"<Sheet {self._name!r} cells={len(self._cells)}>"


class Snapshot:
    """Immutable collection of sheets. Safe to share across sessions."""

    __slots__ = ("_sheets",)

    def __init__(self, sheets: Mapping[str, Sheet]) -> None:
        self._sheets: Mapping[str, Sheet] = MappingProxyType(dict(sheets))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Snapshot:
        """Build a snapshot from the import step's JSON-shaped dict.

        Raises :class:`MalformedSnapshot` when the structure is wrong.
        """
        if not isinstance(data, Mapping):
            raise MalformedSnapshot(f"Snapshot must be a mapping, got {type(data).__name__}")

        sheets: dict[str, Sheet] = {}
        for sheet_name, sheet_data in data.items():
            if not isinstance(sheet_data, Mapping) or not isinstance(
                sheet_data.get("cells"), Mapping
            ):
                raise MalformedSnapshot(f"Sheet {sheet_name!r} has no 'cells' mapping")
            cells: dict[str, Cell] = {}
            for ref, raw in sheet_data["cells"].items():
                key = normalize_ref(str(ref))
                cells[key] = _build_cell(sheet_name, key, raw)
            sheets[str(sheet_name)] = Sheet(str(sheet_name), cells)
        return cls(sheets)

    @classmethod
    def from_json(cls, text: str) -> Snapshot:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedSnapshot(f"Snapshot is not valid JSON: {e}") from e
        return cls.from_dict(data)

    @property
    def sheetnames(self) -> list[str]:
        return list(self._sheets)

    def get_cell(self, sheet: str, ref: str) -> Cell | None:
        ws = self._sheets.get(sheet)
        if ws is None:
            return None
        return ws.get(ref)

    def __getitem__(self, name: str) -> Sheet:
        if name not in self._sheets:
            raise KeyError(f"Sheet '{name}' does not exist")
        return self._sheets[name]

    def __contains__(self, name: object) -> bool:
        return name in self._sheets

    def __iter__(self) -> Iterator[str]:
        return iter(self._sheets)

    def __repr__(self) -> str:
        return f"<Snapshot sheets={self.sheetnames}>"


def _build_cell(sheet_name: str, ref: str, raw: Any) -> Cell:
    if raw is None or isinstance(raw, _SCALAR_TYPES):
        value, formula = raw, None
    elif isinstance(raw, Mapping):
        value = raw.get("value")
        formula = raw.get("formula")
        if value is not None and not isinstance(value, _SCALAR_TYPES):
            raise MalformedSnapshot(
                f"{sheet_name}!{ref}: value must be a scalar, got {type(value).__name__}"
            )
        if formula is not None and not isinstance(formula, str):
            raise MalformedSnapshot(f"{sheet_name}!{ref}: formula must be a string")
    else:
        raise MalformedSnapshot(f"{sheet_name}!{ref}: unsupported cell payload {raw!r}")

    # Importers sometimes store the formula text as the value
    if formula is None and isinstance(value, str) and value.startswith("="):
        value, formula = None, value
    return Cell(address=ref, value=value, formula=formula or None)


def load_snapshot(filename: str | os.PathLike[str]) -> Snapshot:
    """Read a snapshot JSON file produced by the import step."""
    with open(filename, encoding="utf-8") as f:
        return Snapshot.from_json(f.read())
