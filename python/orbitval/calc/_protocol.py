"""CalcEngine protocol, key-output cell map and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

CellResult = float | int | str | bool | None


@dataclass(frozen=True)
class KeyOutputCells:
    """Where the headline valuation outputs live in the workbook.

    Earth: revenue = SUM(O116:O118), costs = SUM(O142:O143),
    taxes = (O146 + O150) * O119, value = O119 - O144 - O152.
    Mars: value is the cumulative valuation row, revenue/costs the
    cumulative rows feeding the option value (value + revenue - costs).
    The ``*_optimistic_column`` columns hold the optimistic scenario.
    """

    earth_sheet: str = "Earth"
    earth_base_column: str = "O"
    earth_optimistic_column: str = "Y"
    earth_revenue_row: int = 119
    earth_costs_row: int = 144
    earth_taxes_row: int = 152
    earth_value_row: int = 153
    mars_sheet: str = "Mars"
    mars_base_column: str = "K"
    mars_optimistic_column: str = "U"
    mars_value_row: int = 54
    mars_revenue_row: int = 8
    mars_costs_row: int = 27


@dataclass(frozen=True)
class EarthOutputs:
    revenue: CellResult = None
    costs: CellResult = None
    taxes: CellResult = None
    value: CellResult = None


@dataclass(frozen=True)
class MarsOutputs:
    value: CellResult = None
    revenue: CellResult = None
    costs: CellResult = None


@dataclass(frozen=True)
class KeyOutputs:
    """Raw (workbook-unit) anchor values; None where a cell is missing."""

    earth: EarthOutputs = field(default_factory=EarthOutputs)
    earth_optimistic: EarthOutputs = field(default_factory=EarthOutputs)
    mars: MarsOutputs = field(default_factory=MarsOutputs)
    mars_optimistic: MarsOutputs = field(default_factory=MarsOutputs)


@dataclass(frozen=True)
class FormulaCoverage:
    """How much of a snapshot's formula population the grammar covers."""

    total: int
    supported: int
    unsupported_by_function: dict[str, int] = field(default_factory=dict)

    @property
    def unsupported(self) -> int:
        return self.total - self.supported

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.supported / self.total


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for snapshot evaluators."""

    def get_cell_value(self, sheet: str, ref: str) -> CellResult:
        """Resolve one cell, evaluating its formula on demand."""
        ...

    def calculate(self) -> dict[str, CellResult]:
        """Evaluate all formula cells in topological order."""
        ...

    def get_key_outputs(self) -> KeyOutputs:
        """Headline anchor values used to calibrate the surrogate."""
        ...

    def clear_cache(self) -> None:
        """Drop every memoized value."""
        ...
