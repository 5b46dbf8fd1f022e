"""Ground-truth anchor extraction from an evaluator's key outputs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from orbitval.calc._functions import is_number
from orbitval.model._params import (
    EARTH_BASELINE_ANCHOR,
    MARS_BASELINE_VALUE,
    AnchorOutputs,
    BaselineAnchors,
)

if TYPE_CHECKING:
    from orbitval.calc._protocol import CalcEngine, EarthOutputs, MarsOutputs

logger = logging.getLogger(__name__)

# Workbook cells hold raw dollars; the surrogate works in billions
BILLION = 1e9

_SCENARIOS = ("base", "optimistic")


def _billions(value: object) -> float | None:
    if not is_number(value):
        return None
    return float(value) / BILLION  # type: ignore[arg-type]


class GroundTruth:
    """Key outputs of one snapshot, converted to billions.

    Reads the evaluator once at construction; lookups afterwards are plain
    attribute access.
    """

    def __init__(self, evaluator: CalcEngine) -> None:
        self._outputs = evaluator.get_key_outputs()

    def _earth_outputs(self, scenario: str) -> EarthOutputs:
        if scenario not in _SCENARIOS:
            raise ValueError(f"Unknown scenario {scenario!r}; expected one of {_SCENARIOS}")
        return self._outputs.earth if scenario == "base" else self._outputs.earth_optimistic

    def _mars_outputs(self, scenario: str) -> MarsOutputs:
        if scenario not in _SCENARIOS:
            raise ValueError(f"Unknown scenario {scenario!r}; expected one of {_SCENARIOS}")
        return self._outputs.mars if scenario == "base" else self._outputs.mars_optimistic

    def earth(self, scenario: str = "base") -> AnchorOutputs | None:
        """Earth revenue/costs/taxes/value, or None if a component is missing.

        A missing value cell is rebuilt as revenue - costs - taxes.
        """
        out = self._earth_outputs(scenario)
        revenue, costs, taxes = (_billions(out.revenue), _billions(out.costs), _billions(out.taxes))
        if revenue is None or costs is None or taxes is None:
            return None
        value = _billions(out.value)
        if value is None:
            value = revenue - costs - taxes
        return AnchorOutputs(revenue=revenue, costs=costs, taxes=taxes, value=value)

    def mars_value(self, scenario: str = "base") -> float | None:
        return _billions(self._mars_outputs(scenario).value)

    def mars_option_value(self, scenario: str = "base") -> float | None:
        """Cumulative value + revenue - cost; None unless all three are numeric."""
        out = self._mars_outputs(scenario)
        parts = (_billions(out.value), _billions(out.revenue), _billions(out.costs))
        if any(p is None for p in parts):
            return None
        value, revenue, costs = parts
        return value + revenue - costs  # type: ignore[operator]

    def baseline_anchors(self) -> BaselineAnchors:
        """Baseline anchors, substituting the built-in figures for missing cells."""
        earth = self.earth("base")
        if earth is None:
            logger.warning("Earth baseline outputs missing from snapshot; using built-in anchor")
            earth = EARTH_BASELINE_ANCHOR
        mars = self.mars_value("base")
        if mars is None:
            logger.warning("Mars baseline value missing from snapshot; using built-in anchor")
            mars = MARS_BASELINE_VALUE
        return BaselineAnchors(
            earth=earth,
            mars_value=mars,
            mars_option_value=self.mars_option_value("base"),
        )
