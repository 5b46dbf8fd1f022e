"""Closed-form surrogate for the workbook's headline valuation outputs.

Every driver contributes a ratio-to-baseline factor and the factors combine
multiplicatively. The raw multipliers are exactly 1.0 at the baseline
parameter vector, so the baseline anchor is reproduced for any calibration.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import numpy as np

from orbitval.model._calibration import IDENTITY_CALIBRATION, CalibrationPoint, CalibrationTable
from orbitval.model._ground_truth import GroundTruth
from orbitval.model._params import (
    BASELINE_PARAMETERS,
    AnchorOutputs,
    BaselineAnchors,
    ParameterInput,
    SurrogateParameters,
    coerce_parameters,
)
from orbitval.model._scenarios import OPTIMISTIC

if TYPE_CHECKING:
    from orbitval.calc._protocol import CalcEngine

logger = logging.getLogger(__name__)

# Share of firm value attributed to the terminal period
TERMINAL_VALUE_PROPORTION = 0.6
DISCOUNT_ELASTICITY = 0.7
COST_MULTIPLIER_BOUNDS = (0.1, 2.0)
MIN_DISCOUNT_SPREAD = 0.01
VIABILITY_GROWTH = 1.03
REUSABILITY_DISCOUNT = 0.95
COLONY_YEAR_GROWTH = 1.10
NO_BOOTSTRAP_PENALTY = 0.1

PENETRATION_ELASTICITY = 2.0
VOLUME_ELASTICITY = 0.8
PAYLOAD_ELASTICITY = 0.6
PRODUCTION_ELASTICITY = 0.4
TURNAROUND_ELASTICITY = 0.3
SATELLITE_GBPS_ELASTICITY = 0.5
NON_STARLINK_GROWTH_ELASTICITY = 0.3
IRR_THRESHOLD_SENSITIVITY = 0.1
MARS_PAYLOAD_ELASTICITY = 0.5

_EPS = 1e-9


def _ratio(value: float, baseline: float) -> float:
    if abs(baseline) < _EPS:
        baseline = _EPS if baseline >= 0 else -_EPS
    return value / baseline


def _power(base: float, exponent: float) -> float:
    """``base ** exponent`` restricted to the real, positive branch."""
    if not base > 0:
        return 0.0
    try:
        return base**exponent
    except OverflowError:
        return math.inf


def _decline_factor(decline: float, baseline: float) -> float:
    return _ratio(1 - decline, 1 - baseline)


def _clamp_cost(value: float) -> float:
    low, high = COST_MULTIPLIER_BOUNDS
    if math.isnan(value):
        return high
    return min(high, max(low, value))


@dataclass(frozen=True)
class EarthBreakdown:
    """Every intermediate factor of one Earth valuation (money in billions)."""

    revenue_multiplier_raw: float
    cost_multiplier_raw: float
    financial_factor_raw: float
    revenue_multiplier: float
    cost_multiplier: float
    tax_multiplier: float
    discount_factor: float
    terminal_growth_factor: float
    financial_factor: float
    revenue: float
    costs: float
    taxes: float
    pre_discount_value: float
    value: float


_ZERO_BREAKDOWN = EarthBreakdown(*([0.0] * 14))


def revenue_multiplier_raw(params: SurrogateParameters) -> float:
    e = params.earth
    base = BASELINE_PARAMETERS.earth
    non_starlink_share = 1 - e.starship_launches_for_starlink
    non_starlink_growth = 1 + non_starlink_share * (
        _power(
            _ratio(e.non_starlink_launch_market_growth, base.non_starlink_launch_market_growth),
            NON_STARLINK_GROWTH_ELASTICITY,
        )
        - 1
    )
    factors = (
        _power(_ratio(e.starlink_penetration, base.starlink_penetration), PENETRATION_ELASTICITY),
        _power(_ratio(e.launch_volume, base.launch_volume), VOLUME_ELASTICITY),
        _power(_ratio(e.starship_payload_capacity, base.starship_payload_capacity), PAYLOAD_ELASTICITY),
        _power(
            _ratio(e.max_rocket_production_increase, base.max_rocket_production_increase),
            PRODUCTION_ELASTICITY,
        ),
        _power(
            _ratio(e.wrights_law_turnaround_time, base.wrights_law_turnaround_time),
            TURNAROUND_ELASTICITY,
        ),
        _power(
            _ratio(e.wrights_law_satellite_gbps, base.wrights_law_satellite_gbps),
            SATELLITE_GBPS_ELASTICITY,
        ),
        _ratio(e.realized_bandwidth_tam_multiplier, base.realized_bandwidth_tam_multiplier),
        _ratio(e.starship_launches_for_starlink, base.starship_launches_for_starlink),
        non_starlink_growth,
        1 + (e.irr_threshold_earth_to_mars - base.irr_threshold_earth_to_mars) * IRR_THRESHOLD_SENSITIVITY,
        _decline_factor(e.cash_buffer_percent, base.cash_buffer_percent),
        _decline_factor(e.bandwidth_price_decline, base.bandwidth_price_decline),
        VIABILITY_GROWTH
        ** (base.starship_commercial_viability_year - e.starship_commercial_viability_year),
    )
    return math.prod(factors)


def cost_multiplier_raw(params: SurrogateParameters) -> float:
    e = params.earth
    base = BASELINE_PARAMETERS.earth
    scale = _power(
        _ratio(e.starlink_penetration, base.starlink_penetration), PENETRATION_ELASTICITY
    ) * _power(_ratio(e.launch_volume, base.launch_volume), VOLUME_ELASTICITY)
    return (
        _ratio(1.0, scale)
        * _decline_factor(e.launch_price_decline, base.launch_price_decline)
        * REUSABILITY_DISCOUNT ** (base.starship_reusability_year - e.starship_reusability_year)
        * _decline_factor(e.wrights_law_launch_cost, base.wrights_law_launch_cost)
    )


def discount_factor(params: SurrogateParameters) -> float:
    base = BASELINE_PARAMETERS.financial
    rate = max(params.financial.discount_rate, _EPS)
    return _power(base.discount_rate / rate, DISCOUNT_ELASTICITY)


def terminal_growth_factor(params: SurrogateParameters) -> float:
    f = params.financial
    base = BASELINE_PARAMETERS.financial
    spread = max(MIN_DISCOUNT_SPREAD, f.discount_rate - f.terminal_growth)
    multiple = (f.discount_rate - base.terminal_growth) / spread
    return 1 + (multiple - 1) * TERMINAL_VALUE_PROPORTION


def mars_multiplier_raw(params: SurrogateParameters) -> float:
    """Mars drivers before calibration and before the bootstrap penalty."""
    m = params.mars
    base = BASELINE_PARAMETERS.mars
    factors = (
        COLONY_YEAR_GROWTH ** (base.first_colony_year - m.first_colony_year),
        _ratio(m.population_growth, base.population_growth),
        _ratio(1 + m.transport_cost_decline, 1 + base.transport_cost_decline),
        _ratio(base.optimus_cost_2026, max(m.optimus_cost_2026, _EPS)),
        _ratio(1 + m.optimus_annual_cost_decline, 1 + base.optimus_annual_cost_decline),
        _ratio(m.optimus_productivity_multiplier, base.optimus_productivity_multiplier),
        _ratio(1 + m.optimus_learning_rate, 1 + base.optimus_learning_rate),
        _power(
            _ratio(m.mars_payload_optimus_vs_tooling, base.mars_payload_optimus_vs_tooling),
            MARS_PAYLOAD_ELASTICITY,
        ),
    )
    return math.prod(factors)


def earth_breakdown(
    params: SurrogateParameters,
    anchors: BaselineAnchors,
    calibration: CalibrationTable = IDENTITY_CALIBRATION,
) -> EarthBreakdown:
    if params.earth.starlink_penetration <= 0:
        return _ZERO_BREAKDOWN

    anchor: AnchorOutputs = anchors.earth
    revenue_raw = revenue_multiplier_raw(params)
    cost_raw = cost_multiplier_raw(params)
    revenue_mult = _power(revenue_raw, calibration.revenue_exponent)
    cost_mult = _clamp_cost(_power(cost_raw, calibration.cost_exponent))
    tax_mult = revenue_mult

    revenue = anchor.revenue * revenue_mult
    costs = anchor.costs * cost_mult
    taxes = anchor.taxes * tax_mult
    pre_discount = revenue - costs - taxes

    discount = discount_factor(params)
    terminal = terminal_growth_factor(params)
    financial_raw = discount * terminal
    financial = _power(financial_raw, calibration.value_exponent)

    return EarthBreakdown(
        revenue_multiplier_raw=revenue_raw,
        cost_multiplier_raw=cost_raw,
        financial_factor_raw=financial_raw,
        revenue_multiplier=revenue_mult,
        cost_multiplier=cost_mult,
        tax_multiplier=tax_mult,
        discount_factor=discount,
        terminal_growth_factor=terminal,
        financial_factor=financial,
        revenue=revenue,
        costs=costs,
        taxes=taxes,
        pre_discount_value=pre_discount,
        value=max(0.0, pre_discount * financial),
    )


class SurrogateValuationModel:
    """Calibrated surrogate for Earth, Mars and total enterprise value.

    Usage::

        model = SurrogateValuationModel()
        model.calculate_earth_valuation({"earth": {"starlinkPenetration": 0.2}})

        # anchored to a workbook snapshot instead of the built-in figures
        model = SurrogateValuationModel.from_snapshot(SnapshotEvaluator(snapshot))

    All outputs are in billions. The model holds no mutable state, so one
    instance may be shared across threads.
    """

    def __init__(
        self,
        anchors: BaselineAnchors | None = None,
        calibration: CalibrationTable | None = None,
    ) -> None:
        self._anchors = anchors or BaselineAnchors()
        if calibration is None:
            from orbitval.model._fitting import default_calibration

            calibration = default_calibration(self._anchors)
        self._calibration = calibration

    @classmethod
    def from_snapshot(
        cls, evaluator: CalcEngine, *, refit: bool = True, fit_mars: bool = False
    ) -> SurrogateValuationModel:
        """Anchor the model to an evaluator's key outputs.

        With ``refit`` the calibration is solved against the snapshot's
        optimistic column when it holds Earth outputs. ``fit_mars`` also
        fits the Mars exponent against the optimistic Mars value.
        """
        from orbitval.model._fitting import default_calibration, fit_calibration

        truth = GroundTruth(evaluator)
        anchors = truth.baseline_anchors()
        if not refit:
            return cls(anchors, default_calibration(anchors))

        optimistic_earth = truth.earth("optimistic")
        optimistic_mars = truth.mars_value("optimistic") if fit_mars else None
        if optimistic_earth is None and optimistic_mars is None:
            logger.debug("No optimistic anchor in snapshot; using default calibration")
            return cls(anchors, default_calibration(anchors))

        point = CalibrationPoint(
            "snapshot-optimistic", OPTIMISTIC, earth=optimistic_earth, mars_value=optimistic_mars
        )
        return cls(anchors, fit_calibration([point], anchors, version="snapshot"))

    @property
    def anchors(self) -> BaselineAnchors:
        return self._anchors

    @property
    def calibration(self) -> CalibrationTable:
        return self._calibration

    def earth_breakdown(self, inputs: ParameterInput = None) -> EarthBreakdown:
        return earth_breakdown(coerce_parameters(inputs), self._anchors, self._calibration)

    def calculate_earth_valuation(self, inputs: ParameterInput = None) -> float:
        """Earth component value; 0 when penetration is zero or negative."""
        return self.earth_breakdown(inputs).value

    def mars_multiplier(self, inputs: ParameterInput = None) -> float:
        params = coerce_parameters(inputs)
        multiplier = _power(mars_multiplier_raw(params), self._calibration.mars_exponent)
        if not params.mars.industrial_bootstrap:
            multiplier *= NO_BOOTSTRAP_PENALTY
        return multiplier

    def calculate_mars_valuation(self, inputs: ParameterInput = None) -> float:
        return self._anchors.mars_value * self.mars_multiplier(inputs)

    def calculate_mars_option_value(self, inputs: ParameterInput = None) -> float:
        """Cumulative value + revenue - cost, scaled like the Mars valuation.

        Without the three baseline component cells this falls back to the
        Mars valuation itself, which is an approximation.
        """
        if self._anchors.mars_option_value is None:
            return self.calculate_mars_valuation(inputs)
        return self._anchors.mars_option_value * self.mars_multiplier(inputs)

    def calculate_total_enterprise_value(self, inputs: ParameterInput = None) -> float:
        params = coerce_parameters(inputs)
        base = BASELINE_PARAMETERS.financial
        dilution = self._anchors.dilution_multiplier * _decline_factor(
            params.financial.dilution_factor, base.dilution_factor
        )
        earth = self.calculate_earth_valuation(params)
        mars = self.calculate_mars_valuation(params)
        divisor = self._anchors.normalization_divisor
        if abs(divisor) < _EPS:
            divisor = 1.0
        return (earth * dilution + mars) / divisor

    def valuation(self, inputs: ParameterInput = None) -> dict[str, float]:
        params = coerce_parameters(inputs)
        return {
            "earth": self.calculate_earth_valuation(params),
            "mars": self.calculate_mars_valuation(params),
            "marsOption": self.calculate_mars_option_value(params),
            "total": self.calculate_total_enterprise_value(params),
        }

    def sweep(
        self,
        path: str,
        values: Iterable[float],
        base: ParameterInput = None,
        output: str = "earth",
    ) -> np.ndarray:
        """Evaluate one output while varying a single parameter.

        ``path`` names the parameter as ``group.field`` (camelCase or
        snake_case), e.g. ``"earth.starlinkPenetration"``.
        """
        outputs: dict[str, Callable[[SurrogateParameters], float]] = {
            "earth": self.calculate_earth_valuation,
            "mars": self.calculate_mars_valuation,
            "marsOption": self.calculate_mars_option_value,
            "total": self.calculate_total_enterprise_value,
        }
        if output not in outputs:
            raise ValueError(f"Unknown output {output!r}; expected one of {sorted(outputs)}")
        func = outputs[output]
        params = coerce_parameters(base)
        return np.array([func(params.replace(path, v)) for v in values], dtype=float)
