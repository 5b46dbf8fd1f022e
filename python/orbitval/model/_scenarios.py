"""Named scenario presets and scenario detection."""

from __future__ import annotations

from orbitval.model._calibration import CalibrationPoint
from orbitval.model._params import (
    AnchorOutputs,
    BaselineAnchors,
    EarthParameters,
    FinancialParameters,
    MarsParameters,
    ParameterInput,
    SurrogateParameters,
    coerce_parameters,
)

BASE = SurrogateParameters()

OPTIMISTIC = SurrogateParameters(
    earth=EarthParameters(
        starlink_penetration=0.25,
        launch_volume=200.0,
        bandwidth_price_decline=0.05,
        launch_price_decline=0.05,
    ),
    mars=MarsParameters(first_colony_year=2028, population_growth=0.70),
)

BEAR = SurrogateParameters(
    earth=EarthParameters(
        starlink_penetration=0.12,
        launch_volume=120.0,
        bandwidth_price_decline=0.11,
    ),
    financial=FinancialParameters(discount_rate=0.14),
)

SCENARIOS: dict[str, SurrogateParameters] = {
    "base": BASE,
    "optimistic": OPTIMISTIC,
    "bear": BEAR,
}

# Optimistic Earth outputs relative to the baseline anchor
OPTIMISTIC_EARTH_RATIOS = AnchorOutputs(
    revenue=3.38,
    costs=0.30,
    taxes=3.38,
    value=452.45 / 124.48,
)


def optimistic_point(anchors: BaselineAnchors) -> CalibrationPoint:
    """Built-in optimistic calibration point scaled onto *anchors*."""
    earth = anchors.earth
    return CalibrationPoint(
        name="optimistic",
        parameters=OPTIMISTIC,
        earth=AnchorOutputs(
            revenue=earth.revenue * OPTIMISTIC_EARTH_RATIOS.revenue,
            costs=earth.costs * OPTIMISTIC_EARTH_RATIOS.costs,
            taxes=earth.taxes * OPTIMISTIC_EARTH_RATIOS.taxes,
            value=earth.value * OPTIMISTIC_EARTH_RATIOS.value,
        ),
    )


def detect_scenario(inputs: ParameterInput) -> str:
    """Classify inputs as ``"optimistic"``, ``"bear"`` or ``"base"``."""
    params = coerce_parameters(inputs)
    e, m, f = params.earth, params.mars, params.financial

    earth_optimistic = (
        e.starlink_penetration >= 0.20
        and e.launch_volume >= 180
        and e.bandwidth_price_decline <= 0.06
    )
    mars_optimistic = m.first_colony_year <= 2029 and m.population_growth >= 0.65
    if earth_optimistic or mars_optimistic:
        return "optimistic"

    if (
        e.starlink_penetration <= 0.12
        and e.launch_volume <= 120
        and e.bandwidth_price_decline >= 0.11
        and f.discount_rate >= 0.14
    ):
        return "bear"
    return "base"
