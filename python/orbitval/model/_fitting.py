"""Least-squares fit of calibration exponents against known scenarios."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from functools import lru_cache

import numpy as np

from orbitval.model._calibration import CalibrationPoint, CalibrationTable
from orbitval.model._params import BaselineAnchors
from orbitval.model._scenarios import optimistic_point
from orbitval.model._surrogate import NO_BOOTSTRAP_PENALTY, earth_breakdown, mars_multiplier_raw

logger = logging.getLogger(__name__)

# Raw multipliers this close to 1 carry no information about the exponent
_MIN_LOG = 1e-9

DEFAULT_CALIBRATION_VERSION = "builtin-optimistic-v1"


def _collect(xs: list[float], ys: list[float], raw: float, target: float) -> None:
    if raw > 0 and target > 0 and abs(math.log(raw)) > _MIN_LOG:
        xs.append(math.log(raw))
        ys.append(math.log(target))


def _fit_exponent(xs: list[float], ys: list[float]) -> float:
    """Solve ``ys = k * xs`` for k; 1.0 when no point constrains it."""
    if not xs:
        return 1.0
    a = np.asarray(xs, dtype=float).reshape(-1, 1)
    b = np.asarray(ys, dtype=float)
    solution, *_ = np.linalg.lstsq(a, b, rcond=None)
    return float(solution[0])


def fit_calibration(
    points: Iterable[CalibrationPoint],
    anchors: BaselineAnchors,
    version: str = "fitted",
) -> CalibrationTable:
    """Fit a calibration table so the surrogate tracks *points*.

    Each exponent is solved by least squares through the origin in log
    space: ``log(target / anchor) = exponent * log(raw multiplier)``. The
    value exponent is fitted after revenue and cost, against the
    pre-discount value those exponents produce.
    """
    points = list(points)
    rev_x: list[float] = []
    rev_y: list[float] = []
    cost_x: list[float] = []
    cost_y: list[float] = []
    mars_x: list[float] = []
    mars_y: list[float] = []

    for point in points:
        if point.earth is not None:
            b = earth_breakdown(point.parameters, anchors)
            _collect(rev_x, rev_y, b.revenue_multiplier_raw, point.earth.revenue / anchors.earth.revenue)
            _collect(cost_x, cost_y, b.cost_multiplier_raw, point.earth.costs / anchors.earth.costs)
        if point.mars_value is not None:
            penalty = 1.0 if point.parameters.mars.industrial_bootstrap else NO_BOOTSTRAP_PENALTY
            _collect(
                mars_x,
                mars_y,
                mars_multiplier_raw(point.parameters),
                point.mars_value / (anchors.mars_value * penalty),
            )

    partial = CalibrationTable(
        version=version,
        revenue_exponent=_fit_exponent(rev_x, rev_y),
        cost_exponent=_fit_exponent(cost_x, cost_y),
    )

    value_x: list[float] = []
    value_y: list[float] = []
    for point in points:
        if point.earth is None:
            continue
        b = earth_breakdown(point.parameters, anchors, partial)
        if b.pre_discount_value > 0:
            _collect(value_x, value_y, b.financial_factor_raw, point.earth.value / b.pre_discount_value)

    table = CalibrationTable(
        version=version,
        revenue_exponent=partial.revenue_exponent,
        cost_exponent=partial.cost_exponent,
        value_exponent=_fit_exponent(value_x, value_y),
        mars_exponent=_fit_exponent(mars_x, mars_y),
        points=tuple(p.name for p in points),
    )
    logger.debug("Fitted calibration %s", table)
    return table


@lru_cache(maxsize=8)
def default_calibration(anchors: BaselineAnchors | None = None) -> CalibrationTable:
    """Calibration fitted to the built-in optimistic scenario."""
    anchors = anchors or BaselineAnchors()
    return fit_calibration([optimistic_point(anchors)], anchors, version=DEFAULT_CALIBRATION_VERSION)
