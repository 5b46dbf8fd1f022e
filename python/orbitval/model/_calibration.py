"""Versioned calibration tables and the (input, ground-truth) points they are fit to."""

from __future__ import annotations

from dataclasses import dataclass

from orbitval.model._params import AnchorOutputs, SurrogateParameters


@dataclass(frozen=True)
class CalibrationPoint:
    """One known scenario: surrogate inputs plus ground-truth outputs (billions).

    ``earth`` and ``mars_value`` are each optional; a point only constrains
    the exponents whose targets it carries.
    """

    name: str
    parameters: SurrogateParameters
    earth: AnchorOutputs | None = None
    mars_value: float | None = None


@dataclass(frozen=True)
class CalibrationTable:
    """Exponents applied to each raw surrogate multiplier.

    A raw multiplier is 1.0 at baseline, so any exponent leaves the baseline
    anchor untouched; the exponents only bend the curve away from it.
    """

    version: str = "identity"
    revenue_exponent: float = 1.0
    cost_exponent: float = 1.0
    value_exponent: float = 1.0
    mars_exponent: float = 1.0
    points: tuple[str, ...] = ()


IDENTITY_CALIBRATION = CalibrationTable()
