"""orbitval.model - Calibrated closed-form valuation surrogate."""

from __future__ import annotations

from functools import lru_cache

from orbitval.model._calibration import IDENTITY_CALIBRATION, CalibrationPoint, CalibrationTable
from orbitval.model._consistency import ConsistencyCheck, ConsistencyReport, check_consistency
from orbitval.model._fitting import default_calibration, fit_calibration
from orbitval.model._ground_truth import GroundTruth
from orbitval.model._params import (
    AnchorOutputs,
    BaselineAnchors,
    EarthParameters,
    FinancialParameters,
    MarsParameters,
    ParameterInput,
    SurrogateParameters,
)
from orbitval.model._scenarios import SCENARIOS, detect_scenario
from orbitval.model._surrogate import EarthBreakdown, SurrogateValuationModel


@lru_cache(maxsize=1)
def default_model() -> SurrogateValuationModel:
    """Shared model on the built-in anchors and default calibration."""
    return SurrogateValuationModel()


def calculate_earth_valuation(inputs: ParameterInput = None) -> float:
    return default_model().calculate_earth_valuation(inputs)


def calculate_mars_valuation(inputs: ParameterInput = None) -> float:
    return default_model().calculate_mars_valuation(inputs)


def calculate_mars_option_value(inputs: ParameterInput = None) -> float:
    return default_model().calculate_mars_option_value(inputs)


def calculate_total_enterprise_value(inputs: ParameterInput = None) -> float:
    return default_model().calculate_total_enterprise_value(inputs)


__all__ = [
    "AnchorOutputs",
    "BaselineAnchors",
    "CalibrationPoint",
    "CalibrationTable",
    "ConsistencyCheck",
    "ConsistencyReport",
    "EarthBreakdown",
    "EarthParameters",
    "FinancialParameters",
    "GroundTruth",
    "IDENTITY_CALIBRATION",
    "MarsParameters",
    "SCENARIOS",
    "SurrogateParameters",
    "SurrogateValuationModel",
    "calculate_earth_valuation",
    "calculate_mars_option_value",
    "calculate_mars_valuation",
    "calculate_total_enterprise_value",
    "check_consistency",
    "default_calibration",
    "default_model",
    "detect_scenario",
    "fit_calibration",
]
