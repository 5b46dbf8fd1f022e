"""orbitval: workbook snapshot evaluator and calibrated valuation surrogate.

Usage::

    from orbitval import load_snapshot, SnapshotEvaluator, SurrogateValuationModel

    # Resolve cells straight from the captured workbook
    evaluator = SnapshotEvaluator(load_snapshot("model.json"))
    evaluator.get_cell_value("Earth", "O153")

    # Fast what-if valuation (billions)
    model = SurrogateValuationModel.from_snapshot(evaluator)
    model.calculate_earth_valuation({"earth": {"starlinkPenetration": 0.2}})
"""

from orbitval._errors import CircularDependency, ConsistencyError, MalformedSnapshot, OrbitvalError
from orbitval._snapshot import Cell, Sheet, Snapshot, load_snapshot
from orbitval.calc import SnapshotEvaluator
from orbitval.model import (
    SCENARIOS,
    SurrogateParameters,
    SurrogateValuationModel,
    calculate_earth_valuation,
    calculate_mars_option_value,
    calculate_mars_valuation,
    calculate_total_enterprise_value,
    check_consistency,
    detect_scenario,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Cell",
    "CircularDependency",
    "ConsistencyError",
    "MalformedSnapshot",
    "OrbitvalError",
    "SCENARIOS",
    "Sheet",
    "Snapshot",
    "SnapshotEvaluator",
    "SurrogateParameters",
    "SurrogateValuationModel",
    "calculate_earth_valuation",
    "calculate_mars_option_value",
    "calculate_mars_valuation",
    "calculate_total_enterprise_value",
    "check_consistency",
    "detect_scenario",
    "load_snapshot",
]
