"""Cross-check surrogate outputs against graph-evaluated ground truth."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from orbitval._errors import ConsistencyError
from orbitval.model._ground_truth import GroundTruth
from orbitval.model._scenarios import BASE, OPTIMISTIC

if TYPE_CHECKING:
    from orbitval.calc._protocol import CalcEngine
    from orbitval.model._surrogate import SurrogateValuationModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsistencyCheck:
    name: str
    expected: float
    actual: float
    rel_tol: float = 1e-3
    abs_tol: float = 1e-6

    @property
    def deviation(self) -> float:
        return abs(self.actual - self.expected)

    @property
    def passed(self) -> bool:
        return self.deviation <= max(self.abs_tol, self.rel_tol * abs(self.expected))

    def __str__(self) -> str:
        status = "ok" if self.passed else "FAIL"
        return f"{self.name}: expected {self.expected:.6g}, got {self.actual:.6g} [{status}]"


@dataclass(frozen=True)
class ConsistencyReport:
    checks: tuple[ConsistencyCheck, ...]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def failures(self) -> list[ConsistencyCheck]:
        return [check for check in self.checks if not check.passed]

    def raise_for_failures(self) -> None:
        failures = self.failures
        if failures:
            raise ConsistencyError("; ".join(str(check) for check in failures))


def check_consistency(
    model: SurrogateValuationModel,
    evaluator: CalcEngine,
    rel_tol: float = 1e-3,
    abs_tol: float = 1e-6,
) -> ConsistencyReport:
    """Compare the surrogate with the evaluator at every anchor it exposes.

    Checks Earth base, Earth optimistic (when the snapshot has that column),
    Mars base and the Mars option value (when its component cells exist).
    Anchors missing from the snapshot are skipped rather than failed.
    """
    truth = GroundTruth(evaluator)
    checks: list[ConsistencyCheck] = []

    def add(name: str, expected: float | None, actual: float) -> None:
        if expected is None:
            logger.debug("Skipping consistency check %s: no ground truth", name)
            return
        checks.append(ConsistencyCheck(name, expected, actual, rel_tol, abs_tol))

    earth_base = truth.earth("base")
    add("earth.base", earth_base and earth_base.value, model.calculate_earth_valuation(BASE))
    earth_optimistic = truth.earth("optimistic")
    add(
        "earth.optimistic",
        earth_optimistic and earth_optimistic.value,
        model.calculate_earth_valuation(OPTIMISTIC),
    )
    add("mars.base", truth.mars_value("base"), model.calculate_mars_valuation(BASE))
    add("mars.option.base", truth.mars_option_value("base"), model.calculate_mars_option_value(BASE))

    report = ConsistencyReport(tuple(checks))
    for check in report.failures:
        logger.debug("Consistency check failed: %s", check)
    return report
