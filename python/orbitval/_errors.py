"""Exceptions raised by orbitval.

Only structural problems surface as exceptions. Missing cells, unsupported
formulas and numeric domain errors degrade to ``None`` or ``0`` instead.
"""

from __future__ import annotations


class OrbitvalError(Exception):
    """Base class for orbitval errors."""


class CircularDependency(OrbitvalError, ValueError):
    """A formula cell transitively depends on itself."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular reference detected: {' -> '.join(self.cycle)}")


class MalformedSnapshot(OrbitvalError, ValueError):
    """Snapshot data does not have the ``{sheet: {cells: {ref: cell}}}`` shape."""


class ConsistencyError(OrbitvalError, AssertionError):
    """Surrogate outputs diverge from graph-evaluated ground truth."""
