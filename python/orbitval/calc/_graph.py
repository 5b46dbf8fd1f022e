"""Dependency graph for formula cells with topological ordering."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from orbitval._errors import CircularDependency
from orbitval.calc._parser import all_references

if TYPE_CHECKING:
    from orbitval._snapshot import Snapshot


class DependencyGraph:
    """Tracks formula cell dependencies for evaluation ordering.

    All cell references use canonical "SheetName!A1" format. An edge
    X -> Y means X's formula reads Y.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # cell -> set of cells it reads from
        self.dependencies: dict[str, set[str]] = {}
        # cell -> set of cells that read from it (reverse edges)
        self.dependents: dict[str, set[str]] = {}
        # cell -> formula string
        self.formulas: dict[str, str] = {}

    def add_formula(self, cell_ref: str, formula: str, current_sheet: str) -> None:
        """Register a formula cell and its dependencies."""
        self.formulas[cell_ref] = formula
        refs = all_references(formula, current_sheet)

        self.dependencies[cell_ref] = set(refs)

        for ref in refs:
            self.dependents.setdefault(ref, set()).add(cell_ref)

    def topological_order(self) -> list[str]:
        """Return formula cells in evaluation order (Kahn's algorithm).

        Raises CircularDependency if a cycle is detected.
        """
        formula_cells = set(self.formulas)
        if not formula_cells:
            return []

        # Only count deps that are themselves formula cells
        in_degree: dict[str, int] = {
            cell: len(self.dependencies.get(cell, set()) & formula_cells)
            for cell in formula_cells
        }

        # Sorted seeds keep the order deterministic across runs
        queue: deque[str] = deque(sorted(c for c in formula_cells if in_degree[c] == 0))

        order: list[str] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(self.dependents.get(cell, set())):
                if dep in formula_cells:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        if len(order) != len(formula_cells):
            remaining = formula_cells - set(order)
            raise CircularDependency(self.find_cycle(remaining) or sorted(remaining))

        return order

    def find_cycle(self, candidates: set[str] | None = None) -> list[str] | None:
        """Return one cycle as a closed path ``[a, b, ..., a]``, or None."""
        cells = candidates if candidates is not None else set(self.formulas)
        done: set[str] = set()

        for root in sorted(cells):
            if root in done:
                continue
            path: list[str] = []
            on_path: set[str] = set()
            stack: list[tuple[str, bool]] = [(root, False)]
            while stack:
                cell, finished = stack.pop()
                if finished:
                    path.pop()
                    on_path.discard(cell)
                    done.add(cell)
                    continue
                if cell in on_path:
                    return path[path.index(cell):] + [cell]
                if cell in done or cell not in self.formulas:
                    continue
                path.append(cell)
                on_path.add(cell)
                stack.append((cell, True))
                for dep in sorted(self.dependencies.get(cell, set()), reverse=True):
                    stack.append((dep, False))
        return None

    def dependency_closure(self, cell_ref: str) -> set[str]:
        """Every cell *cell_ref* transitively reads (excluding itself)."""
        closure: set[str] = set()
        queue: deque[str] = deque(self.dependencies.get(cell_ref, set()))
        while queue:
            cell = queue.popleft()
            if cell in closure:
                continue
            closure.add(cell)
            queue.extend(self.dependencies.get(cell, set()) - closure)
        return closure

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> DependencyGraph:
        """Build a dependency graph by scanning all sheets for formula cells."""
        graph = cls()

        for sheet_name in snapshot.sheetnames:
            for cell in snapshot[sheet_name].formula_cells():
                graph.add_formula(f"{sheet_name}!{cell.address}", cell.formula or "", sheet_name)

        return graph
