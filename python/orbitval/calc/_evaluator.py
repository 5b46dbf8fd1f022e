"""SnapshotEvaluator: on-demand, memoized evaluation of snapshot formulas.

Every call is a pure function of the immutable :class:`Snapshot` plus the
evaluator's private :class:`EvaluationCache`. Concurrent sessions must each
use their own evaluator (see :meth:`SnapshotEvaluator.new_session`); the
snapshot itself is shared freely.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

from orbitval._errors import CircularDependency
from orbitval.calc._address import parse_cell_ref, parse_range, split_sheet_ref
from orbitval.calc._functions import (
    FunctionRegistry,
    binary_op,
    max_values,
    min_values,
    sum_values,
)
from orbitval.calc._graph import DependencyGraph
from orbitval.calc._parser import (
    BinaryOp,
    CellRef,
    CrossSheetRef,
    FormulaNode,
    FormulaParser,
    FunctionCall,
    Literal,
    RangeRef,
    Unsupported,
    node_references,
    parse_functions,
)
from orbitval.calc._protocol import (
    CellResult,
    EarthOutputs,
    FormulaCoverage,
    KeyOutputCells,
    KeyOutputs,
    MarsOutputs,
)

if TYPE_CHECKING:
    from orbitval._snapshot import Cell, Snapshot

logger = logging.getLogger(__name__)


class EvaluationCache:
    """Memoized ``"Sheet!A1" -> value`` map. Only ever cleared as a whole."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, CellResult] = {}

    def get(self, key: str, default: CellResult = None) -> CellResult:
        return self._values.get(key, default)

    def set(self, key: str, value: CellResult) -> None:
        self._values[key] = value

    def clear(self) -> None:
        self._values = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


def _split_key(key: str) -> tuple[str, str]:
    sheet, ref = key.rsplit("!", 1)
    return sheet, ref


class SnapshotEvaluator:
    """Evaluates the supported formula subset over a snapshot.

    Usage::

        evaluator = SnapshotEvaluator(load_snapshot("model.json"))
        evaluator.get_cell_value("Earth", "O153")
        evaluator.get_key_outputs()

    By default a cell's stored value wins over its formula, since the import
    step captures both. ``recompute=True`` evaluates every supported formula
    from its inputs instead. Formula cells without a stored value are always
    evaluated.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        cache: EvaluationCache | None = None,
        registry: FunctionRegistry | None = None,
        *,
        recompute: bool = False,
        key_cells: KeyOutputCells | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._cache = cache if cache is not None else EvaluationCache()
        self._functions = registry if registry is not None else FunctionRegistry()
        self._parser = FormulaParser(self._functions.specs)
        self._recompute = recompute
        self._key_cells = key_cells or KeyOutputCells()
        self._graph: DependencyGraph | None = None

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def cache(self) -> EvaluationCache:
        return self._cache

    @property
    def graph(self) -> DependencyGraph:
        if self._graph is None:
            self._graph = DependencyGraph.from_snapshot(self._snapshot)
        return self._graph

    def new_session(self) -> SnapshotEvaluator:
        """Evaluator over the same snapshot with its own private cache."""
        session = SnapshotEvaluator(
            self._snapshot,
            registry=self._functions,
            recompute=self._recompute,
            key_cells=self._key_cells,
        )
        session._graph = self._graph
        return session

    def clear_cache(self) -> None:
        """Full reset. Call whenever the snapshot behind this session changes."""
        self._cache = EvaluationCache()

    # ------------------------------------------------------------------
    # Cell resolution
    # ------------------------------------------------------------------

    def get_cell_value(self, sheet: str, ref: str) -> CellResult:
        """Value of ``sheet!ref``; ``ref`` may carry its own sheet prefix.

        Missing sheets/cells and malformed refs give None. Raises
        CircularDependency if the formula chain loops.
        """
        ref_sheet, cell_part = split_sheet_ref(ref)
        addr = parse_cell_ref(cell_part)
        if addr is None:
            return None
        return self._resolve(f"{ref_sheet or sheet}!{addr.a1}")

    def _needs_evaluation(self, cell: Cell) -> bool:
        if not cell.has_formula:
            return False
        if cell.value is None:
            return True
        # Recompute never discards a stored value it cannot reproduce
        return self._recompute and not isinstance(self._parser.parse(cell.formula or ""), Unsupported)

    def _resolve(self, key: str) -> CellResult:
        """Resolve *key* and its dependency closure, deepest first.

        Uses an explicit stack so long chains don't hit the recursion limit.
        Cells on the current path are marked in progress; meeting one again
        is a cycle.
        """
        if key in self._cache:
            return self._cache.get(key)

        stack: list[tuple[str, bool]] = [(key, False)]
        path: list[str] = []
        in_progress: set[str] = set()

        while stack:
            node, expanded = stack.pop()
            if expanded:
                path.pop()
                in_progress.discard(node)
                self._cache.set(node, self._evaluate_cell(node))
                continue
            if node in self._cache:
                continue
            if node in in_progress:
                raise CircularDependency(path[path.index(node):] + [node])

            sheet, ref = _split_key(node)
            cell = self._snapshot.get_cell(sheet, ref)
            if cell is None or not self._needs_evaluation(cell):
                self._cache.set(node, None if cell is None else cell.value)
                continue

            path.append(node)
            in_progress.add(node)
            stack.append((node, True))
            tree = self._parser.parse(cell.formula or "")
            for dep in reversed(node_references(tree, sheet)):
                if dep not in self._cache:
                    stack.append((dep, False))

        return self._cache.get(key)

    def _evaluate_cell(self, key: str) -> CellResult:
        sheet, ref = _split_key(key)
        cell = self._snapshot.get_cell(sheet, ref)
        if cell is None or not cell.formula:
            return None
        tree = self._parser.parse(cell.formula)
        if isinstance(tree, Unsupported):
            logger.debug("Unsupported formula %r in %s: %s", cell.formula, key, tree.reason)
            return None
        return self._eval_node(tree, sheet)

    def _eval_node(self, node: FormulaNode, sheet: str) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, CrossSheetRef):
            if node.address.sheet not in self._snapshot:
                return None
            return self._resolve(node.address.key(sheet))
        if isinstance(node, CellRef):
            return self._resolve(node.address.key(sheet))
        if isinstance(node, RangeRef):
            return [self._resolve(a.key(sheet)) for a in node.range.addresses()]
        if isinstance(node, BinaryOp):
            return binary_op(
                self._eval_node(node.left, sheet), node.op, self._eval_node(node.right, sheet)
            )
        if isinstance(node, FunctionCall):
            return self._eval_function(node, sheet)
        return None

    def _eval_function(self, node: FunctionCall, sheet: str) -> Any:
        func = self._functions.get(node.name)
        if func is None:
            logger.debug("Unsupported function: %s", node.name)
            return None
        args = [self._eval_node(arg, sheet) for arg in node.args]
        try:
            return func(args)
        except Exception as e:
            logger.debug("Error evaluating %s: %s", node.name, e)
            return None

    # ------------------------------------------------------------------
    # Address-level aggregates
    # ------------------------------------------------------------------

    def _range_values(self, sheet: str, start: str, end: str) -> list[CellResult]:
        addresses = parse_range(f"{start}:{end}")
        if addresses is None:
            return []
        return [self._resolve(a.key(sheet)) for a in addresses]

    def sum_range(self, sheet: str, start: str, end: str) -> float:
        """Sum of numeric cells in ``start:end``; non-numeric cells count as 0."""
        return sum_values(self._range_values(sheet, start, end))

    def max_range(self, sheet: str, start: str, end: str) -> float:
        return max_values(self._range_values(sheet, start, end))

    def min_range(self, sheet: str, start: str, end: str) -> float:
        return min_values(self._range_values(sheet, start, end))

    # ------------------------------------------------------------------
    # Whole-snapshot operations
    # ------------------------------------------------------------------

    def calculate(self) -> dict[str, CellResult]:
        """Resolve every formula cell in topological order.

        Raises CircularDependency if any formula cycle exists, including
        cycles that run through unsupported formulas.
        """
        return {ref: self._resolve(ref) for ref in self.graph.topological_order()}

    def coverage(self, cell_ref: str | None = None) -> FormulaCoverage:
        """Count formula cells inside/outside the supported grammar.

        With *cell_ref* (``"Sheet!A1"``) only the formulas that cell reads
        transitively, itself included, are counted.
        """
        if cell_ref is None:
            cells = [c for name in self._snapshot.sheetnames for c in self._snapshot[name].formula_cells()]
        else:
            keys = sorted({cell_ref} | self.graph.dependency_closure(cell_ref))
            found = (self._snapshot.get_cell(*_split_key(key)) for key in keys)
            cells = [c for c in found if c is not None and c.has_formula]

        supported = 0
        gaps: Counter[str] = Counter()
        for cell in cells:
            formula = cell.formula or ""
            if not isinstance(self._parser.parse(formula), Unsupported):
                supported += 1
                continue
            unknown = [f for f in parse_functions(formula) if not self._functions.has(f)]
            for name in unknown or ["<expression>"]:
                gaps[name] += 1
        return FormulaCoverage(total=len(cells), supported=supported, unsupported_by_function=dict(gaps))

    def get_key_outputs(self) -> KeyOutputs:
        """Anchor values for the base and optimistic scenarios."""
        kc = self._key_cells

        def earth(col: str) -> EarthOutputs:
            return EarthOutputs(
                revenue=self.get_cell_value(kc.earth_sheet, f"{col}{kc.earth_revenue_row}"),
                costs=self.get_cell_value(kc.earth_sheet, f"{col}{kc.earth_costs_row}"),
                taxes=self.get_cell_value(kc.earth_sheet, f"{col}{kc.earth_taxes_row}"),
                value=self.get_cell_value(kc.earth_sheet, f"{col}{kc.earth_value_row}"),
            )

        def mars(col: str) -> MarsOutputs:
            return MarsOutputs(
                value=self.get_cell_value(kc.mars_sheet, f"{col}{kc.mars_value_row}"),
                revenue=self.get_cell_value(kc.mars_sheet, f"{col}{kc.mars_revenue_row}"),
                costs=self.get_cell_value(kc.mars_sheet, f"{col}{kc.mars_costs_row}"),
            )

        return KeyOutputs(
            earth=earth(kc.earth_base_column),
            earth_optimistic=earth(kc.earth_optimistic_column),
            mars=mars(kc.mars_base_column),
            mars_optimistic=mars(kc.mars_optimistic_column),
        )
