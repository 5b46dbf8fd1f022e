"""orbitval.calc - Formula evaluation engine for workbook snapshots."""

from orbitval.calc._address import (
    CellAddress,
    CellRange,
    cell_ref_from_col_row,
    parse_cell_range,
    parse_cell_ref,
    parse_range,
    resolve_cross_sheet,
    split_sheet_ref,
)
from orbitval.calc._evaluator import EvaluationCache, SnapshotEvaluator
from orbitval.calc._functions import SUPPORTED_FUNCTIONS, FunctionRegistry, FunctionSpec, is_supported
from orbitval.calc._graph import DependencyGraph
from orbitval.calc._parser import (
    FormulaNode,
    FormulaParser,
    Unsupported,
    all_references,
    expand_range,
    node_references,
    parse_formula,
)
from orbitval.calc._protocol import (
    CalcEngine,
    EarthOutputs,
    FormulaCoverage,
    KeyOutputCells,
    KeyOutputs,
    MarsOutputs,
)

__all__ = [
    "CalcEngine",
    "CellAddress",
    "CellRange",
    "DependencyGraph",
    "EarthOutputs",
    "EvaluationCache",
    "FormulaCoverage",
    "FormulaNode",
    "FormulaParser",
    "FunctionRegistry",
    "FunctionSpec",
    "KeyOutputCells",
    "KeyOutputs",
    "MarsOutputs",
    "SUPPORTED_FUNCTIONS",
    "SnapshotEvaluator",
    "Unsupported",
    "all_references",
    "cell_ref_from_col_row",
    "expand_range",
    "is_supported",
    "node_references",
    "parse_cell_range",
    "parse_cell_ref",
    "parse_formula",
    "parse_range",
    "resolve_cross_sheet",
    "split_sheet_ref",
]
