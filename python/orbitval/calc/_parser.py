"""Formula parser: regex reference extraction + recursive-descent AST parser.

The AST covers a deliberately small grammar::

    formula := call | leaf [op leaf]
    call    := NAME "(" arg ("," arg)* ")"
    arg     := leaf | ref ":" ref
    leaf    := ["+" | "-"] NUMBER | STRING | TRUE | FALSE | ref
    op      := "+" | "-" | "*" | "/"

There is no nesting and no operator precedence. Anything else parses to an
:class:`Unsupported` node so coverage gaps stay visible.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Union

from orbitval._utils import a1_to_rowcol, rowcol_to_a1
from orbitval.calc._address import CellAddress, CellRange, parse_cell_ref
from orbitval.calc._functions import SUPPORTED_FUNCTIONS, FunctionSpec

# ---------------------------------------------------------------------------
# Regex patterns for reference extraction over raw formula text
# ---------------------------------------------------------------------------

# Single cell ref: A1, $A$1, $A1, A$1 (with optional sheet prefix)
_SHEET_PREFIX = r"(?:'([^']+)'!|([A-Za-z0-9_.]+)!)"
_CELL_REF = r"\$?([A-Z]{1,3})\$?(\d+)"
_NOT_NAME = r"(?![A-Za-z0-9_(])"
_SINGLE_REF_RE = re.compile(
    rf"(?:{_SHEET_PREFIX})?{_CELL_REF}{_NOT_NAME}",
    re.IGNORECASE,
)

# Range: A1:B5 (with optional sheet prefix, applied to start only)
_RANGE_REF_RE = re.compile(
    rf"(?:{_SHEET_PREFIX})?{_CELL_REF}\s*:\s*{_CELL_REF}{_NOT_NAME}",
    re.IGNORECASE,
)

# Function names: SUM(...), IFERROR(...)
_FUNC_RE = re.compile(r"([A-Z][A-Z0-9_.]*)\s*\(", re.IGNORECASE)

# Strings in formulas (to skip refs inside string literals)
_STRING_RE = re.compile(r'"(?:[^"]|"")*"')


def _strip_strings(formula: str) -> str:
    """Remove string literals so refs inside quotes aren't matched."""
    return _STRING_RE.sub("", formula)


def parse_references(formula: str, current_sheet: str) -> list[str]:
    """Extract single cell references (not ranges) as canonical ``"Sheet!A1"``."""
    clean = _strip_strings(formula)
    refs: list[str] = []
    seen: set[str] = set()

    range_spans = [(m.start(), m.end()) for m in _RANGE_REF_RE.finditer(clean)]

    for m in _SINGLE_REF_RE.finditer(clean):
        pos = m.start()
        if any(s <= pos < e for s, e in range_spans):
            continue
        sheet = m.group(1) or m.group(2) or current_sheet
        canonical = f"{sheet}!{m.group(3).upper()}{m.group(4)}"
        if canonical not in seen:
            refs.append(canonical)
            seen.add(canonical)

    return refs


def parse_range_references(formula: str, current_sheet: str) -> list[str]:
    """Extract range references as canonical ``"Sheet!A1:B5"`` strings."""
    clean = _strip_strings(formula)
    ranges: list[str] = []
    seen: set[str] = set()

    for m in _RANGE_REF_RE.finditer(clean):
        sheet = m.group(1) or m.group(2) or current_sheet
        canonical = (
            f"{sheet}!{m.group(3).upper()}{m.group(4)}:{m.group(5).upper()}{m.group(6)}"
        )
        if canonical not in seen:
            ranges.append(canonical)
            seen.add(canonical)

    return ranges


def parse_functions(formula: str) -> list[str]:
    """Extract all function names used in a formula."""
    clean = _strip_strings(formula)
    funcs: list[str] = []
    for m in _FUNC_RE.finditer(clean):
        name = m.group(1).upper()
        if name not in funcs:
            funcs.append(name)
    return funcs


def expand_range(range_ref: str) -> list[str]:
    """Expand ``"A1:A3"`` into ``["A1", "A2", "A3"]``, keeping any sheet prefix.

    Reversed endpoints are normalized.
    """
    sheet: str | None = None
    ref_part = range_ref
    if "!" in range_ref:
        sheet, ref_part = range_ref.rsplit("!", 1)
        sheet = sheet.strip("'")

    parts = ref_part.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid range: {range_ref!r}")

    start_row, start_col = a1_to_rowcol(parts[0].replace("$", "").strip().upper())
    end_row, end_col = a1_to_rowcol(parts[1].replace("$", "").strip().upper())
    r_min, r_max = min(start_row, end_row), max(start_row, end_row)
    c_min, c_max = min(start_col, end_col), max(start_col, end_col)

    cells: list[str] = []
    for r in range(r_min, r_max + 1):
        for c in range(c_min, c_max + 1):
            ref = rowcol_to_a1(r, c)
            cells.append(f"{sheet}!{ref}" if sheet is not None else ref)
    return cells


def all_references(formula: str, current_sheet: str) -> list[str]:
    """All cell references (singles + expanded ranges), canonical and unique."""
    refs: list[str] = []
    seen: set[str] = set()
    for ref in parse_references(formula, current_sheet):
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    for rng in parse_range_references(formula, current_sheet):
        for ref in expand_range(rng):
            if ref not in seen:
                refs.append(ref)
                seen.add(ref)
    return refs


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: float | int | str | bool


@dataclass(frozen=True)
class CellRef:
    """Same-sheet reference; ``address.sheet`` is None."""

    address: CellAddress


@dataclass(frozen=True)
class CrossSheetRef:
    """``Sheet!A1`` reference; ``address.sheet`` is set."""

    address: CellAddress


@dataclass(frozen=True)
class RangeRef:
    range: CellRange


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: FormulaNode
    right: FormulaNode


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: tuple[FormulaNode, ...]


@dataclass(frozen=True)
class Unsupported:
    """Formula text outside the supported grammar."""

    text: str
    reason: str


FormulaNode = Union[Literal, CellRef, CrossSheetRef, RangeRef, BinaryOp, FunctionCall, Unsupported]


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"]|"")*")
  | (?P<func>[A-Za-z][A-Za-z0-9_.]*(?=\s*\())
  | (?P<bool>(?:TRUE|FALSE)(?![A-Za-z0-9_!]))
  | (?P<ref>(?:'[^']+'!|[A-Za-z0-9_.]+!)?\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_(]))
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<op>[-+*/])
  | (?P<punct>[(),:])
    """,
    re.VERBOSE | re.IGNORECASE,
)


class _ParseError(Exception):
    pass


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise _ParseError(f"unexpected character {text[pos]!r} at {pos}")
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append((kind, m.group()))
        pos = m.end()
    return tokens


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(
        self, tokens: list[tuple[str, str]], functions: Mapping[str, FunctionSpec]
    ) -> None:
        self._tokens = tokens
        self._functions = functions
        self._pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            raise _ParseError("unexpected end of formula")
        self._pos += 1
        return tok

    def _expect(self, value: str) -> None:
        kind, text = self._next()
        if text != value:
            raise _ParseError(f"expected {value!r}, got {text!r}")

    def parse_formula(self) -> FormulaNode:
        tok = self._peek()
        if tok is None:
            raise _ParseError("empty formula")
        if tok[0] == "func":
            node: FormulaNode = self._call()
        else:
            node = self._leaf()
            nxt = self._peek()
            if nxt is not None and nxt[0] == "op":
                op = self._next()[1]
                node = BinaryOp(op, node, self._leaf())
        if self._peek() is not None:
            raise _ParseError(f"unexpected {self._peek()[1]!r} (nested expressions are not supported)")
        return node

    def _call(self) -> FunctionCall:
        name = self._next()[1].upper()
        spec = self._functions.get(name)
        if spec is None:
            raise _ParseError(f"unsupported function {name}")
        self._expect("(")
        args: list[FormulaNode] = []
        if self._peek() != ("punct", ")"):
            args.append(self._arg(spec.accepts_ranges))
            while self._peek() == ("punct", ","):
                self._next()
                args.append(self._arg(spec.accepts_ranges))
        self._expect(")")
        if not spec.min_args <= len(args) <= spec.max_args:
            raise _ParseError(f"{name} takes {spec.min_args}-{spec.max_args} arguments, got {len(args)}")
        return FunctionCall(name, tuple(args))

    def _arg(self, accepts_ranges: bool) -> FormulaNode:
        node = self._leaf()
        if self._peek() == ("punct", ":"):
            if not accepts_ranges or not isinstance(node, (CellRef, CrossSheetRef)):
                raise _ParseError("range argument not allowed here")
            self._next()
            kind, text = self._next()
            end = parse_cell_ref(text) if kind == "ref" else None
            if end is None or (end.sheet is not None and end.sheet != node.address.sheet):
                raise _ParseError(f"invalid range end {text!r}")
            end = CellAddress(node.address.sheet, end.column, end.row,
                              end.column_absolute, end.row_absolute)
            return RangeRef(CellRange(node.address, end))
        return node

    def _leaf(self) -> FormulaNode:
        kind, text = self._next()
        if kind == "op" and text in "+-":
            sign = -1 if text == "-" else 1
            kind, text = self._next()
            if kind != "number":
                raise _ParseError("unary operators only apply to numbers")
            return Literal(sign * _number(text))
        if kind == "number":
            return Literal(_number(text))
        if kind == "string":
            return Literal(text[1:-1].replace('""', '"'))
        if kind == "bool":
            return Literal(text.upper() == "TRUE")
        if kind == "ref":
            addr = parse_cell_ref(text)
            if addr is None:
                raise _ParseError(f"invalid reference {text!r}")
            return CrossSheetRef(addr) if addr.sheet else CellRef(addr)
        raise _ParseError(f"unexpected {text!r}")


def _number(text: str) -> float | int:
    if re.fullmatch(r"\d+", text):
        return int(text)
    return float(text)


def _parse_text(formula: str, functions: Mapping[str, FunctionSpec]) -> FormulaNode:
    body = formula.strip()
    if body.startswith("="):
        body = body[1:]
    try:
        return _Parser(_tokenize(body), functions).parse_formula()
    except _ParseError as e:
        return Unsupported(formula, str(e))


class FormulaParser:
    """Parses formula text into the tagged-union AST.

    Parsed trees are memoized by formula text; they are immutable.
    """

    def __init__(self, functions: Mapping[str, FunctionSpec] | None = None) -> None:
        self._functions = SUPPORTED_FUNCTIONS if functions is None else functions
        self._cache: dict[str, FormulaNode] = {}

    def parse(self, formula: str) -> FormulaNode:
        """Parse a formula (leading ``=`` optional). Never raises."""
        cached = self._cache.get(formula)
        if cached is not None:
            return cached
        node = _parse_text(formula, self._functions)
        self._cache[formula] = node
        return node


@lru_cache(maxsize=4096)
def parse_formula(formula: str) -> FormulaNode | None:
    """Parse *formula*; None when it falls outside the supported grammar."""
    node = _parse_text(formula, SUPPORTED_FUNCTIONS)
    return None if isinstance(node, Unsupported) else node


def node_references(node: FormulaNode, current_sheet: str) -> list[str]:
    """Canonical ``"Sheet!A1"`` refs an AST reads, ranges expanded."""
    refs: list[str] = []

    def visit(n: FormulaNode) -> None:
        if isinstance(n, (CellRef, CrossSheetRef)):
            keys = [n.address.key(current_sheet)]
        elif isinstance(n, RangeRef):
            keys = [a.key(current_sheet) for a in n.range.addresses()]
        elif isinstance(n, BinaryOp):
            visit(n.left)
            visit(n.right)
            return
        elif isinstance(n, FunctionCall):
            for arg in n.args:
                visit(arg)
            return
        else:
            return
        for key in keys:
            if key not in refs:
                refs.append(key)

    visit(node)
    return refs
