"""Function library and registry for formula evaluation.

Every primitive is null-safe: missing inputs and numeric domain errors
(division by zero, log of a non-positive number, RRI with zero principal)
recover to ``0`` instead of raising, so a single bad cell never aborts a
whole valuation.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Supported grammar: name -> arity / range acceptance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionSpec:
    min_args: int
    max_args: int
    accepts_ranges: bool = False


_UNBOUNDED = 255  # Excel's own argument limit

SUPPORTED_FUNCTIONS: dict[str, FunctionSpec] = {
    "SUM": FunctionSpec(1, _UNBOUNDED, accepts_ranges=True),
    "MAX": FunctionSpec(1, _UNBOUNDED, accepts_ranges=True),
    "MIN": FunctionSpec(1, _UNBOUNDED, accepts_ranges=True),
    "IF": FunctionSpec(2, 3),
    "IFERROR": FunctionSpec(2, 2),
    "LOG": FunctionSpec(1, 2),
    "LN": FunctionSpec(1, 1),
    "EXP": FunctionSpec(1, 1),
    "RRI": FunctionSpec(3, 3),
}


def is_supported(func_name: str) -> bool:
    """Check if a function name is part of the supported grammar."""
    return func_name.upper() in SUPPORTED_FUNCTIONS


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def is_number(value: Any) -> bool:
    """True for int/float. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_error_value(value: Any) -> bool:
    """None, NaN and Excel error strings (``#DIV/0!`` etc.) count as errors."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.startswith("#")


def _numbers(values: Iterable[Any]) -> list[float]:
    """Flatten nested lists and keep numeric entries only."""
    result: list[float] = []
    for v in values:
        if isinstance(v, (list, tuple)):
            result.extend(_numbers(v))
        elif is_number(v):
            result.append(float(v))
    return result


def _as_operand(value: Any) -> float | None:
    """Arithmetic operand: missing -> 0, non-numeric -> None."""
    if value is None:
        return 0.0
    if is_number(value):
        return float(value)
    return None


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def sum_values(values: Iterable[Any]) -> float:
    """Sum of numeric entries; everything else counts as 0."""
    return sum(_numbers(values))


def max_values(values: Iterable[Any]) -> float:
    """Largest numeric entry, or 0 when there is none."""
    nums = _numbers(values)
    return max(nums) if nums else 0.0


def min_values(values: Iterable[Any]) -> float:
    """Smallest numeric entry, or 0 when there is none."""
    nums = _numbers(values)
    return min(nums) if nums else 0.0


def if_statement(condition: Any, true_value: Any, false_value: Any = False) -> Any:
    """Ternary over an already-evaluated condition."""
    return true_value if condition else false_value


def if_error(value: Any, default: Any) -> Any:
    """Replace None/NaN/error strings with *default*; pass 0 and negatives through."""
    return default if is_error_value(value) else value


def safe_divide(numerator: Any, denominator: Any) -> float:
    num = _as_operand(numerator)
    den = _as_operand(denominator)
    if num is None or not den:
        return 0.0
    return num / den


def binary_op(left: Any, op: str, right: Any) -> float | None:
    """``left op right`` with missing operands treated as 0 and x/0 -> 0."""
    lhs = _as_operand(left)
    rhs = _as_operand(right)
    if lhs is None or rhs is None:
        return None
    if op == "+":
        return lhs + rhs
    if op == "-":
        return lhs - rhs
    if op == "*":
        return lhs * rhs
    if op == "/":
        return safe_divide(lhs, rhs)
    raise ValueError(f"Unknown operator {op!r}")


def log(value: Any, base: Any = math.e) -> float:
    """Logarithm; 0 for non-positive values or an invalid base."""
    if not is_number(value) or value <= 0:
        return 0.0
    if base is None:
        base = math.e
    if not is_number(base) or base <= 0 or base == 1:
        logger.debug("LOG: invalid base %r", base)
        return 0.0
    return math.log(value) / math.log(base)


def exp(value: Any) -> float | None:
    operand = _as_operand(value)
    if operand is None:
        return None
    try:
        return math.exp(operand)
    except OverflowError:
        logger.debug("EXP overflow for %r", value)
        return 0.0


def rri(nper: Any, pv: Any, fv: Any) -> float:
    """Equivalent growth rate ``(fv/pv)^(1/nper) - 1``; 0 when undefined."""
    n = _as_operand(nper)
    p = _as_operand(pv)
    f = _as_operand(fv)
    if not n or not p or f is None:
        return 0.0
    ratio = f / p
    if ratio < 0:
        logger.debug("RRI: negative growth ratio %r", ratio)
        return 0.0
    return ratio ** (1 / n) - 1


# ---------------------------------------------------------------------------
# Builtins - each takes a list of resolved argument values.
# Range arguments arrive as lists.
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> float:
    return sum_values(args)


def _builtin_max(args: list[Any]) -> float:
    return max_values(args)


def _builtin_min(args: list[Any]) -> float:
    return min_values(args)


def _builtin_if(args: list[Any]) -> Any:
    return if_statement(*args)


def _builtin_iferror(args: list[Any]) -> Any:
    return if_error(args[0], args[1])


def _builtin_log(args: list[Any]) -> float:
    return log(*args)


def _builtin_ln(args: list[Any]) -> float:
    return log(args[0])


def _builtin_exp(args: list[Any]) -> float | None:
    return exp(args[0])


def _builtin_rri(args: list[Any]) -> float:
    return rri(*args)


_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _builtin_sum,
    "MAX": _builtin_max,
    "MIN": _builtin_min,
    "IF": _builtin_if,
    "IFERROR": _builtin_iferror,
    "LOG": _builtin_log,
    "LN": _builtin_ln,
    "EXP": _builtin_exp,
    "RRI": _builtin_rri,
}


class FunctionRegistry:
    """Registry of callable function implementations and their grammar specs.

    Starts with the builtins and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)
        self._specs: dict[str, FunctionSpec] = dict(SUPPORTED_FUNCTIONS)

    def register(
        self,
        name: str,
        func: Callable[[list[Any]], Any],
        spec: FunctionSpec | None = None,
    ) -> None:
        key = name.upper()
        self._functions[key] = func
        self._specs[key] = spec or FunctionSpec(0, _UNBOUNDED)

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def specs(self) -> Mapping[str, FunctionSpec]:
        return dict(self._specs)

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
