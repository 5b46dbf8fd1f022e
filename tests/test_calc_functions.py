"""Tests for orbitval.calc function registry and builtins."""

from __future__ import annotations

import math

import pytest

from orbitval.calc._functions import (
    _BUILTINS,
    SUPPORTED_FUNCTIONS,
    FunctionRegistry,
    FunctionSpec,
    binary_op,
    exp,
    if_error,
    if_statement,
    is_error_value,
    is_supported,
    log,
    max_values,
    min_values,
    rri,
    safe_divide,
    sum_values,
)


class TestSupportedFunctions:
    def test_grammar_functions(self) -> None:
        assert set(SUPPORTED_FUNCTIONS) == {"SUM", "MAX", "MIN", "IF", "IFERROR", "LOG", "LN", "EXP", "RRI"}

    def test_is_supported_case_insensitive(self) -> None:
        assert is_supported("sum")
        assert is_supported("Rri")
        assert not is_supported("INDEX")
        assert not is_supported("OFFSET")

    def test_only_aggregates_take_ranges(self) -> None:
        ranged = {name for name, spec in SUPPORTED_FUNCTIONS.items() if spec.accepts_ranges}
        assert ranged == {"SUM", "MAX", "MIN"}


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        assert reg.has("SUM")
        assert reg.has("RRI")
        assert not reg.has("INDEX")

    def test_custom_registration(self) -> None:
        reg = FunctionRegistry()
        reg.register("double", lambda args: args[0] * 2, FunctionSpec(1, 1))
        assert reg.has("DOUBLE")
        assert reg.get("DOUBLE")([21]) == 42
        assert reg.specs["DOUBLE"] == FunctionSpec(1, 1)

    def test_registration_does_not_leak(self) -> None:
        FunctionRegistry().register("MYFUNC", lambda args: 1)
        assert not FunctionRegistry().has("MYFUNC")
        assert "MYFUNC" not in SUPPORTED_FUNCTIONS

    def test_case_insensitive_lookup(self) -> None:
        reg = FunctionRegistry()
        assert reg.get("sum") is reg.get("SUM")

    def test_supported_functions_property(self) -> None:
        funcs = FunctionRegistry().supported_functions
        assert isinstance(funcs, frozenset)
        assert "IFERROR" in funcs


class TestAggregates:
    def test_sum_nested_lists(self) -> None:
        assert _BUILTINS["SUM"]([[1, 2], 3]) == 6

    def test_sum_skips_non_numeric(self) -> None:
        assert sum_values([1, None, "x", True, 2.5]) == 3.5

    def test_sum_empty(self) -> None:
        assert sum_values([]) == 0

    def test_max_min(self) -> None:
        assert max_values([3, -1, 7]) == 7
        assert min_values([3, -1, 7]) == -1

    def test_max_min_all_blank_is_zero(self) -> None:
        assert max_values([None, None]) == 0
        assert min_values([[None, "a"]]) == 0
        assert not math.isinf(max_values([]))


class TestConditionals:
    def test_if_branches(self) -> None:
        assert if_statement(True, 1, 2) == 1
        assert if_statement(0, 1, 2) == 2

    def test_if_missing_false_branch(self) -> None:
        assert _BUILTINS["IF"]([False, 1]) is False

    @pytest.mark.parametrize("value", [None, float("nan"), "#DIV/0!", "#REF!"])
    def test_iferror_replaces_errors(self, value: object) -> None:
        assert if_error(value, -1) == -1

    @pytest.mark.parametrize("value", [0, -5, "text", False])
    def test_iferror_passes_values(self, value: object) -> None:
        assert if_error(value, -1) == value

    @pytest.mark.parametrize("value", [None, float("nan"), "#DIV/0!", "#N/A", "#VALUE!"])
    def test_is_error_value(self, value: object) -> None:
        assert is_error_value(value)

    @pytest.mark.parametrize("value", [0.0, "", "N/A", "total #2", True])
    def test_other_values_are_not_errors(self, value: object) -> None:
        assert not is_error_value(value)


class TestArithmetic:
    def test_missing_operand_is_zero(self) -> None:
        assert binary_op(None, "+", 5) == 5
        assert binary_op(4, "*", None) == 0

    def test_division_by_zero(self) -> None:
        assert binary_op(10, "/", 0) == 0
        assert safe_divide(1, None) == 0

    def test_text_operand_is_unknown(self) -> None:
        assert binary_op("abc", "+", 1) is None

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValueError, match="Unknown operator"):
            binary_op(1, "^", 2)


class TestMath:
    def test_log_natural(self) -> None:
        assert log(math.e) == pytest.approx(1.0)

    def test_log_base(self) -> None:
        assert log(1000, 10) == pytest.approx(3.0)

    @pytest.mark.parametrize("value", [0, -1, None])
    def test_log_non_positive_is_zero(self, value: object) -> None:
        assert log(value) == 0

    def test_log_bad_base(self) -> None:
        assert log(10, 1) == 0

    def test_ln_builtin(self) -> None:
        assert _BUILTINS["LN"]([1]) == 0

    def test_exp(self) -> None:
        assert exp(0) == 1
        assert exp(None) == 1
        assert exp(10_000) == 0
        assert exp("x") is None


class TestRRI:
    def test_growth_rate(self) -> None:
        # 100 -> 121 over two periods is 10% a year
        assert rri(2, 100, 121) == pytest.approx(0.10)

    def test_zero_periods(self) -> None:
        assert rri(0, 100, 121) == 0

    def test_zero_principal(self) -> None:
        assert rri(5, 0, 121) == 0

    def test_sign_change(self) -> None:
        assert rri(2, 100, -50) == 0

    def test_builtin(self) -> None:
        assert _BUILTINS["RRI"]([1, 50, 75]) == pytest.approx(0.5)
