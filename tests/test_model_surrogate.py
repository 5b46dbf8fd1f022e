"""Tests for orbitval.model SurrogateValuationModel."""

from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from orbitval import (
    Snapshot,
    SnapshotEvaluator,
    calculate_earth_valuation,
    calculate_mars_option_value,
    calculate_mars_valuation,
    calculate_total_enterprise_value,
)
from orbitval.model import (
    IDENTITY_CALIBRATION,
    SCENARIOS,
    BaselineAnchors,
    SurrogateParameters,
    SurrogateValuationModel,
)
from orbitval.model._params import EARTH_BASELINE_ANCHOR
from orbitval.model._surrogate import COST_MULTIPLIER_BOUNDS


@pytest.fixture()
def model() -> SurrogateValuationModel:
    return SurrogateValuationModel()


class TestEarthBaseline:
    def test_baseline_value(self, model: SurrogateValuationModel) -> None:
        assert model.calculate_earth_valuation() == pytest.approx(124.48, abs=0.1)

    def test_baseline_is_exact_for_any_calibration(self) -> None:
        for model in (SurrogateValuationModel(), SurrogateValuationModel(calibration=IDENTITY_CALIBRATION)):
            b = model.earth_breakdown(SurrogateParameters())
            assert b.revenue_multiplier == 1.0
            assert b.cost_multiplier == 1.0
            assert b.financial_factor == 1.0
            assert b.revenue == pytest.approx(148.13)
            assert b.costs == pytest.approx(10.32)
            assert b.taxes == pytest.approx(13.33)
            assert b.value == pytest.approx(124.48, abs=1e-9)

    def test_camel_case_inputs(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_earth_valuation({"earth": {"starlinkPenetration": 0.15}})
        assert value == pytest.approx(124.48, abs=0.1)

    def test_module_level_helpers(self) -> None:
        assert calculate_earth_valuation() == pytest.approx(124.48, abs=0.1)
        assert calculate_mars_valuation() == pytest.approx(0.745)
        assert calculate_mars_option_value() == pytest.approx(0.745)
        assert calculate_total_enterprise_value() == pytest.approx(124.48 * 18 + 0.745, abs=0.1)


class TestEarthDrivers:
    def test_monotonic_in_penetration(self, model: SurrogateValuationModel) -> None:
        values = model.sweep("earth.starlinkPenetration", np.linspace(0.10, 0.40, 13))
        assert values[0] > 0
        assert np.all(np.diff(values) > 0)

    def test_volume_raises_value(self, model: SurrogateValuationModel) -> None:
        low = model.calculate_earth_valuation({"earth": {"launchVolume": 120}})
        high = model.calculate_earth_valuation({"earth": {"launchVolume": 200}})
        assert high > low

    @pytest.mark.parametrize("penetration", [0.0, -0.05])
    def test_non_positive_penetration_is_zero(self, model: SurrogateValuationModel, penetration: float) -> None:
        assert model.calculate_earth_valuation({"earth": {"starlinkPenetration": penetration}}) == 0

    @pytest.mark.parametrize("penetration", [0.001, 0.02, 0.15, 0.5, 2.0, 50.0])
    def test_cost_multiplier_clamped(self, model: SurrogateValuationModel, penetration: float) -> None:
        b = model.earth_breakdown({"earth": {"starlinkPenetration": penetration}})
        low, high = COST_MULTIPLIER_BOUNDS
        assert low <= b.cost_multiplier <= high

    def test_clamp_hits_both_bounds(self, model: SurrogateValuationModel) -> None:
        assert model.earth_breakdown({"earth": {"starlinkPenetration": 0.01}}).cost_multiplier == 2.0
        assert model.earth_breakdown({"earth": {"starlinkPenetration": 5.0}}).cost_multiplier == 0.1

    def test_taxes_track_revenue(self, model: SurrogateValuationModel) -> None:
        b = model.earth_breakdown(SCENARIOS["optimistic"])
        assert b.tax_multiplier == b.revenue_multiplier

    def test_higher_discount_rate_lowers_value(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_earth_valuation({"financial": {"discountRate": 0.15}})
        assert value == pytest.approx(124.48 * (0.12 / 0.15) ** 0.7, rel=1e-9)

    def test_terminal_growth_raises_value(self, model: SurrogateValuationModel) -> None:
        b = model.earth_breakdown({"financial": {"terminalGrowth": 0.05}})
        assert b.terminal_growth_factor == pytest.approx(1 + (0.09 / 0.07 - 1) * 0.6)
        assert b.value > 124.48

    def test_degenerate_rates_stay_finite(self, model: SurrogateValuationModel) -> None:
        for inputs in (
            {"financial": {"discountRate": 0}},
            {"financial": {"discountRate": 0.03, "terminalGrowth": 0.05}},
            {"earth": {"launchVolume": 0}},
        ):
            value = model.calculate_earth_valuation(inputs)
            assert math.isfinite(value)
            assert value >= 0

    def test_earlier_reusability_lowers_costs(self, model: SurrogateValuationModel) -> None:
        b = model.earth_breakdown({"earth": {"starshipReusabilityYear": 2024}})
        assert b.cost_multiplier_raw == pytest.approx(0.95**2)

    def test_earlier_viability_raises_revenue(self, model: SurrogateValuationModel) -> None:
        b = model.earth_breakdown({"earth": {"starshipCommercialViabilityYear": 2024}})
        assert b.revenue_multiplier_raw == pytest.approx(1.03)

    def test_non_starlink_growth_ratio(self, model: SurrogateValuationModel) -> None:
        b = model.earth_breakdown({"earth": {"nonStarlinkLaunchMarketGrowth": 0.02}})
        assert b.revenue_multiplier_raw == pytest.approx(1 + 0.1 * (2**0.3 - 1))


class TestMars:
    def test_baseline(self, model: SurrogateValuationModel) -> None:
        assert model.calculate_mars_valuation() == pytest.approx(0.745)

    def test_no_bootstrap_is_ten_percent(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_mars_valuation({"mars": {"industrialBootstrap": False}})
        assert value == pytest.approx(0.0745)

    def test_earlier_colony_grows_ten_percent_a_year(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_mars_valuation({"mars": {"firstColonyYear": 2028}})
        assert value == pytest.approx(0.745 * 1.1**2)

    def test_population_growth_linear(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_mars_valuation({"mars": {"populationGrowth": 1.0}})
        assert value == pytest.approx(0.745 * 2)

    def test_transport_cost_ratio(self, model: SurrogateValuationModel) -> None:
        value = model.calculate_mars_valuation({"mars": {"transportCostDecline": 0.44}})
        assert value == pytest.approx(0.745 * 1.44 / 1.2)

    def test_option_value_falls_back_to_valuation(self, model: SurrogateValuationModel) -> None:
        inputs = {"mars": {"firstColonyYear": 2029}}
        assert model.calculate_mars_option_value(inputs) == model.calculate_mars_valuation(inputs)

    def test_option_value_from_components(self) -> None:
        model = SurrogateValuationModel(BaselineAnchors(mars_option_value=1.245))
        assert model.calculate_mars_option_value() == pytest.approx(1.245)
        assert model.calculate_mars_option_value({"mars": {"industrialBootstrap": False}}) == pytest.approx(0.1245)


class TestTotal:
    def test_baseline_total(self, model: SurrogateValuationModel) -> None:
        assert model.calculate_total_enterprise_value() == pytest.approx(124.48 * 18 + 0.745, abs=1e-6)

    def test_dilution_scales_earth_multiplier(self, model: SurrogateValuationModel) -> None:
        total = model.calculate_total_enterprise_value({"financial": {"dilutionFactor": 0.32}})
        assert total == pytest.approx(124.48 * 18 * (0.68 / 0.85) + 0.745, abs=1e-6)

    def test_normalization_divisor(self) -> None:
        model = SurrogateValuationModel(BaselineAnchors(normalization_divisor=2.0))
        assert model.calculate_total_enterprise_value() == pytest.approx((124.48 * 18 + 0.745) / 2, abs=1e-6)

    def test_valuation_bundle(self, model: SurrogateValuationModel) -> None:
        result = model.valuation(SCENARIOS["bear"])
        assert set(result) == {"earth", "mars", "marsOption", "total"}
        assert result["earth"] < 124.48


class TestSweep:
    def test_returns_array(self, model: SurrogateValuationModel) -> None:
        out = model.sweep("mars.firstColonyYear", [2028, 2030, 2032], output="mars")
        assert isinstance(out, np.ndarray)
        assert out.shape == (3,)
        assert out[1] == pytest.approx(0.745)
        assert out[0] > out[1] > out[2]

    def test_sweep_from_base(self, model: SurrogateValuationModel) -> None:
        out = model.sweep("earth.launchVolume", [150], base=SCENARIOS["optimistic"])
        assert out[0] == pytest.approx(
            model.calculate_earth_valuation(SCENARIOS["optimistic"].replace("earth.launchVolume", 150))
        )

    def test_unknown_output(self, model: SurrogateValuationModel) -> None:
        with pytest.raises(ValueError, match="Unknown output"):
            model.sweep("earth.launchVolume", [1], output="jupiter")

    def test_unknown_parameter(self, model: SurrogateValuationModel) -> None:
        with pytest.raises(ValueError):
            model.sweep("earth.warpDrive", [1])


class TestFromSnapshot:
    def test_anchors_in_billions(self, evaluator: SnapshotEvaluator) -> None:
        model = SurrogateValuationModel.from_snapshot(evaluator)
        assert model.anchors.earth.revenue == pytest.approx(148.13)
        assert model.anchors.earth.value == pytest.approx(124.48)
        assert model.anchors.mars_value == pytest.approx(0.745)
        assert model.anchors.mars_option_value == pytest.approx(1.245)

    def test_reproduces_snapshot_anchors(self, evaluator: SnapshotEvaluator) -> None:
        model = SurrogateValuationModel.from_snapshot(evaluator)
        assert model.calibration.version == "snapshot"
        assert model.calculate_earth_valuation() == pytest.approx(124.48)
        assert model.calculate_earth_valuation(SCENARIOS["optimistic"]) == pytest.approx(452.528, rel=1e-4)
        assert model.calculate_mars_option_value() == pytest.approx(1.245)

    def test_mars_exponent_untouched_by_default(self, evaluator: SnapshotEvaluator) -> None:
        model = SurrogateValuationModel.from_snapshot(evaluator)
        assert model.calibration.mars_exponent == 1.0

    def test_fit_mars(self, evaluator: SnapshotEvaluator) -> None:
        model = SurrogateValuationModel.from_snapshot(evaluator, fit_mars=True)
        assert model.calculate_mars_valuation(SCENARIOS["optimistic"]) == pytest.approx(924.0)

    def test_without_refit(self, evaluator: SnapshotEvaluator) -> None:
        model = SurrogateValuationModel.from_snapshot(evaluator, refit=False)
        assert model.calibration.version == "builtin-optimistic-v1"

    def test_missing_anchor_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        snap = Snapshot.from_dict({"Mars": {"cells": {"K54": 0.5e9}}})
        with caplog.at_level(logging.WARNING, logger="orbitval.model._ground_truth"):
            model = SurrogateValuationModel.from_snapshot(SnapshotEvaluator(snap))
        assert "Earth baseline outputs missing" in caplog.text
        assert model.anchors.earth == EARTH_BASELINE_ANCHOR
        assert model.calculate_mars_valuation() == pytest.approx(0.5)
        assert model.calculate_mars_option_value() == pytest.approx(0.5)
