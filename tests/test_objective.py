"""Tests for objective scoring and targets."""

import math

import pytest

from reactorlab.exceptions import ConfigurationError, EvaluationError
from reactorlab.optimize import (
    Objective,
    ObjectiveType,
    Target,
    composite_objective,
    make_objective,
)


class TestSingleMetric:
    """Tests for MAXIMIZE and MINIMIZE objectives."""

    def test_maximize_returns_metric(self):
        obj = make_objective("power")
        assert obj.type is ObjectiveType.MAXIMIZE
        assert obj.score({"power": 42.0, "cost": 3.0}) == 42.0

    def test_minimize_negates_metric(self):
        obj = make_objective("cost", maximize=False)
        assert obj.type is ObjectiveType.MINIMIZE
        assert obj.score({"cost": 12.5}) == -12.5

    def test_type_accepts_string(self):
        obj = Objective("maximize", metric="power")
        assert obj.type is ObjectiveType.MAXIMIZE

    def test_unknown_type_rejected(self):
        with pytest.raises(ConfigurationError):
            Objective("maximise", metric="power")

    def test_metric_required(self):
        with pytest.raises(ConfigurationError):
            Objective(ObjectiveType.MAXIMIZE)

    def test_weights_only_for_multi(self):
        with pytest.raises(ConfigurationError):
            Objective(ObjectiveType.MAXIMIZE, metric="power", weights={"power": 1.0})

    def test_name(self):
        assert make_objective("power").name == "maximize_power"
        assert make_objective("cost", maximize=False).name == "minimize_cost"


class TestMissingMetrics:
    """Scoring records that lack what the objective needs."""

    def test_missing_metric_raises_evaluation_error(self):
        obj = make_objective("power")
        with pytest.raises(EvaluationError) as exc_info:
            obj.score({"efficiency": 0.8})
        assert exc_info.value.metric == "power"
        assert "power" in str(exc_info.value)

    def test_missing_component_of_multi(self):
        obj = composite_objective({"power": 0.5, "cost": 0.5})
        with pytest.raises(EvaluationError) as exc_info:
            obj.score({"power": 10.0})
        assert exc_info.value.metric == "cost"

    @pytest.mark.parametrize("value", [math.nan, math.inf, "high", None])
    def test_unusable_values_raise(self, value):
        with pytest.raises(EvaluationError):
            make_objective("power").score({"power": value})


class TestMultiObjective:
    """Tests for weighted MULTI objectives."""

    def test_weighted_sum_matches_hand_computation(self):
        """power weight 0.7 maximized, cost weight 0.3 minimized."""
        obj = Objective(
            ObjectiveType.MULTI,
            weights={"power": 0.7, "cost": 0.3},
            directions={"cost": ObjectiveType.MINIMIZE},
        )
        # 0.7 * 50 - 0.3 * 20
        assert obj.score({"power": 50.0, "cost": 20.0}) == pytest.approx(29.0)

    def test_composite_objective_equivalent(self):
        obj = composite_objective(
            weights={"power": 0.7, "cost": 0.3},
            maximize={"power": True, "cost": False},
        )
        assert obj.score({"power": 50.0, "cost": 20.0}) == pytest.approx(29.0)

    def test_configured_scales_normalize(self):
        obj = composite_objective(
            weights={"power": 1.0, "efficiency": 1.0},
            scales={"power": 100.0, "efficiency": 0.5},
        )
        # 200/100 + 0.25/0.5
        assert obj.score({"power": 200.0, "efficiency": 0.25}) == pytest.approx(2.5)

    def test_calibration_fills_missing_scales(self):
        obj = composite_objective({"power": 1.0, "cost": 1.0}, maximize={"cost": False})
        assert obj.needs_calibration

        calibrated = obj.calibrated({"power": 200.0, "cost": 0.0})
        assert not calibrated.needs_calibration
        assert calibrated.scales == {"power": 200.0, "cost": 1.0}
        assert calibrated.score({"power": 100.0, "cost": 2.0}) == pytest.approx(-1.5)
        # Original is untouched
        assert obj.scales == {}

    def test_calibration_floors_near_zero_values(self):
        obj = composite_objective({"power": 0.5, "cost": 0.5}, maximize={"cost": False})
        calibrated = obj.calibrated({"power": 1e-6, "cost": 15.0})

        assert calibrated.scales == {"power": 1.0, "cost": 15.0}
        # 0.5 * 10 / 1 - 0.5 * 15 / 15
        assert calibrated.score({"power": 10.0, "cost": 15.0}) == pytest.approx(4.5)

    def test_calibration_keeps_configured_scales(self):
        obj = composite_objective({"power": 1.0, "cost": 1.0}, scales={"power": 10.0})
        calibrated = obj.calibrated({"power": 500.0, "cost": -4.0})
        assert calibrated.scales == {"power": 10.0, "cost": 4.0}

    def test_metrics_listed(self):
        obj = composite_objective({"power": 0.5, "efficiency": 0.5})
        assert obj.metrics == ["power", "efficiency"]

    @pytest.mark.parametrize("weight", [-0.1, math.nan, math.inf])
    def test_invalid_weights_rejected(self, weight):
        with pytest.raises(ConfigurationError):
            composite_objective({"power": weight})

    def test_empty_weights_rejected(self):
        with pytest.raises(ConfigurationError):
            Objective(ObjectiveType.MULTI)

    def test_direction_for_unweighted_metric_rejected(self):
        with pytest.raises(ConfigurationError):
            composite_objective({"power": 1.0}, maximize={"cost": False})

    def test_non_positive_scale_rejected(self):
        with pytest.raises(ConfigurationError):
            composite_objective({"power": 1.0}, scales={"power": 0.0})


class TestTargets:
    """Tests for metric thresholds."""

    def test_shortfall_below_minimum(self):
        target = Target("power", minimum=50.0)
        assert target.shortfall(40.0) == pytest.approx(0.2)
        assert target.shortfall(60.0) == 0.0

    def test_shortfall_above_maximum(self):
        target = Target("cost", maximum=600.0)
        assert target.shortfall(660.0) == pytest.approx(0.1)
        assert target.shortfall(500.0) == 0.0

    def test_target_needs_a_bound(self):
        with pytest.raises(ConfigurationError):
            Target("power")

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ConfigurationError):
            Target("power", minimum=10.0, maximum=5.0)

    def test_unmet_targets_described(self):
        obj = make_objective(
            "power",
            targets=(Target("power", minimum=50.0), Target("cost", maximum=600.0)),
        )
        misses = obj.unmet_targets({"power": 40.0, "cost": 550.0})
        assert len(misses) == 1
        assert "below minimum" in misses[0]
        assert obj.target_shortfall({"power": 40.0, "cost": 660.0}) == pytest.approx(0.3)

    def test_targets_on_absent_metrics_ignored(self):
        obj = make_objective("power", targets=(Target("durability", minimum=80.0),))
        assert obj.unmet_targets({"power": 1.0}) == []
        assert obj.target_shortfall({"power": 1.0}) == 0.0
