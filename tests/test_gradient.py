"""Tests for GradientDescentOptimizer."""

import numpy as np
import pytest

from reactorlab.exceptions import ConfigurationError
from reactorlab.optimize import (
    GradientDescentOptimizer,
    OptimizerSettings,
    RunStatus,
)


class TestGradientDescent:
    """Tests for the finite-difference optimizer."""

    def test_converges_to_temperature_optimum(self, power_objective, temperature_space, quadratic):
        """From temperature=20 the optimizer reaches 30 +/- 0.5."""
        optimizer = GradientDescentOptimizer(power_objective, temperature_space, quadratic)
        result = optimizer.optimize({"temperature": 20.0})

        assert result.success is True
        assert result.status is RunStatus.CONVERGED
        assert result.optimized_parameters["temperature"] == pytest.approx(30.0, abs=0.5)
        assert result.objective_value == pytest.approx(100.0, abs=0.5)
        assert result.iterations <= 100
        assert result.algorithm == "gradient_descent"

    def test_non_worsening_for_increasing_function(self, power_objective, temperature_space):
        """With a strictly increasing evaluator fitness never drops."""
        optimizer = GradientDescentOptimizer(
            power_objective, temperature_space, lambda p: {"power": p["temperature"]}
        )
        result = optimizer.optimize({"temperature": 21.0})

        fitness = [r.fitness for r in result.convergence_history]
        assert result.objective_value >= fitness[0]
        assert all(np.diff(fitness) >= 0)
        assert result.optimized_parameters["temperature"] > 35.0

    def test_deterministic(self, power_objective, temperature_space, quadratic):
        first = GradientDescentOptimizer(power_objective, temperature_space, quadratic).optimize(
            {"temperature": 24.0}
        )
        second = GradientDescentOptimizer(power_objective, temperature_space, quadratic).optimize(
            {"temperature": 24.0}
        )
        assert first.optimized_parameters == second.optimized_parameters
        assert [r.fitness for r in first.convergence_history] == [
            r.fitness for r in second.convergence_history
        ]

    def test_defaults_to_midpoint(self, power_objective, temperature_space, quadratic):
        result = GradientDescentOptimizer(power_objective, temperature_space, quadratic).optimize()
        assert result.convergence_history[0].parameters == {"temperature": 30.0}

    def test_out_of_range_start_is_clamped(self, power_objective, temperature_space, quadratic):
        result = GradientDescentOptimizer(power_objective, temperature_space, quadratic).optimize(
            {"temperature": 55.0}
        )
        assert 20.0 <= result.optimized_parameters["temperature"] <= 40.0
        assert any(
            v.parameter_name == "temperature" and v.requested_value == 55.0
            for v in result.constraint_violations
        )

    def test_iteration_cap(self, power_objective, temperature_space, quadratic):
        settings = OptimizerSettings(max_iterations=3, convergence_tolerance=0.0)
        result = GradientDescentOptimizer(
            power_objective, temperature_space, quadratic, settings
        ).optimize({"temperature": 20.0})

        assert result.status is RunStatus.MAX_ITERATIONS
        assert result.success is False
        assert result.iterations == 3
        assert "iteration cap" in result.message

    def test_progress_callback_once_per_iteration(self, power_objective, temperature_space, quadratic):
        records = []
        optimizer = GradientDescentOptimizer(
            power_objective, temperature_space, quadratic, progress_callback=records.append
        )
        result = optimizer.optimize({"temperature": 20.0})

        assert len(records) == result.iterations
        assert [r.iteration for r in records] == list(range(result.iterations))

    def test_flat_objective_stops_without_extra_record(self, power_objective, temperature_space):
        """A zero gradient ends the run on the point already recorded."""
        records = []
        optimizer = GradientDescentOptimizer(
            power_objective,
            temperature_space,
            lambda p: {"power": 7.0},
            progress_callback=records.append,
        )
        result = optimizer.optimize({"temperature": 25.0})

        assert result.status is RunStatus.CONVERGED
        assert result.iterations == 1
        assert len(result.convergence_history) == 1
        assert len(records) == 1
        # Start point plus the two finite-difference evaluations
        assert result.evaluations == 3

    def test_invalid_learning_rate(self, power_objective, temperature_space, quadratic):
        with pytest.raises(ConfigurationError):
            GradientDescentOptimizer(
                power_objective, temperature_space, quadratic, learning_rate=0.9
            )


class TestGradientDescentFailures:
    """Evaluation failures during gradient descent."""

    def test_always_failing_evaluator(self, power_objective, temperature_space, failing):
        result = GradientDescentOptimizer(power_objective, temperature_space, failing).optimize(
            {"temperature": 25.0}
        )

        assert result.success is False
        assert result.status is RunStatus.EVALUATION_FAILED
        assert failing.calls == 3
        assert result.evaluations == 3
        assert "consecutive" in result.message
        assert "simulator crashed" in result.message

    def test_missing_metric_counts_as_failure(self, power_objective, temperature_space, missing_metric):
        result = GradientDescentOptimizer(
            power_objective, temperature_space, missing_metric
        ).optimize()

        assert result.status is RunStatus.EVALUATION_FAILED
        assert missing_metric.calls == 3
        assert "power" in result.message

    def test_recovers_from_failed_start(self, power_objective, temperature_space):
        """A failing start point is replaced by a random restart."""

        def evaluator(p):
            if p["temperature"] == 20.0:
                raise RuntimeError("sensor fault at lower bound")
            return {"power": -(p["temperature"] - 30.0) ** 2 + 100.0}

        settings = OptimizerSettings(seed=5)
        result = GradientDescentOptimizer(
            power_objective, temperature_space, evaluator, settings
        ).optimize({"temperature": 20.0})

        assert result.convergence_history[0].fitness == -np.inf
        assert result.objective_value > 90.0
