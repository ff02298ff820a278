"""Tests for result views, summaries and plots."""

import math

import pytest
from matplotlib.figure import Figure

from reactorlab.exceptions import ConvergenceFailure, EvaluationError
from reactorlab.optimize import ParameterSpace, optimize_pareto, run
from reactorlab.report import (
    compare_results,
    plot_convergence,
    plot_pareto_front,
    plot_sensitivity,
    summarize_result,
)


@pytest.fixture
def gd_result(power_objective, temperature_space, quadratic):
    return run("gd", power_objective, temperature_space, {"temperature": 20.0}, quadratic)


@pytest.fixture
def ga_result(power_objective, temperature_space, quadratic):
    return run(
        "ga",
        power_objective,
        temperature_space,
        {"temperature": 20.0},
        quadratic,
        {"max_iterations": 10, "population_size": 10, "seed": 0},
    )


class TestResultViews:
    """Tests for OptimizationResult helpers."""

    def test_history_frame_columns(self, gd_result):
        df = gd_result.history_frame()

        assert list(df.columns[:3]) == ["iteration", "fitness", "best_fitness"]
        assert "temperature" in df.columns
        assert "m_power" in df.columns
        assert len(df) == gd_result.iterations
        assert df["best_fitness"].is_monotonic_increasing

    def test_top_n(self, gd_result):
        top = gd_result.top_n(3)
        assert len(top) == 3
        assert top["fitness"].is_monotonic_decreasing
        assert top["fitness"].iloc[0] <= gd_result.objective_value

    def test_failed_iterations_in_history(self, power_objective, temperature_space, failing):
        result = run("bo", power_objective, temperature_space, None, failing)
        df = result.history_frame()

        assert len(df) == result.iterations
        assert (df["fitness"] == -math.inf).all()
        assert "m_power" not in df.columns

    def test_repr(self, gd_result):
        text = repr(gd_result)
        assert "gradient_descent" in text
        assert "converged" in text

    def test_raise_for_status(self, gd_result, power_objective, temperature_space, quadratic, failing):
        gd_result.raise_for_status()

        capped = run(
            "gd", power_objective, temperature_space, {"temperature": 20.0}, quadratic, {"max_iterations": 2}
        )
        with pytest.raises(ConvergenceFailure) as exc_info:
            capped.raise_for_status()
        assert exc_info.value.result is capped

        failed = run("gd", power_objective, temperature_space, None, failing)
        with pytest.raises(EvaluationError) as exc_info:
            failed.raise_for_status()
        assert exc_info.value.result is failed

    def test_result_is_frozen(self, gd_result):
        with pytest.raises(AttributeError):
            gd_result.success = False

    def test_mapping_fields_read_only(self, gd_result):
        for mapping in (
            gd_result.optimized_parameters,
            gd_result.sensitivity,
            gd_result.best_metrics,
            gd_result.optimal_ranges,
        ):
            with pytest.raises(TypeError):
                mapping["temperature"] = 0.0

        params = dict(gd_result.optimized_parameters)
        params["temperature"] = 0.0
        assert gd_result.optimized_parameters["temperature"] != 0.0


class TestSummary:
    """Tests for run summaries."""

    def test_summarize_result(self, gd_result):
        summary = summarize_result(gd_result)

        assert summary["algorithm"] == "gradient_descent"
        assert summary["status"] == "converged"
        assert summary["best_fitness"] == gd_result.objective_value
        assert summary["initial_fitness"] == pytest.approx(0.0)
        assert summary["improvement"] == pytest.approx(gd_result.objective_value)
        assert 0 < summary["iterations_to_95pct"] <= gd_result.iterations
        assert summary["most_sensitive"] == "temperature"

    def test_summary_of_failed_run(self, power_objective, temperature_space, failing):
        result = run("ga", power_objective, temperature_space, None, failing, {"population_size": 10})
        summary = summarize_result(result)

        assert summary["success"] is False
        assert summary["status"] == "evaluation_failed"
        assert math.isnan(summary["improvement"])
        assert summary["most_sensitive"] is None

    def test_compare_results(self, gd_result, ga_result):
        table = compare_results({"GD": gd_result, "GA": ga_result})

        assert list(table.index) == ["GD", "GA"]
        assert "best_fitness" in table.columns
        assert "temperature" in table.columns


class TestPlots:
    """Smoke tests for matplotlib figures."""

    def test_plot_convergence_single(self, gd_result):
        fig = plot_convergence(gd_result)
        assert isinstance(fig, Figure)
        assert len(fig.axes) == 1

    def test_plot_convergence_many(self, gd_result, ga_result):
        fig = plot_convergence({"GD": gd_result, "GA": ga_result}, title="Comparison")
        ax = fig.axes[0]
        assert ax.get_title() == "Comparison"
        assert len(ax.get_lines()) == 2

    def test_plot_sensitivity(self, gd_result):
        fig = plot_sensitivity(gd_result)
        assert isinstance(fig, Figure)
        assert len(fig.axes[0].patches) == 1

    def test_plot_pareto_front(self):
        space = ParameterSpace({"temperature": (0.0, 10.0)})
        pareto = optimize_pareto(
            ["power", "cost"],
            space,
            lambda p: {"power": p["temperature"], "cost": p["temperature"] ** 2},
            algorithm="gd",
            params={"seed": 2},
            maximize={"cost": False},
            n_points=4,
        )
        fig = plot_pareto_front(pareto)
        ax = fig.axes[0]
        assert ax.get_xlabel() == "power"
        assert ax.get_ylabel() == "cost"
