"""Multi-objective trade-off search by weighted-sum sweeps."""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Mapping

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError
from .base import Evaluator
from .engine import OptimizationParameters, as_parameters, run
from .objective import composite_objective
from .result import OptimizationResult
from .space import ConstraintSet, ParameterSpace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParetoResult:
    """Non-dominated solutions found by a weight sweep."""

    front: pd.DataFrame
    compromise: OptimizationResult | None
    runs: tuple[OptimizationResult, ...]
    metrics: tuple[str, ...]

    def __repr__(self) -> str:
        return (
            f"ParetoResult(\n"
            f"  metrics={list(self.metrics)},\n"
            f"  front_size={len(self.front)},\n"
            f"  runs={len(self.runs)}\n"
            f")"
        )


def non_dominated_mask(values: np.ndarray, maximize: np.ndarray) -> np.ndarray:
    """
    Flag the rows of `values` that no other row dominates.

    Args:
        values: (n, k) array of metric values
        maximize: (k,) boolean array, True where higher is better

    Returns:
        Boolean array of length n
    """
    oriented = np.where(maximize, values, -values)
    n = len(oriented)
    mask = np.ones(n, dtype=bool)
    for i in range(n):
        others = np.delete(oriented, i, axis=0)
        dominated = np.all(others >= oriented[i], axis=1) & np.any(others > oriented[i], axis=1)
        mask[i] = not dominated.any()
    return mask


def best_compromise(values: np.ndarray, maximize: np.ndarray) -> int:
    """Index of the row closest to the ideal point after range normalization."""
    oriented = np.where(maximize, values, -values)
    ideal = oriented.max(axis=0)
    nadir = oriented.min(axis=0)
    span = np.where(ideal - nadir > 0, ideal - nadir, 1.0)
    distance = np.sqrt((((ideal - oriented) / span) ** 2).sum(axis=1))
    return int(np.argmin(distance))


def optimize_pareto(
    metrics: list[str],
    constraints: ConstraintSet | ParameterSpace,
    evaluator: Evaluator,
    algorithm: str = "genetic_algorithm",
    params: OptimizationParameters | Mapping[str, Any] | None = None,
    maximize: dict[str, bool] | None = None,
    scales: dict[str, float] | None = None,
    n_points: int = 20,
    initial_parameters: Mapping[str, float] | None = None,
) -> ParetoResult:
    """
    Approximate the Pareto front with random weighted-sum runs.

    Each run optimizes a composite objective with Dirichlet-random weights;
    the optimum's metrics are collected, dominated solutions dropped, and
    the one closest to the ideal point returned as the compromise.

    Args:
        metrics: Metric names to trade off (at least two)
        constraints: ConstraintSet or ParameterSpace
        evaluator: Function mapping a parameter vector to a metrics dict
        algorithm: Optimizer used for each weighted run
        params: Run parameters shared by every run (seed drives the weights)
        maximize: Dict of {metric_name: True if higher is better}
        scales: Reference scale per metric
        n_points: Number of weighted runs
        initial_parameters: Starting vector for every run

    Returns:
        ParetoResult with the front as a DataFrame (one row per solution)

    Example:
        pareto = optimize_pareto(
            ["power", "cost"],
            bioreactor_space(),
            evaluate,
            maximize={"power": True, "cost": False},
        )
        print(pareto.front)
    """
    if len(metrics) < 2:
        raise ConfigurationError("Pareto search needs at least two metrics")
    if n_points < 1:
        raise ConfigurationError(f"n_points must be >= 1, got {n_points}")

    run_params = as_parameters(params)
    rng = np.random.default_rng(run_params.seed)
    maximize = maximize or {}
    directions = np.array([maximize.get(m, True) for m in metrics])

    runs: list[OptimizationResult] = []
    rows: list[dict[str, float]] = []
    for i in range(n_points):
        weights = dict(zip(metrics, rng.dirichlet(np.ones(len(metrics)))))
        objective = composite_objective(weights, maximize=maximize, scales=scales)
        seed = int(rng.integers(2**31)) if run_params.seed is not None else None
        result = run(
            algorithm,
            objective,
            constraints,
            initial_parameters,
            evaluator,
            replace(run_params, seed=seed),
        )
        runs.append(result)

        if not math.isfinite(result.objective_value) or not all(m in result.best_metrics for m in metrics):
            logger.warning("Pareto run %d produced no usable optimum: %s", i, result.message)
            continue
        row = {m: float(result.best_metrics[m]) for m in metrics}
        row.update(result.optimized_parameters)
        row.update({f"w_{m}": w for m, w in weights.items()})
        row["_run"] = i
        rows.append(row)

    if not rows:
        return ParetoResult(pd.DataFrame(), None, tuple(runs), tuple(metrics))

    candidates = pd.DataFrame(rows)
    values = candidates[list(metrics)].to_numpy(dtype=float)
    front = candidates[non_dominated_mask(values, directions)].reset_index(drop=True)

    best = best_compromise(front[list(metrics)].to_numpy(dtype=float), directions)
    compromise = runs[int(front.loc[best, "_run"])]
    return ParetoResult(front, compromise, tuple(runs), tuple(metrics))
