"""Run summaries and comparison tables."""

import math
from typing import Any

import numpy as np
import pandas as pd

from ..optimize.result import OptimizationResult


def _to_float(x: Any) -> float:
    """Safely convert to float, handling edge cases."""
    try:
        return float(x)
    except (TypeError, ValueError):
        return math.nan


def summarize_result(result: OptimizationResult) -> dict:
    """
    Compute summary statistics for an optimization run.

    Args:
        result: Finished OptimizationResult

    Returns:
        Dict with best/initial fitness, improvement, effort and
        convergence-speed figures
    """
    history = result.history_frame()
    best = _to_float(result.objective_value)

    if history.empty:
        initial = math.nan
        iterations_to_95 = math.nan
    else:
        fitness = history["fitness"].replace([np.inf, -np.inf], np.nan)
        initial = _to_float(fitness.dropna().iloc[0]) if fitness.notna().any() else math.nan

        # First iteration whose running best covers 95% of the total gain
        running_best = history["best_fitness"].replace(-np.inf, np.nan)
        if math.isfinite(initial) and math.isfinite(best) and best > initial:
            goal = initial + 0.95 * (best - initial)
            reached = history.loc[running_best >= goal, "iteration"]
            iterations_to_95 = int(reached.iloc[0]) if len(reached) else math.nan
        else:
            iterations_to_95 = 0 if math.isfinite(best) else math.nan

    improvement = best - initial if math.isfinite(best) and math.isfinite(initial) else math.nan
    sensitivity = {k: v for k, v in result.sensitivity.items() if math.isfinite(v)}
    most_sensitive = max(sensitivity, key=lambda k: abs(sensitivity[k])) if sensitivity else None

    return {
        "algorithm": result.algorithm,
        "success": result.success,
        "status": result.status.value,
        "best_fitness": best,
        "initial_fitness": initial,
        "improvement": improvement,
        "iterations": result.iterations,
        "evaluations": result.evaluations,
        "evaluations_per_iteration": result.evaluations / result.iterations if result.iterations else 0.0,
        "iterations_to_95pct": iterations_to_95,
        "constraint_violations": len(result.constraint_violations),
        "target_misses": len(result.target_misses),
        "most_sensitive": most_sensitive,
    }


def compare_results(results: dict[str, OptimizationResult]) -> pd.DataFrame:
    """
    Side-by-side summary table.

    Args:
        results: Dict of {label: OptimizationResult}

    Returns:
        DataFrame with one row per label, summary columns plus the optimum
        of every parameter
    """
    rows = {}
    for label, result in results.items():
        row = summarize_result(result)
        row.update(result.optimized_parameters)
        rows[label] = row
    return pd.DataFrame(rows).T
