"""Optimization visualization and plotting."""

import math

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from ..optimize.pareto import ParetoResult
from ..optimize.result import OptimizationResult


def plot_convergence(
    results: dict[str, OptimizationResult] | OptimizationResult,
    title: str = "Convergence",
    figsize: tuple = (14, 6),
) -> Figure:
    """
    Plot fitness per iteration and the running best for one or more runs.

    Args:
        results: A single result, or dict mapping label to result
        title: Plot title
        figsize: Figure size

    Returns:
        Matplotlib Figure
    """
    if isinstance(results, OptimizationResult):
        results = {results.algorithm or "run": results}

    fig, ax = plt.subplots(figsize=figsize)

    for name, result in results.items():
        history = result.history_frame()
        if history.empty:
            continue
        fitness = history["fitness"].replace([np.inf, -np.inf], np.nan)
        best = history["best_fitness"].replace([np.inf, -np.inf], np.nan)
        line, = ax.plot(history["iteration"], best, linewidth=1.8, label=f"{name} (best: {result.objective_value:.4g})")
        ax.scatter(history["iteration"], fitness, s=8, alpha=0.35, color=line.get_color())

    ax.set_ylabel("Fitness", fontsize=11)
    ax.set_xlabel("Iteration", fontsize=11)
    ax.set_title(title, fontsize=14, fontweight="bold")
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="lower right", fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_sensitivity(
    result: OptimizationResult,
    title: str = "Parameter Sensitivity",
    figsize: tuple = (10, 6),
) -> Figure:
    """
    Horizontal bar chart of per-parameter sensitivity at the optimum.

    Args:
        result: Result with sensitivity filled in
        title: Plot title
        figsize: Figure size

    Returns:
        Matplotlib Figure
    """
    items = [(k, v) for k, v in result.sensitivity.items() if math.isfinite(v)]
    items.sort(key=lambda kv: abs(kv[1]))

    fig, ax = plt.subplots(figsize=figsize)
    if items:
        names, values = zip(*items)
        colors = ["tab:green" if v >= 0 else "tab:red" for v in values]
        ax.barh(names, values, color=colors, alpha=0.8, edgecolor="black", linewidth=0.5)
    ax.axvline(0, color="black", linewidth=0.8)

    ax.set_xlabel("d fitness / d parameter (per full range)", fontsize=11)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.grid(True, alpha=0.3, axis="x")

    plt.tight_layout()
    return fig


def plot_pareto_front(
    pareto: ParetoResult,
    x_metric: str | None = None,
    y_metric: str | None = None,
    title: str = "Pareto Front",
    figsize: tuple = (10, 7),
) -> Figure:
    """
    Scatter the non-dominated solutions of a Pareto sweep on two metrics.

    Args:
        pareto: Result of optimize_pareto()
        x_metric: Metric on the x axis (default: first metric)
        y_metric: Metric on the y axis (default: second metric)
        title: Plot title
        figsize: Figure size

    Returns:
        Matplotlib Figure
    """
    x_metric = x_metric or pareto.metrics[0]
    y_metric = y_metric or pareto.metrics[1]
    front = pareto.front

    fig, ax = plt.subplots(figsize=figsize)
    if not front.empty:
        ordered = front.sort_values(x_metric)
        ax.plot(ordered[x_metric], ordered[y_metric], color="steelblue", linewidth=1, alpha=0.6)
        ax.scatter(front[x_metric], front[y_metric], s=40, color="steelblue", edgecolor="black", zorder=3)

        if pareto.compromise is not None:
            best = pareto.compromise.best_metrics
            ax.scatter(
                [best[x_metric]], [best[y_metric]],
                s=160, marker="*", color="gold", edgecolor="black", zorder=4,
                label="Best compromise",
            )
            ax.legend(loc="best", fontsize=10)

    ax.set_xlabel(x_metric, fontsize=11)
    ax.set_ylabel(y_metric, fontsize=11)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig
