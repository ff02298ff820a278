"""Reporting and diagnostics."""

from .summary import compare_results, summarize_result
from .plot import (
    plot_convergence,
    plot_pareto_front,
    plot_sensitivity,
)
