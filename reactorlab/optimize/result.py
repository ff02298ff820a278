"""Iteration records and the immutable optimization result."""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import pandas as pd

from ..exceptions import ConvergenceFailure, EvaluationError, OptimizationCancelled
from .objective import MetricsRecord
from .space import ConstraintViolation, ParameterVector


class RunStatus(Enum):
    """Why an optimization run stopped."""

    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    EVALUATION_FAILED = "evaluation_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class IterationRecord:
    """One iteration (or generation) of an optimizer run."""

    iteration: int
    parameters: ParameterVector
    fitness: float
    metrics: MetricsRecord


@dataclass(frozen=True)
class OptimizationResult:
    """
    Final outcome of an optimization run. Built once, never mutated.

    Mapping fields are wrapped in read-only views; copy them with dict()
    before editing.
    """

    success: bool
    optimized_parameters: Mapping[str, float]
    objective_value: float
    iterations: int
    convergence_history: tuple[IterationRecord, ...]
    constraint_violations: tuple[ConstraintViolation, ...]
    sensitivity: Mapping[str, float] = field(default_factory=dict)
    status: RunStatus = RunStatus.MAX_ITERATIONS
    message: str = ""
    algorithm: str = ""
    evaluations: int = 0
    best_metrics: Mapping[str, float] = field(default_factory=dict)
    target_misses: tuple[str, ...] = ()
    optimal_ranges: Mapping[str, tuple[float, float]] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("optimized_parameters", "sensitivity", "best_metrics", "optimal_ranges"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def history_frame(self) -> pd.DataFrame:
        """
        Convergence history as a DataFrame.

        Columns: iteration, fitness, best_fitness (running max), one column
        per parameter and one `m_<metric>` column per metric.
        """
        rows = []
        for record in self.convergence_history:
            row = {"iteration": record.iteration, "fitness": record.fitness}
            row.update(record.parameters)
            row.update({f"m_{k}": v for k, v in record.metrics.items()})
            rows.append(row)
        df = pd.DataFrame(rows)
        if not df.empty:
            df.insert(2, "best_fitness", df["fitness"].cummax())
        return df

    def top_n(self, n: int = 10) -> pd.DataFrame:
        """Return the N best iterations sorted by fitness."""
        df = self.history_frame()
        if df.empty:
            return df
        return df.nlargest(n, "fitness")

    def raise_for_status(self) -> None:
        """Raise an exception if the run did not succeed."""
        if self.success:
            return
        if self.status is RunStatus.CANCELLED:
            raise OptimizationCancelled(self.message or "Optimization cancelled", result=self)
        if self.status is RunStatus.EVALUATION_FAILED:
            raise EvaluationError(self.message or "Evaluation failed", result=self)
        raise ConvergenceFailure(self.message or "Optimization did not converge", result=self)

    def __repr__(self) -> str:
        value = f"{self.objective_value:.4f}" if math.isfinite(self.objective_value) else str(self.objective_value)
        return (
            f"OptimizationResult(\n"
            f"  algorithm='{self.algorithm}',\n"
            f"  success={self.success}, status={self.status.value},\n"
            f"  objective_value={value},\n"
            f"  optimized_parameters={dict(self.optimized_parameters)},\n"
            f"  iterations={self.iterations}, evaluations={self.evaluations}\n"
            f")"
        )
