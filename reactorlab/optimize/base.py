"""
Base optimizer class.

All optimization algorithms inherit from this base class. The base owns
everything the algorithms share: clamping and penalizing candidates,
calling the evaluator, turning evaluation failures into a -inf fitness,
aborting after repeated failures, cancellation, progress callbacks and
assembling the final OptimizationResult. Subclasses implement _search()
and only decide which candidates to evaluate next.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import numpy as np

from ..config import (
    DEFAULT_CONVERGENCE_TOLERANCE,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_POPULATION_SIZE,
    DEFAULT_WORKERS,
    MAX_CONSECUTIVE_FAILURES,
)
from ..exceptions import ConfigurationError, EvaluationError
from .objective import MetricsRecord, Objective
from .result import IterationRecord, OptimizationResult, RunStatus
from .space import ConstraintSet, ConstraintViolation, ParameterSpace, ParameterVector

logger = logging.getLogger(__name__)

Evaluator = Callable[[ParameterVector], Mapping[str, float]]
ProgressCallback = Callable[[IterationRecord], None]


@dataclass
class OptimizerSettings:
    """Settings shared by every optimizer."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    convergence_tolerance: float = DEFAULT_CONVERGENCE_TOLERANCE
    population_size: int = DEFAULT_POPULATION_SIZE
    seed: int | None = None
    workers: int = DEFAULT_WORKERS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if not (self.convergence_tolerance >= 0 and math.isfinite(self.convergence_tolerance)):
            raise ConfigurationError(
                f"convergence_tolerance must be finite and >= 0, got {self.convergence_tolerance}"
            )
        if self.population_size < 2:
            raise ConfigurationError(f"population_size must be >= 2, got {self.population_size}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.history_limit < 1:
            raise ConfigurationError(f"history_limit must be >= 1, got {self.history_limit}")
        if self.max_consecutive_failures < 1:
            raise ConfigurationError(
                f"max_consecutive_failures must be >= 1, got {self.max_consecutive_failures}"
            )


def relative_improvement(new: float, old: float) -> float:
    """Improvement of new over old, relative to max(|old|, 1)."""
    if math.isinf(old) and old < 0:
        return math.inf if new > old else 0.0
    if not math.isfinite(new):
        return -math.inf if new < 0 else math.inf
    return (new - old) / max(abs(old), 1.0)


@dataclass
class _Outcome:
    """Raw result of evaluating one candidate, before it is scored."""

    x: np.ndarray
    parameters: ParameterVector
    violations: list[ConstraintViolation]
    penalty: float
    metrics: MetricsRecord | None
    error: EvaluationError | None


class _StopRun(Exception):
    """Internal signal that ends a run early with a given status."""

    def __init__(self, status: RunStatus, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class Optimizer(ABC):
    """
    Base class for optimization algorithms.

    Subclasses must implement _search(), which receives the starting point
    as an array in space order and returns the RunStatus it stopped with.
    """

    name = "optimizer"
    # Population-based optimizers may evaluate a generation concurrently
    parallel = False
    # Whether completing the iteration budget counts as success
    success_at_budget = False

    def __init__(
        self,
        objective: Objective,
        constraints: ConstraintSet | ParameterSpace,
        evaluator: Evaluator,
        settings: OptimizerSettings | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel: Any = None,
    ):
        """
        Args:
            objective: Objective that turns metrics into a fitness to maximize
            constraints: ConstraintSet (or bare ParameterSpace) bounding the search
            evaluator: Function mapping a parameter vector to a metrics record
            settings: Shared optimizer settings
            progress_callback: Called with each IterationRecord as it is made
            cancel: threading.Event-like object or zero-arg callable; when it
                    signals, the run stops at the next iteration boundary
        """
        if not isinstance(objective, Objective):
            raise ConfigurationError(f"Expected Objective, got {type(objective).__name__}")
        if isinstance(constraints, ParameterSpace):
            constraints = ConstraintSet(constraints)
        if not isinstance(constraints, ConstraintSet):
            raise ConfigurationError(
                f"Expected ConstraintSet or ParameterSpace, got {type(constraints).__name__}"
            )
        if not callable(evaluator):
            raise ConfigurationError("evaluator must be callable")
        if cancel is not None and not (callable(getattr(cancel, "is_set", None)) or callable(cancel)):
            raise ConfigurationError("cancel must have an is_set() method or be callable")

        self.objective = objective
        self.constraints = constraints
        self.space = constraints.space
        self.evaluator = evaluator
        self.settings = settings or OptimizerSettings()
        self.progress_callback = progress_callback
        self.cancel = cancel
        self._reset()

    def _reset(self) -> None:
        self.rng = np.random.default_rng(self.settings.seed)
        self._objective = self.objective
        self._history: deque[IterationRecord] = deque(maxlen=self.settings.history_limit)
        self._violations: deque[ConstraintViolation] = deque(maxlen=self.settings.history_limit)
        self._iteration_count = 0
        self._evaluations = 0
        self._consecutive_failures = 0
        self._best_x: np.ndarray | None = None
        self._best_fitness = -math.inf
        self._best_metrics: MetricsRecord = {}

    # -- public ----------------------------------------------------------

    @property
    def scoring_objective(self) -> Objective:
        """The objective as used in the last run, with auto-detected scales filled in."""
        return self._objective

    def optimize(self, initial_parameters: Mapping[str, float] | None = None) -> OptimizationResult:
        """
        Run the optimizer from a starting point.

        Args:
            initial_parameters: Starting vector (defaults to the space midpoint).
                                Out-of-range values are clamped and recorded.

        Returns:
            OptimizationResult; evaluation failures and cancellation are
            reported through it rather than raised

        Raises:
            ConfigurationError: The starting vector names unknown parameters
        """
        initial = dict(initial_parameters) if initial_parameters is not None else self.space.midpoint()
        self.space.check_names(initial)
        self._reset()

        logger.info(
            "Starting %s: objective=%s, dims=%d, max_iterations=%d",
            self.name,
            self.objective.name,
            self.space.dimensionality(),
            self.settings.max_iterations,
        )

        try:
            status = self._search(self.space.to_array(initial))
            message = self._status_message(status)
        except _StopRun as stop:
            status, message = stop.status, stop.message

        result = self._build_result(status, message, initial)
        logger.info(
            "%s finished: status=%s, fitness=%s, iterations=%d, evaluations=%d",
            self.name,
            status.value,
            result.objective_value,
            result.iterations,
            result.evaluations,
        )
        return result

    # -- subclass hooks --------------------------------------------------

    @abstractmethod
    def _search(self, x0: np.ndarray) -> RunStatus:
        """
        Run the search loop.

        Args:
            x0: Starting point in space order (may be out of bounds)

        Returns:
            RunStatus.CONVERGED or RunStatus.MAX_ITERATIONS
        """
        pass

    # -- evaluation ------------------------------------------------------

    def _score_candidate(self, x: np.ndarray) -> _Outcome:
        """Clamp a candidate and call the evaluator. Safe to run in worker threads."""
        requested = self.space.from_array(x)
        parameters, violations, penalty = self.constraints.apply(requested)
        clamped = self.space.to_array(parameters)
        try:
            metrics = self.evaluator(dict(parameters))
            if not isinstance(metrics, Mapping):
                raise EvaluationError(
                    f"Evaluator returned {type(metrics).__name__}, expected a mapping",
                    parameters=parameters,
                )
            return _Outcome(clamped, parameters, violations, penalty, dict(metrics), None)
        except EvaluationError as e:
            return _Outcome(clamped, parameters, violations, penalty, None, e)
        except Exception as e:
            error = EvaluationError(f"Evaluator raised {type(e).__name__}: {e}", parameters=parameters)
            error.__cause__ = e
            return _Outcome(clamped, parameters, violations, penalty, None, error)

    def _register(self, outcome: _Outcome) -> float:
        """Score an outcome, update run bookkeeping and return its fitness."""
        self._evaluations += 1
        self._violations.extend(outcome.violations)

        error = outcome.error
        fitness = -math.inf
        if error is None:
            try:
                if self._objective.needs_calibration:
                    self._objective = self._objective.calibrated(outcome.metrics)
                fitness = self._objective.score(outcome.metrics)
            except EvaluationError as e:
                e.parameters = outcome.parameters
                error = e

        if error is not None:
            self._consecutive_failures += 1
            logger.warning(
                "%s: evaluation %d failed (%d consecutive): %s",
                self.name,
                self._evaluations,
                self._consecutive_failures,
                error,
            )
            if self._consecutive_failures >= self.settings.max_consecutive_failures:
                raise _StopRun(
                    RunStatus.EVALUATION_FAILED,
                    f"Aborted after {self._consecutive_failures} consecutive failed "
                    f"evaluations; last error: {error}",
                )
            return -math.inf

        self._consecutive_failures = 0
        fitness -= outcome.penalty
        shortfall = self._objective.target_shortfall(outcome.metrics)
        if shortfall > 0:
            fitness -= self.constraints.target_weight * shortfall

        if fitness > self._best_fitness:
            self._best_fitness = fitness
            self._best_x = outcome.x.copy()
            self._best_metrics = dict(outcome.metrics)
        return fitness

    def _evaluate(self, x: np.ndarray) -> tuple[float, np.ndarray, MetricsRecord]:
        """
        Evaluate one candidate.

        Returns:
            Tuple of (fitness, clamped position, metrics); fitness is -inf
            and metrics empty when the evaluation failed
        """
        outcome = self._score_candidate(x)
        fitness = self._register(outcome)
        return fitness, outcome.x, outcome.metrics if math.isfinite(fitness) else {}

    def _evaluate_batch(self, X: np.ndarray) -> tuple[np.ndarray, np.ndarray, list[MetricsRecord]]:
        """
        Evaluate a generation of candidates.

        With workers > 1 the evaluator calls run concurrently; results are
        then registered in population order once all of them are back.
        Until the evaluator has succeeded once, a chunk never exceeds the
        remaining failure allowance, so an evaluator that always fails is
        called no more than max_consecutive_failures times. Every call that
        ran is counted, even when the abort fires part way through a chunk.

        Returns:
            Tuple of (fitness array, clamped positions, metrics list)
        """
        if self.parallel and self.settings.workers > 1 and len(X) > 1:
            pairs = []
            with ThreadPoolExecutor(max_workers=self.settings.workers) as pool:
                start = 0
                while start < len(X):
                    size = len(X) - start
                    if self._best_x is None:
                        allowance = self.settings.max_consecutive_failures - self._consecutive_failures
                        size = min(size, max(allowance, 1))
                    outcomes = list(pool.map(self._score_candidate, X[start : start + size]))
                    pairs.extend(self._register_all(outcomes))
                    start += size
            return self._unpack(pairs)

        pairs = []
        for x in X:
            outcome = self._score_candidate(x)
            # Register immediately so repeated failures abort early
            pairs.append((outcome, self._register(outcome)))
        return self._unpack(pairs)

    def _register_all(self, outcomes: list[_Outcome]) -> list[tuple[_Outcome, float]]:
        """Register a chunk in order; an abort is raised after the whole chunk is counted."""
        pairs = []
        stop = None
        for outcome in outcomes:
            try:
                pairs.append((outcome, self._register(outcome)))
            except _StopRun as e:
                stop = stop or e
                pairs.append((outcome, -math.inf))
        if stop is not None:
            raise stop
        return pairs

    @staticmethod
    def _unpack(pairs: list[tuple[_Outcome, float]]) -> tuple[np.ndarray, np.ndarray, list[MetricsRecord]]:
        fitness = np.array([f for _, f in pairs], dtype=float)
        positions = np.array([o.x for o, _ in pairs], dtype=float)
        metrics = [o.metrics if math.isfinite(f) else {} for o, f in pairs]
        return fitness, positions, metrics

    # -- iteration bookkeeping -------------------------------------------

    def _record(self, x: np.ndarray, fitness: float, metrics: MetricsRecord) -> IterationRecord:
        """Append an iteration record and notify the progress callback."""
        record = IterationRecord(
            iteration=self._iteration_count,
            parameters=self.space.from_array(x),
            fitness=float(fitness),
            metrics=dict(metrics),
        )
        self._history.append(record)
        self._iteration_count += 1
        logger.debug("%s iteration %d: fitness=%.6g", self.name, record.iteration, record.fitness)
        if self.progress_callback is not None:
            self.progress_callback(record)
        return record

    def _check_cancelled(self) -> None:
        """Stop the run if the cancellation signal is set."""
        if self.cancel is None:
            return
        is_set = getattr(self.cancel, "is_set", None)
        cancelled = is_set() if callable(is_set) else bool(self.cancel())
        if cancelled:
            logger.info("%s cancelled after %d iterations", self.name, self._iteration_count)
            raise _StopRun(
                RunStatus.CANCELLED,
                f"Cancelled after {self._iteration_count} iterations",
            )

    def _improved(self, new: float, old: float) -> bool:
        return relative_improvement(new, old) > self.settings.convergence_tolerance

    # -- result ----------------------------------------------------------

    def _status_message(self, status: RunStatus) -> str:
        if status is RunStatus.CONVERGED:
            return f"Converged after {self._iteration_count} iterations"
        if self.success_at_budget:
            return f"Completed {self._iteration_count} iterations"
        return (
            f"Reached iteration cap ({self.settings.max_iterations}) "
            f"without meeting tolerance {self.settings.convergence_tolerance:g}"
        )

    def _build_result(
        self,
        status: RunStatus,
        message: str,
        initial: Mapping[str, float],
    ) -> OptimizationResult:
        if self._best_x is not None:
            optimized = self.space.from_array(self._best_x)
        else:
            optimized, _ = self.space.clamp(initial)

        has_best = self._best_x is not None
        success = has_best and (
            status is RunStatus.CONVERGED
            or (status is RunStatus.MAX_ITERATIONS and self.success_at_budget)
        )

        return OptimizationResult(
            success=success,
            optimized_parameters=optimized,
            objective_value=float(self._best_fitness),
            iterations=self._iteration_count,
            convergence_history=tuple(self._history),
            constraint_violations=tuple(self._violations),
            status=status,
            message=message,
            algorithm=self.name,
            evaluations=self._evaluations,
            best_metrics=dict(self._best_metrics),
            target_misses=tuple(self._objective.unmet_targets(self._best_metrics)),
        )
