"""Optimization orchestrator - algorithm selection, runs and post-hoc diagnostics."""

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

import numpy as np

from ..config import (
    DEFAULT_CONVERGENCE_TOLERANCE,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_POPULATION_SIZE,
    DEFAULT_WORKERS,
    SENSITIVITY_STEP,
)
from ..exceptions import ConfigurationError
from .base import Evaluator, Optimizer, OptimizerSettings, ProgressCallback
from .bayesian import BayesianOptimizer
from .genetic import GeneticAlgorithmOptimizer
from .gradient import GradientDescentOptimizer
from .objective import Objective
from .result import IterationRecord, OptimizationResult, RunStatus
from .space import ConstraintSet, ParameterSpace, ParameterVector
from .swarm import ParticleSwarmOptimizer

logger = logging.getLogger(__name__)

ALGORITHMS: dict[str, type[Optimizer]] = {
    "gradient_descent": GradientDescentOptimizer,
    "genetic_algorithm": GeneticAlgorithmOptimizer,
    "particle_swarm": ParticleSwarmOptimizer,
    "bayesian": BayesianOptimizer,
}

_ALIASES = {
    "gd": "gradient_descent",
    "ga": "genetic_algorithm",
    "genetic": "genetic_algorithm",
    "pso": "particle_swarm",
    "bo": "bayesian",
    "bayesian_optimization": "bayesian",
}

# camelCase request keys accepted by OptimizationParameters.from_mapping
_PARAM_ALIASES = {
    "maxIterations": "max_iterations",
    "convergenceTolerance": "convergence_tolerance",
    "populationSize": "population_size",
    "acquisitionFunction": "acquisition",
    "historyLimit": "history_limit",
}


def resolve_algorithm(name: str) -> str:
    """
    Normalize an algorithm name to its registry key.

    Accepts registry keys in any case ('GRADIENT_DESCENT'), hyphenated or
    spaced forms, and the short aliases gd, ga, pso and bo.

    Raises:
        ConfigurationError: Name does not match one of the four algorithms
    """
    key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
    key = _ALIASES.get(key, key)
    if key not in ALGORITHMS:
        raise ConfigurationError(
            f"Unknown algorithm {name!r}; expected one of {sorted(ALGORITHMS)}"
        )
    return key


@dataclass
class OptimizationParameters:
    """Per-request run parameters."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    convergence_tolerance: float = DEFAULT_CONVERGENCE_TOLERANCE
    population_size: int | None = None
    seed: int | None = None
    workers: int = DEFAULT_WORKERS
    acquisition: str = "ei"
    history_limit: int = DEFAULT_HISTORY_LIMIT

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "OptimizationParameters":
        """Build from a dict, accepting snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            name = _PARAM_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown optimization parameter {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    def to_settings(self) -> OptimizerSettings:
        return OptimizerSettings(
            max_iterations=int(self.max_iterations),
            convergence_tolerance=float(self.convergence_tolerance),
            population_size=int(self.population_size or DEFAULT_POPULATION_SIZE),
            seed=self.seed,
            workers=int(self.workers),
            history_limit=int(self.history_limit),
        )


def as_parameters(
    params: OptimizationParameters | Mapping[str, Any] | None,
) -> OptimizationParameters:
    """Accept OptimizationParameters, a dict of them, or None for defaults."""
    if params is None:
        return OptimizationParameters()
    if isinstance(params, OptimizationParameters):
        return params
    if isinstance(params, Mapping):
        return OptimizationParameters.from_mapping(params)
    raise ConfigurationError(f"Invalid optimization parameters: {params!r}")


def _fitness(
    objective: Objective,
    constraints: ConstraintSet,
    evaluator: Evaluator,
    vector: ParameterVector,
) -> float:
    """Fitness of an in-bounds vector, or NaN if it cannot be evaluated."""
    try:
        metrics = evaluator(dict(vector))
        value = objective.score(metrics)
    except Exception as e:
        logger.warning("Diagnostic evaluation at %s failed: %s", vector, e)
        return math.nan
    return value - constraints.target_weight * objective.target_shortfall(metrics)


def compute_sensitivity(
    parameters: ParameterVector,
    objective: Objective,
    constraints: ConstraintSet | ParameterSpace,
    evaluator: Evaluator,
    step: float = SENSITIVITY_STEP,
) -> dict[str, float]:
    """
    Coarse per-parameter sensitivity around an optimum.

    Each dimension is perturbed independently by +/- step * span (clipped
    to bounds) and the central difference is reported per full span:
    (f(x+) - f(x-)) / (x+ - x-) * span.

    Returns:
        Dict of {parameter_name: sensitivity}; NaN where probes failed
    """
    if isinstance(constraints, ParameterSpace):
        constraints = ConstraintSet(constraints)
    space = constraints.space

    sensitivity = {}
    for p in space:
        center = parameters[p.name]
        hi = min(center + step * p.span, p.max)
        lo = max(center - step * p.span, p.min)
        f_hi = _fitness(objective, constraints, evaluator, {**parameters, p.name: hi})
        f_lo = _fitness(objective, constraints, evaluator, {**parameters, p.name: lo})
        if math.isnan(f_hi) or math.isnan(f_lo) or hi == lo:
            sensitivity[p.name] = math.nan
        else:
            sensitivity[p.name] = (f_hi - f_lo) / (hi - lo) * p.span
    return sensitivity


def compute_optimal_ranges(
    parameters: ParameterVector,
    fitness: float,
    objective: Objective,
    constraints: ConstraintSet | ParameterSpace,
    evaluator: Evaluator,
    samples: int = 20,
    tolerance: float = 0.05,
) -> dict[str, tuple[float, float]]:
    """
    Range of each parameter over which fitness stays near the optimum.

    Sweeps each dimension over `samples` evenly spaced values (plus the
    optimum itself), holding the others fixed, and keeps the values whose
    fitness is within `tolerance` * |fitness| of the optimum.

    Returns:
        Dict of {parameter_name: (low, high)}
    """
    if isinstance(constraints, ParameterSpace):
        constraints = ConstraintSet(constraints)
    threshold = fitness - tolerance * abs(fitness)

    ranges = {}
    for p in constraints.space:
        center = parameters[p.name]
        values = np.append(np.linspace(p.min, p.max, samples), center)
        good = [
            float(v) for v in values
            if _fitness(objective, constraints, evaluator, {**parameters, p.name: float(v)}) >= threshold
        ]
        ranges[p.name] = (min(good), max(good)) if good else (center, center)
    return ranges


def _print_progress(max_iterations: int, every: int = 10) -> ProgressCallback:
    best = -math.inf

    def callback(record: IterationRecord) -> None:
        nonlocal best
        best = max(best, record.fitness)
        if (record.iteration + 1) % every == 0:
            print(f"Iteration {record.iteration + 1}/{max_iterations}: best fitness={best:.4f}")

    return callback


def run(
    algorithm: str,
    objective: Objective,
    constraints: ConstraintSet | ParameterSpace,
    initial_parameters: Mapping[str, float] | None,
    evaluator: Evaluator,
    params: OptimizationParameters | Mapping[str, Any] | None = None,
    progress_callback: ProgressCallback | None = None,
    cancel: Any = None,
    analyze_ranges: bool = False,
    verbose: bool = False,
) -> OptimizationResult:
    """
    Run one optimization request end to end.

    Args:
        algorithm: 'gradient_descent', 'genetic_algorithm', 'particle_swarm'
                   or 'bayesian' (aliases and upper-case names accepted)
        objective: Objective to maximize (MINIMIZE objectives negate internally)
        constraints: ConstraintSet or ParameterSpace bounding the search
        initial_parameters: Starting vector (None = space midpoint)
        evaluator: Function mapping a parameter vector to a metrics dict
        params: OptimizationParameters or dict with max_iterations,
                convergence_tolerance, population_size, seed, workers, acquisition
        progress_callback: Called with each IterationRecord
        cancel: threading.Event-like object or zero-arg callable
        analyze_ranges: Also compute per-parameter optimal ranges
        verbose: Print progress every 10 iterations

    Returns:
        OptimizationResult with sensitivity filled in when the run completed

    Raises:
        ConfigurationError: Unknown algorithm or malformed inputs

    Example:
        result = run(
            "gradient_descent",
            make_objective("power"),
            ParameterSpace({"temperature": (20, 40)}),
            {"temperature": 20},
            lambda p: {"power": -(p["temperature"] - 30) ** 2 + 100},
        )
        print(dict(result.optimized_parameters))
    """
    key = resolve_algorithm(algorithm)
    run_params = as_parameters(params)
    settings = run_params.to_settings()
    if isinstance(constraints, ParameterSpace):
        constraints = ConstraintSet(constraints)

    if verbose and progress_callback is None:
        progress_callback = _print_progress(settings.max_iterations)

    extra = {"acquisition": run_params.acquisition} if key == "bayesian" else {}
    optimizer = ALGORITHMS[key](
        objective,
        constraints,
        evaluator,
        settings,
        progress_callback=progress_callback,
        cancel=cancel,
        **extra,
    )
    result = optimizer.optimize(initial_parameters)

    completed = result.status in (RunStatus.CONVERGED, RunStatus.MAX_ITERATIONS)
    if not (completed and math.isfinite(result.objective_value)):
        return result

    scoring = optimizer.scoring_objective
    sensitivity = compute_sensitivity(
        result.optimized_parameters, scoring, constraints, evaluator
    )
    ranges = {}
    if analyze_ranges:
        ranges = compute_optimal_ranges(
            result.optimized_parameters,
            result.objective_value,
            scoring,
            constraints,
            evaluator,
        )
    return replace(result, sensitivity=sensitivity, optimal_ranges=ranges)


# Convenience alias
optimize = run
