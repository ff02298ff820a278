"""Parameter optimization - spaces, objectives, algorithms and orchestration."""

from .base import Optimizer, OptimizerSettings, relative_improvement
from .bayesian import (
    BayesianOptimizer,
    GaussianProcess,
    expected_improvement,
    probability_of_improvement,
    upper_confidence_bound,
)
from .engine import (
    ALGORITHMS,
    OptimizationParameters,
    compute_optimal_ranges,
    compute_sensitivity,
    optimize,
    resolve_algorithm,
    run,
)
from .genetic import GeneticAlgorithmOptimizer
from .gradient import GradientDescentOptimizer
from .objective import (
    MetricsRecord,
    Objective,
    ObjectiveType,
    Target,
    composite_objective,
    make_objective,
)
from .pareto import ParetoResult, best_compromise, non_dominated_mask, optimize_pareto
from .result import IterationRecord, OptimizationResult, RunStatus
from .space import (
    BIOREACTOR_BOUNDS,
    ConstraintSet,
    ConstraintViolation,
    Parameter,
    ParameterSpace,
    ParameterVector,
    bioreactor_space,
)
from .swarm import ParticleSwarmOptimizer
