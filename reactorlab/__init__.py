"""Bioreactor operating-parameter optimization."""

from .exceptions import (
    ConfigurationError,
    ConvergenceFailure,
    EvaluationError,
    OptimizationCancelled,
    ReactorLabError,
)
from .optimize import (
    ConstraintSet,
    Objective,
    ObjectiveType,
    OptimizationParameters,
    OptimizationResult,
    Parameter,
    ParameterSpace,
    RunStatus,
    Target,
    bioreactor_space,
    composite_objective,
    make_objective,
    optimize,
    optimize_pareto,
    run,
)

__version__ = "0.1.0"
