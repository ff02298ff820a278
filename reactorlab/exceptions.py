"""Exception types raised by the optimization engine."""

from typing import Any


class ReactorLabError(Exception):
    """Base class for all reactorlab errors."""


class ConfigurationError(ReactorLabError, ValueError):
    """
    Malformed parameter space, objective, settings or algorithm name.

    Always raised before the first evaluation of a run.
    """


class EvaluationError(ReactorLabError):
    """
    A candidate could not be scored.

    Raised when the evaluator itself fails or when its metrics record lacks a
    metric the objective needs. Optimizers catch it and treat the candidate
    as the worst possible fitness.
    """

    def __init__(
        self,
        message: str,
        metric: str | None = None,
        parameters: dict[str, float] | None = None,
        result: Any = None,
    ):
        super().__init__(message)
        self.metric = metric
        self.parameters = dict(parameters) if parameters is not None else None
        self.result = result


class ConvergenceFailure(ReactorLabError):
    """Iteration budget exhausted without meeting the convergence tolerance."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


class OptimizationCancelled(ReactorLabError):
    """The run was stopped by an external cancellation signal."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result
