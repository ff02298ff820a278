"""Finite-difference gradient ascent with an adaptive step size."""

import logging
import math

import numpy as np

from ..exceptions import ConfigurationError
from .base import Optimizer, relative_improvement
from .result import RunStatus

logger = logging.getLogger(__name__)


class GradientDescentOptimizer(Optimizer):
    """
    Numeric gradient optimizer.

    Works in unit-normalized coordinates so every parameter moves on the
    same scale. Each iteration estimates the gradient with a symmetric
    finite difference, takes a step of length eta along it, and keeps the
    step only if fitness improved. Rejected steps halve eta; accepted
    steps grow it by 10% up to max_learning_rate.

    The search is sequential and deterministic for a fixed starting point
    and evaluator.
    """

    name = "gradient_descent"

    def __init__(
        self,
        *args,
        epsilon: float = 0.01,
        learning_rate: float = 0.1,
        max_learning_rate: float = 0.5,
        min_learning_rate: float = 1e-8,
        window: int = 5,
        **kwargs,
    ):
        """
        Args:
            epsilon: Finite-difference perturbation as a fraction of each span
            learning_rate: Initial step length in normalized units
            max_learning_rate: Cap for the growing step length
            min_learning_rate: Step length below which the search stops
            window: Iterations over which relative change is checked
        """
        super().__init__(*args, **kwargs)
        if not 0 < epsilon <= 0.5:
            raise ConfigurationError(f"epsilon must be in (0, 0.5], got {epsilon}")
        if not 0 < learning_rate <= max_learning_rate:
            raise ConfigurationError(
                f"learning_rate must be in (0, max_learning_rate], got {learning_rate}"
            )
        if window < 1:
            raise ConfigurationError(f"window must be >= 1, got {window}")
        self.epsilon = epsilon
        self.learning_rate = learning_rate
        self.max_learning_rate = max_learning_rate
        self.min_learning_rate = min_learning_rate
        self.window = window

    def _gradient(self, x: np.ndarray, fitness: float) -> np.ndarray:
        """Finite-difference gradient with respect to normalized coordinates."""
        spans = self.space.spans
        grad = np.zeros(len(x))

        for i in range(len(x)):
            h = self.epsilon * spans[i]
            up = x.copy()
            up[i] += h
            down = x.copy()
            down[i] -= h
            up = self.space.clip_array(up)
            down = self.space.clip_array(down)

            f_up, _, _ = self._evaluate(up)
            f_down, _, _ = self._evaluate(down)

            if math.isfinite(f_up) and math.isfinite(f_down):
                slope = (f_up - f_down) / (up[i] - down[i])
            elif math.isfinite(f_up) and up[i] != x[i]:
                slope = (f_up - fitness) / (up[i] - x[i])
            elif math.isfinite(f_down) and down[i] != x[i]:
                slope = (fitness - f_down) / (x[i] - down[i])
            else:
                slope = 0.0
            grad[i] = slope * spans[i]

        return grad

    def _search(self, x0: np.ndarray) -> RunStatus:
        fitness, x, metrics = self._evaluate(x0)
        self._record(x, fitness, metrics)
        trace = [fitness]

        eta = self.learning_rate

        while self._iteration_count < self.settings.max_iterations:
            self._check_cancelled()

            if not math.isfinite(fitness):
                # No usable reference point yet: restart from a random one
                fitness, x, metrics = self._evaluate(self.space.random_array(1, self.rng)[0])
                self._record(x, fitness, metrics)
                trace.append(fitness)
                continue

            grad = self._gradient(x, fitness)
            norm = float(np.linalg.norm(grad))
            if norm < 1e-12:
                logger.debug("%s: gradient vanished at iteration %d", self.name, self._iteration_count)
                return RunStatus.CONVERGED

            u = self.space.normalize(x) + eta * grad / norm
            new_fitness, new_x, new_metrics = self._evaluate(self.space.denormalize(u))

            if new_fitness > fitness:
                x, fitness, metrics = new_x, new_fitness, new_metrics
                eta = min(eta * 1.1, self.max_learning_rate)
            else:
                eta *= 0.5

            self._record(x, fitness, metrics)
            trace.append(fitness)

            if len(trace) > self.window:
                change = abs(relative_improvement(trace[-1], trace[-1 - self.window]))
                if change < self.settings.convergence_tolerance:
                    return RunStatus.CONVERGED
            if eta < self.min_learning_rate:
                return RunStatus.CONVERGED

        return RunStatus.MAX_ITERATIONS
