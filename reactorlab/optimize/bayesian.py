"""Bayesian optimization with a Gaussian-process surrogate."""

import logging
from typing import Callable

import numpy as np
from scipy import linalg
from scipy.spatial.distance import cdist, pdist
from scipy.stats import norm

from ..exceptions import ConfigurationError
from .base import Optimizer
from .result import RunStatus

logger = logging.getLogger(__name__)

AcquisitionFunc = Callable[[np.ndarray, np.ndarray, float], np.ndarray]


def expected_improvement(mu: np.ndarray, sigma: np.ndarray, best: float) -> np.ndarray:
    """
    Expected Improvement for maximization.

    EI(x) = (mu - best) * Phi(z) + sigma * phi(z),  z = (mu - best) / sigma

    Points with sigma == 0 score 0. The result is never negative.
    """
    mu = np.asarray(mu, dtype=float)
    sigma = np.asarray(sigma, dtype=float)
    ei = np.zeros_like(mu)
    mask = sigma > 0
    improvement = mu[mask] - best
    z = improvement / sigma[mask]
    ei[mask] = improvement * norm.cdf(z) + sigma[mask] * norm.pdf(z)
    return np.maximum(ei, 0.0)


def probability_of_improvement(mu: np.ndarray, sigma: np.ndarray, best: float) -> np.ndarray:
    """Probability that a point beats the current best (0 where sigma == 0)."""
    mu = np.asarray(mu, dtype=float)
    sigma = np.asarray(sigma, dtype=float)
    pi = np.zeros_like(mu)
    mask = sigma > 0
    pi[mask] = norm.cdf((mu[mask] - best) / sigma[mask])
    return pi


def upper_confidence_bound(
    mu: np.ndarray,
    sigma: np.ndarray,
    best: float,
    kappa: float = 2.0,
) -> np.ndarray:
    """Optimistic estimate mu + kappa * sigma."""
    return np.asarray(mu, dtype=float) + kappa * np.asarray(sigma, dtype=float)


ACQUISITION_FUNCTIONS: dict[str, AcquisitionFunc] = {
    "ei": expected_improvement,
    "pi": probability_of_improvement,
    "ucb": upper_confidence_bound,
}


class GaussianProcess:
    """
    Minimal Gaussian-process regressor with a squared-exponential kernel.

    Inputs are expected in the unit hypercube. Targets are standardized
    before fitting; the length scale is set to the median pairwise
    distance between training points.
    """

    def __init__(self, noise: float = 1e-6, jitter: float = 1e-4):
        self.noise = noise
        self.jitter = jitter
        self.length_scale = 0.5
        self._X: np.ndarray | None = None
        self._L: np.ndarray | None = None
        self._alpha: np.ndarray | None = None
        self._y_mean = 0.0
        self._y_std = 1.0

    def _kernel(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        sq_dist = cdist(A, B, "sqeuclidean")
        return np.exp(-0.5 * sq_dist / self.length_scale**2)

    def fit(self, X: np.ndarray, y: np.ndarray) -> "GaussianProcess":
        X = np.atleast_2d(np.asarray(X, dtype=float))
        y = np.asarray(y, dtype=float)

        self._y_mean = float(y.mean())
        std = float(y.std())
        self._y_std = std if std > 1e-12 else 1.0
        y_norm = (y - self._y_mean) / self._y_std

        if len(X) > 1:
            median = float(np.median(pdist(X)))
            self.length_scale = median if median > 1e-3 else 0.5

        K = self._kernel(X, X) + self.noise * np.eye(len(X))
        try:
            L = linalg.cholesky(K, lower=True)
        except linalg.LinAlgError:
            # Add jitter
            L = linalg.cholesky(K + self.jitter * np.eye(len(X)), lower=True)

        self._X = X
        self._L = L
        self._alpha = linalg.cho_solve((L, True), y_norm)
        return self

    def predict(self, X: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Predict mean and standard deviation.

        Returns:
            Tuple of (mu, sigma), each of shape (n,), in target units
        """
        if self._X is None:
            raise RuntimeError("GaussianProcess.predict() called before fit()")
        X = np.atleast_2d(np.asarray(X, dtype=float))
        K_s = self._kernel(self._X, X)
        mu = K_s.T @ self._alpha
        v = linalg.solve_triangular(self._L, K_s, lower=True)
        var = np.maximum(1.0 - np.sum(v**2, axis=0), 0.0)
        return self._y_mean + self._y_std * mu, self._y_std * np.sqrt(var)


class BayesianOptimizer(Optimizer):
    """
    Surrogate-guided optimizer.

    Starts from a small design of experiments (the initial vector plus a
    Latin-hypercube sample), then repeatedly fits a Gaussian process to all
    successful observations and evaluates the random candidate with the
    highest acquisition score. Every evaluation is one iteration. There is
    no plateau stop: the search keeps exploring until the budget is spent.
    """

    name = "bayesian"
    success_at_budget = True

    def __init__(
        self,
        *args,
        n_initial: int = 5,
        n_candidates: int = 200,
        acquisition: str = "ei",
        **kwargs,
    ):
        """
        Args:
            n_initial: Design-of-experiments size, including the initial vector
            n_candidates: Random candidates scored per iteration
            acquisition: 'ei' (expected improvement), 'pi' or 'ucb'
        """
        super().__init__(*args, **kwargs)
        key = str(acquisition).lower()
        if key not in ACQUISITION_FUNCTIONS:
            raise ConfigurationError(
                f"Unknown acquisition function {acquisition!r}; "
                f"expected one of {sorted(ACQUISITION_FUNCTIONS)}"
            )
        if n_initial < 1:
            raise ConfigurationError(f"n_initial must be >= 1, got {n_initial}")
        if n_candidates < 1:
            raise ConfigurationError(f"n_candidates must be >= 1, got {n_candidates}")
        self.n_initial = n_initial
        self.n_candidates = n_candidates
        self.acquisition = key
        self.surrogate = GaussianProcess()
        self.last_acquisition: np.ndarray | None = None

    def _reset(self) -> None:
        super()._reset()
        self._X_obs: list[np.ndarray] = []
        self._y_obs: list[float] = []

    def _observe(self, x: np.ndarray) -> None:
        fitness, clamped, metrics = self._evaluate(x)
        if np.isfinite(fitness):
            self._X_obs.append(self.space.normalize(clamped))
            self._y_obs.append(fitness)
        self._record(clamped, fitness, metrics)

    def _propose(self) -> np.ndarray:
        """Pick the next point to evaluate."""
        dims = self.space.dimensionality()
        if len(self._y_obs) < 2:
            return self.space.random_array(1, self.rng)[0]

        y = np.array(self._y_obs)
        self.surrogate.fit(np.array(self._X_obs), y)

        candidates = self.rng.random((self.n_candidates, dims))
        mu, sigma = self.surrogate.predict(candidates)
        scores = ACQUISITION_FUNCTIONS[self.acquisition](mu, sigma, float(y.max()))
        self.last_acquisition = scores

        if scores.max() > 0 or self.acquisition == "ucb":
            best = int(np.argmax(scores))
        else:
            # Nothing expected to improve: explore where the surrogate is least sure
            best = int(np.argmax(sigma))
        return self.space.denormalize(candidates[best])

    def _search(self, x0: np.ndarray) -> RunStatus:
        n_design = min(self.n_initial, self.settings.max_iterations)
        design = [x0]
        if n_design > 1:
            design.extend(self.space.latin_hypercube(n_design - 1, self.rng))

        for x in design:
            self._check_cancelled()
            self._observe(x)

        while self._iteration_count < self.settings.max_iterations:
            self._check_cancelled()
            self._observe(self._propose())

        return RunStatus.MAX_ITERATIONS
