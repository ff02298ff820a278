"""Particle swarm optimization."""

import numpy as np

from ..config import PLATEAU_PATIENCE
from ..exceptions import ConfigurationError
from .base import Optimizer
from .result import RunStatus


class ParticleSwarmOptimizer(Optimizer):
    """
    Global-best particle swarm.

    velocity = w*velocity + c1*r1*(personal_best - x) + c2*r2*(global_best - x)

    Positions are clamped into bounds after every move. The recorded
    history follows the swarm's global best, which never decreases.
    """

    name = "particle_swarm"
    parallel = True

    def __init__(
        self,
        *args,
        inertia: float = 0.7,
        cognitive: float = 1.5,
        social: float = 1.5,
        initial_velocity: float = 0.1,
        patience: int = PLATEAU_PATIENCE,
        **kwargs,
    ):
        """
        Args:
            inertia: Inertia weight w
            cognitive: Cognitive coefficient c1 (pull to personal best)
            social: Social coefficient c2 (pull to global best)
            initial_velocity: Initial velocity range as a fraction of each span
            patience: Iterations without global-best improvement before stopping
        """
        super().__init__(*args, **kwargs)
        if inertia < 0 or cognitive < 0 or social < 0:
            raise ConfigurationError("PSO coefficients must be non-negative")
        if patience < 1:
            raise ConfigurationError(f"patience must be >= 1, got {patience}")
        self.inertia = inertia
        self.cognitive = cognitive
        self.social = social
        self.initial_velocity = initial_velocity
        self.patience = patience

    def _search(self, x0: np.ndarray) -> RunStatus:
        size = self.settings.population_size
        spans = self.space.spans
        dims = self.space.dimensionality()

        positions = self.space.random_array(size, self.rng)
        positions[0] = x0
        velocities = self.rng.uniform(-1.0, 1.0, (size, dims)) * self.initial_velocity * spans

        fitness, positions, metrics = self._evaluate_batch(positions)
        pbest_x = positions.copy()
        pbest_f = fitness.copy()
        pbest_m = list(metrics)

        g = int(np.argmax(pbest_f))
        gbest_x, gbest_f, gbest_m = pbest_x[g].copy(), pbest_f[g], pbest_m[g]

        best_seen = -np.inf
        stale = 0
        while True:
            self._record(gbest_x, gbest_f, gbest_m)

            if self._improved(gbest_f, best_seen):
                best_seen = gbest_f
                stale = 0
            else:
                stale += 1
            if stale >= self.patience:
                return RunStatus.CONVERGED
            if self._iteration_count >= self.settings.max_iterations:
                return RunStatus.MAX_ITERATIONS
            self._check_cancelled()

            r1 = self.rng.random((size, dims))
            r2 = self.rng.random((size, dims))
            velocities = (
                self.inertia * velocities
                + self.cognitive * r1 * (pbest_x - positions)
                + self.social * r2 * (gbest_x - positions)
            )
            velocities = np.clip(velocities, -spans, spans)

            fitness, positions, metrics = self._evaluate_batch(positions + velocities)

            better = fitness > pbest_f
            pbest_x[better] = positions[better]
            pbest_f[better] = fitness[better]
            for i in np.flatnonzero(better):
                pbest_m[i] = metrics[i]

            g = int(np.argmax(pbest_f))
            if pbest_f[g] > gbest_f:
                gbest_x, gbest_f, gbest_m = pbest_x[g].copy(), pbest_f[g], pbest_m[g]
