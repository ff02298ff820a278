"""Genetic algorithm with roulette selection, uniform crossover and elitism."""

import numpy as np

from ..config import PLATEAU_PATIENCE
from ..exceptions import ConfigurationError
from .base import Optimizer
from .result import RunStatus


class GeneticAlgorithmOptimizer(Optimizer):
    """
    Population-based optimizer.

    Each generation selects parents by fitness-proportionate (roulette)
    selection, breeds offspring with uniform crossover and Gaussian
    mutation, and carries the single best individual over unchanged. The
    elite keeps its cached fitness, so the best fitness per generation
    never decreases.
    """

    name = "genetic_algorithm"
    parallel = True

    def __init__(
        self,
        *args,
        mutation_rate: float = 0.1,
        mutation_scale: float = 0.1,
        crossover_prob: float = 0.5,
        patience: int = PLATEAU_PATIENCE,
        selection_floor: float = 1e-9,
        **kwargs,
    ):
        """
        Args:
            mutation_rate: Per-gene mutation probability
            mutation_scale: Mutation standard deviation as a fraction of each span
            crossover_prob: Probability a gene is inherited from the first parent
            patience: Generations without improvement before stopping
            selection_floor: Minimum selection weight (the epsilon of the fitness shift)
        """
        super().__init__(*args, **kwargs)
        if not 0 <= mutation_rate <= 1:
            raise ConfigurationError(f"mutation_rate must be in [0, 1], got {mutation_rate}")
        if not 0 <= crossover_prob <= 1:
            raise ConfigurationError(f"crossover_prob must be in [0, 1], got {crossover_prob}")
        if mutation_scale < 0:
            raise ConfigurationError(f"mutation_scale must be >= 0, got {mutation_scale}")
        if patience < 1:
            raise ConfigurationError(f"patience must be >= 1, got {patience}")
        self.mutation_rate = mutation_rate
        self.mutation_scale = mutation_scale
        self.crossover_prob = crossover_prob
        self.patience = patience
        self.selection_floor = selection_floor

    def selection_weights(self, fitness: np.ndarray) -> np.ndarray:
        """
        Roulette-wheel selection probabilities.

        Fitness is shifted by |min fitness| + floor so zero and negative
        individuals keep a nonzero chance; failed (-inf) individuals get the
        floor weight only.
        """
        finite = np.isfinite(fitness)
        if not finite.any():
            return np.full(len(fitness), 1.0 / len(fitness))
        shift = abs(float(fitness[finite].min())) + self.selection_floor
        weights = np.where(finite, np.where(finite, fitness, 0.0) + shift, self.selection_floor)
        return weights / weights.sum()

    def _crossover(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        mask = self.rng.random(len(a)) < self.crossover_prob
        return np.where(mask, a, b)

    def _mutate(self, child: np.ndarray) -> np.ndarray:
        mask = self.rng.random(len(child)) < self.mutation_rate
        noise = self.rng.normal(0.0, self.mutation_scale * self.space.spans)
        return self.space.clip_array(child + mask * noise)

    def _breed(self, population: np.ndarray, fitness: np.ndarray, n: int) -> np.ndarray:
        probs = self.selection_weights(fitness)
        parents = self.rng.choice(len(population), size=(n, 2), p=probs)
        return np.array([
            self._mutate(self._crossover(population[i], population[j]))
            for i, j in parents
        ])

    def _search(self, x0: np.ndarray) -> RunStatus:
        size = self.settings.population_size
        population = self.space.random_array(size, self.rng)
        population[0] = x0

        fitness, population, metrics = self._evaluate_batch(population)

        best_seen = -np.inf
        stale = 0
        while True:
            elite = int(np.argmax(fitness))
            self._record(population[elite], fitness[elite], metrics[elite])

            if self._improved(fitness[elite], best_seen):
                best_seen = fitness[elite]
                stale = 0
            else:
                stale += 1
            if stale >= self.patience:
                return RunStatus.CONVERGED
            if self._iteration_count >= self.settings.max_iterations:
                return RunStatus.MAX_ITERATIONS
            self._check_cancelled()

            offspring = self._breed(population, fitness, size - 1)
            off_fitness, off_positions, off_metrics = self._evaluate_batch(offspring)

            population = np.vstack([population[elite][None, :], off_positions])
            fitness = np.concatenate([[fitness[elite]], off_fitness])
            metrics = [metrics[elite]] + off_metrics
