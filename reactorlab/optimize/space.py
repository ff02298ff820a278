"""Bounded parameter spaces and constraint handling."""

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from ..exceptions import ConfigurationError

# Type alias for parameter vectors
ParameterVector = dict[str, float]


@dataclass(frozen=True)
class Parameter:
    """A single named continuous parameter with [min, max] bounds."""

    name: str
    min: float
    max: float

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Parameter name must be a non-empty string")
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ConfigurationError(
                f"Parameter '{self.name}' has non-finite bounds [{self.min}, {self.max}]"
            )
        if self.min >= self.max:
            raise ConfigurationError(
                f"Parameter '{self.name}' requires min < max, got [{self.min}, {self.max}]"
            )

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2

    def sample(self, rng: np.random.Generator) -> float:
        """Sample a value uniformly from this parameter's bounds."""
        return float(rng.uniform(self.min, self.max))


@dataclass(frozen=True)
class ConstraintViolation:
    """A requested value that had to be clamped back into bounds."""

    parameter_name: str
    requested_value: float
    clamped_value: float


def _normalize_parameters(
    parameters: Sequence[Parameter] | Mapping[str, tuple | Parameter],
) -> list[Parameter]:
    """Convert tuple bounds to Parameter objects."""
    if isinstance(parameters, Mapping):
        normalized = []
        for name, spec in parameters.items():
            if isinstance(spec, Parameter):
                normalized.append(spec)
            elif isinstance(spec, tuple) and len(spec) == 2:
                normalized.append(Parameter(name, float(spec[0]), float(spec[1])))
            else:
                raise ConfigurationError(f"Invalid parameter spec for '{name}': {spec}")
        return normalized

    normalized = []
    for spec in parameters:
        if not isinstance(spec, Parameter):
            raise ConfigurationError(f"Expected Parameter, got {type(spec).__name__}")
        normalized.append(spec)
    return normalized


class ParameterSpace:
    """
    Ordered collection of bounded continuous parameters.

    The space is immutable once built. Vectors are plain dicts keyed by
    parameter name; optimizers work on numpy arrays in the same order.
    """

    def __init__(self, parameters: Sequence[Parameter] | Mapping[str, tuple | Parameter]):
        """
        Args:
            parameters: Parameter objects, or {name: (min, max)} bounds
        """
        params = _normalize_parameters(parameters)
        if not params:
            raise ConfigurationError("ParameterSpace needs at least one parameter")

        names = [p.name for p in params]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate parameter names: {duplicates}")

        self._parameters = tuple(params)
        self._index = {p.name: i for i, p in enumerate(params)}
        self.lows = np.array([p.min for p in params], dtype=float)
        self.highs = np.array([p.max for p in params], dtype=float)
        self.spans = self.highs - self.lows
        for arr in (self.lows, self.highs, self.spans):
            arr.setflags(write=False)

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        return self._parameters

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._parameters]

    def __len__(self) -> int:
        return len(self._parameters)

    def __iter__(self):
        return iter(self._parameters)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __getitem__(self, name: str) -> Parameter:
        return self._parameters[self._index[name]]

    def __repr__(self) -> str:
        bounds = ", ".join(f"{p.name}=[{p.min:g}, {p.max:g}]" for p in self._parameters)
        return f"ParameterSpace({bounds})"

    def dimensionality(self) -> int:
        return len(self._parameters)

    def midpoint(self) -> ParameterVector:
        """Return the center of every parameter range."""
        return {p.name: p.midpoint for p in self._parameters}

    def check_names(self, vector: Mapping[str, float]) -> None:
        """Raise ConfigurationError if the vector names parameters outside the space."""
        unknown = [name for name in vector if name not in self._index]
        if unknown:
            raise ConfigurationError(
                f"Unknown parameters {unknown}; space defines {self.names}"
            )

    def clamp(
        self, vector: Mapping[str, float]
    ) -> tuple[ParameterVector, list[ConstraintViolation]]:
        """
        Clamp a vector into bounds without raising for out-of-range values.

        Missing names are filled with the parameter midpoint. NaN values are
        replaced by the midpoint and reported as a violation.

        Args:
            vector: Mapping of parameter name to requested value

        Returns:
            Tuple of (clamped vector in space order, list of violations)
        """
        self.check_names(vector)

        clamped: ParameterVector = {}
        violations: list[ConstraintViolation] = []
        for p in self._parameters:
            requested = float(vector.get(p.name, p.midpoint))
            if math.isnan(requested):
                value = p.midpoint
            else:
                value = min(max(requested, p.min), p.max)
            if value != requested:
                violations.append(ConstraintViolation(p.name, requested, value))
            clamped[p.name] = value
        return clamped, violations

    def clip_array(self, x: np.ndarray) -> np.ndarray:
        """Clip an array (or batch of arrays) to bounds, silently."""
        return np.clip(x, self.lows, self.highs)

    def contains(self, vector: Mapping[str, float]) -> bool:
        """Check every value of the vector lies within its bounds."""
        return all(
            name in self._index
            and self[name].min <= value <= self[name].max
            for name, value in vector.items()
        )

    def to_array(self, vector: Mapping[str, float]) -> np.ndarray:
        """Convert a vector to an array in space order (midpoint for missing names)."""
        return np.array(
            [float(vector.get(p.name, p.midpoint)) for p in self._parameters],
            dtype=float,
        )

    def from_array(self, x: np.ndarray) -> ParameterVector:
        """Convert an array in space order back to a named vector."""
        return {p.name: float(v) for p, v in zip(self._parameters, x)}

    def normalize(self, x: np.ndarray) -> np.ndarray:
        """Map values to the unit hypercube."""
        return (x - self.lows) / self.spans

    def denormalize(self, u: np.ndarray) -> np.ndarray:
        """Map unit-hypercube coordinates back to parameter values."""
        return self.lows + u * self.spans

    def random_sample(self, rng: np.random.Generator | None = None) -> ParameterVector:
        """Draw a uniform-random vector inside bounds."""
        rng = rng if rng is not None else np.random.default_rng()
        return {p.name: p.sample(rng) for p in self._parameters}

    def random_array(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw n uniform-random points as an (n, d) array."""
        return rng.uniform(self.lows, self.highs, size=(n, len(self)))

    def latin_hypercube(self, n: int, rng: np.random.Generator | None = None) -> np.ndarray:
        """
        Stratified sample of n points as an (n, d) array.

        Each dimension's unit interval is cut into n strata; one point is
        drawn per stratum and the strata are permuted independently per
        dimension.
        """
        rng = rng if rng is not None else np.random.default_rng()
        d = len(self)
        if n <= 0:
            return np.empty((0, d))
        u = np.empty((n, d))
        for j in range(d):
            u[:, j] = (rng.permutation(n) + rng.random(n)) / n
        return self.denormalize(u)


class ConstraintSet:
    """
    Bound constraints applied before every evaluation.

    Out-of-range candidates are clamped rather than rejected; the violation
    is recorded and the candidate's fitness is reduced by a penalty
    proportional to how far outside the bounds it was requested.
    """

    def __init__(
        self,
        space: ParameterSpace,
        penalty_weight: float = 1.0,
        target_weight: float = 1.0,
    ):
        """
        Args:
            space: Parameter space whose bounds are enforced
            penalty_weight: Fitness penalty per span-normalized unit of overshoot
            target_weight: Fitness penalty per unit of relative target shortfall
        """
        if penalty_weight < 0 or target_weight < 0:
            raise ConfigurationError("Constraint penalty weights must be non-negative")
        self.space = space
        self.penalty_weight = float(penalty_weight)
        self.target_weight = float(target_weight)

    def __repr__(self) -> str:
        return (
            f"ConstraintSet({self.space!r}, penalty_weight={self.penalty_weight}, "
            f"target_weight={self.target_weight})"
        )

    def apply(
        self, vector: Mapping[str, float]
    ) -> tuple[ParameterVector, list[ConstraintViolation], float]:
        """
        Clamp a candidate and compute its bound penalty.

        Returns:
            Tuple of (clamped vector, violations, penalty >= 0)
        """
        clamped, violations = self.space.clamp(vector)
        penalty = 0.0
        for v in violations:
            if math.isfinite(v.requested_value):
                overshoot = abs(v.requested_value - v.clamped_value)
                penalty += overshoot / self.space[v.parameter_name].span
            else:
                penalty += 1.0
        return clamped, violations, self.penalty_weight * penalty


# Default operating envelope for the six bioreactor control parameters
BIOREACTOR_BOUNDS: dict[str, tuple[float, float]] = {
    "temperature": (20.0, 40.0),  # deg C
    "ph": (6.0, 8.0),
    "flow_rate": (0.1, 10.0),  # mL/min
    "mixing_speed": (50.0, 300.0),  # rpm
    "electrode_voltage": (0.0, 200.0),  # mV
    "substrate_concentration": (0.5, 5.0),  # g/L
}


def bioreactor_space(**overrides: tuple[float, float]) -> ParameterSpace:
    """
    Build the standard bioreactor operating-parameter space.

    Args:
        **overrides: Replacement (min, max) bounds, or extra parameters
                     such as pressure=(1.0, 2.0)

    Returns:
        ParameterSpace over temperature, pH, flow rate, mixing speed,
        electrode voltage and substrate concentration
    """
    bounds = {**BIOREACTOR_BOUNDS, **overrides}
    return ParameterSpace(bounds)
