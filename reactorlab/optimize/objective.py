"""Objective/scoring functions for optimization."""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal, Mapping

from ..exceptions import ConfigurationError, EvaluationError

# Type alias for metrics records produced by an evaluator
MetricsRecord = dict[str, float]

# Common bioreactor metric names
MetricName = Literal[
    "power",
    "efficiency",
    "cost",
    "durability",
]


class ObjectiveType(Enum):
    """How metrics are combined into a scalar fitness."""

    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"
    MULTI = "multi"


@dataclass(frozen=True)
class Target:
    """Threshold on a raw metric value (e.g. minimum power, maximum cost)."""

    metric: str
    minimum: float | None = None
    maximum: float | None = None

    def __post_init__(self):
        if self.minimum is None and self.maximum is None:
            raise ConfigurationError(f"Target on '{self.metric}' needs a minimum or maximum")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ConfigurationError(
                f"Target on '{self.metric}' has minimum {self.minimum} > maximum {self.maximum}"
            )

    def shortfall(self, value: float) -> float:
        """Relative distance outside the threshold (0 when the target is met)."""
        if self.minimum is not None and value < self.minimum:
            return (self.minimum - value) / max(abs(self.minimum), 1.0)
        if self.maximum is not None and value > self.maximum:
            return (value - self.maximum) / max(abs(self.maximum), 1.0)
        return 0.0

    def describe(self, value: float) -> str:
        if self.minimum is not None and value < self.minimum:
            return f"{self.metric} {value:.4g} below minimum {self.minimum:.4g}"
        return f"{self.metric} {value:.4g} above maximum {self.maximum:.4g}"


def _fetch(metrics: Mapping[str, float], metric: str) -> float:
    if metric not in metrics:
        raise EvaluationError(f"Metric '{metric}' missing from evaluation result", metric=metric)
    try:
        value = float(metrics[metric])
    except (TypeError, ValueError) as e:
        raise EvaluationError(
            f"Metric '{metric}' is not numeric: {metrics[metric]!r}", metric=metric
        ) from e
    if not math.isfinite(value):
        raise EvaluationError(f"Metric '{metric}' is not finite: {value}", metric=metric)
    return value


@dataclass(frozen=True)
class Objective:
    """
    Scalar fitness from a metrics record.

    Optimizers always maximize the value returned by score(). MINIMIZE
    objectives negate the metric; MULTI objectives sum weighted, scaled
    metrics, with minimized components negated through `directions`.

    Example:
        obj = Objective(
            ObjectiveType.MULTI,
            weights={"power": 0.7, "cost": 0.3},
            directions={"cost": ObjectiveType.MINIMIZE},
        )
        obj.score({"power": 50.0, "cost": 20.0})  # 0.7*50 - 0.3*20 = 29.0
    """

    type: ObjectiveType
    metric: str | None = None
    weights: dict[str, float] = field(default_factory=dict)
    directions: dict[str, ObjectiveType] = field(default_factory=dict)
    scales: dict[str, float] = field(default_factory=dict)
    targets: tuple[Target, ...] = ()

    def __post_init__(self):
        if not isinstance(self.type, ObjectiveType):
            try:
                object.__setattr__(self, "type", ObjectiveType(str(self.type).lower()))
            except ValueError as e:
                raise ConfigurationError(f"Unknown objective type: {self.type!r}") from e

        if self.type is ObjectiveType.MULTI:
            if not self.weights:
                raise ConfigurationError("MULTI objective needs at least one weighted metric")
            for name, weight in self.weights.items():
                if not math.isfinite(weight) or weight < 0:
                    raise ConfigurationError(
                        f"Weight for '{name}' must be finite and non-negative, got {weight}"
                    )
            for name, direction in self.directions.items():
                if name not in self.weights:
                    raise ConfigurationError(f"Direction given for unweighted metric '{name}'")
                if direction is ObjectiveType.MULTI:
                    raise ConfigurationError(f"Direction for '{name}' must be MAXIMIZE or MINIMIZE")
        else:
            if not self.metric:
                raise ConfigurationError(f"{self.type.name} objective needs a metric name")
            if self.weights:
                raise ConfigurationError("Weights are only valid for MULTI objectives")

        for name, scale in self.scales.items():
            if not math.isfinite(scale) or scale <= 0:
                raise ConfigurationError(f"Scale for '{name}' must be positive, got {scale}")

        object.__setattr__(self, "targets", tuple(self.targets))

    @property
    def metrics(self) -> list[str]:
        """Metric names this objective reads from a metrics record."""
        if self.type is ObjectiveType.MULTI:
            return list(self.weights)
        return [self.metric]

    @property
    def name(self) -> str:
        if self.type is ObjectiveType.MULTI:
            return "multi(" + ", ".join(f"{m}={w:g}" for m, w in self.weights.items()) + ")"
        return f"{self.type.value}_{self.metric}"

    def score(self, metrics: Mapping[str, float]) -> float:
        """
        Compute the scalar fitness of a metrics record.

        Raises:
            EvaluationError: A referenced metric is missing or not finite
        """
        if self.type is ObjectiveType.MAXIMIZE:
            return _fetch(metrics, self.metric)
        if self.type is ObjectiveType.MINIMIZE:
            return -_fetch(metrics, self.metric)

        total = 0.0
        for metric, weight in self.weights.items():
            value = _fetch(metrics, metric)
            sign = -1.0 if self.directions.get(metric) is ObjectiveType.MINIMIZE else 1.0
            total += weight * sign * value / self.scales.get(metric, 1.0)
        return total

    @property
    def needs_calibration(self) -> bool:
        return self.type is ObjectiveType.MULTI and any(
            m not in self.scales for m in self.weights
        )

    def calibrated(self, metrics: Mapping[str, float]) -> "Objective":
        """
        Return a copy with missing reference scales taken from a metrics record.

        Each unscaled metric gets max(|value|, 1.0) as its scale, so metrics
        of very different magnitude contribute comparably and a metric that
        starts near zero is not blown up by a tiny scale.
        """
        if not self.needs_calibration:
            return self
        scales = dict(self.scales)
        for metric in self.weights:
            if metric not in scales:
                scales[metric] = max(abs(_fetch(metrics, metric)), 1.0)
        return replace(self, scales=scales)

    def unmet_targets(self, metrics: Mapping[str, float]) -> list[str]:
        """Describe every target the metrics record misses."""
        misses = []
        for target in self.targets:
            value = metrics.get(target.metric)
            if value is None:
                continue
            if target.shortfall(float(value)) > 0:
                misses.append(target.describe(float(value)))
        return misses

    def target_shortfall(self, metrics: Mapping[str, float]) -> float:
        """Sum of relative target misses (0 when all targets are met)."""
        total = 0.0
        for target in self.targets:
            value = metrics.get(target.metric)
            if value is not None:
                total += target.shortfall(float(value))
        return total


def make_objective(
    metric: str | MetricName,
    maximize: bool = True,
    targets: tuple[Target, ...] = (),
) -> Objective:
    """
    Create a single-metric objective.

    Args:
        metric: Name of the metric in the evaluator's output
        maximize: If True, higher is better; if False, lower is better
        targets: Optional thresholds on raw metrics

    Returns:
        Objective that extracts the score from a metrics dict
    """
    kind = ObjectiveType.MAXIMIZE if maximize else ObjectiveType.MINIMIZE
    return Objective(kind, metric=metric, targets=targets)


def composite_objective(
    weights: dict[str, float],
    maximize: dict[str, bool] | None = None,
    scales: dict[str, float] | None = None,
    targets: tuple[Target, ...] = (),
) -> Objective:
    """
    Create a weighted combination of metrics.

    Args:
        weights: Dict of {metric_name: weight}, all non-negative
        maximize: Dict of {metric_name: True if higher is better}
                  Defaults to True for all metrics
        scales: Reference scale per metric; unscaled metrics are
                auto-calibrated on the first evaluation of a run
        targets: Optional thresholds on raw metrics

    Returns:
        MULTI objective computing the weighted sum

    Example:
        obj = composite_objective(
            weights={'power': 0.7, 'cost': 0.3},
            maximize={'power': True, 'cost': False},
        )
    """
    maximize = maximize or {}
    directions = {
        metric: ObjectiveType.MAXIMIZE if higher else ObjectiveType.MINIMIZE
        for metric, higher in maximize.items()
    }
    return Objective(
        ObjectiveType.MULTI,
        weights=dict(weights),
        directions=directions,
        scales=dict(scales or {}),
        targets=targets,
    )
