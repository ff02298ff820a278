"""
Shared fixtures for reactorlab tests.

The reference problem throughout is a single temperature dimension in
[20, 40] with power = -(temperature - 30)^2 + 100, peaking at 30.
"""

import threading

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest

from reactorlab.exceptions import EvaluationError
from reactorlab.optimize import ParameterSpace, make_objective


def quadratic_power(params: dict[str, float]) -> dict[str, float]:
    return {"power": -(params["temperature"] - 30.0) ** 2 + 100.0}


class CountingEvaluator:
    """Wraps an evaluator and counts its calls (safe across worker threads)."""

    def __init__(self, func):
        self.func = func
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, params):
        with self._lock:
            self.calls += 1
        return self.func(params)


class FailingEvaluator:
    """Evaluator that raises on every call."""

    def __init__(self, exc: Exception | None = None):
        self.exc = exc or RuntimeError("simulator crashed")
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, params):
        with self._lock:
            self.calls += 1
        raise self.exc


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def temperature_space():
    return ParameterSpace({"temperature": (20.0, 40.0)})


@pytest.fixture
def reactor_space():
    return ParameterSpace({"temperature": (20.0, 40.0), "ph": (6.0, 8.0)})


@pytest.fixture
def power_objective():
    return make_objective("power")


@pytest.fixture
def quadratic():
    return CountingEvaluator(quadratic_power)


@pytest.fixture
def failing():
    return FailingEvaluator()


@pytest.fixture
def missing_metric():
    """Evaluator whose records lack the 'power' metric."""
    return CountingEvaluator(lambda p: {"efficiency": 0.5})


@pytest.fixture
def evaluation_error():
    return FailingEvaluator(EvaluationError("solver did not converge"))
