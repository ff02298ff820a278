"""Tests for configuration helpers and shared settings."""

import logging

import pytest

from reactorlab import __version__
from reactorlab.config import DEFAULT_MAX_ITERATIONS, configure_logging
from reactorlab.exceptions import ConfigurationError, ReactorLabError
from reactorlab.optimize import OptimizerSettings, relative_improvement


@pytest.fixture
def reactorlab_logger():
    logger = logging.getLogger("reactorlab")
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    logger.setLevel(level)
    logger.handlers = handlers


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_sets_level_by_name(self, reactorlab_logger):
        configure_logging("debug")
        assert reactorlab_logger.level == logging.DEBUG

    def test_handler_added_once(self, reactorlab_logger):
        reactorlab_logger.handlers = []
        configure_logging("INFO")
        configure_logging("INFO")
        assert len(reactorlab_logger.handlers) == 1

    def test_unknown_level_falls_back_to_warning(self, reactorlab_logger):
        configure_logging("LOUD")
        assert reactorlab_logger.level == logging.WARNING


class TestSettings:
    """Tests for OptimizerSettings and shared helpers."""

    def test_defaults(self):
        settings = OptimizerSettings()
        assert settings.max_iterations == DEFAULT_MAX_ITERATIONS == 100
        assert settings.convergence_tolerance == 1e-3
        assert settings.population_size == 50
        assert settings.max_consecutive_failures == 3

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            OptimizerSettings(history_limit=0)
        assert issubclass(ConfigurationError, ReactorLabError)

    @pytest.mark.parametrize(
        "new, old, expected",
        [
            (110.0, 100.0, 0.1),
            (0.5, 0.0, 0.5),
            (-0.5, -0.25, -0.25),
            (5.0, float("-inf"), float("inf")),
        ],
    )
    def test_relative_improvement(self, new, old, expected):
        assert relative_improvement(new, old) == pytest.approx(expected)

    def test_version(self):
        assert __version__ == "0.1.0"
