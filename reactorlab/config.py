"""Global configuration and constants."""

import logging
import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
RESULTS_DIR = PROJECT_ROOT / "results"

# Default optimizer settings
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_CONVERGENCE_TOLERANCE = 1e-3
DEFAULT_POPULATION_SIZE = 50
DEFAULT_HISTORY_LIMIT = 1000
MAX_CONSECUTIVE_FAILURES = 3

# Plateau length (generations/iterations) for GA and PSO early stop
PLATEAU_PATIENCE = 15

# Post-hoc sensitivity probe, as a fraction of each parameter's span
SENSITIVITY_STEP = 0.01


def _load_env() -> None:
    """Load variables from .env file into os.environ."""
    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


_load_env()

LOG_LEVEL = os.environ.get("REACTORLAB_LOG_LEVEL", "WARNING").upper()
DEFAULT_WORKERS = max(1, _env_int("REACTORLAB_WORKERS", 1))


def configure_logging(level: str | int | None = None) -> None:
    """
    Attach a console handler to the reactorlab logger.

    Args:
        level: Logging level name or number. Defaults to REACTORLAB_LOG_LEVEL.
    """
    level = level if level is not None else LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("reactorlab")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
