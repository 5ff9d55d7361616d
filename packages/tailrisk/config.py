"""Configuration for tail-risk analysis runs loaded from environment variables."""

from typing import Tuple

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Analysis configuration.

    Every field has a default matching the keyword defaults of the
    tailrisk.risk functions and can be overridden with a TAILRISK_-prefixed
    environment variable or a .env file (e.g. TAILRISK_MC_SEED=7).
    """

    CONFIDENCE_LEVELS: Tuple[float, ...] = (0.95, 0.99)
    MC_SIMULATIONS: int = 10_000
    MC_SEED: int = 42
    GARCH_MAX_ITER: int = 5000
    GARCH_TOLERANCE: float = 1e-6
    STRESS_SEED: int = 123
    DRAWDOWN_DIVERGENCE_THRESHOLD: float = 20.0  # percentage points
    PERIODS_PER_YEAR: int = 12
    COVARIANCE_METHOD: str = "sample"  # "sample" or "lw"

    model_config = {
        "env_prefix": "TAILRISK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def get_settings() -> Settings:
    """Return a fresh Settings instance read from the environment."""
    return Settings()
