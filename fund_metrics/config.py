"""
config.py — Engine constants and environment-driven settings.

IRRConfig is what the pure engine consumes. EngineSettings reads the
same knobs (plus cache, worker and logging options) from the environment
so the application can build an IRRConfig once and pass it down.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class IRRConfig:
    """Root-finder constants for the IRR calculation."""

    guess: float = 0.10
    max_iterations: int = 1000
    precision: float = 1e-6
    min_rate: float = -0.99  # reject < -99%/yr
    max_rate: float = 10.0  # reject > 1000%/yr
    min_days: int = 30  # shortest first-to-last span worth annualising


DEFAULT_IRR_CONFIG = IRRConfig()


class EngineSettings(BaseSettings):
    """Settings loaded from FUND_METRICS_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="FUND_METRICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # IRR
    irr_guess: float = DEFAULT_IRR_CONFIG.guess
    irr_max_iterations: int = DEFAULT_IRR_CONFIG.max_iterations
    irr_precision: float = DEFAULT_IRR_CONFIG.precision
    irr_min_rate: float = DEFAULT_IRR_CONFIG.min_rate
    irr_max_rate: float = DEFAULT_IRR_CONFIG.max_rate
    irr_min_days: int = DEFAULT_IRR_CONFIG.min_days

    # Metrics cache
    cache_max_size: int = 1000
    cache_ttl_seconds: Optional[float] = None

    # Batch worker
    worker_timeout_seconds: float = 30.0
    worker_init_timeout_seconds: float = 5.0

    log_level: str = "INFO"

    def irr_config(self) -> IRRConfig:
        return IRRConfig(
            guess=self.irr_guess,
            max_iterations=self.irr_max_iterations,
            precision=self.irr_precision,
            min_rate=self.irr_min_rate,
            max_rate=self.irr_max_rate,
            min_days=self.irr_min_days,
        )


_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Return the current settings instance, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def set_settings(settings: EngineSettings) -> None:
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
