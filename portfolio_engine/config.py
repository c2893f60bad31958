# portfolio_engine/config.py
"""
Engine configuration using Pydantic Settings.

Loads configuration from environment variables with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- LOG_LEVEL / LOG_FORMAT: Logging setup (see portfolio_engine.utils.logging)
- CACHE_*: Analytics result cache sizing
- BENCHMARK_BATCH_SIZE: Chunk size for benchmark persistence
- EXTRA_*_METRICS: Deployment-specific additions to the metric catalog

List settings are read from the environment as JSON arrays, e.g.
    EXTRA_FLOW_METRICS='["bookings", "billings"]'

Algorithm constants (IRR tolerance, percentile sample floor, ...) are NOT
configurable; they live in portfolio_engine.services.constants.

Configuration is validated when the settings object is created. Invalid
configuration raises a pydantic ValidationError with a descriptive message.

Usage:
    from portfolio_engine.config import settings

    if settings.is_production:
        # Production-specific logic
        ...
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portfolio_engine.services.constants import (
    CACHE_MAX_SIZE,
    CACHE_TTL_SECONDS,
    DEFAULT_BENCHMARK_BATCH_SIZE,
)


# .env in the project root (parent of the package directory)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - LOG_LEVEL: Logging level (default: "INFO")
        - LOG_FORMAT: "text" or "json" (default: "text")

    Cache Settings:
        - CACHE_TTL_SECONDS: Result lifetime in seconds (default: 3600)
        - CACHE_MAX_SIZE: Maximum cached results (default: 1000)

    Benchmark Settings:
        - BENCHMARK_BATCH_SIZE: Rows per persistence batch (default: 200)

    Catalog Extensions:
        - EXTRA_FLOW_METRICS: Extra metric names summed over time
        - EXTRA_POINT_IN_TIME_METRICS: Extra metric names taken as latest value
        - EXTRA_SUMMABLE_METRICS: Extra metric names summable across companies
    """

    # Environment mode
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(
        default="text",
        description="Log output format (text or json)"
    )

    # =========================================================================
    # CACHE
    # =========================================================================
    cache_ttl_seconds: int = Field(
        default=CACHE_TTL_SECONDS,
        ge=0,
        description="Time-to-live of cached analytics results in seconds"
    )
    cache_max_size: int = Field(
        default=CACHE_MAX_SIZE,
        ge=1,
        description="Maximum number of cached analytics results"
    )

    # =========================================================================
    # BENCHMARKS
    # =========================================================================
    benchmark_batch_size: int = Field(
        default=DEFAULT_BENCHMARK_BATCH_SIZE,
        ge=1,
        le=10_000,
        description="Number of benchmark rows handed to storage per batch"
    )

    # =========================================================================
    # METRIC CATALOG EXTENSIONS
    # =========================================================================
    extra_flow_metrics: list[str] = Field(
        default_factory=list,
        description="Metric names added to the flow (summed over time) catalog"
    )
    extra_point_in_time_metrics: list[str] = Field(
        default_factory=list,
        description="Metric names added to the point-in-time (latest value) catalog"
    )
    extra_summable_metrics: list[str] = Field(
        default_factory=list,
        description="Metric names added to the cross-company summable catalog"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "extra_flow_metrics",
        "extra_point_in_time_metrics",
        "extra_summable_metrics",
    )
    @classmethod
    def normalize_metric_names(cls, names: list[str]) -> list[str]:
        """Trim and lowercase catalog names; blank entries are dropped."""
        return [name.lower().strip() for name in names if name.strip()]

    @model_validator(mode="after")
    def validate_engine_config(self) -> "Settings":
        """
        Validate cross-field configuration.

        Rules:
        - log_format must be text or json
        - a metric cannot be both a flow and a point-in-time metric
        """
        log_format = self.log_format.lower().strip()
        if log_format not in ("text", "json"):
            raise ValueError(
                f"LOG_FORMAT must be 'text' or 'json', got: '{self.log_format}'"
            )
        self.log_format = log_format

        overlap = set(self.extra_flow_metrics) & set(self.extra_point_in_time_metrics)
        if overlap:
            raise ValueError(
                "Metrics cannot be both flow and point-in-time: "
                f"{', '.join(sorted(overlap))}"
            )

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == "test"


# Create single instance
settings = Settings()
