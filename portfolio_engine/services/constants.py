# portfolio_engine/services/constants.py
"""
Centralized constants for the Portfolio Analytics Engine.

This module provides a single source of truth for the numeric constants
used across the analytics calculations. These are algorithm parameters,
not deployment settings: changing them changes published numbers, so they
are deliberately kept out of `portfolio_engine.config`.

Usage:
    from portfolio_engine.services.constants import (
        IRR_MAX_ITERATIONS,
        MIN_BENCHMARK_SAMPLE_SIZE,
    )
"""

from decimal import Decimal


# =============================================================================
# IRR CALCULATION SETTINGS
# =============================================================================

# Newton-Raphson starting point (10% annual return)
IRR_INITIAL_GUESS: float = 0.10

# Maximum solver iterations; also the only execution-time ceiling in the engine
IRR_MAX_ITERATIONS: int = 100

# Convergence when |r_new - r_old| < tolerance
IRR_TOLERANCE: float = 1e-8

# |NPV'(r)| below this is treated as a flat derivative
IRR_DERIVATIVE_FLOOR: float = 1e-14

# Nudge applied to the rate when the derivative is flat
IRR_PERTURBATION: float = 0.1

# Converged rates outside [-100%, +10,000%] are rejected as non-physical
IRR_MIN_RATE: float = -1.0
IRR_MAX_RATE: float = 100.0

# Year length used to turn cash-flow dates into year fractions
DAYS_PER_YEAR: float = 365.25

# Precision of the returned IRR (0.00000001)
IRR_QUANTUM: Decimal = Decimal("0.00000001")


# =============================================================================
# BENCHMARK SETTINGS
# =============================================================================

# Percentiles are never published for fewer observations than this
MIN_BENCHMARK_SAMPLE_SIZE: int = 5

# Percentile levels published per benchmark group
BENCHMARK_PERCENTILES: tuple[tuple[str, float], ...] = (
    ("p25", 0.25),
    ("p50", 0.50),
    ("p75", 0.75),
    ("p90", 0.90),
)

# Default chunk size when handing benchmark rows to the persistence layer
DEFAULT_BENCHMARK_BATCH_SIZE: int = 200


# =============================================================================
# TREND SETTINGS
# =============================================================================

# |z-score| above which a company's growth is reported as an outlier
OUTLIER_Z_SCORE: float = 2.0

# Minimum number of growth rates before outlier detection runs
MIN_OUTLIER_SAMPLE_SIZE: int = 3

# Default number of trailing periods considered by trend reports
DEFAULT_TREND_PERIODS: int = 8

# Bounds for the number of trailing periods a caller may request
MIN_TREND_PERIODS: int = 1
MAX_TREND_PERIODS: int = 24


# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Time-to-live for cached analytics results in seconds
CACHE_TTL_SECONDS: int = 3600

# Maximum number of entries in the analytics cache
CACHE_MAX_SIZE: int = 1000


# =============================================================================
# COMMON VALUES
# =============================================================================

ZERO: Decimal = Decimal("0")
