# portfolio_engine/services/__init__.py
"""
Service layer for the Portfolio Analytics Engine.

This package contains the calculation and orchestration logic. Services:
- Have NO knowledge of HTTP or storage (rows arrive already fetched)
- Report expected edge cases by returning None
- Raise domain-specific exceptions for programmer errors
- Are easily testable via dependency injection (catalog, cache)

Usage:
    from portfolio_engine.services.analytics import PortfolioAnalyticsService
    from portfolio_engine.services import ServiceError, ValidationError

Architecture:
    services/
    ├── __init__.py                  # This file - exception exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Algorithm constants
    └── analytics/                   # Analytics engine
        ├── service.py               # PortfolioAnalyticsService + AnalyticsCache
        ├── types.py                 # Analytics data types
        ├── catalog.py               # Metric lookup tables
        ├── extraction.py            # Value extraction
        ├── classification.py        # Flow vs point-in-time classification
        ├── aggregation.py           # Cross-company aggregation
        ├── temporal.py              # Rolling totals, period keys and buckets
        ├── growth.py                # Growth, index, outliers, year over year
        ├── benchmark.py             # Percentile benchmarks
        └── fund.py                  # TVPI/DPI/RVPI/MOIC and IRR

The analytics package is not imported here: portfolio_engine.config reads
services.constants, and the analytics service reads config.
"""

from portfolio_engine.services.exceptions import (
    AnalyticsError,
    InvalidAggregationTypeError,
    InvalidPeriodKeyError,
    InvalidPeriodTypeError,
    ServiceError,
    UnsupportedRawValueError,
    ValidationError,
)

__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InvalidPeriodTypeError",
    "InvalidAggregationTypeError",
    "InvalidPeriodKeyError",
    # Analytics
    "AnalyticsError",
    "UnsupportedRawValueError",
]
