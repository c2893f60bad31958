# portfolio_engine/schemas/__init__.py
"""
Pydantic schemas for serializing analytics results.

This package contains the response models for the engine's computed
structures (see analytics.py).

Usage:
    from portfolio_engine.schemas import PortfolioMetricsResponse

    payload = PortfolioMetricsResponse.model_validate(report).model_dump_json()
"""

from portfolio_engine.schemas.analytics import (
    # Aggregation
    AggregatedMetricResponse,
    PeriodAggregateResponse,
    PeriodBucketResponse,
    # Portfolio
    CompanyMetricSummaryResponse,
    CompanyBreakdownResponse,
    PortfolioSummaryResponse,
    PortfolioMetricsResponse,
    # Classification
    AggregationRecommendationResponse,
    AggregationIndicatorResponse,
    MetricTotalResponse,
    # Benchmarks
    PercentileResponse,
    BenchmarkRowResponse,
    # Trends
    GrowthBucketResponse,
    OutlierResponse,
    YearOverYearResponse,
    TrendsResponse,
    # Fund performance
    FundPerformanceResponse,
    decimal_to_str,
)

__all__ = [
    # Aggregation
    "AggregatedMetricResponse",
    "PeriodAggregateResponse",
    "PeriodBucketResponse",
    # Portfolio
    "CompanyMetricSummaryResponse",
    "CompanyBreakdownResponse",
    "PortfolioSummaryResponse",
    "PortfolioMetricsResponse",
    # Classification
    "AggregationRecommendationResponse",
    "AggregationIndicatorResponse",
    "MetricTotalResponse",
    # Benchmarks
    "PercentileResponse",
    "BenchmarkRowResponse",
    # Trends
    "GrowthBucketResponse",
    "OutlierResponse",
    "YearOverYearResponse",
    "TrendsResponse",
    # Fund performance
    "FundPerformanceResponse",
    "decimal_to_str",
]
