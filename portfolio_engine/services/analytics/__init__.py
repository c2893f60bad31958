# portfolio_engine/services/analytics/__init__.py
"""
Analytics Engine Package.

This package turns raw, loosely-typed metric values reported by portfolio
companies into portfolio analytics:
- Value extraction (numbers, numeric strings, wrapper objects)
- Temporal classification (flow metrics sum, point-in-time metrics take latest)
- Cross-company aggregation (sum only where summable)
- Rolling totals and period bucketing
- Growth, index normalization, outliers, year over year
- Percentile benchmarks by industry and stage
- Fund performance (TVPI, DPI, RVPI, MOIC, IRR)

Architecture:
    analytics/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Data classes and enums
    ├── catalog.py               # MetricCatalog lookup tables
    ├── extraction.py            # Value Extractor
    ├── classification.py        # Temporal Classifier
    ├── aggregation.py           # Metric Aggregator
    ├── temporal.py              # Temporal Rollup, period keys/labels
    ├── growth.py                # Growth & Normalization, trends
    ├── benchmark.py             # Percentile Benchmark Engine
    ├── fund.py                  # Fund Performance Calculator
    └── service.py               # PortfolioAnalyticsService (orchestrator)

Usage:
    from portfolio_engine.services.analytics import PortfolioAnalyticsService

    service = PortfolioAnalyticsService()
    report = service.get_portfolio_metrics(rows, companies, "quarterly")

    print(report.aggregates["revenue"].sum)        # summed across companies
    print(report.aggregates["gross margin"].sum)   # None: not summable

Data Flow:
    CompanyMetricRow (storage, already fetched)
        ↓  extract_numeric_value() + normalize_period()
    MetricSample
        ↓
    ┌─────────────────────────────────────────┐
    │       PortfolioAnalyticsService         │
    │  ┌─────────────┐  ┌─────────────────┐   │
    │  │ Aggregation │  │ Temporal        │   │
    │  │ • sum/avg   │  │ • rolling total │   │
    │  │ • median    │  │ • period buckets│   │
    │  └─────────────┘  └─────────────────┘   │
    │  ┌─────────────┐  ┌─────────────────┐   │
    │  │ Growth      │  │ Benchmark       │   │
    │  │ • growth %  │  │ • p25..p90      │   │
    │  │ • outliers  │  │ • company rank  │   │
    │  └─────────────┘  └─────────────────┘   │
    └─────────────────────────────────────────┘
        ↓
    PortfolioMetrics / TrendsReport / BenchmarkRow / FundPerformance
"""

from portfolio_engine.services.analytics.aggregation import (
    aggregate_metric_values,
    aggregate_period_values,
    calculate_coverage,
    calculate_median,
    can_sum_metric,
    identify_revenue_metric,
    is_average_only,
    prefers_median,
)
from portfolio_engine.services.analytics.benchmark import (
    build_benchmark_groups,
    calculate_benchmarks,
    calculate_percentiles,
    get_company_percentile,
    iter_benchmark_batches,
    select_latest_values,
)
from portfolio_engine.services.analytics.catalog import (
    DEFAULT_CATALOG,
    MetricCatalog,
    normalize_metric_name,
)
from portfolio_engine.services.analytics.classification import (
    get_aggregation_indicator,
    get_default_aggregation_type,
    recommend_aggregation_type,
)
from portfolio_engine.services.analytics.extraction import (
    classify_raw_value,
    extract_from_raw_value,
    extract_numeric_value,
)
from portfolio_engine.services.analytics.fund import (
    FundPerformanceCalculator,
    build_fund_cash_flows,
    calculate_dpi,
    calculate_irr,
    calculate_moic,
    calculate_rvpi,
    calculate_tvpi,
)
from portfolio_engine.services.analytics.growth import (
    bucket_growth_rates,
    calculate_growth_rate,
    calculate_weighted_average,
    compare_year_over_year,
    detect_growth_outliers,
    normalize_series_to_index,
    normalize_to_index,
)
# Main service
from portfolio_engine.services.analytics.service import (
    AnalyticsCache,
    PortfolioAnalyticsService,
)
from portfolio_engine.services.analytics.temporal import (
    build_metric_samples,
    build_period_buckets,
    calculate_rolling_total,
    format_period_key,
    format_period_label,
    is_period_aligned,
    normalize_period,
    parse_period_key,
    parse_period_label,
    rollup_metric_series,
)
# Types
from portfolio_engine.services.analytics.types import (
    # Enums
    AggregationType,
    Confidence,
    GrowthDirection,
    PeriodType,
    # Raw values
    NumberValue,
    RawMetricValue,
    TextValue,
    UnsupportedValue,
    WrappedValue,
    # Input types
    CompanyMetricRow,
    CompanyProfile,
    FundInvestmentRecord,
    Investment,
    CashFlow,
    # Result types
    MetricSample,
    AggregatedMetric,
    PeriodAggregate,
    PeriodBucket,
    NormalizedPeriod,
    AggregationRecommendation,
    AggregationIndicator,
    MetricTotal,
    PercentileResult,
    BenchmarkRow,
    CompanyGrowth,
    GrowthBucket,
    GrowthOutlier,
    YearOverYearPoint,
    FundPerformance,
    CompanyMetricSummary,
    CompanyBreakdown,
    PortfolioSummary,
    PortfolioMetrics,
    TrendsReport,
)

__all__ = [
    # Main service
    "PortfolioAnalyticsService",
    "AnalyticsCache",

    # Catalog
    "MetricCatalog",
    "DEFAULT_CATALOG",
    "normalize_metric_name",

    # Enums
    "AggregationType",
    "Confidence",
    "GrowthDirection",
    "PeriodType",

    # Raw values
    "NumberValue",
    "RawMetricValue",
    "TextValue",
    "UnsupportedValue",
    "WrappedValue",

    # Input types
    "CompanyMetricRow",
    "CompanyProfile",
    "FundInvestmentRecord",
    "Investment",
    "CashFlow",

    # Result types
    "MetricSample",
    "AggregatedMetric",
    "PeriodAggregate",
    "PeriodBucket",
    "NormalizedPeriod",
    "AggregationRecommendation",
    "AggregationIndicator",
    "MetricTotal",
    "PercentileResult",
    "BenchmarkRow",
    "CompanyGrowth",
    "GrowthBucket",
    "GrowthOutlier",
    "YearOverYearPoint",
    "FundPerformance",
    "CompanyMetricSummary",
    "CompanyBreakdown",
    "PortfolioSummary",
    "PortfolioMetrics",
    "TrendsReport",

    # Calculators
    "FundPerformanceCalculator",

    # Individual functions
    "classify_raw_value",
    "extract_from_raw_value",
    "extract_numeric_value",
    "get_default_aggregation_type",
    "recommend_aggregation_type",
    "get_aggregation_indicator",
    "aggregate_metric_values",
    "aggregate_period_values",
    "calculate_median",
    "can_sum_metric",
    "prefers_median",
    "is_average_only",
    "identify_revenue_metric",
    "calculate_coverage",
    "calculate_rolling_total",
    "format_period_key",
    "format_period_label",
    "parse_period_key",
    "parse_period_label",
    "normalize_period",
    "is_period_aligned",
    "build_metric_samples",
    "rollup_metric_series",
    "build_period_buckets",
    "calculate_growth_rate",
    "normalize_to_index",
    "normalize_series_to_index",
    "calculate_weighted_average",
    "bucket_growth_rates",
    "detect_growth_outliers",
    "compare_year_over_year",
    "calculate_percentiles",
    "get_company_percentile",
    "select_latest_values",
    "build_benchmark_groups",
    "calculate_benchmarks",
    "iter_benchmark_batches",
    "calculate_tvpi",
    "calculate_dpi",
    "calculate_rvpi",
    "calculate_moic",
    "calculate_irr",
    "build_fund_cash_flows",
]
