# portfolio_engine/schemas/analytics.py
"""
Pydantic schemas for Analytics responses.

These schemas define the serialized form of the engine's computed
structures:
- Portfolio metrics (aggregates, period buckets, company breakdown)
- Metric totals and aggregation recommendations
- Percentile benchmarks
- Trends (growth distribution, year over year, outliers)
- Fund performance (TVPI, DPI, RVPI, MOIC, IRR)

Every response model reads the engine's dataclasses directly:
    PortfolioMetricsResponse.model_validate(service.get_portfolio_metrics(...))

Design decisions:
- `sum` is always emitted. null means "not summable across companies",
  which is different from 0 and from a missing field
- Metric values are floats (they are floats in the engine)
- Fund money amounts and ratios are serialized as STRINGS to preserve
  Decimal precision (IRR in decimal form: "0.1" = 10%)
- Null is returned when a metric cannot be calculated
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_engine.services.analytics.types import (
    AggregationType,
    Confidence,
    GrowthDirection,
    PeriodType,
)


def decimal_to_str(value: Decimal | int | str | None) -> str | None:
    """Convert a Decimal to a plain (non-exponent) string, preserving precision."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        value = Decimal(value)
    # normalize() drops trailing zeros; ":f" keeps "10" from becoming "1E+1"
    return f"{value.normalize():f}"


# =============================================================================
# AGGREGATION SCHEMAS
# =============================================================================

class AggregatedMetricResponse(BaseModel):
    """
    Cross-company summary of one metric.

    `sum` is null when the metric cannot be summed across companies
    (percentages, ratios, per-unit values).
    """

    model_config = ConfigDict(from_attributes=True)

    sum: float | None = Field(
        ...,
        description="Sum across companies, null if the metric is not summable"
    )
    average: float = Field(..., description="Arithmetic mean")
    median: float = Field(..., description="Median value")
    min: float = Field(..., description="Smallest value")
    max: float = Field(..., description="Largest value")
    count: int = Field(..., description="Number of values aggregated")


class PeriodAggregateResponse(BaseModel):
    """Partial aggregate of one metric within one period."""

    model_config = ConfigDict(from_attributes=True)

    sum: float | None = Field(
        ...,
        description="Sum across companies, null if the metric is not summable"
    )
    average: float
    count: int


class PeriodBucketResponse(BaseModel):
    """All metric aggregates for one period."""

    model_config = ConfigDict(from_attributes=True)

    period_key: str = Field(..., description="Sortable key, e.g. '2024-Q1'")
    label: str = Field(..., description="Display label, e.g. 'Q1 2024'")
    aggregates: dict[str, PeriodAggregateResponse] = Field(default_factory=dict)


# =============================================================================
# PORTFOLIO SCHEMAS
# =============================================================================

class CompanyMetricSummaryResponse(BaseModel):
    """Latest and previous value of one metric for one company."""

    model_config = ConfigDict(from_attributes=True)

    latest: float
    previous: float | None = None
    growth: float | None = Field(
        None,
        description="Period-over-period growth in percent (50.0 = +50%)"
    )


class CompanyBreakdownResponse(BaseModel):
    """Per-company section of the portfolio report."""

    model_config = ConfigDict(from_attributes=True)

    company_id: str
    company_name: str | None = None
    industry: str | None = None
    stage: str | None = None
    metrics: dict[str, CompanyMetricSummaryResponse] = Field(default_factory=dict)
    revenue_metric: str | None = Field(
        None,
        description="Headline revenue metric (first of mrr, arr, revenue, ...)"
    )
    revenue_growth: float | None = None


class PortfolioSummaryResponse(BaseModel):
    """Headline counts of the portfolio report."""

    model_config = ConfigDict(from_attributes=True)

    total_companies: int
    companies_with_data: int
    total_metric_values: int


class PortfolioMetricsResponse(BaseModel):
    """Cross-company portfolio report."""

    model_config = ConfigDict(from_attributes=True)

    period_type: PeriodType
    summary: PortfolioSummaryResponse
    aggregates: dict[str, AggregatedMetricResponse] = Field(default_factory=dict)
    can_sum: dict[str, bool] = Field(default_factory=dict)
    by_period: list[PeriodBucketResponse] = Field(default_factory=list)
    by_company: list[CompanyBreakdownResponse] = Field(
        default_factory=list,
        description="Companies ordered by revenue growth, companies without growth last"
    )


# =============================================================================
# CLASSIFICATION SCHEMAS
# =============================================================================

class AggregationRecommendationResponse(BaseModel):
    """Advisory aggregation type suggestion (UI hint only)."""

    model_config = ConfigDict(from_attributes=True)

    recommended: AggregationType
    confidence: Confidence
    reason: str


class AggregationIndicatorResponse(BaseModel):
    """Symbol and label shown next to a rolled-up total."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    label: str


class MetricTotalResponse(BaseModel):
    """Rolling total of one metric over the visible periods."""

    model_config = ConfigDict(from_attributes=True)

    metric_name: str
    aggregation_type: AggregationType
    total: float | None = Field(
        ...,
        description="Sum (flow) or latest value (point-in-time); null if no data"
    )
    recommendation: AggregationRecommendationResponse
    indicator: AggregationIndicatorResponse


# =============================================================================
# BENCHMARK SCHEMAS
# =============================================================================

class PercentileResponse(BaseModel):
    """Distribution thresholds of a benchmark group."""

    model_config = ConfigDict(from_attributes=True)

    p25: float
    p50: float
    p75: float
    p90: float


class BenchmarkRowResponse(PercentileResponse):
    """
    Published benchmark for one (metric, period type, industry, stage) group.

    Null industry/stage means the benchmark spans all industries/stages.
    """

    metric_name: str
    period_type: str
    industry: str | None = None
    stage: str | None = None
    sample_size: int = Field(..., ge=5, description="Number of companies in the group")
    calculated_at: datetime


# =============================================================================
# TRENDS SCHEMAS
# =============================================================================

class GrowthBucketResponse(BaseModel):
    """Histogram bucket of company growth rates."""

    model_config = ConfigDict(from_attributes=True)

    label: str = Field(..., description="Bucket label, e.g. '0% to 10%'")
    count: int


class OutlierResponse(BaseModel):
    """Company whose growth is more than two standard deviations from the mean."""

    model_config = ConfigDict(from_attributes=True)

    company_id: str
    company_name: str
    growth: float = Field(..., description="Growth in percent, rounded to 2 decimals")
    direction: GrowthDirection


class YearOverYearResponse(BaseModel):
    """Average of one sub-period (quarter, month, year) in current vs prior year."""

    model_config = ConfigDict(from_attributes=True)

    period: str
    label: str
    current_year: float | None = None
    prior_year: float | None = None


class TrendsResponse(BaseModel):
    """Trend report for one metric across the portfolio."""

    model_config = ConfigDict(from_attributes=True)

    metric_name: str
    period_type: PeriodType
    periods: int
    company_count: int
    companies_with_growth: int
    current_year: int
    prior_year: int
    growth_distribution: list[GrowthBucketResponse] = Field(default_factory=list)
    year_over_year: list[YearOverYearResponse] = Field(default_factory=list)
    outliers: list[OutlierResponse] = Field(default_factory=list)


# =============================================================================
# FUND PERFORMANCE SCHEMAS
# =============================================================================

class FundPerformanceResponse(BaseModel):
    """
    Fund performance multiples and IRR.

    All numeric values are strings to preserve Decimal precision.
    """

    model_config = ConfigDict(from_attributes=True)

    tvpi: str | None = Field(None, description="Total Value to Paid-In multiple")
    dpi: str | None = Field(None, description="Distributions to Paid-In multiple")
    rvpi: str | None = Field(None, description="Residual Value to Paid-In multiple")
    moic: str | None = Field(None, description="Multiple on Invested Capital")
    irr: str | None = Field(
        None,
        description="Annual IRR in decimal form (0.1 = 10%), null if it did not converge"
    )
    total_invested: str = "0"
    total_current_value: str = "0"
    total_realized_value: str = "0"
    investment_count: int = 0

    @field_validator(
        "tvpi", "dpi", "rvpi", "moic", "irr",
        "total_invested", "total_current_value", "total_realized_value",
        mode="before",
    )
    @classmethod
    def serialize_decimal(cls, value: Decimal | int | str | None) -> str | None:
        return decimal_to_str(value)
