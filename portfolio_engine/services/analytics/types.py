# portfolio_engine/services/analytics/types.py
"""
Data types for the Portfolio Analytics Engine.

This module defines the data structures used throughout the analytics
calculations. Every computed structure is a frozen dataclass: results are
recomputed and replaced, never patched in place.

Architecture:
    - RawMetricValue: Tagged union over the shapes storage hands us
    - CompanyMetricRow / CompanyProfile: Already-fetched storage rows (input)
    - MetricSample: A successfully extracted, period-normalized value
    - AggregatedMetric / PeriodBucket: Cross-company aggregation results
    - PercentileResult / BenchmarkRow: Percentile benchmarks
    - Investment / CashFlow / FundPerformance: Fund-level performance

Numeric representation:
    Metric values are floats (they arrive as loosely-typed JSON numbers).
    Fund money amounts and ratios are Decimal, as befits currency values.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from portfolio_engine.services.exceptions import (
    InvalidAggregationTypeError,
    InvalidPeriodTypeError,
)


# =============================================================================
# ENUMS
# =============================================================================

class PeriodType(str, Enum):
    """
    Reporting period granularity.

    "yearly" is accepted as an input alias for ANNUAL.
    """
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"

    @classmethod
    def parse(cls, value: "PeriodType | str") -> "PeriodType":
        """
        Resolve a period type from an enum member or a string.

        Raises:
            InvalidPeriodTypeError: If the value is not a known period type
        """
        if isinstance(value, PeriodType):
            return value

        normalized = str(value).lower().strip()
        if normalized == "yearly":
            return cls.ANNUAL

        try:
            return cls(normalized)
        except ValueError:
            raise InvalidPeriodTypeError(str(value)) from None


class AggregationType(str, Enum):
    """
    How a metric rolls up across time periods.

    Attributes:
        SUM: Flow metric, values accumulate over periods (e.g., Revenue)
        LATEST: Point-in-time metric, only the most recent value counts (e.g., ARR)
    """
    SUM = "sum"
    LATEST = "latest"

    @classmethod
    def parse(cls, value: "AggregationType | str") -> "AggregationType":
        """
        Resolve an aggregation type from an enum member or a string.

        Raises:
            InvalidAggregationTypeError: If the value is not sum or latest
        """
        if isinstance(value, AggregationType):
            return value

        try:
            return cls(str(value).lower().strip())
        except ValueError:
            raise InvalidAggregationTypeError(str(value)) from None


class Confidence(str, Enum):
    """Confidence tier of an aggregation-type recommendation."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GrowthDirection(str, Enum):
    """Which side of the portfolio distribution an outlier sits on."""
    OUTPERFORMING = "outperforming"
    UNDERPERFORMING = "underperforming"


# =============================================================================
# RAW METRIC VALUES (tagged union)
# =============================================================================

@dataclass(frozen=True)
class NumberValue:
    """A value stored as a plain number."""
    number: float


@dataclass(frozen=True)
class TextValue:
    """A value stored as a (possibly numeric) string."""
    text: str


@dataclass(frozen=True)
class WrappedValue:
    """
    A value stored as an object with a `value` and/or `raw` field.

    Only one level of nesting is representable: `value` is a number, a
    string, or absent. Anything else stored under `value` is classified as
    absent, which lets the extractor fall back to `raw`.

    Attributes:
        value: The inner `value` field, if it was a number or a string
        raw: The `raw` field, if it was a string
    """
    value: NumberValue | TextValue | None = None
    raw: str | None = None


@dataclass(frozen=True)
class UnsupportedValue:
    """Any other stored shape (null, booleans, lists, other objects)."""
    payload: object = None


RawMetricValue = NumberValue | TextValue | WrappedValue | UnsupportedValue


# =============================================================================
# INPUT TYPES (already fetched by the storage layer)
# =============================================================================

@dataclass(frozen=True)
class CompanyMetricRow:
    """
    One stored metric value for one company and period.

    Attributes:
        company_id: Owning company
        metric_name: Metric name as entered (any casing/whitespace)
        period_type: Period type string as stored
        period_start: First day (or any day) of the period
        period_end: Last day of the period, if stored
        value: Raw stored value (number, numeric string, or wrapper object)
    """
    company_id: str
    metric_name: str
    period_type: str
    period_start: date
    value: object
    period_end: date | None = None


@dataclass(frozen=True)
class CompanyProfile:
    """
    Company attributes used for grouping and display.

    Attributes:
        company_id: Company identifier
        name: Display name
        industry: Industry, None if unknown
        stage: Funding stage, None if unknown
    """
    company_id: str
    name: str | None = None
    industry: str | None = None
    stage: str | None = None


# =============================================================================
# METRIC SAMPLES & AGGREGATES
# =============================================================================

@dataclass(frozen=True)
class MetricSample:
    """
    A successfully extracted metric value with canonical period bounds.

    Attributes:
        metric_name: Canonical (trimmed, lowercase) metric name
        period_type: Normalized period type
        period_start: Canonical first day of the period
        period_end: Canonical last day of the period
        value: Numeric value
        company_id: Owning company (None for company-agnostic series)
    """
    metric_name: str
    period_type: PeriodType
    period_start: date
    period_end: date
    value: float
    company_id: str | None = None


@dataclass(frozen=True)
class AggregatedMetric:
    """
    Summary statistics for one metric across companies.

    `sum` is None when the metric may not be summed across companies.
    That None is a signal ("not summable"), not missing data, and must
    never be collapsed to zero.
    """
    sum: float | None
    average: float
    median: float
    min: float
    max: float
    count: int


@dataclass(frozen=True)
class PeriodAggregate:
    """Partial aggregate reported per period bucket."""
    sum: float | None
    average: float
    count: int


@dataclass(frozen=True)
class PeriodBucket:
    """
    All metric aggregates for one period.

    Attributes:
        period_key: Sortable key ("2024-03", "2024-Q1", "2024")
        label: Display label ("Mar 2024", "Q1 2024", "2024")
        aggregates: metric name -> partial aggregate
    """
    period_key: str
    label: str
    aggregates: dict[str, PeriodAggregate] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedPeriod:
    """
    Canonical bounds of the period containing a date.

    Attributes:
        period_type: Normalized period type
        period_start: First day of the period
        period_end: Last day of the period
        label: Display label
        was_adjusted: True if the supplied start (or end) differed from the canonical one
    """
    period_type: PeriodType
    period_start: date
    period_end: date
    label: str
    was_adjusted: bool


# =============================================================================
# CLASSIFICATION
# =============================================================================

@dataclass(frozen=True)
class AggregationRecommendation:
    """
    Advisory aggregation-type suggestion for UI use.

    Not used by the aggregation decision itself.
    """
    recommended: AggregationType
    confidence: Confidence
    reason: str


@dataclass(frozen=True)
class AggregationIndicator:
    """Symbol and label shown next to a rolled-up total."""
    symbol: str
    label: str


@dataclass(frozen=True)
class MetricTotal:
    """
    Rolling total for one metric over the supplied periods.

    Attributes:
        metric_name: Canonical metric name
        aggregation_type: Decision used for the rollup
        total: Rolled-up value, None if every period was empty
        recommendation: Advisory classification metadata
        indicator: Display hint for how the total was computed
    """
    metric_name: str
    aggregation_type: AggregationType
    total: float | None
    recommendation: AggregationRecommendation
    indicator: AggregationIndicator


# =============================================================================
# BENCHMARKS
# =============================================================================

@dataclass(frozen=True)
class PercentileResult:
    """Distribution thresholds of one benchmark group."""
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class BenchmarkRow:
    """
    Published percentile benchmark for one group.

    Unique per (metric_name, period_type, industry, stage). A None industry
    or stage means "aggregated across all industries/stages".
    """
    metric_name: str
    period_type: str
    industry: str | None
    stage: str | None
    p25: float
    p50: float
    p75: float
    p90: float
    sample_size: int
    calculated_at: datetime

    @property
    def key(self) -> tuple[str, str, str | None, str | None]:
        """Upsert key for the persistence collaborator."""
        return self.metric_name, self.period_type, self.industry, self.stage

    @property
    def percentiles(self) -> PercentileResult:
        return PercentileResult(p25=self.p25, p50=self.p50, p75=self.p75, p90=self.p90)


# =============================================================================
# TRENDS
# =============================================================================

@dataclass(frozen=True)
class CompanyGrowth:
    """Period-over-period growth (percent) for one company."""
    company_id: str
    growth: float


@dataclass(frozen=True)
class GrowthBucket:
    """Number of companies whose growth fell in one histogram bucket."""
    label: str
    count: int


@dataclass(frozen=True)
class GrowthOutlier:
    """A company whose growth sits more than two standard deviations from the mean."""
    company_id: str
    company_name: str
    growth: float
    direction: GrowthDirection


@dataclass(frozen=True)
class YearOverYearPoint:
    """Average value of one sub-period in the current and prior year."""
    period: str
    label: str
    current_year: float | None
    prior_year: float | None


# =============================================================================
# FUND PERFORMANCE
# =============================================================================

@dataclass(frozen=True)
class Investment:
    """
    Capital position used for ratio math.

    Attributes:
        invested_amount: Paid-in capital (>= 0)
        current_value: Unrealized value still held (>= 0)
        realized_value: Distributions already returned (>= 0)
    """
    invested_amount: Decimal
    current_value: Decimal
    realized_value: Decimal


@dataclass(frozen=True)
class FundInvestmentRecord:
    """
    Stored fund investment row, including its investment date.

    The date is only needed to build IRR cash flows.
    """
    invested_amount: Decimal
    current_value: Decimal
    realized_value: Decimal
    investment_date: date | None = None

    def to_investment(self) -> Investment:
        return Investment(
            invested_amount=self.invested_amount,
            current_value=self.current_value,
            realized_value=self.realized_value,
        )


@dataclass(frozen=True)
class CashFlow:
    """
    A dated cash flow for IRR calculation.

    Attributes:
        date: When the cash flow occurred
        amount: Negative = outflow/investment, Positive = distribution or residual value
    """
    date: date
    amount: Decimal


@dataclass(frozen=True)
class FundPerformance:
    """
    Fund-level performance multiples and IRR.

    All ratios are None when nothing was invested.
    """
    tvpi: Decimal | None
    dpi: Decimal | None
    rvpi: Decimal | None
    moic: Decimal | None
    irr: Decimal | None
    total_invested: Decimal
    total_current_value: Decimal
    total_realized_value: Decimal
    investment_count: int


# =============================================================================
# COMBINED RESULTS
# =============================================================================

@dataclass(frozen=True)
class CompanyMetricSummary:
    """Latest and previous value of one metric for one company."""
    latest: float
    previous: float | None
    growth: float | None


@dataclass(frozen=True)
class CompanyBreakdown:
    """Per-company view of the portfolio report."""
    company_id: str
    company_name: str | None
    industry: str | None
    stage: str | None
    metrics: dict[str, CompanyMetricSummary] = field(default_factory=dict)
    revenue_metric: str | None = None
    revenue_growth: float | None = None


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline counts of a portfolio report."""
    total_companies: int
    companies_with_data: int
    total_metric_values: int


@dataclass(frozen=True)
class PortfolioMetrics:
    """
    Cross-company portfolio report.

    Attributes:
        period_type: Period type the report was built for
        summary: Headline counts
        aggregates: metric name -> overall aggregate (sum None if not summable)
        can_sum: metric name -> whether the metric is summable across companies
        by_period: Period buckets ordered by key
        by_company: Company breakdowns, best revenue growth first
    """
    period_type: PeriodType
    summary: PortfolioSummary
    aggregates: dict[str, AggregatedMetric] = field(default_factory=dict)
    can_sum: dict[str, bool] = field(default_factory=dict)
    by_period: list[PeriodBucket] = field(default_factory=list)
    by_company: list[CompanyBreakdown] = field(default_factory=list)


@dataclass(frozen=True)
class TrendsReport:
    """
    Growth distribution, year-over-year comparison and outliers for one metric.
    """
    metric_name: str
    period_type: PeriodType
    periods: int
    company_count: int
    companies_with_growth: int
    current_year: int
    prior_year: int
    growth_distribution: list[GrowthBucket] = field(default_factory=list)
    year_over_year: list[YearOverYearPoint] = field(default_factory=list)
    outliers: list[GrowthOutlier] = field(default_factory=list)
