# portfolio_engine/services/analytics/aggregation.py
"""
Cross-company aggregation of metric values.

This module contains pure functions that summarize the values reported
by many companies for one metric:
- Sum, Average, Median, Min, Max, Count
- Summability: whether adding the values up across companies is meaningful

Summability is a separate question from temporal classification. Revenue
is summable across companies; a gross margin never is, even though every
value is numeric. For non-summable metrics the aggregate carries
`sum=None`, which callers must preserve (it is not zero and not missing).

Formulas:
    Average = Σ values / n
    Median  = middle value of the sorted values, or the mean of the two
              middle values when n is even
"""

from collections.abc import Sequence
from statistics import median

from portfolio_engine.services.analytics.catalog import (
    DEFAULT_CATALOG,
    MetricCatalog,
    normalize_metric_name,
)
from portfolio_engine.services.analytics.types import AggregatedMetric, PeriodAggregate


# =============================================================================
# SUMMABILITY RULES
# =============================================================================

def can_sum_metric(metric_name: str, catalog: MetricCatalog = DEFAULT_CATALOG) -> bool:
    """Check if a metric can be summed for a portfolio total."""
    return catalog.is_summable(metric_name)


def prefers_median(metric_name: str, catalog: MetricCatalog = DEFAULT_CATALOG) -> bool:
    """Check if the median describes a metric better than the mean."""
    return catalog.prefers_median(metric_name)


def is_average_only(metric_name: str, catalog: MetricCatalog = DEFAULT_CATALOG) -> bool:
    """Check if a metric (percentage, ratio, score) may only be averaged."""
    return catalog.is_average_only(metric_name)


# =============================================================================
# STATISTICS
# =============================================================================

def calculate_median(values: Sequence[float]) -> float:
    """
    Calculate the median of a list of numbers.

    Works on a sorted copy; the input order is left untouched.

    Args:
        values: Numeric values

    Returns:
        Median, or 0.0 for an empty list
    """
    if not values:
        return 0.0

    return float(median(sorted(values)))


def aggregate_metric_values(
        values: Sequence[float],
        metric_name: str | None = None,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> AggregatedMetric:
    """
    Aggregate multiple values for a single metric.

    Args:
        values: One value per company (or per observation)
        metric_name: If given, `sum` is None unless the metric is in the
                     catalog's summable set
        catalog: Lookup tables for the summability check

    Returns:
        AggregatedMetric. Empty input yields a zeroed structure with
        count=0 and sum=None.

    Example:
        >>> aggregate_metric_values([100, 200, 300], "revenue")
        AggregatedMetric(sum=600.0, average=200.0, median=200.0, min=100.0, max=300.0, count=3)
    """
    if not values:
        return AggregatedMetric(
            sum=None,
            average=0.0,
            median=0.0,
            min=0.0,
            max=0.0,
            count=0,
        )

    total = float(sum(values))
    summable = metric_name is None or can_sum_metric(metric_name, catalog)

    return AggregatedMetric(
        sum=total if summable else None,
        average=total / len(values),
        median=calculate_median(values),
        min=float(min(values)),
        max=float(max(values)),
        count=len(values),
    )


def aggregate_period_values(
        values: Sequence[float],
        metric_name: str,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> PeriodAggregate:
    """
    Partial aggregate (sum, average, count) reported inside a period bucket.
    """
    full = aggregate_metric_values(values, metric_name, catalog)
    return PeriodAggregate(sum=full.sum, average=full.average, count=full.count)


# =============================================================================
# PORTFOLIO HELPERS
# =============================================================================

def identify_revenue_metric(
        metric_names: Sequence[str],
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> str | None:
    """
    Identify the primary revenue-like metric among a company's metrics.

    Args:
        metric_names: Metric names as reported by the company
        catalog: Supplies the revenue priority order

    Returns:
        The first name (as given) matching the priority list, or None
    """
    normalized = [normalize_metric_name(n) for n in metric_names]

    for priority in catalog.revenue_priority:
        if priority in normalized:
            return metric_names[normalized.index(priority)]

    return None


def calculate_coverage(metric_count: int, total_companies: int) -> dict[str, float | int]:
    """
    Calculate how many companies in the portfolio report a metric.

    Returns:
        {"count", "total", "percentage"}; percentage is 0 for an empty portfolio
    """
    percentage = (metric_count / total_companies) * 100 if total_companies > 0 else 0.0

    return {
        "count": metric_count,
        "total": total_companies,
        "percentage": percentage,
    }
