# portfolio_engine/services/analytics/classification.py
"""
Temporal classification of metrics.

Decides, per metric name, how values roll up across time periods:
- Flow metrics (sum): cumulative values earned/spent over a period (Revenue)
- Point-in-time metrics (latest): snapshots at period end (ARR, Headcount)

Two entry points:
    get_default_aggregation_type(): the decision used by every rollup.
        Exact catalog match on the flow set -> SUM, otherwise LATEST.
        Unknown metrics default to LATEST: silently summing an unknown
        rate-like metric is a worse failure than treating it as a snapshot.

    recommend_aggregation_type(): advisory metadata for the UI, with a
        confidence tier and justification. Never consulted by rollups.
"""

from portfolio_engine.services.analytics.catalog import (
    DEFAULT_CATALOG,
    MetricCatalog,
    normalize_metric_name,
)
from portfolio_engine.services.analytics.types import (
    AggregationIndicator,
    AggregationRecommendation,
    AggregationType,
    Confidence,
)


def get_default_aggregation_type(
        metric_name: str,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> AggregationType:
    """
    Get the temporal aggregation type used for a metric.

    Args:
        metric_name: Metric name (any casing/whitespace)
        catalog: Lookup tables to classify against

    Returns:
        AggregationType.SUM for known flow metrics, LATEST otherwise
    """
    if catalog.is_flow(metric_name):
        return AggregationType.SUM
    return AggregationType.LATEST


def recommend_aggregation_type(
        metric_name: str,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> AggregationRecommendation:
    """
    Recommend an aggregation type for a metric with a confidence level.

    Used when creating new metrics to help users choose the right type.

    Confidence tiers:
        HIGH:   exact match in the flow or point-in-time catalog
        MEDIUM: a regex heuristic matched (e.g. "revenue|sales|income" -> sum,
                "rate|ratio|margin" -> latest)
        LOW:    nothing matched; defaults to latest

    Args:
        metric_name: Metric name (any casing/whitespace)
        catalog: Lookup tables and pattern rules

    Returns:
        AggregationRecommendation with recommended type, confidence and reason
    """
    normalized = normalize_metric_name(metric_name)

    if normalized in catalog.flow_metrics:
        return AggregationRecommendation(
            recommended=AggregationType.SUM,
            confidence=Confidence.HIGH,
            reason="Known flow metric - represents cumulative value over time",
        )

    if normalized in catalog.point_in_time_metrics:
        return AggregationRecommendation(
            recommended=AggregationType.LATEST,
            confidence=Confidence.HIGH,
            reason="Known point-in-time metric - represents a snapshot value",
        )

    for rule in catalog.pattern_rules:
        if rule.matches(normalized):
            return AggregationRecommendation(
                recommended=rule.recommended,
                confidence=Confidence.MEDIUM,
                reason=rule.reason,
            )

    return AggregationRecommendation(
        recommended=AggregationType.LATEST,
        confidence=Confidence.LOW,
        reason="Unknown metric type - defaulting to point-in-time (safer)",
    )


def get_aggregation_indicator(
        aggregation_type: AggregationType | str,
) -> AggregationIndicator:
    """
    Get the indicator shown next to a rolled-up total.

    Args:
        aggregation_type: SUM or LATEST

    Returns:
        Symbol and label describing how the total was computed
    """
    if AggregationType.parse(aggregation_type) == AggregationType.SUM:
        return AggregationIndicator(symbol="Σ", label="Sum of visible periods")
    return AggregationIndicator(symbol="●", label="Most recent value")
