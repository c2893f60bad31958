# tests/services/analytics/test_classification.py
"""
Unit tests for temporal classification and the metric catalog.

Test Coverage:
- get_default_aggregation_type: The decision used by rollups
- recommend_aggregation_type: Advisory tiers (high / medium / low)
- get_aggregation_indicator: Display hint per aggregation type
- MetricCatalog: Lookups, extension, configuration
"""

import pytest

from portfolio_engine.config import Settings
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
from portfolio_engine.services.analytics.types import AggregationType, Confidence
from portfolio_engine.services.exceptions import InvalidAggregationTypeError


# =============================================================================
# DEFAULT AGGREGATION TYPE TESTS
# =============================================================================

class TestDefaultAggregationType:
    """Tests for get_default_aggregation_type function."""

    @pytest.mark.parametrize("name", ["revenue", "Revenue", "  REVENUE  ", "opex", "API Calls"])
    def test_flow_metrics_sum(self, name):
        """Known flow metrics sum, whatever the casing."""
        assert get_default_aggregation_type(name) == AggregationType.SUM

    @pytest.mark.parametrize("name", ["arr", "MRR", "headcount", "gross margin", "runway"])
    def test_point_in_time_metrics_take_latest(self, name):
        assert get_default_aggregation_type(name) == AggregationType.LATEST

    def test_unknown_metric_defaults_to_latest(self):
        """Unknown metrics are never summed, even when they look like flows."""
        assert get_default_aggregation_type("subscription revenue") == AggregationType.LATEST
        assert get_default_aggregation_type("widget flux") == AggregationType.LATEST

    def test_custom_catalog(self):
        """The decision follows the catalog it is given."""
        catalog = DEFAULT_CATALOG.extended(flow=["Bookings"])
        assert get_default_aggregation_type("bookings", catalog) == AggregationType.SUM
        assert get_default_aggregation_type("bookings") == AggregationType.LATEST


# =============================================================================
# RECOMMENDATION TESTS
# =============================================================================

class TestRecommendAggregationType:
    """Tests for recommend_aggregation_type function."""

    def test_known_flow_is_high_confidence(self):
        result = recommend_aggregation_type("Revenue")
        assert result.recommended == AggregationType.SUM
        assert result.confidence == Confidence.HIGH

    def test_known_point_in_time_is_high_confidence(self):
        result = recommend_aggregation_type("ARR")
        assert result.recommended == AggregationType.LATEST
        assert result.confidence == Confidence.HIGH

    def test_revenue_pattern_is_medium_sum(self):
        result = recommend_aggregation_type("Subscription Revenue")
        assert result.recommended == AggregationType.SUM
        assert result.confidence == Confidence.MEDIUM

    def test_volume_pattern_is_medium_sum(self):
        result = recommend_aggregation_type("payment volume")
        assert result.recommended == AggregationType.SUM
        assert result.confidence == Confidence.MEDIUM

    def test_recurring_revenue_is_excluded_from_revenue_pattern(self):
        """'recurring' vetoes the revenue rule and matches the recurring rule."""
        result = recommend_aggregation_type("annual recurring revenue growth")
        assert result.recommended == AggregationType.LATEST
        assert result.confidence == Confidence.MEDIUM
        assert "recurring" in result.reason

    def test_rate_pattern_is_medium_latest(self):
        result = recommend_aggregation_type("activation rate")
        assert result.recommended == AggregationType.LATEST
        assert result.confidence == Confidence.MEDIUM

    def test_per_unit_cost_is_excluded_from_expense_pattern(self):
        """'cost per ...' is not an expense flow; nothing else matches."""
        result = recommend_aggregation_type("marketing cost per lead")
        assert result.recommended == AggregationType.LATEST
        assert result.confidence == Confidence.LOW

    def test_unknown_is_low_confidence_latest(self):
        result = recommend_aggregation_type("widget flux")
        assert result.recommended == AggregationType.LATEST
        assert result.confidence == Confidence.LOW


# =============================================================================
# INDICATOR TESTS
# =============================================================================

class TestAggregationIndicator:
    """Tests for get_aggregation_indicator function."""

    def test_sum_indicator(self):
        indicator = get_aggregation_indicator(AggregationType.SUM)
        assert indicator.symbol == "Σ"
        assert indicator.label == "Sum of visible periods"

    def test_latest_indicator_from_string(self):
        indicator = get_aggregation_indicator("latest")
        assert indicator.symbol == "●"
        assert indicator.label == "Most recent value"

    def test_unknown_type_raises(self):
        with pytest.raises(InvalidAggregationTypeError):
            get_aggregation_indicator("average")


# =============================================================================
# CATALOG TESTS
# =============================================================================

class TestMetricCatalog:
    """Tests for MetricCatalog."""

    def test_normalize_metric_name(self):
        assert normalize_metric_name("  Net Revenue ") == "net revenue"

    def test_built_in_flow_and_point_in_time_are_disjoint(self):
        assert DEFAULT_CATALOG.flow_metrics.isdisjoint(DEFAULT_CATALOG.point_in_time_metrics)

    def test_summable_and_average_only_are_disjoint(self):
        assert DEFAULT_CATALOG.summable_metrics.isdisjoint(DEFAULT_CATALOG.average_only_metrics)

    def test_lookups_normalize_names(self):
        assert DEFAULT_CATALOG.is_summable(" ARR ")
        assert DEFAULT_CATALOG.is_average_only("Gross Margin")
        assert DEFAULT_CATALOG.prefers_median("CAC")

    def test_extended_returns_new_catalog(self):
        """Extending never mutates the original catalog."""
        extended = DEFAULT_CATALOG.extended(flow=["Bookings"], summable=["Bookings"])

        assert extended.is_flow("bookings")
        assert extended.is_summable("bookings")
        assert not DEFAULT_CATALOG.is_flow("bookings")

    def test_extended_keeps_sets_disjoint(self):
        """Re-classifying a metric moves it between the temporal sets."""
        extended = DEFAULT_CATALOG.extended(point_in_time=["revenue"])

        assert extended.is_point_in_time("revenue")
        assert not extended.is_flow("revenue")

    def test_from_settings(self):
        app_settings = Settings(
            extra_flow_metrics=["Bookings"],
            extra_summable_metrics=["bookings"],
        )

        catalog = MetricCatalog.from_settings(app_settings)

        assert catalog.is_flow("bookings")
        assert catalog.is_summable("bookings")
