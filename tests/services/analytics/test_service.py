# tests/services/analytics/test_service.py
"""
Tests for the analytics service orchestrator and its cache.

The service is exercised end to end on the shared fixtures in conftest.py:
three companies, two quarters of revenue and gross margin.

Test Coverage:
- AnalyticsCache: Keys, TTL, LRU eviction, invalidation
- get_portfolio_metrics: Aggregates, period buckets, company breakdown
- get_metric_totals: Per-metric rollups with indicators
- get_trends: Growth distribution, year over year, window clamping
- recalculate_benchmarks: Correlation id tagging
- iter_benchmark_batches / get_company_benchmark_position
- get_fund_performance: Fund multiples through the service
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from portfolio_engine.services.analytics import (
    AggregationType,
    AnalyticsCache,
    BenchmarkRow,
    CompanyProfile,
    Confidence,
    DEFAULT_CATALOG,
    PercentileResult,
    PeriodType,
    PortfolioAnalyticsService,
    build_metric_samples,
)
from portfolio_engine.services.exceptions import InvalidPeriodTypeError, ValidationError
from portfolio_engine.utils.context import get_correlation_id, set_correlation_id

CALCULATED_AT = datetime(2024, 7, 1, tzinfo=timezone.utc)


def _benchmark_row(metric_name: str) -> BenchmarkRow:
    return BenchmarkRow(
        metric_name=metric_name,
        period_type="quarterly",
        industry=None,
        stage=None,
        p25=20.0,
        p50=30.0,
        p75=40.0,
        p90=50.0,
        sample_size=5,
        calculated_at=CALCULATED_AT,
    )


# =============================================================================
# CACHE TESTS
# =============================================================================

class TestAnalyticsCache:
    """Tests for AnalyticsCache."""

    def test_make_key(self):
        key = AnalyticsCache.make_key("trends", "fund-1", None, 2024)
        assert key == "trends:fund-1:none:2024"

    def test_set_and_get(self, cache):
        cache.set("a", 1)

        assert cache.get("a") == 1
        assert cache.get("missing") is None

    def test_zero_ttl_never_hits(self):
        cache = AnalyticsCache(ttl_seconds=0, max_size=5)
        cache.set("a", 1)

        assert cache.get("a") is None
        assert cache.size() == 0

    def test_lru_eviction(self):
        """Reading an entry protects it from eviction."""
        cache = AnalyticsCache(ttl_seconds=3600, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_invalidate_prefix(self, cache):
        cache.set("portfolio:fund-1:quarterly", 1)
        cache.set("portfolio:fund-1:monthly", 2)
        cache.set("portfolio:fund-2:quarterly", 3)

        assert cache.invalidate("portfolio:fund-1:") == 2
        assert cache.size() == 1

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.clear()
        assert cache.size() == 0


# =============================================================================
# SERVICE SETUP TESTS
# =============================================================================

class TestServiceSetup:
    """Tests for PortfolioAnalyticsService construction."""

    def test_default_cache_is_shared(self):
        first = PortfolioAnalyticsService(catalog=DEFAULT_CATALOG)
        second = PortfolioAnalyticsService(catalog=DEFAULT_CATALOG)

        assert first.cache is second.cache

    def test_default_catalog_from_settings(self, cache):
        service = PortfolioAnalyticsService(cache=cache)
        assert service.catalog.is_flow("revenue")


# =============================================================================
# PORTFOLIO METRICS TESTS
# =============================================================================

class TestGetPortfolioMetrics:
    """Tests for get_portfolio_metrics."""

    def test_summary(self, service, metric_rows, companies):
        report = service.get_portfolio_metrics(metric_rows, companies, "quarterly")

        assert report.period_type == PeriodType.QUARTERLY
        assert report.summary.total_companies == 3
        assert report.summary.companies_with_data == 3
        # Ten quarterly rows, including the unusable one; monthly row excluded
        assert report.summary.total_metric_values == 10

    def test_aggregates(self, service, metric_rows, companies):
        report = service.get_portfolio_metrics(metric_rows, companies, "quarterly")

        revenue = report.aggregates["revenue"]
        assert revenue.sum == 1230.0
        assert revenue.count == 6
        assert revenue.average == 205.0

        margin = report.aggregates["gross margin"]
        assert margin.sum is None
        assert margin.average == 60.0

        assert report.can_sum == {"revenue": True, "gross margin": False}

    def test_period_buckets(self, service, metric_rows, companies):
        report = service.get_portfolio_metrics(metric_rows, companies, "quarterly")

        assert [bucket.period_key for bucket in report.by_period] == ["2024-Q1", "2024-Q2"]

    def test_company_breakdown_sorted_by_revenue_growth(self, service, metric_rows, companies):
        """acme +50%, initech 0%, globex -10%."""
        report = service.get_portfolio_metrics(metric_rows, companies, "quarterly")

        assert [b.company_id for b in report.by_company] == ["acme", "initech", "globex"]

        acme = report.by_company[0]
        assert acme.company_name == "Acme"
        assert acme.revenue_metric == "revenue"
        assert acme.revenue_growth == 50.0
        assert acme.metrics["revenue"].latest == 150.0
        assert acme.metrics["revenue"].previous == 100.0
        assert acme.metrics["gross margin"].growth == pytest.approx(16.6667, abs=1e-4)

        globex = report.by_company[2]
        assert globex.metrics["gross margin"].previous is None
        assert globex.metrics["gross margin"].growth is None

    def test_company_without_data_sorts_last(self, service, metric_rows, companies):
        newcomer = CompanyProfile(company_id="hooli", name="Hooli")

        report = service.get_portfolio_metrics(metric_rows, [newcomer, *companies], "quarterly")

        last = report.by_company[-1]
        assert last.company_id == "hooli"
        assert last.metrics == {}
        assert last.revenue_growth is None

    def test_requested_metrics_only(self, service, metric_rows, companies):
        report = service.get_portfolio_metrics(
            metric_rows, companies, "quarterly", metric_names=["Revenue"],
        )

        assert list(report.aggregates) == ["revenue"]
        assert "gross margin" not in report.by_company[0].metrics

    def test_other_period_type(self, service, metric_rows, companies):
        report = service.get_portfolio_metrics(metric_rows, companies, "monthly")

        assert report.summary.total_metric_values == 1
        assert report.aggregates["revenue"].sum == 40.0

    def test_invalid_period_type(self, service, metric_rows, companies):
        with pytest.raises(InvalidPeriodTypeError):
            service.get_portfolio_metrics(metric_rows, companies, "weekly")

    def test_cached_by_key(self, service, cache, metric_rows, companies):
        key = AnalyticsCache.make_key("portfolio", "fund-1", "quarterly")

        first = service.get_portfolio_metrics(metric_rows, companies, "quarterly", cache_key=key)
        second = service.get_portfolio_metrics([], companies, "quarterly", cache_key=key)

        assert second is first
        assert cache.size() == 1

    def test_cache_scoped_to_catalog(self, service, cache, metric_rows, companies):
        """A shared cache never hands one catalog's report to another."""
        key = AnalyticsCache.make_key("portfolio", "fund-1", "quarterly")
        same_catalog = PortfolioAnalyticsService(catalog=DEFAULT_CATALOG, cache=cache)
        other_catalog = PortfolioAnalyticsService(
            catalog=DEFAULT_CATALOG.extended(summable=["gross margin"]),
            cache=cache,
        )

        first = service.get_portfolio_metrics(metric_rows, companies, "quarterly", cache_key=key)
        shared = same_catalog.get_portfolio_metrics([], companies, "quarterly", cache_key=key)
        other = other_catalog.get_portfolio_metrics(metric_rows, companies, "quarterly", cache_key=key)

        assert shared is first
        assert other is not first
        assert first.aggregates["gross margin"].sum is None
        assert other.aggregates["gross margin"].sum is not None
        assert cache.invalidate("portfolio:fund-1:") == 2

    def test_not_cached_without_key(self, service, cache, metric_rows, companies):
        service.get_portfolio_metrics(metric_rows, companies, "quarterly")
        assert cache.size() == 0


# =============================================================================
# METRIC TOTAL TESTS
# =============================================================================

class TestGetMetricTotals:
    """Tests for get_metric_totals."""

    def test_acme_totals(self, service, metric_rows):
        acme_rows = [
            row for row in metric_rows
            if row.company_id == "acme" and row.period_type == "quarterly"
        ]

        totals = service.get_metric_totals(build_metric_samples(acme_rows))

        assert [t.metric_name for t in totals] == ["gross margin", "revenue"]

        margin, revenue = totals
        assert margin.aggregation_type == AggregationType.LATEST
        assert margin.total == 70.0
        assert margin.indicator.symbol == "●"

        assert revenue.aggregation_type == AggregationType.SUM
        assert revenue.total == 250.0
        assert revenue.recommendation.confidence == Confidence.HIGH
        assert revenue.indicator.symbol == "Σ"

    def test_visible_periods(self, service, metric_rows):
        acme_rows = [
            row for row in metric_rows
            if row.company_id == "acme" and row.period_type == "quarterly"
        ]

        totals = service.get_metric_totals(build_metric_samples(acme_rows), ["2024-Q1"])

        assert {t.metric_name: t.total for t in totals} == {"gross margin": 60.0, "revenue": 100.0}


# =============================================================================
# TRENDS TESTS
# =============================================================================

class TestGetTrends:
    """Tests for get_trends."""

    def test_revenue_trends(self, service, metric_rows, companies):
        report = service.get_trends(metric_rows, companies, "Revenue", "quarterly", current_year=2024)

        assert report.metric_name == "revenue"
        assert report.company_count == 3
        assert report.companies_with_growth == 3
        assert (report.current_year, report.prior_year) == (2024, 2023)

        counts = {bucket.label: bucket.count for bucket in report.growth_distribution}
        assert counts[">20%"] == 1
        assert counts["-10% to 0%"] == 1
        assert counts["0% to 10%"] == 1

        # Three companies cannot produce a |z| above 2
        assert report.outliers == []

    def test_year_over_year(self, service, metric_rows, companies):
        report = service.get_trends(metric_rows, companies, "revenue", "quarterly", current_year=2024)

        points = {(p.period, p.current_year, p.prior_year) for p in report.year_over_year}
        assert points == {("Q1", 200.0, None), ("Q2", 210.0, None)}

    def test_single_period_window_has_no_growth(self, service, metric_rows, companies):
        report = service.get_trends(
            metric_rows, companies, "revenue", "quarterly", current_year=2024, periods=1,
        )

        assert report.companies_with_growth == 0
        assert report.company_count == 3

    @pytest.mark.parametrize("periods, expected", [(0, 1), (-5, 1), (100, 24), (8, 8)])
    def test_periods_clamped(self, service, metric_rows, companies, periods, expected):
        report = service.get_trends(
            metric_rows, companies, "revenue", "quarterly", current_year=2024, periods=periods,
        )
        assert report.periods == expected

    @pytest.mark.parametrize("metric_name", ["", "   "])
    def test_blank_metric_name(self, service, metric_rows, companies, metric_name):
        with pytest.raises(ValidationError) as exc_info:
            service.get_trends(metric_rows, companies, metric_name, "quarterly", current_year=2024)

        assert exc_info.value.field == "metric_name"

    def test_unknown_metric(self, service, metric_rows, companies):
        report = service.get_trends(metric_rows, companies, "nps", "quarterly", current_year=2024)

        assert report.company_count == 0
        assert report.year_over_year == []


# =============================================================================
# BENCHMARK TESTS
# =============================================================================

class TestBenchmarks:
    """Tests for the benchmark operations of the service."""

    def test_recalculate_below_floor(self, service, metric_rows, companies):
        """Three companies never reach the five-value floor."""
        assert service.recalculate_benchmarks(metric_rows, companies, CALCULATED_AT) == []

    def test_run_is_tagged_with_correlation_id(self, service, monkeypatch, companies):
        seen = []

        def fake_calculate(rows, profiles, calculated_at):
            seen.append(get_correlation_id())
            return []

        monkeypatch.setattr(
            "portfolio_engine.services.analytics.service.calculate_benchmarks",
            fake_calculate,
        )

        service.recalculate_benchmarks([], companies, CALCULATED_AT)

        assert seen[0].startswith("benchmarks-")
        assert len(seen[0]) == len("benchmarks-") + 12
        assert get_correlation_id() is None

    def test_caller_correlation_id_restored(self, service, companies):
        set_correlation_id("caller-request")

        service.recalculate_benchmarks([], companies, CALCULATED_AT)

        assert get_correlation_id() == "caller-request"

    def test_batches_use_configured_size(self, service):
        benchmarks = [_benchmark_row(f"metric {i}") for i in range(5)]

        batches = list(service.iter_benchmark_batches(benchmarks))

        assert [len(batch) for batch in batches] == [2, 2, 1]

    def test_batch_size_override(self, service):
        benchmarks = [_benchmark_row(f"metric {i}") for i in range(5)]

        assert len(list(service.iter_benchmark_batches(benchmarks, batch_size=10))) == 1

    def test_zero_batch_size_rejected(self, service, cache):
        benchmarks = [_benchmark_row("arr")]
        zero_configured = PortfolioAnalyticsService(
            catalog=DEFAULT_CATALOG, cache=cache, benchmark_batch_size=0,
        )

        with pytest.raises(ValidationError, match="batch_size"):
            list(zero_configured.iter_benchmark_batches(benchmarks))
        with pytest.raises(ValidationError, match="batch_size"):
            list(service.iter_benchmark_batches(benchmarks, batch_size=0))

    def test_company_position(self, service):
        row = _benchmark_row("arr")

        assert service.get_company_benchmark_position(30, row) == 50
        assert service.get_company_benchmark_position(45, row.percentiles) == 83
        assert service.get_company_benchmark_position(
            40, PercentileResult(p25=20.0, p50=30.0, p75=40.0, p90=50.0),
        ) == 75


# =============================================================================
# FUND PERFORMANCE TESTS
# =============================================================================

class TestGetFundPerformance:
    """Tests for get_fund_performance."""

    def test_fund_performance(self, service, fund_records):
        result = service.get_fund_performance(fund_records, as_of=date(2024, 12, 31))

        assert result.tvpi == Decimal("1.2")
        assert result.dpi == Decimal("0.3")
        assert result.rvpi == Decimal("0.9")
        assert result.irr is not None

    def test_cached_by_key(self, service, cache, fund_records):
        key = AnalyticsCache.make_key("fund", "fund-1", "2024-12-31")

        first = service.get_fund_performance(fund_records, date(2024, 12, 31), cache_key=key)
        second = service.get_fund_performance([], date(2024, 12, 31), cache_key=key)

        assert second is first
