# portfolio_engine/services/analytics/service.py
"""
Portfolio Analytics Service orchestrator.

This is the main entry point for the Analytics Engine. It:
1. Takes rows already fetched by the storage layer (metric values,
   company profiles, fund investments)
2. Runs them through the Value Extractor and period normalization
3. Delegates to the specialized pure-function modules
4. Optionally caches results (CPU-intensive recomputation on large portfolios)
5. Assembles the report structures consumed by callers

The service never reads the clock: "current year" and "as of" dates are
arguments, so every report is reproducible from its inputs.

Architecture:
    PortfolioAnalyticsService
        ├── uses → temporal (samples, period buckets, rolling totals)
        ├── uses → aggregation (cross-company aggregates, revenue metric)
        ├── uses → growth (growth rates, distribution, outliers, YoY)
        ├── uses → benchmark (percentile groups, company percentile)
        ├── uses → fund (TVPI/DPI/RVPI/MOIC, IRR)
        ├── uses → MetricCatalog (configured lookup tables)
        └── uses → AnalyticsCache (bounded LRU with TTL)

Usage:
    from portfolio_engine.services.analytics import PortfolioAnalyticsService

    service = PortfolioAnalyticsService()

    report = service.get_portfolio_metrics(rows, companies, "quarterly")
    trends = service.get_trends(rows, companies, "revenue", "quarterly", current_year=2024)

    benchmarks = service.recalculate_benchmarks(rows, companies, calculated_at)
    for batch in service.iter_benchmark_batches(benchmarks):
        repository.upsert(batch)

    performance = service.get_fund_performance(records, as_of=date(2024, 12, 31))
"""

import logging
import threading
import uuid
from collections import OrderedDict, defaultdict
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

from portfolio_engine.config import settings
from portfolio_engine.services.analytics.aggregation import (
    aggregate_metric_values,
    can_sum_metric,
    identify_revenue_metric,
)
from portfolio_engine.services.analytics.benchmark import (
    calculate_benchmarks,
    get_company_percentile,
    iter_benchmark_batches,
)
from portfolio_engine.services.analytics.catalog import MetricCatalog, normalize_metric_name
from portfolio_engine.services.analytics.classification import (
    get_aggregation_indicator,
    get_default_aggregation_type,
    recommend_aggregation_type,
)
from portfolio_engine.services.analytics.fund import FundPerformanceCalculator
from portfolio_engine.services.analytics.growth import (
    bucket_growth_rates,
    calculate_growth_rate,
    compare_year_over_year,
    detect_growth_outliers,
)
from portfolio_engine.services.analytics.temporal import (
    build_metric_samples,
    build_period_buckets,
    format_period_key,
    rollup_metric_series,
)
from portfolio_engine.services.analytics.types import (
    BenchmarkRow,
    CompanyBreakdown,
    CompanyGrowth,
    CompanyMetricRow,
    CompanyMetricSummary,
    CompanyProfile,
    FundInvestmentRecord,
    FundPerformance,
    MetricSample,
    MetricTotal,
    PercentileResult,
    PeriodType,
    PortfolioMetrics,
    PortfolioSummary,
    TrendsReport,
)
from portfolio_engine.services.constants import (
    CACHE_MAX_SIZE,
    CACHE_TTL_SECONDS,
    DEFAULT_TREND_PERIODS,
    MAX_TREND_PERIODS,
    MIN_TREND_PERIODS,
)
from portfolio_engine.services.exceptions import ValidationError
from portfolio_engine.utils.context import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# CACHE
# =============================================================================

class AnalyticsCache:
    """
    Thread-safe bounded LRU cache with TTL for analytics results.

    Portfolio reports walk every stored metric value, so results are
    cached under a caller-supplied key.

    Memory Safety:
        Holds at most `max_size` entries. When the cache is full, the least
        recently used entry is evicted to make room for new entries.

    Cache key format: "{namespace}:{part}:{part}..." (see make_key)

    Thread Safety:
        Uses threading.Lock for safe concurrent access within one process.
    """

    def __init__(
            self,
            ttl_seconds: int = CACHE_TTL_SECONDS,
            max_size: int = CACHE_MAX_SIZE,
    ):
        """
        Initialize cache with TTL and max size.

        Args:
            ttl_seconds: Time-to-live in seconds (0 disables reuse)
            max_size: Maximum number of entries
        """
        self._cache: OrderedDict[str, tuple[datetime, Any]] = OrderedDict()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_size = max_size
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, app_settings=None) -> "AnalyticsCache":
        """Create a cache sized from configuration."""
        app_settings = app_settings or settings
        return cls(
            ttl_seconds=app_settings.cache_ttl_seconds,
            max_size=app_settings.cache_max_size,
        )

    @staticmethod
    def make_key(namespace: str, *parts: object) -> str:
        """
        Generate a cache key.

        Example:
            AnalyticsCache.make_key("trends", "fund-1", "revenue", 2024)
            # "trends:fund-1:revenue:2024"
        """
        return ":".join([namespace, *("none" if p is None else str(p) for p in parts)])

    def get(self, key: str) -> Any | None:
        """
        Get cached result if exists and not expired.

        Implements LRU by moving accessed entries to the end.

        Returns:
            Cached result or None if not found/expired
        """
        with self._lock:
            if key in self._cache:
                timestamp, result = self._cache[key]
                if datetime.now() - timestamp < self._ttl:
                    self._cache.move_to_end(key)
                    logger.debug(f"Cache hit for {key}")
                    return result
                else:
                    del self._cache[key]
                    logger.debug(f"Cache expired for {key}")

        return None

    def set(self, key: str, result: Any) -> None:
        """
        Store result in cache with LRU eviction.

        If cache is at max capacity, evicts the least recently used entry.
        """
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            while len(self._cache) >= self._max_size:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                logger.debug(f"Cache evicted {oldest_key} (LRU)")
            self._cache[key] = (datetime.now(), result)
        logger.debug(f"Cached result for {key}")

    def invalidate(self, prefix: str) -> int:
        """
        Invalidate all cache entries whose key starts with a prefix.

        Args:
            prefix: Key prefix, e.g. "portfolio:fund-1:"

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]

        if keys_to_delete:
            logger.debug(f"Invalidated {len(keys_to_delete)} cache entries for prefix {prefix}")

        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug(f"Cleared {count} cache entries")

    def size(self) -> int:
        """Return current number of cached entries."""
        with self._lock:
            return len(self._cache)


# =============================================================================
# ANALYTICS SERVICE
# =============================================================================

class PortfolioAnalyticsService:
    """
    Main orchestrator for portfolio analytics.

    This service coordinates all analytics calculations by:
    1. Filtering already-fetched rows to the portfolio and period type
    2. Extracting numeric values and normalizing periods
    3. Delegating to the pure calculation modules
    4. Caching results when the caller supplies a cache key

    Attributes:
        _catalog: MetricCatalog used for every classification decision
        _cache: AnalyticsCache for result caching
        _batch_size: Chunk size for benchmark persistence batches
    """

    # Shared cache instance (singleton pattern)
    _shared_cache: AnalyticsCache | None = None

    def __init__(
            self,
            catalog: MetricCatalog | None = None,
            cache: AnalyticsCache | None = None,
            benchmark_batch_size: int | None = None,
    ):
        """
        Initialize the Analytics Service.

        Args:
            catalog: Metric lookup tables. If None, the configured catalog
                     (built-ins plus extra_*_metrics settings) is used.
            cache: AnalyticsCache instance. If None, uses shared cache.
            benchmark_batch_size: Chunk size for iter_benchmark_batches.
                                  Defaults to settings.benchmark_batch_size.
        """
        self._catalog = catalog if catalog is not None else MetricCatalog.from_settings()

        if cache is not None:
            self._cache = cache
        else:
            if PortfolioAnalyticsService._shared_cache is None:
                PortfolioAnalyticsService._shared_cache = AnalyticsCache.from_settings()
            self._cache = PortfolioAnalyticsService._shared_cache

        self._batch_size = (
            settings.benchmark_batch_size if benchmark_batch_size is None else benchmark_batch_size
        )

        # Cached results depend on the catalog, so keys are scoped to it
        self._cache_scope = f"catalog-{hash(self._catalog) & 0xFFFFFFFFFFFFFFFF:016x}"

        logger.info("PortfolioAnalyticsService initialized")

    @property
    def catalog(self) -> MetricCatalog:
        return self._catalog

    @property
    def cache(self) -> AnalyticsCache:
        return self._cache

    # =========================================================================
    # PORTFOLIO METRICS
    # =========================================================================

    def get_portfolio_metrics(
            self,
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            period_type: PeriodType | str,
            metric_names: Iterable[str] | None = None,
            cache_key: str | None = None,
    ) -> PortfolioMetrics:
        """
        Build the cross-company portfolio report.

        Args:
            rows: Stored metric rows (rows of other companies or period
                  types are ignored)
            companies: Portfolio companies, in display order
            period_type: Period type of the report
            metric_names: If given, only these metrics are reported
            cache_key: If given, the result is cached under this key

        Returns:
            PortfolioMetrics with overall aggregates, period buckets and a
            per-company breakdown sorted by revenue growth (None last)
        """
        p_type = PeriodType.parse(period_type)
        requested = (
            {normalize_metric_name(name) for name in metric_names}
            if metric_names else None
        )

        return self._cached(
            cache_key,
            lambda: self._build_portfolio_metrics(rows, companies, p_type, requested),
        )

    def _build_portfolio_metrics(
            self,
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            period_type: PeriodType,
            requested: set[str] | None,
    ) -> PortfolioMetrics:
        logger.info(
            f"Building portfolio metrics for {len(companies)} companies "
            f"({period_type.value})"
        )

        portfolio_rows = self._portfolio_rows(rows, companies, period_type)
        samples = [
            sample for sample in build_metric_samples(portfolio_rows)
            if requested is None or sample.metric_name in requested
        ]

        # Overall aggregates
        metric_groups: dict[str, list[float]] = defaultdict(list)
        for sample in samples:
            metric_groups[sample.metric_name].append(sample.value)

        aggregates = {
            name: aggregate_metric_values(values, name, self._catalog)
            for name, values in metric_groups.items()
        }
        can_sum = {name: can_sum_metric(name, self._catalog) for name in metric_groups}

        by_company = [
            self._company_breakdown(company, samples) for company in companies
        ]
        # Top performers first; stable for ties and for the None tail
        by_company.sort(
            key=lambda b: (b.revenue_growth is None, -(b.revenue_growth or 0.0))
        )

        return PortfolioMetrics(
            period_type=period_type,
            summary=PortfolioSummary(
                total_companies=len(companies),
                companies_with_data=len({s.company_id for s in samples}),
                total_metric_values=len(portfolio_rows),
            ),
            aggregates=aggregates,
            can_sum=can_sum,
            by_period=build_period_buckets(samples, period_type, self._catalog),
            by_company=by_company,
        )

    def _company_breakdown(
            self,
            company: CompanyProfile,
            samples: Sequence[MetricSample],
    ) -> CompanyBreakdown:
        """Latest/previous value and growth per metric for one company."""
        company_samples = sorted(
            (s for s in samples if s.company_id == company.company_id),
            key=lambda s: s.period_start,
            reverse=True,
        )

        latest: dict[str, float] = {}
        previous: dict[str, float] = {}
        for sample in company_samples:
            if sample.metric_name not in latest:
                latest[sample.metric_name] = sample.value
            elif sample.metric_name not in previous:
                previous[sample.metric_name] = sample.value

        metrics = {}
        for name, latest_value in latest.items():
            previous_value = previous.get(name)
            metrics[name] = CompanyMetricSummary(
                latest=latest_value,
                previous=previous_value,
                growth=(
                    calculate_growth_rate(latest_value, previous_value)
                    if previous_value is not None else None
                ),
            )

        revenue_metric = identify_revenue_metric(list(metrics), self._catalog)

        return CompanyBreakdown(
            company_id=company.company_id,
            company_name=company.name,
            industry=company.industry,
            stage=company.stage,
            metrics=metrics,
            revenue_metric=revenue_metric,
            revenue_growth=metrics[revenue_metric].growth if revenue_metric else None,
        )

    # =========================================================================
    # METRIC TOTALS
    # =========================================================================

    def get_metric_totals(
            self,
            samples: Iterable[MetricSample],
            period_keys: Sequence[str] | None = None,
    ) -> list[MetricTotal]:
        """
        Roll up each metric of a single company over the visible periods.

        Args:
            samples: One company's samples (any metrics)
            period_keys: Visible period slots, oldest first; defaults to the
                         periods present per metric

        Returns:
            One MetricTotal per metric, ordered by metric name
        """
        by_metric: dict[str, list[MetricSample]] = defaultdict(list)
        for sample in samples:
            by_metric[sample.metric_name].append(sample)

        totals = []
        for name in sorted(by_metric):
            aggregation_type = get_default_aggregation_type(name, self._catalog)
            totals.append(
                MetricTotal(
                    metric_name=name,
                    aggregation_type=aggregation_type,
                    total=rollup_metric_series(by_metric[name], period_keys, self._catalog),
                    recommendation=recommend_aggregation_type(name, self._catalog),
                    indicator=get_aggregation_indicator(aggregation_type),
                )
            )

        return totals

    # =========================================================================
    # TRENDS
    # =========================================================================

    def get_trends(
            self,
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            metric_name: str,
            period_type: PeriodType | str,
            current_year: int,
            periods: int = DEFAULT_TREND_PERIODS,
            cache_key: str | None = None,
    ) -> TrendsReport:
        """
        Build the trend report for one metric across the portfolio.

        Growth per company compares its two most recent periods within the
        last `periods` period keys seen in the data.

        Args:
            rows: Stored metric rows
            companies: Portfolio companies (supply outlier display names)
            metric_name: Metric to analyze (case-insensitive)
            period_type: Period type of the rows to use
            current_year: Year compared against current_year - 1
            periods: Trailing period window, clamped to 1..24
            cache_key: If given, the result is cached under this key

        Raises:
            ValidationError: If metric_name is blank
        """
        if not metric_name or not metric_name.strip():
            raise ValidationError("metric_name is required", field="metric_name")

        p_type = PeriodType.parse(period_type)
        window = min(max(periods, MIN_TREND_PERIODS), MAX_TREND_PERIODS)

        return self._cached(
            cache_key,
            lambda: self._build_trends(
                rows, companies, normalize_metric_name(metric_name), p_type, current_year, window,
            ),
        )

    def _build_trends(
            self,
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            metric_name: str,
            period_type: PeriodType,
            current_year: int,
            periods: int,
    ) -> TrendsReport:
        logger.info(
            f"Building {period_type.value} trends for '{metric_name}' "
            f"over {periods} periods"
        )

        metric_rows = sorted(
            (
                row for row in self._portfolio_rows(rows, companies, period_type)
                if normalize_metric_name(row.metric_name) == metric_name
            ),
            key=lambda row: row.period_start,
        )
        samples = build_metric_samples(metric_rows)

        # company_id -> period key -> value (latest row per period wins)
        company_periods: dict[str, dict[str, float]] = {}
        for sample in samples:
            key = format_period_key(sample.period_start, period_type)
            company_periods.setdefault(sample.company_id, {})[key] = sample.value

        all_keys = sorted({key for period_map in company_periods.values() for key in period_map})
        recent_keys = all_keys[-periods:]

        company_growth: list[CompanyGrowth] = []
        for company_id, period_map in company_periods.items():
            company_keys = [key for key in recent_keys if key in period_map]
            if len(company_keys) < 2:
                continue

            growth = calculate_growth_rate(
                period_map[company_keys[-1]],
                period_map[company_keys[-2]],
            )
            if growth is not None:
                company_growth.append(CompanyGrowth(company_id=company_id, growth=growth))

        company_names = {company.company_id: company.name for company in companies}

        return TrendsReport(
            metric_name=metric_name,
            period_type=period_type,
            periods=periods,
            company_count=len(company_periods),
            companies_with_growth=len(company_growth),
            current_year=current_year,
            prior_year=current_year - 1,
            growth_distribution=bucket_growth_rates(g.growth for g in company_growth),
            year_over_year=compare_year_over_year(samples, period_type, current_year),
            outliers=detect_growth_outliers(company_growth, company_names),
        )

    # =========================================================================
    # BENCHMARKS
    # =========================================================================

    def recalculate_benchmarks(
            self,
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            calculated_at: datetime,
    ) -> list[BenchmarkRow]:
        """
        Recompute every benchmark row for the portfolio.

        The run is tagged with a correlation id so its log lines can be
        traced; the caller's correlation id is restored afterwards.

        Args:
            rows: Stored metric rows (full history; only the latest value per
                  company and metric is used)
            companies: Company profiles supplying industry and stage
            calculated_at: Timestamp stamped on every row

        Returns:
            BenchmarkRows ordered by (metric, period type, industry, stage)
        """
        previous_id = get_correlation_id()
        run_id = f"benchmarks-{uuid.uuid4().hex[:12]}"
        set_correlation_id(run_id)

        try:
            logger.info(f"Benchmark recalculation started for {len(companies)} companies")

            profiles = {company.company_id: company for company in companies}
            benchmarks = calculate_benchmarks(rows, profiles, calculated_at)

            metric_count = len({row.metric_name for row in benchmarks})
            logger.info(
                f"Benchmark recalculation finished: {len(benchmarks)} rows "
                f"across {metric_count} metrics"
            )
            return benchmarks
        finally:
            if previous_id is None:
                clear_correlation_id()
            else:
                set_correlation_id(previous_id)

    def iter_benchmark_batches(
            self,
            benchmarks: Sequence[BenchmarkRow],
            batch_size: int | None = None,
    ) -> Iterator[list[BenchmarkRow]]:
        """
        Split benchmark rows into chunks for the persistence collaborator.

        Args:
            benchmarks: Rows from recalculate_benchmarks()
            batch_size: Overrides the configured batch size
        """
        size = self._batch_size if batch_size is None else batch_size
        logger.debug(f"Batching {len(benchmarks)} benchmark rows in chunks of {size}")
        return iter_benchmark_batches(benchmarks, size)

    def get_company_benchmark_position(
            self,
            value: float,
            benchmark: BenchmarkRow | PercentileResult,
    ) -> int:
        """
        Estimate where a company's value sits within a published benchmark.

        Returns:
            Percentile rank 0-100
        """
        percentiles = benchmark.percentiles if isinstance(benchmark, BenchmarkRow) else benchmark
        return get_company_percentile(value, percentiles)

    # =========================================================================
    # FUND PERFORMANCE
    # =========================================================================

    def get_fund_performance(
            self,
            records: Sequence[FundInvestmentRecord],
            as_of: date,
            cache_key: str | None = None,
    ) -> FundPerformance:
        """
        Calculate fund multiples and IRR.

        Args:
            records: Fund investment rows
            as_of: Valuation date of the terminal cash flows
            cache_key: If given, the result is cached under this key
        """
        logger.info(f"Calculating fund performance for {len(records)} investments as of {as_of}")
        return self._cached(
            cache_key,
            lambda: FundPerformanceCalculator.calculate_all(records, as_of),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _portfolio_rows(
            rows: Iterable[CompanyMetricRow],
            companies: Sequence[CompanyProfile],
            period_type: PeriodType,
    ) -> list[CompanyMetricRow]:
        """Rows belonging to the portfolio's companies at one period type."""
        company_ids = {company.company_id for company in companies}
        return [
            row for row in rows
            if row.company_id in company_ids
            and PeriodType.parse(row.period_type) == period_type
        ]

    def _cached(self, cache_key: str | None, compute: Callable[[], T]) -> T:
        """
        Return the cached result for a key, computing and storing it on a miss.

        The key is suffixed with the catalog scope, so services built on
        different catalogs never read each other's entries. Prefix
        invalidation with caller keys still matches.
        """
        if cache_key is None:
            return compute()

        cache_key = f"{cache_key}:{self._cache_scope}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        result = compute()
        self._cache.set(cache_key, result)
        return result
