# portfolio_engine/services/analytics/benchmark.py
"""
Percentile benchmark functions for the Analytics Engine.

This module ranks companies against their peers:
- Percentiles: p25/p50/p75/p90 of a value distribution
- Company Percentile: approximate rank of one value against published thresholds
- Benchmark Groups: portfolio-wide grouping by metric, period type, industry, stage

Percentiles use linear interpolation between order statistics (the R-7 /
Excel PERCENTILE.INC method). The formula is fixed so identical inputs
always publish identical thresholds.

Formulas:
    index = (n - 1) × p
    P(p)  = x[⌊index⌋] + (index - ⌊index⌋) × (x[⌈index⌉] - x[⌊index⌋])

Sample-size floor:
    Fewer than 5 observations never produce a benchmark.

Group granularity (each company value feeds up to four groups):
    (metric, period_type, industry, stage)   when both are known
    (metric, period_type, industry, None)    when industry is known
    (metric, period_type, None, stage)       when stage is known
    (metric, period_type, None, None)        always
"""

import logging
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from portfolio_engine.services.analytics.catalog import normalize_metric_name
from portfolio_engine.services.analytics.extraction import extract_numeric_value
from portfolio_engine.services.analytics.types import (
    BenchmarkRow,
    CompanyMetricRow,
    CompanyProfile,
    PercentileResult,
    PeriodType,
)
from portfolio_engine.services.constants import (
    BENCHMARK_PERCENTILES,
    DEFAULT_BENCHMARK_BATCH_SIZE,
    MIN_BENCHMARK_SAMPLE_SIZE,
)
from portfolio_engine.services.exceptions import ValidationError

logger = logging.getLogger(__name__)

BenchmarkKey = tuple[str, str, str | None, str | None]


# =============================================================================
# PERCENTILES
# =============================================================================

def _interpolated_percentile(sorted_values: Sequence[float], p: float) -> float:
    """R-7 percentile of an already sorted, non-empty sequence."""
    index = (len(sorted_values) - 1) * p
    lower = math.floor(index)
    upper = math.ceil(index)

    if lower == upper:
        return float(sorted_values[lower])

    fraction = index - lower
    return sorted_values[lower] + fraction * (sorted_values[upper] - sorted_values[lower])


def calculate_percentiles(values: Sequence[float]) -> PercentileResult | None:
    """
    Calculate the p25/p50/p75/p90 thresholds of a distribution.

    Works on a sorted copy; the input order is left untouched.

    Args:
        values: Observations (one per company)

    Returns:
        PercentileResult, or None when fewer than 5 values are supplied

    Example:
        calculate_percentiles([1, 2, 3, 4, 5])
        # p25=2.0, p50=3.0, p75=4.0, p90≈4.6
    """
    if len(values) < MIN_BENCHMARK_SAMPLE_SIZE:
        return None

    sorted_values = sorted(values)
    thresholds = {
        name: _interpolated_percentile(sorted_values, p)
        for name, p in BENCHMARK_PERCENTILES
    }

    return PercentileResult(**thresholds)


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_company_percentile(value: float, benchmark: PercentileResult) -> int:
    """
    Estimate the percentile rank (0-100) of a value within a benchmark.

    This is an approximation, not an empirical CDF lookup: only four
    thresholds are known, so the rank is linearly interpolated between
    breakpoints. The tails use estimated end points:

        0th   = p25 - 1.5 × (p75 - p25)
        100th = p90 + (p90 - p75)

    Values at or beyond those end points clamp to 0 and 100.

    Args:
        value: Company's metric value
        benchmark: Published thresholds

    Returns:
        Percentile rank rounded to the nearest integer (0-100)
    """
    p25, p50, p75, p90 = benchmark.p25, benchmark.p50, benchmark.p75, benchmark.p90

    breakpoints: list[tuple[float, float]] = [
        (0.0, p25 - 1.5 * (p75 - p25)),
        (25.0, p25),
        (50.0, p50),
        (75.0, p75),
        (90.0, p90),
        (100.0, p90 + (p90 - p75)),
    ]

    if value <= breakpoints[0][1]:
        return 0
    if value >= breakpoints[-1][1]:
        return 100

    for (p_low, v_low), (p_high, v_high) in zip(breakpoints, breakpoints[1:]):
        if v_low <= value <= v_high:
            if v_high == v_low:
                return int(p_low)
            fraction = (value - v_low) / (v_high - v_low)
            return _round_half_up(p_low + fraction * (p_high - p_low))

    # Unreachable for ordered thresholds
    return 50


# =============================================================================
# BENCHMARK GROUPS
# =============================================================================

@dataclass
class BenchmarkGroup:
    """Values collected for one (metric, period_type, industry, stage) group."""
    metric_name: str
    period_type: str
    industry: str | None
    stage: str | None
    values: list[float] = field(default_factory=list)

    @property
    def key(self) -> BenchmarkKey:
        return self.metric_name, self.period_type, self.industry, self.stage


def select_latest_values(rows: Iterable[CompanyMetricRow]) -> list[CompanyMetricRow]:
    """
    Keep only the most recent row per (company, metric, period type).

    Historical values are dropped so each company contributes one
    observation per metric.

    Returns:
        Latest rows, ordered by (company, metric, period type)
    """
    latest: dict[tuple[str, str, str], CompanyMetricRow] = {}

    for row in rows:
        key = (
            row.company_id,
            normalize_metric_name(row.metric_name),
            PeriodType.parse(row.period_type).value,
        )
        existing = latest.get(key)
        if existing is None or row.period_start > existing.period_start:
            latest[key] = row

    return [latest[key] for key in sorted(latest)]


def build_benchmark_groups(
        rows: Iterable[CompanyMetricRow],
        companies: Mapping[str, CompanyProfile],
) -> dict[BenchmarkKey, BenchmarkGroup]:
    """
    Distribute each company's latest metric values into benchmark groups.

    Args:
        rows: Stored metric rows (any history depth)
        companies: company_id -> profile (industry/stage); unknown companies
                   only feed the overall group

    Returns:
        Groups keyed by (metric_name, period_type, industry, stage)
    """
    groups: dict[BenchmarkKey, BenchmarkGroup] = {}

    def add(metric_name: str, period_type: str, industry: str | None, stage: str | None,
            value: float) -> None:
        key = (metric_name, period_type, industry, stage)
        if key not in groups:
            groups[key] = BenchmarkGroup(metric_name, period_type, industry, stage)
        groups[key].values.append(value)

    for row in select_latest_values(rows):
        value = extract_numeric_value(row.value)
        if value is None:
            continue

        profile = companies.get(row.company_id)
        industry = profile.industry if profile and profile.industry else None
        stage = profile.stage if profile and profile.stage else None
        metric_name = normalize_metric_name(row.metric_name)
        period_type = PeriodType.parse(row.period_type).value

        if industry and stage:
            add(metric_name, period_type, industry, stage, value)
        if industry:
            add(metric_name, period_type, industry, None, value)
        if stage:
            add(metric_name, period_type, None, stage, value)
        add(metric_name, period_type, None, None, value)

    return groups


def _sort_key(key: BenchmarkKey) -> tuple:
    # None sorts before any string
    metric_name, period_type, industry, stage = key
    return metric_name, period_type, industry is not None, industry or "", stage is not None, stage or ""


def calculate_benchmarks(
        rows: Iterable[CompanyMetricRow],
        companies: Mapping[str, CompanyProfile],
        calculated_at: datetime,
) -> list[BenchmarkRow]:
    """
    Compute every publishable benchmark row for a portfolio.

    Groups below the sample-size floor are discarded. The result is a pure
    function of the inputs, so re-running it is idempotent.

    Args:
        rows: Stored metric rows
        companies: company_id -> profile
        calculated_at: Timestamp stamped on every row

    Returns:
        BenchmarkRows ordered by (metric, period type, industry, stage)
    """
    groups = build_benchmark_groups(rows, companies)
    results: list[BenchmarkRow] = []

    for key in sorted(groups, key=_sort_key):
        group = groups[key]
        percentiles = calculate_percentiles(group.values)
        if percentiles is None:
            continue

        results.append(
            BenchmarkRow(
                metric_name=group.metric_name,
                period_type=group.period_type,
                industry=group.industry,
                stage=group.stage,
                p25=percentiles.p25,
                p50=percentiles.p50,
                p75=percentiles.p75,
                p90=percentiles.p90,
                sample_size=len(group.values),
                calculated_at=calculated_at,
            )
        )

    logger.debug(
        f"Benchmarks: {len(results)} of {len(groups)} groups met the "
        f"{MIN_BENCHMARK_SAMPLE_SIZE}-value floor"
    )
    return results


def iter_benchmark_batches(
        rows: Sequence[BenchmarkRow],
        batch_size: int = DEFAULT_BENCHMARK_BATCH_SIZE,
) -> Iterator[list[BenchmarkRow]]:
    """
    Split benchmark rows into fixed-size chunks for upserting.

    Raises:
        ValidationError: If batch_size < 1
    """
    if batch_size < 1:
        raise ValidationError(f"batch_size must be >= 1, got {batch_size}", field="batch_size")

    for start in range(0, len(rows), batch_size):
        yield list(rows[start:start + batch_size])
