# portfolio_engine/services/analytics/growth.py
"""
Growth and normalization functions.

This module contains pure functions for comparing metric values over time:
- Growth Rate: period-over-period percentage change
- Index Normalization: series rebased so the base period = 100
- Weighted Average: e.g. margins weighted by revenue
- Growth Distribution, Outliers and Year-over-Year comparison for trend reports

Formulas:
    Growth Rate    = (current - previous) / |previous| × 100
    Index          = current / base × 100
    Weighted Avg   = Σ(value × weight) / Σ(weight)
    z-score        = (growth - mean) / σ   (population standard deviation)

Zero denominators:
    growth rate -> None (not ±∞)
    index       -> 0 (kept for compatibility; see DESIGN.md)
    weighted    -> 0
"""

import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from statistics import fmean, pstdev

from portfolio_engine.services.analytics.temporal import MONTH_ABBREVIATIONS, quarter_of
from portfolio_engine.services.analytics.types import (
    CompanyGrowth,
    GrowthBucket,
    GrowthDirection,
    GrowthOutlier,
    MetricSample,
    PeriodType,
    YearOverYearPoint,
)
from portfolio_engine.services.constants import MIN_OUTLIER_SAMPLE_SIZE, OUTLIER_Z_SCORE


# =============================================================================
# GROWTH & INDEX
# =============================================================================

def calculate_growth_rate(current_value: float, previous_value: float) -> float | None:
    """
    Calculate period-over-period growth in percent.

    Dividing by |previous| keeps the sign meaningful when the previous
    value was negative (a loss shrinking is positive growth).

    Args:
        current_value: Value in the current period
        previous_value: Value in the previous period

    Returns:
        Growth in percent (50.0 = +50%), or None if previous_value is 0

    Example:
        >>> calculate_growth_rate(150, 100)
        50.0
    """
    if previous_value == 0:
        return None

    return ((current_value - previous_value) / abs(previous_value)) * 100


def normalize_to_index(current_value: float, base_value: float) -> float:
    """
    Normalize a value to an index where the base equals 100.

    Returns:
        current / base × 100, or 0.0 when base_value is 0
    """
    if base_value == 0:
        return 0.0

    return (current_value / base_value) * 100


def normalize_series_to_index(values: Sequence[float | None]) -> list[float | None]:
    """
    Rebase a series so its first available value equals 100.

    Args:
        values: Series oldest first; None marks a missing period

    Returns:
        Indexed series of the same length; None entries stay None
    """
    base = next((v for v in values if v is not None), None)
    if base is None:
        return [None] * len(values)

    return [None if v is None else normalize_to_index(v, base) for v in values]


def calculate_weighted_average(values: Iterable[tuple[float, float]]) -> float:
    """
    Calculate a weighted average.

    Args:
        values: (value, weight) pairs, e.g. (gross margin, revenue)

    Returns:
        Σ(value × weight) / Σ(weight), or 0.0 when total weight is 0
    """
    pairs = list(values)
    total_weight = sum(weight for _, weight in pairs)

    if total_weight == 0:
        return 0.0

    return sum(value * weight for value, weight in pairs) / total_weight


# =============================================================================
# GROWTH DISTRIBUTION
# =============================================================================

# (label, lower bound inclusive, upper bound exclusive)
GROWTH_BUCKETS: tuple[tuple[str, float, float], ...] = (
    ("<-20%", -math.inf, -20.0),
    ("-20% to -10%", -20.0, -10.0),
    ("-10% to 0%", -10.0, 0.0),
    ("0% to 10%", 0.0, 10.0),
    ("10% to 20%", 10.0, 20.0),
    (">20%", 20.0, math.inf),
)


def bucket_growth_rates(growth_rates: Iterable[float]) -> list[GrowthBucket]:
    """
    Count growth rates per histogram bucket.

    Returns:
        One GrowthBucket per entry of GROWTH_BUCKETS, in order
    """
    rates = list(growth_rates)

    return [
        GrowthBucket(
            label=label,
            count=sum(1 for rate in rates if lower <= rate < upper),
        )
        for label, lower, upper in GROWTH_BUCKETS
    ]


def _round2(value: float) -> float:
    try:
        return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # Beyond the 28-digit decimal context; keep the float as is
        return value


def detect_growth_outliers(
        company_growth: Sequence[CompanyGrowth],
        company_names: Mapping[str, str | None] | None = None,
        z_threshold: float = OUTLIER_Z_SCORE,
) -> list[GrowthOutlier]:
    """
    Find companies whose growth is more than `z_threshold` standard
    deviations away from the portfolio mean.

    Args:
        company_growth: Growth per company
        company_names: company_id -> display name
        z_threshold: |z| above which a company is reported

    Returns:
        Outliers ordered by |growth| descending. Empty when fewer than
        three companies have growth or every company grew equally.
    """
    if len(company_growth) < MIN_OUTLIER_SAMPLE_SIZE:
        return []

    growth_values = [entry.growth for entry in company_growth]
    mean = fmean(growth_values)
    std_dev = pstdev(growth_values, mu=mean)

    if std_dev == 0:
        return []

    names = company_names or {}
    outliers = []

    for entry in company_growth:
        z_score = (entry.growth - mean) / std_dev
        if abs(z_score) > z_threshold:
            outliers.append(
                GrowthOutlier(
                    company_id=entry.company_id,
                    company_name=names.get(entry.company_id) or "Unknown",
                    growth=_round2(entry.growth),
                    direction=(
                        GrowthDirection.OUTPERFORMING if z_score > 0
                        else GrowthDirection.UNDERPERFORMING
                    ),
                )
            )

    outliers.sort(key=lambda o: abs(o.growth), reverse=True)
    return outliers


# =============================================================================
# YEAR OVER YEAR
# =============================================================================

def _sub_period(sample: MetricSample, period_type: PeriodType) -> str:
    if period_type == PeriodType.QUARTERLY:
        return f"Q{quarter_of(sample.period_start.month)}"
    if period_type == PeriodType.MONTHLY:
        return f"{sample.period_start.month:02d}"
    return "annual"


def _sub_period_label(sub_period: str, period_type: PeriodType) -> str:
    if period_type == PeriodType.QUARTERLY:
        return sub_period
    if period_type == PeriodType.MONTHLY:
        return MONTH_ABBREVIATIONS[int(sub_period) - 1]
    return "Annual"


def compare_year_over_year(
        samples: Iterable[MetricSample],
        period_type: PeriodType | str,
        current_year: int,
) -> list[YearOverYearPoint]:
    """
    Compare the average value of each sub-period (quarter, month or the
    whole year) in `current_year` against the prior year.

    Args:
        samples: Samples of a single metric across companies
        period_type: Granularity of the comparison
        current_year: Year treated as "current"; prior year is current_year - 1

    Returns:
        One point per sub-period with data in either year, ordered by
        sub-period. Averages are rounded to 2 decimals; None where a year
        has no data.
    """
    p_type = PeriodType.parse(period_type)
    current: dict[str, list[float]] = defaultdict(list)
    prior: dict[str, list[float]] = defaultdict(list)

    for sample in samples:
        year = sample.period_start.year
        if year == current_year:
            current[_sub_period(sample, p_type)].append(sample.value)
        elif year == current_year - 1:
            prior[_sub_period(sample, p_type)].append(sample.value)

    points = []
    for sub_period in sorted(set(current) | set(prior)):
        current_values = current.get(sub_period)
        prior_values = prior.get(sub_period)
        points.append(
            YearOverYearPoint(
                period=sub_period,
                label=_sub_period_label(sub_period, p_type),
                current_year=_round2(fmean(current_values)) if current_values else None,
                prior_year=_round2(fmean(prior_values)) if prior_values else None,
            )
        )

    return points
