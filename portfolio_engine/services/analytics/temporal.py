# portfolio_engine/services/analytics/temporal.py
"""
Temporal rollup and period bucketing.

This module contains pure functions for working with metric values over
time:
- Rolling Total: one value per metric over a series of period slots,
  summed for flow metrics, latest for point-in-time metrics
- Period keys & labels: deterministic, sortable identifiers per period
- Period normalization: canonical start/end dates of a period
- Period buckets: cross-company aggregates grouped by period

Period keys:
    monthly   -> "YYYY-MM"   (e.g. "2024-03")
    quarterly -> "YYYY-Qn"   (n = (month - 1) // 3 + 1, e.g. "2024-Q1")
    annual    -> "YYYY"

Keys are zero-padded, so lexicographic order is chronological order.
Labels ("Mar 2024", "Q1 2024", "2024") round-trip back to their key
through parse_period_label().
"""

import calendar
import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date

from portfolio_engine.services.analytics.aggregation import aggregate_period_values
from portfolio_engine.services.analytics.catalog import (
    DEFAULT_CATALOG,
    MetricCatalog,
    normalize_metric_name,
)
from portfolio_engine.services.analytics.classification import get_default_aggregation_type
from portfolio_engine.services.analytics.extraction import extract_numeric_value
from portfolio_engine.services.analytics.types import (
    AggregationType,
    CompanyMetricRow,
    MetricSample,
    NormalizedPeriod,
    PeriodBucket,
    PeriodType,
)
from portfolio_engine.services.exceptions import InvalidPeriodKeyError

logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS: tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_MONTHLY_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_QUARTERLY_KEY = re.compile(r"^(\d{4})-Q([1-4])$")
_ANNUAL_KEY = re.compile(r"^(\d{4})$")

_MONTHLY_LABEL = re.compile(r"^([A-Za-z]{3}) (\d{4})$")
_QUARTERLY_LABEL = re.compile(r"^Q([1-4]) (\d{4})$")


# =============================================================================
# ROLLING TOTAL
# =============================================================================

def calculate_rolling_total(
        values: Sequence[float | None],
        aggregation_type: AggregationType | str,
) -> float | None:
    """
    Calculate the rolling total of a series based on aggregation type.

    A None in the middle of the series is a missing period, not a reset to
    zero: it is skipped for SUM and scanned past for LATEST.

    Args:
        values: One entry per period slot, oldest first (None = no data)
        aggregation_type: SUM for flow metrics, LATEST for point-in-time

    Returns:
        Sum of non-None values (SUM), last non-None value (LATEST),
        or None if every slot is empty

    Example:
        >>> calculate_rolling_total([10, None, 20], "sum")
        30.0
        >>> calculate_rolling_total([10, None, 20], "latest")
        20
    """
    agg_type = AggregationType.parse(aggregation_type)
    valid_values = [v for v in values if v is not None]

    if not valid_values:
        return None

    if agg_type == AggregationType.SUM:
        return float(sum(valid_values))

    return valid_values[-1]


# =============================================================================
# PERIOD KEYS & LABELS
# =============================================================================

def _as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    # ISO strings may carry a time component ("2024-03-01T00:00:00Z")
    return date.fromisoformat(str(value)[:10])


def quarter_of(month: int) -> int:
    """Quarter number (1-4) of a calendar month (1-12)."""
    return (month - 1) // 3 + 1


def format_period_key(period_start: date | str, period_type: PeriodType | str) -> str:
    """
    Format the grouping key of the period containing a date.

    Args:
        period_start: Any date within the period (date or ISO string)
        period_type: monthly, quarterly or annual/yearly

    Returns:
        "YYYY-MM", "YYYY-Qn" or "YYYY"
    """
    p_type = PeriodType.parse(period_type)
    d = _as_date(period_start)

    if p_type == PeriodType.MONTHLY:
        return f"{d.year:04d}-{d.month:02d}"

    if p_type == PeriodType.QUARTERLY:
        return f"{d.year:04d}-Q{quarter_of(d.month)}"

    return f"{d.year:04d}"


def parse_period_key(period_key: str, period_type: PeriodType | str) -> date:
    """
    Get the first day of the period a key identifies.

    Raises:
        InvalidPeriodKeyError: If the key does not match the period type's format
    """
    p_type = PeriodType.parse(period_type)

    if p_type == PeriodType.MONTHLY:
        match = _MONTHLY_KEY.match(period_key)
        if match and 1 <= int(match.group(2)) <= 12:
            return date(int(match.group(1)), int(match.group(2)), 1)

    elif p_type == PeriodType.QUARTERLY:
        match = _QUARTERLY_KEY.match(period_key)
        if match:
            return date(int(match.group(1)), (int(match.group(2)) - 1) * 3 + 1, 1)

    else:
        match = _ANNUAL_KEY.match(period_key)
        if match:
            return date(int(match.group(1)), 1, 1)

    raise InvalidPeriodKeyError(period_key, p_type.value)


def format_period_label(period_key: str, period_type: PeriodType | str) -> str:
    """
    Get the display label for a period key.

    Args:
        period_key: Key produced by format_period_key()
        period_type: Period type of the key

    Returns:
        "Mar 2024", "Q1 2024" or "2024"

    Raises:
        InvalidPeriodKeyError: If the key is malformed
    """
    p_type = PeriodType.parse(period_type)
    start = parse_period_key(period_key, p_type)

    if p_type == PeriodType.MONTHLY:
        return f"{MONTH_ABBREVIATIONS[start.month - 1]} {start.year:04d}"

    if p_type == PeriodType.QUARTERLY:
        return f"Q{quarter_of(start.month)} {start.year:04d}"

    return f"{start.year:04d}"


def parse_period_label(label: str, period_type: PeriodType | str) -> str:
    """
    Inverse of format_period_label(): recover the key of a display label.

    Raises:
        InvalidPeriodKeyError: If the label is malformed
    """
    p_type = PeriodType.parse(period_type)

    if p_type == PeriodType.MONTHLY:
        match = _MONTHLY_LABEL.match(label)
        if match and match.group(1).title() in MONTH_ABBREVIATIONS:
            month = MONTH_ABBREVIATIONS.index(match.group(1).title()) + 1
            return f"{match.group(2)}-{month:02d}"

    elif p_type == PeriodType.QUARTERLY:
        match = _QUARTERLY_LABEL.match(label)
        if match:
            return f"{match.group(2)}-Q{match.group(1)}"

    elif _ANNUAL_KEY.match(label):
        return label

    raise InvalidPeriodKeyError(label, p_type.value)


# =============================================================================
# PERIOD NORMALIZATION
# =============================================================================

def normalize_period(
        period_start: date | str,
        period_type: PeriodType | str,
        period_end: date | str | None = None,
) -> NormalizedPeriod:
    """
    Normalize a period to canonical start/end dates.

    Rules:
        monthly:   first to last day of the month
        quarterly: first day of Jan/Apr/Jul/Oct to last day of the quarter
        annual:    Jan 1 to Dec 31

    Args:
        period_start: Any date within the period
        period_type: Period type
        period_end: Stored end date, only used to report was_adjusted

    Returns:
        NormalizedPeriod with canonical bounds and label
    """
    p_type = PeriodType.parse(period_type)
    original_start = _as_date(period_start)
    key = format_period_key(original_start, p_type)
    start = parse_period_key(key, p_type)

    if p_type == PeriodType.MONTHLY:
        end_month = start.month
    elif p_type == PeriodType.QUARTERLY:
        end_month = start.month + 2
    else:
        end_month = 12

    end = date(start.year, end_month, calendar.monthrange(start.year, end_month)[1])

    was_adjusted = original_start != start
    if period_end is not None and _as_date(period_end) != end:
        was_adjusted = True

    return NormalizedPeriod(
        period_type=p_type,
        period_start=start,
        period_end=end,
        label=format_period_label(key, p_type),
        was_adjusted=was_adjusted,
    )


def is_period_aligned(period_start: date | str, period_type: PeriodType | str) -> bool:
    """Check whether a date is already the first day of its period."""
    return not normalize_period(period_start, period_type).was_adjusted


# =============================================================================
# SAMPLES & BUCKETS
# =============================================================================

def build_metric_samples(rows: Iterable[CompanyMetricRow]) -> list[MetricSample]:
    """
    Turn stored rows into MetricSamples.

    Values are run through the value extractor; rows whose value is not
    usable are dropped. Period bounds are normalized and metric names
    canonicalized.

    Args:
        rows: Already-fetched storage rows

    Returns:
        One MetricSample per usable row, in input order
    """
    samples: list[MetricSample] = []
    skipped = 0

    for row in rows:
        value = extract_numeric_value(row.value)
        if value is None:
            skipped += 1
            continue

        period = normalize_period(row.period_start, row.period_type, row.period_end)
        samples.append(
            MetricSample(
                metric_name=normalize_metric_name(row.metric_name),
                period_type=period.period_type,
                period_start=period.period_start,
                period_end=period.period_end,
                value=value,
                company_id=row.company_id,
            )
        )

    if skipped:
        logger.debug(f"Skipped {skipped} metric rows with unparseable values")

    return samples


def rollup_metric_series(
        samples: Sequence[MetricSample],
        period_keys: Sequence[str] | None = None,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> float | None:
    """
    Roll up one metric's samples into a single total.

    Args:
        samples: Samples of a single metric (and company)
        period_keys: Visible period slots, oldest first. Slots without a
                     sample count as gaps. Defaults to every period present.
        catalog: Lookup tables for the flow/point-in-time decision

    Returns:
        Rolling total, or None if there is no data in any slot
    """
    if not samples:
        return None

    period_type = samples[0].period_type
    by_key: dict[str, float] = {}
    for sample in sorted(samples, key=lambda s: s.period_start):
        by_key[format_period_key(sample.period_start, period_type)] = sample.value

    slots = sorted(by_key) if period_keys is None else list(period_keys)
    aggregation_type = get_default_aggregation_type(samples[0].metric_name, catalog)

    return calculate_rolling_total([by_key.get(key) for key in slots], aggregation_type)


def build_period_buckets(
        samples: Iterable[MetricSample],
        period_type: PeriodType | str,
        catalog: MetricCatalog = DEFAULT_CATALOG,
) -> list[PeriodBucket]:
    """
    Group samples from many companies into period buckets.

    Args:
        samples: Metric samples (any companies, any metrics)
        period_type: Granularity of the buckets
        catalog: Lookup tables for the summability check

    Returns:
        PeriodBuckets ordered by period key
    """
    p_type = PeriodType.parse(period_type)
    groups: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))

    for sample in samples:
        key = format_period_key(sample.period_start, p_type)
        groups[key][sample.metric_name].append(sample.value)

    return [
        PeriodBucket(
            period_key=key,
            label=format_period_label(key, p_type),
            aggregates={
                metric_name: aggregate_period_values(values, metric_name, catalog)
                for metric_name, values in groups[key].items()
            },
        )
        for key in sorted(groups)
    ]
