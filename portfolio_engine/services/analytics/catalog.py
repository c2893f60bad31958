# portfolio_engine/services/analytics/catalog.py
"""
Metric lookup catalogs.

The classification and aggregation rules depend on fixed lists of metric
names (flow vs point-in-time, summable across companies, ...). They are
bundled into an immutable MetricCatalog that every rule takes as a
parameter, so deployments can extend the lists (see `extra_*_metrics` in
portfolio_engine.config) without touching the algorithms.

All names are canonical: trimmed and lowercase.

Usage:
    from portfolio_engine.services.analytics.catalog import DEFAULT_CATALOG

    DEFAULT_CATALOG.is_flow("Revenue")        # True
    DEFAULT_CATALOG.is_summable("gross margin")  # False

    catalog = DEFAULT_CATALOG.extended(flow=["bookings"])
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from portfolio_engine.services.analytics.types import AggregationType


def normalize_metric_name(metric_name: str) -> str:
    """Canonical form used for every catalog lookup."""
    return metric_name.lower().strip()


def _names(*names: str) -> frozenset[str]:
    return frozenset(normalize_metric_name(n) for n in names)


# =============================================================================
# BUILT-IN NAME LISTS
# =============================================================================

# Values earned/spent over a period; summed across periods
FLOW_METRICS: frozenset[str] = _names(
    "revenue",
    "net revenue",
    "gmv",
    "gross merchandise volume",
    "total transaction volume",
    "transaction volume",
    "operating expenses",
    "opex",
    "r&d spend",
    "r&d expenses",
    "research and development",
    "marketing spend",
    "marketing expenses",
    "sales expenses",
    "sales spend",
    "cost of goods sold",
    "cogs",
    "api calls",
    "data processing volume",
    "total sales",
    "gross sales",
    "net sales",
    "operating costs",
    "total expenses",
    "payroll expenses",
    "infrastructure costs",
    "cloud costs",
    "hosting costs",
)

# Snapshots, rates and counts; only the latest value is meaningful
POINT_IN_TIME_METRICS: frozenset[str] = _names(
    # Recurring revenue rates
    "arr",
    "annual recurring revenue",
    "mrr",
    "monthly recurring revenue",
    # Burn rates
    "net burn rate",
    "gross burn rate",
    "burn rate",
    "net burn",
    "gross burn",
    # Counts
    "customer count",
    "customers",
    "headcount",
    "employees",
    "active accounts",
    # Active users
    "monthly active users",
    "mau",
    "active users",
    "monthly active learners",
    "monthly active patients",
    "daily active users",
    "dau",
    # Financial snapshots
    "runway",
    "cash on hand",
    "cash balance",
    # Percentages / rates
    "gross margin",
    "net margin",
    "net revenue retention",
    "nrr",
    "gross revenue retention",
    "grr",
    "churn rate",
    "customer churn rate",
    "retention rate",
    "conversion rate",
    "default rate",
    "fraud rate",
    "take rate",
    "return rate",
    "cart abandonment rate",
    "repeat purchase rate",
    "course completion rate",
    "patient retention rate",
    "provider utilization rate",
    "student retention rate",
    # Ratios and per-unit metrics
    "ltv",
    "lifetime value",
    "cac",
    "customer acquisition cost",
    "ltv:cac ratio",
    "ltv:cac",
    "arpu",
    "average revenue per user",
    "aov",
    "average order value",
    "cost per patient",
    # Scores
    "nps",
    "net promoter score",
    "clinical outcomes score",
    "hipaa compliance score",
    "instructor satisfaction",
    "learning outcome improvement",
    # Performance
    "model accuracy",
    "inference latency",
    "claims processing time",
    "content engagement time",
    "inventory turnover",
    # Growth rates measured at a point in time
    "usage growth rate",
    "regulatory capital ratio",
    "net interest margin",
    "compute costs",
)

# Absolute values that may be added up across companies
SUMMABLE_METRICS: frozenset[str] = _names(
    "revenue",
    "net revenue",
    "arr",
    "mrr",
    "burn rate",
    "headcount",
    "gmv",
    "total transaction volume",
    "operating expenses",
    "customer count",
    "monthly active users",
    "monthly active learners",
    "monthly active patients",
    "active accounts",
    "api calls",
    "data processing volume",
)

# Percentages and ratios; only ever averaged across companies
AVERAGE_ONLY_METRICS: frozenset[str] = _names(
    "gross margin",
    "net revenue retention",
    "nrr",
    "gross revenue retention",
    "customer churn rate",
    "churn rate",
    "conversion rate",
    "return rate",
    "cart abandonment rate",
    "take rate",
    "default rate",
    "fraud rate",
    "retention rate",
    "patient retention rate",
    "student retention rate",
    "course completion rate",
    "model accuracy",
    "nps",
    "hipaa compliance score",
)

# Skewed metrics where the median describes the portfolio better than the mean
MEDIAN_PREFERRED_METRICS: frozenset[str] = _names(
    "runway",
    "cac",
    "ltv",
    "ltv:cac ratio",
    "aov",
    "arpu",
    "inference latency",
    "claims processing time",
)

# First match wins when picking a company's headline revenue metric
REVENUE_PRIORITY: tuple[str, ...] = (
    "mrr",
    "arr",
    "revenue",
    "net revenue",
    "gmv",
    "total transaction volume",
)


# =============================================================================
# PATTERN RULES (medium-confidence heuristics)
# =============================================================================

@dataclass(frozen=True)
class PatternRule:
    """
    Regex heuristic used when a metric name is not in any catalog.

    Attributes:
        pattern: Must match the canonical name
        recommended: Aggregation type suggested on a match
        reason: Human-readable justification
        exclude: If this also matches, the rule does not apply
    """
    pattern: re.Pattern[str]
    recommended: AggregationType
    reason: str
    exclude: re.Pattern[str] | None = None

    def matches(self, metric_name: str) -> bool:
        if not self.pattern.search(metric_name):
            return False
        return self.exclude is None or not self.exclude.search(metric_name)


def _rule(
        pattern: str,
        recommended: AggregationType,
        reason: str,
        exclude: str | None = None,
) -> PatternRule:
    return PatternRule(
        pattern=re.compile(pattern, re.IGNORECASE),
        recommended=recommended,
        reason=reason,
        exclude=re.compile(exclude, re.IGNORECASE) if exclude else None,
    )


# Evaluated in order; flow heuristics first
PATTERN_RULES: tuple[PatternRule, ...] = (
    _rule(
        r"\b(revenue|sales|income)\b",
        AggregationType.SUM,
        "Appears to be a revenue/sales metric (flow)",
        exclude=r"recurring|arr|mrr",
    ),
    _rule(
        r"\b(spend|expense|cost|cogs)\b",
        AggregationType.SUM,
        "Appears to be an expense metric (flow)",
        exclude=r"per\s|acquisition",
    ),
    _rule(
        r"\b(volume|calls|transactions)\b",
        AggregationType.SUM,
        "Appears to be a volume metric (flow)",
    ),
    _rule(
        r"\b(rate|ratio|margin|%|percentage)\b",
        AggregationType.LATEST,
        "Appears to be a rate or percentage (point-in-time)",
    ),
    _rule(
        r"\b(count|headcount|employees|users|customers|accounts)\b",
        AggregationType.LATEST,
        "Appears to be a count metric (point-in-time)",
    ),
    _rule(
        r"\b(runway|balance|cash)\b",
        AggregationType.LATEST,
        "Appears to be a balance metric (point-in-time)",
    ),
    _rule(
        r"\b(arr|mrr|recurring)\b",
        AggregationType.LATEST,
        "Appears to be a recurring revenue rate (point-in-time)",
    ),
    _rule(
        r"\b(burn)\b",
        AggregationType.LATEST,
        "Appears to be a burn rate (point-in-time)",
    ),
    _rule(
        r"\b(score|nps|satisfaction)\b",
        AggregationType.LATEST,
        "Appears to be a score metric (point-in-time)",
    ),
    _rule(
        r"\b(ltv|cac|arpu|aov)\b",
        AggregationType.LATEST,
        "Appears to be a per-unit metric (point-in-time)",
    ),
)


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class MetricCatalog:
    """
    Immutable bundle of every metric-name lookup table.

    Lookups normalize the queried name, so callers can pass names exactly
    as stored.
    """
    flow_metrics: frozenset[str] = FLOW_METRICS
    point_in_time_metrics: frozenset[str] = POINT_IN_TIME_METRICS
    summable_metrics: frozenset[str] = SUMMABLE_METRICS
    average_only_metrics: frozenset[str] = AVERAGE_ONLY_METRICS
    median_preferred_metrics: frozenset[str] = MEDIAN_PREFERRED_METRICS
    revenue_priority: tuple[str, ...] = REVENUE_PRIORITY
    pattern_rules: tuple[PatternRule, ...] = field(default=PATTERN_RULES)

    def is_flow(self, metric_name: str) -> bool:
        return normalize_metric_name(metric_name) in self.flow_metrics

    def is_point_in_time(self, metric_name: str) -> bool:
        return normalize_metric_name(metric_name) in self.point_in_time_metrics

    def is_summable(self, metric_name: str) -> bool:
        return normalize_metric_name(metric_name) in self.summable_metrics

    def is_average_only(self, metric_name: str) -> bool:
        return normalize_metric_name(metric_name) in self.average_only_metrics

    def prefers_median(self, metric_name: str) -> bool:
        return normalize_metric_name(metric_name) in self.median_preferred_metrics

    def extended(
            self,
            flow: Iterable[str] = (),
            point_in_time: Iterable[str] = (),
            summable: Iterable[str] = (),
    ) -> "MetricCatalog":
        """
        Return a new catalog with extra names added.

        A name added as flow is removed from the point-in-time set (and
        vice versa) so the two sets stay disjoint.

        Args:
            flow: Extra flow metric names
            point_in_time: Extra point-in-time metric names
            summable: Extra cross-company summable metric names

        Returns:
            New MetricCatalog; self is unchanged
        """
        extra_flow = _names(*flow)
        extra_point = _names(*point_in_time)

        return replace(
            self,
            flow_metrics=(self.flow_metrics - extra_point) | extra_flow,
            point_in_time_metrics=(self.point_in_time_metrics - extra_flow) | extra_point,
            summable_metrics=self.summable_metrics | _names(*summable),
        )

    @classmethod
    def from_settings(cls, app_settings=None) -> "MetricCatalog":
        """
        Build the catalog configured for this deployment.

        Args:
            app_settings: Settings instance (defaults to portfolio_engine.config.settings)

        Returns:
            Built-in catalog extended with the configured extra names
        """
        if app_settings is None:
            from portfolio_engine.config import settings as app_settings

        return cls().extended(
            flow=app_settings.extra_flow_metrics,
            point_in_time=app_settings.extra_point_in_time_metrics,
            summable=app_settings.extra_summable_metrics,
        )


DEFAULT_CATALOG = MetricCatalog()
