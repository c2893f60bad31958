# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Settings forced into test mode
- Sample data factories (metric rows, company profiles, fund investments)
- A service wired to a private cache
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.services.analytics import (
    AnalyticsCache,
    CompanyMetricRow,
    CompanyProfile,
    DEFAULT_CATALOG,
    FundInvestmentRecord,
    PortfolioAnalyticsService,
)
from portfolio_engine.utils.context import clear_correlation_id


# =============================================================================
# FACTORIES
# =============================================================================

def make_row(
        company_id: str,
        metric_name: str,
        period_start: date,
        value: object,
        period_type: str = "quarterly",
) -> CompanyMetricRow:
    """Build a stored metric row."""
    return CompanyMetricRow(
        company_id=company_id,
        metric_name=metric_name,
        period_type=period_type,
        period_start=period_start,
        value=value,
    )


@pytest.fixture
def row_factory():
    """Expose make_row to tests that build their own rows."""
    return make_row


# =============================================================================
# PORTFOLIO FIXTURES
# =============================================================================

@pytest.fixture
def companies() -> list[CompanyProfile]:
    """Three portfolio companies with different industry/stage coverage."""
    return [
        CompanyProfile(company_id="acme", name="Acme", industry="SaaS", stage="Seed"),
        CompanyProfile(company_id="globex", name="Globex", industry="SaaS", stage="Series A"),
        CompanyProfile(company_id="initech", name="Initech", industry=None, stage=None),
    ]


@pytest.fixture
def metric_rows() -> list[CompanyMetricRow]:
    """
    Two quarters of revenue and gross margin for three companies.

    Revenue Q1 -> Q2:
        acme     100 -> 150   (+50%)
        globex   200 -> 180   (-10%)
        initech  300 -> 300   (0%)
    """
    q1 = date(2024, 1, 1)
    q2 = date(2024, 4, 1)
    return [
        make_row("acme", "Revenue", q1, 100),
        make_row("acme", "Revenue", q2, "150"),
        make_row("acme", "Gross Margin", q1, 60),
        make_row("acme", "Gross Margin", q2, {"value": 70}),
        make_row("globex", "revenue", q1, 200),
        make_row("globex", "revenue", q2, 180),
        make_row("globex", "gross margin", q2, 50),
        make_row("initech", "Revenue ", q1, {"raw": "300"}),
        make_row("initech", "Revenue", q2, 300.0),
        # Not usable: dropped by the extractor
        make_row("initech", "Revenue", date(2023, 10, 1), "n/a"),
        # Another period type: ignored by quarterly reports
        make_row("acme", "Revenue", date(2024, 1, 1), 40, period_type="monthly"),
    ]


@pytest.fixture
def fund_records() -> list[FundInvestmentRecord]:
    """
    Two investments totalling 1000 invested.

    Totals: invested 1000, current 900, realized 300
        TVPI = 1.2, DPI = 0.3, RVPI = 0.9
    """
    return [
        FundInvestmentRecord(
            invested_amount=Decimal("600"),
            current_value=Decimal("500"),
            realized_value=Decimal("300"),
            investment_date=date(2022, 1, 1),
        ),
        FundInvestmentRecord(
            invested_amount=Decimal("400"),
            current_value=Decimal("400"),
            realized_value=Decimal("0"),
            investment_date=None,
        ),
    ]


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def cache() -> AnalyticsCache:
    """A private cache so tests never share results."""
    return AnalyticsCache(ttl_seconds=3600, max_size=10)


@pytest.fixture
def service(cache: AnalyticsCache) -> PortfolioAnalyticsService:
    """Service with the built-in catalog and a private cache."""
    return PortfolioAnalyticsService(catalog=DEFAULT_CATALOG, cache=cache, benchmark_batch_size=2)


@pytest.fixture(autouse=True)
def reset_correlation_id():
    """Keep correlation IDs from leaking between tests."""
    clear_correlation_id()
    yield
    clear_correlation_id()
