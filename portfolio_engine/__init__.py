# portfolio_engine/__init__.py
"""
Portfolio Analytics Engine.

Turns raw metric values reported by portfolio companies into portfolio
analytics: cross-company aggregates, rolling totals, growth and trends,
percentile benchmarks, and fund performance (TVPI, DPI, RVPI, MOIC, IRR).

Packages:
    services/analytics  - calculations and the PortfolioAnalyticsService
    schemas             - pydantic response models
    utils               - logging and correlation ID context
    config              - pydantic-settings configuration
"""

__version__ = "0.1.0"
