# portfolio_engine/utils/__init__.py
"""
Utility modules for the Portfolio Analytics Engine.

This package contains cross-cutting utilities:
- logging: Logging configuration with correlation ID support
- context: Execution context (correlation ID) storage

Usage:
    from portfolio_engine.utils import setup_logging, get_logger
    from portfolio_engine.utils import get_correlation_id, set_correlation_id
"""

from portfolio_engine.utils.context import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from portfolio_engine.utils.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
]
