# portfolio_engine/utils/context.py
"""
Execution context management for the Portfolio Analytics Engine.

This module provides context storage for run-scoped data:
- Correlation ID tying together the log lines of one request or one
  benchmark recalculation run

Uses Python's contextvars, so the value is isolated per thread and
automatically propagates through async/await calls.

Usage:
    from portfolio_engine.utils.context import get_correlation_id, set_correlation_id

    # At the start of a request or batch run
    set_correlation_id("abc-123")

    # In any service
    correlation_id = get_correlation_id()  # Returns "abc-123"
"""

from contextvars import ContextVar

# =============================================================================
# CONTEXT VARIABLES
# =============================================================================

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


# =============================================================================
# CORRELATION ID
# =============================================================================

def get_correlation_id() -> str | None:
    """
    Get the current correlation ID.

    Returns:
        The correlation ID of the current context, or None if not set.
    """
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID for the current context.

    Args:
        correlation_id: Unique identifier for this request or run
    """
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Clear the correlation ID."""
    _correlation_id_var.set(None)
