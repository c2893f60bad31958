# portfolio_engine/utils/logging.py
"""
Logging configuration for the Portfolio Analytics Engine.

The engine modules only ever call `logging.getLogger(__name__)`; they never
install handlers. A host application (API process, benchmark cron job,
notebook) calls setup_logging() once to decide where the lines go.

Features:
- Level and format taken from settings (LOG_LEVEL, LOG_FORMAT)
- Every record stamped with the current correlation ID
- JSON output for log aggregation

Usage:
    from portfolio_engine.utils import setup_logging

    setup_logging()                                   # from settings
    setup_logging(level="DEBUG", log_format="json")   # explicit

What gets logged where:
    DEBUG   - Calculation edge cases (IRR non-convergence, benchmark groups
              below the sample floor, unparseable rows), cache hits/misses
    INFO    - Report builds, benchmark recalculation outcomes
    WARNING - Recoverable issues
    ERROR   - Failures requiring attention

Correlation ID:
    Benchmark recalculations run under their own correlation ID, so every
    line of one run can be grepped together:

    2024-06-30 02:00:01 | INFO     | benchmarks-3f9a1c2b7d4e | portfolio_engine... | Benchmark recalculation finished: ...
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from portfolio_engine.config import settings
from portfolio_engine.utils.context import get_correlation_id

# =============================================================================
# CONSTANTS
# =============================================================================

# timestamp | level | correlation_id | logger_name | message
DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "no-correlation-id"

LOG_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"correlation_id", "message", "asctime"}


# =============================================================================
# CORRELATION ID FILTER
# =============================================================================

class CorrelationIdFilter(logging.Filter):
    """
    Stamp each record with the correlation ID of the current context.

    Exposed to format strings as %(correlation_id)s.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


# =============================================================================
# JSON FORMATTER
# =============================================================================

class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    Output format:
    {
        "timestamp": "2024-06-30T02:00:01.123456+00:00",
        "level": "INFO",
        "logger": "portfolio_engine.services.analytics.service",
        "correlation_id": "benchmarks-3f9a1c2b7d4e",
        "message": "Benchmark recalculation finished: 42 rows across 6 metrics",
        "exception": "...",          // only with exc_info
        "extra": {"rows": 42}        // only with extra=
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_ATTRS
        }
        if extra:
            log_entry["extra"] = extra

        # Decimals, dates and other non-JSON values are logged as strings
        return json.dumps(log_entry, default=str)


# =============================================================================
# SETUP
# =============================================================================

def parse_log_level(level: str) -> int:
    """
    Convert a level name (case-insensitive) to its logging constant.

    Raises:
        ValueError: If the name is not a known level
    """
    normalized = level.upper().strip()
    if normalized not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: '{level}'. "
            f"Valid levels are: {', '.join(LOG_LEVELS)}"
        )
    return LOG_LEVELS[normalized]


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        stream: TextIO | None = None,
) -> logging.Handler:
    """
    Configure root logging with correlation ID support.

    Replaces any handlers already installed on the root logger.

    Args:
        level: Log level name. Defaults to settings.log_level.
        log_format: "text" or "json". Defaults to settings.log_format.
        stream: Output stream. Defaults to stdout.

    Returns:
        The installed handler
    """
    level_name = level or settings.log_level
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(parse_log_level(level_name))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_name}, format={format_type}",
        extra={"config": {"level": level_name, "format": format_type}},
    )
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name (typically __name__).

    Records pick up the correlation ID through the filter installed by
    setup_logging().
    """
    return logging.getLogger(name)
