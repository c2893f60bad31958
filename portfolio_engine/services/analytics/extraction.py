# portfolio_engine/services/analytics/extraction.py
"""
Value extraction for stored metric values.

Storage is schema-flexible: a metric value may be a plain number, a
numeric string, or an object wrapping the number under `value` (or the
original text under `raw`). Extraction happens in two steps:

1. classify_raw_value(): map the untyped blob onto the RawMetricValue
   tagged union (NumberValue | TextValue | WrappedValue | UnsupportedValue)
2. extract_numeric_value(): one branch per variant -> float or None

Extraction is total: it never raises for any stored shape. None means
"not a usable numeric value".

Parsing rules for strings follow the lenient decimal parse used by the
input forms: surrounding whitespace is ignored and the longest numeric
prefix is taken ("12.5%" -> 12.5, "abc" -> None). Non-finite results
(inf, nan) are rejected.
"""

import math
import re
from collections.abc import Mapping
from decimal import Decimal

from portfolio_engine.services.analytics.types import (
    NumberValue,
    RawMetricValue,
    TextValue,
    UnsupportedValue,
    WrappedValue,
)
from portfolio_engine.services.exceptions import UnsupportedRawValueError

# Longest leading decimal literal, e.g. "-1.5e3" in "-1.5e3 USD"
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# =============================================================================
# CLASSIFICATION
# =============================================================================

def _is_number(value: object) -> bool:
    # bool is an int subclass but never a metric value
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _number_value(value: int | float | Decimal) -> NumberValue | None:
    try:
        return NumberValue(float(value))
    except OverflowError:
        # int too large for a float
        return None


def classify_raw_value(value: object) -> RawMetricValue:
    """
    Map an untyped stored value onto the RawMetricValue union.

    Args:
        value: Value as returned by storage (any JSON-compatible shape)

    Returns:
        The matching variant; UnsupportedValue for anything unrecognized
    """
    if isinstance(value, (NumberValue, TextValue, WrappedValue, UnsupportedValue)):
        return value

    if _is_number(value):
        number = _number_value(value)
        return number if number is not None else UnsupportedValue(value)

    if isinstance(value, str):
        return TextValue(value)

    if isinstance(value, Mapping):
        inner = value.get("value")
        if _is_number(inner):
            wrapped_value = _number_value(inner)
        elif isinstance(inner, str):
            wrapped_value = TextValue(inner)
        else:
            wrapped_value = None

        raw = value.get("raw")
        return WrappedValue(
            value=wrapped_value,
            raw=raw if isinstance(raw, str) else None,
        )

    return UnsupportedValue(value)


# =============================================================================
# EXTRACTION
# =============================================================================

def parse_decimal_text(text: str) -> float | None:
    """
    Parse the leading decimal number of a string.

    Args:
        text: Candidate numeric string

    Returns:
        Parsed float, or None if the string has no finite numeric prefix
    """
    match = _NUMERIC_PREFIX.match(text.strip())
    if match is None:
        return None

    number = float(match.group(0))
    return number if math.isfinite(number) else None


def _finite(number: float) -> float | None:
    return number if math.isfinite(number) else None


def extract_from_raw_value(raw_value: RawMetricValue) -> float | None:
    """
    Extract a float from an already classified raw value.

    Rules, in order:
        NumberValue  -> the number (None if not finite)
        TextValue    -> decimal parse of the text
        WrappedValue -> its `value` if numeric or a numeric string,
                        otherwise a decimal parse of its `raw` string
        UnsupportedValue -> None

    Raises:
        UnsupportedRawValueError: If a variant without a rule is passed in
    """
    if isinstance(raw_value, NumberValue):
        return _finite(raw_value.number)

    if isinstance(raw_value, TextValue):
        return parse_decimal_text(raw_value.text)

    if isinstance(raw_value, WrappedValue):
        if raw_value.value is not None:
            inner = extract_from_raw_value(raw_value.value)
            if inner is not None:
                return inner
        if raw_value.raw is not None:
            return parse_decimal_text(raw_value.raw)
        return None

    if isinstance(raw_value, UnsupportedValue):
        return None

    raise UnsupportedRawValueError(type(raw_value).__name__)


def extract_numeric_value(value: object) -> float | None:
    """
    Normalize a stored metric value into a float.

    Accepts numbers, numeric strings and `{"value": ...}` / `{"raw": ...}`
    wrapper objects.

    Args:
        value: Raw stored value

    Returns:
        The numeric value, or None if the value is not usable

    Example:
        >>> extract_numeric_value(" 42.5 ")
        42.5
        >>> extract_numeric_value({"value": "1000"})
        1000.0
        >>> extract_numeric_value({"raw": "$5"}) is None
        True
    """
    return extract_from_raw_value(classify_raw_value(value))
