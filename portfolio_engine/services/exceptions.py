# portfolio_engine/services/exceptions.py
"""
Service layer exceptions.

The analytics engine reports expected edge cases (empty input, zero
denominators, small samples, non-convergence, unparseable values) by
returning None. The exceptions below are reserved for programmer errors:
a caller passing a period type or aggregation type the engine does not
know, or an internal invariant being broken.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── InvalidPeriodTypeError
    │   ├── InvalidAggregationTypeError
    │   └── InvalidPeriodKeyError
    └── AnalyticsError
        └── UnsupportedRawValueError
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when an argument is outside the domain the engine accepts.

    Attributes:
        field: The argument that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidPeriodTypeError(ValidationError):
    """
    Raised when an unknown period type is supplied.

    Valid period types are: monthly, quarterly, annual (alias: yearly)
    """

    def __init__(self, period_type: str) -> None:
        self.period_type = period_type
        super().__init__(
            f"Invalid period type: '{period_type}'. "
            "Valid options: monthly, quarterly, annual, yearly",
            field="period_type",
        )


class InvalidAggregationTypeError(ValidationError):
    """
    Raised when an unknown temporal aggregation type is supplied.

    Valid aggregation types are: sum, latest
    """

    def __init__(self, aggregation_type: str) -> None:
        self.aggregation_type = aggregation_type
        super().__init__(
            f"Invalid aggregation type: '{aggregation_type}'. Valid options: sum, latest",
            field="aggregation_type",
        )


class InvalidPeriodKeyError(ValidationError):
    """
    Raised when a period key or label cannot be parsed for its period type.

    Attributes:
        period_key: The key or label that failed to parse
        period_type: The period type it was parsed against
    """

    def __init__(self, period_key: str, period_type: str) -> None:
        self.period_key = period_key
        self.period_type = period_type
        super().__init__(
            f"Invalid {period_type} period key or label: '{period_key}'",
            field="period_key",
        )


# =============================================================================
# ANALYTICS ERRORS
# =============================================================================


class AnalyticsError(ServiceError):
    """
    Base exception for analytics invariant violations.
    """
    pass


class UnsupportedRawValueError(AnalyticsError):
    """
    Raised when the value extractor meets a RawMetricValue variant it has
    no branch for. Indicates a new variant was added without teaching the
    extractor about it.

    Attributes:
        variant: Class name of the unhandled variant
    """

    def __init__(self, variant: str) -> None:
        self.variant = variant
        super().__init__(f"No extraction rule for raw metric value variant '{variant}'")


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InvalidPeriodTypeError",
    "InvalidAggregationTypeError",
    "InvalidPeriodKeyError",
    # Analytics
    "AnalyticsError",
    "UnsupportedRawValueError",
]
