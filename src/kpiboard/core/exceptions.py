"""Domain-specific exceptions.

All exceptions in the kpiboard system inherit from KpiboardError,
making it easy to catch all system errors while still being able
to handle specific error types.

Lookups of unknown tenants, organizations, users, data sources or KPI
configs never raise: they resolve to a safe default (None, False or a
zero value) so the dashboard can always render something.
"""

from __future__ import annotations


class KpiboardError(Exception):
    """Base exception for all kpiboard errors."""

    pass


class InvalidInputError(KpiboardError):
    """A create or update request carried a missing or invalid field.

    Raised synchronously, before any state is mutated or persisted.

    Attributes:
        field: Name of the offending field, when known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize InvalidInputError.

        Args:
            message: Error description.
            field: Name of the offending field, when known.
        """
        super().__init__(message)
        self.field = field


class ForbiddenError(KpiboardError):
    """Authorization gate denied an operation.

    The message is always the generic "forbidden". Which check failed is
    logged for diagnostics but never carried on the exception.
    """

    def __init__(self) -> None:
        """Initialize ForbiddenError with the generic message."""
        super().__init__("forbidden")


class FormulaError(KpiboardError):
    """A calculated KPI formula could not be parsed or evaluated."""

    pass


class QueryValidationError(KpiboardError):
    """A KPI query failed read-only safety validation.

    Raised when a configured SQL query:
    - Contains forbidden statements (DROP, DELETE, UPDATE, etc.)
    - Is not a SELECT statement
    - Cannot be parsed
    """

    pass
