"""Core domain - pure business rules with no I/O."""

from .clock import Clock, utc_now
from .exceptions import (
    ForbiddenError,
    FormulaError,
    InvalidInputError,
    KpiboardError,
    QueryValidationError,
)

__all__ = [
    "Clock",
    "ForbiddenError",
    "FormulaError",
    "InvalidInputError",
    "KpiboardError",
    "QueryValidationError",
    "utc_now",
]
