"""Read-only guards for queries configured on KPIs."""

from kpiboard.safety.validator import (
    is_api_path,
    sanitize_identifier,
    validate_kpi_query,
    validate_query,
)

__all__ = ["is_api_path", "sanitize_identifier", "validate_kpi_query", "validate_query"]
