"""Unit tests for the KPI query validator."""

from __future__ import annotations

import pytest

from kpiboard.core.exceptions import QueryValidationError
from kpiboard.safety.validator import (
    is_api_path,
    sanitize_identifier,
    validate_kpi_query,
    validate_query,
)


class TestValidateQuery:
    """Tests for validate_query."""

    def test_valid_select(self) -> None:
        """Test that an aggregate SELECT passes without a LIMIT."""
        validate_query("SELECT SUM(amount) AS value FROM orders")

    def test_valid_select_with_where(self) -> None:
        """Test valid SELECT with WHERE clause."""
        validate_query("SELECT COUNT(*) FROM orders WHERE status = 'paid'")

    def test_valid_select_with_join(self) -> None:
        """Test valid SELECT with JOIN."""
        validate_query(
            "SELECT SUM(o.total) FROM users u JOIN orders o ON u.id = o.user_id WHERE u.active"
        )

    def test_valid_select_with_cte(self) -> None:
        """Test valid SELECT with CTE."""
        validate_query(
            """
            WITH paid AS (SELECT amount FROM orders WHERE status = 'paid')
            SELECT SUM(amount) FROM paid
            """
        )

    def test_valid_union(self) -> None:
        """Test that a UNION of SELECTs passes."""
        validate_query("SELECT id FROM customers UNION SELECT id FROM leads")

    def test_column_containing_keyword(self) -> None:
        """Test that keywords only match whole words."""
        validate_query("SELECT MAX(updated_at), COUNT(created_by) FROM orders")

    def test_empty_query_raises(self) -> None:
        """Test that empty query raises error."""
        with pytest.raises(QueryValidationError, match="Empty query"):
            validate_query("   \n\t  ")

    @pytest.mark.parametrize(
        "sql",
        [
            "DROP TABLE users",
            "DELETE FROM users WHERE id = 1",
            "UPDATE users SET name = 'x'",
            "INSERT INTO users (id) VALUES (1)",
        ],
    )
    def test_write_statements_raise(self, sql: str) -> None:
        """Test that anything but SELECT is rejected."""
        with pytest.raises(QueryValidationError, match="Only SELECT statements allowed"):
            validate_query(sql)

    def test_multiple_statements_raise(self) -> None:
        """Test that stacked statements are rejected."""
        with pytest.raises(QueryValidationError, match="Exactly one statement"):
            validate_query("SELECT 1; DROP TABLE users")

    def test_forbidden_keyword_in_select_raises(self) -> None:
        """Test the keyword scan as a second layer."""
        with pytest.raises(QueryValidationError, match="Forbidden keyword: DROP"):
            validate_query("SELECT 'DROP' AS x FROM orders")


class TestValidateKpiQuery:
    """Tests for validate_kpi_query."""

    @pytest.mark.parametrize("query", [None, "", "  "])
    def test_no_query_passes(self, query: str | None) -> None:
        """Test that KPIs without a query are fine."""
        validate_kpi_query(query)

    @pytest.mark.parametrize(
        "query", ["/api/metrics/revenue", "https://api.example.com/v1/metrics"]
    )
    def test_api_paths_pass(self, query: str) -> None:
        """Test that REST paths are not parsed as SQL."""
        validate_kpi_query(query)

    def test_sql_is_validated(self) -> None:
        """Test that SQL queries still go through validation."""
        with pytest.raises(QueryValidationError):
            validate_kpi_query("DELETE FROM orders")


class TestIsApiPath:
    """Tests for is_api_path."""

    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("/metrics", True),
            ("  /metrics", True),
            ("http://x", True),
            ("HTTPS://X", True),
            ("SELECT 1", False),
        ],
    )
    def test_is_api_path(self, query: str, expected: bool) -> None:
        """Test path detection."""
        assert is_api_path(query) is expected


class TestSanitizeIdentifier:
    """Tests for sanitize_identifier."""

    @pytest.mark.parametrize("identifier", ["orders", "public.orders", "_total_2"])
    def test_valid(self, identifier: str) -> None:
        """Test that plain and schema-qualified names pass."""
        assert sanitize_identifier(identifier) == identifier

    @pytest.mark.parametrize("identifier", ["orders; DROP", "1orders", "a-b", "a..b"])
    def test_invalid(self, identifier: str) -> None:
        """Test that anything else raises."""
        with pytest.raises(QueryValidationError, match="Invalid identifier"):
            sanitize_identifier(identifier)

    def test_empty(self) -> None:
        """Test that empty identifiers raise."""
        with pytest.raises(QueryValidationError, match="Empty identifier"):
            sanitize_identifier("")
