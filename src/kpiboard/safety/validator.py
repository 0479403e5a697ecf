"""KPI query validator, built on sqlglot.

KPI configs may carry a SQL query that the data source service runs on
every refresh. Only read-only SELECTs are accepted; the check is done on
the parsed tree, with a whole-word keyword scan as a second layer.

A query that starts with ``/`` or ``http`` is an API path for REST
sources and is passed through untouched.
"""

from __future__ import annotations

import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError

from kpiboard.core.exceptions import QueryValidationError

FORBIDDEN_STATEMENTS: set[type[exp.Expression]] = {
    exp.Delete,
    exp.Drop,
    exp.TruncateTable,
    exp.Update,
    exp.Insert,
    exp.Create,
    exp.Alter,
    exp.Grant,
    exp.Command,
}

FORBIDDEN_KEYWORDS: set[str] = {
    "DROP",
    "DELETE",
    "TRUNCATE",
    "UPDATE",
    "INSERT",
    "CREATE",
    "ALTER",
    "GRANT",
    "REVOKE",
    "EXECUTE",
    "EXEC",
    "MERGE",
}

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)*$")


def validate_query(sql: str, dialect: str = "postgres") -> None:
    """Validate that a SQL query is a single read-only SELECT.

    Args:
        sql: The SQL query to validate.
        dialect: SQL dialect for parsing (default: postgres).

    Raises:
        QueryValidationError: If query is not safe.

    Examples:
        >>> validate_query("SELECT SUM(amount) FROM orders")
        >>> validate_query("DROP TABLE orders")
        Traceback (most recent call last):
        ...
        kpiboard.core.exceptions.QueryValidationError: Only SELECT statements allowed, got: Drop
    """
    if not sql or not sql.strip():
        raise QueryValidationError("Empty query")

    try:
        statements = sqlglot.parse(sql, dialect=dialect)
    except ParseError as e:
        raise QueryValidationError(f"Failed to parse SQL: {e}") from e

    statements = [s for s in statements if s is not None]
    if len(statements) != 1:
        raise QueryValidationError("Exactly one statement allowed")
    parsed = statements[0]

    # UNION and friends are fine as long as every branch is a SELECT
    if not isinstance(parsed, (exp.Select, exp.Union, exp.Intersect, exp.Except)):
        raise QueryValidationError(f"Only SELECT statements allowed, got: {type(parsed).__name__}")

    for node in parsed.walk():
        for forbidden in FORBIDDEN_STATEMENTS:
            if isinstance(node, forbidden):
                raise QueryValidationError(f"Forbidden statement type: {type(node).__name__}")

    # whole words only: UPDATED_AT must not trip UPDATE
    sql_upper = sql.upper()
    for keyword in sorted(FORBIDDEN_KEYWORDS):
        if re.search(rf"\b{keyword}\b", sql_upper):
            raise QueryValidationError(f"Forbidden keyword: {keyword}")


def is_api_path(query: str) -> bool:
    """True for REST paths and URLs, which are not SQL."""
    stripped = query.strip()
    return stripped.startswith("/") or stripped.lower().startswith("http")


def validate_kpi_query(query: str | None, dialect: str = "postgres") -> None:
    """Validate the query of a KPI data source, if it is SQL.

    None, empty strings and API paths are accepted as-is.

    Raises:
        QueryValidationError: If the query is SQL and not read-only.
    """
    if query is None or not query.strip() or is_api_path(query):
        return
    validate_query(query, dialect=dialect)


def sanitize_identifier(identifier: str) -> str:
    """Check a table or column name.

    Only letters, digits, underscores and dots (for schema.table) pass.

    Raises:
        QueryValidationError: If identifier is invalid.
    """
    if not identifier:
        raise QueryValidationError("Empty identifier")
    if not _IDENTIFIER.match(identifier):
        raise QueryValidationError(f"Invalid identifier: {identifier}")
    return identifier
