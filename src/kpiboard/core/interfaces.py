"""Protocol definitions for all external collaborators.

The registries only depend on these protocols, never on concrete
implementations, so tests can substitute in-memory fakes for the
persisted store, the connection-test service and the UI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kpiboard.adapters.datasource.types import ConnectionTestResult
    from kpiboard.models.data_source import DataSource
    from kpiboard.models.organization import Branding


@runtime_checkable
class KeyValueStore(Protocol):
    """Interface for the persisted state backend.

    One key per collection; values are JSON-compatible Python objects
    (dicts, lists, strings, numbers, booleans, None) and are JSON-encoded
    by the implementation.
    """

    def load(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key``, or None."""
        ...

    def save(self, key: str, value: Any) -> None:
        """Encode and store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``. Removing a missing key is a no-op."""
        ...


@runtime_checkable
class DataSourceClient(Protocol):
    """Interface for the remote data source service.

    Implementations must raise AdapterError subclasses for transport
    failures; the registry converts them into an ``error`` status.
    """

    async def test_connection(self, source: DataSource) -> ConnectionTestResult:
        """Ask the service to open a connection with the source's settings.

        Args:
            source: The data source to test.

        Returns:
            ConnectionTestResult reported by the service.

        Raises:
            AdapterError: If the service cannot be reached or answers garbage.
        """
        ...

    async def fetch(self, source: DataSource, query: str | None = None) -> Any:
        """Fetch data from the source.

        Args:
            source: The data source to read from.
            query: Optional SQL query or API path.

        Returns:
            The decoded ``data`` payload returned by the service.

        Raises:
            AdapterError: If the service cannot be reached or answers garbage.
        """
        ...

    async def sync(self, source: DataSource) -> ConnectionTestResult:
        """Ask the service to synchronise the source.

        Raises:
            AdapterError: If the service cannot be reached or answers garbage.
        """
        ...


@runtime_checkable
class BrandingApplier(Protocol):
    """Interface for pushing organization branding to the UI shell."""

    def apply(self, organization_name: str, branding: Branding) -> None:
        """Apply colours, theme and title for the selected organization."""
        ...
