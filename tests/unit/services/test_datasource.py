"""Unit tests for DataSourceService."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from kpiboard.adapters.datasource import (
    ConnectionFailedError,
    ConnectionTestResult,
    Credentials,
    DataSourceStatus,
    DataSourceType,
)
from kpiboard.adapters.storage import CredentialCipher, InMemoryStore, StateKeys
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.models import DataSource
from kpiboard.services.datasource import NOT_FOUND_MESSAGE, DataSourceService
from tests.fixtures.mocks import FIXED_NOW, FakeClock

POSTGRES_CONFIG = {"host": "db", "port": 5432, "database": "sales", "schema": "public"}


@pytest.fixture
def service(store: InMemoryStore, mock_client: AsyncMock, clock: FakeClock) -> DataSourceService:
    """Return a data source service with a succeeding client."""
    return DataSourceService(store, mock_client, clock)


def create_postgres(service: DataSourceService, **kwargs: object) -> DataSource:
    return service.create_data_source(
        "Sales DB",
        DataSourceType.POSTGRESQL,
        POSTGRES_CONFIG,
        tenant_id="tenant-1",
        organization_id="org-1",
        **kwargs,  # type: ignore[arg-type]
    )


class TestRegistry:
    """Tests for creating, updating and querying data sources."""

    def test_create_starts_disconnected(self, service: DataSourceService) -> None:
        """Test that new sources are disconnected until tested."""
        source = create_postgres(service)

        assert source.id.startswith("ds-")
        assert source.status == DataSourceStatus.DISCONNECTED
        assert source.metadata.created_at == FIXED_NOW
        assert service.get_data_source(source.id) == source

    def test_create_invalid_config(self, service: DataSourceService) -> None:
        """Test that configs must fit the type."""
        with pytest.raises(InvalidInputError):
            service.create_data_source(
                "API", "rest-api", {"host": "x"}, tenant_id="t", organization_id="o"
            )
        assert service.get_all_data_sources() == []

    def test_create_unknown_type(self, service: DataSourceService) -> None:
        """Test that unknown types are rejected."""
        with pytest.raises(InvalidInputError):
            service.create_data_source("X", "oracle", {}, tenant_id="t", organization_id="o")

    def test_create_requires_name(self, service: DataSourceService) -> None:
        """Test that a name is required."""
        with pytest.raises(InvalidInputError):
            service.create_data_source(
                "", "postgresql", POSTGRES_CONFIG, tenant_id="t", organization_id="o"
            )

    def test_queries_and_statistics(self, service: DataSourceService) -> None:
        """Test lookups by type, tenant and status."""
        create_postgres(service)
        service.create_data_source(
            "API",
            "rest-api",
            {"endpoint": "https://api.example.com"},
            tenant_id="tenant-2",
            organization_id="org-2",
        )

        assert len(service.get_data_sources_by_type("postgresql")) == 1
        assert len(service.get_data_sources_for_tenant("tenant-2")) == 1
        assert service.get_connected_data_sources() == []
        stats = service.get_statistics()
        assert (stats.total, stats.connected) == (2, 0)
        assert stats.by_type == {"postgresql": 1, "rest-api": 1}

    def test_templates(self, service: DataSourceService) -> None:
        """Test the source type catalogue."""
        assert len(service.get_templates()) == 13

    def test_update(self, service: DataSourceService) -> None:
        """Test shallow-merge updates."""
        source = create_postgres(service)

        updated = service.update_data_source(source.id, {"name": "Warehouse"})

        assert updated is not None
        assert updated.name == "Warehouse"
        assert not updated.metadata.status_override
        assert service.update_data_source("ds-missing", {"name": "x"}) is None

    def test_direct_status_write_is_flagged(self, service: DataSourceService) -> None:
        """Test that writing status directly marks an override."""
        source = create_postgres(service)

        updated = service.update_data_source(source.id, {"status": "connected"})

        assert updated.status == DataSourceStatus.CONNECTED
        assert updated.metadata.status_override

    def test_delete(self, service: DataSourceService) -> None:
        """Test removing a source."""
        source = create_postgres(service)

        assert service.delete_data_source(source.id)
        assert service.get_data_source(source.id) is None
        assert not service.delete_data_source(source.id)


class TestConnectionTests:
    """Tests for the connection-test state machine."""

    async def test_success_connects(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test disconnected -> connected."""
        source = create_postgres(service)

        result = await service.test_connection(source.id)

        assert result.success
        assert result.tested_at == FIXED_NOW
        tested = service.get_data_source(source.id)
        assert tested.status == DataSourceStatus.CONNECTED
        assert tested.metadata.last_connected == FIXED_NOW
        assert tested.metadata.last_tested_at == FIXED_NOW
        assert tested.metadata.record_count == 1200
        mock_client.test_connection.assert_awaited_once()

    async def test_failure_sets_error(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test connected -> error on a failed test."""
        source = create_postgres(service)
        await service.test_connection(source.id)
        mock_client.test_connection.return_value = ConnectionTestResult(
            success=False, message="authentication failed"
        )

        result = await service.test_connection(source.id)

        assert not result.success
        tested = service.get_data_source(source.id)
        assert tested.status == DataSourceStatus.ERROR
        assert tested.metadata.last_connected == FIXED_NOW

    async def test_transport_error_sets_error(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that adapter errors become a failed result."""
        source = create_postgres(service)
        mock_client.test_connection.side_effect = ConnectionFailedError()

        result = await service.test_connection(source.id)

        assert not result.success
        assert result.message == "Failed to reach data source service"
        assert service.get_data_source(source.id).status == DataSourceStatus.ERROR

    async def test_transport_error_is_logged(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that the failure log carries the error code and retry hint."""
        source = create_postgres(service)
        mock_client.test_connection.side_effect = ConnectionFailedError()

        with capture_logs() as logs:
            await service.test_connection(source.id)

        entry = next(log for log in logs if log["event"] == "data_source_test_failed")
        assert entry["data_source_id"] == source.id
        assert entry["error"]["code"] == ConnectionFailedError().code.value
        assert entry["error"]["retryable"] is True

    async def test_error_recovers(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test error -> connected."""
        source = create_postgres(service)
        mock_client.test_connection.side_effect = ConnectionFailedError()
        await service.test_connection(source.id)
        mock_client.test_connection.side_effect = None

        await service.test_connection(source.id)

        assert service.get_data_source(source.id).status == DataSourceStatus.CONNECTED

    async def test_clears_override(self, service: DataSourceService) -> None:
        """Test that a real test replaces a directly written status."""
        source = create_postgres(service)
        service.update_data_source(source.id, {"status": "connected"})

        await service.test_connection(source.id)

        assert not service.get_data_source(source.id).metadata.status_override

    async def test_unknown_source(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that unknown ids fail without calling out."""
        result = await service.test_connection("ds-missing")

        assert not result.success
        assert result.message == NOT_FOUND_MESSAGE
        mock_client.test_connection.assert_not_called()

    async def test_deleted_while_testing(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that a source removed mid-test stays removed."""
        source = create_postgres(service)

        async def delete_then_succeed(_: DataSource) -> ConnectionTestResult:
            service.delete_data_source(source.id)
            return ConnectionTestResult(success=True)

        mock_client.test_connection.side_effect = delete_then_succeed

        result = await service.test_connection(source.id)

        assert result.success
        assert service.get_all_data_sources() == []


class TestSyncAndFetch:
    """Tests for sync and fetch."""

    async def test_sync(self, service: DataSourceService) -> None:
        """Test a successful sync."""
        source = create_postgres(service)

        assert await service.sync_data_source(source.id)

        synced = service.get_data_source(source.id)
        assert synced.status == DataSourceStatus.CONNECTED
        assert synced.metadata.last_sync == FIXED_NOW
        assert synced.metadata.record_count == 1300

    async def test_sync_failure(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that a failed sync sets error."""
        source = create_postgres(service)
        mock_client.sync.side_effect = ConnectionFailedError()

        assert not await service.sync_data_source(source.id)
        assert service.get_data_source(source.id).status == DataSourceStatus.ERROR
        assert not await service.sync_data_source("ds-missing")

    async def test_fetch(self, service: DataSourceService, mock_client: AsyncMock) -> None:
        """Test fetching data through the service."""
        source = create_postgres(service)
        mock_client.fetch.return_value = [{"total": 1}, {"total": 2}]

        data = await service.fetch_data(source.id, "SELECT total FROM orders")

        assert data == [{"total": 1}, {"total": 2}]
        fetched = service.get_data_source(source.id)
        assert fetched.metadata.last_sync == FIXED_NOW
        assert fetched.metadata.record_count == 2

    async def test_fetch_failure(
        self, service: DataSourceService, mock_client: AsyncMock
    ) -> None:
        """Test that fetch failures return None."""
        source = create_postgres(service)
        mock_client.fetch.side_effect = ConnectionFailedError()

        assert await service.fetch_data(source.id) is None
        assert await service.fetch_data("ds-missing") is None


class TestCredentials:
    """Tests for credential handling at rest."""

    def test_dropped_without_cipher(
        self,
        service: DataSourceService,
        store: InMemoryStore,
        mock_client: AsyncMock,
        clock: FakeClock,
    ) -> None:
        """Test that credentials are never written in plain text."""
        source = create_postgres(service, credentials=Credentials(password="s3cret"))

        assert "s3cret" not in store.raw(StateKeys.DATA_SOURCES)
        reloaded = DataSourceService(store, mock_client, clock).get_data_source(source.id)
        assert reloaded.credentials.is_empty()

    def test_encrypted_with_cipher(
        self, store: InMemoryStore, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        """Test that credentials survive a reload when a key is configured."""
        cipher = CredentialCipher(CredentialCipher.generate_key())
        service = DataSourceService(store, mock_client, clock, cipher=cipher)
        source = create_postgres(service, credentials={"username": "kpi", "password": "s3cret"})

        assert "s3cret" not in store.raw(StateKeys.DATA_SOURCES)
        reloaded = DataSourceService(store, mock_client, clock, cipher=cipher)
        assert reloaded.get_data_source(source.id).credentials.reveal() == {
            "username": "kpi",
            "password": "s3cret",
        }

    def test_wrong_key_drops_credentials(
        self, store: InMemoryStore, mock_client: AsyncMock, clock: FakeClock
    ) -> None:
        """Test that unreadable credentials do not block loading."""
        writer = DataSourceService(
            store, mock_client, clock, cipher=CredentialCipher(CredentialCipher.generate_key())
        )
        source = create_postgres(writer, credentials=Credentials(password="s3cret"))

        reader = DataSourceService(
            store, mock_client, clock, cipher=CredentialCipher(CredentialCipher.generate_key())
        )

        assert reader.get_data_source(source.id).credentials.is_empty()
