"""Data source registry: configured connections and their health status.

Status moves only through connection tests::

    disconnected --test ok--> connected
    disconnected | connected --test failed--> error
    error --test ok--> connected

Writing ``status`` directly through ``update_data_source`` is allowed but
flags the record with ``metadata.status_override`` until the next test.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

import structlog

from kpiboard.adapters.datasource import (
    AdapterError,
    ConnectionTestResult,
    Credentials,
    DataSourceStatus,
    DataSourceType,
    SourceTypeDefinition,
    SourceTypeRegistry,
    get_registry,
)
from kpiboard.adapters.storage import CredentialCipher, StateKeys, load_collection, save_collection
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.core.interfaces import DataSourceClient, KeyValueStore
from kpiboard.models import DataSource, DataSourceMetadata
from kpiboard.models.base import new_id

logger = structlog.get_logger()

_ENCRYPTED_CREDENTIALS = "credentials_encrypted"
NOT_FOUND_MESSAGE = "Data source not found"


@dataclass(frozen=True)
class DataSourceStatistics:
    """Counts over all data sources."""

    total: int
    connected: int
    by_type: dict[str, int] = field(default_factory=dict)


class DataSourceService:
    """Registry of data sources."""

    def __init__(
        self,
        store: KeyValueStore,
        client: DataSourceClient,
        clock: Clock = utc_now,
        cipher: CredentialCipher | None = None,
        source_types: SourceTypeRegistry | None = None,
    ):
        """Load data sources from ``store``.

        Args:
            store: Persisted state.
            client: Connection-test service client.
            clock: Source of the current time.
            cipher: Encrypts credentials at rest. Without one, credentials
                live in memory only and are dropped on save.
            source_types: Source type catalogue.
        """
        self.store = store
        self.client = client
        self.clock = clock
        self.cipher = cipher
        self.source_types = source_types or get_registry()
        self._sources: list[DataSource] = load_collection(
            store, StateKeys.DATA_SOURCES, DataSource, prepare=self._decrypt_credentials
        )

    # Lookups

    def get_all_data_sources(self) -> list[DataSource]:
        """All data sources, in creation order."""
        return list(self._sources)

    def get_data_source(self, source_id: str) -> DataSource | None:
        """Get a data source by id, or None."""
        return next((s for s in self._sources if s.id == source_id), None)

    def get_data_sources_by_type(self, source_type: DataSourceType | str) -> list[DataSource]:
        """Data sources of one type."""
        return [s for s in self._sources if s.type == source_type]

    def get_connected_data_sources(self) -> list[DataSource]:
        """Data sources with status ``connected``."""
        return [s for s in self._sources if s.status == DataSourceStatus.CONNECTED]

    def get_data_sources_for_tenant(self, tenant_id: str) -> list[DataSource]:
        """Data sources owned by a tenant."""
        return [s for s in self._sources if s.tenant_id == tenant_id]

    def get_statistics(self) -> DataSourceStatistics:
        """Total, connected and per-type counts."""
        by_type = Counter(s.type.value for s in self._sources)
        return DataSourceStatistics(
            total=len(self._sources),
            connected=len(self.get_connected_data_sources()),
            by_type=dict(by_type),
        )

    def get_templates(self) -> list[SourceTypeDefinition]:
        """Catalogue of source types with their default connection settings."""
        return self.source_types.list_types()

    # Mutations

    def create_data_source(
        self,
        name: str | None,
        type: DataSourceType | str,
        config: dict[str, Any] | None,
        tenant_id: str,
        organization_id: str,
        credentials: Credentials | dict[str, Any] | None = None,
    ) -> DataSource:
        """Create a data source in ``disconnected`` status.

        Raises:
            InvalidInputError: If the type is unknown or the config does not
                fit the type.
        """
        if not name or not name.strip():
            raise InvalidInputError("name: data source name is required", field="name")
        source = DataSource.build(
            id=new_id("ds"),
            name=name,
            type=type,
            status=DataSourceStatus.DISCONNECTED,
            config=config or {},
            credentials=credentials or Credentials(),
            metadata=DataSourceMetadata(created_at=self.clock()),
            tenant_id=tenant_id,
            organization_id=organization_id,
        )
        self._sources.append(source)
        self._persist()
        logger.info(
            "data_source_created",
            data_source_id=source.id,
            source_type=source.type.value,
            tenant_id=tenant_id,
        )
        return source

    def update_data_source(self, source_id: str, patch: dict[str, Any]) -> DataSource | None:
        """Shallow-merge ``patch`` into a data source.

        Returns:
            The updated data source, or None if the id is unknown.

        Raises:
            InvalidInputError: If the merged record does not validate.
        """
        index = self._index(source_id)
        if index is None:
            return None
        if "id" in patch:
            raise InvalidInputError("id: data source id cannot be changed", field="id")
        source = self._sources[index]

        if "status" in patch and patch["status"] != source.status:
            logger.warning(
                "data_source_status_override",
                data_source_id=source_id,
                old_status=source.status.value,
                new_status=str(patch["status"]),
            )
            metadata = patch.get("metadata", source.metadata)
            if isinstance(metadata, DataSourceMetadata):
                metadata = metadata.model_dump()
            patch = {**patch, "metadata": {**metadata, "status_override": True}}

        updated = source.patched(patch)
        self._sources[index] = updated
        self._persist()
        logger.info(
            "data_source_updated",
            data_source_id=source_id,
            updated_keys=sorted(k for k in patch if k != "credentials"),
        )
        return updated

    def delete_data_source(self, source_id: str) -> bool:
        """Remove a data source. KPIs still pointing at it resolve to zero."""
        index = self._index(source_id)
        if index is None:
            return False
        del self._sources[index]
        self._persist()
        logger.info("data_source_deleted", data_source_id=source_id)
        return True

    # Remote operations

    async def test_connection(self, source_id: str) -> ConnectionTestResult:
        """Test a data source and move its status accordingly.

        Never raises for transport problems: they are reported as a failed
        result and an ``error`` status.
        """
        source = self.get_data_source(source_id)
        if source is None:
            return ConnectionTestResult(success=False, message=NOT_FOUND_MESSAGE)

        try:
            result = await self.client.test_connection(source)
        except AdapterError as e:
            logger.warning(
                "data_source_test_failed",
                data_source_id=source_id,
                **e.to_dict(),
            )
            result = ConnectionTestResult(success=False, message=e.message)

        now = self.clock()
        result = result.model_copy(update={"tested_at": now})
        # the source may have been removed while the request was in flight
        current = self.get_data_source(source_id)
        if current is None:
            return result

        metadata: dict[str, Any] = {"last_tested_at": now, "status_override": False}
        if result.success:
            metadata.update(last_connected=now, record_count=result.record_count)
            status = DataSourceStatus.CONNECTED
        else:
            status = DataSourceStatus.ERROR
        self._apply_test_outcome(current, status, metadata)
        logger.info(
            "data_source_tested",
            data_source_id=source_id,
            success=result.success,
            status=status.value,
            response_time_ms=result.response_time_ms,
        )
        return result

    async def sync_data_source(self, source_id: str) -> bool:
        """Ask the service to synchronise a data source.

        Returns:
            True on success. Failures set status ``error``.
        """
        source = self.get_data_source(source_id)
        if source is None:
            return False
        try:
            result = await self.client.sync(source)
        except AdapterError as e:
            logger.warning(
                "data_source_sync_failed",
                data_source_id=source_id,
                **e.to_dict(),
            )
            result = ConnectionTestResult(success=False, message=e.message)

        current = self.get_data_source(source_id)
        if current is None:
            return result.success
        now = self.clock()
        if result.success:
            self._apply_test_outcome(
                current,
                DataSourceStatus.CONNECTED,
                {"last_sync": now, "record_count": result.record_count, "status_override": False},
            )
        else:
            self._apply_test_outcome(current, DataSourceStatus.ERROR, {"status_override": False})
        logger.info("data_source_synced", data_source_id=source_id, success=result.success)
        return result.success

    async def fetch_data(self, source_id: str, query: str | None = None) -> Any:
        """Fetch data through the service.

        Returns:
            The fetched payload, or None if the id is unknown or the
            service fails.
        """
        source = self.get_data_source(source_id)
        if source is None:
            return None
        try:
            data = await self.client.fetch(source, query)
        except AdapterError as e:
            logger.warning(
                "data_source_fetch_failed",
                data_source_id=source_id,
                **e.to_dict(),
            )
            return None

        current = self.get_data_source(source_id)
        if current is not None:
            update: dict[str, Any] = {"last_sync": self.clock()}
            if isinstance(data, list):
                update["record_count"] = len(data)
            self._replace(current.patched({"metadata": current.metadata.model_copy(update=update)}))
        return data

    # Internals

    def _apply_test_outcome(
        self, source: DataSource, status: DataSourceStatus, metadata: dict[str, Any]
    ) -> None:
        updated = source.patched(
            {"status": status, "metadata": source.metadata.model_copy(update=metadata)}
        )
        self._replace(updated)

    def _replace(self, source: DataSource) -> None:
        index = self._index(source.id)
        if index is None:
            return
        self._sources[index] = source
        self._persist()

    def _index(self, source_id: str) -> int | None:
        return next((i for i, s in enumerate(self._sources) if s.id == source_id), None)

    def _persist(self) -> None:
        save_collection(
            self.store,
            StateKeys.DATA_SOURCES,
            self._sources,
            extra=self._encrypt_credentials if self.cipher else None,
        )

    def _encrypt_credentials(self, source: Any) -> dict[str, Any]:
        assert self.cipher is not None
        if source.credentials.is_empty():
            return {}
        return {_ENCRYPTED_CREDENTIALS: self.cipher.encrypt(source.credentials)}

    def _decrypt_credentials(self, item: dict[str, Any]) -> dict[str, Any]:
        item = dict(item)
        token = item.pop(_ENCRYPTED_CREDENTIALS, None)
        if token is not None and self.cipher is not None:
            try:
                item["credentials"] = self.cipher.decrypt(token)
            except ValueError:
                logger.warning("data_source_credentials_unreadable", data_source_id=item.get("id"))
        return item
