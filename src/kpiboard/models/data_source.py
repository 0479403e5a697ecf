"""Data source records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from kpiboard.adapters.datasource.types import (
    CONFIG_TYPES,
    ConnectionConfig,
    Credentials,
    DataSourceStatus,
    DataSourceType,
)
from kpiboard.models.base import DomainModel, UtcDatetime


class DataSourceMetadata(BaseModel):
    """Timestamps and connection-test bookkeeping."""

    model_config = ConfigDict(extra="forbid")

    created_at: UtcDatetime
    last_connected: UtcDatetime | None = None
    last_sync: UtcDatetime | None = None
    last_tested_at: UtcDatetime | None = None
    record_count: int | None = None
    # Set when status was written directly instead of by a connection test.
    status_override: bool = False


class DataSource(DomainModel):
    """A configured external connection KPIs can resolve against.

    ``config`` is validated against the record class for ``type`` when the
    record is built. ``credentials`` are excluded from every dump and repr;
    they only leave the process inside a connection-test request.
    """

    id: str
    name: str = Field(min_length=1)
    type: DataSourceType
    status: DataSourceStatus = DataSourceStatus.DISCONNECTED
    config: ConnectionConfig
    credentials: Credentials = Field(default_factory=Credentials, exclude=True, repr=False)
    metadata: DataSourceMetadata
    tenant_id: str
    organization_id: str

    @field_validator("config", mode="before")
    @classmethod
    def _config_for_type(cls, value: Any, info: ValidationInfo) -> Any:
        source_type = info.data.get("type")
        if source_type is None:
            raise ValueError("config cannot be validated without a valid type")
        config_type = CONFIG_TYPES[DataSourceType(source_type)]
        if isinstance(value, config_type):
            return value
        if isinstance(value, BaseModel):
            raise ValueError(
                f"{type(value).__name__} is not a valid config for {source_type.value}"
            )
        return config_type.model_validate(value or {})
