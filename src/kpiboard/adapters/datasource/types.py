"""Type definitions for the data source layer.

This module defines the source type catalogue, the per-type connection
configuration records and the results exchanged with the connection-test
service, ensuring consistent JSON output regardless of the source type.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class DataSourceType(str, Enum):
    """Supported data source types."""

    # Databases
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MONGODB = "mongodb"

    # Data warehouses
    SNOWFLAKE = "snowflake"
    BIGQUERY = "bigquery"

    # APIs
    REST_API = "rest-api"
    GRAPHQL = "graphql"

    # Cloud monitoring
    AWS_CLOUDWATCH = "aws-cloudwatch"
    AZURE_MONITOR = "azure-monitor"
    GCP_MONITORING = "gcp-monitoring"

    # SaaS
    SALESFORCE = "salesforce"
    HUBSPOT = "hubspot"
    GOOGLE_ANALYTICS = "google-analytics"


class SourceCategory(str, Enum):
    """Categories of data sources."""

    DATABASE = "database"
    WAREHOUSE = "warehouse"
    API = "api"
    CLOUD_MONITORING = "cloud_monitoring"
    SAAS = "saas"


class DataSourceStatus(str, Enum):
    """Connection health, driven by connection tests."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ERROR = "error"


class _ConnectionConfig(BaseModel):
    """Fields shared by every connection configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    refresh_interval: int | None = Field(default=None, gt=0)  # minutes
    timeout: int | None = Field(default=None, gt=0)  # seconds


class DatabaseConfig(_ConnectionConfig):
    """PostgreSQL, MySQL and MongoDB."""

    host: str = "localhost"
    port: int = Field(default=5432, gt=0, lt=65536)
    database: str
    schema_name: str | None = Field(default=None, alias="schema")
    collection: str | None = None
    ssl: bool = False

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class WarehouseConfig(_ConnectionConfig):
    """Snowflake and BigQuery."""

    warehouse: str | None = None
    database: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    project: str | None = None
    dataset: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class ApiConfig(_ConnectionConfig):
    """REST and GraphQL endpoints."""

    endpoint: str = Field(min_length=1)
    api_version: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class CloudMonitoringConfig(_ConnectionConfig):
    """AWS CloudWatch, Azure Monitor and GCP Cloud Monitoring."""

    region: str | None = None
    namespace: str | None = None
    project: str | None = None


class SaasConfig(_ConnectionConfig):
    """Salesforce, HubSpot and Google Analytics."""

    instance_url: str | None = None
    endpoint: str | None = None
    api_version: str | None = None
    property_id: str | None = None


ConnectionConfig = DatabaseConfig | WarehouseConfig | ApiConfig | CloudMonitoringConfig | SaasConfig


CONFIG_TYPES: dict[DataSourceType, type[_ConnectionConfig]] = {
    DataSourceType.POSTGRESQL: DatabaseConfig,
    DataSourceType.MYSQL: DatabaseConfig,
    DataSourceType.MONGODB: DatabaseConfig,
    DataSourceType.SNOWFLAKE: WarehouseConfig,
    DataSourceType.BIGQUERY: WarehouseConfig,
    DataSourceType.REST_API: ApiConfig,
    DataSourceType.GRAPHQL: ApiConfig,
    DataSourceType.AWS_CLOUDWATCH: CloudMonitoringConfig,
    DataSourceType.AZURE_MONITOR: CloudMonitoringConfig,
    DataSourceType.GCP_MONITORING: CloudMonitoringConfig,
    DataSourceType.SALESFORCE: SaasConfig,
    DataSourceType.HUBSPOT: SaasConfig,
    DataSourceType.GOOGLE_ANALYTICS: SaasConfig,
}


class Credentials(BaseModel):
    """Secrets for a data source.

    Every value is a SecretStr, so credentials never show up in reprs or
    logs. ``reveal`` is only called when building the outbound request to
    the connection-test service.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Basic auth
    username: str | None = None
    password: SecretStr | None = None

    # API keys
    api_key: SecretStr | None = None
    api_secret: SecretStr | None = None

    # OAuth
    access_token: SecretStr | None = None
    refresh_token: SecretStr | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None

    # Cloud credentials
    service_account_key: SecretStr | None = None
    access_key_id: str | None = None
    secret_access_key: SecretStr | None = None

    def reveal(self) -> dict[str, str]:
        """Return the plain-text credential values that are set."""
        revealed: dict[str, str] = {}
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None:
                continue
            revealed[name] = value.get_secret_value() if isinstance(value, SecretStr) else value
        return revealed

    def is_empty(self) -> bool:
        """Check whether no credential is set."""
        return not self.reveal()


class ConnectionTestResult(BaseModel):
    """Result of a connection test."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    message: str = ""
    response_time_ms: int | None = Field(default=None, alias="responseTime")
    record_count: int | None = Field(default=None, alias="recordCount")
    tested_at: datetime | None = None


class SourceTypeDefinition(BaseModel):
    """Catalogue entry describing a source type for connection forms."""

    model_config = ConfigDict(frozen=True)

    type: DataSourceType
    display_name: str
    category: SourceCategory
    icon: str
    description: str
    default_config: dict[str, Any] = Field(default_factory=dict)
