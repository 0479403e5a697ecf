"""Data source adapter layer.

Source type catalogue, connection configuration records and the HTTP
client for the companion data source service.
"""

from kpiboard.adapters.datasource.client import HttpDataSourceClient
from kpiboard.adapters.datasource.errors import (
    AdapterError,
    ConnectionFailedError,
    ConnectionTimeoutError,
    ErrorCode,
    InvalidResponseError,
    ServiceError,
)
from kpiboard.adapters.datasource.registry import SourceTypeRegistry, get_registry
from kpiboard.adapters.datasource.types import (
    CONFIG_TYPES,
    ApiConfig,
    CloudMonitoringConfig,
    ConnectionConfig,
    ConnectionTestResult,
    Credentials,
    DatabaseConfig,
    DataSourceStatus,
    DataSourceType,
    SaasConfig,
    SourceCategory,
    SourceTypeDefinition,
    WarehouseConfig,
)

__all__ = [
    "CONFIG_TYPES",
    "AdapterError",
    "ApiConfig",
    "CloudMonitoringConfig",
    "ConnectionConfig",
    "ConnectionFailedError",
    "ConnectionTestResult",
    "ConnectionTimeoutError",
    "Credentials",
    "DataSourceStatus",
    "DataSourceType",
    "DatabaseConfig",
    "ErrorCode",
    "HttpDataSourceClient",
    "InvalidResponseError",
    "SaasConfig",
    "ServiceError",
    "SourceCategory",
    "SourceTypeDefinition",
    "SourceTypeRegistry",
    "WarehouseConfig",
    "get_registry",
]
