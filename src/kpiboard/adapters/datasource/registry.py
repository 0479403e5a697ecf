"""Source type catalogue.

A singleton registry of the source types the dashboard can connect to,
with the display metadata and default connection settings offered when a
user picks a type in the connection form.
"""

from __future__ import annotations

from typing import Any

from kpiboard.adapters.datasource.types import (
    CONFIG_TYPES,
    DataSourceType,
    SourceCategory,
    SourceTypeDefinition,
)


class SourceTypeRegistry:
    """Singleton registry of source type definitions."""

    _instance: SourceTypeRegistry | None = None
    _definitions: dict[DataSourceType, SourceTypeDefinition]

    def __new__(cls) -> SourceTypeRegistry:
        """Create or return the singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._definitions = {}
        return cls._instance

    @classmethod
    def get_instance(cls) -> SourceTypeRegistry:
        """Get the singleton instance."""
        return cls()

    def register(
        self,
        source_type: DataSourceType,
        display_name: str,
        category: SourceCategory,
        icon: str,
        description: str,
        default_config: dict[str, Any] | None = None,
    ) -> None:
        """Register a source type.

        The default config is checked against the type's connection
        config model so a template can always be used to build a source.

        Raises:
            pydantic.ValidationError: If ``default_config`` does not fit the type.
        """
        default_config = default_config or {}
        CONFIG_TYPES[source_type].model_validate(default_config)
        self._definitions[source_type] = SourceTypeDefinition(
            type=source_type,
            display_name=display_name,
            category=category,
            icon=icon,
            description=description,
            default_config=default_config,
        )

    def get_definition(self, source_type: DataSourceType | str) -> SourceTypeDefinition | None:
        """Get the definition of a source type, or None if unknown."""
        try:
            source_type = DataSourceType(source_type)
        except ValueError:
            return None
        return self._definitions.get(source_type)

    def list_types(self) -> list[SourceTypeDefinition]:
        """List all registered source type definitions, in registration order."""
        return list(self._definitions.values())

    def is_registered(self, source_type: DataSourceType) -> bool:
        """Check if a source type is registered."""
        return source_type in self._definitions


def _register_builtin_types(registry: SourceTypeRegistry) -> None:
    db, wh, api = SourceCategory.DATABASE, SourceCategory.WAREHOUSE, SourceCategory.API
    cloud, saas = SourceCategory.CLOUD_MONITORING, SourceCategory.SAAS
    builtins: list[tuple[DataSourceType, str, SourceCategory, str, str, dict[str, Any]]] = [
        (
            DataSourceType.POSTGRESQL,
            "PostgreSQL Database",
            db,
            "postgresql",
            "Connect to PostgreSQL database",
            {"host": "localhost", "port": 5432, "database": "mydb", "schema": "public"},
        ),
        (
            DataSourceType.MYSQL,
            "MySQL Database",
            db,
            "mysql",
            "Connect to MySQL/MariaDB database",
            {"host": "localhost", "port": 3306, "database": "mydb"},
        ),
        (
            DataSourceType.MONGODB,
            "MongoDB",
            db,
            "mongodb",
            "Connect to MongoDB database",
            {"host": "localhost", "port": 27017, "database": "mydb", "collection": "metrics"},
        ),
        (
            DataSourceType.SNOWFLAKE,
            "Snowflake",
            wh,
            "snowflake",
            "Connect to Snowflake data warehouse",
            {"warehouse": "COMPUTE_WH", "database": "ANALYTICS", "schema": "PUBLIC"},
        ),
        (
            DataSourceType.BIGQUERY,
            "Google BigQuery",
            wh,
            "bigquery",
            "Connect to BigQuery data warehouse",
            {"project": "my-project", "dataset": "analytics"},
        ),
        (
            DataSourceType.REST_API,
            "REST API",
            api,
            "rest-api",
            "Connect to REST API endpoint",
            {"endpoint": "https://api.example.com/v1/metrics", "api_version": "v1"},
        ),
        (
            DataSourceType.GRAPHQL,
            "GraphQL API",
            api,
            "graphql",
            "Connect to GraphQL endpoint",
            {"endpoint": "https://api.example.com/graphql"},
        ),
        (
            DataSourceType.AWS_CLOUDWATCH,
            "AWS CloudWatch",
            cloud,
            "aws",
            "Fetch metrics from AWS CloudWatch",
            {"region": "us-east-1", "namespace": "AWS/EC2"},
        ),
        (
            DataSourceType.AZURE_MONITOR,
            "Azure Monitor",
            cloud,
            "azure",
            "Fetch metrics from Azure Monitor",
            {"region": "eastus"},
        ),
        (
            DataSourceType.GCP_MONITORING,
            "GCP Cloud Monitoring",
            cloud,
            "gcp",
            "Fetch metrics from GCP Monitoring",
            {"project": "my-gcp-project"},
        ),
        (
            DataSourceType.SALESFORCE,
            "Salesforce",
            saas,
            "salesforce",
            "Connect to Salesforce CRM",
            {"instance_url": "https://your-domain.salesforce.com", "api_version": "v57.0"},
        ),
        (
            DataSourceType.HUBSPOT,
            "HubSpot",
            saas,
            "hubspot",
            "Connect to HubSpot CRM",
            {"endpoint": "https://api.hubapi.com"},
        ),
        (
            DataSourceType.GOOGLE_ANALYTICS,
            "Google Analytics",
            saas,
            "google-analytics",
            "Connect to Google Analytics",
            {"api_version": "v4"},
        ),
    ]
    for source_type, name, category, icon, description, default_config in builtins:
        registry.register(source_type, name, category, icon, description, default_config)


def get_registry() -> SourceTypeRegistry:
    """Get the global source type registry, with the built-in types loaded."""
    registry = SourceTypeRegistry.get_instance()
    if not registry.list_types():
        _register_builtin_types(registry)
    return registry
