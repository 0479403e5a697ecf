"""Data source management routes.

Credentials are accepted on create and update but never returned.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from kpiboard.adapters.datasource import (
    ConnectionTestResult,
    Credentials,
    DataSourceType,
    SourceTypeDefinition,
)
from kpiboard.core.authorization import Operation
from kpiboard.core.exceptions import ForbiddenError
from kpiboard.entrypoints.api.deps import require_operation
from kpiboard.models import DataSource
from kpiboard.services.workspace import Workspace

router = APIRouter(prefix="/datasources", tags=["datasources"])

Manager = Annotated[Workspace, Depends(require_operation(Operation.MANAGE_DATASOURCES))]


class CreateDataSourceRequest(BaseModel):
    """Request to create a data source in the session's organization."""

    name: str = Field(..., min_length=1, max_length=100)
    type: DataSourceType
    config: dict[str, Any] = Field(default_factory=dict)
    credentials: Credentials | None = None


class DataSourceResponse(BaseModel):
    """Response for a data source. Never carries credentials."""

    id: str
    name: str
    type: str
    status: str
    config: dict[str, Any]
    has_credentials: bool
    tenant_id: str
    organization_id: str
    created_at: datetime
    last_connected: datetime | None = None
    last_sync: datetime | None = None
    last_tested_at: datetime | None = None
    record_count: int | None = None
    status_override: bool = False

    @classmethod
    def from_source(cls, source: DataSource) -> DataSourceResponse:
        """Build a response from a data source record."""
        return cls(
            id=source.id,
            name=source.name,
            type=source.type.value,
            status=source.status.value,
            config=source.config.model_dump(mode="json", by_alias=True, exclude_none=True),
            has_credentials=not source.credentials.is_empty(),
            tenant_id=source.tenant_id,
            organization_id=source.organization_id,
            created_at=source.metadata.created_at,
            last_connected=source.metadata.last_connected,
            last_sync=source.metadata.last_sync,
            last_tested_at=source.metadata.last_tested_at,
            record_count=source.metadata.record_count,
            status_override=source.metadata.status_override,
        )


class DataSourceListResponse(BaseModel):
    """Response for listing data sources."""

    data_sources: list[DataSourceResponse]
    total: int


class StatisticsResponse(BaseModel):
    """Data source counts."""

    total: int
    connected: int
    by_type: dict[str, int]


def _get_or_404(workspace: Workspace, source_id: str) -> DataSource:
    source = workspace.data_sources.get_data_source(source_id)
    tenant_id = workspace.principal().tenant_id
    # sources of other tenants are invisible, not forbidden
    if source is None or source.tenant_id != tenant_id:
        raise HTTPException(status_code=404, detail="Data source not found")
    return source


@router.get("/", response_model=DataSourceListResponse)
async def list_datasources(workspace: Manager) -> DataSourceListResponse:
    """List the data sources of the session's tenant."""
    tenant_id = workspace.principal().tenant_id or ""
    sources = workspace.data_sources.get_data_sources_for_tenant(tenant_id)
    return DataSourceListResponse(
        data_sources=[DataSourceResponse.from_source(s) for s in sources],
        total=len(sources),
    )


@router.get("/templates", response_model=list[SourceTypeDefinition])
async def list_templates(workspace: Manager) -> list[SourceTypeDefinition]:
    """List source types with their default connection settings."""
    return workspace.data_sources.get_templates()


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(workspace: Manager) -> StatisticsResponse:
    """Counts over all data sources."""
    stats = workspace.data_sources.get_statistics()
    return StatisticsResponse(total=stats.total, connected=stats.connected, by_type=stats.by_type)


@router.post("/", response_model=DataSourceResponse, status_code=201)
async def create_datasource(
    request: CreateDataSourceRequest, workspace: Manager
) -> DataSourceResponse:
    """Create a data source. It starts disconnected; test it to connect."""
    principal = workspace.principal()
    if principal.tenant_id is None or principal.organization_id is None:
        raise ForbiddenError()
    source = workspace.data_sources.create_data_source(
        request.name,
        request.type,
        request.config,
        tenant_id=principal.tenant_id,
        organization_id=principal.organization_id,
        credentials=request.credentials,
    )
    return DataSourceResponse.from_source(source)


@router.get("/{source_id}", response_model=DataSourceResponse)
async def get_datasource(source_id: str, workspace: Manager) -> DataSourceResponse:
    """Get one data source."""
    return DataSourceResponse.from_source(_get_or_404(workspace, source_id))


@router.patch("/{source_id}", response_model=DataSourceResponse)
async def update_datasource(
    source_id: str, patch: dict[str, Any], workspace: Manager
) -> DataSourceResponse:
    """Shallow-merge fields into a data source."""
    _get_or_404(workspace, source_id)
    if {"tenant_id", "organization_id"} & patch.keys():
        raise HTTPException(status_code=422, detail="Ownership cannot be changed")
    updated = workspace.data_sources.update_data_source(source_id, patch)
    if updated is None:
        raise HTTPException(status_code=404, detail="Data source not found")
    return DataSourceResponse.from_source(updated)


@router.delete("/{source_id}", status_code=204)
async def delete_datasource(source_id: str, workspace: Manager) -> Response:
    """Delete a data source. KPIs still pointing at it will show zero."""
    _get_or_404(workspace, source_id)
    workspace.data_sources.delete_data_source(source_id)
    return Response(status_code=204)


@router.post("/{source_id}/test", response_model=ConnectionTestResult)
async def test_datasource(source_id: str, workspace: Manager) -> ConnectionTestResult:
    """Test the connection and update the status."""
    _get_or_404(workspace, source_id)
    return await workspace.data_sources.test_connection(source_id)


@router.post("/{source_id}/sync")
async def sync_datasource(source_id: str, workspace: Manager) -> dict[str, bool]:
    """Synchronise a data source."""
    _get_or_404(workspace, source_id)
    return {"success": await workspace.data_sources.sync_data_source(source_id)}
