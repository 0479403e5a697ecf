"""KPI configuration routes."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from kpiboard.core.authorization import Operation
from kpiboard.entrypoints.api.deps import require_operation
from kpiboard.models import KPIConfig, KpiDataSource, KpiFormatting, KpiTarget, KpiTrend
from kpiboard.services.workspace import Workspace

router = APIRouter(prefix="/kpis", tags=["kpis"])

Viewer = Annotated[Workspace, Depends(require_operation(Operation.VIEW_DASHBOARD))]
Manager = Annotated[Workspace, Depends(require_operation(Operation.MANAGE_KPIS))]


class CreateKpiRequest(BaseModel):
    """Request to create a KPI config."""

    name: str = Field(..., min_length=1, max_length=100)
    data_source: KpiDataSource
    description: str | None = None
    icon: str | None = None
    formatting: KpiFormatting | None = None
    trend: KpiTrend | None = None
    target: KpiTarget | None = None
    refresh_interval: int | None = None
    order: int | None = None
    visible: bool = True


class ReorderRequest(BaseModel):
    """New display order, as a list of KPI ids."""

    ordered_ids: list[str]


class KpiValueResponse(BaseModel):
    """A resolved and formatted KPI value."""

    id: str
    value: float
    formatted: str
    previous_value: float | None = None
    change: float | None = None
    trend: str | None = None
    target_met: bool | None = None
    resolved_at: datetime


class KpiListResponse(BaseModel):
    """Response for listing KPI configs."""

    kpis: list[KPIConfig]
    total: int


def _get_or_404(workspace: Workspace, kpi_id: str) -> KPIConfig:
    config = workspace.kpis.get_config_by_id(kpi_id)
    if config is None:
        raise HTTPException(status_code=404, detail="KPI not found")
    return config


@router.get("/", response_model=KpiListResponse)
async def list_kpis(workspace: Viewer, include_hidden: bool = False) -> KpiListResponse:
    """List KPI configs in display order."""
    configs = (
        sorted(workspace.kpis.get_configs(), key=lambda c: c.order)
        if include_hidden
        else workspace.kpis.get_visible_configs()
    )
    return KpiListResponse(kpis=configs, total=len(configs))


@router.post("/", response_model=KPIConfig, status_code=201)
async def create_kpi(request: CreateKpiRequest, workspace: Manager) -> KPIConfig:
    """Create a KPI config."""
    return workspace.kpis.create_config(**request.model_dump(exclude_none=True))


@router.post("/defaults", response_model=KpiListResponse)
async def initialize_defaults(workspace: Manager) -> KpiListResponse:
    """Seed the default KPIs when none exist."""
    created = workspace.kpis.initialize_default_kpis()
    return KpiListResponse(kpis=created, total=len(created))


@router.post("/reorder", status_code=204)
async def reorder_kpis(request: ReorderRequest, workspace: Manager) -> Response:
    """Set the display order."""
    workspace.kpis.reorder_configs(request.ordered_ids)
    return Response(status_code=204)


@router.get("/{kpi_id}", response_model=KPIConfig)
async def get_kpi(kpi_id: str, workspace: Viewer) -> KPIConfig:
    """Get one KPI config."""
    return _get_or_404(workspace, kpi_id)


@router.get("/{kpi_id}/value", response_model=KpiValueResponse)
async def get_kpi_value(kpi_id: str, workspace: Viewer) -> KpiValueResponse:
    """Resolve, format and check a KPI against its target."""
    config = _get_or_404(workspace, kpi_id)
    resolved = await workspace.kpis.fetch_kpi_value(config)
    return KpiValueResponse(
        id=config.id,
        value=resolved.value,
        formatted=workspace.kpis.format_value(resolved.value, config.formatting),
        previous_value=resolved.previous_value,
        change=resolved.change,
        trend=resolved.trend,
        target_met=workspace.kpis.evaluate_target(config, resolved.value),
        resolved_at=workspace.clock(),
    )


@router.patch("/{kpi_id}", response_model=KPIConfig)
async def update_kpi(kpi_id: str, patch: dict[str, Any], workspace: Manager) -> KPIConfig:
    """Shallow-merge fields into a KPI config."""
    if not workspace.kpis.update_config(kpi_id, patch):
        raise HTTPException(status_code=404, detail="KPI not found")
    return _get_or_404(workspace, kpi_id)


@router.delete("/{kpi_id}", status_code=204)
async def delete_kpi(kpi_id: str, workspace: Manager) -> Response:
    """Delete a KPI config."""
    if not workspace.kpis.delete_config(kpi_id):
        raise HTTPException(status_code=404, detail="KPI not found")
    return Response(status_code=204)
