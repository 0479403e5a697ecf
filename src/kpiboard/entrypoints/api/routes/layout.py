"""Dashboard layout routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from kpiboard.core.authorization import Operation
from kpiboard.entrypoints.api.deps import require_operation
from kpiboard.models import DashboardLayout
from kpiboard.services.workspace import Workspace

router = APIRouter(prefix="/layout", tags=["layout"])

Viewer = Annotated[Workspace, Depends(require_operation(Operation.VIEW_DASHBOARD))]
Editor = Annotated[Workspace, Depends(require_operation(Operation.EDIT_DASHBOARD))]


@router.get("/", response_model=DashboardLayout)
async def get_layout(workspace: Viewer) -> DashboardLayout:
    """Get the current layout."""
    return workspace.layout.get_current_layout()


@router.put("/", response_model=DashboardLayout)
async def update_layout(layout: DashboardLayout, workspace: Editor) -> DashboardLayout:
    """Replace the layout."""
    return workspace.layout.update_layout(layout)


@router.post("/reset", response_model=DashboardLayout)
async def reset_layout(workspace: Editor) -> DashboardLayout:
    """Restore the default layout."""
    return workspace.layout.reset_to_default()


@router.post("/widgets/{widget_id}/toggle", response_model=DashboardLayout)
async def toggle_widget(widget_id: str, workspace: Editor) -> DashboardLayout:
    """Show or hide a widget."""
    if not workspace.layout.toggle_widget_visibility(widget_id):
        raise HTTPException(status_code=404, detail="Widget not found")
    return workspace.layout.get_current_layout()
