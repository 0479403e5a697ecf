"""Session routes.

Identity is established by an external provider; these routes only bind
an already-authenticated user to a tenant and organization.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from kpiboard.core.authorization import FORBIDDEN_MESSAGE, Operation
from kpiboard.core.rbac import UserPermissions
from kpiboard.entrypoints.api.deps import WorkspaceDep, require_operation
from kpiboard.services.workspace import Workspace

router = APIRouter(prefix="/session", tags=["session"])


class SignInRequest(BaseModel):
    """Principal to bind the session to."""

    tenant_id: str
    organization_id: str
    user_id: str


class SwitchTenantRequest(BaseModel):
    """Target of a tenant switch."""

    tenant_id: str
    organization_id: str


class SessionResponse(BaseModel):
    """The current principal."""

    tenant_id: str | None
    organization_id: str | None
    user_id: str | None
    permissions: UserPermissions | None = None


def _session(workspace: Workspace) -> SessionResponse:
    principal = workspace.principal()
    user = workspace.users.get_current_user()
    return SessionResponse(
        tenant_id=principal.tenant_id,
        organization_id=principal.organization_id,
        user_id=principal.user_id,
        permissions=user.permissions if user else None,
    )


@router.get("/", response_model=SessionResponse)
async def get_session(workspace: WorkspaceDep) -> SessionResponse:
    """Get the current principal."""
    return _session(workspace)


@router.post("/", response_model=SessionResponse)
async def sign_in(request: SignInRequest, workspace: WorkspaceDep) -> SessionResponse:
    """Bind the session to a principal."""
    if not workspace.sign_in(request.tenant_id, request.organization_id, request.user_id):
        raise HTTPException(status_code=403, detail=FORBIDDEN_MESSAGE)
    return _session(workspace)


@router.delete("/", status_code=204)
async def sign_out(workspace: WorkspaceDep) -> Response:
    """End the session."""
    workspace.sign_out()
    return Response(status_code=204)


@router.post("/tenant", response_model=SessionResponse)
async def switch_tenant(
    request: SwitchTenantRequest,
    workspace: Annotated[Workspace, Depends(require_operation(Operation.SWITCH_TENANT))],
) -> SessionResponse:
    """Move the session user to another tenant."""
    if not workspace.switch_tenant(request.tenant_id, request.organization_id):
        raise HTTPException(status_code=403, detail=FORBIDDEN_MESSAGE)
    return _session(workspace)
