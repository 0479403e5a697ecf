"""User and invitation management routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr

from kpiboard.core.authorization import Operation
from kpiboard.core.exceptions import ForbiddenError
from kpiboard.core.rbac import Role
from kpiboard.entrypoints.api.deps import WorkspaceDep, require_operation
from kpiboard.models import User, UserInvitation
from kpiboard.services.workspace import Workspace

router = APIRouter(prefix="/users", tags=["users"])

Manager = Annotated[Workspace, Depends(require_operation(Operation.MANAGE_USERS))]


class CreateUserRequest(BaseModel):
    """Request to add a user to the session's organization."""

    email: EmailStr
    name: str
    role: Role = Role.VIEWER
    avatar: str | None = None


class UpdateRoleRequest(BaseModel):
    """Request to change a user's role."""

    role: Role


class InviteRequest(BaseModel):
    """Request to invite someone to the session's organization."""

    email: EmailStr
    role: Role = Role.VIEWER


class InvitationResponse(BaseModel):
    """An invitation, without its token."""

    id: str
    email: str
    role: Role
    organization_id: str
    invited_by: str
    status: str

    @classmethod
    def from_invitation(cls, invitation: UserInvitation) -> InvitationResponse:
        """Build a response from an invitation record."""
        return cls(
            id=invitation.id,
            email=invitation.email,
            role=invitation.role,
            organization_id=invitation.organization_id,
            invited_by=invitation.invited_by,
            status=invitation.status.value,
        )


class CreatedInvitationResponse(InvitationResponse):
    """The freshly created invitation. The only time the token is shown."""

    token: str


class AcceptInvitationRequest(BaseModel):
    """Redeem an invitation token."""

    token: str
    name: str | None = None
    avatar: str | None = None


class UserStatsResponse(BaseModel):
    """User counts."""

    total: int
    active: int
    inactive: int
    pending: int
    by_role: dict[str, int]


def _organization_id(workspace: Workspace) -> str:
    organization_id = workspace.principal().organization_id
    if organization_id is None:
        raise ForbiddenError()
    return organization_id


def _get_or_404(workspace: Workspace, user_id: str) -> User:
    user = workspace.users.get_user_by_id(user_id)
    if user is None or user.organization_id != _organization_id(workspace):
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/", response_model=list[User])
async def list_users(workspace: Manager) -> list[User]:
    """List users of the session's organization."""
    return workspace.users.get_users_by_organization(_organization_id(workspace))


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(workspace: Manager) -> UserStatsResponse:
    """Counts by status and role in the session's organization."""
    stats = workspace.users.get_user_stats(_organization_id(workspace))
    return UserStatsResponse(
        total=stats.total,
        active=stats.active,
        inactive=stats.inactive,
        pending=stats.pending,
        by_role=stats.by_role,
    )


@router.post("/", response_model=User, status_code=201)
async def create_user(request: CreateUserRequest, workspace: Manager) -> User:
    """Add a user to the session's organization."""
    return workspace.users.create_user(
        request.email,
        request.name,
        _organization_id(workspace),
        role=request.role,
        avatar=request.avatar,
        invited_by=workspace.principal().user_id,
    )


@router.put("/{user_id}/role", response_model=User)
async def update_role(user_id: str, request: UpdateRoleRequest, workspace: Manager) -> User:
    """Change a user's role. Permissions follow the role."""
    _get_or_404(workspace, user_id)
    workspace.users.update_user_role(user_id, request.role)
    return _get_or_404(workspace, user_id)


@router.post("/{user_id}/deactivate", response_model=User)
async def deactivate_user(user_id: str, workspace: Manager) -> User:
    """Deactivate a user."""
    _get_or_404(workspace, user_id)
    workspace.users.deactivate_user(user_id)
    return _get_or_404(workspace, user_id)


@router.post("/{user_id}/activate", response_model=User)
async def activate_user(user_id: str, workspace: Manager) -> User:
    """Reactivate a user."""
    _get_or_404(workspace, user_id)
    workspace.users.activate_user(user_id)
    return _get_or_404(workspace, user_id)


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: str, workspace: Manager) -> Response:
    """Delete a user."""
    _get_or_404(workspace, user_id)
    workspace.users.delete_user(user_id)
    return Response(status_code=204)


@router.get("/invitations", response_model=list[InvitationResponse])
async def list_invitations(workspace: Manager) -> list[InvitationResponse]:
    """List invitations to the session's organization."""
    organization_id = _organization_id(workspace)
    return [
        InvitationResponse.from_invitation(i)
        for i in workspace.users.get_invitations()
        if i.organization_id == organization_id
    ]


@router.post("/invitations", response_model=CreatedInvitationResponse, status_code=201)
async def create_invitation(
    request: InviteRequest, workspace: Manager
) -> CreatedInvitationResponse:
    """Invite someone to the session's organization."""
    invitation = workspace.users.create_invitation(
        request.email, request.role, _organization_id(workspace)
    )
    base = InvitationResponse.from_invitation(invitation)
    return CreatedInvitationResponse(**base.model_dump(), token=invitation.token)


@router.post("/invitations/accept", response_model=User, status_code=201)
async def accept_invitation(request: AcceptInvitationRequest, workspace: WorkspaceDep) -> User:
    """Redeem an invitation token. The token is the credential."""
    user = workspace.users.accept_invitation(request.token, request.name, request.avatar)
    if user is None:
        raise HTTPException(status_code=404, detail="Invitation not found or expired")
    return user


@router.post("/invitations/{invitation_id}/resend", status_code=204)
async def resend_invitation(invitation_id: str, workspace: Manager) -> Response:
    """Restart a pending invitation's expiry window."""
    if not workspace.users.resend_invitation(invitation_id):
        raise HTTPException(status_code=404, detail="Invitation not found or not pending")
    return Response(status_code=204)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def cancel_invitation(invitation_id: str, workspace: Manager) -> Response:
    """Cancel an invitation."""
    if not workspace.users.cancel_invitation(invitation_id):
        raise HTTPException(status_code=404, detail="Invitation not found")
    return Response(status_code=204)
