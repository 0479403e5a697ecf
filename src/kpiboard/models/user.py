"""User and invitation records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import EmailStr, Field, field_validator, model_validator

from kpiboard.core.rbac import Role, UserPermissions, get_role_permissions
from kpiboard.models.base import DomainModel, UtcDatetime


class UserStatus(str, Enum):
    """Account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class InvitationStatus(str, Enum):
    """Invitation lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class User(DomainModel):
    """A user of the dashboard.

    ``permissions`` is always recomputed from ``role`` when a record is
    built, including when it is loaded from storage, so a stored permission
    set can never drift away from its role.
    """

    id: str
    email: EmailStr
    name: str = Field(min_length=1)
    role: Role = Role.VIEWER
    organization_id: str
    avatar: str | None = None
    status: UserStatus = UserStatus.ACTIVE
    permissions: UserPermissions = Field(default_factory=UserPermissions)
    created_at: UtcDatetime
    last_login: UtcDatetime | None = None
    invited_by: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_permissions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["permissions"] = get_role_permissions(data.get("role", Role.VIEWER))
        return data

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value


class UserInvitation(DomainModel):
    """A pending offer for an email address to join an organization."""

    id: str
    email: EmailStr
    role: Role
    organization_id: str
    invited_by: str
    invited_at: UtcDatetime
    expires_at: UtcDatetime
    status: InvitationStatus = InvitationStatus.PENDING
    token: str = Field(min_length=16)

    def is_expired(self, now: datetime) -> bool:
        """Check whether the invitation is past its expiry at ``now``."""
        return now > self.expires_at
