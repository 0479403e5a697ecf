"""RBAC domain types."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """User roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Capability(str, Enum):
    """Named permissions checked by the authorization gate.

    Values match the field names of UserPermissions.
    """

    VIEW_DASHBOARDS = "can_view_dashboards"
    EDIT_DASHBOARDS = "can_edit_dashboards"
    EXPORT_DATA = "can_export_data"
    MANAGE_USERS = "can_manage_users"
    MANAGE_SETTINGS = "can_manage_settings"
    ACCESS_ADMIN = "can_access_admin"
    SCHEDULE_REPORTS = "can_schedule_reports"
    VIEW_COMMENTS = "can_view_comments"
    ADD_COMMENTS = "can_add_comments"
    DELETE_COMMENTS = "can_delete_comments"


class UserPermissions(BaseModel):
    """Permission set of a user, derived from the user's role."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    can_view_dashboards: bool = False
    can_edit_dashboards: bool = False
    can_export_data: bool = False
    can_manage_users: bool = False
    can_manage_settings: bool = False
    can_access_admin: bool = False
    can_schedule_reports: bool = False
    can_view_comments: bool = False
    can_add_comments: bool = False
    can_delete_comments: bool = False

    def allows(self, capability: Capability) -> bool:
        """Check whether this permission set grants a capability."""
        granted: bool = getattr(self, capability.value)
        return granted

    def granted(self) -> frozenset[Capability]:
        """Return every capability this permission set grants."""
        return frozenset(c for c in Capability if self.allows(c))
