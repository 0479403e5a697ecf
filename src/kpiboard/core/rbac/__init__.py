"""Role-based access control."""

from kpiboard.core.rbac.permissions import ROLE_CAPABILITIES, get_role_permissions
from kpiboard.core.rbac.types import Capability, Role, UserPermissions

__all__ = [
    "Capability",
    "Role",
    "ROLE_CAPABILITIES",
    "UserPermissions",
    "get_role_permissions",
]
