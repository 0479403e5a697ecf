"""Role to permission mapping.

Permissions are never stored independently of a role: every role change
recomputes the full set from this table.
"""

from kpiboard.core.rbac.types import Capability, Role, UserPermissions

_VIEWER: frozenset[Capability] = frozenset(
    {
        Capability.VIEW_DASHBOARDS,
        Capability.VIEW_COMMENTS,
    }
)

_EDITOR: frozenset[Capability] = _VIEWER | {
    Capability.EDIT_DASHBOARDS,
    Capability.EXPORT_DATA,
    Capability.SCHEDULE_REPORTS,
    Capability.ADD_COMMENTS,
}

_ADMIN: frozenset[Capability] = frozenset(Capability)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.VIEWER: _VIEWER,
    Role.EDITOR: _EDITOR,
    Role.ADMIN: _ADMIN,
}


def get_role_permissions(role: Role | str) -> UserPermissions:
    """Return the canonical permission set for a role.

    Pure and total: the same role always yields an equal permission set,
    and unrecognised role names fall back to viewer permissions.

    Args:
        role: Role enum member or its string value.

    Returns:
        A fresh UserPermissions instance.
    """
    try:
        resolved = Role(role)
    except ValueError:
        resolved = Role.VIEWER

    capabilities = ROLE_CAPABILITIES[resolved]
    return UserPermissions(**{c.value: c in capabilities for c in Capability})
