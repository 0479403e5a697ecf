"""Authorization decision rules.

An operation on behalf of a user in an organization under a tenant is
permitted iff ALL of these hold:

1. The tenant exists, is active or trial, and a trial has not expired.
2. The operation's module is in the tenant's allowed modules.
3. The organization has the operation's feature flag enabled.
4. The user is active and holds the operation's capability.

The first failing check is recorded on the decision for diagnostics.
Callers that report a denial outward must only ever use the generic
``FORBIDDEN_MESSAGE``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from kpiboard.core.entitlements import Module, OrganizationFeature
from kpiboard.core.rbac import Capability
from kpiboard.models.organization import Organization
from kpiboard.models.tenant import Tenant, TenantStatus
from kpiboard.models.user import User, UserStatus

FORBIDDEN_MESSAGE = "forbidden"

_ACCESSIBLE_STATUSES = frozenset({TenantStatus.ACTIVE, TenantStatus.TRIAL})


class Operation(str, Enum):
    """Operations guarded by the gate."""

    VIEW_DASHBOARD = "view_dashboard"
    EDIT_DASHBOARD = "edit_dashboard"
    EXPORT_DATA = "export_data"
    SCHEDULE_REPORT = "schedule_report"
    VIEW_COMMENTS = "view_comments"
    ADD_COMMENT = "add_comment"
    DELETE_COMMENT = "delete_comment"
    VIEW_AI_INSIGHTS = "view_ai_insights"
    MANAGE_KPIS = "manage_kpis"
    MANAGE_DATASOURCES = "manage_datasources"
    MANAGE_USERS = "manage_users"
    MANAGE_SETTINGS = "manage_settings"
    CUSTOMIZE_BRANDING = "customize_branding"
    SWITCH_TENANT = "switch_tenant"
    ACCESS_ADMIN = "access_admin"


class DenyReason(str, Enum):
    """Which check failed. Diagnostic only, never sent to the caller."""

    TENANT_ACCESS = "tenant_access"
    MODULE_NOT_ALLOWED = "module_not_allowed"
    ORGANIZATION_FEATURE_DISABLED = "organization_feature_disabled"
    MISSING_CAPABILITY = "missing_capability"


@dataclass(frozen=True)
class OperationPolicy:
    """What an operation requires at each level."""

    module: Module
    capability: Capability
    organization_feature: OrganizationFeature | None = None


POLICIES: dict[Operation, OperationPolicy] = {
    Operation.VIEW_DASHBOARD: OperationPolicy(
        Module.DASHBOARD, Capability.VIEW_DASHBOARDS, OrganizationFeature.DASHBOARDS
    ),
    Operation.EDIT_DASHBOARD: OperationPolicy(
        Module.DASHBOARD, Capability.EDIT_DASHBOARDS, OrganizationFeature.DASHBOARDS
    ),
    Operation.EXPORT_DATA: OperationPolicy(
        Module.REPORTS, Capability.EXPORT_DATA, OrganizationFeature.EXPORTS
    ),
    Operation.SCHEDULE_REPORT: OperationPolicy(
        Module.REPORTS, Capability.SCHEDULE_REPORTS, OrganizationFeature.EMAIL_REPORTS
    ),
    Operation.VIEW_COMMENTS: OperationPolicy(
        Module.DASHBOARD, Capability.VIEW_COMMENTS, OrganizationFeature.DASHBOARDS
    ),
    Operation.ADD_COMMENT: OperationPolicy(
        Module.DASHBOARD, Capability.ADD_COMMENTS, OrganizationFeature.DASHBOARDS
    ),
    Operation.DELETE_COMMENT: OperationPolicy(
        Module.DASHBOARD, Capability.DELETE_COMMENTS, OrganizationFeature.DASHBOARDS
    ),
    Operation.VIEW_AI_INSIGHTS: OperationPolicy(
        Module.ANALYTICS, Capability.VIEW_DASHBOARDS, OrganizationFeature.AI_INSIGHTS
    ),
    Operation.MANAGE_KPIS: OperationPolicy(
        Module.DASHBOARD, Capability.MANAGE_SETTINGS, OrganizationFeature.CUSTOMIZATION
    ),
    Operation.MANAGE_DATASOURCES: OperationPolicy(Module.ADMIN, Capability.MANAGE_SETTINGS),
    Operation.MANAGE_USERS: OperationPolicy(Module.ADMIN, Capability.MANAGE_USERS),
    Operation.MANAGE_SETTINGS: OperationPolicy(Module.ADMIN, Capability.MANAGE_SETTINGS),
    Operation.CUSTOMIZE_BRANDING: OperationPolicy(
        Module.ADMIN, Capability.MANAGE_SETTINGS, OrganizationFeature.CUSTOMIZATION
    ),
    Operation.SWITCH_TENANT: OperationPolicy(Module.ADMIN, Capability.ACCESS_ADMIN),
    Operation.ACCESS_ADMIN: OperationPolicy(Module.ADMIN, Capability.ACCESS_ADMIN),
}


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of an authorization check.

    Truthy when allowed. ``reason`` is set on denials for logging only.
    """

    allowed: bool
    operation: Operation
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def public_message(self) -> str | None:
        """Message safe to return to the caller."""
        return None if self.allowed else FORBIDDEN_MESSAGE


def tenant_accessible(tenant: Tenant | None, now: datetime) -> bool:
    """Check tenant-level access: exists, active or trial, trial not expired."""
    if tenant is None:
        return False
    if tenant.status not in _ACCESSIBLE_STATUSES:
        return False
    return not tenant.trial_expired(now)


def evaluate(
    operation: Operation,
    tenant: Tenant | None,
    organization: Organization | None,
    user: User | None,
    now: datetime,
) -> AuthorizationDecision:
    """Decide whether ``user`` may perform ``operation``.

    Pure: no lookups, no I/O, no logging.

    Args:
        operation: The requested operation.
        tenant: Tenant the request runs under, or None if unknown.
        organization: Organization the request runs in, or None if unknown.
        user: The acting user, or None if unknown.
        now: Current time, used for trial expiry.

    Returns:
        AuthorizationDecision; denied on the first failing check.
    """
    policy = POLICIES[operation]

    def deny(reason: DenyReason) -> AuthorizationDecision:
        return AuthorizationDecision(allowed=False, operation=operation, reason=reason)

    if tenant is None or not tenant_accessible(tenant, now):
        return deny(DenyReason.TENANT_ACCESS)

    if policy.module.value not in tenant.settings.features.allowed_modules:
        return deny(DenyReason.MODULE_NOT_ALLOWED)

    if organization is None:
        return deny(DenyReason.ORGANIZATION_FEATURE_DISABLED)
    if policy.organization_feature is not None and not organization.settings.features.enabled(
        policy.organization_feature
    ):
        return deny(DenyReason.ORGANIZATION_FEATURE_DISABLED)

    if user is None or user.status != UserStatus.ACTIVE:
        return deny(DenyReason.MISSING_CAPABILITY)
    if not user.permissions.allows(policy.capability):
        return deny(DenyReason.MISSING_CAPABILITY)

    return AuthorizationDecision(allowed=True, operation=operation)
