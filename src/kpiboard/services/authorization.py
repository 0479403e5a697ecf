"""Authorization gate: looks principals up and applies the decision rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from kpiboard.core.authorization import AuthorizationDecision, Operation, evaluate
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.exceptions import ForbiddenError

if TYPE_CHECKING:
    from kpiboard.services.organization import OrganizationService
    from kpiboard.services.tenant import TenantService
    from kpiboard.services.user import UserService

logger = structlog.get_logger()


class AuthorizationGate:
    """Checks operations against tenant, organization and user state."""

    def __init__(
        self,
        tenants: TenantService,
        organizations: OrganizationService,
        users: UserService,
        clock: Clock = utc_now,
    ):
        """Initialize the gate over the three registries."""
        self.tenants = tenants
        self.organizations = organizations
        self.users = users
        self.clock = clock

    def check(
        self,
        operation: Operation | str,
        tenant_id: str | None,
        organization_id: str | None,
        user_id: str | None,
    ) -> AuthorizationDecision:
        """Decide an operation for the given principal ids.

        Unknown ids deny. The deny reason is logged, never returned to
        callers outside the process.
        """
        operation = Operation(operation)
        tenant = self.tenants.get_tenant_by_id(tenant_id) if tenant_id else None
        organization = (
            self.organizations.get_organization_by_id(organization_id) if organization_id else None
        )
        # organizations outside the tenant never authorize anything
        if tenant is not None and organization is not None:
            if organization.id not in tenant.organization_ids:
                organization = None
        user = self.users.get_user_by_id(user_id) if user_id else None
        # users outside the organization act as unknown
        if user is not None and organization is not None and not organization.admits(user):
            user = None

        decision = evaluate(operation, tenant, organization, user, self.clock())
        if not decision.allowed:
            logger.info(
                "authorization_denied",
                operation=operation.value,
                reason=decision.reason.value if decision.reason else None,
                tenant_id=tenant_id,
                organization_id=organization_id,
                user_id=user_id,
            )
        return decision

    def is_allowed(
        self,
        operation: Operation | str,
        tenant_id: str | None,
        organization_id: str | None,
        user_id: str | None,
    ) -> bool:
        """Boolean form of ``check``."""
        return self.check(operation, tenant_id, organization_id, user_id).allowed

    def require(
        self,
        operation: Operation | str,
        tenant_id: str | None,
        organization_id: str | None,
        user_id: str | None,
    ) -> None:
        """Raise ForbiddenError unless the operation is allowed."""
        if not self.check(operation, tenant_id, organization_id, user_id):
            raise ForbiddenError()
