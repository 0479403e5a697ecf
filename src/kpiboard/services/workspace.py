"""Workspace: every registry over one store, plus the session principal."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

import structlog

from kpiboard.adapters.datasource import HttpDataSourceClient
from kpiboard.adapters.storage import (
    CredentialCipher,
    InMemoryStore,
    JsonFileStore,
    SqlKeyValueStore,
)
from kpiboard.config import Settings
from kpiboard.core.authorization import AuthorizationDecision, Operation
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.exceptions import ForbiddenError
from kpiboard.core.interfaces import BrandingApplier, DataSourceClient, KeyValueStore
from kpiboard.models import Tenant, TenantContext
from kpiboard.services.authorization import AuthorizationGate
from kpiboard.services.datasource import DataSourceService
from kpiboard.services.kpi import KpiConfigService
from kpiboard.services.layout import LayoutService
from kpiboard.services.organization import OrganizationService
from kpiboard.services.tenant import TenantService
from kpiboard.services.user import DEFAULT_INVITATION_TTL_DAYS, UserService

logger = structlog.get_logger()


@dataclass(frozen=True)
class Principal:
    """Who the session is acting as."""

    tenant_id: str | None
    organization_id: str | None
    user_id: str | None


class Workspace:
    """Composition root.

    Every registry hydrates from ``store`` once, here. Two workspaces over
    the same store do not see each other's writes until re-created.
    """

    def __init__(
        self,
        store: KeyValueStore,
        client: DataSourceClient,
        clock: Clock = utc_now,
        cipher: CredentialCipher | None = None,
        branding: BrandingApplier | None = None,
        invitation_ttl_days: int = DEFAULT_INVITATION_TTL_DAYS,
    ):
        """Build the registries.

        Args:
            store: Persisted state shared by all registries.
            client: Data source service client.
            clock: Source of the current time.
            cipher: Encrypts data source credentials at rest.
            branding: Receives branding on organization switches.
            invitation_ttl_days: Lifetime of user invitations.
        """
        self.store = store
        self.client = client
        self.clock = clock
        self.users = UserService(store, clock, invitation_ttl_days=invitation_ttl_days)
        self.tenants = TenantService(store, clock, user_counter=self._count_users)
        self.organizations = OrganizationService(store, clock, branding, tenants=self.tenants)
        self.data_sources = DataSourceService(store, client, clock, cipher=cipher)
        self.kpis = KpiConfigService(store, self.data_sources, clock)
        self.layout = LayoutService(store)
        self.gate = AuthorizationGate(self.tenants, self.organizations, self.users, clock)

    @classmethod
    def from_settings(cls, settings: Settings) -> Workspace:
        """Build a workspace from environment settings."""
        cipher = CredentialCipher(settings.encryption_key) if settings.encryption_key else None
        client = HttpDataSourceClient(
            settings.datasource_api_url, timeout_seconds=settings.request_timeout
        )
        workspace = cls(
            build_store(settings),
            client,
            cipher=cipher,
            invitation_ttl_days=settings.invitation_ttl_days,
        )
        if settings.demo_mode:
            from kpiboard.demo.seed import seed_demo_data

            seed_demo_data(workspace)
        return workspace

    # Session

    def principal(self) -> Principal:
        """The current tenant, organization and user ids."""
        tenant = self.tenants.get_current_tenant()
        organization = self.organizations.get_current_organization()
        user = self.users.get_current_user()
        return Principal(
            tenant_id=tenant.id if tenant else None,
            organization_id=organization.id if organization else None,
            user_id=user.id if user else None,
        )

    def sign_in(self, tenant_id: str, organization_id: str, user_id: str) -> bool:
        """Start a session as ``user_id`` in an organization of a tenant.

        Identity is established elsewhere; this only checks that the
        principal exists, belongs together (the user is a member of the
        organization, which is attached to the tenant) and that the tenant
        is usable.

        Returns:
            False, with no change, when any of that does not hold.
        """
        user = self.users.get_user_by_id(user_id)
        organization = self.organizations.get_organization_by_id(organization_id)
        if user is None or organization is None:
            return False
        if not organization.admits(user):
            logger.info(
                "session_rejected",
                reason="not_a_member",
                organization_id=organization_id,
                user_id=user_id,
            )
            return False
        if not self.tenants.can_access_organization(tenant_id, organization_id):
            return False
        if not self.tenants.validate_tenant_access(tenant_id, user_id):
            return False

        self.tenants.set_current_tenant(tenant_id)
        self.organizations.set_organization(organization_id)
        self.users.record_login(user_id)
        self.users.set_current_user(self.users.get_user_by_id(user_id) or user)
        self.tenants.set_context(
            TenantContext(
                tenant_id=tenant_id,
                organization_id=organization_id,
                user_id=user_id,
                session_id=uuid4().hex,
            )
        )
        logger.info("session_started", tenant_id=tenant_id, user_id=user_id)
        return True

    def sign_out(self) -> None:
        """End the session and forget the current tenant and organization."""
        self.users.logout()
        self.organizations.clear_organization()
        self.tenants.clear_context()

    def switch_tenant(self, tenant_id: str, organization_id: str) -> bool:
        """Move the session user to another tenant.

        Requires ``switch_tenant`` in the current tenant and a user that can
        sign in to the target.

        Raises:
            ForbiddenError: If the current principal may not switch tenants.
        """
        self.require(Operation.SWITCH_TENANT)
        user_id = self.principal().user_id
        if user_id is None:
            raise ForbiddenError()
        return self.sign_in(tenant_id, organization_id, user_id)

    # Authorization

    def authorize(self, operation: Operation | str) -> AuthorizationDecision:
        """Decide an operation for the session principal."""
        p = self.principal()
        return self.gate.check(operation, p.tenant_id, p.organization_id, p.user_id)

    def require(self, operation: Operation | str) -> None:
        """Raise ForbiddenError unless the session principal may run ``operation``."""
        p = self.principal()
        self.gate.require(operation, p.tenant_id, p.organization_id, p.user_id)

    def _count_users(self, tenant: Tenant) -> int:
        return self.users.count_users(tenant.organization_ids)


def build_store(settings: Settings) -> KeyValueStore:
    """Create the store selected by ``KPIBOARD_STORAGE_BACKEND``."""
    if settings.storage_backend == "memory":
        return InMemoryStore()
    if settings.storage_backend == "sql":
        return SqlKeyValueStore(settings.database_url)
    return JsonFileStore(settings.storage_path)
