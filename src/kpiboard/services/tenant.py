"""Tenant registry: tenant records, quotas, module access and the current tenant."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import structlog

from kpiboard.adapters.storage import (
    StateKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)
from kpiboard.core.authorization import tenant_accessible
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.entitlements import Plan, TenantResource
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.core.interfaces import KeyValueStore
from kpiboard.models import Tenant, TenantContext, TenantMetadata, TenantSettings, TenantStatus
from kpiboard.models.base import new_id

logger = structlog.get_logger()

UserCounter = Callable[[Tenant], int]


@dataclass(frozen=True)
class ResourceLimit:
    """Usage of a quota-limited resource."""

    current: int | float
    max: int
    available: int | float


_IMMUTABLE_FIELDS = frozenset({"id"})


class TenantService:
    """Registry of tenants."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utc_now,
        user_counter: UserCounter | None = None,
    ):
        """Load tenants and the current tenant from ``store``.

        Args:
            store: Persisted state.
            clock: Source of the current time.
            user_counter: Counts the users of a tenant, for quota checks.
        """
        self.store = store
        self.clock = clock
        self.user_counter = user_counter
        self._tenants: list[Tenant] = load_collection(store, StateKeys.TENANTS, Tenant)
        self._current_id: str | None = load_value(store, StateKeys.CURRENT_TENANT, str | None, None)
        self._context: TenantContext | None = load_value(
            store, StateKeys.TENANT_CONTEXT, TenantContext | None, None
        )

    # Lookups

    def get_all_tenants(self) -> list[Tenant]:
        """All tenants, in creation order."""
        return list(self._tenants)

    def get_active_tenants(self) -> list[Tenant]:
        """Tenants with status ``active``."""
        return [t for t in self._tenants if t.status == TenantStatus.ACTIVE]

    def get_tenant_by_id(self, tenant_id: str) -> Tenant | None:
        """Get a tenant by id, or None."""
        return next((t for t in self._tenants if t.id == tenant_id), None)

    def get_owner(self, organization_id: str) -> Tenant | None:
        """The tenant an organization is attached to, or None."""
        return next((t for t in self._tenants if organization_id in t.organization_ids), None)

    # Mutations

    def create_tenant(
        self,
        name: str | None = None,
        *,
        domain: str | None = None,
        plan: Plan | str = Plan.STARTER,
        settings: TenantSettings | dict[str, Any] | None = None,
        organization_ids: list[str] | None = None,
        owner_user_id: str | None = None,
        trial_days: int | None = None,
    ) -> Tenant:
        """Create a tenant in ``trial`` status.

        Settings default to the plan's quotas when not given.

        Raises:
            InvalidInputError: If the name is missing or blank, the plan is
                unknown, the settings do not validate or an organization
                already belongs to another tenant.
        """
        if name is None or not name.strip():
            raise InvalidInputError("name: tenant name is required", field="name")
        try:
            plan = Plan(plan)
        except ValueError as e:
            raise InvalidInputError(f"plan: unknown plan {plan!r}", field="plan") from e
        if trial_days is not None and trial_days <= 0:
            raise InvalidInputError("trial_days: must be positive", field="trial_days")
        self._check_unowned(organization_ids or [])

        now = self.clock()
        data: dict[str, Any] = {
            "id": new_id("tenant"),
            "name": name,
            "status": TenantStatus.TRIAL,
            "plan": plan,
            "organization_ids": organization_ids or [],
            "settings": settings if settings is not None else TenantSettings.for_plan(plan),
            "metadata": TenantMetadata(
                created_at=now,
                last_access_at=now,
                expires_at=now + timedelta(days=trial_days) if trial_days else None,
                owner_user_id=owner_user_id or "unknown",
            ),
        }
        if domain is not None:
            data["domain"] = domain
        tenant = Tenant.build(**data)

        self._tenants.append(tenant)
        self._persist()
        logger.info("tenant_created", tenant_id=tenant.id, plan=plan.value)
        return tenant

    def update_tenant(self, tenant_id: str, patch: dict[str, Any]) -> Tenant | None:
        """Shallow-merge ``patch`` into a tenant.

        Returns:
            The updated tenant, or None if the id is unknown.

        Raises:
            InvalidInputError: If the merged tenant does not validate,
                including when it would exceed its organization quota
                or take an organization owned by another tenant.
        """
        index = self._index(tenant_id)
        if index is None:
            return None
        if _IMMUTABLE_FIELDS & patch.keys():
            raise InvalidInputError("id: tenant id cannot be changed", field="id")
        if "organization_ids" in patch:
            self._check_unowned(patch["organization_ids"], exclude=tenant_id)

        updated = self._tenants[index].patched(patch)
        self._tenants[index] = updated
        self._persist()
        logger.info("tenant_updated", tenant_id=tenant_id, updated_keys=sorted(patch))
        return updated

    def suspend_tenant(self, tenant_id: str) -> bool:
        """Set status ``suspended``."""
        return self._set_status(tenant_id, TenantStatus.SUSPENDED)

    def activate_tenant(self, tenant_id: str) -> bool:
        """Set status ``active``."""
        return self._set_status(tenant_id, TenantStatus.ACTIVE)

    def delete_tenant(self, tenant_id: str) -> bool:
        """Remove a tenant. Clears the current tenant if it was the one removed."""
        index = self._index(tenant_id)
        if index is None:
            return False
        del self._tenants[index]
        self._persist()
        if self._current_id == tenant_id:
            self._current_id = None
            save_value(self.store, StateKeys.CURRENT_TENANT, None)
        logger.info("tenant_deleted", tenant_id=tenant_id)
        return True

    def add_organization(self, tenant_id: str, organization_id: str) -> bool:
        """Attach an organization to a tenant.

        Returns:
            False if the tenant is unknown, the organization belongs to
            another tenant, or the tenant is at its organization quota.
        """
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return False
        if organization_id in tenant.organization_ids:
            return True
        owner = self.get_owner(organization_id)
        if owner is not None:
            logger.warning(
                "organization_owned_elsewhere",
                tenant_id=tenant_id,
                organization_id=organization_id,
                owner_tenant_id=owner.id,
            )
            return False
        if len(tenant.organization_ids) >= tenant.settings.features.max_organizations:
            logger.warning(
                "tenant_organization_limit_reached",
                tenant_id=tenant_id,
                max_organizations=tenant.settings.features.max_organizations,
            )
            return False
        attached = [*tenant.organization_ids, organization_id]
        self.update_tenant(tenant_id, {"organization_ids": attached})
        return True

    def remove_organization(self, tenant_id: str, organization_id: str) -> bool:
        """Detach an organization from a tenant."""
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None or organization_id not in tenant.organization_ids:
            return False
        remaining = [o for o in tenant.organization_ids if o != organization_id]
        self.update_tenant(tenant_id, {"organization_ids": remaining})
        return True

    def record_storage_usage(self, tenant_id: str, used_gb: float) -> bool:
        """Record the storage a tenant currently uses, for quota checks."""
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return False
        metadata = tenant.metadata.model_copy(update={"storage_used_gb": used_gb})
        self.update_tenant(tenant_id, {"metadata": metadata.model_dump()})
        return True

    # Access and quotas

    def validate_tenant_access(self, tenant_id: str, user_id: str | None = None) -> bool:
        """Check whether a tenant may be used right now.

        False if the tenant is unknown, not active or trial, or a trial
        past its expiry. Never changes state.
        """
        tenant = self.get_tenant_by_id(tenant_id)
        allowed = tenant_accessible(tenant, self.clock())
        if not allowed:
            logger.info(
                "tenant_access_denied",
                tenant_id=tenant_id,
                user_id=user_id,
                status=tenant.status.value if tenant else None,
            )
        return allowed

    def check_feature_access(self, tenant_id: str, module_name: str) -> bool:
        """Check whether ``module_name`` is in the tenant's allowed modules."""
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return False
        return module_name in tenant.settings.features.allowed_modules

    def check_resource_limit(self, tenant_id: str, resource: TenantResource | str) -> ResourceLimit:
        """Report usage of a quota-limited resource.

        ``current`` is clamped to ``max`` so ``current + available == max``
        always holds. Unknown tenants report ``{0, 0, 0}``.
        """
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return ResourceLimit(current=0, max=0, available=0)

        features = tenant.settings.features
        resource = TenantResource(resource)
        current: int | float
        if resource == TenantResource.ORGANIZATIONS:
            current, maximum = len(tenant.organization_ids), features.max_organizations
        elif resource == TenantResource.USERS:
            current = self.user_counter(tenant) if self.user_counter else 0
            maximum = features.max_users
        else:
            current, maximum = tenant.metadata.storage_used_gb, features.max_storage_gb

        if current > maximum:
            logger.warning(
                "tenant_quota_exceeded",
                tenant_id=tenant_id,
                resource=resource.value,
                current=current,
                max=maximum,
            )
            current = maximum
        return ResourceLimit(current=current, max=maximum, available=max(0, maximum - current))

    def is_data_isolated(self, tenant_id: str) -> bool:
        """Check the tenant's data segregation flag."""
        tenant = self.get_tenant_by_id(tenant_id)
        return bool(tenant and tenant.settings.isolation.data_segregation)

    def can_access_organization(self, tenant_id: str, organization_id: str) -> bool:
        """Check that an organization belongs to the tenant."""
        tenant = self.get_tenant_by_id(tenant_id)
        return bool(tenant and organization_id in tenant.organization_ids)

    # Current tenant and context

    def set_current_tenant(self, tenant_id: str) -> bool:
        """Switch the current tenant and stamp its last access time.

        Returns:
            False, with no change, if the tenant is unknown.
        """
        tenant = self.get_tenant_by_id(tenant_id)
        if tenant is None:
            return False
        metadata = tenant.metadata.model_copy(update={"last_access_at": self.clock()})
        self.update_tenant(tenant_id, {"metadata": metadata.model_dump()})
        self._current_id = tenant_id
        save_value(self.store, StateKeys.CURRENT_TENANT, tenant_id)
        logger.info("current_tenant_set", tenant_id=tenant_id)
        return True

    def get_current_tenant(self) -> Tenant | None:
        """The current tenant, or None."""
        if self._current_id is None:
            return None
        return self.get_tenant_by_id(self._current_id)

    def set_context(self, context: TenantContext) -> None:
        """Remember the principal the session is acting as."""
        self._context = context
        save_value(self.store, StateKeys.TENANT_CONTEXT, context)

    def get_context(self) -> TenantContext | None:
        """The session context, or None."""
        return self._context

    def clear_context(self) -> None:
        """Forget the current tenant and session context."""
        self._context = None
        self._current_id = None
        save_value(self.store, StateKeys.TENANT_CONTEXT, None)
        save_value(self.store, StateKeys.CURRENT_TENANT, None)

    # Internals

    def _set_status(self, tenant_id: str, status: TenantStatus) -> bool:
        if self.update_tenant(tenant_id, {"status": status}) is None:
            return False
        logger.info("tenant_status_changed", tenant_id=tenant_id, status=status.value)
        return True

    def _check_unowned(self, organization_ids: Any, exclude: str | None = None) -> None:
        if not isinstance(organization_ids, list):
            return
        for organization_id in organization_ids:
            owner = self.get_owner(organization_id)
            if owner is not None and owner.id != exclude:
                raise InvalidInputError(
                    f"organization_ids: {organization_id} belongs to another tenant",
                    field="organization_ids",
                )

    def _index(self, tenant_id: str) -> int | None:
        return next((i for i, t in enumerate(self._tenants) if t.id == tenant_id), None)

    def _persist(self) -> None:
        save_collection(self.store, StateKeys.TENANTS, self._tenants)
