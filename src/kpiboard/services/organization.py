"""Organization registry: the organization forest, branding, flags and limits."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from kpiboard.adapters.storage import (
    StateKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.entitlements import OrganizationFeature, OrganizationLimit
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.core.interfaces import BrandingApplier, KeyValueStore
from kpiboard.models import Branding, Organization, OrganizationSettings, OrganizationType
from kpiboard.models.base import new_id

if TYPE_CHECKING:
    from kpiboard.services.tenant import TenantService

logger = structlog.get_logger()


class LoggingBrandingApplier:
    """Default branding applier: there is no UI shell to push to, so it logs."""

    def apply(self, organization_name: str, branding: Branding) -> None:
        """Log the branding that would be applied."""
        logger.info(
            "branding_applied",
            organization=organization_name,
            title=f"{branding.company_name or organization_name} - KPI Dashboard",
            primary_color=branding.primary_color,
            secondary_color=branding.secondary_color,
            theme=branding.theme.value,
        )


class OrganizationService:
    """Registry of organizations and the current organization."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utc_now,
        branding: BrandingApplier | None = None,
        tenants: TenantService | None = None,
    ):
        """Load organizations and the current organization from ``store``.

        Args:
            store: Persisted state.
            clock: Source of the current time.
            branding: Receives branding when the organization changes.
            tenants: Tenant registry new organizations are attached to.
        """
        self.store = store
        self.clock = clock
        self.branding = branding or LoggingBrandingApplier()
        self.tenants = tenants
        self._organizations: list[Organization] = load_collection(
            store, StateKeys.ORGANIZATIONS, Organization
        )
        self._current_id: str | None = load_value(
            store, StateKeys.CURRENT_ORGANIZATION, str | None, None
        )

    # Lookups

    def get_organizations(self) -> list[Organization]:
        """All organizations, in creation order."""
        return list(self._organizations)

    def get_organization_by_id(self, organization_id: str) -> Organization | None:
        """Get an organization by id, or None."""
        return next((o for o in self._organizations if o.id == organization_id), None)

    def get_child_organizations(self, parent_id: str) -> list[Organization]:
        """Direct children of ``parent_id``."""
        return [o for o in self._organizations if o.parent_id == parent_id]

    def get_ancestors(self, organization_id: str) -> list[Organization]:
        """Parents of an organization, nearest first, root last."""
        ancestors: list[Organization] = []
        seen = {organization_id}
        current = self.get_organization_by_id(organization_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id in seen:
                break
            seen.add(current.parent_id)
            current = self.get_organization_by_id(current.parent_id)
            if current is not None:
                ancestors.append(current)
        return ancestors

    # Current organization

    def set_organization(self, organization_id: str) -> bool:
        """Switch the current organization and apply its branding.

        Returns:
            False, with no change, if the id is unknown.
        """
        organization = self.get_organization_by_id(organization_id)
        if organization is None:
            return False
        self._current_id = organization_id
        save_value(self.store, StateKeys.CURRENT_ORGANIZATION, organization_id)
        self.branding.apply(organization.name, organization.settings.branding)
        logger.info("current_organization_set", organization_id=organization_id)
        return True

    def get_current_organization(self) -> Organization | None:
        """The current organization, or None."""
        if self._current_id is None:
            return None
        return self.get_organization_by_id(self._current_id)

    def clear_organization(self) -> None:
        """Forget the current organization."""
        self._current_id = None
        save_value(self.store, StateKeys.CURRENT_ORGANIZATION, None)

    def has_feature(self, feature: OrganizationFeature | str) -> bool:
        """Check a feature flag on the current organization. False when none."""
        organization = self.get_current_organization()
        if organization is None:
            return False
        return organization.settings.features.enabled(OrganizationFeature(feature))

    def organization_has_feature(
        self, organization_id: str, feature: OrganizationFeature | str
    ) -> bool:
        """Check a feature flag on a given organization. False when unknown."""
        organization = self.get_organization_by_id(organization_id)
        if organization is None:
            return False
        return organization.settings.features.enabled(OrganizationFeature(feature))

    def is_within_limit(self, limit: OrganizationLimit | str, current: int) -> bool:
        """Check ``current`` against a limit of the current organization.

        Returns:
            True iff ``current`` is strictly below the limit. False when
            there is no current organization.
        """
        organization = self.get_current_organization()
        if organization is None:
            return False
        return current < organization.settings.limits.limit(OrganizationLimit(limit))

    def update_branding(self, patch: dict[str, Any]) -> Organization | None:
        """Merge ``patch`` into the current organization's branding and re-apply it.

        Returns:
            The updated organization, or None when there is no current one.

        Raises:
            InvalidInputError: If the merged branding does not validate.
        """
        organization = self.get_current_organization()
        if organization is None:
            return None
        branding = {**organization.settings.branding.model_dump(), **patch}
        settings = {**organization.settings.model_dump(), "branding": branding}
        updated = self.update_organization(organization.id, {"settings": settings})
        if updated is not None:
            self.branding.apply(updated.name, updated.settings.branding)
        return updated

    # Mutations

    def create_organization(
        self,
        name: str | None = None,
        *,
        tenant_id: str | None = None,
        parent_id: str | None = None,
        type: OrganizationType | str = OrganizationType.COMPANY,
        settings: OrganizationSettings | dict[str, Any] | None = None,
        members: list[str] | None = None,
    ) -> Organization:
        """Create an organization, attaching it to ``tenant_id`` when given.

        Raises:
            InvalidInputError: If the name is blank, the parent or tenant is
                unknown, the tenant is at its organization quota or the
                record does not validate.
        """
        if name is None or not name.strip():
            raise InvalidInputError("name: organization name is required", field="name")
        if parent_id is not None and self.get_organization_by_id(parent_id) is None:
            raise _parent_error(f"unknown organization {parent_id}")
        if tenant_id is not None:
            tenant = self.tenants.get_tenant_by_id(tenant_id) if self.tenants else None
            if tenant is None:
                raise InvalidInputError(f"tenant_id: unknown tenant {tenant_id}", field="tenant_id")
            if len(tenant.organization_ids) >= tenant.settings.features.max_organizations:
                raise InvalidInputError(
                    "tenant_id: tenant is at its organization quota", field="tenant_id"
                )

        data: dict[str, Any] = {
            "id": new_id("org"),
            "name": name,
            "parent_id": parent_id,
            "type": type,
            "members": members or [],
            "created_at": self.clock(),
        }
        if settings is not None:
            data["settings"] = settings
        organization = Organization.build(**data)

        self._organizations.append(organization)
        self._persist()
        if tenant_id is not None and self.tenants is not None:
            self.tenants.add_organization(tenant_id, organization.id)
        logger.info(
            "organization_created",
            organization_id=organization.id,
            tenant_id=tenant_id,
            parent_id=parent_id,
        )
        return organization

    def update_organization(
        self, organization_id: str, patch: dict[str, Any]
    ) -> Organization | None:
        """Shallow-merge ``patch`` into an organization.

        Returns:
            The updated organization, or None if the id is unknown.

        Raises:
            InvalidInputError: If the record does not validate or the new
                parent would create a cycle.
        """
        index = self._index(organization_id)
        if index is None:
            return None
        if "id" in patch:
            raise InvalidInputError("id: organization id cannot be changed", field="id")
        if "parent_id" in patch and patch["parent_id"] is not None:
            self._check_parent(organization_id, patch["parent_id"])

        updated = self._organizations[index].patched(patch)
        self._organizations[index] = updated
        self._persist()
        logger.info(
            "organization_updated", organization_id=organization_id, updated_keys=sorted(patch)
        )
        return updated

    def delete_organization(self, organization_id: str) -> bool:
        """Remove an organization.

        Raises:
            InvalidInputError: While the organization still has children.
        """
        index = self._index(organization_id)
        if index is None:
            return False
        if self.get_child_organizations(organization_id):
            raise InvalidInputError("id: organization has child organizations", field="id")
        del self._organizations[index]
        self._persist()
        if self.tenants is not None:
            for tenant in self.tenants.get_all_tenants():
                if organization_id in tenant.organization_ids:
                    self.tenants.remove_organization(tenant.id, organization_id)
        if self._current_id == organization_id:
            self.clear_organization()
        logger.info("organization_deleted", organization_id=organization_id)
        return True

    def add_member(self, organization_id: str, user_id: str) -> bool:
        """Add a user id to the organization's members."""
        organization = self.get_organization_by_id(organization_id)
        if organization is None:
            return False
        if user_id not in organization.members:
            self.update_organization(organization_id, {"members": [*organization.members, user_id]})
        return True

    def remove_member(self, organization_id: str, user_id: str) -> bool:
        """Remove a user id from the organization's members."""
        organization = self.get_organization_by_id(organization_id)
        if organization is None or user_id not in organization.members:
            return False
        members = [m for m in organization.members if m != user_id]
        self.update_organization(organization_id, {"members": members})
        return True

    # Internals

    def _check_parent(self, organization_id: str, parent_id: str) -> None:
        if parent_id == organization_id:
            raise _parent_error("organization cannot be its own parent")
        if self.get_organization_by_id(parent_id) is None:
            raise _parent_error(f"unknown organization {parent_id}")
        if any(a.id == organization_id for a in self.get_ancestors(parent_id)):
            raise _parent_error("would create a cycle")

    def _index(self, organization_id: str) -> int | None:
        return next((i for i, o in enumerate(self._organizations) if o.id == organization_id), None)

    def _persist(self) -> None:
        save_collection(self.store, StateKeys.ORGANIZATIONS, self._organizations)


def _parent_error(message: str) -> InvalidInputError:
    return InvalidInputError(f"parent_id: {message}", field="parent_id")
