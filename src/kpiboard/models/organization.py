"""Organization records nested under tenants."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kpiboard.core.entitlements import OrganizationFeature, OrganizationLimit
from kpiboard.models.base import DomainModel, UtcDatetime

if TYPE_CHECKING:
    from kpiboard.models.user import User


class OrganizationType(str, Enum):
    """Level of an organization in its tree."""

    COMPANY = "company"
    DIVISION = "division"
    DEPARTMENT = "department"
    TEAM = "team"


class Theme(str, Enum):
    """Branding theme."""

    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class Branding(BaseModel):
    """Cosmetic settings pushed to the UI when the organization is selected."""

    model_config = ConfigDict(extra="forbid")

    logo: str | None = None
    primary_color: str = Field(default="#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    secondary_color: str = Field(default="#10b981", pattern=r"^#[0-9a-fA-F]{6}$")
    company_name: str = ""
    theme: Theme = Theme.AUTO


class OrganizationFeatures(BaseModel):
    """Boolean capability map."""

    model_config = ConfigDict(extra="forbid")

    dashboards: bool = True
    exports: bool = True
    email_reports: bool = False
    customization: bool = False
    ai_insights: bool = False

    def enabled(self, feature: OrganizationFeature) -> bool:
        """Check whether a flag is on."""
        value: bool = getattr(self, feature.value)
        return value


class OrganizationLimits(BaseModel):
    """Usage caps."""

    model_config = ConfigDict(extra="forbid")

    max_users: int = Field(default=10, ge=0)
    max_dashboards: int = Field(default=5, ge=0)
    data_retention_days: int = Field(default=90, ge=0)
    storage_gb: int = Field(default=10, ge=0)

    def limit(self, key: OrganizationLimit) -> int:
        """Return the cap for ``key``."""
        value: int = getattr(self, key.value)
        return value


class OrganizationSettings(BaseModel):
    """Branding, feature flags and limits."""

    model_config = ConfigDict(extra="forbid")

    branding: Branding = Field(default_factory=Branding)
    features: OrganizationFeatures = Field(default_factory=OrganizationFeatures)
    limits: OrganizationLimits = Field(default_factory=OrganizationLimits)


class Organization(DomainModel):
    """A unit inside a tenant: company, division, department or team.

    ``parent_id`` links organizations into a forest. Cycles are rejected by
    the organization registry, which is the only place that can see the
    whole tree.
    """

    id: str
    name: str = Field(min_length=1)
    parent_id: str | None = None
    type: OrganizationType = OrganizationType.COMPANY
    settings: OrganizationSettings = Field(default_factory=OrganizationSettings)
    members: list[str] = Field(default_factory=list)
    created_at: UtcDatetime

    @field_validator("members")
    @classmethod
    def _unique_members(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def admits(self, user: User) -> bool:
        """Check whether ``user`` belongs to this organization.

        Users belong to their home organization and to any organization
        that lists them as a member.
        """
        return user.organization_id == self.id or user.id in self.members
