"""Tenant records: plan, status, quotas, isolation and security settings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kpiboard.core.entitlements import PLAN_FEATURES, Plan
from kpiboard.models.base import DomainModel, UtcDatetime


class TenantStatus(str, Enum):
    """Lifecycle status of a tenant."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    TRIAL = "trial"
    INACTIVE = "inactive"


class TenantIsolation(BaseModel):
    """Isolation flags."""

    model_config = ConfigDict(extra="forbid")

    data_segregation: bool = True
    network_isolation: bool = False
    storage_isolation: bool = True


class TenantSecurity(BaseModel):
    """Security policy."""

    model_config = ConfigDict(extra="forbid")

    mfa_required: bool = False
    ip_whitelist: list[str] = Field(default_factory=list)
    session_timeout: int = Field(default=240, gt=0)  # minutes


class TenantFeatures(BaseModel):
    """Structured quotas and the allowed-module list."""

    model_config = ConfigDict(extra="forbid")

    max_organizations: int = Field(default=5, ge=0)
    max_users: int = Field(default=10, ge=0)
    max_storage_gb: int = Field(default=10, ge=0)
    allowed_modules: list[str] = Field(default_factory=lambda: ["dashboard"])


class TenantSettings(BaseModel):
    """Tenant settings.

    The flat fields are kept for older consumers that read them directly;
    quota checks always use ``features``.
    """

    model_config = ConfigDict(extra="forbid")

    # Legacy flat fields
    max_users: int | None = None
    max_storage: int | None = None
    allowed_features: list[str] | None = None
    custom_branding: bool | None = None

    isolation: TenantIsolation = Field(default_factory=TenantIsolation)
    security: TenantSecurity = Field(default_factory=TenantSecurity)
    features: TenantFeatures = Field(default_factory=TenantFeatures)

    @classmethod
    def for_plan(cls, plan: Plan) -> TenantSettings:
        """Build default settings for a plan."""
        features = TenantFeatures.model_validate(PLAN_FEATURES[plan])
        return cls(
            max_users=features.max_users,
            max_storage=features.max_storage_gb,
            allowed_features=list(features.allowed_modules),
            custom_branding=plan == Plan.ENTERPRISE,
            isolation=TenantIsolation(network_isolation=plan == Plan.ENTERPRISE),
            security=TenantSecurity(
                mfa_required=plan == Plan.ENTERPRISE,
                session_timeout=480 if plan == Plan.ENTERPRISE else 240,
            ),
            features=features,
        )


class TenantMetadata(BaseModel):
    """Timestamps and ownership."""

    model_config = ConfigDict(extra="forbid")

    created_at: UtcDatetime
    expires_at: UtcDatetime | None = None
    last_access_at: UtcDatetime
    owner_user_id: str = "unknown"
    storage_used_gb: float = Field(default=0, ge=0)


class Tenant(DomainModel):
    """A top-level isolated customer account."""

    id: str
    name: str = Field(min_length=1)
    domain: str = "example.com"
    status: TenantStatus = TenantStatus.TRIAL
    plan: Plan = Plan.STARTER
    organization_ids: list[str] = Field(default_factory=list)
    settings: TenantSettings = Field(default_factory=TenantSettings)
    metadata: TenantMetadata

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value

    @field_validator("organization_ids")
    @classmethod
    def _unique_organization_ids(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _within_organization_quota(self) -> Tenant:
        limit = self.settings.features.max_organizations
        if len(self.organization_ids) > limit:
            raise ValueError(
                f"tenant has {len(self.organization_ids)} organizations, "
                f"plan allows {limit}"
            )
        return self

    def trial_expired(self, now: datetime) -> bool:
        """Check whether a trial tenant is past its expiry at ``now``."""
        if self.status != TenantStatus.TRIAL or self.metadata.expires_at is None:
            return False
        return now > self.metadata.expires_at


class TenantContext(BaseModel):
    """The principal a session is currently acting as."""

    model_config = ConfigDict(extra="forbid")

    tenant_id: str
    organization_id: str
    user_id: str
    session_id: str
