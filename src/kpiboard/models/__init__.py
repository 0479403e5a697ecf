"""Domain records persisted by the registries."""

from kpiboard.models.base import DomainModel, UtcDatetime, new_id
from kpiboard.models.data_source import DataSource, DataSourceMetadata
from kpiboard.models.kpi import (
    KPIConfig,
    KpiDataSource,
    KpiFormatting,
    KpiSourceType,
    KpiTarget,
    KpiTrend,
    KpiValue,
    ValueFormat,
)
from kpiboard.models.layout import DashboardLayout, WidgetConfig, default_layout
from kpiboard.models.organization import (
    Branding,
    Organization,
    OrganizationFeatures,
    OrganizationLimits,
    OrganizationSettings,
    OrganizationType,
    Theme,
)
from kpiboard.models.tenant import (
    Tenant,
    TenantContext,
    TenantFeatures,
    TenantIsolation,
    TenantMetadata,
    TenantSecurity,
    TenantSettings,
    TenantStatus,
)
from kpiboard.models.user import InvitationStatus, User, UserInvitation, UserStatus

__all__ = [
    "Branding",
    "DashboardLayout",
    "DataSource",
    "DataSourceMetadata",
    "DomainModel",
    "InvitationStatus",
    "KPIConfig",
    "KpiDataSource",
    "KpiFormatting",
    "KpiSourceType",
    "KpiTarget",
    "KpiTrend",
    "KpiValue",
    "Organization",
    "OrganizationFeatures",
    "OrganizationLimits",
    "OrganizationSettings",
    "OrganizationType",
    "Tenant",
    "TenantContext",
    "TenantFeatures",
    "TenantIsolation",
    "TenantMetadata",
    "TenantSecurity",
    "TenantSettings",
    "TenantStatus",
    "Theme",
    "User",
    "UserInvitation",
    "UserStatus",
    "UtcDatetime",
    "ValueFormat",
    "WidgetConfig",
    "default_layout",
    "new_id",
]
