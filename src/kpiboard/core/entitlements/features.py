"""Feature registry and plan definitions."""

from enum import Enum


class Plan(str, Enum):
    """Available subscription plans."""

    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class Module(str, Enum):
    """Tenant-level product areas gated by allowed_modules."""

    DASHBOARD = "dashboard"
    REPORTS = "reports"
    ANALYTICS = "analytics"
    ADMIN = "admin"


class OrganizationFeature(str, Enum):
    """Boolean capability flags on an organization."""

    DASHBOARDS = "dashboards"
    EXPORTS = "exports"
    EMAIL_REPORTS = "email_reports"
    CUSTOMIZATION = "customization"
    AI_INSIGHTS = "ai_insights"


class OrganizationLimit(str, Enum):
    """Usage caps on an organization."""

    MAX_USERS = "max_users"
    MAX_DASHBOARDS = "max_dashboards"
    DATA_RETENTION_DAYS = "data_retention_days"
    STORAGE_GB = "storage_gb"


class TenantResource(str, Enum):
    """Resources with a per-tenant quota."""

    ORGANIZATIONS = "organizations"
    USERS = "users"
    STORAGE = "storage"


# Plan quota definitions - what each plan includes
PLAN_FEATURES: dict[Plan, dict[str, int | list[str]]] = {
    Plan.FREE: {
        "max_organizations": 1,
        "max_users": 3,
        "max_storage_gb": 1,
        "allowed_modules": [Module.DASHBOARD.value],
    },
    Plan.STARTER: {
        "max_organizations": 5,
        "max_users": 10,
        "max_storage_gb": 10,
        "allowed_modules": [Module.DASHBOARD.value],
    },
    Plan.PROFESSIONAL: {
        "max_organizations": 10,
        "max_users": 50,
        "max_storage_gb": 100,
        "allowed_modules": [Module.DASHBOARD.value, Module.REPORTS.value, Module.ADMIN.value],
    },
    Plan.ENTERPRISE: {
        "max_organizations": 50,
        "max_users": 500,
        "max_storage_gb": 1000,
        "allowed_modules": [m.value for m in Module],
    },
}
