"""Entitlements: plans, modules, organization feature flags and limits."""

from kpiboard.core.entitlements.features import (
    PLAN_FEATURES,
    Module,
    OrganizationFeature,
    OrganizationLimit,
    Plan,
    TenantResource,
)

__all__ = [
    "Module",
    "OrganizationFeature",
    "OrganizationLimit",
    "PLAN_FEATURES",
    "Plan",
    "TenantResource",
]
