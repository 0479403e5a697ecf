"""Application services - the registries and their composition root."""

from kpiboard.services.authorization import AuthorizationGate
from kpiboard.services.bootstrap import BootstrapState, run_bootstrap_checks
from kpiboard.services.datasource import DataSourceService, DataSourceStatistics
from kpiboard.services.kpi import KpiConfigService
from kpiboard.services.layout import LayoutService
from kpiboard.services.organization import LoggingBrandingApplier, OrganizationService
from kpiboard.services.tenant import ResourceLimit, TenantService
from kpiboard.services.user import UserService, UserStats
from kpiboard.services.workspace import Principal, Workspace, build_store

__all__ = [
    "AuthorizationGate",
    "BootstrapState",
    "DataSourceService",
    "DataSourceStatistics",
    "KpiConfigService",
    "LayoutService",
    "LoggingBrandingApplier",
    "OrganizationService",
    "Principal",
    "ResourceLimit",
    "TenantService",
    "UserService",
    "UserStats",
    "Workspace",
    "build_store",
]
