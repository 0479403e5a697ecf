"""Demo seed data.

Run with: python -m kpiboard.demo.seed
Or automatically on startup when KPIBOARD_DEMO_MODE=true
"""

from __future__ import annotations

import structlog

from kpiboard.core.entitlements import Plan
from kpiboard.core.rbac import Role
from kpiboard.models import OrganizationType
from kpiboard.services.workspace import Workspace

logger = structlog.get_logger()

DEMO_ADMIN_EMAIL = "admin@acme.com"

_ALL_FEATURES = {
    "dashboards": True,
    "exports": True,
    "email_reports": True,
    "customization": True,
    "ai_insights": True,
}


def seed_demo_data(workspace: Workspace) -> bool:
    """Seed two tenants, their organizations, users and default KPIs.

    Idempotent - does nothing once any tenant exists.

    Returns:
        True if data was seeded.
    """
    if workspace.tenants.get_all_tenants():
        logger.info("demo_data_already_seeded")
        return False

    logger.info("demo_data_seeding")
    tenants, organizations, users = workspace.tenants, workspace.organizations, workspace.users

    acme = tenants.create_tenant(
        "Acme Corporation",
        domain="acme.com",
        plan=Plan.ENTERPRISE,
        owner_user_id="demo",
    )
    tenants.activate_tenant(acme.id)

    company = organizations.create_organization(
        "Acme Corporation",
        tenant_id=acme.id,
        type=OrganizationType.COMPANY,
        settings={
            "branding": {"company_name": "Acme Corporation", "primary_color": "#1e40af"},
            "features": _ALL_FEATURES,
            "limits": {"max_users": 500, "max_dashboards": 50, "storage_gb": 1000},
        },
    )
    organizations.create_organization(
        "Sales Division",
        tenant_id=acme.id,
        parent_id=company.id,
        type=OrganizationType.DIVISION,
        settings={"branding": {"company_name": "Acme Sales"}},
    )
    organizations.create_organization(
        "Marketing Department",
        tenant_id=acme.id,
        parent_id=company.id,
        type=OrganizationType.DEPARTMENT,
        settings={"branding": {"company_name": "Acme Marketing", "theme": "dark"}},
    )

    techstart = tenants.create_tenant(
        "TechStart Inc",
        domain="techstart.io",
        plan=Plan.PROFESSIONAL,
        owner_user_id="demo",
        trial_days=30,
    )
    startup = organizations.create_organization(
        "TechStart",
        tenant_id=techstart.id,
        settings={"branding": {"company_name": "TechStart Inc", "primary_color": "#7c3aed"}},
    )

    admin = users.create_user(DEMO_ADMIN_EMAIL, "Acme Admin", company.id, role=Role.ADMIN)
    users.create_user("editor@acme.com", "Acme Editor", company.id, role=Role.EDITOR)
    users.create_user("viewer@acme.com", "Acme Viewer", company.id, role=Role.VIEWER)
    users.create_user("founder@techstart.io", "TechStart Founder", startup.id, role=Role.ADMIN)

    workspace.data_sources.create_data_source(
        "Sales Database",
        "postgresql",
        {"host": "localhost", "port": 5432, "database": "sales", "schema": "public"},
        tenant_id=acme.id,
        organization_id=company.id,
    )
    workspace.kpis.initialize_default_kpis()

    workspace.sign_in(acme.id, company.id, admin.id)
    logger.info("demo_data_seeded", tenant_id=acme.id, trial_tenant_id=techstart.id)
    return True


if __name__ == "__main__":
    from kpiboard.config import Settings
    from kpiboard.logging import configure_logging

    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    seed_demo_data(Workspace.from_settings(settings))
