"""Unit tests for AuthorizationGate."""

from __future__ import annotations

import pytest

from kpiboard.core.authorization import DenyReason, Operation
from kpiboard.core.entitlements import Plan
from kpiboard.core.exceptions import ForbiddenError
from kpiboard.core.rbac import Role
from kpiboard.services.workspace import Workspace
from tests.fixtures.domain_objects import ALL_FEATURES, AcmeAccount


class TestAuthorizationGate:
    """Tests for AuthorizationGate."""

    def test_admin_allowed(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that the admin can run every operation."""
        for operation in Operation:
            assert workspace.gate.is_allowed(
                operation, acme.tenant.id, acme.company.id, acme.admin.id
            ), operation

    def test_viewer_capabilities(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that viewers only view."""
        ids = (acme.tenant.id, acme.company.id, acme.viewer.id)

        assert workspace.gate.is_allowed(Operation.VIEW_DASHBOARD, *ids)
        decision = workspace.gate.check(Operation.MANAGE_USERS, *ids)
        assert not decision
        assert decision.reason == DenyReason.MISSING_CAPABILITY
        assert decision.public_message == "forbidden"

    def test_accepts_operation_names(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that string operation names are accepted."""
        assert workspace.gate.is_allowed(
            "edit_dashboard", acme.tenant.id, acme.company.id, acme.editor.id
        )

    def test_unknown_ids_deny(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that unknown or missing ids never authorize."""
        gate = workspace.gate

        assert not gate.is_allowed(
            Operation.VIEW_DASHBOARD, "t-missing", acme.company.id, acme.admin.id
        )
        assert not gate.is_allowed(Operation.VIEW_DASHBOARD, acme.tenant.id, None, acme.admin.id)
        assert not gate.is_allowed(Operation.VIEW_DASHBOARD, acme.tenant.id, acme.company.id, None)

    def test_foreign_organization_denies(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that an organization from another tenant is treated as missing."""
        other = workspace.tenants.create_tenant("Other", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        foreign = workspace.organizations.create_organization("Other Co", tenant_id=other.id)

        assert not workspace.gate.is_allowed(
            Operation.VIEW_DASHBOARD, acme.tenant.id, foreign.id, acme.admin.id
        )

    def test_non_member_denies(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that users outside the organization are treated as unknown."""
        other = workspace.tenants.create_tenant("Other", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        foreign = workspace.organizations.create_organization("Other Co", tenant_id=other.id)
        outsider = workspace.users.create_user(
            "boss@other.com", "Oz", foreign.id, role=Role.ADMIN
        )
        sibling = workspace.organizations.create_organization(
            "Acme Labs", tenant_id=acme.tenant.id, settings={"features": ALL_FEATURES}
        )

        decision = workspace.gate.check(
            Operation.VIEW_DASHBOARD, acme.tenant.id, acme.company.id, outsider.id
        )
        assert not decision
        assert decision.reason == DenyReason.MISSING_CAPABILITY
        assert not workspace.gate.is_allowed(
            Operation.VIEW_DASHBOARD, acme.tenant.id, sibling.id, acme.editor.id
        )

        workspace.organizations.add_member(sibling.id, acme.editor.id)
        assert workspace.gate.is_allowed(
            Operation.VIEW_DASHBOARD, acme.tenant.id, sibling.id, acme.editor.id
        )

    def test_suspended_tenant_denies(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that tenant state is checked first."""
        workspace.tenants.suspend_tenant(acme.tenant.id)

        decision = workspace.gate.check(
            Operation.VIEW_DASHBOARD, acme.tenant.id, acme.company.id, acme.admin.id
        )

        assert decision.reason == DenyReason.TENANT_ACCESS

    def test_plan_module_denies(self, workspace: Workspace) -> None:
        """Test that the plan's modules bound every operation."""
        tenant = workspace.tenants.create_tenant("Solo", plan=Plan.FREE)
        workspace.tenants.activate_tenant(tenant.id)
        company = workspace.organizations.create_organization(
            "Solo Co", tenant_id=tenant.id, settings={"features": ALL_FEATURES}
        )
        admin = workspace.users.create_user("admin@solo.io", "Sol", company.id, role="admin")

        assert workspace.gate.is_allowed(
            Operation.VIEW_DASHBOARD, tenant.id, company.id, admin.id
        )
        decision = workspace.gate.check(Operation.MANAGE_USERS, tenant.id, company.id, admin.id)
        assert decision.reason == DenyReason.MODULE_NOT_ALLOWED

    def test_organization_feature_denies(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that disabled organization features deny."""
        plain = workspace.organizations.create_organization("Plain", tenant_id=acme.tenant.id)
        user = workspace.users.create_user("plain@acme.com", "Pat", plain.id, role="admin")

        decision = workspace.gate.check(
            Operation.VIEW_AI_INSIGHTS, acme.tenant.id, plain.id, user.id
        )

        assert decision.reason == DenyReason.ORGANIZATION_FEATURE_DISABLED

    def test_require(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test the raising form."""
        workspace.gate.require(
            Operation.MANAGE_USERS, acme.tenant.id, acme.company.id, acme.admin.id
        )
        with pytest.raises(ForbiddenError):
            workspace.gate.require(
                Operation.MANAGE_USERS, acme.tenant.id, acme.company.id, acme.viewer.id
            )
