"""Unit tests for Workspace, its settings wiring and the demo seed."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from kpiboard.adapters.storage import InMemoryStore, JsonFileStore, SqlKeyValueStore
from kpiboard.config import Settings
from kpiboard.core.authorization import Operation
from kpiboard.core.entitlements import Plan
from kpiboard.core.exceptions import ForbiddenError
from kpiboard.demo.seed import DEMO_ADMIN_EMAIL, seed_demo_data
from kpiboard.services.workspace import Principal, Workspace, build_store
from tests.fixtures.domain_objects import AcmeAccount
from tests.fixtures.mocks import FIXED_NOW, FakeClock


class TestSession:
    """Tests for signing in and out."""

    def test_sign_in(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that signing in sets every level of the principal."""
        assert workspace.principal() == Principal(
            tenant_id=acme.tenant.id, organization_id=acme.company.id, user_id=acme.admin.id
        )
        context = workspace.tenants.get_context()
        assert context is not None
        assert context.user_id == acme.admin.id
        assert workspace.users.get_user_by_id(acme.admin.id).last_login == FIXED_NOW

    def test_sign_in_rejects_mismatches(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that ids must exist and belong together."""
        other = workspace.tenants.create_tenant("Other", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        foreign = workspace.organizations.create_organization("Other Co", tenant_id=other.id)

        assert not workspace.sign_in(acme.tenant.id, acme.company.id, "user-missing")
        assert not workspace.sign_in(acme.tenant.id, "org-missing", acme.admin.id)
        assert not workspace.sign_in(acme.tenant.id, foreign.id, acme.admin.id)
        assert not workspace.sign_in(other.id, acme.company.id, acme.admin.id)
        assert workspace.principal().tenant_id == acme.tenant.id

    def test_sign_in_requires_membership(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that users only sign in to organizations they belong to."""
        other = workspace.tenants.create_tenant("Other", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        foreign = workspace.organizations.create_organization("Other Co", tenant_id=other.id)
        sibling = workspace.organizations.create_organization(
            "Acme Labs", tenant_id=acme.tenant.id
        )

        assert not workspace.sign_in(other.id, foreign.id, acme.editor.id)
        assert not workspace.sign_in(acme.tenant.id, sibling.id, acme.editor.id)
        assert workspace.principal().user_id == acme.admin.id

        assert workspace.organizations.add_member(sibling.id, acme.editor.id)
        assert workspace.sign_in(acme.tenant.id, sibling.id, acme.editor.id)
        assert workspace.principal().organization_id == sibling.id

    def test_sign_in_rejects_suspended_tenant(
        self, workspace: Workspace, acme: AcmeAccount
    ) -> None:
        """Test that suspended tenants cannot be signed in to."""
        workspace.sign_out()
        workspace.tenants.suspend_tenant(acme.tenant.id)

        assert not workspace.sign_in(acme.tenant.id, acme.company.id, acme.viewer.id)
        assert workspace.principal() == Principal(None, None, None)

    def test_sign_out(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that signing out clears the principal."""
        workspace.sign_out()

        assert workspace.principal() == Principal(None, None, None)
        assert workspace.tenants.get_context() is None
        assert not workspace.authorize(Operation.VIEW_DASHBOARD)

    def test_session_survives_reload(
        self,
        workspace: Workspace,
        acme: AcmeAccount,
        store: InMemoryStore,
        mock_client: AsyncMock,
        clock: FakeClock,
    ) -> None:
        """Test that a new workspace over the same store resumes the session."""
        reloaded = Workspace(store, mock_client, clock)

        assert reloaded.principal() == workspace.principal()


class TestAuthorization:
    """Tests for session-level authorization."""

    def test_authorize(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test decisions for the session principal."""
        assert workspace.authorize(Operation.MANAGE_USERS)
        workspace.require(Operation.MANAGE_KPIS)

        assert workspace.sign_in(acme.tenant.id, acme.company.id, acme.viewer.id)
        assert workspace.authorize(Operation.VIEW_DASHBOARD)
        with pytest.raises(ForbiddenError):
            workspace.require(Operation.MANAGE_KPIS)

    def test_switch_tenant(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test moving the admin to another tenant they belong to."""
        other = workspace.tenants.create_tenant("Subsidiary", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        branch = workspace.organizations.create_organization("Branch", tenant_id=other.id)
        workspace.organizations.add_member(branch.id, acme.admin.id)

        assert workspace.switch_tenant(other.id, branch.id)
        assert workspace.principal().tenant_id == other.id

    def test_switch_tenant_target_checked(
        self, workspace: Workspace, acme: AcmeAccount
    ) -> None:
        """Test that the target tenant must be usable."""
        other = workspace.tenants.create_tenant("Frozen", plan=Plan.ENTERPRISE)
        branch = workspace.organizations.create_organization("Branch", tenant_id=other.id)
        workspace.organizations.add_member(branch.id, acme.admin.id)
        workspace.tenants.suspend_tenant(other.id)

        assert not workspace.switch_tenant(other.id, branch.id)
        assert workspace.principal().tenant_id == acme.tenant.id

    def test_switch_tenant_requires_membership(
        self, workspace: Workspace, acme: AcmeAccount
    ) -> None:
        """Test that admins cannot switch into a tenant they are not a member of."""
        other = workspace.tenants.create_tenant("Stranger", plan=Plan.ENTERPRISE)
        workspace.tenants.activate_tenant(other.id)
        branch = workspace.organizations.create_organization("Branch", tenant_id=other.id)

        assert not workspace.switch_tenant(other.id, branch.id)
        assert workspace.principal().tenant_id == acme.tenant.id

    def test_switch_tenant_without_user(self, workspace: Workspace, acme: AcmeAccount) -> None:
        """Test that a session without a user cannot switch tenants."""
        workspace.users.logout()

        with pytest.raises(ForbiddenError):
            workspace.switch_tenant(acme.tenant.id, acme.company.id)

    def test_switch_tenant_requires_admin(
        self, workspace: Workspace, acme: AcmeAccount
    ) -> None:
        """Test that editors cannot switch tenants."""
        assert workspace.sign_in(acme.tenant.id, acme.company.id, acme.editor.id)

        with pytest.raises(ForbiddenError):
            workspace.switch_tenant(acme.tenant.id, acme.company.id)


class TestSettingsWiring:
    """Tests for building a workspace from the environment."""

    def test_build_store(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test backend selection."""
        monkeypatch.setenv("KPIBOARD_STORAGE_BACKEND", "memory")
        assert isinstance(build_store(Settings()), InMemoryStore)

        monkeypatch.setenv("KPIBOARD_STORAGE_BACKEND", "file")
        monkeypatch.setenv("KPIBOARD_STORAGE_PATH", str(tmp_path / "state"))
        assert isinstance(build_store(Settings()), JsonFileStore)

        monkeypatch.setenv("KPIBOARD_STORAGE_BACKEND", "sql")
        monkeypatch.setenv("KPIBOARD_DATABASE_URL", f"sqlite:///{tmp_path / 'kpi.db'}")
        assert isinstance(build_store(Settings()), SqlKeyValueStore)

    def test_invalid_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that unknown backends fail fast."""
        monkeypatch.setenv("KPIBOARD_STORAGE_BACKEND", "redis")

        with pytest.raises(ValueError, match="KPIBOARD_STORAGE_BACKEND"):
            Settings()

    def test_from_settings_demo_mode(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that demo mode seeds a signed-in workspace."""
        monkeypatch.setenv("KPIBOARD_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("KPIBOARD_DEMO_MODE", "true")

        workspace = Workspace.from_settings(Settings())

        assert workspace.users.get_current_user().email == DEMO_ADMIN_EMAIL
        assert workspace.authorize(Operation.MANAGE_USERS)


class TestDemoSeed:
    """Tests for seed_demo_data."""

    def test_seed(self, workspace: Workspace) -> None:
        """Test the seeded shape."""
        assert seed_demo_data(workspace)

        tenants = workspace.tenants.get_all_tenants()
        assert [t.name for t in tenants] == ["Acme Corporation", "TechStart Inc"]
        assert len(tenants[0].organization_ids) == 3
        assert len(workspace.users.get_users()) == 4
        assert len(workspace.kpis.get_configs()) == 4
        assert len(workspace.data_sources.get_all_data_sources()) == 1
        assert workspace.principal().tenant_id == tenants[0].id

    def test_seed_is_idempotent(self, workspace: Workspace) -> None:
        """Test that a second run does nothing."""
        seed_demo_data(workspace)

        assert not seed_demo_data(workspace)
        assert len(workspace.tenants.get_all_tenants()) == 2
