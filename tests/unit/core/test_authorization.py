"""Unit tests for the authorization decision rules."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from kpiboard.core.authorization import (
    FORBIDDEN_MESSAGE,
    POLICIES,
    DenyReason,
    Operation,
    evaluate,
    tenant_accessible,
)
from kpiboard.core.entitlements import Plan
from kpiboard.core.rbac import Role
from kpiboard.models import (
    Organization,
    OrganizationFeatures,
    OrganizationSettings,
    Tenant,
    TenantMetadata,
    TenantSettings,
    TenantStatus,
    User,
    UserStatus,
)

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


def make_tenant(
    status: TenantStatus = TenantStatus.ACTIVE,
    plan: Plan = Plan.ENTERPRISE,
    expires_at: datetime | None = None,
) -> Tenant:
    return Tenant(
        id="tenant-1",
        name="Acme",
        status=status,
        plan=plan,
        organization_ids=["org-1"],
        settings=TenantSettings.for_plan(plan),
        metadata=TenantMetadata(created_at=NOW, last_access_at=NOW, expires_at=expires_at),
    )


def make_organization(**features: bool) -> Organization:
    return Organization(
        id="org-1",
        name="Acme Corp",
        settings=OrganizationSettings(features=OrganizationFeatures(**features)),
        created_at=NOW,
    )


def make_user(role: Role = Role.ADMIN, status: UserStatus = UserStatus.ACTIVE) -> User:
    return User(
        id="user-1",
        email="ada@acme.com",
        name="Ada",
        role=role,
        status=status,
        organization_id="org-1",
        created_at=NOW,
    )


class TestTenantAccessible:
    """Tests for tenant_accessible."""

    @pytest.mark.parametrize("status", [TenantStatus.ACTIVE, TenantStatus.TRIAL])
    def test_usable_statuses(self, status: TenantStatus) -> None:
        """Test that active and trial tenants are accessible."""
        assert tenant_accessible(make_tenant(status=status), NOW)

    @pytest.mark.parametrize("status", [TenantStatus.SUSPENDED, TenantStatus.INACTIVE])
    def test_blocked_statuses(self, status: TenantStatus) -> None:
        """Test that suspended and inactive tenants are not."""
        assert not tenant_accessible(make_tenant(status=status), NOW)

    def test_unknown_tenant(self) -> None:
        """Test that a missing tenant is not accessible."""
        assert not tenant_accessible(None, NOW)

    def test_expired_trial(self) -> None:
        """Test that a trial past its expiry is not accessible."""
        tenant = make_tenant(status=TenantStatus.TRIAL, expires_at=NOW - timedelta(seconds=1))
        assert not tenant_accessible(tenant, NOW)

    def test_expiry_ignored_for_active(self) -> None:
        """Test that expiry only applies to trials."""
        tenant = make_tenant(status=TenantStatus.ACTIVE, expires_at=NOW - timedelta(days=1))
        assert tenant_accessible(tenant, NOW)


class TestEvaluate:
    """Tests for evaluate."""

    def test_every_operation_has_a_policy(self) -> None:
        """Test that no operation is left without rules."""
        assert set(POLICIES) == set(Operation)

    def test_admin_allowed(self) -> None:
        """Test the happy path."""
        decision = evaluate(
            Operation.MANAGE_USERS, make_tenant(), make_organization(), make_user(), NOW
        )

        assert decision
        assert decision.reason is None
        assert decision.public_message is None

    def test_suspended_tenant_denied(self) -> None:
        """Test that tenant access is checked first."""
        decision = evaluate(
            Operation.VIEW_DASHBOARD,
            make_tenant(status=TenantStatus.SUSPENDED),
            make_organization(),
            make_user(),
            NOW,
        )

        assert not decision
        assert decision.reason == DenyReason.TENANT_ACCESS

    def test_expired_trial_denied(self) -> None:
        """Test that an expired trial denies even admins."""
        tenant = make_tenant(status=TenantStatus.TRIAL, expires_at=NOW - timedelta(days=1))

        decision = evaluate(Operation.VIEW_DASHBOARD, tenant, make_organization(), make_user(), NOW)

        assert decision.reason == DenyReason.TENANT_ACCESS

    def test_module_not_in_plan(self) -> None:
        """Test that starter tenants have no admin module."""
        decision = evaluate(
            Operation.MANAGE_USERS,
            make_tenant(plan=Plan.STARTER),
            make_organization(),
            make_user(),
            NOW,
        )

        assert decision.reason == DenyReason.MODULE_NOT_ALLOWED

    def test_organization_feature_disabled(self) -> None:
        """Test that organization flags gate operations."""
        decision = evaluate(
            Operation.VIEW_AI_INSIGHTS,
            make_tenant(),
            make_organization(ai_insights=False),
            make_user(),
            NOW,
        )

        assert decision.reason == DenyReason.ORGANIZATION_FEATURE_DISABLED

    def test_missing_organization_denied(self) -> None:
        """Test that an unknown organization denies."""
        decision = evaluate(Operation.MANAGE_USERS, make_tenant(), None, make_user(), NOW)

        assert decision.reason == DenyReason.ORGANIZATION_FEATURE_DISABLED

    def test_viewer_cannot_edit(self) -> None:
        """Test that the user's capability is checked."""
        decision = evaluate(
            Operation.EDIT_DASHBOARD,
            make_tenant(),
            make_organization(),
            make_user(role=Role.VIEWER),
            NOW,
        )

        assert decision.reason == DenyReason.MISSING_CAPABILITY

    def test_inactive_user_denied(self) -> None:
        """Test that deactivated admins can do nothing."""
        decision = evaluate(
            Operation.VIEW_DASHBOARD,
            make_tenant(),
            make_organization(),
            make_user(status=UserStatus.INACTIVE),
            NOW,
        )

        assert decision.reason == DenyReason.MISSING_CAPABILITY

    def test_unknown_user_denied(self) -> None:
        """Test that a missing user denies."""
        decision = evaluate(Operation.VIEW_DASHBOARD, make_tenant(), make_organization(), None, NOW)

        assert decision.reason == DenyReason.MISSING_CAPABILITY

    def test_public_message_is_generic(self) -> None:
        """Test that the outward message never names the failed check."""
        decision = evaluate(Operation.VIEW_DASHBOARD, None, None, None, NOW)

        assert decision.public_message == FORBIDDEN_MESSAGE == "forbidden"
