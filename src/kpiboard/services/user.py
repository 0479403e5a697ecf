"""User and role directory: users, invitations and the session user."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import structlog

from kpiboard.adapters.storage import (
    StateKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)
from kpiboard.core.clock import Clock, utc_now
from kpiboard.core.exceptions import InvalidInputError
from kpiboard.core.interfaces import KeyValueStore
from kpiboard.core.rbac import Capability, Role, UserPermissions, get_role_permissions
from kpiboard.models import InvitationStatus, User, UserInvitation, UserStatus
from kpiboard.models.base import new_id

logger = structlog.get_logger()

DEFAULT_INVITATION_TTL_DAYS = 7

__all__ = ["UserService", "UserStats", "get_role_permissions"]


@dataclass(frozen=True)
class UserStats:
    """User counts for one organization, or for everyone."""

    total: int
    active: int
    inactive: int
    pending: int
    by_role: dict[str, int] = field(default_factory=dict)


class UserService:
    """Directory of users and invitations, plus the current session user."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utc_now,
        invitation_ttl_days: int = DEFAULT_INVITATION_TTL_DAYS,
    ):
        """Load users, invitations and the session user from ``store``."""
        self.store = store
        self.clock = clock
        self.invitation_ttl = timedelta(days=invitation_ttl_days)
        self._users: list[User] = load_collection(store, StateKeys.USERS, User)
        self._invitations: list[UserInvitation] = load_collection(
            store, StateKeys.INVITATIONS, UserInvitation
        )
        self._current_user: User | None = load_value(
            store, StateKeys.CURRENT_USER, User | None, None
        )

    # Users

    def get_users(self) -> list[User]:
        """All users, in creation order."""
        return list(self._users)

    def get_user_by_id(self, user_id: str) -> User | None:
        """Get a user by id, or None."""
        return next((u for u in self._users if u.id == user_id), None)

    def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email (case-insensitive), or None."""
        email = email.lower()
        return next((u for u in self._users if u.email.lower() == email), None)

    def get_users_by_organization(self, organization_id: str) -> list[User]:
        """Users whose home organization is ``organization_id``."""
        return [u for u in self._users if u.organization_id == organization_id]

    def count_users(self, organization_ids: list[str]) -> int:
        """Count users belonging to any of ``organization_ids``."""
        wanted = set(organization_ids)
        return sum(1 for u in self._users if u.organization_id in wanted)

    def create_user(
        self,
        email: str | None = None,
        name: str | None = None,
        organization_id: str | None = None,
        *,
        role: Role | str = Role.VIEWER,
        avatar: str | None = None,
        invited_by: str | None = None,
    ) -> User:
        """Create an active user with permissions derived from ``role``.

        Raises:
            InvalidInputError: On a missing or invalid email, a blank name,
                a missing organization or an unknown role.
        """
        if not organization_id:
            raise InvalidInputError("organization_id: required", field="organization_id")
        user = User.build(
            id=new_id("user"),
            email=email,
            name=name,
            role=role,
            organization_id=organization_id,
            avatar=avatar,
            status=UserStatus.ACTIVE,
            created_at=self.clock(),
            invited_by=invited_by,
        )
        self._users.append(user)
        self._persist_users()
        logger.info(
            "user_created",
            user_id=user.id,
            organization_id=organization_id,
            role=user.role.value,
        )
        return user

    def update_user(self, user_id: str, patch: dict[str, Any]) -> bool:
        """Shallow-merge ``patch`` into a user.

        A role change re-derives permissions. Permissions cannot be
        patched on their own.

        Returns:
            False if the id is unknown.

        Raises:
            InvalidInputError: If the patch sets permissions without a role
                change, or the merged user does not validate.
        """
        index = self._index(user_id)
        if index is None:
            return False
        user = self._users[index]
        if "id" in patch:
            raise InvalidInputError("id: user id cannot be changed", field="id")
        if "permissions" in patch:
            role_changes = "role" in patch and patch["role"] != user.role
            if not role_changes:
                raise InvalidInputError(
                    "permissions: derived from role and cannot be edited", field="permissions"
                )
            patch = {k: v for k, v in patch.items() if k != "permissions"}

        updated = user.patched(patch)
        self._users[index] = updated
        self._persist_users()
        self._refresh_session(updated)
        logger.info("user_updated", user_id=user_id, updated_keys=sorted(patch))
        return True

    def update_user_role(self, user_id: str, role: Role | str) -> bool:
        """Change a user's role; permissions are recomputed from it."""
        try:
            role = Role(role)
        except ValueError as e:
            raise InvalidInputError(f"role: unknown role {role!r}", field="role") from e
        changed = self.update_user(user_id, {"role": role})
        if changed:
            logger.info("user_role_changed", user_id=user_id, role=role.value)
        return changed

    def activate_user(self, user_id: str) -> bool:
        """Set status ``active``."""
        return self.update_user(user_id, {"status": UserStatus.ACTIVE})

    def deactivate_user(self, user_id: str) -> bool:
        """Set status ``inactive``."""
        return self.update_user(user_id, {"status": UserStatus.INACTIVE})

    def delete_user(self, user_id: str) -> bool:
        """Remove a user. Ends the session if it belonged to them."""
        index = self._index(user_id)
        if index is None:
            return False
        del self._users[index]
        self._persist_users()
        if self._current_user is not None and self._current_user.id == user_id:
            self.logout()
        logger.info("user_deleted", user_id=user_id)
        return True

    def get_user_stats(self, organization_id: str | None = None) -> UserStats:
        """Count users by status and role, optionally for one organization."""
        users = (
            self.get_users_by_organization(organization_id)
            if organization_id is not None
            else self._users
        )
        return UserStats(
            total=len(users),
            active=sum(1 for u in users if u.status == UserStatus.ACTIVE),
            inactive=sum(1 for u in users if u.status == UserStatus.INACTIVE),
            pending=sum(1 for u in users if u.status == UserStatus.PENDING),
            by_role={role.value: sum(1 for u in users if u.role == role) for role in Role},
        )

    # Session

    def get_current_user(self) -> User | None:
        """The session user, or None."""
        return self._current_user

    def set_current_user(self, user: User) -> None:
        """Make ``user`` the session user."""
        self._current_user = user
        save_value(self.store, StateKeys.CURRENT_USER, user)
        logger.info("session_user_set", user_id=user.id)

    def logout(self) -> None:
        """End the session."""
        if self._current_user is not None:
            logger.info("session_ended", user_id=self._current_user.id)
        self._current_user = None
        save_value(self.store, StateKeys.CURRENT_USER, None)

    def record_login(self, user_id: str) -> bool:
        """Stamp ``last_login`` on a user."""
        return self.update_user(user_id, {"last_login": self.clock()})

    def has_permission(self, capability: Capability | str) -> bool:
        """Check a capability of the session user only.

        False when nobody is signed in or the session user is not active.
        """
        user = self._current_user
        if user is None or user.status != UserStatus.ACTIVE:
            return False
        return user.permissions.allows(Capability(capability))

    def get_role_permissions(self, role: Role | str) -> UserPermissions:
        """Permissions granted by ``role``."""
        return get_role_permissions(role)

    # Invitations

    def get_invitations(self) -> list[UserInvitation]:
        """All invitations, in creation order."""
        return list(self._invitations)

    def get_pending_invitations(self) -> list[UserInvitation]:
        """Invitations still in ``pending`` status."""
        return [i for i in self._invitations if i.status == InvitationStatus.PENDING]

    def create_invitation(
        self, email: str, role: Role | str, organization_id: str
    ) -> UserInvitation:
        """Invite ``email`` to join ``organization_id`` with ``role``.

        Raises:
            InvalidInputError: On an invalid email or role.
        """
        now = self.clock()
        invitation = UserInvitation.build(
            id=new_id("inv"),
            email=email,
            role=role,
            organization_id=organization_id,
            invited_by=self._current_user.id if self._current_user else "system",
            invited_at=now,
            expires_at=now + self.invitation_ttl,
            status=InvitationStatus.PENDING,
            token=secrets.token_urlsafe(32),
        )
        self._invitations.append(invitation)
        self._persist_invitations()
        logger.info(
            "invitation_created",
            invitation_id=invitation.id,
            organization_id=organization_id,
            role=invitation.role.value,
        )
        return invitation

    def accept_invitation(
        self, token: str, name: str | None = None, avatar: str | None = None
    ) -> User | None:
        """Redeem an invitation token, creating the invited user.

        Returns:
            The new user, or None if the token is unknown, not pending or
            expired. An expired invitation is marked ``expired``.
        """
        index = next(
            (
                i
                for i, inv in enumerate(self._invitations)
                if secrets.compare_digest(inv.token, token)
                and inv.status == InvitationStatus.PENDING
            ),
            None,
        )
        if index is None:
            return None
        invitation = self._invitations[index]

        if invitation.is_expired(self.clock()):
            self._invitations[index] = invitation.patched({"status": InvitationStatus.EXPIRED})
            self._persist_invitations()
            logger.info("invitation_expired", invitation_id=invitation.id)
            return None

        user = self.create_user(
            email=invitation.email,
            name=name or invitation.email.split("@")[0],
            organization_id=invitation.organization_id,
            role=invitation.role,
            avatar=avatar,
            invited_by=invitation.invited_by,
        )
        self._invitations[index] = invitation.patched({"status": InvitationStatus.ACCEPTED})
        self._persist_invitations()
        logger.info("invitation_accepted", invitation_id=invitation.id, user_id=user.id)
        return user

    def cancel_invitation(self, invitation_id: str) -> bool:
        """Remove an invitation."""
        remaining = [i for i in self._invitations if i.id != invitation_id]
        if len(remaining) == len(self._invitations):
            return False
        self._invitations = remaining
        self._persist_invitations()
        logger.info("invitation_cancelled", invitation_id=invitation_id)
        return True

    def resend_invitation(self, invitation_id: str) -> bool:
        """Restart the expiry window of a pending invitation."""
        index = self._invitation_index(invitation_id)
        if index is None or self._invitations[index].status != InvitationStatus.PENDING:
            return False
        now = self.clock()
        self._invitations[index] = self._invitations[index].patched(
            {"invited_at": now, "expires_at": now + self.invitation_ttl}
        )
        self._persist_invitations()
        logger.info("invitation_resent", invitation_id=invitation_id)
        return True

    # Internals

    def _refresh_session(self, user: User) -> None:
        if self._current_user is not None and self._current_user.id == user.id:
            self.set_current_user(user)

    def _index(self, user_id: str) -> int | None:
        return next((i for i, u in enumerate(self._users) if u.id == user_id), None)

    def _invitation_index(self, invitation_id: str) -> int | None:
        return next((i for i, inv in enumerate(self._invitations) if inv.id == invitation_id), None)

    def _persist_users(self) -> None:
        save_collection(self.store, StateKeys.USERS, self._users)

    def _persist_invitations(self) -> None:
        save_collection(self.store, StateKeys.INVITATIONS, self._invitations)
