"""
Tests for the permission evaluator.

Tests:
- Role ordering and role checks
- Acting on other users requires strictly outranking them (owners excepted)
- Nobody acts on their own account
- Anonymous, non-active and unknown-role users are denied everything
"""
import uuid
from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st

from apps.rbac.permissions import check_permission, DENY_ALL
from apps.rbac.roles import Role, UserStatus, role_rank


ROLES = [Role.USER, Role.MANAGER, Role.ADMIN, Role.OWNER]

roles = st.sampled_from(ROLES)
statuses = st.sampled_from(list(UserStatus.values))


def make_actor(role, status=UserStatus.ACTIVE, user_id=None):
    return SimpleNamespace(
        id=user_id or uuid.uuid4(),
        role=role,
        status=status,
        is_authenticated=True,
    )


class TestRoleOrdering:
    """Test has_role and has_role_or_higher."""

    @given(actor_role=roles, required=roles)
    def test_role_or_higher_follows_rank(self, actor_role, required):
        """has_role_or_higher is exactly rank comparison."""
        permissions = check_permission(make_actor(actor_role))

        assert permissions.has_role_or_higher(required) == (role_rank(actor_role) >= role_rank(required))

    @given(actor_role=roles, required=roles)
    def test_has_role_is_exact(self, actor_role, required):
        """has_role only matches the same role."""
        assert check_permission(make_actor(actor_role)).has_role(required) == (actor_role == required)

    def test_unknown_required_role_is_never_met(self):
        """An unknown required role is not satisfied even by an owner."""
        assert not check_permission(make_actor(Role.OWNER)).has_role_or_higher('superuser')

    @pytest.mark.parametrize('role,expected', [
        (Role.USER, (False, False, False)),
        (Role.MANAGER, (True, False, False)),
        (Role.ADMIN, (True, True, True)),
        (Role.OWNER, (True, True, True)),
    ])
    def test_invitation_capabilities(self, role, expected):
        """Managers invite users; admins and owners also invite managers and admins."""
        permissions = check_permission(make_actor(role))

        assert (
            permissions.can_invite_users(),
            permissions.can_invite_manager(),
            permissions.can_invite_admin(),
        ) == expected

    def test_only_owner_assigns_owner(self):
        """The owner role can only be handed out by an owner."""
        assert check_permission(make_actor(Role.OWNER)).can_assign_role(Role.OWNER)
        assert not check_permission(make_actor(Role.ADMIN)).can_assign_role(Role.OWNER)

    def test_manager_assigns_only_user(self):
        """Managers may only assign the user role."""
        permissions = check_permission(make_actor(Role.MANAGER))

        assert permissions.can_assign_role(Role.USER)
        assert not permissions.can_assign_role(Role.MANAGER)
        assert not permissions.can_assign_role(Role.ADMIN)
        assert not permissions.can_assign_role('unknown')


class TestActingOnUsers:
    """Test can_modify_user, can_suspend_user and can_delete_user."""

    @given(actor_role=roles, target_role=roles)
    def test_modify_requires_outranking(self, actor_role, target_role):
        """Managers and above modify strictly lower roles; owners modify anyone else."""
        permissions = check_permission(make_actor(actor_role))
        target = make_actor(target_role)

        expected = role_rank(actor_role) >= role_rank(Role.MANAGER) and (
            actor_role == Role.OWNER or role_rank(actor_role) > role_rank(target_role)
        )
        assert permissions.can_modify_user(target) == expected
        assert permissions.can_suspend_user(target) == expected

    @given(actor_role=roles, target_role=roles)
    def test_delete_requires_admin(self, actor_role, target_role):
        """Deleting additionally requires admin or higher."""
        permissions = check_permission(make_actor(actor_role))
        target = make_actor(target_role)

        if role_rank(actor_role) < role_rank(Role.ADMIN):
            assert not permissions.can_delete_user(target)
        else:
            assert permissions.can_delete_user(target) == permissions.can_modify_user(target)

    @given(role=roles)
    def test_never_acts_on_self(self, role):
        """No role, owner included, may modify, suspend or delete itself."""
        actor = make_actor(role)
        permissions = check_permission(actor)

        assert not permissions.can_modify_user(actor)
        assert not permissions.can_suspend_user(actor)
        assert not permissions.can_delete_user(actor)

    def test_missing_target_is_denied(self):
        """A None target is never actionable."""
        assert not check_permission(make_actor(Role.OWNER)).can_modify_user(None)


class TestDenyAll:
    """Test users who cannot act at all."""

    @given(role=roles, status=statuses)
    def test_non_active_users_are_denied(self, role, status):
        """Only active users get capabilities."""
        permissions = check_permission(make_actor(role, status=status))

        if status == UserStatus.ACTIVE:
            assert permissions.has_role_or_higher(Role.USER)
        else:
            assert permissions == DENY_ALL
            assert not permissions.has_role_or_higher(Role.USER)
            assert not permissions.can_invite_users()

    def test_none_and_anonymous_are_denied(self):
        """Missing and unauthenticated users get the deny-all set."""
        anonymous = SimpleNamespace(is_authenticated=False, role=Role.OWNER, status=UserStatus.ACTIVE)

        assert check_permission(None) == DENY_ALL
        assert check_permission(anonymous) == DENY_ALL

    @given(role=st.text(max_size=12).filter(lambda value: value not in ROLES))
    def test_unknown_role_is_denied(self, role):
        """Roles outside the vocabulary get nothing."""
        permissions = check_permission(make_actor(role))

        assert permissions == DENY_ALL
        assert not permissions.can_modify_user(make_actor(Role.USER))
