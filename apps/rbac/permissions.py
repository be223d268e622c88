"""
Permission evaluator.

``check_permission(user)`` maps the acting user's role to a capability set.
It has no side effects and never raises: a missing, anonymous, non-active
or unknown-role user gets a set that denies everything, so callers check
booleans instead of catching exceptions.

Rules:
- An actor may act on a target only when the actor's role strictly
  outranks the target's role, or the actor is an owner.
- Nobody may act on their own account through these checks.
- Deleting requires admin or higher. The last-admin rule needs a live
  count and is enforced by the caller.
"""
from dataclasses import dataclass
from typing import Any, Optional

from apps.rbac.roles import Role, UserStatus, ROLE_RANKS, role_rank


@dataclass(frozen=True)
class UserPermissions:
    """Capability set of one acting user."""

    user_id: Optional[Any] = None
    role: Optional[str] = None

    @property
    def rank(self) -> int:
        return role_rank(self.role)

    def has_role(self, role) -> bool:
        return self.rank > 0 and self.role == role

    def has_role_or_higher(self, role) -> bool:
        required = role_rank(role)
        return required > 0 and self.rank >= required

    def can_invite_users(self) -> bool:
        return self.has_role_or_higher(Role.MANAGER)

    def can_invite_manager(self) -> bool:
        return self.has_role_or_higher(Role.ADMIN)

    def can_invite_admin(self) -> bool:
        return self.has_role_or_higher(Role.ADMIN)

    def can_assign_role(self, role) -> bool:
        """Whether the actor may give someone ``role``, by invitation or role change."""
        if role == Role.OWNER:
            return self.has_role(Role.OWNER)
        if role == Role.ADMIN:
            return self.can_invite_admin()
        if role == Role.MANAGER:
            return self.can_invite_manager()
        if role == Role.USER:
            return self.can_invite_users()
        return False

    def outranks(self, target) -> bool:
        if self.rank == 0 or target is None:
            return False
        if self.user_id is not None and self.user_id == getattr(target, 'id', None):
            return False
        return self.role == Role.OWNER or self.rank > role_rank(getattr(target, 'role', None))

    def can_modify_user(self, target) -> bool:
        return self.has_role_or_higher(Role.MANAGER) and self.outranks(target)

    def can_suspend_user(self, target) -> bool:
        return self.has_role_or_higher(Role.MANAGER) and self.outranks(target)

    def can_delete_user(self, target) -> bool:
        return self.has_role_or_higher(Role.ADMIN) and self.outranks(target)


DENY_ALL = UserPermissions()


def check_permission(user) -> UserPermissions:
    """
    Build the capability set for ``user``.

    Args:
        user: User instance, AnonymousUser or None

    Returns:
        UserPermissions; DENY_ALL when the user cannot act at all
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return DENY_ALL

    role = getattr(user, 'role', None)
    if role not in ROLE_RANKS:
        return DENY_ALL

    if getattr(user, 'status', None) != UserStatus.ACTIVE:
        return DENY_ALL

    return UserPermissions(user_id=user.id, role=role)
