"""
Role and account status vocabularies.

Roles form a total order: user < manager < admin < owner. Anything that
compares roles goes through ``role_rank`` rather than comparing strings.
"""
from django.db import models


class Role(models.TextChoices):
    USER = 'user', 'User'
    MANAGER = 'manager', 'Manager'
    ADMIN = 'admin', 'Admin'
    OWNER = 'owner', 'Owner'


class UserStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    SUSPENDED = 'suspended', 'Suspended'
    PENDING = 'pending', 'Pending'


ROLE_RANKS = {
    Role.USER: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
    Role.OWNER: 4,
}


def role_rank(role) -> int:
    """Position of ``role`` in the ordering; 0 for unknown or missing roles."""
    return ROLE_RANKS.get(role, 0)
