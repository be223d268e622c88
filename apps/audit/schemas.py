"""
Audit actions and the metadata shape each one carries.

Every ``AuditAction`` maps to exactly one metadata dataclass. The writer
refuses a payload of the wrong type, and ``parse_metadata`` rebuilds the
dataclass from a stored row, so each action's metadata is a known shape
rather than a free-form blob.
"""
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Optional

from django.db import models


class AuditAction(models.TextChoices):
    USER_LOGIN = 'user_login', 'User logged in'
    USER_LOGOUT = 'user_logout', 'User logged out'
    PASSWORD_CHANGED = 'password_changed', 'Password changed'
    PROFILE_UPDATE_REQUESTED = 'profile_update_requested', 'Profile update requested'
    PROFILE_UPDATE_APPROVED = 'profile_update_approved', 'Profile update approved'
    PROFILE_UPDATE_REJECTED = 'profile_update_rejected', 'Profile update rejected'
    TEAM_MEMBER_UPDATED = 'team_member_updated', 'Team member updated'
    ROLE_CHANGED = 'role_changed', 'Role changed'
    USER_SUSPENDED = 'user_suspended', 'User suspended'
    USER_ACTIVATED = 'user_activated', 'User activated'
    USER_DELETED = 'user_deleted', 'User deleted'
    INVITATION_CREATED = 'invitation_created', 'Invitation created'
    INVITATION_ACCEPTED = 'invitation_accepted', 'Invitation accepted'
    INVITATION_RESENT = 'invitation_resent', 'Invitation resent'
    INVITATION_CANCELLED = 'invitation_cancelled', 'Invitation cancelled'
    INVITATION_EXPIRED = 'invitation_expired', 'Invitation expired'
    EMAIL_PREFERENCES_UPDATED = 'email_preferences_updated', 'Email preferences updated'
    EMAIL_UNSUBSCRIBED = 'email_unsubscribed', 'Unsubscribed from emails'


@dataclass(frozen=True)
class SessionMetadata:
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class PasswordChangedMetadata:
    pass


@dataclass(frozen=True)
class ProfileUpdateRequestedMetadata:
    request_id: str
    requested_changes: Dict[str, str]
    reason: Optional[str] = None


@dataclass(frozen=True)
class ProfileUpdateApprovedMetadata:
    request_id: str
    previous_values: Dict[str, Any]
    new_values: Dict[str, Any]


@dataclass(frozen=True)
class ProfileUpdateRejectedMetadata:
    request_id: str
    rejection_reason: str


@dataclass(frozen=True)
class TeamMemberUpdatedMetadata:
    previous_values: Dict[str, Any]
    new_values: Dict[str, Any]


@dataclass(frozen=True)
class RoleChangedMetadata:
    previous_role: str
    new_role: str


@dataclass(frozen=True)
class StatusChangedMetadata:
    previous_status: str
    new_status: str


@dataclass(frozen=True)
class UserDeletedMetadata:
    email: str
    name: str
    role: str


@dataclass(frozen=True)
class InvitationMetadata:
    invitation_id: str
    email: str
    role: str
    expires_at: Optional[str] = None


@dataclass(frozen=True)
class EmailPreferencesUpdatedMetadata:
    previous_values: Dict[str, bool]
    new_values: Dict[str, bool]


@dataclass(frozen=True)
class EmailUnsubscribedMetadata:
    categories: List[str]
    unsubscribe_all: bool
    reason: Optional[str] = None


METADATA_SCHEMAS = {
    AuditAction.USER_LOGIN: SessionMetadata,
    AuditAction.USER_LOGOUT: SessionMetadata,
    AuditAction.PASSWORD_CHANGED: PasswordChangedMetadata,
    AuditAction.PROFILE_UPDATE_REQUESTED: ProfileUpdateRequestedMetadata,
    AuditAction.PROFILE_UPDATE_APPROVED: ProfileUpdateApprovedMetadata,
    AuditAction.PROFILE_UPDATE_REJECTED: ProfileUpdateRejectedMetadata,
    AuditAction.TEAM_MEMBER_UPDATED: TeamMemberUpdatedMetadata,
    AuditAction.ROLE_CHANGED: RoleChangedMetadata,
    AuditAction.USER_SUSPENDED: StatusChangedMetadata,
    AuditAction.USER_ACTIVATED: StatusChangedMetadata,
    AuditAction.USER_DELETED: UserDeletedMetadata,
    AuditAction.INVITATION_CREATED: InvitationMetadata,
    AuditAction.INVITATION_ACCEPTED: InvitationMetadata,
    AuditAction.INVITATION_RESENT: InvitationMetadata,
    AuditAction.INVITATION_CANCELLED: InvitationMetadata,
    AuditAction.INVITATION_EXPIRED: InvitationMetadata,
    AuditAction.EMAIL_PREFERENCES_UPDATED: EmailPreferencesUpdatedMetadata,
    AuditAction.EMAIL_UNSUBSCRIBED: EmailUnsubscribedMetadata,
}


def serialize_metadata(action, metadata) -> Dict[str, Any]:
    """
    Check ``metadata`` against the schema registered for ``action`` and
    return it as a JSON-ready dict.

    Args:
        action: AuditAction value
        metadata: Instance of the action's metadata dataclass, or None for
            schemas without required fields

    Raises:
        ValueError: Unknown action or a payload of the wrong type
    """
    schema = METADATA_SCHEMAS.get(action)
    if schema is None:
        raise ValueError(f"Unknown audit action: {action}")

    if metadata is None:
        try:
            metadata = schema()
        except TypeError as e:
            raise ValueError(f"Audit action {action} requires {schema.__name__} metadata") from e

    if type(metadata) is not schema:
        raise ValueError(
            f"Audit action {action} requires {schema.__name__} metadata, "
            f"got {type(metadata).__name__}"
        )

    return asdict(metadata)


def parse_metadata(action, data: Optional[Dict[str, Any]]):
    """Rebuild the metadata dataclass for a stored audit row."""
    schema = METADATA_SCHEMAS[action]
    known = {f.name for f in fields(schema)}
    return schema(**{key: value for key, value in (data or {}).items() if key in known})
