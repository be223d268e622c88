"""
Audit log model.

Rows are append-only: saving an existing row, deleting one, or bulk
updating/deleting through a queryset all raise.
"""
import uuid
import logging
from datetime import timedelta
from django.db import models
from django.utils import timezone

from apps.audit.schemas import AuditAction, parse_metadata

logger = logging.getLogger(__name__)


class ImmutableAuditLogError(Exception):
    """Raised on any attempt to change or remove an audit entry."""
    pass


class AuditLogQuerySet(models.QuerySet):
    """Chainable audit queries. Bulk writes are refused."""

    def update(self, **kwargs):
        raise ImmutableAuditLogError("Audit log entries cannot be updated")

    def delete(self):
        raise ImmutableAuditLogError("Audit log entries cannot be deleted")

    def for_user(self, user_id):
        """Entries where ``user_id`` was the actor."""
        return self.filter(user_id=user_id)

    def for_target(self, target_user_id):
        """Entries about ``target_user_id``."""
        return self.filter(target_user_id=target_user_id)

    def by_action(self, action):
        return self.filter(action=action)

    def by_request(self, request_id):
        """Get all audit logs for a specific request."""
        return self.filter(request_id=request_id)

    def recent(self, days=30):
        """Get audit logs from the last N days."""
        cutoff = timezone.now() - timedelta(days=days)
        return self.filter(created_at__gte=cutoff)


class AuditLogManager(models.Manager.from_queryset(AuditLogQuerySet)):
    """Manager for AuditLog queries."""
    pass


class AuditLog(models.Model):
    """
    Immutable record of a state-changing action.

    ``user_id`` and ``target_user_id`` are plain UUIDs rather than foreign
    keys so entries outlive the users they mention.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier"
    )
    action = models.CharField(
        max_length=64,
        choices=AuditAction.choices,
        db_index=True,
        help_text="Action performed (e.g., 'profile_update_approved')"
    )
    user_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )
    target_user_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="User affected by the action"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Action-specific payload; shape is fixed per action"
    )

    # Request Context
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the request"
    )
    user_agent = models.TextField(
        blank=True,
        help_text="User agent string"
    )
    request_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the action happened"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user_id', 'created_at']),
            models.Index(fields=['target_user_id', 'created_at']),
            models.Index(fields=['action', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action} by {self.user_id or 'system'} at {self.created_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableAuditLogError("Audit log entries cannot be updated")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableAuditLogError("Audit log entries cannot be deleted")

    @property
    def typed_metadata(self):
        """Metadata as the dataclass registered for this action."""
        return parse_metadata(self.action, self.metadata)
