"""
Profile update request store.

A request moves pending -> approved or pending -> rejected exactly once.
The partial unique constraint keeps at most one pending request per user
even when two submissions race past the service-level check.
"""
from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.core.models import BaseModel


# Fields a user may ask to change through the approval workflow
ALLOWED_FIELDS = ('name', 'email')


class ProfileUpdateRequestQuerySet(models.QuerySet):

    def pending(self):
        return self.filter(status=ProfileUpdateRequest.Status.PENDING)

    def for_user(self, user):
        """Requests submitted by ``user`` (instance or ID)."""
        user_id = getattr(user, 'id', user)
        return self.filter(user_id=user_id)

    def reviewed(self):
        return self.exclude(status=ProfileUpdateRequest.Status.PENDING)


class ProfileUpdateRequestManager(models.Manager.from_queryset(ProfileUpdateRequestQuerySet)):
    """Manager for ProfileUpdateRequest queries."""
    pass


class ProfileUpdateRequest(BaseModel):
    """
    A user's proposed change to their own name and/or email.

    ``requested_changes`` maps allow-listed field names to proposed values.
    Review fields stay null until the request leaves ``pending``.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile_update_requests',
        help_text="User asking for the change"
    )
    requested_changes = models.JSONField(
        help_text="Proposed values keyed by field name (name, email)"
    )
    reason = models.TextField(
        blank=True,
        null=True,
        help_text="Why the user wants the change"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Review state"
    )
    requested_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the request was submitted"
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_profile_updates',
        help_text="Manager or admin who reviewed the request"
    )
    reviewed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the request was reviewed"
    )
    rejection_reason = models.TextField(
        blank=True,
        null=True,
        help_text="Reviewer's reason; required when rejected"
    )

    objects = ProfileUpdateRequestManager()

    class Meta:
        db_table = 'profile_update_requests'
        ordering = ['-requested_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user'],
                condition=Q(status='pending'),
                name='unique_pending_profile_update_per_user',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'requested_at']),
            models.Index(fields=['user', 'status']),
        ]

    def __str__(self):
        return f"Profile update {self.id} for {self.user_id} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING
