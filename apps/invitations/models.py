"""
Invitation model.

An invitation carries the role the new account will get. It is accepted at
most once; after ``expires_at`` it can only be resent or left to expire.
"""
import secrets
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel
from apps.rbac.roles import Role


def generate_invitation_token():
    return secrets.token_urlsafe(32)


class InvitationManager(models.Manager):
    """Manager for invitation queries."""

    def pending(self):
        return self.filter(status=Invitation.Status.PENDING)

    def stale(self, now=None):
        """Pending invitations past their expiry."""
        return self.pending().filter(expires_at__lte=now or timezone.now())

    def sent_by_since(self, inviter, since):
        """Invitations created by ``inviter`` since ``since``, for quotas."""
        return self.filter(invited_by=inviter, created_at__gte=since)

    def by_token(self, token):
        if not token:
            return None
        return self.filter(token=token).select_related('invited_by').first()


class Invitation(BaseModel):
    """
    An emailed offer to join Tender Hub with a given role.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        EXPIRED = 'expired', 'Expired'
        CANCELLED = 'cancelled', 'Cancelled'

    INVITABLE_ROLES = (Role.ADMIN, Role.MANAGER, Role.USER)

    email = models.EmailField(
        db_index=True,
        help_text="Address the invitation was sent to (stored lowercased)"
    )
    role = models.CharField(
        max_length=20,
        choices=[(role.value, role.label) for role in INVITABLE_ROLES],
        help_text="Role the new account receives on acceptance"
    )
    token = models.CharField(
        max_length=64,
        unique=True,
        default=generate_invitation_token,
        help_text="URL-safe secret embedded in the acceptance link"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Invitation lifecycle state"
    )
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='sent_invitations',
        help_text="User who sent the invitation"
    )
    expires_at = models.DateTimeField(
        db_index=True,
        help_text="After this the invitation can no longer be accepted"
    )
    accepted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the invitation was accepted"
    )
    accepted_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='accepted_invitation',
        help_text="Account created from this invitation"
    )

    objects = InvitationManager()

    class Meta:
        db_table = 'invitations'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email', 'status']),
            models.Index(fields=['invited_by', 'created_at']),
        ]

    def __str__(self):
        return f"Invitation for {self.email} as {self.role} ({self.status})"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    @property
    def accept_url(self):
        return f"{settings.FRONTEND_URL.rstrip('/')}/invitations/accept?token={self.token}"
