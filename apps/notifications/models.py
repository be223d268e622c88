"""
Notification outbox.

Workflows write a Notification row inside their own transaction; a Celery
task renders and sends it after commit. A row left in ``pending`` (broker
down, worker crash) is picked up by the periodic sweep.

EmailPreference holds the per-user opt-outs checked before a row is written.
"""
import secrets
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel


class NotificationManager(models.Manager):
    """Manager for outbox queries."""

    def pending(self):
        return self.filter(status=Notification.Status.PENDING)

    def failed(self):
        return self.filter(status=Notification.Status.FAILED)

    def due_for_delivery(self, older_than=None):
        """
        Pending notifications still under the attempt limit.

        Args:
            older_than: Only rows created before this datetime, so the sweep
                does not race the on-commit dispatch of fresh rows
        """
        queryset = self.pending().filter(attempts__lt=settings.NOTIFICATION_MAX_ATTEMPTS)
        if older_than is not None:
            queryset = queryset.filter(created_at__lt=older_than)
        return queryset.order_by('created_at')


class Notification(BaseModel):
    """
    One templated email waiting to be sent, or the record of having sent it.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'

    template_name = models.CharField(
        max_length=100,
        help_text="Email template name under templates/emails/ (without extension)"
    )
    recipient = models.EmailField(
        db_index=True,
        help_text="Recipient email address"
    )
    subject = models.CharField(
        max_length=255,
        help_text="Email subject line"
    )
    context = models.JSONField(
        default=dict,
        blank=True,
        help_text="Template context; must be JSON-serializable"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Delivery status"
    )
    attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of delivery attempts made"
    )
    last_error = models.TextField(
        blank=True,
        help_text="Error from the most recent failed attempt"
    )
    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email was handed to the mail backend"
    )

    objects = NotificationManager()

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"{self.template_name} to {self.recipient} ({self.status})"

    def mark_sent(self):
        """Mark notification as sent."""
        self.status = self.Status.SENT
        self.sent_at = timezone.now()
        self.last_error = ''
        self.save(update_fields=['status', 'sent_at', 'last_error', 'updated_at'])

    def mark_attempt_failed(self, error_message):
        """
        Record a failed attempt. The row stays pending until the attempt
        limit is reached, then becomes failed.
        """
        self.attempts += 1
        self.last_error = str(error_message)[:2000]
        if self.attempts >= settings.NOTIFICATION_MAX_ATTEMPTS:
            self.status = self.Status.FAILED
        self.save(update_fields=['attempts', 'last_error', 'status', 'updated_at'])


def generate_unsubscribe_token():
    return secrets.token_urlsafe(32)


# Templates a user may opt out of, keyed to the preference field that
# controls them. Security and account emails (password_changed,
# account_deletion) and invitations are always sent.
OPTIONAL_TEMPLATES = {
    'approval_decision': 'approval_decisions',
    'user_status_change': 'user_status_changes',
}
PREFERENCE_FIELDS = tuple(OPTIONAL_TEMPLATES.values())


class EmailPreferenceManager(models.Manager):
    """Manager for per-user email opt-outs."""

    def for_user(self, user):
        """Preferences for ``user``, created with everything enabled on first use."""
        preference, _ = self.get_or_create(user=user)
        return preference

    def by_token(self, token):
        if not token:
            return None
        return self.filter(unsubscribe_token=token).select_related('user').first()


class EmailPreference(BaseModel):
    """
    Which optional emails a user receives.

    Every user implicitly has all categories enabled until a row says
    otherwise. The unsubscribe token lets the link in an email change the
    row without a session.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='email_preference',
        help_text="User these preferences belong to"
    )
    approval_decisions = models.BooleanField(
        default=True,
        help_text="Receive the outcome of profile update requests"
    )
    user_status_changes = models.BooleanField(
        default=True,
        help_text="Receive notice when the account is suspended or reactivated"
    )
    unsubscribe_token = models.CharField(
        max_length=64,
        unique=True,
        default=generate_unsubscribe_token,
        help_text="Secret used by unsubscribe links"
    )
    unsubscribed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user last unsubscribed from all optional emails"
    )
    unsubscribe_reason = models.TextField(
        blank=True,
        help_text="Reason given when unsubscribing"
    )

    objects = EmailPreferenceManager()

    class Meta:
        db_table = 'email_preferences'

    def __str__(self):
        return f"Email preferences for {self.user_id}"

    def allows(self, template_name) -> bool:
        """Whether an email rendered from ``template_name`` may be sent."""
        category = OPTIONAL_TEMPLATES.get(template_name)
        if category is None:
            return True
        return getattr(self, category)

    def as_dict(self):
        return {category: getattr(self, category) for category in PREFERENCE_FIELDS}

    def unsubscribe_url(self, template_name=None):
        url = f"{settings.FRONTEND_URL.rstrip('/')}/unsubscribe?token={self.unsubscribe_token}"
        category = OPTIONAL_TEMPLATES.get(template_name)
        if category:
            url += f"&type={category}"
        return url
