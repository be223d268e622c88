"""
Notification outbox service.
"""
import logging
from typing import Any, Dict, Optional

from django.db import transaction

from apps.core.services.email_service import EmailService, EmailServiceError
from apps.notifications.models import EmailPreference, Notification, OPTIONAL_TEMPLATES
from apps.rbac.models import User

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Queues templated emails and delivers them.

    ``enqueue`` is called inside the caller's transaction. Optional
    templates are skipped for recipients who opted out. The Celery
    dispatch is registered with ``transaction.on_commit``, so a rolled back
    workflow never sends mail, and a broker or SMTP failure never rolls back
    the workflow.
    """

    @classmethod
    def enqueue(
        cls,
        template_name: str,
        recipient: str,
        subject: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """
        Write a pending notification and schedule its delivery after commit.

        Optional templates sent to a registered user honour the user's
        email preferences and carry an ``unsubscribe_url`` in their context.

        Args:
            template_name: Template under templates/emails/ (without extension)
            recipient: Recipient email address
            subject: Email subject line
            context: JSON-serializable template context

        Returns:
            The pending Notification, or None if the recipient opted out
        """
        context = dict(context or {})

        if template_name in OPTIONAL_TEMPLATES:
            user = User.objects.by_email(recipient)
            if user is not None:
                preference = EmailPreference.objects.for_user(user)
                if not preference.allows(template_name):
                    logger.info(
                        f"Notification skipped by email preference: {template_name}",
                        extra={'user_id': str(user.id), 'template_name': template_name}
                    )
                    return None
                context['unsubscribe_url'] = preference.unsubscribe_url(template_name)

        notification = Notification.objects.create(
            template_name=template_name,
            recipient=recipient,
            subject=subject,
            context=context,
        )

        logger.info(
            f"Notification queued: {template_name}",
            extra={
                'notification_id': str(notification.id),
                'template_name': template_name,
            }
        )

        notification_id = str(notification.id)
        transaction.on_commit(lambda: cls._dispatch(notification_id))
        return notification

    @staticmethod
    def _dispatch(notification_id: str):
        from apps.notifications.tasks import deliver_notification

        try:
            deliver_notification.delay(notification_id)
        except Exception as e:
            # Row stays pending; the periodic sweep delivers it later.
            logger.warning(
                f"Could not dispatch notification {notification_id}: {e}",
                extra={'notification_id': notification_id}
            )

    @classmethod
    def deliver(cls, notification: Notification) -> bool:
        """
        Render and send one notification.

        Args:
            notification: Pending Notification

        Returns:
            True once sent; True without sending if it was already sent

        Raises:
            EmailServiceError: If rendering or sending fails; the attempt is
                recorded on the row before re-raising
        """
        if notification.status == Notification.Status.SENT:
            return True

        try:
            EmailService.send_email(
                to_emails=[notification.recipient],
                subject=notification.subject,
                template_name=notification.template_name,
                template_context=notification.context,
            )
        except EmailServiceError as e:
            notification.mark_attempt_failed(e)
            logger.warning(
                f"Notification delivery failed: {notification.template_name}",
                extra={
                    'notification_id': str(notification.id),
                    'attempts': notification.attempts,
                    'error_message': str(e),
                }
            )
            raise

        notification.mark_sent()
        logger.info(
            f"Notification sent: {notification.template_name}",
            extra={'notification_id': str(notification.id)}
        )
        return True
