"""
Celery tasks for notification delivery.
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.core.tasks import LoggedTask
from apps.core.services.email_service import EmailServiceError

logger = logging.getLogger(__name__)


@shared_task(bind=True, base=LoggedTask, max_retries=4)
def deliver_notification(self, notification_id):
    """
    Send one queued notification.

    Retries with exponential backoff (60s, 120s, 240s, ...) while the row is
    under NOTIFICATION_MAX_ATTEMPTS. After that the row is left ``failed``
    for the admin system-status view.

    Args:
        notification_id: UUID of the Notification

    Returns:
        dict: Delivery result
    """
    from apps.notifications.models import Notification
    from apps.notifications.services import NotificationService

    try:
        notification = Notification.objects.get(id=notification_id)
    except Notification.DoesNotExist:
        logger.warning(
            f"Notification {notification_id} not found",
            extra={'notification_id': notification_id}
        )
        return {'status': 'missing', 'notification_id': notification_id}

    if notification.status != Notification.Status.PENDING:
        return {'status': notification.status, 'notification_id': notification_id}

    try:
        NotificationService.deliver(notification)
    except EmailServiceError as e:
        if notification.status == Notification.Status.FAILED:
            logger.error(
                f"Notification {notification_id} gave up after {notification.attempts} attempts",
                extra={'notification_id': notification_id, 'attempts': notification.attempts}
            )
            return {'status': 'failed', 'notification_id': notification_id}
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    return {'status': 'sent', 'notification_id': notification_id}


@shared_task(bind=True, base=LoggedTask)
def process_pending_notifications(self, batch_size=100):
    """
    Deliver notifications whose on-commit dispatch never ran.

    Runs every 5 minutes via Celery Beat. Rows younger than a minute are
    skipped; their own task is most likely still in flight.

    Returns:
        dict: Summary of processing results
    """
    from apps.notifications.models import Notification
    from apps.notifications.services import NotificationService

    cutoff = timezone.now() - timedelta(minutes=1)
    due = list(Notification.objects.due_for_delivery(older_than=cutoff)[:batch_size])

    if not due:
        logger.info("No pending notifications to deliver")
        return {'status': 'success', 'total': 0, 'sent': 0, 'failed': 0}

    logger.info(f"Found {len(due)} pending notifications to deliver")

    sent_count = 0
    failed_count = 0

    for notification in due:
        try:
            NotificationService.deliver(notification)
            sent_count += 1
        except EmailServiceError:
            failed_count += 1

    logger.info(
        f"Notification sweep complete: {sent_count} sent, {failed_count} failed",
        extra={
            'total': len(due),
            'sent': sent_count,
            'failed': failed_count,
            'max_attempts': settings.NOTIFICATION_MAX_ATTEMPTS,
        }
    )

    return {
        'status': 'success',
        'total': len(due),
        'sent': sent_count,
        'failed': failed_count,
    }
