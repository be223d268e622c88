"""
Celery tasks for invitations.
"""
import logging

from celery import shared_task

from apps.core.tasks import LoggedTask

logger = logging.getLogger(__name__)


@shared_task(bind=True, base=LoggedTask)
def expire_stale_invitations(self):
    """
    Expire pending invitations past their expiry date.

    Runs hourly via Celery Beat.

    Returns:
        dict: Number of invitations expired
    """
    from apps.invitations.services import InvitationService

    expired = InvitationService.expire_stale()
    return {'status': 'success', 'expired': expired}
