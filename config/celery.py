"""
Celery configuration for Tender Hub.
"""
import os
from celery import Celery
from celery.signals import task_prerun, task_postrun, task_failure, task_retry
import logging

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('tender_hub')

# Load configuration from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log task start."""
    logger.info(
        f"Task started: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'task_args': str(args)[:200] if args else None,
        }
    )


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    """Log task completion."""
    logger.info(
        f"Task finished: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'state': state,
            'result': str(retval)[:200] if retval else None,
        }
    )


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, einfo=None, **extra):
    """Log task failure and send to Sentry."""
    logger.error(
        f"Task failed: {sender.name}",
        extra={
            'task_id': task_id,
            'task_name': sender.name,
            'exception': str(exception)[:500] if exception else None,
        },
        exc_info=einfo.exc_info if einfo else None
    )

    from apps.core.sentry_utils import capture_exception
    capture_exception(
        exception,
        task={
            'task_id': task_id,
            'task_name': sender.name,
        }
    )


@task_retry.connect
def task_retry_handler(sender=None, request=None, reason=None, einfo=None, **extra):
    """Log task retry."""
    logger.warning(
        f"Task retry: {sender.name}",
        extra={
            'task_id': getattr(request, 'id', None),
            'task_name': sender.name,
            'reason': str(reason)[:200] if reason else None,
            'retry_count': getattr(request, 'retries', 0),
        }
    )


# Celery Beat Schedule for Periodic Tasks
app.conf.beat_schedule = {
    # Redeliver notifications whose on-commit dispatch was lost or failed
    'process-pending-notifications': {
        'task': 'apps.notifications.tasks.process_pending_notifications',
        'schedule': 300.0,  # Every 5 minutes
    },

    # Mark invitations past their expiry date as expired
    'expire-stale-invitations': {
        'task': 'apps.invitations.tasks.expire_stale_invitations',
        'schedule': 3600.0,  # Every hour
    },
}

app.conf.timezone = 'UTC'
