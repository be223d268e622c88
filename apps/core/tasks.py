"""
Base Celery task classes with enhanced logging and error handling.
"""
import logging
from celery import Task
from celery.exceptions import Retry
from apps.core.sentry_utils import add_breadcrumb, capture_exception, start_transaction

logger = logging.getLogger(__name__)


class LoggedTask(Task):
    """
    Base task class with enhanced logging and Sentry integration.

    This task class automatically:
    - Logs task start and completion with a result summary
    - Logs task failures and sends them to Sentry with context
    - Logs retry attempts with reason
    - Wraps each run in a Sentry transaction
    """

    def __call__(self, *args, **kwargs):
        """
        Execute task with logging and error handling.
        """
        task_id = self.request.id
        task_name = self.name

        transaction = start_transaction(
            name=f"task.{task_name}",
            op="celery.task"
        )

        try:
            logger.info(
                f"Task started: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'task_args': self._sanitize_args(args),
                    'task_kwargs': self._sanitize_kwargs(kwargs),
                }
            )
            add_breadcrumb(
                category="task",
                message=f"Task started: {task_name}",
                data={'task_id': task_id, 'task_name': task_name}
            )

            result = super().__call__(*args, **kwargs)

            logger.info(
                f"Task completed: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'result': self._sanitize_result(result),
                }
            )

            if transaction:
                transaction.set_status("ok")
                transaction.finish()

            return result

        except Retry:
            if transaction:
                transaction.set_status("aborted")
                transaction.finish()
            raise

        except Exception as exc:
            logger.error(
                f"Task failed: {task_name}",
                extra={
                    'task_id': task_id,
                    'task_name': task_name,
                    'exception': str(exc),
                },
                exc_info=True
            )
            capture_exception(
                exc,
                task={
                    'task_id': task_id,
                    'task_name': task_name,
                    'args': self._sanitize_args(args),
                }
            )

            if transaction:
                transaction.set_status("internal_error")
                transaction.finish()

            raise

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """
        Log task retry attempts.
        """
        retry_count = self.request.retries
        max_retries = self.max_retries

        logger.warning(
            f"Task retry: {self.name} (attempt {retry_count}/{max_retries})",
            extra={
                'task_id': task_id,
                'task_name': self.name,
                'retry_count': retry_count,
                'max_retries': max_retries,
                'exception': str(exc),
            }
        )

        add_breadcrumb(
            category="task",
            message=f"Task retry: {self.name}",
            level="warning",
            data={
                'task_id': task_id,
                'retry_count': retry_count,
                'exception': str(exc),
            }
        )

        super().on_retry(exc, task_id, args, kwargs, einfo)

    def _sanitize_args(self, args):
        """Truncate positional arguments for logging."""
        if not args:
            return []

        sanitized = [str(arg) for arg in args]
        if len(sanitized) > 10:
            sanitized = sanitized[:10] + ['... (truncated)']

        return sanitized

    def _sanitize_kwargs(self, kwargs):
        """Mask sensitive keyword arguments for logging."""
        if not kwargs:
            return {}

        sensitive_keys = {'password', 'token', 'secret', 'email'}

        return {
            key: '********' if any(sensitive in key.lower() for sensitive in sensitive_keys) else str(value)
            for key, value in kwargs.items()
        }

    def _sanitize_result(self, result):
        """Truncate task result for logging."""
        if result is None:
            return None

        result_str = str(result)
        if len(result_str) > 200:
            return result_str[:200] + '... (truncated)'

        return result_str
