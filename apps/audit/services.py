"""
Audit log writer.
"""
import logging
from typing import Any, Optional

from django.db import DatabaseError

from apps.audit.models import AuditLog
from apps.audit.schemas import serialize_metadata

logger = logging.getLogger(__name__)


def get_client_ip(request) -> Optional[str]:
    """Extract client IP from request, honouring X-Forwarded-For."""
    if request is None:
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class AuditLogWriter:
    """
    Appends entries to the audit trail.

    ``append`` is meant to be called inside the same ``transaction.atomic``
    block as the state change it records. It never swallows a failure: a
    failed write is logged and re-raised, so the surrounding transaction
    rolls back and no state change survives without its audit entry.
    """

    @classmethod
    def append(
        cls,
        action,
        actor_id: Optional[Any] = None,
        target_user_id: Optional[Any] = None,
        metadata=None,
        ip_address: Optional[str] = None,
        request=None,
    ) -> AuditLog:
        """
        Append one audit entry.

        Args:
            action: AuditAction value
            actor_id: ID of the user performing the action (None for system actions)
            target_user_id: ID of the affected user
            metadata: Instance of the metadata dataclass registered for ``action``
            ip_address: Client IP; taken from ``request`` when omitted
            request: Django or DRF request, for IP, user agent and request ID

        Returns:
            The created AuditLog

        Raises:
            ValueError: If ``metadata`` does not match the action's schema
            DatabaseError: If the row cannot be written
        """
        payload = serialize_metadata(action, metadata)

        entry = AuditLog(
            action=action,
            user_id=actor_id,
            target_user_id=target_user_id,
            metadata=payload,
            ip_address=ip_address or get_client_ip(request),
        )
        if request is not None:
            entry.user_agent = request.META.get('HTTP_USER_AGENT', '')
            entry.request_id = getattr(request, 'request_id', None) or ''

        try:
            entry.save(force_insert=True)
        except DatabaseError:
            logger.error(
                f"Failed to write audit log entry: {action}",
                extra={
                    'action': str(action),
                    'actor_id': str(actor_id) if actor_id else None,
                    'target_user_id': str(target_user_id) if target_user_id else None,
                },
                exc_info=True
            )
            raise

        logger.info(
            f"Audit: {action}",
            extra={
                'action': str(action),
                'actor_id': str(actor_id) if actor_id else None,
                'target_user_id': str(target_user_id) if target_user_id else None,
                'audit_id': str(entry.id),
            }
        )
        return entry
