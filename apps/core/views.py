"""
Core API views: health check and system status.
"""
from datetime import timedelta

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.db import connection
from django.db.models import Count
from django.core.cache import cache
from django.conf import settings
from django.utils import timezone
from drf_spectacular.utils import extend_schema
import logging

from apps.core.permissions import requires_role

logger = logging.getLogger(__name__)


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /v1/health

    Returns 200 if all dependencies are healthy, 503 otherwise.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        tags=['Monitoring'],
        summary="Health check",
        description="Check the health of the database, cache and task broker",
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                    'celery': {'type': 'string'},
                }
            },
            503: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string'},
                    'errors': {'type': 'array', 'items': {'type': 'string'}},
                }
            }
        }
    )
    def get(self, request):
        """Check health of all dependencies."""
        health_status = {
            'status': 'healthy',
            'database': 'unknown',
            'cache': 'unknown',
            'celery': 'unknown',
        }
        errors = []

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            health_status['database'] = 'healthy'
        except Exception as e:
            health_status['database'] = 'unhealthy'
            errors.append(f"Database: {str(e)}")
            logger.error("Database health check failed", exc_info=True)

        try:
            cache.set('health_check', 'ok', timeout=10)
            if cache.get('health_check') == 'ok':
                health_status['cache'] = 'healthy'
            else:
                health_status['cache'] = 'unhealthy'
                errors.append("Cache: Unable to read test key")
        except Exception as e:
            health_status['cache'] = 'unhealthy'
            errors.append(f"Cache: {str(e)}")
            logger.error("Cache health check failed", exc_info=True)

        # Tasks run inline when eager, so there are no workers to ask
        if settings.CELERY_TASK_ALWAYS_EAGER:
            health_status['celery'] = 'eager'
        else:
            try:
                from config.celery import app as celery_app
                stats = celery_app.control.inspect(timeout=2.0).stats()
                if stats:
                    health_status['celery'] = 'healthy'
                else:
                    health_status['celery'] = 'unhealthy'
                    errors.append("Celery: No workers available")
            except Exception as e:
                health_status['celery'] = 'unhealthy'
                errors.append(f"Celery: {str(e)}")
                logger.error("Celery health check failed", exc_info=True)

        if errors:
            health_status['status'] = 'unhealthy'
            health_status['errors'] = errors
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(health_status, status=status.HTTP_200_OK)


@requires_role('admin')
class SystemStatusView(APIView):
    """
    GET /v1/admin/system-status

    Operational counters for admins: team composition, approval and
    invitation backlogs, notification delivery and recent audit volume.
    """

    @extend_schema(
        tags=['Monitoring'],
        summary="System status",
        description="Counts of users, pending work and notification delivery. Requires admin role or higher.",
    )
    def get(self, request):
        from apps.rbac.models import User
        from apps.approvals.models import ProfileUpdateRequest
        from apps.invitations.models import Invitation
        from apps.notifications.models import Notification
        from apps.audit.models import AuditLog

        def counts_by(queryset, field):
            return {
                row[field]: row['total']
                for row in queryset.values(field).annotate(total=Count('id')).order_by(field)
            }

        notification_counts = counts_by(Notification.objects.all(), 'status')

        return Response({
            'users': {
                'total': User.objects.count(),
                'by_role': counts_by(User.objects.all(), 'role'),
                'by_status': counts_by(User.objects.all(), 'status'),
            },
            'approvals': {
                'pending': ProfileUpdateRequest.objects.pending().count(),
            },
            'invitations': {
                'pending': Invitation.objects.filter(status=Invitation.Status.PENDING).count(),
            },
            'notifications': {
                'pending': notification_counts.get(Notification.Status.PENDING, 0),
                'failed': notification_counts.get(Notification.Status.FAILED, 0),
            },
            'audit': {
                'last_24h': AuditLog.objects.filter(
                    created_at__gte=timezone.now() - timedelta(hours=24)
                ).count(),
            },
            'generated_at': timezone.now().isoformat(),
        })
