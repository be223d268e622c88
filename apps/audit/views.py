"""
Audit log REST API views.
"""
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import requires_role
from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer, AuditLogFilterSerializer


@requires_role('admin')
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs

    List audit entries, newest first.
    Supports filtering by action, actor, target user, request ID and date range.

    Required role: admin
    """

    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Audit'],
        summary='List audit log entries',
        description='Paginated audit trail. Requires admin role or higher.',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR, description='Filter by action tag'),
            OpenApiParameter('user_id', OpenApiTypes.UUID, description='Filter by acting user'),
            OpenApiParameter('target_user_id', OpenApiTypes.UUID, description='Filter by affected user'),
            OpenApiParameter('request_id', OpenApiTypes.STR, description='Entries written while handling one request'),
            OpenApiParameter('since', OpenApiTypes.DATETIME, description='Entries created at or after'),
            OpenApiParameter('until', OpenApiTypes.DATETIME, description='Entries created at or before'),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: AuditLogSerializer(many=True)},
    )
    def get(self, request):
        filters = AuditLogFilterSerializer(data=request.query_params)
        if not filters.is_valid():
            raise ValidationError("Invalid filters", details=filters.errors)
        params = filters.validated_data

        logs = AuditLog.objects.all()

        if params.get('action'):
            logs = logs.by_action(params['action'])
        if params.get('user_id'):
            logs = logs.for_user(params['user_id'])
        if params.get('target_user_id'):
            logs = logs.for_target(params['target_user_id'])
        if params.get('request_id'):
            logs = logs.by_request(params['request_id'])
        if params.get('since'):
            logs = logs.filter(created_at__gte=params['since'])
        if params.get('until'):
            logs = logs.filter(created_at__lte=params['until'])

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(logs, request)

        return paginator.get_paginated_response(AuditLogSerializer(page, many=True).data)
