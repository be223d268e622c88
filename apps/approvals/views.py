"""
Profile update approval REST API views.

Implements endpoints for:
- Submitting a profile update (any authenticated user)
- Reviewing, listing and reporting (manager role or higher)
"""
from django.db.models import Q
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.approvals.models import ProfileUpdateRequest
from apps.approvals.serializers import (
    ProfileUpdateRequestSerializer, SubmitProfileUpdateSerializer,
    ReviewProfileUpdateSerializer, BulkReviewSerializer,
)
from apps.approvals.services import ApprovalWorkflow
from apps.audit.services import get_client_ip
from apps.core.exceptions import ValidationError, NotFoundError, AuthorizationError
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import requires_role
from apps.rbac.permissions import check_permission
from apps.rbac.roles import Role


ORDERING_FIELDS = ('requested_at', '-requested_at', 'reviewed_at', '-reviewed_at')


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationError("Invalid input", details=serializer.errors)
    return serializer.validated_data


@extend_schema(
    tags=['Approvals'],
    summary='Submit profile update',
    description='''
Ask for a change to your own name and/or email.

Only `name` and `email` may appear in `changes`. A new email must be valid
and not used by another account. Each user may have at most one pending
request; a second submission returns 409 until the first is reviewed.
    ''',
    request=SubmitProfileUpdateSerializer,
    responses={
        201: ProfileUpdateRequestSerializer,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Change Email',
            value={
                'changes': {'email': 'new@example.com'},
                'reason': 'Moved to the procurement office address'
            },
            request_only=True
        ),
        OpenApiExample(
            'Disallowed Field',
            value={
                'error': 'Invalid profile changes',
                'code': 'VALIDATION_ERROR',
                'details': {'role': ['This field cannot be changed. Allowed: name, email.']}
            },
            response_only=True,
            status_codes=['400']
        ),
        OpenApiExample(
            'Already Pending',
            value={
                'error': 'You already have a pending profile update request',
                'code': 'CONFLICT'
            },
            response_only=True,
            status_codes=['409']
        ),
    ]
)
class SubmitProfileUpdateView(APIView):
    """
    POST /v1/approvals/submit

    Requires authentication.
    """

    def post(self, request):
        data = _validated(SubmitProfileUpdateSerializer, request.data)

        update_request = ApprovalWorkflow.submit(
            request.user,
            data['changes'],
            reason=data.get('reason'),
            ip_address=get_client_ip(request),
            request=request,
        )
        return Response(
            ProfileUpdateRequestSerializer(update_request).data,
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Approvals'],
    summary='Review profile update',
    description='''
Approve or reject a pending request.

Approving writes the requested values onto the user's account. Rejecting
requires a `reason`, which is stored as given and emailed to the user.

Errors, in order of precedence:
- 404 unknown request
- 409 request already reviewed
- 400 unknown action, or reject without a reason
- 409 reviewing your own request

Required role: manager
    ''',
    request=ReviewProfileUpdateSerializer,
    responses={
        200: ProfileUpdateRequestSerializer,
        400: OpenApiTypes.OBJECT,
        403: OpenApiTypes.OBJECT,
        404: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Approve',
            value={'action': 'approve'},
            request_only=True
        ),
        OpenApiExample(
            'Reject',
            value={'action': 'reject', 'reason': 'Please use your government email address'},
            request_only=True
        ),
    ]
)
@requires_role(Role.MANAGER)
class ReviewProfileUpdateView(APIView):
    """
    POST /v1/approvals/{id}/review

    Required role: manager
    """

    def post(self, request, request_id):
        data = _validated(ReviewProfileUpdateSerializer, request.data)

        update_request = ApprovalWorkflow.review(
            request_id,
            request.user,
            data['action'],
            reason=data.get('reason'),
            ip_address=get_client_ip(request),
            request=request,
        )
        return Response(ProfileUpdateRequestSerializer(update_request).data)


@extend_schema_view(
    get=extend_schema(
        tags=['Approvals'],
        summary='List profile update requests',
        description='''
All profile update requests, newest first by default.

**Filters**: `status`, `search` (requester name or email).
**Ordering**: `requested_at`, `-requested_at`, `reviewed_at`, `-reviewed_at`.

Required role: manager
        ''',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, enum=ProfileUpdateRequest.Status.values),
            OpenApiParameter('search', OpenApiTypes.STR),
            OpenApiParameter('ordering', OpenApiTypes.STR, enum=ORDERING_FIELDS),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: ProfileUpdateRequestSerializer(many=True)},
    )
)
@requires_role(Role.MANAGER)
class ProfileUpdateRequestListView(APIView):
    """
    GET /v1/approvals

    Required role: manager
    """
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        requests = ProfileUpdateRequest.objects.select_related('user')

        request_status = request.query_params.get('status')
        if request_status:
            requests = requests.filter(status=request_status)

        search = request.query_params.get('search')
        if search:
            requests = requests.filter(Q(user__name__icontains=search) | Q(user__email__icontains=search))

        ordering = request.query_params.get('ordering')
        if ordering in ORDERING_FIELDS:
            requests = requests.order_by(ordering)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(requests, request)
        return paginator.get_paginated_response(ProfileUpdateRequestSerializer(page, many=True).data)


@extend_schema(
    tags=['Approvals'],
    summary='Get profile update request',
    description='Visible to the requester and to managers and above.',
    responses={200: ProfileUpdateRequestSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
class ProfileUpdateRequestDetailView(APIView):
    """
    GET /v1/approvals/{id}
    """

    def get(self, request, request_id):
        update_request = ProfileUpdateRequest.objects.select_related('user').filter(id=request_id).first()
        if update_request is None:
            raise NotFoundError("Profile update request not found")

        if update_request.user_id != request.user.id and \
                not check_permission(request.user).has_role_or_higher(Role.MANAGER):
            raise AuthorizationError("Not the requester and below manager")

        return Response(ProfileUpdateRequestSerializer(update_request).data)


@extend_schema(
    tags=['Approvals'],
    summary='List my profile update requests',
    parameters=[
        OpenApiParameter('page', OpenApiTypes.INT),
        OpenApiParameter('page_size', OpenApiTypes.INT),
    ],
    responses={200: ProfileUpdateRequestSerializer(many=True)},
)
class MyProfileUpdateRequestsView(APIView):
    """
    GET /v1/approvals/mine
    """
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        requests = ProfileUpdateRequest.objects.for_user(request.user).select_related('user')

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(requests, request)
        return paginator.get_paginated_response(ProfileUpdateRequestSerializer(page, many=True).data)


@extend_schema(
    tags=['Approvals'],
    summary='Count pending requests',
    responses={200: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample('Pending Count', value={'pending': 3}, response_only=True),
    ]
)
@requires_role(Role.MANAGER)
class PendingCountView(APIView):
    """
    GET /v1/approvals/count

    Required role: manager
    """

    def get(self, request):
        return Response({'pending': ApprovalWorkflow.pending_count()})


@extend_schema(
    tags=['Approvals'],
    summary='Approval statistics',
    description='''
Counts by status, average hours from submission to review, and the most
active requesters for requests submitted in the last `days` days (1-365,
default 30).

Required role: manager
    ''',
    parameters=[
        OpenApiParameter('days', OpenApiTypes.INT, description='Reporting period in days (default 30)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
)
@requires_role(Role.MANAGER)
class ApprovalStatsView(APIView):
    """
    GET /v1/approvals/stats

    Required role: manager
    """

    def get(self, request):
        try:
            days = int(request.query_params.get('days', 30))
        except (TypeError, ValueError):
            raise ValidationError("days must be an integer", details={'days': ['A valid integer is required.']})

        if not 1 <= days <= 365:
            raise ValidationError("days must be between 1 and 365", details={'days': ['Must be between 1 and 365.']})

        return Response(ApprovalWorkflow.stats(days=days))


@extend_schema(
    tags=['Approvals'],
    summary='Bulk review',
    description='''
Apply one decision to up to 100 requests.

Each request is reviewed independently; the response reports the outcome
per ID and the call itself succeeds even when some reviews fail.

Required role: manager
    ''',
    request=BulkReviewSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Bulk Approve',
            value={
                'ids': ['123e4567-e89b-12d3-a456-426614174000', '123e4567-e89b-12d3-a456-426614174001'],
                'action': 'approve'
            },
            request_only=True
        ),
        OpenApiExample(
            'Bulk Result',
            value={
                'results': [
                    {'id': '123e4567-e89b-12d3-a456-426614174000', 'success': True, 'status': 'approved'},
                    {'id': '123e4567-e89b-12d3-a456-426614174001', 'success': False,
                     'error': 'Request has already been approved', 'code': 'CONFLICT'}
                ],
                'succeeded': 1,
                'failed': 1
            },
            response_only=True
        ),
    ]
)
@requires_role(Role.MANAGER)
class BulkReviewView(APIView):
    """
    POST /v1/approvals/bulk-review

    Required role: manager
    """

    def post(self, request):
        data = _validated(BulkReviewSerializer, request.data)

        results = ApprovalWorkflow.bulk_review(
            data['ids'],
            request.user,
            data['action'],
            reason=data.get('reason'),
            ip_address=get_client_ip(request),
            request=request,
        )
        succeeded = sum(1 for result in results if result['success'])
        return Response({
            'results': results,
            'succeeded': succeeded,
            'failed': len(results) - succeeded,
        })
