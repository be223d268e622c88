"""
Team management REST API views.
"""
from django.db.models import Q
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import HasRole
from apps.rbac.models import User
from apps.rbac.roles import Role, UserStatus
from apps.rbac.serializers import UserSerializer, TeamMemberUpdateSerializer
from apps.rbac.services import TeamService


@extend_schema_view(
    get=extend_schema(
        tags=['Team'],
        summary='List team members',
        description='''
List every user account, newest first.

**Filters**: `role`, `status`, `search` (name or email).

Requires manager role or higher.
        ''',
        parameters=[
            OpenApiParameter('role', OpenApiTypes.STR, enum=Role.values),
            OpenApiParameter('status', OpenApiTypes.STR, enum=UserStatus.values),
            OpenApiParameter('search', OpenApiTypes.STR, description='Match name or email'),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: UserSerializer(many=True)},
    )
)
class TeamListView(APIView):
    """
    GET /v1/team

    Required role: manager
    """
    permission_classes = APIView.permission_classes + [HasRole]
    required_role = Role.MANAGER
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        role = request.query_params.get('role')
        users = User.objects.with_role(role) if role else User.objects.all()

        user_status = request.query_params.get('status')
        if user_status:
            users = users.filter(status=user_status)

        search = request.query_params.get('search')
        if search:
            users = users.filter(Q(name__icontains=search) | Q(email__icontains=search))

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(users, request)
        return paginator.get_paginated_response(UserSerializer(page, many=True).data)


@extend_schema_view(
    get=extend_schema(
        tags=['Team'],
        summary='Get team member',
        responses={200: UserSerializer, 404: OpenApiTypes.OBJECT},
    ),
    patch=extend_schema(
        tags=['Team'],
        summary='Update team member',
        description='''
Change a member's name, role or status.

The caller must outrank the member (owners may act on anyone but
themselves). Assigning a role follows the invitation rules: managers may
assign `user`, admins may assign up to `admin`, only owners may assign
`owner`. Suspending requires manager role or higher.

A status change emails the member.
        ''',
        request=TeamMemberUpdateSerializer,
        responses={200: UserSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Suspend Member',
                value={'status': 'suspended'},
                request_only=True
            ),
            OpenApiExample(
                'Promote Member',
                value={'role': 'manager'},
                request_only=True
            ),
        ]
    ),
    delete=extend_schema(
        tags=['Team'],
        summary='Delete team member',
        description='''
Permanently delete a member account.

Requires admin role or higher and outranking the member. The last remaining
admin cannot be deleted (409).
        ''',
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    ),
)
class TeamMemberDetailView(APIView):
    """
    GET/PATCH/DELETE /v1/team/{id}
    """
    permission_classes = APIView.permission_classes + [HasRole]
    required_role = {'SAFE': Role.MANAGER, 'PATCH': Role.MANAGER, 'DELETE': Role.ADMIN}

    def get(self, request, user_id):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            raise NotFoundError("User not found")
        return Response(UserSerializer(user).data)

    def patch(self, request, user_id):
        serializer = TeamMemberUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input", details=serializer.errors)

        user = TeamService.update_member(
            request.user,
            user_id,
            request=request,
            **serializer.validated_data
        )
        return Response(UserSerializer(user).data)

    def delete(self, request, user_id):
        TeamService.delete_member(request.user, user_id, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)
