"""
Invitation REST API views.

Implements endpoints for:
- Listing and sending invitations (manager role or higher)
- Resending and cancelling (inviter or admin role or higher)
- Looking up and accepting an invitation by token (public)
"""
from django.conf import settings
from django.db.models import Q
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError, NotFoundError, rate_limited_response
from apps.core.pagination import StandardResultsSetPagination
from apps.core.permissions import HasRole
from apps.invitations.models import Invitation
from apps.invitations.serializers import (
    InvitationSerializer, InvitationPublicSerializer,
    CreateInvitationSerializer, AcceptInvitationSerializer,
)
from apps.invitations.services import InvitationService
from apps.rbac.roles import Role
from apps.rbac.serializers import CurrentUserSerializer


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationError("Invalid input", details=serializer.errors)
    return serializer.validated_data


@extend_schema_view(
    get=extend_schema(
        tags=['Invitations'],
        summary='List invitations',
        description='''
All invitations, newest first.

**Filters**: `status`, `role`, `search` (email).

Required role: manager
        ''',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, enum=Invitation.Status.values),
            OpenApiParameter('role', OpenApiTypes.STR, enum=list(Invitation.INVITABLE_ROLES)),
            OpenApiParameter('search', OpenApiTypes.STR),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('page_size', OpenApiTypes.INT),
        ],
        responses={200: InvitationSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['Invitations'],
        summary='Send invitation',
        description='''
Invite someone by email.

Managers may invite `user`; admins and owners may also invite `manager`
and `admin`. Invitations expire after 7 days.

**Daily quota** per inviter: admin 50, manager 20, owner unlimited.
        ''',
        request=CreateInvitationSerializer,
        responses={
            201: InvitationSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
            429: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Invite Manager',
                value={'email': 'analyst@gauteng.gov.za', 'role': 'manager'},
                request_only=True
            ),
            OpenApiExample(
                'Quota Exceeded',
                value={
                    'error': 'Daily invitation limit of 20 reached',
                    'code': 'QUOTA_EXCEEDED',
                    'details': {'limit': 20, 'sent': 20}
                },
                response_only=True,
                status_codes=['429']
            ),
        ]
    ),
)
class InvitationListCreateView(APIView):
    """
    GET/POST /v1/invitations

    Required role: manager
    """
    permission_classes = APIView.permission_classes + [HasRole]
    required_role = Role.MANAGER
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        invitations = Invitation.objects.select_related('invited_by')

        invitation_status = request.query_params.get('status')
        if invitation_status:
            invitations = invitations.filter(status=invitation_status)

        role = request.query_params.get('role')
        if role:
            invitations = invitations.filter(role=role)

        search = request.query_params.get('search')
        if search:
            invitations = invitations.filter(Q(email__icontains=search))

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(invitations, request)
        return paginator.get_paginated_response(InvitationSerializer(page, many=True).data)

    def post(self, request):
        data = _validated(CreateInvitationSerializer, request.data)

        invitation = InvitationService.create(
            request.user,
            email=data['email'],
            role=data['role'],
            request=request,
        )
        return Response(InvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Invitations'],
    summary='Resend invitation',
    description='Re-send a pending invitation and reset its expiry. Inviter or admin+ only.',
    request=None,
    responses={200: InvitationSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
)
class ResendInvitationView(APIView):
    """
    POST /v1/invitations/{id}/resend
    """
    permission_classes = APIView.permission_classes + [HasRole]
    required_role = Role.MANAGER

    def post(self, request, invitation_id):
        invitation = InvitationService.resend(invitation_id, request.user, request=request)
        return Response(InvitationSerializer(invitation).data)


@extend_schema(
    tags=['Invitations'],
    summary='Cancel invitation',
    description='Cancel a pending invitation. Inviter or admin+ only.',
    request=None,
    responses={200: InvitationSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
)
class CancelInvitationView(APIView):
    """
    POST /v1/invitations/{id}/cancel
    """
    permission_classes = APIView.permission_classes + [HasRole]
    required_role = Role.MANAGER

    def post(self, request, invitation_id):
        invitation = InvitationService.cancel(invitation_id, request.user, request=request)
        return Response(InvitationSerializer(invitation).data)


@extend_schema(
    tags=['Invitations'],
    summary='Look up invitation by token',
    description='''
Public details of an invitation, for the acceptance page.

**No authentication required** - this is a public endpoint.
    ''',
    responses={200: InvitationPublicSerializer, 404: OpenApiTypes.OBJECT},
)
class InvitationByTokenView(APIView):
    """
    GET /v1/invitations/token/{token}

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request, token):
        invitation = Invitation.objects.by_token(token)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return Response(InvitationPublicSerializer(invitation).data)


@extend_schema(
    tags=['Invitations'],
    summary='Accept invitation',
    description='''
Create an account from an invitation.

Returns the new account and a session token, also set as a cookie.

**No authentication required** - this is a public endpoint.

**Rate limits**:
- 10 requests/hour per IP address
    ''',
    request=AcceptInvitationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        404: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Accept Request',
            value={
                'token': 'k3J9vQ...',
                'name': 'Sipho Dlamini',
                'password': 'N3w-Secure-Passphrase'
            },
            request_only=True
        ),
        OpenApiExample(
            'Expired',
            value={
                'error': 'Invitation has expired',
                'code': 'CONFLICT',
                'details': {'status': 'expired'}
            },
            response_only=True,
            status_codes=['409']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='10/h', method='POST', block=False), name='dispatch')
class AcceptInvitationView(APIView):
    """
    POST /v1/invitations/accept

    No authentication required.
    Rate limited to 10 requests per hour per IP address.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='10/hour per IP', retry_after=3600)

        data = _validated(AcceptInvitationSerializer, request.data)

        result = InvitationService.accept(
            data['token'],
            name=data['name'],
            password=data['password'],
            request=request,
        )

        response = Response(
            {
                'user': CurrentUserSerializer(result['user']).data,
                'token': result['token'],
            },
            status=status.HTTP_201_CREATED
        )
        response.set_cookie(
            settings.SESSION_TOKEN_COOKIE_NAME,
            result['token'],
            max_age=settings.JWT_EXPIRATION_HOURS * 3600,
            httponly=True,
            secure=not settings.DEBUG,
            samesite='Lax',
        )
        return response
