"""
Email preference REST API views.

Implements endpoints for:
- Reading and changing the caller's email preferences
- Unsubscribing through an emailed link (public)
"""
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError, rate_limited_response
from apps.notifications.serializers import EmailPreferenceSerializer, UnsubscribeSerializer
from apps.notifications.services import EmailPreferenceService


@extend_schema_view(
    get=extend_schema(
        tags=['Email Preferences'],
        summary='Get my email preferences',
        responses={200: EmailPreferenceSerializer},
    ),
    patch=extend_schema(
        tags=['Email Preferences'],
        summary='Update my email preferences',
        description='''
Switch optional email categories on or off.

Categories: `approval_decisions`, `user_status_changes`. Security emails
(password changes, account deletion) cannot be switched off. Unknown keys
are rejected.
        ''',
        request=OpenApiTypes.OBJECT,
        responses={200: EmailPreferenceSerializer, 400: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Mute Approval Emails',
                value={'approval_decisions': False},
                request_only=True
            ),
        ]
    ),
)
class EmailPreferenceView(APIView):
    """
    GET/PATCH /v1/email-preferences/

    Any signed-in user, for their own preferences.
    """

    def get(self, request):
        preference = EmailPreferenceService.get(request.user)
        return Response(EmailPreferenceSerializer(preference).data)

    def patch(self, request):
        changes = request.data if isinstance(request.data, dict) else None
        preference = EmailPreferenceService.update(request.user, changes, request=request)
        return Response(EmailPreferenceSerializer(preference).data)


@extend_schema(
    tags=['Email Preferences'],
    summary='Unsubscribe with a link token',
    description='''
Switch off one category (`type`) or every optional category (`all: true`)
using the token from an email's unsubscribe link. No session is needed.

Rate limited to 20 requests per hour per IP.
    ''',
    request=UnsubscribeSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 429: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Unsubscribe From Status Emails',
            value={'token': 'Zq8...', 'type': 'user_status_changes'},
            request_only=True
        ),
        OpenApiExample(
            'Unsubscribe From Everything Optional',
            value={'token': 'Zq8...', 'all': True, 'reason': 'Too many emails'},
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='20/h', method='POST', block=False), name='dispatch')
class UnsubscribeView(APIView):
    """
    POST /v1/email-preferences/unsubscribe

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='20/hour per IP', retry_after=3600)

        serializer = UnsubscribeSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input", details=serializer.errors)
        data = serializer.validated_data

        preference = EmailPreferenceService.unsubscribe(
            data['token'],
            category=data.get('type'),
            unsubscribe_all=data['all'],
            reason=data.get('reason'),
            request=request,
        )
        return Response({
            'message': 'You have been unsubscribed.',
            'preferences': EmailPreferenceSerializer(preference).data,
        })
