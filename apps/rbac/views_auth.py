"""
Authentication REST API views.

Implements endpoints for:
- Login and logout
- The caller's own account
- Password change
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from django.conf import settings
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError, rate_limited_response
from apps.rbac.services import AuthService
from apps.rbac.serializers import LoginSerializer, ChangePasswordSerializer, CurrentUserSerializer


def _set_session_cookie(response, token):
    response.set_cookie(
        settings.SESSION_TOKEN_COOKIE_NAME,
        token,
        max_age=settings.JWT_EXPIRATION_HOURS * 3600,
        httponly=True,
        secure=not settings.DEBUG,
        samesite='Lax',
    )


@extend_schema(
    tags=['Authentication'],
    summary='Login user',
    description='''
Authenticate user with email and password.

Returns a session token and the user's account. The token is also set as an
HTTP-only cookie for browser clients; API clients send it as
`Authorization: Bearer <token>`.

Only active accounts can sign in.

**No authentication required** - this is a public endpoint.

**Rate limits**:
- 5 requests/minute per IP address
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={
                'email': 'user@example.com',
                'password': 'SecurePass123!'
            },
            request_only=True
        ),
        OpenApiExample(
            'Success Response',
            value={
                'user': {
                    'id': '123e4567-e89b-12d3-a456-426614174000',
                    'name': 'Thandi Mokoena',
                    'email': 'user@example.com',
                    'role': 'manager',
                    'status': 'active'
                },
                'token': 'eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...',
                'message': 'Login successful'
            },
            response_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={
                'error': 'Invalid email or password',
                'code': 'AUTHENTICATION_FAILED'
            },
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    Authenticate user and return a session token.

    No authentication required.
    Rate limited to 5 requests per minute per IP address.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Login user."""
        if getattr(request, 'limited', False):
            return rate_limited_response(request, limit='5/min per IP', retry_after=60)

        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input", details=serializer.errors)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            request=request,
        )

        if not result:
            return Response(
                {
                    'error': 'Invalid email or password',
                    'code': 'AUTHENTICATION_FAILED',
                    'request_id': getattr(request, 'request_id', None),
                },
                status=status.HTTP_401_UNAUTHORIZED
            )

        response = Response(
            {
                'user': CurrentUserSerializer(result['user']).data,
                'token': result['token'],
                'message': 'Login successful'
            },
            status=status.HTTP_200_OK
        )
        _set_session_cookie(response, result['token'])
        return response


@extend_schema(
    tags=['Authentication'],
    summary='Logout user',
    description='''
End the current session.

The session token is revoked server-side until its natural expiry and the
session cookie is cleared.
    ''',
    request=None,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Success Response',
            value={'message': 'Logout successful'},
            response_only=True
        )
    ]
)
class LogoutView(APIView):
    """
    POST /v1/auth/logout

    Requires authentication.
    """

    def post(self, request):
        """Logout user."""
        AuthService.logout(request.user, token=request.auth, request=request)

        response = Response({'message': 'Logout successful'}, status=status.HTTP_200_OK)
        response.delete_cookie(settings.SESSION_TOKEN_COOKIE_NAME, samesite='Lax')
        return response


@extend_schema(
    tags=['Authentication'],
    summary='Get current user',
    description='The authenticated user, with role, status and UI capabilities.',
    responses={200: CurrentUserSerializer, 401: OpenApiTypes.OBJECT},
)
class MeView(APIView):
    """
    GET /v1/auth/me

    Requires authentication.
    """

    def get(self, request):
        return Response(CurrentUserSerializer(request.user).data)


@extend_schema(
    tags=['Authentication'],
    summary='Change password',
    description='''
Change the caller's own password.

The current password must be supplied. The new password is checked against
the configured password validators. A confirmation email is sent after the
change is committed.
    ''',
    request=ChangePasswordSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Change Password Request',
            value={
                'current_password': 'OldPass123!',
                'new_password': 'N3w-Secure-Passphrase'
            },
            request_only=True
        ),
        OpenApiExample(
            'Wrong Current Password',
            value={
                'error': 'Current password is incorrect',
                'code': 'VALIDATION_ERROR',
                'details': {'current_password': ['Current password is incorrect.']}
            },
            response_only=True,
            status_codes=['400']
        ),
    ]
)
class ChangePasswordView(APIView):
    """
    POST /v1/auth/change-password

    Requires authentication.
    """

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError("Invalid input", details=serializer.errors)

        AuthService.change_password(
            request.user,
            current_password=serializer.validated_data['current_password'],
            new_password=serializer.validated_data['new_password'],
            request=request,
        )
        return Response({'message': 'Password changed'}, status=status.HTTP_200_OK)
