"""
Exception taxonomy and the DRF exception handler.
"""
import logging
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from rest_framework import exceptions as drf_exceptions
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class TenderHubException(Exception):
    """
    Base exception for Tender Hub domain errors.

    Subclasses set ``status_code`` and ``code``; ``custom_exception_handler``
    turns them into ``{error, code, details, request_id}`` responses.
    """
    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TenderHubException):
    """Raised when input validation fails. ``details`` maps field names to messages."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class AuthenticationError(TenderHubException):
    """Raised when authentication fails."""
    status_code = 401
    code = 'AUTHENTICATION_FAILED'


class AuthorizationError(TenderHubException):
    """
    Raised when the caller's role does not allow the action.

    The response never says which rule failed.
    """
    status_code = 403
    code = 'PERMISSION_DENIED'
    public_message = 'You do not have permission to perform this action.'


class NotFoundError(TenderHubException):
    """Raised when a referenced record does not exist."""
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(TenderHubException):
    """Raised when the action conflicts with the current state of a record."""
    status_code = 409
    code = 'CONFLICT'


class QuotaExceededError(TenderHubException):
    """Raised when a per-user daily quota is used up."""
    status_code = 429
    code = 'QUOTA_EXCEEDED'


def rate_limited_response(request, limit: str, retry_after: int = 60):
    """
    Build the 429 response for a request flagged by django-ratelimit.

    Views decorate ``dispatch`` with ``ratelimit(..., block=False)`` and call
    this when ``request.limited`` is set.
    """
    from apps.core.logging import SecurityLogger

    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    email = request.data.get('email') if isinstance(getattr(request, 'data', None), dict) else None

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=ip_address,
        user_email=email,
        limit=limit
    )

    response = Response(
        {
            'error': 'Rate limit exceeded. Please try again later.',
            'code': 'RATE_LIMIT_EXCEEDED',
            'request_id': getattr(request, 'request_id', None),
            'retry_after': retry_after,
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS
    )
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, TenderHubException):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"Request rejected: {exc.__class__.__name__}",
            extra={
                'code': exc.code,
                'error_message': exc.message,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )

        if isinstance(exc, AuthorizationError):
            body = {'error': exc.public_message, 'code': exc.code}
        else:
            body = {'error': exc.message, 'code': exc.code}
            if exc.details:
                body['details'] = exc.details
        body['request_id'] = request_id
        return Response(body, status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=(type(exc), exc, exc.__traceback__)
        )

        from apps.core.sentry_utils import capture_exception
        capture_exception(exc, request={'request_id': request_id, 'path': request.path if request else None})

        return Response(
            {
                'error': 'Internal server error',
                'detail': 'An unexpected error occurred',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Permission and authentication denials from DRF use the domain error shape
    if isinstance(exc, (drf_exceptions.PermissionDenied, DjangoPermissionDenied)):
        response.data = {
            'error': AuthorizationError.public_message,
            'code': AuthorizationError.code,
        }
    elif isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        response.data = {
            'error': str(exc.detail),
            'code': AuthenticationError.code,
        }

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
