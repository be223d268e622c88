"""
Tests for core views, the exception handler and request middleware.
"""
from unittest.mock import patch

import pytest
from rest_framework import exceptions
from rest_framework.test import APIRequestFactory

from apps.approvals.services import ApprovalWorkflow
from apps.core.exceptions import (
    AuthorizationError, ConflictError, ValidationError, custom_exception_handler,
)
from apps.core.permissions import HasRole


@pytest.mark.django_db
class TestHealthCheck:
    """Test GET /v1/health."""

    def test_healthy(self, api_client):
        """Database and cache answer; Celery reports eager mode in tests."""
        response = api_client.get('/v1/health')

        assert response.status_code == 200
        assert response.data['database'] == 'healthy'
        assert response.data['cache'] == 'healthy'
        assert response.data['celery'] == 'eager'

    def test_cache_failure_returns_503(self, api_client):
        """A failing dependency makes the whole check unhealthy."""
        with patch('apps.core.views.cache') as mock_cache:
            mock_cache.set.side_effect = ConnectionError('redis down')
            response = api_client.get('/v1/health')

        assert response.status_code == 503
        assert response.data['cache'] == 'unhealthy'

    def test_request_id_header(self, api_client):
        """Every response carries a request ID."""
        response = api_client.get('/v1/health')

        assert response['X-Request-ID']


@pytest.mark.django_db
class TestSystemStatus:
    """Test GET /v1/admin/system-status."""

    def test_admin_sees_counters(self, auth_client, admin_user, regular_user):
        """Counters reflect users and pending approvals."""
        ApprovalWorkflow.submit(regular_user, {'name': 'Pending Change'})

        response = auth_client(admin_user).get('/v1/admin/system-status')

        assert response.status_code == 200
        assert response.data['users']['total'] == 2
        assert response.data['users']['by_role'] == {'admin': 1, 'user': 1}
        assert response.data['approvals']['pending'] == 1
        assert response.data['audit']['last_24h'] == 1

    def test_manager_is_forbidden(self, auth_client, manager_user):
        """System status is admin-only."""
        assert auth_client(manager_user).get('/v1/admin/system-status').status_code == 403


class TestExceptionHandler:
    """Test custom_exception_handler."""

    def _context(self, path='/v1/test'):
        request = APIRequestFactory().get(path)
        request.request_id = 'req-1'
        return {'request': request}

    def test_domain_error_shape(self):
        """Domain errors map to {error, code, details, request_id}."""
        response = custom_exception_handler(
            ConflictError("Already reviewed", details={'status': 'approved'}), self._context()
        )

        assert response.status_code == 409
        assert response.data == {
            'error': 'Already reviewed',
            'code': 'CONFLICT',
            'details': {'status': 'approved'},
            'request_id': 'req-1',
        }

    def test_validation_error_without_details(self):
        """Empty details are omitted."""
        response = custom_exception_handler(ValidationError("Bad input"), self._context())

        assert response.status_code == 400
        assert 'details' not in response.data

    def test_authorization_error_hides_reason(self):
        """403 bodies never say which rule failed."""
        response = custom_exception_handler(
            AuthorizationError("Cannot delete the owner"), self._context()
        )

        assert response.status_code == 403
        assert response.data['error'] == AuthorizationError.public_message
        assert 'owner' not in response.data['error']

    def test_drf_permission_denied_uses_error_shape(self):
        """Permission-class denials look like domain authorization errors."""
        response = custom_exception_handler(exceptions.PermissionDenied(), self._context())

        assert response.status_code == 403
        assert response.data == {
            'error': AuthorizationError.public_message,
            'code': 'PERMISSION_DENIED',
            'request_id': 'req-1',
        }

    def test_drf_not_authenticated_uses_error_shape(self):
        """Missing credentials map to AUTHENTICATION_FAILED."""
        response = custom_exception_handler(exceptions.NotAuthenticated(), self._context())

        assert response.data['code'] == 'AUTHENTICATION_FAILED'
        assert response.data['error'] == 'Authentication credentials were not provided.'
        assert 'detail' not in response.data

    def test_unhandled_error_is_500(self):
        """Unknown exceptions become a generic 500 and reach Sentry."""
        with patch('apps.core.sentry_utils.capture_exception') as mock_capture:
            response = custom_exception_handler(RuntimeError('boom'), self._context())

        assert response.status_code == 500
        assert response.data['error'] == 'Internal server error'
        assert 'boom' not in str(response.data)
        mock_capture.assert_called_once()


class TestHasRole:
    """Test per-method role resolution."""

    class View:
        required_role = {'SAFE': 'user', 'POST': 'admin'}

    @pytest.mark.parametrize('method,expected', [
        ('GET', 'user'),
        ('HEAD', 'user'),
        ('POST', 'admin'),
        ('PUT', None),
    ])
    def test_required_role_by_method(self, method, expected):
        """Explicit methods win; SAFE covers read methods."""
        request = getattr(APIRequestFactory(), method.lower())('/')

        assert HasRole._required_role(request, self.View()) == expected
