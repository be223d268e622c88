"""
Tests for the audit log writer, the append-only model and the audit API.

Tests:
- Metadata is checked against the action's schema before anything is written
- Entries cannot be updated or deleted, singly or in bulk
- A failed write is logged and re-raised
- Admin-only listing with filters
"""
import uuid
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.test import RequestFactory

from apps.audit.models import AuditLog, ImmutableAuditLogError
from apps.audit.schemas import (
    AuditAction, RoleChangedMetadata, SessionMetadata, ProfileUpdateRejectedMetadata,
    parse_metadata,
)
from apps.audit.services import AuditLogWriter, get_client_ip


@pytest.mark.django_db
class TestAuditLogWriter:
    """Test AuditLogWriter.append."""

    def test_append_writes_entry_with_serialized_metadata(self):
        """Appending stores actor, target and metadata as a plain dict."""
        actor_id, target_id = uuid.uuid4(), uuid.uuid4()

        entry = AuditLogWriter.append(
            AuditAction.ROLE_CHANGED,
            actor_id=actor_id,
            target_user_id=target_id,
            metadata=RoleChangedMetadata(previous_role='user', new_role='manager'),
            ip_address='10.0.0.1',
        )

        stored = AuditLog.objects.get(id=entry.id)
        assert stored.action == AuditAction.ROLE_CHANGED
        assert stored.user_id == actor_id
        assert stored.target_user_id == target_id
        assert stored.metadata == {'previous_role': 'user', 'new_role': 'manager'}
        assert stored.ip_address == '10.0.0.1'

    def test_typed_metadata_round_trips(self):
        """Stored metadata can be read back as the action's dataclass."""
        entry = AuditLogWriter.append(
            AuditAction.PROFILE_UPDATE_REJECTED,
            actor_id=uuid.uuid4(),
            metadata=ProfileUpdateRejectedMetadata(request_id='r1', rejection_reason='No'),
        )

        assert entry.typed_metadata == ProfileUpdateRejectedMetadata(request_id='r1', rejection_reason='No')

    def test_wrong_metadata_type_is_rejected_before_writing(self):
        """A payload of another action's type raises ValueError and persists nothing."""
        with pytest.raises(ValueError):
            AuditLogWriter.append(
                AuditAction.ROLE_CHANGED,
                actor_id=uuid.uuid4(),
                metadata=SessionMetadata(user_agent='pytest'),
            )

        assert AuditLog.objects.count() == 0

    def test_free_form_dict_metadata_is_rejected(self):
        """Untyped dicts are not accepted as metadata."""
        with pytest.raises(ValueError):
            AuditLogWriter.append(
                AuditAction.ROLE_CHANGED,
                actor_id=uuid.uuid4(),
                metadata={'previous_role': 'user', 'new_role': 'admin'},
            )

    def test_missing_required_metadata_is_rejected(self):
        """Actions whose schema has required fields need a payload."""
        with pytest.raises(ValueError):
            AuditLogWriter.append(AuditAction.ROLE_CHANGED, actor_id=uuid.uuid4())

    def test_optional_metadata_defaults(self):
        """Actions whose schema has no required fields accept no payload."""
        entry = AuditLogWriter.append(AuditAction.USER_LOGOUT, actor_id=uuid.uuid4())

        assert entry.metadata == {'user_agent': None}

    def test_unknown_action_is_rejected(self):
        """Only actions in the closed vocabulary can be written."""
        with pytest.raises(ValueError):
            AuditLogWriter.append('something_else', actor_id=uuid.uuid4())

    def test_request_context_is_captured(self):
        """IP, user agent and request ID come from the request."""
        request = RequestFactory().get(
            '/v1/test',
            HTTP_USER_AGENT='pytest-agent',
            HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1',
        )
        request.request_id = 'req-123'

        entry = AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=uuid.uuid4(), request=request)

        assert entry.ip_address == '203.0.113.7'
        assert entry.user_agent == 'pytest-agent'
        assert entry.request_id == 'req-123'

    def test_database_failure_is_logged_and_reraised(self):
        """A failed write is never swallowed."""
        with patch.object(AuditLog, 'save', side_effect=DatabaseError('disk full')), \
                patch('apps.audit.services.logger') as mock_logger:
            with pytest.raises(DatabaseError):
                AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=uuid.uuid4())

        mock_logger.error.assert_called_once()


@pytest.mark.django_db
class TestAuditLogImmutability:
    """Test that audit entries are append-only."""

    @pytest.fixture
    def entry(self):
        return AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=uuid.uuid4())

    def test_save_existing_entry_raises(self, entry):
        """Re-saving an entry is refused."""
        entry.ip_address = '127.0.0.1'
        with pytest.raises(ImmutableAuditLogError):
            entry.save()

    def test_delete_entry_raises(self, entry):
        """Deleting an entry is refused."""
        with pytest.raises(ImmutableAuditLogError):
            entry.delete()

        assert AuditLog.objects.filter(id=entry.id).exists()

    def test_bulk_update_raises(self, entry):
        """Queryset updates are refused."""
        with pytest.raises(ImmutableAuditLogError):
            AuditLog.objects.filter(id=entry.id).update(action=AuditAction.USER_LOGOUT)

    def test_bulk_delete_raises(self, entry):
        """Queryset deletes are refused."""
        with pytest.raises(ImmutableAuditLogError):
            AuditLog.objects.all().delete()


class TestAuditHelpers:
    """Test helpers that need no database."""

    def test_client_ip_without_request(self):
        """No request means no IP."""
        assert get_client_ip(None) is None

    def test_client_ip_from_remote_addr(self):
        """REMOTE_ADDR is used when there is no proxy header."""
        request = RequestFactory().get('/', REMOTE_ADDR='192.0.2.10')
        assert get_client_ip(request) == '192.0.2.10'

    def test_parse_metadata_ignores_unknown_keys(self):
        """Rows written with extra keys still parse."""
        parsed = parse_metadata(AuditAction.ROLE_CHANGED, {
            'previous_role': 'user', 'new_role': 'admin', 'legacy': True,
        })
        assert parsed == RoleChangedMetadata(previous_role='user', new_role='admin')


@pytest.mark.django_db
class TestAuditLogAPI:
    """Test GET /v1/audit-logs/."""

    url = '/v1/audit-logs/'

    def test_admin_can_list_entries(self, auth_client, admin_user):
        """Admins see the audit trail."""
        AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=admin_user.id)
        AuditLogWriter.append(AuditAction.USER_LOGOUT, actor_id=admin_user.id)

        response = auth_client(admin_user).get(self.url)

        assert response.status_code == 200
        assert response.data['count'] == 2
        assert {row['action'] for row in response.data['results']} == {
            AuditAction.USER_LOGIN, AuditAction.USER_LOGOUT,
        }

    def test_filter_by_action_and_target(self, auth_client, admin_user, regular_user):
        """Filters narrow the listing."""
        AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=admin_user.id)
        AuditLogWriter.append(
            AuditAction.ROLE_CHANGED,
            actor_id=admin_user.id,
            target_user_id=regular_user.id,
            metadata=RoleChangedMetadata(previous_role='user', new_role='manager'),
        )

        client = auth_client(admin_user)
        by_action = client.get(self.url, {'action': AuditAction.ROLE_CHANGED})
        by_target = client.get(self.url, {'target_user_id': str(regular_user.id)})

        assert by_action.data['count'] == 1
        assert by_target.data['count'] == 1
        assert by_target.data['results'][0]['target_user_id'] == str(regular_user.id)

    def test_filter_by_request_id(self, auth_client, admin_user):
        """Entries written while handling one request can be pulled together."""
        request = RequestFactory().get('/v1/test')
        request.request_id = 'req-trace-1'
        AuditLogWriter.append(AuditAction.USER_LOGIN, actor_id=admin_user.id, request=request)
        AuditLogWriter.append(AuditAction.USER_LOGOUT, actor_id=admin_user.id)

        response = auth_client(admin_user).get(self.url, {'request_id': 'req-trace-1'})

        assert response.data['count'] == 1
        assert response.data['results'][0]['action'] == AuditAction.USER_LOGIN

    def test_invalid_filter_returns_400(self, auth_client, admin_user):
        """Malformed filters are rejected."""
        response = auth_client(admin_user).get(self.url, {'user_id': 'not-a-uuid'})

        assert response.status_code == 400

    def test_manager_is_forbidden(self, auth_client, manager_user):
        """The audit trail is admin-only."""
        response = auth_client(manager_user).get(self.url)

        assert response.status_code == 403
        assert response.data['code'] == 'PERMISSION_DENIED'

    def test_anonymous_is_unauthorized(self, api_client):
        """Unauthenticated calls get 401."""
        response = api_client.get(self.url)

        assert response.status_code == 401
