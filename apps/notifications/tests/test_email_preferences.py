"""
Tests for email preferences and unsubscribe links.

Tests:
- Opted-out users get no outbox row for optional templates
- Security emails ignore preferences
- Preference updates and unsubscribes are audited
- The preference and unsubscribe endpoints
"""
import pytest

from apps.approvals.services import ApprovalWorkflow, APPROVE
from apps.audit.models import AuditLog
from apps.audit.schemas import AuditAction
from apps.core.exceptions import NotFoundError, ValidationError
from apps.notifications.models import EmailPreference, Notification
from apps.notifications.services import EmailPreferenceService, NotificationService


@pytest.mark.django_db
class TestPreferenceGate:
    """Test that enqueue honours opt-outs."""

    def test_opted_out_template_is_skipped(self, regular_user):
        """No row is written for a muted category."""
        EmailPreferenceService.update(regular_user, {'approval_decisions': False})

        result = NotificationService.enqueue(
            template_name='approval_decision',
            recipient=regular_user.email,
            subject='Decision',
            context={'name': regular_user.name, 'decision': 'approved', 'changes': {}},
        )

        assert result is None
        assert not Notification.objects.filter(template_name='approval_decision').exists()

    def test_optional_template_carries_unsubscribe_link(self, regular_user):
        """Sent optional emails link to the category's unsubscribe page."""
        notification = NotificationService.enqueue(
            template_name='user_status_change',
            recipient=regular_user.email,
            subject='Status changed',
            context={'name': regular_user.name},
        )

        token = EmailPreference.objects.get(user=regular_user).unsubscribe_token
        assert notification.context['unsubscribe_url'].endswith(f'token={token}&type=user_status_changes')

    def test_security_email_ignores_preferences(self, regular_user):
        """Password change notices go out even after unsubscribing from everything."""
        preference = EmailPreferenceService.get(regular_user)
        EmailPreferenceService.unsubscribe(preference.unsubscribe_token, unsubscribe_all=True)

        notification = NotificationService.enqueue(
            template_name='password_changed',
            recipient=regular_user.email,
            subject='Password changed',
            context={'name': regular_user.name},
        )

        assert notification is not None
        assert 'unsubscribe_url' not in notification.context

    def test_muted_user_still_gets_reviewed(self, regular_user, manager_user):
        """Muting decisions does not block the approval itself."""
        EmailPreferenceService.update(regular_user, {'approval_decisions': False})
        update_request = ApprovalWorkflow.submit(regular_user, {'name': 'Quiet Rename'})

        reviewed = ApprovalWorkflow.review(update_request.id, manager_user, APPROVE)

        assert reviewed.status == 'approved'
        assert not Notification.objects.filter(template_name='approval_decision').exists()


@pytest.mark.django_db
class TestEmailPreferenceService:
    """Test EmailPreferenceService."""

    def test_defaults_enable_everything(self, regular_user):
        """A user without a row gets all categories enabled."""
        preference = EmailPreferenceService.get(regular_user)

        assert preference.as_dict() == {'approval_decisions': True, 'user_status_changes': True}

    def test_update_writes_audit_entry(self, regular_user):
        """Changes record previous and new values."""
        EmailPreferenceService.update(regular_user, {'user_status_changes': False})

        entry = AuditLog.objects.by_action(AuditAction.EMAIL_PREFERENCES_UPDATED).get()
        assert entry.metadata['previous_values']['user_status_changes'] is True
        assert entry.metadata['new_values']['user_status_changes'] is False

    def test_no_op_update_is_not_audited(self, regular_user):
        """Setting a value it already has writes nothing."""
        EmailPreferenceService.update(regular_user, {'approval_decisions': True})

        assert not AuditLog.objects.by_action(AuditAction.EMAIL_PREFERENCES_UPDATED).exists()

    @pytest.mark.parametrize('changes', [{}, None, {'marketing': False}, {'approval_decisions': 'no'}])
    def test_invalid_updates(self, regular_user, changes):
        """Unknown keys, non-booleans and empty bodies are rejected."""
        with pytest.raises(ValidationError):
            EmailPreferenceService.update(regular_user, changes)

    def test_unsubscribe_single_category(self, regular_user):
        """A typed unsubscribe only touches that category."""
        token = EmailPreferenceService.get(regular_user).unsubscribe_token

        preference = EmailPreferenceService.unsubscribe(token, category='approval_decisions')

        assert preference.as_dict() == {'approval_decisions': False, 'user_status_changes': True}
        assert preference.unsubscribed_at is None
        entry = AuditLog.objects.by_action(AuditAction.EMAIL_UNSUBSCRIBED).get()
        assert entry.user_id == regular_user.id
        assert entry.metadata['categories'] == ['approval_decisions']

    def test_unsubscribe_all_then_opt_back_in(self, regular_user):
        """Re-enabling a category clears the unsubscribe-all marker."""
        token = EmailPreferenceService.get(regular_user).unsubscribe_token

        preference = EmailPreferenceService.unsubscribe(token, unsubscribe_all=True, reason=' Too many ')
        assert preference.unsubscribed_at is not None
        assert preference.unsubscribe_reason == 'Too many'
        assert not any(preference.as_dict().values())

        preference = EmailPreferenceService.update(regular_user, {'approval_decisions': True})
        assert preference.unsubscribed_at is None

    def test_unknown_token(self, db):
        """Unknown tokens are NotFound."""
        with pytest.raises(NotFoundError):
            EmailPreferenceService.unsubscribe('not-a-token', unsubscribe_all=True)

    def test_unsubscribe_needs_a_target(self, regular_user):
        """Neither a category nor all is a validation error."""
        token = EmailPreferenceService.get(regular_user).unsubscribe_token

        with pytest.raises(ValidationError):
            EmailPreferenceService.unsubscribe(token, category='marketing')


@pytest.mark.django_db
class TestEmailPreferenceAPI:
    """Test /v1/email-preferences/."""

    url = '/v1/email-preferences/'

    def test_get_own_preferences(self, auth_client, regular_user):
        """Users read their own preferences."""
        response = auth_client(regular_user).get(self.url)

        assert response.status_code == 200
        assert response.data['approval_decisions'] is True
        assert 'unsubscribe_token' not in response.data

    def test_patch_preferences(self, auth_client, regular_user):
        """PATCH switches categories."""
        response = auth_client(regular_user).patch(self.url, {'user_status_changes': False}, format='json')

        assert response.status_code == 200
        assert response.data['user_status_changes'] is False
        assert EmailPreference.objects.get(user=regular_user).user_status_changes is False

    def test_patch_unknown_key(self, auth_client, regular_user):
        """Unknown categories are a 400 naming the key."""
        response = auth_client(regular_user).patch(self.url, {'marketing': True}, format='json')

        assert response.status_code == 400
        assert 'marketing' in response.data['details']

    def test_anonymous_is_unauthorized(self, api_client):
        """Preferences need a session."""
        assert api_client.get(self.url).status_code == 401

    def test_unsubscribe_without_session(self, api_client, regular_user):
        """The emailed token is enough to unsubscribe."""
        token = EmailPreferenceService.get(regular_user).unsubscribe_token

        response = api_client.post(
            f'{self.url}unsubscribe', {'token': token, 'type': 'user_status_changes'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['preferences']['user_status_changes'] is False

    def test_unsubscribe_bad_token(self, api_client, db):
        """Unknown tokens are a 404."""
        response = api_client.post(f'{self.url}unsubscribe', {'token': 'nope', 'all': True}, format='json')

        assert response.status_code == 404

    def test_unsubscribe_requires_type_or_all(self, api_client, regular_user):
        """A token alone does not say what to stop."""
        token = EmailPreferenceService.get(regular_user).unsubscribe_token

        response = api_client.post(f'{self.url}unsubscribe', {'token': token}, format='json')

        assert response.status_code == 400
