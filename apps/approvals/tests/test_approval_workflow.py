"""
Tests for the profile update approval workflow.

Tests:
- Submission validation and the one-pending-request rule
- Review transitions, error precedence and the four-eyes rule
- Each transition writes exactly one matching audit entry
- Bulk review and statistics
"""
import uuid
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from hypothesis import given, settings as hypothesis_settings, HealthCheck, strategies as st

from apps.approvals.models import ProfileUpdateRequest
from apps.approvals.services import ApprovalWorkflow, APPROVE, REJECT
from apps.audit.models import AuditLog
from apps.audit.schemas import AuditAction
from apps.core.exceptions import (
    TenderHubException, ValidationError, ConflictError, NotFoundError,
)
from apps.notifications.models import Notification
from apps.rbac.models import User


@pytest.mark.django_db
class TestSubmit:
    """Test ApprovalWorkflow.submit."""

    def test_submit_creates_pending_request(self, regular_user):
        """A valid change-set becomes a pending request with one audit entry."""
        update_request = ApprovalWorkflow.submit(
            regular_user, {'email': ' New@Example.com '}, reason='New office'
        )

        assert update_request.status == ProfileUpdateRequest.Status.PENDING
        assert update_request.requested_changes == {'email': 'new@example.com'}
        assert update_request.reason == 'New office'

        entry = AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_REQUESTED).get()
        assert entry.user_id == regular_user.id
        assert entry.metadata['request_id'] == str(update_request.id)
        assert entry.metadata['requested_changes'] == {'email': 'new@example.com'}

    def test_disallowed_field_persists_nothing(self, regular_user):
        """Fields outside name and email are rejected outright."""
        with pytest.raises(ValidationError) as exc_info:
            ApprovalWorkflow.submit(regular_user, {'name': 'Fine', 'role': 'admin'})

        assert 'role' in exc_info.value.details
        assert ProfileUpdateRequest.objects.count() == 0
        assert AuditLog.objects.count() == 0

    def test_audit_failure_leaves_no_request(self, regular_user):
        """A submit whose audit entry fails leaves nothing behind."""
        with patch.object(AuditLog, 'save', side_effect=DatabaseError('audit table unavailable')), \
                patch('apps.audit.services.logger'):
            with pytest.raises(DatabaseError):
                ApprovalWorkflow.submit(regular_user, {'name': 'Never Stored'})

        assert ProfileUpdateRequest.objects.count() == 0
        assert ApprovalWorkflow.pending_count() == 0

    @pytest.mark.parametrize('changes', [{}, None, {'name': ''}, {'name': '   '}, {'name': 42}])
    def test_empty_or_blank_changes_are_rejected(self, regular_user, changes):
        """Empty change-sets and blank values are validation errors."""
        with pytest.raises(ValidationError):
            ApprovalWorkflow.submit(regular_user, changes)

    def test_invalid_email_is_rejected(self, regular_user):
        """Emails must be well-formed."""
        with pytest.raises(ValidationError) as exc_info:
            ApprovalWorkflow.submit(regular_user, {'email': 'not-an-email'})

        assert 'email' in exc_info.value.details

    def test_taken_email_is_rejected(self, regular_user, manager_user):
        """Another user's email cannot be requested, whatever its case."""
        with pytest.raises(ValidationError):
            ApprovalWorkflow.submit(regular_user, {'email': 'MANAGER@test.com'})

    def test_overlong_name_is_rejected(self, regular_user):
        """Names are capped at the column length."""
        with pytest.raises(ValidationError):
            ApprovalWorkflow.submit(regular_user, {'name': 'x' * 256})

    def test_second_pending_request_conflicts(self, regular_user):
        """Only one pending request per user."""
        ApprovalWorkflow.submit(regular_user, {'name': 'First Try'})

        with pytest.raises(ConflictError):
            ApprovalWorkflow.submit(regular_user, {'name': 'Second Try'})

        assert ProfileUpdateRequest.objects.for_user(regular_user).count() == 1

    def test_new_request_allowed_after_review(self, regular_user, manager_user):
        """A reviewed request no longer blocks a new one."""
        first = ApprovalWorkflow.submit(regular_user, {'name': 'First Try'})
        ApprovalWorkflow.review(first.id, manager_user, REJECT, reason='No')

        second = ApprovalWorkflow.submit(regular_user, {'name': 'Second Try'})

        assert second.is_pending


@pytest.mark.django_db
class TestReview:
    """Test ApprovalWorkflow.review."""

    @pytest.fixture
    def pending(self, regular_user):
        return ApprovalWorkflow.submit(regular_user, {'name': 'Renamed User'})

    def test_approve_name_only(self, pending, manager_user, regular_user):
        """Approving a name change leaves the email alone."""
        reviewed = ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        assert reviewed.status == ProfileUpdateRequest.Status.APPROVED
        assert reviewed.reviewed_by_id == manager_user.id
        assert reviewed.reviewed_at is not None
        assert reviewed.rejection_reason is None

        user = User.objects.get(id=regular_user.id)
        assert user.name == 'Renamed User'
        assert user.email == 'user@test.com'

        entry = AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_APPROVED).get()
        assert entry.user_id == manager_user.id
        assert entry.target_user_id == regular_user.id
        assert entry.metadata['previous_values'] == {'name': 'Regular User'}
        assert entry.metadata['new_values'] == {'name': 'Renamed User'}

    def test_approve_queues_decision_email(self, pending, manager_user):
        """The requester is told about the decision."""
        ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        notification = Notification.objects.get(template_name='approval_decision')
        assert notification.recipient == 'user@test.com'
        assert notification.context['decision'] == 'approved'

    def test_reject_keeps_reason_verbatim(self, pending, manager_user, regular_user):
        """The rejection reason is stored exactly as given."""
        reason = '  Use your work address.\nThanks!  '

        reviewed = ApprovalWorkflow.review(pending.id, manager_user, REJECT, reason=reason)

        assert reviewed.status == ProfileUpdateRequest.Status.REJECTED
        assert reviewed.rejection_reason == reason
        assert User.objects.get(id=regular_user.id).name == 'Regular User'
        entry = AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_REJECTED).get()
        assert entry.metadata['rejection_reason'] == reason

    @pytest.mark.parametrize('reason', [None, '', '   '])
    def test_reject_requires_reason(self, pending, manager_user, reason):
        """Rejecting without a reason fails and leaves the request pending."""
        with pytest.raises(ValidationError):
            ApprovalWorkflow.review(pending.id, manager_user, REJECT, reason=reason)

        pending.refresh_from_db()
        assert pending.is_pending

    def test_unknown_action(self, pending, manager_user):
        """Only approve and reject are accepted."""
        with pytest.raises(ValidationError):
            ApprovalWorkflow.review(pending.id, manager_user, 'escalate')

    def test_unknown_request(self, manager_user):
        """Unknown IDs are NotFound, even with a bad action."""
        with pytest.raises(NotFoundError):
            ApprovalWorkflow.review(uuid.uuid4(), manager_user, 'escalate')

    def test_double_review_conflicts(self, pending, manager_user, admin_user):
        """A reviewed request cannot be reviewed again."""
        ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        with pytest.raises(ConflictError) as exc_info:
            ApprovalWorkflow.review(pending.id, admin_user, REJECT, reason='Too late')

        assert exc_info.value.details == {'status': 'approved'}
        assert AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_APPROVED).count() == 1
        assert AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_REJECTED).count() == 0

    def test_stale_read_loses_the_status_swap(self, pending, manager_user, admin_user, regular_user):
        """A reviewer holding a stale pending copy cannot overwrite the first decision."""
        stale = ProfileUpdateRequest.objects.select_related('user').get(id=pending.id)
        ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        with patch.object(ApprovalWorkflow, '_get_request', return_value=stale):
            with pytest.raises(ConflictError):
                ApprovalWorkflow.review(pending.id, admin_user, REJECT, reason='Racing reject')

        pending.refresh_from_db()
        assert pending.status == ProfileUpdateRequest.Status.APPROVED
        assert pending.reviewed_by_id == manager_user.id
        assert pending.rejection_reason is None
        assert AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_APPROVED).count() == 1
        assert AuditLog.objects.by_action(AuditAction.PROFILE_UPDATE_REJECTED).count() == 0
        assert Notification.objects.filter(template_name='approval_decision').count() == 1
        assert User.objects.get(id=regular_user.id).name == 'Renamed User'

    def test_audit_failure_rolls_back_approval(self, pending, manager_user, regular_user):
        """If the audit entry cannot be written the approval never happened."""
        with patch.object(AuditLog, 'save', side_effect=DatabaseError('audit table unavailable')), \
                patch('apps.audit.services.logger'):
            with pytest.raises(DatabaseError):
                ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        pending.refresh_from_db()
        assert pending.is_pending
        assert pending.reviewed_by_id is None
        assert User.objects.get(id=regular_user.id).name == 'Regular User'
        assert not Notification.objects.filter(template_name='approval_decision').exists()

    def test_audit_failure_rolls_back_rejection(self, pending, manager_user):
        """Rejections are also undone when auditing fails."""
        with patch.object(AuditLog, 'save', side_effect=DatabaseError('audit table unavailable')), \
                patch('apps.audit.services.logger'):
            with pytest.raises(DatabaseError):
                ApprovalWorkflow.review(pending.id, manager_user, REJECT, reason='Not now')

        pending.refresh_from_db()
        assert pending.is_pending
        assert pending.rejection_reason is None

    def test_already_reviewed_wins_over_bad_action(self, pending, manager_user):
        """Conflict on a reviewed request is reported before action errors."""
        ApprovalWorkflow.review(pending.id, manager_user, APPROVE)

        with pytest.raises(ConflictError):
            ApprovalWorkflow.review(pending.id, manager_user, 'escalate')

    def test_four_eyes(self, manager_user):
        """Reviewers cannot decide their own requests."""
        own = ApprovalWorkflow.submit(manager_user, {'name': 'Self Promoted'})

        with patch('apps.approvals.services.SecurityLogger.log_four_eyes_violation') as mock_log:
            with pytest.raises(ConflictError):
                ApprovalWorkflow.review(own.id, manager_user, APPROVE)

        mock_log.assert_called_once()
        assert mock_log.call_args.kwargs['user_id'] == str(manager_user.id)
        own.refresh_from_db()
        assert own.is_pending
        assert User.objects.get(id=manager_user.id).name == 'Manager User'

    def test_email_taken_after_submission_conflicts(self, regular_user, manager_user, make_user):
        """Approval re-checks email uniqueness and rolls back on conflict."""
        update_request = ApprovalWorkflow.submit(regular_user, {'email': 'wanted@test.com'})
        make_user('wanted@test.com')

        with pytest.raises(ConflictError):
            ApprovalWorkflow.review(update_request.id, manager_user, APPROVE)

        update_request.refresh_from_db()
        assert update_request.is_pending
        assert User.objects.get(id=regular_user.id).email == 'user@test.com'


@pytest.mark.django_db
class TestWorkflowInvariants:
    """Properties that hold over any sequence of operations."""

    @hypothesis_settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(operations=st.lists(st.sampled_from(['submit', APPROVE, REJECT]), max_size=8))
    def test_at_most_one_pending_and_one_audit_entry_per_transition(self, make_user, manager_user, operations):
        """Whatever the sequence, a user never has two pending requests."""
        user = make_user(f'{uuid.uuid4().hex}@test.com')
        succeeded = 0

        for operation in operations:
            try:
                if operation == 'submit':
                    ApprovalWorkflow.submit(user, {'name': f'Name {succeeded}'})
                else:
                    pending = ProfileUpdateRequest.objects.for_user(user).pending().first()
                    request_id = pending.id if pending else uuid.uuid4()
                    ApprovalWorkflow.review(request_id, manager_user, operation, reason='Not now')
            except TenderHubException:
                pass
            else:
                succeeded += 1

            assert ProfileUpdateRequest.objects.for_user(user).pending().count() <= 1

        assert AuditLog.objects.for_target(user.id).count() == succeeded


@pytest.mark.django_db
class TestBulkReviewAndStats:
    """Test bulk_review, pending_count and stats."""

    def test_bulk_review_reports_each_outcome(self, make_user, manager_user):
        """Failures do not undo successes."""
        first = ApprovalWorkflow.submit(make_user('a@test.com'), {'name': 'Alpha'})
        second = ApprovalWorkflow.submit(make_user('b@test.com'), {'name': 'Bravo'})
        ApprovalWorkflow.review(second.id, manager_user, APPROVE)
        missing = uuid.uuid4()

        results = ApprovalWorkflow.bulk_review([first.id, second.id, missing], manager_user, APPROVE)

        assert [r['success'] for r in results] == [True, False, False]
        assert results[1]['code'] == 'CONFLICT'
        assert results[2]['code'] == 'NOT_FOUND'
        first.refresh_from_db()
        assert first.status == ProfileUpdateRequest.Status.APPROVED

    def test_pending_count_and_stats(self, make_user, manager_user):
        """Counts by status and top requesters."""
        first = ApprovalWorkflow.submit(make_user('a@test.com'), {'name': 'Alpha'})
        ApprovalWorkflow.submit(make_user('b@test.com'), {'name': 'Bravo'})
        ApprovalWorkflow.review(first.id, manager_user, REJECT, reason='No')

        stats = ApprovalWorkflow.stats(days=30)

        assert ApprovalWorkflow.pending_count() == 1
        assert stats['total'] == 2
        assert stats['by_status'] == {'pending': 1, 'approved': 0, 'rejected': 1}
        assert stats['average_processing_hours'] is not None
        assert {row['email'] for row in stats['top_requesters']} == {'a@test.com', 'b@test.com'}
