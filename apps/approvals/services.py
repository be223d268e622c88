"""
Profile update approval workflow.

Implements:
- ApprovalWorkflow: submit, review, bulk review and reporting over
  ProfileUpdateRequest
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from apps.approvals.models import ProfileUpdateRequest, ALLOWED_FIELDS
from apps.audit.schemas import (
    AuditAction, ProfileUpdateRequestedMetadata, ProfileUpdateApprovedMetadata,
    ProfileUpdateRejectedMetadata,
)
from apps.audit.services import AuditLogWriter, get_client_ip
from apps.core.exceptions import (
    TenderHubException, ValidationError, NotFoundError, ConflictError,
)
from apps.core.logging import SecurityLogger
from apps.notifications.services import NotificationService
from apps.rbac.models import User

logger = logging.getLogger(__name__)

APPROVE = 'approve'
REJECT = 'reject'
REVIEW_ACTIONS = (APPROVE, REJECT)


class ApprovalWorkflow:
    """
    State machine over ProfileUpdateRequest: pending -> approved | rejected.

    Every transition runs in one transaction together with its audit entry
    and its notification outbox row. Callers are responsible for checking
    that a reviewer holds manager role or higher before calling ``review``.
    """

    @classmethod
    def submit(
        cls,
        user: User,
        changes: Dict[str, Any],
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        request=None,
    ) -> ProfileUpdateRequest:
        """
        Submit a profile change for review.

        Args:
            user: Requesting user
            changes: Proposed values keyed by field name (name, email)
            reason: Optional explanation for reviewers
            ip_address: Client IP for the audit entry
            request: Originating request, for audit context

        Returns:
            The pending ProfileUpdateRequest

        Raises:
            ValidationError: Empty change-set, disallowed field, bad value,
                or an email already used by another user
            ConflictError: The user already has a pending request
        """
        cleaned = cls._clean_changes(user, changes)
        reason = reason.strip() if isinstance(reason, str) and reason.strip() else None

        with transaction.atomic():
            if ProfileUpdateRequest.objects.for_user(user).pending().exists():
                raise ConflictError("You already have a pending profile update request")

            try:
                with transaction.atomic():
                    update_request = ProfileUpdateRequest.objects.create(
                        user=user,
                        requested_changes=cleaned,
                        reason=reason,
                    )
            except IntegrityError:
                # Lost a race with a concurrent submit for the same user
                raise ConflictError("You already have a pending profile update request")

            AuditLogWriter.append(
                AuditAction.PROFILE_UPDATE_REQUESTED,
                actor_id=user.id,
                target_user_id=user.id,
                metadata=ProfileUpdateRequestedMetadata(
                    request_id=str(update_request.id),
                    requested_changes=cleaned,
                    reason=reason,
                ),
                ip_address=ip_address,
                request=request,
            )

        logger.info(
            f"Profile update requested: {', '.join(sorted(cleaned))}",
            extra={
                'update_request_id': str(update_request.id),
                'user_id': str(user.id),
            }
        )
        return update_request

    @classmethod
    def review(
        cls,
        request_id,
        reviewer: User,
        action: str,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        request=None,
    ) -> ProfileUpdateRequest:
        """
        Approve or reject a pending request.

        Args:
            request_id: ID of the ProfileUpdateRequest
            reviewer: Manager or admin performing the review
            action: 'approve' or 'reject'
            reason: Rejection reason; required for 'reject'
            ip_address: Client IP for the audit entry
            request: Originating request, for audit context

        Returns:
            The reviewed ProfileUpdateRequest

        Raises:
            NotFoundError: Unknown request ID
            ConflictError: Request already reviewed, reviewer is the
                requester, or the new email was taken since submission
            ValidationError: Unknown action, or reject without a reason
        """
        with transaction.atomic():
            update_request = cls._get_request(request_id)

            if not update_request.is_pending:
                raise ConflictError(
                    f"Request has already been {update_request.status}",
                    details={'status': update_request.status}
                )

            if action not in REVIEW_ACTIONS:
                raise ValidationError(
                    f"Unknown review action: {action}",
                    details={'action': [f'Must be one of: {", ".join(REVIEW_ACTIONS)}.']}
                )

            if action == REJECT and not (isinstance(reason, str) and reason.strip()):
                raise ValidationError(
                    "A reason is required when rejecting a request",
                    details={'reason': ['This field is required when rejecting.']}
                )

            if update_request.user_id == reviewer.id:
                SecurityLogger.log_four_eyes_violation(
                    user_id=str(reviewer.id),
                    operation='profile_update_review',
                    ip_address=ip_address or get_client_ip(request),
                )
                raise ConflictError("You cannot review your own profile update request")

            now = timezone.now()
            new_status = (
                ProfileUpdateRequest.Status.APPROVED if action == APPROVE
                else ProfileUpdateRequest.Status.REJECTED
            )

            # Compare-and-swap on the pending status: exactly one concurrent
            # reviewer sees a row count of 1.
            transitioned = ProfileUpdateRequest.objects.filter(
                id=update_request.id,
                status=ProfileUpdateRequest.Status.PENDING,
            ).update(
                status=new_status,
                reviewed_by=reviewer,
                reviewed_at=now,
                rejection_reason=reason if action == REJECT else None,
                updated_at=now,
            )
            if transitioned != 1:
                raise ConflictError("Request has already been reviewed")

            if action == APPROVE:
                user = cls._apply_changes(update_request, reviewer, ip_address, request)
                context = {
                    'name': user.name,
                    'decision': 'approved',
                    'changes': update_request.requested_changes,
                }
            else:
                user = update_request.user
                AuditLogWriter.append(
                    AuditAction.PROFILE_UPDATE_REJECTED,
                    actor_id=reviewer.id,
                    target_user_id=update_request.user_id,
                    metadata=ProfileUpdateRejectedMetadata(
                        request_id=str(update_request.id),
                        rejection_reason=reason,
                    ),
                    ip_address=ip_address,
                    request=request,
                )
                context = {
                    'name': user.name,
                    'decision': 'rejected',
                    'rejection_reason': reason,
                }

            NotificationService.enqueue(
                template_name='approval_decision',
                recipient=user.email,
                subject=f"Your profile update request was {new_status}",
                context=context,
            )

            update_request.refresh_from_db()

        logger.info(
            f"Profile update {new_status}",
            extra={
                'update_request_id': str(update_request.id),
                'reviewer_id': str(reviewer.id),
                'user_id': str(update_request.user_id),
            }
        )
        return update_request

    @classmethod
    def bulk_review(
        cls,
        request_ids: List[Any],
        reviewer: User,
        action: str,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        request=None,
    ) -> List[Dict[str, Any]]:
        """
        Review several requests with the same decision.

        Each request is reviewed in its own transaction; one failure does
        not undo the others.

        Returns:
            One result per ID: ``{'id', 'success', 'status'}`` on success,
            ``{'id', 'success', 'error', 'code'}`` on failure
        """
        results = []
        for request_id in request_ids:
            try:
                reviewed = cls.review(
                    request_id, reviewer, action,
                    reason=reason, ip_address=ip_address, request=request,
                )
            except TenderHubException as e:
                results.append({
                    'id': str(request_id),
                    'success': False,
                    'error': e.message,
                    'code': e.code,
                })
                continue
            results.append({
                'id': str(request_id),
                'success': True,
                'status': reviewed.status,
            })

        logger.info(
            f"Bulk review complete: {sum(r['success'] for r in results)}/{len(results)} succeeded",
            extra={'reviewer_id': str(reviewer.id), 'review_action': action}
        )
        return results

    @classmethod
    def pending_count(cls) -> int:
        """Number of requests waiting for review."""
        return ProfileUpdateRequest.objects.pending().count()

    @classmethod
    def stats(cls, days: int = 30) -> Dict[str, Any]:
        """
        Summary of requests submitted in the last ``days`` days.

        Returns:
            dict with per-status counts, average hours from submission to
            review, and the five most active requesters
        """
        since = timezone.now() - timedelta(days=days)
        requests = ProfileUpdateRequest.objects.filter(requested_at__gte=since)

        counts = {choice: 0 for choice in ProfileUpdateRequest.Status.values}
        for row in requests.values('status').annotate(count=Count('id')):
            counts[row['status']] = row['count']

        durations = [
            (reviewed_at - requested_at).total_seconds() / 3600
            for requested_at, reviewed_at in requests.reviewed().values_list('requested_at', 'reviewed_at')
            if reviewed_at is not None
        ]
        average_hours = round(sum(durations) / len(durations), 2) if durations else None

        top_requesters = [
            {'user_id': str(row['user_id']), 'email': row['user__email'], 'count': row['count']}
            for row in requests.values('user_id', 'user__email')
            .annotate(count=Count('id'))
            .order_by('-count', 'user__email')[:5]
        ]

        return {
            'period_days': days,
            'total': sum(counts.values()),
            'by_status': counts,
            'average_processing_hours': average_hours,
            'top_requesters': top_requesters,
        }

    @classmethod
    def _get_request(cls, request_id) -> ProfileUpdateRequest:
        try:
            return ProfileUpdateRequest.objects.select_related('user').get(id=request_id)
        except (ProfileUpdateRequest.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError("Profile update request not found")

    @classmethod
    def _apply_changes(cls, update_request, reviewer, ip_address, request) -> User:
        """Write an approved change-set onto the requester's row."""
        user = User.objects.select_for_update().get(id=update_request.user_id)
        changes = update_request.requested_changes

        if 'email' in changes and User.objects.email_taken(changes['email'], exclude_user_id=user.id):
            raise ConflictError(
                "Email address is already in use by another account",
                details={'email': ['This email address is already in use.']}
            )

        previous_values = {field: getattr(user, field) for field in changes}
        for field, value in changes.items():
            setattr(user, field, value)
        user.save(update_fields=list(changes) + ['updated_at'])

        AuditLogWriter.append(
            AuditAction.PROFILE_UPDATE_APPROVED,
            actor_id=reviewer.id,
            target_user_id=user.id,
            metadata=ProfileUpdateApprovedMetadata(
                request_id=str(update_request.id),
                previous_values=previous_values,
                new_values={field: getattr(user, field) for field in changes},
            ),
            ip_address=ip_address,
            request=request,
        )
        return user

    @classmethod
    def _clean_changes(cls, user, changes) -> Dict[str, str]:
        """Validate a change-set and return it normalized."""
        if not isinstance(changes, dict) or not changes:
            raise ValidationError(
                "At least one change is required",
                details={'changes': ['Provide at least one field to change.']}
            )

        errors = {}
        cleaned = {}
        for field, value in changes.items():
            if field not in ALLOWED_FIELDS:
                errors[field] = [f'This field cannot be changed. Allowed: {", ".join(ALLOWED_FIELDS)}.']
                continue
            if not isinstance(value, str) or not value.strip():
                errors[field] = ['Must be a non-empty string.']
                continue
            cleaned[field] = value.strip()

        if 'name' in cleaned and len(cleaned['name']) > User._meta.get_field('name').max_length:
            errors['name'] = ['Ensure this field has no more than 255 characters.']

        if 'email' in cleaned:
            email = User.objects.normalize_email(cleaned['email'])
            try:
                validate_email(email)
            except DjangoValidationError:
                errors['email'] = ['Enter a valid email address.']
            else:
                if User.objects.email_taken(email, exclude_user_id=user.id):
                    errors['email'] = ['This email address is already in use.']
                cleaned['email'] = email

        if errors:
            raise ValidationError("Invalid profile changes", details=errors)

        return cleaned
