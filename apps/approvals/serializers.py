"""
Serializers for the profile update approval API.
"""
from rest_framework import serializers

from apps.approvals.models import ProfileUpdateRequest
from apps.approvals.services import REVIEW_ACTIONS
from apps.rbac.models import User


class RequesterSerializer(serializers.ModelSerializer):
    """Minimal user representation embedded in a request."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role']
        read_only_fields = fields


class ProfileUpdateRequestSerializer(serializers.ModelSerializer):
    """Serializer for ProfileUpdateRequest model."""

    user = RequesterSerializer(read_only=True)
    reviewed_by = serializers.UUIDField(source='reviewed_by_id', read_only=True, allow_null=True)

    class Meta:
        model = ProfileUpdateRequest
        fields = [
            'id', 'user', 'requested_changes', 'reason', 'status', 'requested_at',
            'reviewed_by', 'reviewed_at', 'rejection_reason', 'updated_at'
        ]
        read_only_fields = fields


class SubmitProfileUpdateSerializer(serializers.Serializer):
    """
    Input for submitting a profile update.

    Field-level checks on ``changes`` (allow-list, email format and
    uniqueness) happen in ApprovalWorkflow.submit.
    """

    changes = serializers.DictField(required=True, allow_empty=True)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)


class ReviewProfileUpdateSerializer(serializers.Serializer):
    """
    Input for approving or rejecting a request.

    ``action`` is checked by ApprovalWorkflow.review so that an unknown
    request ID or an already reviewed request is reported first.
    """

    action = serializers.CharField(required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000, trim_whitespace=False)


class BulkReviewSerializer(serializers.Serializer):
    """Input for reviewing several requests at once."""

    action = serializers.ChoiceField(choices=REVIEW_ACTIONS)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        max_length=100,
    )
