"""
Serializers for the invitation API.
"""
from rest_framework import serializers

from apps.invitations.models import Invitation


class InvitationSerializer(serializers.ModelSerializer):
    """Invitation as seen by the team. The token is never exposed."""

    invited_by = serializers.UUIDField(source='invited_by_id', read_only=True, allow_null=True)
    invited_by_name = serializers.CharField(source='invited_by.name', read_only=True, default=None)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invitation
        fields = [
            'id', 'email', 'role', 'status', 'invited_by', 'invited_by_name',
            'expires_at', 'is_expired', 'accepted_at', 'created_at'
        ]
        read_only_fields = fields


class InvitationPublicSerializer(serializers.ModelSerializer):
    """What the invitee sees before accepting."""

    invited_by_name = serializers.CharField(source='invited_by.name', read_only=True, default=None)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invitation
        fields = ['email', 'role', 'status', 'invited_by_name', 'expires_at', 'is_expired']
        read_only_fields = fields


class CreateInvitationSerializer(serializers.Serializer):
    """Input for sending an invitation."""

    email = serializers.EmailField()
    role = serializers.CharField(max_length=20)


class AcceptInvitationSerializer(serializers.Serializer):
    """Input for accepting an invitation."""

    token = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
