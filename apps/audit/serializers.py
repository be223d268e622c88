"""
Serializers for audit log read endpoints.
"""
from rest_framework import serializers

from apps.audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    class Meta:
        model = AuditLog
        fields = [
            'id', 'action', 'user_id', 'target_user_id', 'metadata',
            'ip_address', 'user_agent', 'request_id', 'created_at'
        ]
        read_only_fields = fields


class AuditLogFilterSerializer(serializers.Serializer):
    """Query parameters accepted by the audit log listing."""

    action = serializers.ChoiceField(choices=AuditLog._meta.get_field('action').choices, required=False)
    user_id = serializers.UUIDField(required=False)
    target_user_id = serializers.UUIDField(required=False)
    request_id = serializers.CharField(required=False, max_length=64)
    since = serializers.DateTimeField(required=False)
    until = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        since, until = attrs.get('since'), attrs.get('until')
        if since and until and since > until:
            raise serializers.ValidationError({'since': 'Must not be later than until.'})
        return attrs
