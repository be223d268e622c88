"""
Serializers for email preferences.
"""
from rest_framework import serializers

from apps.notifications.models import EmailPreference, PREFERENCE_FIELDS


class EmailPreferenceSerializer(serializers.ModelSerializer):
    """Read-only view of a user's email preferences."""

    class Meta:
        model = EmailPreference
        fields = list(PREFERENCE_FIELDS) + ['unsubscribed_at', 'updated_at']
        read_only_fields = fields


class UnsubscribeSerializer(serializers.Serializer):
    """Body of an unsubscribe link submission."""

    token = serializers.CharField(max_length=64)
    type = serializers.ChoiceField(choices=PREFERENCE_FIELDS, required=False)
    all = serializers.BooleanField(required=False, default=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        if not attrs.get('all') and not attrs.get('type'):
            raise serializers.ValidationError({'type': 'Provide an email type or set all to true.'})
        return attrs
