"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (login, password change)
- Users and team members
"""
from rest_framework import serializers

from apps.rbac.models import User
from apps.rbac.permissions import check_permission
from apps.rbac.roles import Role, UserStatus


# ===== AUTHENTICATION SERIALIZERS =====

class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        return value.strip().lower()


class ChangePasswordSerializer(serializers.Serializer):
    """Serializer for changing the caller's own password."""

    current_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


# ===== USER SERIALIZERS =====

class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    invited_by = serializers.UUIDField(source='invited_by_id', read_only=True, allow_null=True)

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'role', 'status', 'invited_by', 'invited_at',
            'last_login_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class CurrentUserSerializer(UserSerializer):
    """The caller's own account, with the capabilities the UI needs."""

    capabilities = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['capabilities']
        read_only_fields = fields

    def get_capabilities(self, obj):
        permissions = check_permission(obj)
        return {
            'can_invite_users': permissions.can_invite_users(),
            'can_invite_manager': permissions.can_invite_manager(),
            'can_invite_admin': permissions.can_invite_admin(),
            'can_review_profile_updates': permissions.has_role_or_higher(Role.MANAGER),
            'can_view_audit_logs': permissions.has_role_or_higher(Role.ADMIN),
        }


class TeamMemberUpdateSerializer(serializers.Serializer):
    """Fields a manager or admin may change on a team member."""

    name = serializers.CharField(required=False, max_length=255)
    role = serializers.ChoiceField(choices=Role.choices, required=False)
    status = serializers.ChoiceField(choices=UserStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one of name, role or status.")
        return attrs
