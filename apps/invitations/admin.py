"""
Django admin for invitations.
"""
from django.contrib import admin

from apps.invitations.models import Invitation


@admin.register(Invitation)
class InvitationAdmin(admin.ModelAdmin):
    list_display = ['email', 'role', 'status', 'invited_by', 'expires_at', 'created_at']
    list_filter = ['status', 'role']
    search_fields = ['email']
    ordering = ['-created_at']
    raw_id_fields = ['invited_by', 'accepted_user']
    readonly_fields = ['token', 'accepted_at', 'accepted_user', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False
