"""
Django admin for profile update requests.

Read-only: reviews must go through the approval API so the user row,
audit entry and notification change together.
"""
from django.contrib import admin

from apps.approvals.models import ProfileUpdateRequest


@admin.register(ProfileUpdateRequest)
class ProfileUpdateRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'status', 'requested_at', 'reviewed_by', 'reviewed_at']
    list_filter = ['status', 'requested_at']
    search_fields = ['user__email', 'user__name']
    ordering = ['-requested_at']
    raw_id_fields = ['user', 'reviewed_by']
    readonly_fields = [field.name for field in ProfileUpdateRequest._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
