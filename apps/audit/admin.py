"""
Read-only Django admin for the audit trail.
"""
from django.contrib import admin

from apps.audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'action', 'user_id', 'target_user_id', 'ip_address']
    list_filter = ['action']
    search_fields = ['user_id', 'target_user_id', 'request_id']
    ordering = ['-created_at']
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
