"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin for the User model.

    Role and status edits here bypass the approval workflow and team
    service audit trail, so they are read-only; use the team API instead.
    """
    list_display = ['email', 'name', 'role', 'status', 'last_login_at', 'created_at']
    list_filter = ['role', 'status', 'created_at']
    search_fields = ['email', 'name']
    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'name')
        }),
        ('Access', {
            'fields': ('role', 'status')
        }),
        ('Invitation', {
            'fields': ('invited_by', 'invited_at')
        }),
        ('Activity', {
            'fields': ('last_login_at', 'created_at', 'updated_at')
        }),
    )

    readonly_fields = [
        'email', 'name', 'role', 'status', 'invited_by', 'invited_at',
        'last_login_at', 'created_at', 'updated_at'
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
