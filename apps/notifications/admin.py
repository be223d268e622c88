"""
Django admin for the notification outbox and email preferences.
"""
from django.contrib import admin

from apps.notifications.models import EmailPreference, Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['template_name', 'recipient', 'status', 'attempts', 'created_at', 'sent_at']
    list_filter = ['status', 'template_name']
    search_fields = ['recipient', 'subject']
    ordering = ['-created_at']
    readonly_fields = ['id', 'created_at', 'updated_at', 'sent_at', 'attempts', 'last_error']
    actions = ['requeue']

    @admin.action(description='Requeue selected notifications')
    def requeue(self, request, queryset):
        from apps.notifications.tasks import deliver_notification

        count = 0
        for notification in queryset.exclude(status=Notification.Status.SENT):
            notification.status = Notification.Status.PENDING
            notification.attempts = 0
            notification.save(update_fields=['status', 'attempts', 'updated_at'])
            deliver_notification.delay(str(notification.id))
            count += 1
        self.message_user(request, f"{count} notification(s) requeued.")


@admin.register(EmailPreference)
class EmailPreferenceAdmin(admin.ModelAdmin):
    list_display = ['user', 'approval_decisions', 'user_status_changes', 'unsubscribed_at', 'updated_at']
    list_filter = ['approval_decisions', 'user_status_changes']
    search_fields = ['user__email']
    raw_id_fields = ['user']
    readonly_fields = ['unsubscribe_token', 'unsubscribed_at', 'created_at', 'updated_at']
