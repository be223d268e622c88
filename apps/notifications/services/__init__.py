from apps.notifications.services.notification_service import NotificationService
from apps.notifications.services.preference_service import EmailPreferenceService

__all__ = ['NotificationService', 'EmailPreferenceService']
