"""
URL configuration for email preferences.
"""
from django.urls import path
from apps.notifications import views

urlpatterns = [
    path('', views.EmailPreferenceView.as_view(), name='email-preferences'),
    path('unsubscribe', views.UnsubscribeView.as_view(), name='email-unsubscribe'),
]
