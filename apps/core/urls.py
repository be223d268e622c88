"""
Core API URLs.
"""
from django.urls import path
from . import views

urlpatterns = [
    path('health', views.HealthCheckView.as_view(), name='health-check'),
    path('admin/system-status', views.SystemStatusView.as_view(), name='system-status'),
]
