"""
URL configuration for Tender Hub.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Health check and system status
    path('v1/', include('apps.core.urls')),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Login, logout, me, change-password

    # Team management
    path('v1/team/', include('apps.rbac.urls')),

    # Profile update approvals
    path('v1/approvals/', include('apps.approvals.urls')),

    # Invitations
    path('v1/invitations/', include('apps.invitations.urls')),

    # Audit log
    path('v1/audit-logs/', include('apps.audit.urls')),

    # Email preferences and unsubscribe links
    path('v1/email-preferences/', include('apps.notifications.urls')),

    # Province and publisher directory
    path('v1/', include('apps.directory.urls')),
]
