"""
Team management URLs.
"""
from django.urls import path
from apps.rbac import views

urlpatterns = [
    path('', views.TeamListView.as_view(), name='team-list'),
    path('<uuid:user_id>', views.TeamMemberDetailView.as_view(), name='team-member-detail'),
]
