"""
Profile update approval URLs.
"""
from django.urls import path
from apps.approvals import views

urlpatterns = [
    path('', views.ProfileUpdateRequestListView.as_view(), name='approval-list'),
    path('submit', views.SubmitProfileUpdateView.as_view(), name='approval-submit'),
    path('mine', views.MyProfileUpdateRequestsView.as_view(), name='approval-mine'),
    path('count', views.PendingCountView.as_view(), name='approval-count'),
    path('stats', views.ApprovalStatsView.as_view(), name='approval-stats'),
    path('bulk-review', views.BulkReviewView.as_view(), name='approval-bulk-review'),
    path('<uuid:request_id>', views.ProfileUpdateRequestDetailView.as_view(), name='approval-detail'),
    path('<uuid:request_id>/review', views.ReviewProfileUpdateView.as_view(), name='approval-review'),
]
