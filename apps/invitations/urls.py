"""
Invitation URLs.
"""
from django.urls import path
from apps.invitations import views

urlpatterns = [
    path('', views.InvitationListCreateView.as_view(), name='invitation-list'),
    path('accept', views.AcceptInvitationView.as_view(), name='invitation-accept'),
    path('token/<str:token>', views.InvitationByTokenView.as_view(), name='invitation-by-token'),
    path('<uuid:invitation_id>/resend', views.ResendInvitationView.as_view(), name='invitation-resend'),
    path('<uuid:invitation_id>/cancel', views.CancelInvitationView.as_view(), name='invitation-cancel'),
]
