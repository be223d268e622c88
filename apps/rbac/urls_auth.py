"""
Authentication URLs.
"""
from django.urls import path
from apps.rbac import views_auth

urlpatterns = [
    path('login', views_auth.LoginView.as_view(), name='auth-login'),
    path('logout', views_auth.LogoutView.as_view(), name='auth-logout'),
    path('me', views_auth.MeView.as_view(), name='auth-me'),
    path('change-password', views_auth.ChangePasswordView.as_view(), name='auth-change-password'),
]
