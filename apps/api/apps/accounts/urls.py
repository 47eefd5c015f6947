"""
Accounts URLs - Authentication and Users
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    ChangePasswordView,
    LoginView,
    MeView,
    ProfileView,
    RegisterDataView,
    RegisterView,
)
from .views_users import UserViewSet

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')

urlpatterns = [
    path('auth/register', RegisterView.as_view(), name='auth-register'),
    path('auth/login', LoginView.as_view(), name='auth-login'),
    path('auth/token/refresh', TokenRefreshView.as_view(), name='auth-token-refresh'),
    path('auth/me', MeView.as_view(), name='auth-me'),
    path('auth/profile', ProfileView.as_view(), name='auth-profile'),
    path('auth/change-password', ChangePasswordView.as_view(), name='auth-change-password'),
    path('auth/register-data', RegisterDataView.as_view(), name='auth-register-data'),
    path('', include(router.urls)),
]
