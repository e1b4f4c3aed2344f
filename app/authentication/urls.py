"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/register/        - Create account (returns JWT pair)
    /api/v1/auth/login/           - Email/password login (simplejwt)
    /api/v1/auth/token/refresh/   - Refresh access token (rotates refresh token)
    /api/v1/auth/logout/          - Blacklist a refresh token
    /api/v1/auth/me/              - Current user (GET/PUT/PATCH/DELETE)
    /api/v1/auth/users/search/    - User search
    /api/v1/auth/users/{id}/      - Public user lookup
"""

from django.urls import path
from rest_framework_simplejwt.views import (
    TokenBlacklistView,
    TokenObtainPairView,
    TokenRefreshView,
)

from authentication.views import MeView, RegisterView, UserDetailView, UserSearchView

app_name = "authentication"

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("login/", TokenObtainPairView.as_view(), name="login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("logout/", TokenBlacklistView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),
    # search/ must come before the <int:user_id> route
    path("users/search/", UserSearchView.as_view(), name="user-search"),
    path("users/<int:user_id>/", UserDetailView.as_view(), name="user-detail"),
]
