"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/register/          - Create an account (returns a token pair)
    /api/v1/auth/token/             - Obtain access/refresh token pair
    /api/v1/auth/token/refresh/     - Refresh access token
    /api/v1/auth/logout/            - Blacklist a refresh token
    /api/v1/auth/profile/           - Profile and privacy settings (GET/PATCH)
    /api/v1/auth/users/             - Other active users with filtered presence
    /api/v1/auth/users/{user_id}/   - One user with filtered presence
"""

from django.urls import path

from authentication.views import (
    LogoutView,
    ProfileView,
    RegisterView,
    TokenObtainView,
    TokenRefreshAccessView,
    UserDetailView,
    UserListView,
)

app_name = "authentication"

urlpatterns = [
    path("register/", RegisterView.as_view(), name="register"),
    path("token/", TokenObtainView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshAccessView.as_view(), name="token-refresh"),
    path("logout/", LogoutView.as_view(), name="logout"),
    path("profile/", ProfileView.as_view(), name="profile"),
    path("users/", UserListView.as_view(), name="user-list"),
    path("users/<int:user_id>/", UserDetailView.as_view(), name="user-detail"),
]
