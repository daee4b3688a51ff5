"""
Root URL configuration of the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain access/refresh token pair
        token/refresh/             - Refresh access token
        profile/                   - Profile and privacy settings
    /api/v1/chat/                  - Chat endpoints
        conversations/{peer}/messages/ - Paginated history with a peer
        conversations/{peer}/read/     - Mark everything from a peer as read
        presence/{user}/           - Presence as the requester may see it
        contacts/                  - Contact list/add
        contacts/{user}/           - Contact remove
        blocks/                    - Block list/add
        blocks/{user}/             - Unblock
    /ws/chat/                      - Realtime socket (see config/asgi.py)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "NovaChat Admin"
admin.site.site_title = "NovaChat Admin"
admin.site.index_title = "Chat administration"
