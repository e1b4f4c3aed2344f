"""
URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Accounts and tokens
        register/                  - Create an account, returns a token pair
        login/                     - Email/password login (JWT pair)
        token/refresh/             - Rotate a refresh token
        logout/                    - Blacklist a refresh token
        me/                        - Current user (GET/PUT/PATCH/DELETE)
        users/{id}/                - Public user lookup
        users/search/              - Search by display name or email
    /api/v1/chat/                  - Chat endpoints
        chats/                     - Chat list/create
        chats/{id}/                - Chat detail
        chats/{id}/read/           - Mark chat as read
        chats/{id}/unread-count/   - Unread messages for the caller
        chats/{id}/participants/   - Add participant (GROUP only)
        chats/{id}/participants/{user_id}/ - Remove participant (GROUP only)
        chats/{id}/messages/       - Message history (paginated) / send
        chats/{id}/messages/{pk}/  - Message detail / delete
        chats/{id}/messages/search/ - Case-insensitive content search

WebSocket routes live in chat.routing and are mounted by config.asgi.

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
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Chats, messages and users"
