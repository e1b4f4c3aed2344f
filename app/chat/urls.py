"""
URL configuration for chat API.

URL Structure:
    Chats:
        /chats/                                  GET, POST
        /chats/{id}/                             GET
        /chats/{id}/read/                        POST
        /chats/{id}/unread-count/                GET

    Participants:
        /chats/{id}/participants/                POST
        /chats/{id}/participants/{user_id}/      DELETE

    Messages:
        /chats/{id}/messages/                    GET, POST
        /chats/{id}/messages/{pk}/               GET, DELETE
        /chats/{id}/messages/search/             GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
The live event stream is a WebSocket route (see chat/routing.py).
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ChatViewSet, MessageViewSet

# Main router for chats
router = DefaultRouter()
router.register(r"chats", ChatViewSet, basename="chat")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path(
        "chats/<int:pk>/participants/<int:user_id>/",
        ChatViewSet.as_view({"delete": "remove_participant"}),
        name="chat-participant-detail",
    ),
    # Nested routes for messages
    path(
        "chats/<int:chat_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="chat-message-list",
    ),
    path(
        "chats/<int:chat_pk>/messages/search/",
        MessageViewSet.as_view({"get": "search"}),
        name="chat-message-search",
    ),
    path(
        "chats/<int:chat_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"get": "retrieve", "delete": "destroy"}),
        name="chat-message-detail",
    ),
]
