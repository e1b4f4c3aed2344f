"""
Chat application configuration.

This app provides the chat core with:
- SINGLE (two-person, deduplicated) and GROUP chats
- Message history, search and sender-only deletion
- Per-recipient delivery and read tracking
- Membership-scoped live events over WebSocket
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    def ready(self):
        """Import signal handlers when app is ready."""
        import chat.signals  # noqa: F401
