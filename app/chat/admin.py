"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Chat management
- Participant viewing
- Message moderation
"""

from django.contrib import admin

from chat.models import Chat, ChatParticipant, DirectChatPair, Message, MessageReceipt


class ChatParticipantInline(admin.TabularInline):
    """Inline display of participants in chat admin."""

    model = ChatParticipant
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["user"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    """Admin interface for Chat model."""

    list_display = ["id", "chat_type", "name", "created_at", "last_activity_at"]
    list_filter = ["chat_type", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_activity_at"]
    inlines = [ChatParticipantInline]
    ordering = ["-last_activity_at"]


@admin.register(DirectChatPair)
class DirectChatPairAdmin(admin.ModelAdmin):
    list_display = ["chat", "user_lower", "user_higher"]
    raw_id_fields = ["chat", "user_lower", "user_higher"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "chat",
        "sender",
        "message_type",
        "status",
        "content_preview",
        "created_at",
    ]
    list_filter = ["message_type", "status", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["chat", "sender"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(MessageReceipt)
class MessageReceiptAdmin(admin.ModelAdmin):
    list_display = ["message", "recipient", "status", "delivered_at", "read_at"]
    list_filter = ["status"]
    raw_id_fields = ["message", "recipient", "chat"]
